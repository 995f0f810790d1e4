"""
Structured logging configuration.

JSON lines in production (or with LOG_FORMAT=json), plain text otherwise.
Context is attached with ``extra={"extra_fields": {...}}``; credential-bearing
keys in that context are masked before they reach any handler.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import Settings, settings as default_settings

REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"password", "token", "authorization", "cookie", "jwt_secret", "secret"})


def redact(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``fields`` with sensitive values masked."""
    return {k: (REDACTED if k.lower() in SENSITIVE_KEYS else v) for k, v in fields.items()}


class RedactingFilter(logging.Filter):
    """Masks sensitive keys in ``extra_fields`` for every formatter."""

    def filter(self, record: logging.LogRecord) -> bool:
        fields = getattr(record, "extra_fields", None)
        if isinstance(fields, dict):
            record.extra_fields = redact(fields)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, environment: str = "development"):
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "environment": self.environment,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if isinstance(getattr(record, "extra_fields", None), dict):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def setup_logging(config: Optional[Settings] = None) -> logging.Logger:
    """Configure the root logger from ``config`` (the global settings by default)."""
    config = config or default_settings
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

    if config.LOG_FORMAT == "json" or config.is_production:
        formatter: logging.Formatter = JSONFormatter(environment=config.ENVIRONMENT)
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RedactingFilter())
    root_logger.addHandler(console_handler)

    # Noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger
