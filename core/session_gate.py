"""
Session Gate

Request interceptor that enforces authentication before a request reaches
route handlers, for both API calls and page navigations.

- /api/auth/* is always forwarded untouched
- other /api/* paths need a valid token, otherwise a 401 JSON envelope
- protected page prefixes need a valid token, otherwise a redirect to login
- everything else passes through

The decision itself is the pure function ``decide``; the middleware only
applies it and stores the verified identity on ``request.state.identity``.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional
from urllib.parse import quote
import logging

from fastapi import status
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from core.security import TokenService

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
AUTH_PREFIX = "/api/auth"
DEFAULT_PROTECTED_PREFIXES = ("/tree", "/goals", "/plans", "/groups", "/profile")


class GateAction(str, Enum):
    FORWARD = "forward"
    FORWARD_WITH_IDENTITY = "forward_with_identity"
    REJECT = "reject"
    REDIRECT_LOGIN = "redirect_login"


@dataclass(frozen=True)
class RequestIdentity:
    """The authenticated caller, as verified by the gate."""
    user_id: str
    email: str


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    identity: Optional[RequestIdentity] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


def _under(path: str, prefix: str) -> bool:
    """Segment-aware prefix match: /tree matches /tree and /tree/x, not /treehouse."""
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def decide(
    path: str,
    token: Optional[str],
    token_service: TokenService,
    protected_prefixes: Iterable[str] = DEFAULT_PROTECTED_PREFIXES,
) -> GateDecision:
    """Classify a request by path and token. Verifies the token at most once."""
    if _under(path, AUTH_PREFIX):
        return GateDecision(GateAction.FORWARD)

    if _under(path, API_PREFIX):
        if not token:
            return GateDecision(
                GateAction.REJECT,
                error_code="NO_TOKEN",
                message="Authentication token not provided",
            )
        payload = token_service.verify(token)
        if payload is None:
            return GateDecision(
                GateAction.REJECT,
                error_code="INVALID_TOKEN",
                message="Invalid or expired authentication token",
            )
        return GateDecision(
            GateAction.FORWARD_WITH_IDENTITY,
            identity=RequestIdentity(user_id=payload.user_id, email=payload.email),
        )

    if any(_under(path, prefix) for prefix in protected_prefixes):
        if not token or token_service.verify(token) is None:
            return GateDecision(GateAction.REDIRECT_LOGIN)
        return GateDecision(GateAction.FORWARD)

    return GateDecision(GateAction.FORWARD)


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Applies ``decide`` to every HTTP request."""

    def __init__(
        self,
        app,
        token_service: TokenService,
        login_path: str = "/login",
        protected_prefixes: Iterable[str] = DEFAULT_PROTECTED_PREFIXES,
    ):
        super().__init__(app)
        self.token_service = token_service
        self.login_path = login_path
        self.protected_prefixes = tuple(protected_prefixes)

    async def dispatch(self, request: Request, call_next):
        # CORS preflight carries no credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path
        token = self.token_service.extract_from_request(request)
        decision = decide(path, token, self.token_service, self.protected_prefixes)

        if decision.action == GateAction.REJECT:
            logger.info(
                f"Session gate rejected {request.method} {path}: {decision.error_code}",
                extra={"extra_fields": {"path": path, "error_code": decision.error_code}},
            )
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={
                    "success": False,
                    "message": decision.message,
                    "errorCode": decision.error_code,
                },
                headers={"WWW-Authenticate": "Bearer"},
            )

        if decision.action == GateAction.REDIRECT_LOGIN:
            target = f"{self.login_path}?next={quote(path)}"
            return RedirectResponse(url=target, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

        request.state.identity = decision.identity
        return await call_next(request)
