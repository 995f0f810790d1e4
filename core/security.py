"""
Security utilities for authentication.

Provides:
- Password hashing (bcrypt)
- Session token issuance and validation (JWT, HS256)
- Session cookie descriptors

SECURITY REQUIREMENTS:
- JWT_SECRET must be set via environment variable in production
- JWT_SECRET must be different for each environment (dev/staging/prod)
- JWT_SECRET must NEVER be committed to source control or logged
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
import logging

import bcrypt
from jose import JWTError, jwt
from starlette.requests import Request
from starlette.responses import Response

from core.config import Settings
from core.exceptions import ConfigError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_COOKIE_NAME = "auth-token"
SESSION_LIFETIME = timedelta(days=7)
DEV_FALLBACK_SECRET = "insecure-development-secret-change-me"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


@dataclass(frozen=True)
class TokenPayload:
    """Verified contents of a session token."""
    user_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class SessionCookie:
    """Cookie descriptor handed to the HTTP layer."""
    name: str
    value: str
    max_age: int
    httponly: bool = True
    secure: bool = False
    samesite: str = "lax"
    path: str = "/"

    def apply(self, response: Response) -> None:
        response.set_cookie(
            key=self.name,
            value=self.value,
            max_age=self.max_age,
            path=self.path,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )


class TokenService:
    """
    Issues and verifies signed, time-limited session tokens.

    Built once at startup from Settings and shared across requests; it holds
    no mutable state after construction.
    """

    def __init__(self, config: Settings):
        secret = config.JWT_SECRET
        if not secret:
            if config.is_production:
                raise ConfigError("JWT_SECRET must be set in production")
            logger.warning(
                "JWT_SECRET is not set; using the insecure development fallback key. "
                "Do not run like this outside local development."
            )
            secret = DEV_FALLBACK_SECRET
        self._secret = secret
        self.lifetime = SESSION_LIFETIME
        self.secure_cookies = config.is_production

    def __repr__(self) -> str:
        return f"TokenService(lifetime={self.lifetime!r})"

    def issue(self, payload: Dict[str, Any], now: Optional[datetime] = None) -> str:
        """Create a token for ``{"userId", "email"}`` valid for the session lifetime."""
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "userId": str(payload["userId"]),
            "email": payload["email"],
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.lifetime).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: Optional[str]) -> Optional[TokenPayload]:
        """Decode and validate a token. Returns None on any failure."""
        if not token:
            return None
        try:
            claims = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.debug(f"Token verification failed: {type(e).__name__}")
            return None

        user_id = claims.get("userId")
        email = claims.get("email")
        exp = claims.get("exp")
        if not user_id or not email or exp is None:
            return None

        return TokenPayload(
            user_id=str(user_id),
            email=email,
            issued_at=datetime.fromtimestamp(claims.get("iat", 0), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )

    def extract_from_request(self, request: Request) -> Optional[str]:
        """Bearer header first, then the session cookie."""
        auth_header = request.headers.get("authorization")
        if auth_header:
            scheme, _, token = auth_header.partition(" ")
            if scheme.lower() == "bearer" and token.strip():
                return token.strip()

        cookie = request.cookies.get(SESSION_COOKIE_NAME)
        if cookie:
            return cookie
        return None

    def build_session_cookie(self, token: str) -> SessionCookie:
        return SessionCookie(
            name=SESSION_COOKIE_NAME,
            value=token,
            max_age=int(self.lifetime.total_seconds()),
            secure=self.secure_cookies,
        )

    def build_logout_cookie(self) -> SessionCookie:
        return SessionCookie(
            name=SESSION_COOKIE_NAME,
            value="",
            max_age=0,
            secure=self.secure_cookies,
        )
