"""
Authentication dependencies.

The Session Gate verifies the token once and stores the caller on
``request.state.identity``; handlers read it from here and never re-verify.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from uuid import UUID

from core.database import get_db
from core.exceptions import AuthenticationError, NotFoundError
from core.security import TokenService
from core.session_gate import RequestIdentity
from models import User


def get_token_service(request: Request) -> TokenService:
    """The TokenService built at startup."""
    return request.app.state.token_service


def get_request_identity(request: Request) -> RequestIdentity:
    """
    Identity attached by the Session Gate.

    Raises AuthenticationError if the request did not pass through the gate
    with a verified token (e.g. the route is not under /api).
    """
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise AuthenticationError("Authentication required", error_code="UNAUTHORIZED")
    return identity


def get_owner_id(identity: RequestIdentity = Depends(get_request_identity)) -> UUID:
    """Owner id of the caller, used to scope every repository query."""
    try:
        return UUID(identity.user_id)
    except ValueError:
        raise AuthenticationError("Invalid token payload", error_code="INVALID_TOKEN")


def get_current_user(
    owner_id: UUID = Depends(get_owner_id),
    db: Session = Depends(get_db),
) -> User:
    """Load the caller's account."""
    user = db.get(User, owner_id)
    if user is None:
        raise NotFoundError("User not found", error_code="USER_NOT_FOUND")
    return user
