"""
Authentication API endpoints.

Provides:
- User registration
- Login (JWT issued in the body and as the auth-token cookie)
- Logout (cookie cleared)
- Current user profile

These routes sit under /api/auth, which the Session Gate never blocks;
/me therefore verifies the token itself.
"""
from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from core.auth import get_token_service
from core.database import get_db
from core.exceptions import AuthenticationError, NotFoundError, ValidationError
from core.security import TokenService
from models import User
from schemas import AuthResponse, LoginRequest, RegisterRequest, UserResponse, envelope
from services import user_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _issue_session(user: User, response: Response, token_service: TokenService) -> AuthResponse:
    token = token_service.issue({"userId": str(user.id), "email": user.email})
    token_service.build_session_cookie(token).apply(response)
    return AuthResponse(user=UserResponse.from_user(user), token=token)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
):
    """
    Register a new user account.

    Returns the profile plus a session token and sets the session cookie.
    """
    user = user_store.create_user(
        db,
        name=body.name or "",
        email=body.email or "",
        password=body.password or "",
    )
    return envelope("Registration successful", _issue_session(user, response, token_service))


@router.post("/login")
def login(
    body: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
):
    """
    Authenticate with email and password.

    Unknown email and wrong password are reported with different error codes.
    """
    if not body.email or not body.password:
        raise ValidationError("Email and password are required", error_code="MISSING_CREDENTIALS")

    user = user_store.find_by_email(db, body.email)
    if user is None:
        logger.info("Login failed: unknown email")
        raise AuthenticationError("User does not exist", error_code="USER_NOT_FOUND")

    if not user_store.check_password(user, body.password):
        logger.info(f"Login failed: wrong password for user {user.id}")
        raise AuthenticationError("Incorrect password", error_code="INVALID_PASSWORD")

    logger.info(f"User logged in: {user.id}")
    return envelope("Login successful", _issue_session(user, response, token_service))


@router.post("/logout")
def logout(response: Response, token_service: TokenService = Depends(get_token_service)):
    """Clear the session cookie. The token itself stays valid until it expires."""
    token_service.build_logout_cookie().apply(response)
    return envelope("Logout successful")


@router.get("/me")
def me(
    request: Request,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
):
    """Profile of the caller identified by bearer header or session cookie."""
    token = token_service.extract_from_request(request)
    if not token:
        raise AuthenticationError("Authentication token not provided", error_code="NO_TOKEN")

    payload = token_service.verify(token)
    if payload is None:
        raise AuthenticationError("Invalid or expired authentication token", error_code="INVALID_TOKEN")

    try:
        user = user_store.find_by_id(db, UUID(payload.user_id))
    except ValueError:
        raise AuthenticationError("Invalid token payload", error_code="INVALID_TOKEN")
    if user is None:
        raise NotFoundError("User not found", error_code="USER_NOT_FOUND")

    return envelope("User profile loaded", {"user": UserResponse.from_user(user)})
