"""
Credential store.

User accounts: create, look up by email or id, check a password.
Emails are stored stripped and lowercased so lookups are case-insensitive.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, TypeAdapter, ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, ValidationError
from core.password_policy import validate_password
from core.security import get_password_hash, verify_password
from models import User

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def find_by_email(db: Session, email: str) -> Optional[User]:
    norm = normalize_email(email)
    if not norm:
        return None
    return db.query(User).filter(User.email == norm).first()


def find_by_id(db: Session, user_id: UUID) -> Optional[User]:
    return db.get(User, user_id)


def create_user(db: Session, *, name: str, email: str, password: str) -> User:
    """
    Register a new account.

    Raises:
        ValidationError: missing fields, malformed email or weak password
        ConflictError: the email is already registered
    """
    if not name or not name.strip() or not email or not password:
        raise ValidationError("Name, email and password are required", error_code="MISSING_FIELDS")

    norm = normalize_email(email)
    try:
        _email_adapter.validate_python(norm)
    except PydanticValidationError:
        raise ValidationError("Email address is not valid", error_code="INVALID_EMAIL")

    ok, errors = validate_password(password)
    if not ok:
        raise ValidationError(errors[0], error_code="INVALID_PASSWORD")

    if find_by_email(db, norm):
        raise ConflictError("Email already registered", error_code="EMAIL_EXISTS")

    user = User(
        email=norm,
        password_hash=get_password_hash(password),
        display_name=name.strip(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        db.rollback()
        raise ConflictError("Email already registered", error_code="EMAIL_EXISTS")
    db.refresh(user)

    logger.info(f"User registered: {user.id}")
    return user


def check_password(user: User, password: str) -> bool:
    return verify_password(password, user.password_hash)
