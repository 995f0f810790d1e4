"""
Password Policy Validation

Requirements:
- Minimum 6 characters
- Maximum 72 bytes (bcrypt limit)
"""
from typing import Tuple, List

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Validate password against the registration policy.

    Args:
        password: The password to validate

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = []

    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append(f"Password must not exceed {MAX_PASSWORD_BYTES} bytes (bcrypt limit)")

    is_valid = len(errors) == 0
    return is_valid, errors

