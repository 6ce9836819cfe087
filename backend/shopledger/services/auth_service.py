# Overview: User accounts and password handling.

"""
Authentication Service

Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import USER_ROLES
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserValidationError(ValueError):
    pass


class UserConflictError(UserValidationError):
    pass


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    *,
    username: str,
    password: str,
    name: str,
    role: str = "staff",
    email: str | None = None,
    phone: str | None = None,
    rounds: int = 12,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises UserValidationError (bad/duplicate username, bad role) and
    PasswordValidationError.
    """
    username = (username or "").strip()
    name = (name or "").strip()
    if not username:
        raise UserValidationError("username is required")
    if not name:
        raise UserValidationError("name is required")
    if role not in USER_ROLES:
        raise UserValidationError(f"role must be one of {', '.join(USER_ROLES)}")

    if db.session.query(User.id).filter(User.username == username).first():
        raise UserConflictError("Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(password, rounds=rounds),
        name=name,
        role=role,
        email=email,
        phone=phone,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Returns the active user when the credentials match, None otherwise.
    Updates last_login_at on success.
    """
    user = (
        db.session.query(User)
        .filter(User.username == username, User.is_active.is_(True))
        .first()
    )
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id.asc()).all()
