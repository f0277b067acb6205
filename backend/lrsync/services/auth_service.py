# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Password hashing and login

Passwords are hashed with bcrypt (cost factor 12) and must be at least 8
characters with upper case, lower case, a digit and a special character.
Session tokens are handled in session_service.
"""

from __future__ import annotations

import re

import bcrypt

from ..extensions import db
from ..models import UserProfile
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""


class AccountInactiveError(Exception):
    """Credentials were right but the profile is inactive or suspended."""


def validate_password_strength(password: str) -> None:
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then bcrypt-hash with cost factor 12."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def authenticate(email: str, password: str) -> UserProfile | None:
    """
    Check credentials and stamp last_login_at.

    Returns None for unknown emails, profile-only accounts and wrong
    passwords. Raises AccountInactiveError when the password matches but the
    account is inactive or suspended.
    """
    email = (email or "").strip().lower()
    profile = db.session.query(UserProfile).filter(UserProfile.email == email).first()
    if not profile or not verify_password(password or "", profile.password_hash):
        return None

    if not profile.is_active:
        raise AccountInactiveError(f"Account is {profile.status}")

    profile.last_login_at = utcnow()
    db.session.commit()
    return profile
