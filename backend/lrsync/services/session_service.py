# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session tokens

- 32 random bytes, hex encoded, returned to the client once
- stored as a SHA-256 hash
- 24-hour absolute timeout, 2-hour idle timeout
- revoked on logout, password change, or when the profile is no longer active
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, UserProfile
from ..time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    profile: UserProfile
    session: SessionToken


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(
    profile_id: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for an active profile.

    Returns (session_record, plaintext_token); only the hash is stored.
    """
    profile = db.session.get(UserProfile, profile_id)
    if not profile:
        raise ValueError("User not found")
    if not profile.is_active:
        raise ValueError("Account is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        profile_id=profile_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its profile.

    Returns None for unknown, expired, idle or revoked tokens and for
    profiles that are inactive or suspended. Touches last_used_at.
    """
    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        db.session.commit()
        return None

    profile = session.profile
    if not profile or not profile.is_active:
        _revoke(session, "Account not active")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(profile=profile, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False
    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_all_sessions(profile_id: str, reason: str = "Revoke all sessions") -> int:
    sessions = db.session.query(SessionToken).filter_by(
        profile_id=profile_id,
        is_revoked=False,
    ).all()
    for session in sessions:
        _revoke(session, reason)
    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions(older_than_days: int = 30) -> int:
    """Delete sessions that are expired or revoked and older than the cutoff."""
    cutoff = utcnow() - timedelta(days=older_than_days)
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff,
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
