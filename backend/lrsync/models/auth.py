from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


ROLES = ("secretary", "admin", "super_admin")
STATUSES = ("active", "inactive", "suspended")


def _new_uuid() -> str:
    return str(uuid.uuid4())


class UserProfile(db.Model):
    """
    Back-office account.

    auth_user_id is the identity that owns sales, purchases and taxpayer
    rows (their user_uuid column). Profile-only accounts have no
    auth_user_id and no password, so they cannot log in.

    assigned_area scopes what a secretary can see; it is free text and
    compared exactly.
    """
    __tablename__ = "user_profiles"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_user_profiles_email"),
        db.Index("ix_user_profiles_area", "assigned_area"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_uuid)
    auth_user_id = db.Column(db.String(36), nullable=True, unique=True, index=True)

    email = db.Column(db.String(254), nullable=False)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    full_name = db.Column(db.String(260), nullable=False)

    role = db.Column(db.String(32), nullable=False, default="secretary")
    status = db.Column(db.String(32), nullable=False, default="active")
    assigned_area = db.Column(db.String(128), nullable=True)

    # Bcrypt hashed password (null for profile-only accounts)
    password_hash = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "auth_user_id": self.auth_user_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "role": self.role,
            "status": self.status,
            "assigned_area": self.assigned_area,
            "has_credentials": self.password_hash is not None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer session token.

    Tokens are stored as SHA-256 hashes with a 24-hour absolute and a
    2-hour idle timeout. Revoked on logout, password change or when the
    profile stops being active.
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_profile_active", "profile_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    profile_id = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    profile = db.relationship("UserProfile", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "profile_id": self.profile_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
