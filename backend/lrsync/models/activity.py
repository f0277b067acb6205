from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class ActivityLog(db.Model):
    """
    Append-only audit trail of user actions (login, create, update, delete,
    uploads, exports). Rows are never updated.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_action_time", "action", "occurred_at"),
        db.Index("ix_notifications_user_time", "user_uuid", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(64), nullable=False)
    description = db.Column(db.Text, nullable=True)
    meta = db.Column(db.JSON, nullable=True)

    user_uuid = db.Column(db.String(36), nullable=True)
    user_name = db.Column(db.String(260), nullable=True)
    user_email = db.Column(db.String(254), nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "description": self.description,
            "meta": self.meta,
            "user_uuid": self.user_uuid,
            "user_name": self.user_name,
            "user_email": self.user_email,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "occurred_at": to_utc_z(self.occurred_at),
        }
