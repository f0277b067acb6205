# Overview: Service-layer operations for the activity tracker; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import ActivityLog
from .visibility import RequestContext, paginate


def log_activity(
    ctx: RequestContext | None,
    action: str,
    description: str | None = None,
    meta: dict | None = None,
    commit: bool = False,
) -> ActivityLog:
    """
    Append an audit row for a user action.

    The row joins the caller's transaction; pass commit=True when the
    action itself has nothing else to commit (login, export).
    """
    entry = ActivityLog(
        action=action,
        description=description,
        meta=meta,
        user_uuid=ctx.profile_id if ctx else None,
        user_name=ctx.full_name if ctx else None,
        user_email=ctx.email if ctx else None,
        ip_address=ctx.ip_address if ctx else None,
        user_agent=ctx.user_agent if ctx else None,
    )
    db.session.add(entry)
    if commit:
        db.session.commit()
    return entry


def list_activity(
    action: str | None = None,
    user: str | None = None,
    page: int | None = 1,
    per_page: int | None = None,
) -> dict:
    """Newest first; user matches name or email (case-insensitive substring)."""
    query = db.session.query(ActivityLog)
    if action:
        query = query.filter(ActivityLog.action == action)
    if user:
        pattern = f"%{user.strip()}%"
        query = query.filter(db.or_(
            ActivityLog.user_name.ilike(pattern),
            ActivityLog.user_email.ilike(pattern),
        ))
    rows = query.order_by(ActivityLog.occurred_at.desc(), ActivityLog.id.desc()).all()
    return paginate(rows, page, per_page, default_per_page=20)


def list_actions() -> list[str]:
    rows = db.session.query(ActivityLog.action).distinct().order_by(ActivityLog.action.asc()).all()
    return [r[0] for r in rows]
