# Overview: Service-layer operations for user management; encapsulates business logic and database work.

from __future__ import annotations

import uuid

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import UserProfile, ROLES, STATUSES
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    require_choice,
    require_text,
    validate_email,
)
from .activity_service import log_activity
from .auth_service import hash_password, verify_password, PasswordValidationError
from .session_service import revoke_all_sessions
from .visibility import RequestContext, paginate


class UserPermissionError(Exception):
    """Caller's role may not manage the target account."""


def _full_name(first_name: str, last_name: str) -> str:
    return f"{first_name} {last_name}".strip()


def _require_manager(ctx: RequestContext) -> None:
    if not ctx.is_admin:
        raise UserPermissionError("Only admins can manage users")


def _check_can_manage(ctx: RequestContext, target_role: str) -> None:
    """Admins manage secretaries and admins; super_admin accounts need a super_admin."""
    _require_manager(ctx)
    if target_role == "super_admin" and not ctx.is_super_admin:
        raise UserPermissionError("Only a super admin can manage super admin accounts")


def _ensure_email_free(email: str, exclude_id: str | None = None) -> None:
    query = db.session.query(UserProfile).filter(UserProfile.email == email)
    if exclude_id:
        query = query.filter(UserProfile.id != exclude_id)
    if query.first():
        raise ConflictError(f'A user with email "{email}" already exists')


def get_user(profile_id: str) -> UserProfile:
    profile = db.session.get(UserProfile, profile_id)
    if not profile:
        raise NotFoundError("User not found")
    return profile


def create_user(ctx: RequestContext | None, payload: dict) -> UserProfile:
    """
    Create a profile.

    With a password the profile also gets credentials (auth_user_id +
    bcrypt hash); without one it is a profile-only account that cannot log
    in. ctx=None is the CLI bootstrap path and skips role checks.
    """
    first_name = require_text(payload, "first_name", "First name is required")
    last_name = require_text(payload, "last_name", "Last name is required")
    email = validate_email(payload.get("email"))
    role = require_choice(payload.get("role") or "secretary", ROLES, "role")
    status = require_choice(payload.get("status") or "active", STATUSES, "status")
    assigned_area = optional_text(payload.get("assigned_area"))
    password = payload.get("password")

    if ctx is not None:
        _check_can_manage(ctx, role)

    _ensure_email_free(email)

    profile = UserProfile(
        email=email,
        first_name=first_name,
        last_name=last_name,
        full_name=_full_name(first_name, last_name),
        role=role,
        status=status,
        assigned_area=assigned_area,
    )
    if password:
        profile.password_hash = hash_password(password)
        profile.auth_user_id = str(uuid.uuid4())

    db.session.add(profile)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f'A user with email "{email}" already exists')

    log_activity(ctx, "user_created", f"Created user {profile.full_name}",
                 {"profile_id": profile.id, "role": role})
    db.session.commit()
    return profile


def update_user(ctx: RequestContext, profile_id: str, payload: dict) -> UserProfile:
    profile = get_user(profile_id)
    _check_can_manage(ctx, profile.role)

    if "first_name" in payload:
        profile.first_name = require_text(payload, "first_name", "First name is required")
    if "last_name" in payload:
        profile.last_name = require_text(payload, "last_name", "Last name is required")
    profile.full_name = _full_name(profile.first_name, profile.last_name)

    if "email" in payload:
        email = validate_email(payload.get("email"))
        _ensure_email_free(email, exclude_id=profile.id)
        profile.email = email
    if "assigned_area" in payload:
        profile.assigned_area = optional_text(payload.get("assigned_area"))
    if "role" in payload:
        role = require_choice(payload.get("role"), ROLES, "role")
        _check_can_manage(ctx, role)
        profile.role = role
    if "status" in payload:
        _apply_status(profile, require_choice(payload.get("status"), STATUSES, "status"))

    log_activity(ctx, "user_updated", f"Updated user {profile.full_name}",
                 {"profile_id": profile.id, "fields": sorted(payload.keys())})
    db.session.commit()
    return profile


def _apply_status(profile: UserProfile, status: str) -> None:
    profile.status = status
    if status != "active":
        revoke_all_sessions(profile.id, reason=f"Account {status}")


def set_status(ctx: RequestContext, profile_id: str, status: str) -> UserProfile:
    return update_user(ctx, profile_id, {"status": status})


def set_role(ctx: RequestContext, profile_id: str, role: str) -> UserProfile:
    return update_user(ctx, profile_id, {"role": role})


def set_password(ctx: RequestContext | None, profile_id: str, password: str) -> UserProfile:
    """Admin password reset; gives profile-only accounts credentials."""
    profile = get_user(profile_id)
    if ctx is not None:
        _check_can_manage(ctx, profile.role)
    profile.password_hash = hash_password(password)
    if not profile.auth_user_id:
        profile.auth_user_id = str(uuid.uuid4())
    revoke_all_sessions(profile.id, reason="Password reset")
    log_activity(ctx, "password_reset", f"Reset password for {profile.full_name}",
                 {"profile_id": profile.id})
    db.session.commit()
    return profile


def change_password(ctx: RequestContext, current_password: str, new_password: str) -> None:
    profile = get_user(ctx.profile_id)
    if not verify_password(current_password or "", profile.password_hash):
        raise ValidationError("Current password is incorrect")
    if current_password == new_password:
        raise PasswordValidationError("New password must be different from the current password")
    profile.password_hash = hash_password(new_password)
    log_activity(ctx, "password_changed", "Changed own password")
    db.session.commit()


def update_own_profile(ctx: RequestContext, payload: dict) -> UserProfile:
    """Self-service: names only. Role, area and status are admin-managed."""
    profile = get_user(ctx.profile_id)
    if "first_name" in payload:
        profile.first_name = require_text(payload, "first_name", "First name is required")
    if "last_name" in payload:
        profile.last_name = require_text(payload, "last_name", "Last name is required")
    profile.full_name = _full_name(profile.first_name, profile.last_name)
    log_activity(ctx, "profile_updated", "Updated own profile")
    db.session.commit()
    return profile


def list_users(
    search: str | None = None,
    role: str | None = None,
    status: str | None = None,
    area: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(UserProfile)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            UserProfile.full_name.ilike(pattern),
            UserProfile.email.ilike(pattern),
        ))
    if role:
        query = query.filter(UserProfile.role == role)
    if status:
        query = query.filter(UserProfile.status == status)
    if area:
        query = query.filter(UserProfile.assigned_area == area.strip())
    rows = query.order_by(UserProfile.created_at.desc()).all()
    return paginate(rows, page, per_page)


def list_areas() -> list[str]:
    """Distinct assigned areas, for area filter dropdowns."""
    rows = (
        db.session.query(UserProfile.assigned_area)
        .filter(UserProfile.assigned_area.isnot(None))
        .distinct()
        .order_by(UserProfile.assigned_area.asc())
        .all()
    )
    return [r[0] for r in rows if r[0]]
