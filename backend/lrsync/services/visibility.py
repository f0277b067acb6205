# Overview: Area-scoped record visibility shared by every listing and record guard.

"""
Area-scoped visibility

Who sees what:
- super_admin: every non-deleted record; an explicit area filter narrows it.
- admin: every non-deleted record; area filters are ignored.
- secretary: only records whose owner's profile has the same assigned_area
  as the secretary. A secretary with no area sees nothing, and listings
  report no_assigned_area instead of failing.

Records do not carry an area themselves. The owner's area is found with a
two-pass join: collect the distinct owner ids of the fetched rows, load
those profiles once, build an id -> area map, attach it to each row and
drop rows whose area does not match. Sales, purchases and taxpayer
listings are owned by user_uuid (matched to UserProfile.auth_user_id);
commission reports by created_by (matched to UserProfile.id).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from ..extensions import db
from ..models import UserProfile


ADMIN_ROLES = ("admin", "super_admin")


class VisibilityError(Exception):
    """Raised when a record exists but lies outside the caller's area."""


@dataclass(frozen=True)
class RequestContext:
    """The authenticated caller, passed explicitly into every service."""
    profile_id: str
    auth_user_id: str | None
    role: str
    assigned_area: str | None
    full_name: str
    email: str
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_profile(cls, profile: UserProfile, ip_address: str | None = None,
                     user_agent: str | None = None) -> "RequestContext":
        return cls(
            profile_id=profile.id,
            auth_user_id=profile.auth_user_id,
            role=profile.role,
            assigned_area=profile.assigned_area,
            full_name=profile.full_name,
            email=profile.email,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    @property
    def owner_id(self) -> str:
        """Value written to user_uuid on rows this caller creates."""
        return self.auth_user_id or self.profile_id


@dataclass(frozen=True)
class AreaScope:
    required_area: str | None = None
    no_assigned_area: bool = False

    @property
    def restricted(self) -> bool:
        return self.no_assigned_area or self.required_area is not None


@dataclass
class ScopedRecord:
    record: Any
    owner_area: str | None = None
    owner_name: str | None = None

    def to_dict(self) -> dict:
        data = self.record.to_dict()
        data["owner_area"] = self.owner_area
        data["owner_name"] = self.owner_name
        return data


@dataclass
class VisibleRecords:
    items: list[ScopedRecord] = field(default_factory=list)
    no_assigned_area: bool = False

    @property
    def records(self) -> list:
        return [item.record for item in self.items]


def _clean_area(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_area_scope(ctx: RequestContext, area_filter: str | None = None) -> AreaScope:
    if ctx.role == "super_admin":
        return AreaScope(required_area=_clean_area(area_filter))
    if ctx.role == "admin":
        return AreaScope()
    if ctx.role == "secretary":
        area = _clean_area(ctx.assigned_area)
        if area is None:
            return AreaScope(no_assigned_area=True)
        return AreaScope(required_area=area)
    raise VisibilityError(f"Unknown role: {ctx.role}")


def owner_profiles(owner_ids: Iterable[str], profile_key: str = "auth_user_id") -> dict[str, UserProfile]:
    """Load the profiles for a set of owner ids in one query."""
    ids = {owner_id for owner_id in owner_ids if owner_id}
    if not ids:
        return {}
    column = getattr(UserProfile, profile_key)
    profiles = db.session.query(UserProfile).filter(column.in_(ids)).all()
    return {getattr(p, profile_key): p for p in profiles}


def apply_area_scope(
    records: Sequence[Any],
    scope: AreaScope,
    owner_attr: str = "user_uuid",
    profile_key: str = "auth_user_id",
) -> VisibleRecords:
    if scope.no_assigned_area:
        return VisibleRecords(items=[], no_assigned_area=True)

    profiles = owner_profiles((getattr(r, owner_attr) for r in records), profile_key)

    items: list[ScopedRecord] = []
    for record in records:
        owner = profiles.get(getattr(record, owner_attr))
        owner_area = owner.assigned_area if owner else None
        if scope.required_area is not None and _clean_area(owner_area) != scope.required_area:
            continue
        items.append(ScopedRecord(
            record=record,
            owner_area=owner_area,
            owner_name=owner.full_name if owner else None,
        ))
    return VisibleRecords(items=items)


def ensure_visible(
    ctx: RequestContext,
    record: Any,
    owner_attr: str = "user_uuid",
    profile_key: str = "auth_user_id",
) -> ScopedRecord:
    """Single-record guard used by view, edit and delete."""
    scope = resolve_area_scope(ctx)
    visible = apply_area_scope([record], scope, owner_attr, profile_key)
    if not visible.items:
        raise VisibilityError("You do not have access to this record")
    return visible.items[0]


def paginate(
    items: Sequence[Any],
    page: int | None,
    per_page: int | None,
    serialize: Callable[[Any], dict] | None = None,
    default_per_page: int = 10,
    max_per_page: int = 100,
) -> dict:
    """
    Slice an already-filtered list into the listing response shape.

    page=None returns every item without a pagination block.
    """
    serialize = serialize or (lambda item: item.to_dict())

    if page is None:
        return {
            "items": [serialize(i) for i in items],
            "count": len(items),
        }

    per_page = min(per_page or default_per_page, max_per_page)
    per_page = max(per_page, 1)
    page = max(page, 1)

    total = len(items)
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    window = items[(page - 1) * per_page: page * per_page]

    return {
        "items": [serialize(i) for i in window],
        "count": len(window),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def listing_payload(visible: VisibleRecords, page: int | None, per_page: int | None, **limits) -> dict:
    result = paginate(visible.items, page, per_page, **limits)
    result["no_assigned_area"] = visible.no_assigned_area
    return result
