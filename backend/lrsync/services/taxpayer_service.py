# Overview: Service-layer operations for the taxpayer registry (TIN library); encapsulates business logic and database work.

"""
Taxpayer registry

Every sales or purchase form resolves its counterparty through
get_or_create_taxpayer: the TIN is normalized to digits, looked up
together with the record type, and inserted only when absent. An existing
row is returned as-is; a later submission with a different name or
address does not overwrite it.

The registry row is flushed, not committed, so the caller's record insert
lands in the same transaction. A unique constraint on (tin, type) turns a
concurrent duplicate insert into a ConflictError.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import TaxpayerListing, SalesRecord, PurchaseRecord, TAXPAYER_TYPES
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    require_choice,
)
from ..time_utils import utcnow
from .activity_service import log_activity
from .tin import normalize_tin
from .visibility import (
    RequestContext,
    VisibleRecords,
    apply_area_scope,
    ensure_visible,
    resolve_area_scope,
)


SUGGESTION_MIN_CHARS = 3
SUGGESTION_LIMIT = 5


def _duplicate_message(tin: str, taxpayer_type: str) -> str:
    return f'A {taxpayer_type} taxpayer with TIN "{tin}" already exists'


def find_taxpayer(tin: str, taxpayer_type: str) -> TaxpayerListing | None:
    return (
        db.session.query(TaxpayerListing)
        .filter(
            TaxpayerListing.tin == normalize_tin(tin),
            TaxpayerListing.type == taxpayer_type,
        )
        .first()
    )


def get_or_create_taxpayer(
    ctx: RequestContext,
    tin: str,
    registered_name: str,
    substreet_street_brgy: str | None,
    district_city_zip: str | None,
    taxpayer_type: str,
) -> int:
    """Resolve (tin, type) to a registry id, inserting on first use."""
    digits = normalize_tin(tin)
    if not digits:
        raise ValidationError("TIN is required")
    taxpayer_type = require_choice(taxpayer_type, TAXPAYER_TYPES, "type")

    existing = find_taxpayer(digits, taxpayer_type)
    if existing:
        return existing.id

    listing = TaxpayerListing(
        tin=digits,
        registered_name=(registered_name or "").strip(),
        substreet_street_brgy=optional_text(substreet_street_brgy),
        district_city_zip=optional_text(district_city_zip),
        type=taxpayer_type,
        date_added=utcnow().date(),
        user_uuid=ctx.owner_id,
        user_full_name=ctx.full_name,
    )
    db.session.add(listing)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(_duplicate_message(digits, taxpayer_type))
    return listing.id


def suggest_by_tin(prefix: str, taxpayer_type: str) -> list[dict]:
    """Up to five registry rows whose TIN starts with the typed digits."""
    digits = normalize_tin(prefix)
    if len(digits) < SUGGESTION_MIN_CHARS:
        return []
    rows = (
        db.session.query(TaxpayerListing)
        .filter(
            TaxpayerListing.type == taxpayer_type,
            TaxpayerListing.tin.like(f"{digits}%"),
        )
        .order_by(TaxpayerListing.tin.asc())
        .limit(SUGGESTION_LIMIT)
        .all()
    )
    return [r.to_suggestion() for r in rows]


def suggest_by_name(fragment: str, taxpayer_type: str) -> list[dict]:
    """Up to five registry rows whose name contains the fragment."""
    text = (fragment or "").strip()
    if len(text) < SUGGESTION_MIN_CHARS:
        return []
    rows = (
        db.session.query(TaxpayerListing)
        .filter(
            TaxpayerListing.type == taxpayer_type,
            TaxpayerListing.registered_name.ilike(f"%{text}%"),
        )
        .order_by(TaxpayerListing.registered_name.asc())
        .limit(SUGGESTION_LIMIT)
        .all()
    )
    return [r.to_suggestion() for r in rows]


def list_taxpayers(
    ctx: RequestContext,
    search: str | None = None,
    taxpayer_type: str | None = None,
    area: str | None = None,
) -> VisibleRecords:
    query = db.session.query(TaxpayerListing)
    if taxpayer_type:
        query = query.filter(TaxpayerListing.type == taxpayer_type)
    if search:
        text = search.strip()
        clauses = [TaxpayerListing.registered_name.ilike(f"%{text}%")]
        digits = normalize_tin(text)
        if digits:
            clauses.append(TaxpayerListing.tin.like(f"%{digits}%"))
        query = query.filter(db.or_(*clauses))
    rows = query.order_by(TaxpayerListing.created_at.desc(), TaxpayerListing.id.desc()).all()
    return apply_area_scope(rows, resolve_area_scope(ctx, area))


def get_taxpayer(ctx: RequestContext, taxpayer_id: int) -> TaxpayerListing:
    listing = db.session.get(TaxpayerListing, taxpayer_id)
    if not listing:
        raise NotFoundError("Taxpayer not found")
    ensure_visible(ctx, listing)
    return listing


def create_taxpayer(ctx: RequestContext, payload: dict) -> TaxpayerListing:
    """TIN library create; rejects a duplicate (tin, type) before inserting."""
    tin = normalize_tin(payload.get("tin"))
    if not tin:
        raise ValidationError("TIN is required")
    if not str(payload.get("type") or "").strip():
        raise ValidationError("Type is required")
    taxpayer_type = require_choice(payload.get("type"), TAXPAYER_TYPES, "type")
    registered_name = optional_text(payload.get("registered_name"))
    if not registered_name:
        raise ValidationError("Registered name is required")

    if find_taxpayer(tin, taxpayer_type):
        raise ConflictError(_duplicate_message(tin, taxpayer_type))

    listing = TaxpayerListing(
        tin=tin,
        registered_name=registered_name,
        substreet_street_brgy=optional_text(payload.get("substreet_street_brgy")),
        district_city_zip=optional_text(payload.get("district_city_zip")),
        type=taxpayer_type,
        date_added=utcnow().date(),
        user_uuid=ctx.owner_id,
        user_full_name=ctx.full_name,
    )
    db.session.add(listing)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(_duplicate_message(tin, taxpayer_type))

    log_activity(ctx, "taxpayer_created", f"Added {taxpayer_type} taxpayer {registered_name}",
                 {"taxpayer_id": listing.id, "tin": tin})
    db.session.commit()
    return listing


def update_taxpayer(ctx: RequestContext, taxpayer_id: int, payload: dict) -> TaxpayerListing:
    listing = get_taxpayer(ctx, taxpayer_id)

    tin = listing.tin
    taxpayer_type = listing.type
    if "tin" in payload:
        tin = normalize_tin(payload.get("tin"))
        if not tin:
            raise ValidationError("TIN is required")
    if "type" in payload:
        taxpayer_type = require_choice(payload.get("type"), TAXPAYER_TYPES, "type")
    if "registered_name" in payload:
        name = optional_text(payload.get("registered_name"))
        if not name:
            raise ValidationError("Registered name is required")
        listing.registered_name = name

    if (tin, taxpayer_type) != (listing.tin, listing.type):
        clash = find_taxpayer(tin, taxpayer_type)
        if clash and clash.id != listing.id:
            raise ConflictError(_duplicate_message(tin, taxpayer_type))
        listing.tin = tin
        listing.type = taxpayer_type

    for field in ("substreet_street_brgy", "district_city_zip"):
        if field in payload:
            setattr(listing, field, optional_text(payload.get(field)))

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(_duplicate_message(tin, taxpayer_type))

    log_activity(ctx, "taxpayer_updated", f"Updated taxpayer {listing.registered_name}",
                 {"taxpayer_id": listing.id})
    db.session.commit()
    return listing


def delete_taxpayer(ctx: RequestContext, taxpayer_id: int) -> None:
    """Hard delete. Records that referenced it keep their own tin/name copy."""
    listing = get_taxpayer(ctx, taxpayer_id)
    for model in (SalesRecord, PurchaseRecord):
        db.session.query(model).filter(model.tin_id == listing.id).update(
            {model.tin_id: None}, synchronize_session=False
        )
    log_activity(ctx, "taxpayer_deleted", f"Deleted taxpayer {listing.registered_name}",
                 {"taxpayer_id": listing.id, "tin": listing.tin, "type": listing.type})
    db.session.delete(listing)
    db.session.commit()
