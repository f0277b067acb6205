# Overview: Service-layer operations for purchase records and categories; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import PurchaseCategory, PurchaseRecord
from ..validation import NotFoundError, ValidationError, optional_text
from .activity_service import log_activity
from .attachment_service import IncomingFile, check_files, official_receipt_uploads
from .record_service import (
    append_remark,
    get_record,
    list_records,
    parse_record_fields,
    record_totals,
    soft_delete,
)
from .storage import delete_object, get_object_store, upload_files
from .taxpayer_service import get_or_create_taxpayer
from .visibility import RequestContext, VisibleRecords


DEFAULT_CATEGORIES = (
    "Goods",
    "Services",
    "Capital Goods",
    "Importation",
)


def _parse_category(payload: dict) -> int | None:
    raw = payload.get("category_id")
    if raw is None or str(raw).strip() == "":
        return None
    try:
        category_id = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("category_id must be an integer")
    category = db.session.get(PurchaseCategory, category_id)
    if not category or category.is_deleted:
        raise ValidationError("Category not found")
    return category_id


def _parse_purchase_fields(payload: dict, partial: bool) -> dict:
    fields = parse_record_fields(payload, partial=partial)
    if "category_id" in payload:
        fields["category_id"] = _parse_category(payload)
    return fields


def _upload_receipts(ctx: RequestContext, name: str, tin: str,
                     files: list[IncomingFile]) -> tuple[list[dict], list[dict]]:
    uploads = official_receipt_uploads(name, tin, ctx.assigned_area, ctx.full_name, files)
    batch = upload_files(get_object_store(), uploads)
    receipts = [{"name": u.stored_name, "url": url} for u, url in batch.succeeded]
    return receipts, batch.errors()


def create_purchase(
    ctx: RequestContext,
    payload: dict,
    receipts: list[IncomingFile] | None = None,
) -> tuple[PurchaseRecord, list[dict]]:
    fields = _parse_purchase_fields(payload, partial=False)
    receipts = [f for f in (receipts or []) if f]
    check_files(receipts)

    uploaded, upload_errors = _upload_receipts(ctx, fields["name"], fields["tin"], receipts)

    tin_id = get_or_create_taxpayer(
        ctx, fields["tin"], fields["name"],
        fields.get("substreet_street_brgy"), fields.get("district_city_zip"), "purchases",
    )

    purchase = PurchaseRecord(
        tin_id=tin_id,
        user_uuid=ctx.owner_id,
        user_full_name=ctx.full_name,
        official_receipt=uploaded,
        remarks=[],
        **fields,
    )
    if optional_text(payload.get("remark")):
        append_remark(ctx, purchase, payload.get("remark"))

    db.session.add(purchase)
    db.session.flush()
    log_activity(ctx, "purchase_created", f"Created purchase for {purchase.name}",
                 {"purchase_id": purchase.id, "tin": purchase.tin, "upload_errors": len(upload_errors)})
    db.session.commit()
    return purchase, upload_errors


def get_purchase(ctx: RequestContext, purchase_id: str) -> PurchaseRecord:
    return get_record(ctx, PurchaseRecord, purchase_id, "Purchase")


def update_purchase(
    ctx: RequestContext,
    purchase_id: str,
    payload: dict,
    receipts: list[IncomingFile] | None = None,
) -> tuple[PurchaseRecord, list[dict]]:
    purchase = get_purchase(ctx, purchase_id)
    fields = _parse_purchase_fields(payload, partial=True)
    receipts = [f for f in (receipts or []) if f]
    check_files(receipts)

    uploaded, upload_errors = _upload_receipts(
        ctx, fields.get("name", purchase.name), fields.get("tin", purchase.tin), receipts,
    )

    if "tin" in fields and fields["tin"] != purchase.tin:
        purchase.tin_id = get_or_create_taxpayer(
            ctx, fields["tin"], fields.get("name", purchase.name),
            fields.get("substreet_street_brgy", purchase.substreet_street_brgy),
            fields.get("district_city_zip", purchase.district_city_zip), "purchases",
        )

    for key, value in fields.items():
        setattr(purchase, key, value)
    if uploaded:
        purchase.official_receipt = list(purchase.official_receipt or []) + uploaded

    log_activity(ctx, "purchase_updated", f"Updated purchase for {purchase.name}",
                 {"purchase_id": purchase.id, "fields": sorted(fields.keys())})
    db.session.commit()
    return purchase, upload_errors


def remove_receipt(ctx: RequestContext, purchase_id: str, index: int) -> PurchaseRecord:
    purchase = get_purchase(ctx, purchase_id)
    current = list(purchase.official_receipt or [])
    if index < 0 or index >= len(current):
        raise ValidationError("Receipt not found on this purchase")
    removed = current.pop(index)
    if isinstance(removed, dict) and removed.get("url"):
        delete_object(get_object_store(), removed["url"])
    purchase.official_receipt = current
    log_activity(ctx, "purchase_receipt_removed", f"Removed official receipt from purchase {purchase.name}",
                 {"purchase_id": purchase.id})
    db.session.commit()
    return purchase


def soft_delete_purchase(ctx: RequestContext, purchase_id: str) -> None:
    purchase = get_purchase(ctx, purchase_id)
    soft_delete(purchase)
    log_activity(ctx, "purchase_deleted", f"Deleted purchase for {purchase.name}",
                 {"purchase_id": purchase.id})
    db.session.commit()


def add_remark(ctx: RequestContext, purchase_id: str, text: str) -> dict:
    purchase = get_purchase(ctx, purchase_id)
    entry = append_remark(ctx, purchase, text)
    log_activity(ctx, "purchase_remark_added", f"Added remark to purchase {purchase.name}",
                 {"purchase_id": purchase.id})
    db.session.commit()
    return entry


def list_purchases(
    ctx: RequestContext,
    search: str | None = None,
    tax_type: str | None = None,
    month: str | None = None,
    area: str | None = None,
    category_id: int | None = None,
) -> VisibleRecords:
    extra = [PurchaseRecord.category_id == category_id] if category_id else None
    return list_records(ctx, PurchaseRecord, search, tax_type, month, area, extra_filters=extra)


def purchase_stats(records) -> dict:
    return record_totals(records)


def list_categories(include_deleted: bool = False) -> list[PurchaseCategory]:
    query = db.session.query(PurchaseCategory)
    if not include_deleted:
        query = query.filter(PurchaseCategory.is_deleted.is_(False))
    return query.order_by(PurchaseCategory.category.asc()).all()


def create_category(ctx: RequestContext | None, label: str) -> PurchaseCategory:
    label = optional_text(label)
    if not label:
        raise ValidationError("Category is required")
    clash = (
        db.session.query(PurchaseCategory)
        .filter(db.func.lower(PurchaseCategory.category) == label.lower(),
                PurchaseCategory.is_deleted.is_(False))
        .first()
    )
    if clash:
        return clash
    category = PurchaseCategory(category=label)
    db.session.add(category)
    db.session.flush()
    log_activity(ctx, "category_created", f"Added purchase category {label}", {"category_id": category.id})
    db.session.commit()
    return category


def soft_delete_category(ctx: RequestContext, category_id: int) -> None:
    category = db.session.get(PurchaseCategory, category_id)
    if not category or category.is_deleted:
        raise NotFoundError("Category not found")
    category.is_deleted = True
    log_activity(ctx, "category_deleted", f"Deleted purchase category {category.category}",
                 {"category_id": category.id})
    db.session.commit()


def ensure_default_categories() -> int:
    """Seed the default categories when none exist; returns how many were added."""
    if db.session.query(PurchaseCategory).count():
        return 0
    for label in DEFAULT_CATEGORIES:
        db.session.add(PurchaseCategory(category=label))
    db.session.commit()
    return len(DEFAULT_CATEGORIES)
