# Overview: Shared operations for sales and purchase records; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import TAX_TYPES
from ..time_utils import month_bounds, to_utc_z, utcnow
from ..validation import (
    NotFoundError,
    ValidationError,
    optional_text,
    parse_amount,
    parse_date_field,
    require_choice,
)
from .tin import normalize_tin
from .visibility import (
    RequestContext,
    VisibleRecords,
    apply_area_scope,
    ensure_visible,
    resolve_area_scope,
)


ADDRESS_FIELDS = ("substreet_street_brgy", "district_city_zip")


def parse_record_fields(payload: dict, partial: bool = False) -> dict:
    """
    Validate the form fields shared by sales and purchases.

    Returns only the keys present in the payload when partial=True.
    Everything is checked before any upload or database write happens.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    fields: dict = {}

    def wanted(key: str) -> bool:
        return not partial or key in payload

    if wanted("tax_month"):
        tax_month = parse_date_field(payload.get("tax_month") or None, "tax_month")
        if tax_month is None:
            raise ValidationError("Tax month is required")
        fields["tax_month"] = tax_month

    if wanted("tin"):
        tin = normalize_tin(payload.get("tin"))
        if not tin:
            raise ValidationError("TIN is required")
        fields["tin"] = tin

    if wanted("name"):
        name = optional_text(payload.get("name"))
        if not name:
            raise ValidationError("Name is required")
        fields["name"] = name

    for key in ADDRESS_FIELDS:
        if key in payload:
            fields[key] = optional_text(payload.get(key))

    if wanted("tax_type"):
        if not optional_text(payload.get("tax_type")):
            raise ValidationError("Tax type is required")
        fields["tax_type"] = require_choice(payload.get("tax_type"), TAX_TYPES, "tax_type")

    if wanted("gross_taxable"):
        gross = parse_amount(payload.get("gross_taxable"), "gross_taxable")
        if gross is None:
            raise ValidationError("Gross taxable is required")
        fields["gross_taxable"] = gross

    if "total_actual_amount" in payload:
        fields["total_actual_amount"] = parse_amount(payload.get("total_actual_amount"), "total_actual_amount")

    if "invoice_number" in payload:
        fields["invoice_number"] = optional_text(payload.get("invoice_number"))

    if "pickup_date" in payload:
        fields["pickup_date"] = parse_date_field(payload.get("pickup_date") or None, "pickup_date")

    return fields


def new_remark(ctx: RequestContext, text: str) -> dict:
    return {
        "remark": text,
        "name": ctx.full_name,
        "uuid": ctx.owner_id,
        "date": to_utc_z(utcnow()),
    }


def append_remark(ctx: RequestContext, record, text) -> dict:
    """Append a remark; the JSON list is replaced so the change is persisted."""
    text = optional_text(text)
    if not text:
        raise ValidationError("Remark is required")
    entry = new_remark(ctx, text)
    record.remarks = list(record.remarks or []) + [entry]
    return entry


def get_record(ctx: RequestContext, model, record_id: str, label: str):
    record = db.session.get(model, record_id)
    if not record or record.is_deleted:
        raise NotFoundError(f"{label} not found")
    ensure_visible(ctx, record)
    return record


def soft_delete(record) -> None:
    record.is_deleted = True
    record.deleted_at = utcnow()


def list_records(
    ctx: RequestContext,
    model,
    search: str | None = None,
    tax_type: str | None = None,
    month: str | None = None,
    area: str | None = None,
    extra_filters: list | None = None,
) -> VisibleRecords:
    """
    Non-deleted records, newest first, narrowed by the query-level filters
    and then by the caller's area.
    """
    query = db.session.query(model).filter(model.is_deleted.is_(False))

    if search:
        text = search.strip()
        clauses = [
            model.name.ilike(f"%{text}%"),
            model.invoice_number.ilike(f"%{text}%"),
        ]
        digits = normalize_tin(text)
        if digits:
            clauses.append(model.tin.like(f"%{digits}%"))
        query = query.filter(db.or_(*clauses))

    if tax_type:
        query = query.filter(model.tax_type == tax_type.strip().lower())

    if month:
        try:
            start, end = month_bounds(month)
        except ValueError:
            raise ValidationError("month must be YYYY-MM")
        query = query.filter(model.tax_month >= start, model.tax_month < end)

    for clause in extra_filters or []:
        query = query.filter(clause)

    rows = query.order_by(model.created_at.desc(), model.id.desc()).all()
    return apply_area_scope(rows, resolve_area_scope(ctx, area))


def record_totals(records) -> dict:
    """Summary block used by listings and exports."""
    total_gross = sum(float(r.gross_taxable or 0) for r in records)
    total_actual = sum(float(r.total_actual_amount or 0) for r in records)
    return {
        "total_records": len(records),
        "vat_records": sum(1 for r in records if r.tax_type == "vat"),
        "non_vat_records": sum(1 for r in records if r.tax_type == "non-vat"),
        "total_gross_taxable": round(total_gross, 2),
        "total_actual_amount": round(total_actual, 2),
    }
