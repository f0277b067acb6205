# Overview: Service-layer operations for sales records; encapsulates business logic and database work.

"""
Sales records

create_sale runs in this order, so a bad form never leaves anything behind:
validate fields -> check attachment types -> upload attachments in
parallel -> resolve the taxpayer (type "sales") -> insert the sale. The
taxpayer row and the sale share one commit.

Sales with sale_type "invoice" need cheque, voucher and invoice
attachments before the form may be submitted; callers opt into that gate
with require_attachments=True.
"""

from __future__ import annotations

from ..extensions import db
from ..models import CommissionReport, SalesRecord, SALE_TYPES, SALES_ATTACHMENT_FIELDS
from ..validation import ValidationError, optional_text, require_choice
from .activity_service import log_activity
from .attachment_service import IncomingFile, check_files, record_uploads
from .record_service import (
    append_remark,
    get_record,
    list_records,
    parse_record_fields,
    record_totals,
    soft_delete,
)
from .storage import delete_object, get_object_store, get_record_uploader, upload_files
from .taxpayer_service import get_or_create_taxpayer
from .visibility import RequestContext, VisibleRecords

REQUIRED_INVOICE_ATTACHMENTS = ("cheque", "voucher", "invoice")


def _parse_sale_fields(payload: dict, partial: bool) -> dict:
    fields = parse_record_fields(payload, partial=partial)
    if "sale_type" in payload:
        sale_type = optional_text(payload.get("sale_type"))
        fields["sale_type"] = require_choice(sale_type, SALE_TYPES, "sale_type") if sale_type else None
    return fields


def _check_categories(files: dict[str, list[IncomingFile]] | None) -> dict[str, list[IncomingFile]]:
    files = {k: v for k, v in (files or {}).items() if v}
    for category, items in files.items():
        if category not in SALES_ATTACHMENT_FIELDS:
            raise ValidationError(f"Unknown attachment category: {category}")
        check_files(items)
    return files


def missing_required_attachments(sale_type: str | None, attachments: dict[str, list]) -> list[str]:
    """Required categories that are still empty (only invoice sales have any)."""
    if sale_type != "invoice":
        return []
    return [c for c in REQUIRED_INVOICE_ATTACHMENTS if not attachments.get(c)]


def _upload_categories(record_fields: dict, files: dict[str, list[IncomingFile]],
                       existing: dict[str, list]) -> tuple[dict[str, list[str]], list[dict]]:
    """Upload every category at once; returns new URLs per category and per-file errors."""
    pending = []
    owners = []
    for category, items in files.items():
        uploads = record_uploads(
            "sales", record_fields["tax_month"], record_fields["tin"], category,
            items, existing_count=len(existing.get(category) or []),
        )
        pending.extend(uploads)
        owners.extend([category] * len(uploads))

    batch = upload_files(get_record_uploader(), pending)
    category_of = {u.key: c for u, c in zip(pending, owners)}

    added: dict[str, list[str]] = {}
    for upload, url in batch.succeeded:
        added.setdefault(category_of[upload.key], []).append(url)
    return added, batch.errors()


def create_sale(
    ctx: RequestContext,
    payload: dict,
    files: dict[str, list[IncomingFile]] | None = None,
    require_attachments: bool = False,
) -> tuple[SalesRecord, list[dict]]:
    """Returns the new sale and any per-file upload errors."""
    fields = _parse_sale_fields(payload, partial=False)
    files = _check_categories(files)

    if require_attachments:
        missing = missing_required_attachments(fields.get("sale_type"), files)
        if missing:
            raise ValidationError(f"Missing required attachments: {', '.join(missing)}")

    added, upload_errors = _upload_categories(fields, files, existing={})

    tin_id = get_or_create_taxpayer(
        ctx, fields["tin"], fields["name"],
        fields.get("substreet_street_brgy"), fields.get("district_city_zip"), "sales",
    )

    sale = SalesRecord(
        tin_id=tin_id,
        user_uuid=ctx.owner_id,
        user_full_name=ctx.full_name,
        remarks=[],
        **fields,
    )
    for category in SALES_ATTACHMENT_FIELDS:
        setattr(sale, category, added.get(category, []))

    if optional_text(payload.get("remark")):
        append_remark(ctx, sale, payload.get("remark"))

    db.session.add(sale)
    db.session.flush()
    log_activity(ctx, "sale_created", f"Created sale for {sale.name}",
                 {"sale_id": sale.id, "tin": sale.tin, "upload_errors": len(upload_errors)})
    db.session.commit()
    return sale, upload_errors


def get_sale(ctx: RequestContext, sale_id: str) -> SalesRecord:
    return get_record(ctx, SalesRecord, sale_id, "Sale")


def update_sale(
    ctx: RequestContext,
    sale_id: str,
    payload: dict,
    files: dict[str, list[IncomingFile]] | None = None,
) -> tuple[SalesRecord, list[dict]]:
    sale = get_sale(ctx, sale_id)
    fields = _parse_sale_fields(payload, partial=True)
    files = _check_categories(files)

    merged = {"tax_month": fields.get("tax_month", sale.tax_month), "tin": fields.get("tin", sale.tin)}
    added, upload_errors = _upload_categories(merged, files, existing=sale.attachments())

    if "tin" in fields and fields["tin"] != sale.tin:
        sale.tin_id = get_or_create_taxpayer(
            ctx, fields["tin"], fields.get("name", sale.name),
            fields.get("substreet_street_brgy", sale.substreet_street_brgy),
            fields.get("district_city_zip", sale.district_city_zip), "sales",
        )

    for key, value in fields.items():
        setattr(sale, key, value)
    for category, urls in added.items():
        setattr(sale, category, list(getattr(sale, category) or []) + urls)

    log_activity(ctx, "sale_updated", f"Updated sale for {sale.name}",
                 {"sale_id": sale.id, "fields": sorted(fields.keys())})
    db.session.commit()
    return sale, upload_errors


def remove_attachment(ctx: RequestContext, sale_id: str, category: str, url: str) -> SalesRecord:
    """Drop one URL from a category and delete the stored object (best effort)."""
    sale = get_sale(ctx, sale_id)
    if category not in SALES_ATTACHMENT_FIELDS:
        raise ValidationError(f"Unknown attachment category: {category}")
    current = list(getattr(sale, category) or [])
    if url not in current:
        raise ValidationError("Attachment not found on this sale")

    delete_object(get_object_store(), url)
    setattr(sale, category, [u for u in current if u != url])
    log_activity(ctx, "sale_attachment_removed", f"Removed {category} attachment from sale {sale.name}",
                 {"sale_id": sale.id, "category": category})
    db.session.commit()
    return sale


def soft_delete_sale(ctx: RequestContext, sale_id: str) -> None:
    sale = get_sale(ctx, sale_id)
    soft_delete(sale)
    log_activity(ctx, "sale_deleted", f"Deleted sale for {sale.name}", {"sale_id": sale.id})
    db.session.commit()


def add_remark(ctx: RequestContext, sale_id: str, text: str) -> dict:
    sale = get_sale(ctx, sale_id)
    entry = append_remark(ctx, sale, text)
    log_activity(ctx, "sale_remark_added", f"Added remark to sale {sale.name}", {"sale_id": sale.id})
    db.session.commit()
    return entry


def latest_remark(ctx: RequestContext, sale_id: str) -> dict | None:
    return get_sale(ctx, sale_id).latest_remark()


def list_sales(
    ctx: RequestContext,
    search: str | None = None,
    tax_type: str | None = None,
    month: str | None = None,
    area: str | None = None,
    sale_type: str | None = None,
) -> VisibleRecords:
    extra = [SalesRecord.sale_type == sale_type] if sale_type else None
    return list_records(ctx, SalesRecord, search, tax_type, month, area, extra_filters=extra)


def sales_stats(records) -> dict:
    stats = record_totals(records)
    stats["invoice_records"] = sum(1 for r in records if r.sale_type == "invoice")
    return stats


def commission_links(sale_ids) -> dict[str, dict]:
    """sale id -> the (non-deleted) commission report that contains it."""
    wanted = set(sale_ids)
    if not wanted:
        return {}
    links: dict[str, dict] = {}
    reports = (
        db.session.query(CommissionReport)
        .filter(CommissionReport.deleted_at.is_(None))
        .order_by(CommissionReport.report_number.asc())
        .all()
    )
    for report in reports:
        for sale_id in report.sales_uuids or []:
            if sale_id in wanted and sale_id not in links:
                links[sale_id] = {
                    "report_uuid": report.uuid,
                    "report_number": report.report_number,
                    "status": report.status,
                }
    return links
