# Overview: Service-layer operations for commission reports; encapsulates business logic and database work.

"""
Commission reports

Status changes are an append-and-overwrite, not a state machine: any
status may follow any other. Each change appends
    {action: "status_update", remarks, user_id, user_name, timestamp, status}
to a copy of the history list and writes status, remarks and history in
one commit, so the newest history entry always matches the status column.

UI tokens map to stored values through STATUS_TOKENS only. The mapping is
an explicit table; underscores are not blindly replaced.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db
from ..models import CommissionAgentBreakdown, CommissionReport, SalesRecord
from ..time_utils import to_utc_z, utcnow
from ..validation import NotFoundError, ValidationError, optional_text, parse_amount
from .activity_service import log_activity
from .attachment_service import IncomingFile, commission_uploads
from .storage import delete_object, get_object_store, upload_files
from .visibility import (
    RequestContext,
    ScopedRecord,
    VisibilityError,
    VisibleRecords,
    apply_area_scope,
    ensure_visible,
    resolve_area_scope,
)

STATUS_TOKENS = {
    "new": "new",
    "ongoing_verification": "ongoing verification",
    "for_approval": "for approval",
    "approved": "approved",
    "cancelled": "cancelled",
    "for_testing": "for testing",
}
STORED_STATUSES = tuple(STATUS_TOKENS.values())

# Share of a sale's total actual amount credited as commission
COMMISSION_RATE = Decimal("0.05")

VAT_RATE = Decimal("0.12")
INVOICE_DIVISOR = Decimal("1.02")
VAT_DIVISOR = Decimal("1.12")
DEFAULT_DEVELOPERS_RATE = Decimal("5")
DEFAULT_EWT_RATE = Decimal("5")

CALCULATION_TYPES = (
    "vat deduction",
    "nonvat with invoice",
    "nonvat without invoice",
    "vat with invoice",
)

REPORT_OWNER = {"owner_attr": "created_by", "profile_key": "id"}


def storage_status(token: str) -> str:
    """"ongoing_verification" -> "ongoing verification"; unknown tokens are rejected."""
    key = (token or "").strip()
    if key not in STATUS_TOKENS:
        raise ValidationError(f"Unknown status: {token}")
    return STATUS_TOKENS[key]


def _status_filter_value(value: str) -> str:
    value = value.strip()
    if value in STATUS_TOKENS:
        return STATUS_TOKENS[value]
    if value in STORED_STATUSES:
        return value
    raise ValidationError(f"Unknown status: {value}")


def _history_entry(ctx: RequestContext, action: str, status: str, remarks: str | None) -> dict:
    return {
        "action": action,
        "remarks": remarks,
        "user_id": ctx.profile_id,
        "user_name": ctx.full_name,
        "timestamp": to_utc_z(utcnow()),
        "status": status,
    }


def _load_report(report_uuid: str) -> CommissionReport:
    report = db.session.get(CommissionReport, report_uuid)
    if not report or report.deleted_at is not None:
        raise NotFoundError("Commission report not found")
    return report


def get_visible_report(ctx: RequestContext, report_uuid: str) -> ScopedRecord:
    return ensure_visible(ctx, _load_report(report_uuid), **REPORT_OWNER)


def next_report_number() -> int:
    current = db.session.query(db.func.max(CommissionReport.report_number)).scalar()
    return (current or 0) + 1


def create_report(ctx: RequestContext, sales_uuids: list[str], remarks: str | None = None) -> CommissionReport:
    """
    Group existing sales into a new report (status "new").

    Every sale must exist, be live and be visible to the caller.
    """
    ids = [str(s) for s in (sales_uuids or []) if str(s).strip()]
    ids = list(dict.fromkeys(ids))
    if not ids:
        raise ValidationError("Select at least one sale")

    sales = db.session.query(SalesRecord).filter(SalesRecord.id.in_(ids)).all()
    found = {s.id: s for s in sales if not s.is_deleted}
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError(f"Sales not found: {', '.join(missing)}")

    visible = apply_area_scope(list(found.values()), resolve_area_scope(ctx))
    if len(visible.items) != len(found):
        raise VisibilityError("Some selected sales are outside your area")

    remarks = optional_text(remarks)
    report = CommissionReport(
        report_number=next_report_number(),
        sales_uuids=ids,
        created_by=ctx.profile_id,
        status="new",
        remarks=remarks,
        accounting_pot=[],
        history=[_history_entry(ctx, "created", "new", remarks)],
    )
    db.session.add(report)
    db.session.flush()
    log_activity(ctx, "commission_report_created", f"Created commission report #{report.report_number}",
                 {"report_uuid": report.uuid, "sales": len(ids)})
    db.session.commit()
    return report


def update_status(ctx: RequestContext, report_uuid: str, status_token: str, remarks: str | None) -> CommissionReport:
    status = storage_status(status_token)
    report = get_visible_report(ctx, report_uuid).record
    remarks = optional_text(remarks)

    history = list(report.history or [])
    history.append(_history_entry(ctx, "status_update", status, remarks))

    report.status = status
    report.remarks = remarks
    report.history = history

    log_activity(ctx, "commission_status_updated",
                 f"Set commission report #{report.report_number} to {status}",
                 {"report_uuid": report.uuid, "status": status})
    db.session.commit()
    return report


def list_reports(
    ctx: RequestContext,
    search: str | None = None,
    status: str | None = None,
    area: str | None = None,
) -> VisibleRecords:
    query = db.session.query(CommissionReport).filter(CommissionReport.deleted_at.is_(None))
    if status:
        query = query.filter(CommissionReport.status == _status_filter_value(status))
    if search:
        text = search.strip().lstrip("#")
        clauses = [CommissionReport.remarks.ilike(f"%{text}%")]
        if text.isdigit():
            clauses.append(CommissionReport.report_number == int(text))
        query = query.filter(db.or_(*clauses))
    rows = query.order_by(CommissionReport.report_number.desc()).all()
    return apply_area_scope(rows, resolve_area_scope(ctx, area), **REPORT_OWNER)


def _money(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def report_summary(sales: list[SalesRecord]) -> dict:
    """Totals and the per-owner 5% commission breakdown."""
    by_owner: dict[str, dict] = {}
    total_actual = Decimal("0")
    total_gross = Decimal("0")
    for sale in sales:
        actual = Decimal(sale.total_actual_amount or 0)
        total_actual += actual
        total_gross += Decimal(sale.gross_taxable or 0)
        owner = by_owner.setdefault(sale.user_uuid or "", {
            "user_uuid": sale.user_uuid,
            "user_full_name": sale.user_full_name,
            "sales_count": 0,
            "total_actual_amount": Decimal("0"),
        })
        owner["sales_count"] += 1
        owner["total_actual_amount"] += actual

    owners = []
    for owner in by_owner.values():
        owners.append({
            **owner,
            "total_actual_amount": _money(owner["total_actual_amount"]),
            "commission": _money(owner["total_actual_amount"] * COMMISSION_RATE),
        })

    return {
        "sales_count": len(sales),
        "total_gross_taxable": _money(total_gross),
        "total_actual_amount": _money(total_actual),
        "total_commission": _money(total_actual * COMMISSION_RATE),
        "by_owner": owners,
    }


def get_report(ctx: RequestContext, report_uuid: str) -> dict:
    scoped = get_visible_report(ctx, report_uuid)
    report = scoped.record
    ids = list(report.sales_uuids or [])
    sales = []
    if ids:
        rows = (
            db.session.query(SalesRecord)
            .filter(SalesRecord.id.in_(ids), SalesRecord.is_deleted.is_(False))
            .all()
        )
        order = {sale_id: i for i, sale_id in enumerate(ids)}
        sales = sorted(rows, key=lambda s: order[s.id])

    data = scoped.to_dict()
    data["sales"] = [s.to_dict() for s in sales]
    data["summary"] = report_summary(sales)
    return data


def soft_delete_report(ctx: RequestContext, report_uuid: str) -> None:
    report = get_visible_report(ctx, report_uuid).record
    report.deleted_at = utcnow()
    log_activity(ctx, "commission_report_deleted", f"Deleted commission report #{report.report_number}",
                 {"report_uuid": report.uuid})
    db.session.commit()


def store_commission_files(
    report_number,
    area: str | None,
    files: list[IncomingFile],
    existing_count: int = 0,
) -> tuple[list[dict], list[dict]]:
    """Upload report attachments; returns ([{name, url}], per-file errors)."""
    uploads = commission_uploads(report_number, area, files, existing_count=existing_count)
    batch = upload_files(get_object_store(), uploads)
    stored = [{"name": u.stored_name, "url": url} for u, url in batch.succeeded]
    return stored, batch.errors()


def add_attachments(ctx: RequestContext, report_uuid: str, files: list[IncomingFile]) -> tuple[CommissionReport, list[dict]]:
    scoped = get_visible_report(ctx, report_uuid)
    report = scoped.record
    if not files:
        raise ValidationError("No files provided")

    area = scoped.owner_area or ctx.assigned_area
    current = list(report.accounting_pot or [])
    stored, errors = store_commission_files(report.report_number, area, files, existing_count=len(current))

    uploaded_at = to_utc_z(utcnow())
    report.accounting_pot = current + [dict(item, uploadedAt=uploaded_at) for item in stored]

    log_activity(ctx, "commission_attachment_added",
                 f"Uploaded {len(stored)} attachment(s) to commission report #{report.report_number}",
                 {"report_uuid": report.uuid, "failed": len(errors)})
    db.session.commit()
    return report, errors


def delete_attachment(ctx: RequestContext, report_uuid: str, index: int) -> CommissionReport:
    report = get_visible_report(ctx, report_uuid).record
    current = list(report.accounting_pot or [])
    if index < 0 or index >= len(current):
        raise ValidationError("Attachment not found on this report")

    removed = current.pop(index)
    if isinstance(removed, dict) and removed.get("url"):
        delete_object(get_object_store(), removed["url"])
    report.accounting_pot = current

    log_activity(ctx, "commission_attachment_deleted",
                 f"Deleted attachment from commission report #{report.report_number}",
                 {"report_uuid": report.uuid, "name": removed.get("name") if isinstance(removed, dict) else None})
    db.session.commit()
    return report


def _dec(value, default: Decimal | None = None) -> Decimal | None:
    if value is None or value == "":
        return default
    return Decimal(str(value))


EMPTY_FIGURES = {"net_of_vat": None, "amount": None, "vat": None, "ewt": None, "net_commission": None}

# Agent calculation types whose managers are paid on the gross comm
GROSS_BASE_TYPES = ("nonvat without invoice", "vat deduction")
INVOICE_TYPES = ("nonvat with invoice", "vat with invoice")


def _kind(calculation_type: str | None) -> str:
    return (calculation_type or "").strip().lower()


def compute_commission(
    comm,
    rate,
    calculation_type: str | None,
    developers_rate=None,
    ewt_rate=None,
) -> dict:
    """
    Derive the agent's commission figures.

    rate, developers_rate and ewt_rate are percentages. The agent's share
    of comm is rate / developers_rate. A zero or missing rate yields empty
    values.

    - vat deduction: amount = comm * share; net = amount / 1.12.
    - nonvat with invoice: amount = (comm / 1.02) * share, less EWT.
    - nonvat without invoice: only the net commission (comm * share) is
      filled; there is no separate amount.
    - vat with invoice: amount = (comm / 1.02) * share, plus 12% VAT, less EWT.
    """
    comm = _dec(comm)
    rate = _dec(rate)
    if comm is None or not rate:
        return dict(EMPTY_FIGURES)

    dev_rate = _dec(developers_rate, DEFAULT_DEVELOPERS_RATE) or DEFAULT_DEVELOPERS_RATE
    ewt_pct = _dec(ewt_rate, DEFAULT_EWT_RATE) / Decimal("100")
    share = rate / dev_rate
    kind = _kind(calculation_type)

    if kind == "vat deduction":
        amount = comm * share
        net = amount / VAT_DIVISOR
        return {"net_of_vat": None, "amount": _money(amount), "vat": _money(net * VAT_RATE),
                "ewt": None, "net_commission": _money(net)}

    if kind == "nonvat with invoice":
        net_of_vat = comm / INVOICE_DIVISOR
        amount = net_of_vat * share
        ewt = amount * ewt_pct
        return {"net_of_vat": _money(net_of_vat), "amount": _money(amount), "vat": None,
                "ewt": _money(ewt), "net_commission": _money(amount - ewt)}

    if kind == "nonvat without invoice":
        return {"net_of_vat": None, "amount": None, "vat": None,
                "ewt": None, "net_commission": _money(comm * share)}

    if kind == "vat with invoice":
        net_of_vat = comm / INVOICE_DIVISOR
        amount = net_of_vat * share
        vat = amount * VAT_RATE
        ewt = amount * ewt_pct
        return {"net_of_vat": _money(net_of_vat), "amount": _money(amount), "vat": _money(vat),
                "ewt": _money(ewt), "net_commission": _money(amount + vat - ewt)}

    return dict(EMPTY_FIGURES)


def compute_manager_commission(
    comm,
    rate,
    calculation_type: str | None,
    agent_calculation_type: str | None,
    agents_rate=None,
    developers_rate=None,
    ewt_rate=None,
) -> dict:
    """
    Derive a unit manager's or team leader's figures on an agent's line.

    The base follows the agent's calculation type first: when the agent is
    on "nonvat without invoice" or "vat deduction" the manager is paid on
    the gross comm. Otherwise an invoice-type manager is paid on the
    agent's net of VAT (comm / 1.02), which only exists when the agent is
    itself on an invoice type with a non-zero rate. Taxes then follow the
    manager's own calculation type.
    """
    comm = _dec(comm)
    rate = _dec(rate)
    kind = _kind(calculation_type)
    if comm is None or not rate or not kind:
        return dict(EMPTY_FIGURES)

    dev_rate = _dec(developers_rate, DEFAULT_DEVELOPERS_RATE) or DEFAULT_DEVELOPERS_RATE
    ewt_pct = _dec(ewt_rate, DEFAULT_EWT_RATE) / Decimal("100")
    share = rate / dev_rate
    agent_kind = _kind(agent_calculation_type)

    net_of_vat = None
    if agent_kind in GROSS_BASE_TYPES:
        amount = comm * share
    elif kind in INVOICE_TYPES:
        if agent_kind not in INVOICE_TYPES or not _dec(agents_rate):
            return dict(EMPTY_FIGURES)
        net_of_vat = comm / INVOICE_DIVISOR
        amount = net_of_vat * share
    else:
        amount = comm * share

    figures = dict(EMPTY_FIGURES, amount=_money(amount))
    if net_of_vat is not None:
        figures["net_of_vat"] = _money(net_of_vat)

    if kind == "nonvat with invoice":
        ewt = amount * ewt_pct
        figures.update(ewt=_money(ewt), net_commission=_money(amount - ewt))
    elif kind == "vat with invoice":
        vat = amount * VAT_RATE
        ewt = amount * ewt_pct
        figures.update(vat=_money(vat), ewt=_money(ewt), net_commission=_money(amount + vat - ewt))
    elif kind == "vat deduction":
        net = amount / VAT_DIVISOR
        figures.update(vat=_money(net * VAT_RATE), net_commission=_money(net))
    else:
        figures["net_commission"] = _money(amount)
    return figures


def breakdown_to_dict(row: CommissionAgentBreakdown) -> dict:
    def num(value):
        return float(value) if value is not None else None

    data = {
        "id": row.id,
        "report_uuid": row.report_uuid,
        "agent_name": row.agent_name,
        "commission_type": row.commission_type,
        "calculation_type": row.calculation_type,
        "comm": num(row.comm),
        "agents_rate": num(row.agents_rate),
        "developers_rate": num(row.developers_rate),
        "agent_ewt_rate": num(row.agent_ewt_rate),
        "agent": compute_commission(row.comm, row.agents_rate, row.calculation_type,
                                    row.developers_rate, row.agent_ewt_rate),
    }
    for prefix in ("um", "tl"):
        data[f"{prefix}_name"] = getattr(row, f"{prefix}_name")
        data[f"{prefix}_rate"] = num(getattr(row, f"{prefix}_rate"))
        data[f"{prefix}_developers_rate"] = num(getattr(row, f"{prefix}_developers_rate"))
        data[f"{prefix}_calculation_type"] = getattr(row, f"{prefix}_calculation_type")
        data[f"{prefix}_ewt_rate"] = num(getattr(row, f"{prefix}_ewt_rate"))
        data[prefix] = compute_manager_commission(
            row.comm,
            getattr(row, f"{prefix}_rate"),
            getattr(row, f"{prefix}_calculation_type"),
            row.calculation_type,
            agents_rate=row.agents_rate,
            developers_rate=getattr(row, f"{prefix}_developers_rate"),
            ewt_rate=getattr(row, f"{prefix}_ewt_rate"),
        )
    return data


def list_agent_breakdown(ctx: RequestContext, report_uuid: str) -> list[dict]:
    report = get_visible_report(ctx, report_uuid).record
    rows = (
        db.session.query(CommissionAgentBreakdown)
        .filter(CommissionAgentBreakdown.report_uuid == report.uuid)
        .order_by(CommissionAgentBreakdown.id.asc())
        .all()
    )
    return [breakdown_to_dict(r) for r in rows]


BREAKDOWN_TEXT_FIELDS = ("agent_name", "commission_type", "um_name", "tl_name")
BREAKDOWN_NUMBER_FIELDS = (
    "comm", "agents_rate", "developers_rate", "agent_ewt_rate",
    "um_rate", "um_developers_rate", "um_ewt_rate",
    "tl_rate", "tl_developers_rate", "tl_ewt_rate",
)
BREAKDOWN_CALCULATION_FIELDS = ("calculation_type", "um_calculation_type", "tl_calculation_type")
MAX_RATE = Decimal("100")


def _parse_breakdown_fields(payload: dict) -> dict:
    """Only the keys present in the payload; blank clears a value."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    fields: dict = {}
    for key in BREAKDOWN_TEXT_FIELDS:
        if key in payload:
            fields[key] = optional_text(payload.get(key))
    for key in BREAKDOWN_NUMBER_FIELDS:
        if key in payload:
            value = parse_amount(payload.get(key), key)
            if value is not None and key != "comm" and value > MAX_RATE:
                raise ValidationError(f"{key} must be <= {MAX_RATE}")
            fields[key] = value
    for key in BREAKDOWN_CALCULATION_FIELDS:
        if key in payload:
            kind = _kind(optional_text(payload.get(key)))
            if kind and kind not in CALCULATION_TYPES:
                raise ValidationError(f"{key} must be one of: {', '.join(CALCULATION_TYPES)}")
            fields[key] = kind or None
    if "developers_rate" in fields and fields["developers_rate"] == 0:
        raise ValidationError("developers_rate must be greater than 0")
    for key in ("um_developers_rate", "tl_developers_rate"):
        if fields.get(key) == 0:
            raise ValidationError(f"{key} must be greater than 0")
    return fields


def update_agent_breakdown(ctx: RequestContext, report_uuid: str, row_id: int, payload: dict) -> dict:
    """Edit one breakdown line's inputs; derived figures are recomputed on read."""
    report = get_visible_report(ctx, report_uuid).record
    row = db.session.get(CommissionAgentBreakdown, row_id)
    if not row or row.report_uuid != report.uuid:
        raise NotFoundError("Breakdown row not found")

    fields = _parse_breakdown_fields(payload)
    for key, value in fields.items():
        setattr(row, key, value)

    log_activity(ctx, "commission_breakdown_updated",
                 f"Updated commission breakdown for {row.agent_name or 'agent'} "
                 f"on report #{report.report_number}",
                 {"report_uuid": report.uuid, "breakdown_id": row.id, "fields": sorted(fields.keys())})
    db.session.commit()
    return breakdown_to_dict(row)
