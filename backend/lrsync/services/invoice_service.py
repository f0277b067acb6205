# Overview: Commission invoice generator (totals, PDF rendering) and the saved invoice records.

from __future__ import annotations

import html
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..extensions import db
from ..models import InvoiceRecord
from ..validation import NotFoundError, ValidationError, parse_date_field
from ..time_utils import utcnow
from .activity_service import log_activity
from .visibility import RequestContext, paginate


DEFAULT_TAX_RATE = Decimal("5")
DEFAULT_CURRENCY = "AED"
CURRENCIES = ("AED", "USD", "EUR", "PHP")

_CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _number(value, field_name: str, default: Decimal | None = None) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValidationError(f"{field_name} is required")
        return default
    try:
        number = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number")
    if not number.is_finite() or number < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    return number


@dataclass
class InvoiceLine:
    description: str
    quantity: Decimal
    rate: Decimal

    @property
    def amount(self) -> Decimal:
        return _money(self.quantity * self.rate)

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "quantity": float(self.quantity),
            "rate": float(self.rate),
            "amount": float(self.amount),
        }


@dataclass
class Party:
    name: str = ""
    address: str = ""
    email: str = ""
    phone: str = ""


@dataclass
class InvoiceTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {"subtotal": float(self.subtotal), "tax": float(self.tax), "total": float(self.total)}


@dataclass
class Invoice:
    number: str
    invoice_date: date
    lines: list[InvoiceLine]
    company: Party = field(default_factory=Party)
    client: Party = field(default_factory=Party)
    due_date: date | None = None
    tax_rate: Decimal = DEFAULT_TAX_RATE
    amount_paid: Decimal = Decimal("0")
    currency: str = DEFAULT_CURRENCY
    trade_license: str = ""
    tax_registration: str = ""
    payment_details: dict = field(default_factory=dict)
    notes: str = ""
    terms: str = ""

    @property
    def totals(self) -> InvoiceTotals:
        return compute_totals(self.lines, self.tax_rate)

    @property
    def balance_due(self) -> Decimal:
        return _money(self.totals.total - self.amount_paid)

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "invoice_date": self.invoice_date.isoformat(),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "currency": self.currency,
            "tax_rate": float(self.tax_rate),
            "lines": [line.to_dict() for line in self.lines],
            "totals": self.totals.to_dict(),
            "amount_paid": float(self.amount_paid),
            "balance_due": float(self.balance_due),
        }


def compute_totals(lines: list[InvoiceLine], tax_rate=DEFAULT_TAX_RATE) -> InvoiceTotals:
    """subtotal = sum of line amounts; tax = subtotal * rate / 100; total = subtotal + tax."""
    subtotal = sum((line.amount for line in lines), Decimal("0"))
    tax = _money(subtotal * Decimal(str(tax_rate)) / Decimal("100"))
    return InvoiceTotals(subtotal=_money(subtotal), tax=tax, total=_money(subtotal + tax))


def _party(data) -> Party:
    data = data if isinstance(data, dict) else {}
    return Party(**{k: str(data.get(k) or "").strip() for k in ("name", "address", "email", "phone")})


def parse_invoice(payload: dict) -> Invoice:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    raw_lines = payload.get("items") or payload.get("lines") or []
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("At least one line item is required")

    lines = []
    for i, raw in enumerate(raw_lines, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Line {i} is invalid")
        description = str(raw.get("description") or "").strip()
        if not description:
            raise ValidationError(f"Line {i}: description is required")
        lines.append(InvoiceLine(
            description=description,
            quantity=_number(raw.get("quantity"), f"Line {i} quantity", Decimal("1")),
            rate=_number(raw.get("rate"), f"Line {i} rate"),
        ))

    currency = str(payload.get("currency") or DEFAULT_CURRENCY).strip().upper()
    if currency not in CURRENCIES:
        raise ValidationError(f"currency must be one of: {', '.join(CURRENCIES)}")

    invoice_date = parse_date_field(payload.get("invoice_date") or None, "invoice_date") or utcnow().date()
    due_date = parse_date_field(payload.get("due_date") or None, "due_date")

    invoice = Invoice(
        number=str(payload.get("invoice_number") or "1").strip(),
        invoice_date=invoice_date,
        due_date=due_date,
        lines=lines,
        company=_party(payload.get("company")),
        client=_party(payload.get("client")),
        tax_rate=_number(payload.get("tax_rate"), "tax_rate", DEFAULT_TAX_RATE),
        amount_paid=_number(payload.get("amount_paid"), "amount_paid", Decimal("0")),
        currency=currency,
        trade_license=str(payload.get("trade_license") or "").strip(),
        tax_registration=str(payload.get("tax_registration") or "").strip(),
        payment_details=payload.get("payment_details") if isinstance(payload.get("payment_details"), dict) else {},
        notes=str(payload.get("notes") or "").strip(),
        terms=str(payload.get("terms") or "").strip(),
    )
    if invoice.amount_paid > invoice.totals.total:
        raise ValidationError("amount_paid cannot exceed the invoice total")
    return invoice


def _text(value: str) -> str:
    return html.escape(value or "").replace("\n", "<br/>")


def render_invoice_pdf(invoice: Invoice) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=f"Invoice {invoice.number}",
    )
    styles = getSampleStyleSheet()
    body = styles["BodyText"]
    story = []

    company = invoice.company
    story.append(Paragraph(f"<b>{_text(company.name) or 'Invoice'}</b>", styles["Title"]))
    details = [company.address, company.email, company.phone]
    if invoice.trade_license:
        details.append(f"Trade License: {invoice.trade_license}")
    if invoice.tax_registration:
        details.append(f"TRN: {invoice.tax_registration}")
    story.append(Paragraph("<br/>".join(_text(d) for d in details if d), body))
    story.append(Spacer(1, 6 * mm))

    meta = [
        [Paragraph("<b>Invoice #</b>", body), Paragraph(_text(invoice.number), body)],
        [Paragraph("<b>Date</b>", body), Paragraph(invoice.invoice_date.strftime("%b %d, %Y"), body)],
    ]
    if invoice.due_date:
        meta.append([Paragraph("<b>Due</b>", body), Paragraph(invoice.due_date.strftime("%b %d, %Y"), body)])
    story.append(Table(meta, colWidths=[30 * mm, 60 * mm], hAlign="RIGHT"))
    story.append(Spacer(1, 4 * mm))

    client = invoice.client
    story.append(Paragraph("<b>Bill To</b>", body))
    story.append(Paragraph("<br/>".join(_text(d) for d in (client.name, client.address, client.email, client.phone) if d), body))
    story.append(Spacer(1, 6 * mm))

    cur = invoice.currency
    table_data = [["Description", "Qty", "Rate", "Amount"]]
    for line in invoice.lines:
        table_data.append([
            Paragraph(_text(line.description), body),
            f"{line.quantity:,.2f}".rstrip("0").rstrip("."),
            f"{cur} {line.rate:,.2f}",
            f"{cur} {line.amount:,.2f}",
        ])
    totals = invoice.totals
    table_data.append(["", "", "Subtotal", f"{cur} {totals.subtotal:,.2f}"])
    table_data.append(["", "", f"Tax ({invoice.tax_rate.normalize():f}%)", f"{cur} {totals.tax:,.2f}"])
    table_data.append(["", "", "Total", f"{cur} {totals.total:,.2f}"])
    total_row = len(table_data) - 1
    if invoice.amount_paid > 0:
        table_data.append(["", "", "Amount Paid", f"{cur} {_money(invoice.amount_paid):,.2f}"])
        table_data.append(["", "", "Balance Due", f"{cur} {invoice.balance_due:,.2f}"])

    items = Table(table_data, colWidths=[85 * mm, 20 * mm, 34 * mm, 34 * mm], repeatRows=1)
    line_count = len(invoice.lines)
    items.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#001f3f")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("GRID", (0, 0), (-1, line_count), 0.5, colors.grey),
        ("LINEABOVE", (2, line_count + 1), (-1, line_count + 1), 0.5, colors.grey),
        ("FONTNAME", (2, total_row), (-1, total_row), "Helvetica-Bold"),
        ("FONTNAME", (2, -1), (-1, -1), "Helvetica-Bold"),
    ]))
    story.append(items)
    story.append(Spacer(1, 8 * mm))

    if invoice.payment_details:
        story.append(Paragraph("<b>Payment Details</b>", body))
        rows = [f"{_text(str(k).replace('_', ' ').title())}: {_text(str(v))}"
                for k, v in invoice.payment_details.items() if v]
        story.append(Paragraph("<br/>".join(rows), body))
        story.append(Spacer(1, 4 * mm))
    if invoice.notes:
        story.append(Paragraph(_text(invoice.notes), body))
    if invoice.terms:
        story.append(Spacer(1, 4 * mm))
        story.append(Paragraph("<b>Terms &amp; Conditions</b>", body))
        story.append(Paragraph(_text(invoice.terms), body))

    doc.build(story)
    return buffer.getvalue()


def save_invoice(ctx: RequestContext, payload: dict) -> InvoiceRecord:
    """Validate the posted invoice and keep it in the records listing."""
    invoice = parse_invoice(payload)
    totals = invoice.totals
    record = InvoiceRecord(
        invoice_number=invoice.number,
        invoice_date=invoice.invoice_date,
        due_date=invoice.due_date,
        client_name=invoice.client.name or None,
        company_name=invoice.company.name or None,
        currency=invoice.currency,
        subtotal=totals.subtotal,
        tax=totals.tax,
        total=totals.total,
        amount_paid=_money(invoice.amount_paid),
        balance_due=invoice.balance_due,
        payload=payload,
        created_by=ctx.profile_id,
        created_by_name=ctx.full_name,
    )
    db.session.add(record)
    db.session.flush()

    log_activity(
        ctx,
        "invoice_saved",
        f"Saved invoice {record.invoice_number} for {record.client_name or 'unnamed client'}",
        {"invoice_id": record.id, "invoice_number": record.invoice_number, "total": float(record.total)},
    )
    db.session.commit()
    return record


def list_invoices(search: str | None = None, page: int | None = None, per_page: int | None = None,
                  **limits) -> dict:
    query = db.session.query(InvoiceRecord)
    if search and search.strip():
        text = search.strip()
        query = query.filter(db.or_(
            InvoiceRecord.invoice_number.ilike(f"%{text}%"),
            InvoiceRecord.client_name.ilike(f"%{text}%"),
        ))
    rows = query.order_by(InvoiceRecord.created_at.desc(), InvoiceRecord.id.desc()).all()
    return paginate(rows, page, per_page, **limits)


def get_invoice(invoice_id: str) -> InvoiceRecord:
    record = db.session.get(InvoiceRecord, invoice_id)
    if not record:
        raise NotFoundError("Invoice not found")
    return record


def render_saved_invoice(invoice_id: str) -> tuple[InvoiceRecord, bytes]:
    """PDF of a saved invoice, rebuilt from the stored request."""
    record = get_invoice(invoice_id)
    return record, render_invoice_pdf(parse_invoice(record.payload))
