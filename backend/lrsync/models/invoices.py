from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date, utcnow


class InvoiceRecord(db.Model):
    """
    A generated commission invoice.

    The summary columns feed the records listing; payload keeps the full
    request so the PDF can be generated again.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_created", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_number = db.Column(db.String(64), nullable=False)
    invoice_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)
    client_name = db.Column(db.String(255), nullable=True)
    company_name = db.Column(db.String(255), nullable=True)
    currency = db.Column(db.String(8), nullable=False)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    tax = db.Column(db.Numeric(14, 2), nullable=False)
    total = db.Column(db.Numeric(14, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    balance_due = db.Column(db.Numeric(14, 2), nullable=False)

    payload = db.Column(db.JSON, nullable=False)

    created_by = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=True)
    created_by_name = db.Column(db.String(260), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "client_name": self.client_name,
            "company_name": self.company_name,
            "currency": self.currency,
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "total": float(self.total),
            "amount_paid": float(self.amount_paid or 0),
            "balance_due": float(self.balance_due),
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
        }
