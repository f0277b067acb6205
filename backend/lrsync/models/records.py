from __future__ import annotations

import uuid
from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date, utcnow
from ..services.tin import format_tin


TAX_TYPES = ("vat", "non-vat")
SALE_TYPES = ("invoice", "non-invoice")

# Attachment columns carried by sales records; each is a JSON list of URLs.
SALES_ATTACHMENT_FIELDS = ("cheque", "voucher", "invoice", "doc_2307", "deposit_slip")


def _new_uuid() -> str:
    return str(uuid.uuid4())


def _amount(value) -> float | None:
    if value is None:
        return None
    return float(Decimal(value))


class _RecordMixin:
    """Columns shared by sales and purchase records."""

    id = db.Column(db.String(36), primary_key=True, default=_new_uuid)
    tax_month = db.Column(db.Date, nullable=False, index=True)

    tin = db.Column(db.String(32), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    substreet_street_brgy = db.Column(db.String(255), nullable=True)
    district_city_zip = db.Column(db.String(255), nullable=True)

    tax_type = db.Column(db.String(16), nullable=False)
    gross_taxable = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_actual_amount = db.Column(db.Numeric(14, 2), nullable=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    pickup_date = db.Column(db.Date, nullable=True)

    # [{remark, name, uuid, date}, ...] oldest first
    remarks = db.Column(db.JSON, nullable=False, default=list)

    # Owner: auth user id of the profile that created the row
    user_uuid = db.Column(db.String(36), nullable=True, index=True)
    user_full_name = db.Column(db.String(260), nullable=True)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def latest_remark(self) -> dict | None:
        entries = [r for r in (self.remarks or []) if isinstance(r, dict)]
        if not entries:
            return None
        return max(entries, key=lambda r: r.get("date") or "")

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "tax_month": to_iso_date(self.tax_month),
            "tin_id": self.tin_id,
            "tin": self.tin,
            "tin_display": format_tin(self.tin),
            "name": self.name,
            "substreet_street_brgy": self.substreet_street_brgy,
            "district_city_zip": self.district_city_zip,
            "tax_type": self.tax_type,
            "gross_taxable": _amount(self.gross_taxable),
            "total_actual_amount": _amount(self.total_actual_amount),
            "invoice_number": self.invoice_number,
            "pickup_date": to_iso_date(self.pickup_date),
            "remarks": list(self.remarks or []),
            "latest_remark": self.latest_remark(),
            "user_uuid": self.user_uuid,
            "user_full_name": self.user_full_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SalesRecord(_RecordMixin, db.Model):
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_owner_month", "user_uuid", "tax_month"),
    )

    tin_id = db.Column(db.Integer, db.ForeignKey("taxpayer_listings.id"), nullable=True, index=True)
    sale_type = db.Column(db.String(16), nullable=True)

    cheque = db.Column(db.JSON, nullable=False, default=list)
    voucher = db.Column(db.JSON, nullable=False, default=list)
    invoice = db.Column(db.JSON, nullable=False, default=list)
    doc_2307 = db.Column(db.JSON, nullable=False, default=list)
    deposit_slip = db.Column(db.JSON, nullable=False, default=list)

    taxpayer = db.relationship("TaxpayerListing")

    def attachments(self) -> dict[str, list]:
        return {field: list(getattr(self, field) or []) for field in SALES_ATTACHMENT_FIELDS}

    def files_count(self) -> int:
        return sum(len(urls) for urls in self.attachments().values())

    def to_dict(self) -> dict:
        data = self._base_dict()
        data["sale_type"] = self.sale_type
        data.update(self.attachments())
        data["files_count"] = self.files_count()
        return data


class PurchaseCategory(db.Model):
    __tablename__ = "purchase_categories"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(128), nullable=False)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "is_deleted": self.is_deleted,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseRecord(_RecordMixin, db.Model):
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_owner_month", "user_uuid", "tax_month"),
    )

    tin_id = db.Column(db.Integer, db.ForeignKey("taxpayer_listings.id"), nullable=True, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("purchase_categories.id"), nullable=True, index=True)

    # [{name, url}, ...]
    official_receipt = db.Column(db.JSON, nullable=False, default=list)

    taxpayer = db.relationship("TaxpayerListing")
    category = db.relationship("PurchaseCategory")

    def files_count(self) -> int:
        return len(self.official_receipt or [])

    def to_dict(self) -> dict:
        data = self._base_dict()
        data["category_id"] = self.category_id
        data["category"] = self.category.category if self.category else None
        data["official_receipt"] = list(self.official_receipt or [])
        data["files_count"] = self.files_count()
        return data
