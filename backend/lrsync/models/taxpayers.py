from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date, utcnow
from ..services.tin import format_tin


TAXPAYER_TYPES = ("sales", "purchases")


class TaxpayerListing(db.Model):
    """
    TIN library entry.

    Keyed by (tin, type): the same TIN may exist once as a sales
    counterparty and once as a purchases supplier. tin holds digits only.
    """
    __tablename__ = "taxpayer_listings"
    __table_args__ = (
        db.UniqueConstraint("tin", "type", name="uq_taxpayer_listings_tin_type"),
        db.Index("ix_taxpayer_listings_type_name", "type", "registered_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tin = db.Column(db.String(32), nullable=False, index=True)
    registered_name = db.Column(db.String(255), nullable=False)
    substreet_street_brgy = db.Column(db.String(255), nullable=True)
    district_city_zip = db.Column(db.String(255), nullable=True)
    type = db.Column(db.String(16), nullable=False)

    date_added = db.Column(db.Date, nullable=True)
    user_uuid = db.Column(db.String(36), nullable=True, index=True)
    user_full_name = db.Column(db.String(260), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tin": self.tin,
            "tin_display": format_tin(self.tin),
            "registered_name": self.registered_name,
            "substreet_street_brgy": self.substreet_street_brgy,
            "district_city_zip": self.district_city_zip,
            "type": self.type,
            "date_added": to_iso_date(self.date_added),
            "user_uuid": self.user_uuid,
            "user_full_name": self.user_full_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_suggestion(self) -> dict:
        return {
            "id": self.id,
            "tin": self.tin,
            "registered_name": self.registered_name,
            "substreet_street_brgy": self.substreet_street_brgy,
            "district_city_zip": self.district_city_zip,
        }
