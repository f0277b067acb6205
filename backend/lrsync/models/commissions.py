from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


def _new_uuid() -> str:
    return str(uuid.uuid4())


class CommissionReport(db.Model):
    """
    A batch of sales grouped for commission computation.

    status holds the storage token ("ongoing verification", not the
    snake_case form). history is append-only: every status change adds an
    entry and nothing is ever removed or rewritten.
    """
    __tablename__ = "commission_report"
    __table_args__ = (
        db.UniqueConstraint("report_number", name="uq_commission_report_number"),
        db.Index("ix_commission_report_status", "status"),
    )

    uuid = db.Column(db.String(36), primary_key=True, default=_new_uuid)
    report_number = db.Column(db.Integer, nullable=False)
    sales_uuids = db.Column(db.JSON, nullable=False, default=list)

    # Profile id of the creator; the area filter joins on it
    created_by = db.Column(db.String(36), db.ForeignKey("user_profiles.id"), nullable=True, index=True)

    status = db.Column(db.String(32), nullable=False, default="new")
    remarks = db.Column(db.Text, nullable=True)

    # [{name, url, uploadedAt}, ...]
    accounting_pot = db.Column(db.JSON, nullable=False, default=list)
    history = db.Column(db.JSON, nullable=False, default=list)

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    creator = db.relationship("UserProfile")

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "report_number": self.report_number,
            "sales_uuids": list(self.sales_uuids or []),
            "created_by": self.created_by,
            "created_by_name": self.creator.full_name if self.creator else None,
            "status": self.status,
            "remarks": self.remarks,
            "accounting_pot": list(self.accounting_pot or []),
            "history": list(self.history or []),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CommissionAgentBreakdown(db.Model):
    """
    Per-report commission line for an agent and optional unit manager /
    team leader. Only inputs are stored; amounts are derived on read by
    commission_service.compute_commission.
    """
    __tablename__ = "commission_agent_breakdown"
    __table_args__ = (
        db.Index("ix_commission_breakdown_report", "report_uuid"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    report_uuid = db.Column(db.String(36), db.ForeignKey("commission_report.uuid"), nullable=False)

    agent_name = db.Column(db.String(255), nullable=True)
    commission_type = db.Column(db.String(64), nullable=True)
    calculation_type = db.Column(db.String(64), nullable=True)
    comm = db.Column(db.Numeric(14, 2), nullable=True)
    agents_rate = db.Column(db.Numeric(6, 3), nullable=True)
    developers_rate = db.Column(db.Numeric(6, 3), nullable=True)
    agent_ewt_rate = db.Column(db.Numeric(6, 3), nullable=True)

    um_name = db.Column(db.String(255), nullable=True)
    um_rate = db.Column(db.Numeric(6, 3), nullable=True)
    um_developers_rate = db.Column(db.Numeric(6, 3), nullable=True)
    um_calculation_type = db.Column(db.String(64), nullable=True)
    um_ewt_rate = db.Column(db.Numeric(6, 3), nullable=True)

    tl_name = db.Column(db.String(255), nullable=True)
    tl_rate = db.Column(db.Numeric(6, 3), nullable=True)
    tl_developers_rate = db.Column(db.Numeric(6, 3), nullable=True)
    tl_calculation_type = db.Column(db.String(64), nullable=True)
    tl_ewt_rate = db.Column(db.Numeric(6, 3), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    report = db.relationship("CommissionReport", backref=db.backref("breakdown", lazy=True))
