# Overview: Model package exports for the LR Sync back-office schema.

from .auth import UserProfile, SessionToken, ROLES, STATUSES
from .taxpayers import TaxpayerListing, TAXPAYER_TYPES
from .records import (
    SalesRecord,
    PurchaseRecord,
    PurchaseCategory,
    TAX_TYPES,
    SALE_TYPES,
    SALES_ATTACHMENT_FIELDS,
)
from .commissions import CommissionReport, CommissionAgentBreakdown
from .activity import ActivityLog
from .invoices import InvoiceRecord

__all__ = [
    "UserProfile",
    "SessionToken",
    "ROLES",
    "STATUSES",
    "TaxpayerListing",
    "TAXPAYER_TYPES",
    "SalesRecord",
    "PurchaseRecord",
    "PurchaseCategory",
    "TAX_TYPES",
    "SALE_TYPES",
    "SALES_ATTACHMENT_FIELDS",
    "CommissionReport",
    "CommissionAgentBreakdown",
    "ActivityLog",
    "InvoiceRecord",
]
