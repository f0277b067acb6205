# Overview: Spreadsheet exports for sales, purchases, commission reports and the TIN library.

"""
Spreadsheet exports (openpyxl)

Every workbook has the same layout on one sheet:

    title
    Generated on: <timestamp>
    Area: <area or "All Areas">
    Exported by: <name>
    (blank)
    SUMMARY STATISTICS
    <label>: <value>   one row per summary item
    (blank)
    DETAILED ... RECORDS
    <header row>
    <one row per record>

Amounts are written as numbers, TINs with dashes, tax months as "Mar 2024".
Column widths are fixed per export and filenames carry the export time.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from ..time_utils import format_day_label, format_month_label, utcnow
from .purchase_service import purchase_stats
from .sales_service import sales_stats
from .tin import format_tin


XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SALES_HEADERS = [
    "Tax Month", "TIN", "Name", "Address", "Tax Type", "Sale Type",
    "Gross Taxable", "Total Actual Amount", "Invoice #", "Pickup Date",
    "Recent Remark", "Files Count",
    "Cheque Files", "Voucher Files", "Invoice Files", "2307 Files", "Deposit Slip Files",
]
SALES_WIDTHS = [15, 15, 30, 25, 12, 12, 15, 15, 15, 15, 20, 12, 30, 30, 30, 30, 30]

PURCHASES_HEADERS = [
    "Tax Month", "TIN", "Name", "Address", "Tax Type", "Gross Taxable",
    "Total Actual Amount", "Invoice #", "Category", "Files Count", "Remark", "Date Created",
]
PURCHASES_WIDTHS = [15, 15, 30, 25, 12, 15, 18, 15, 18, 12, 30, 20]

REPORTS_HEADERS = [
    "Report #", "Status", "Created By", "Area", "Sales Count", "Remarks", "Attachments", "Created At",
]
REPORTS_WIDTHS = [12, 22, 25, 20, 12, 40, 12, 20]

TAXPAYERS_HEADERS = ["TIN", "Registered Name", "Address", "Type", "Date Added", "Added By"]
TAXPAYERS_WIDTHS = [18, 35, 45, 12, 15, 25]

AMOUNT_FORMAT = "#,##0.00"

_TITLE_FONT = Font(bold=True, size=14)
_SECTION_FONT = Font(bold=True, size=12)
_HEADER_FONT = Font(bold=True, color="FFFFFF")
_HEADER_FILL = PatternFill("solid", fgColor="001F3F")


@dataclass
class ExportFile:
    filename: str
    content: bytes
    row_count: int
    mimetype: str = XLSX_MIMETYPE


def _address(record) -> str:
    parts = [record.substreet_street_brgy, record.district_city_zip]
    return ", ".join(p for p in parts if p)


def _amount(value) -> float:
    return float(value) if value is not None else 0.0


def _filename(stem: str, area: str | None, now: datetime) -> str:
    area_part = re.sub(r"[^\w\-]+", "_", area.strip()) if area and area.strip() else "All_Areas"
    return f"{stem}_{area_part}_{now.strftime('%Y-%m-%d_%H%M%S')}.xlsx"


def _build(
    title: str,
    section_title: str,
    headers: list[str],
    widths: list[int],
    rows: list[list],
    summary: list[tuple[str, object]],
    area: str | None,
    exported_by: str | None,
    now: datetime,
    amount_columns: tuple[int, ...] = (),
) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    ws.append([title])
    ws.cell(row=ws.max_row, column=1).font = _TITLE_FONT
    ws.append(["Generated on:", now.strftime("%Y-%m-%d %H:%M:%S")])
    ws.append(["Area:", area or "All Areas"])
    ws.append(["Exported by:", exported_by or ""])
    ws.append([])

    ws.append(["SUMMARY STATISTICS"])
    ws.cell(row=ws.max_row, column=1).font = _SECTION_FONT
    for label, value in summary:
        ws.append([label, value])
        if isinstance(value, float):
            ws.cell(row=ws.max_row, column=2).number_format = AMOUNT_FORMAT
    ws.append([])

    ws.append([section_title])
    ws.cell(row=ws.max_row, column=1).font = _SECTION_FONT

    ws.append(headers)
    header_row = ws.max_row
    for col in range(1, len(headers) + 1):
        cell = ws.cell(row=header_row, column=col)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for row in rows:
        ws.append(row)
        for col in amount_columns:
            ws.cell(row=ws.max_row, column=col).number_format = AMOUNT_FORMAT

    for i, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width
    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _latest_remark_text(record) -> str:
    latest = record.latest_remark()
    return latest.get("remark", "") if latest else ""


def export_sales(
    records,
    area: str | None = None,
    exported_by: str | None = None,
    invoice_only: bool = False,
    now: datetime | None = None,
) -> ExportFile:
    now = now or utcnow()
    if invoice_only:
        records = [r for r in records if r.sale_type == "invoice"]

    stats = sales_stats(records)
    summary = [
        ("Total Records:", stats["total_records"]),
        ("VAT Records:", stats["vat_records"]),
        ("Non-VAT Records:", stats["non_vat_records"]),
        ("Total Gross Taxable:", stats["total_gross_taxable"]),
        ("Total Actual Amount:", stats["total_actual_amount"]),
    ]

    rows = []
    for r in records:
        files = r.attachments()
        rows.append([
            format_month_label(r.tax_month),
            format_tin(r.tin),
            r.name,
            _address(r),
            (r.tax_type or "").upper(),
            r.sale_type or "",
            _amount(r.gross_taxable),
            _amount(r.total_actual_amount),
            r.invoice_number or "",
            format_day_label(r.pickup_date),
            _latest_remark_text(r),
            r.files_count(),
            "\n".join(files["cheque"]),
            "\n".join(files["voucher"]),
            "\n".join(files["invoice"]),
            "\n".join(files["doc_2307"]),
            "\n".join(files["deposit_slip"]),
        ])

    title = "Invoice Sales Report" if invoice_only else "Sales Report"
    content = _build(
        title, "DETAILED SALES RECORDS", SALES_HEADERS, SALES_WIDTHS, rows, summary,
        area, exported_by, now, amount_columns=(7, 8),
    )
    stem = "Invoice_Sales_Report" if invoice_only else "Sales_Report"
    return ExportFile(_filename(stem, area, now), content, len(rows))


def export_purchases(
    records,
    area: str | None = None,
    exported_by: str | None = None,
    now: datetime | None = None,
) -> ExportFile:
    now = now or utcnow()
    stats = purchase_stats(records)
    summary = [
        ("Total Records:", stats["total_records"]),
        ("VAT Records:", stats["vat_records"]),
        ("Non-VAT Records:", stats["non_vat_records"]),
        ("Total Gross Taxable:", stats["total_gross_taxable"]),
        ("Total Actual Amount:", stats["total_actual_amount"]),
    ]

    rows = []
    for r in records:
        rows.append([
            format_month_label(r.tax_month),
            format_tin(r.tin),
            r.name,
            _address(r),
            (r.tax_type or "").upper(),
            _amount(r.gross_taxable),
            _amount(r.total_actual_amount),
            r.invoice_number or "",
            r.category.category if r.category else "",
            r.files_count(),
            _latest_remark_text(r),
            r.created_at.strftime("%Y-%m-%d %H:%M") if r.created_at else "",
        ])

    content = _build(
        "PURCHASES MANAGEMENT REPORT", "DETAILED PURCHASE RECORDS", PURCHASES_HEADERS,
        PURCHASES_WIDTHS, rows, summary, area, exported_by, now, amount_columns=(6, 7),
    )
    return ExportFile(_filename("Purchases_Report", area, now), content, len(rows))


def export_commission_reports(
    scoped_reports,
    area: str | None = None,
    exported_by: str | None = None,
    now: datetime | None = None,
) -> ExportFile:
    """scoped_reports: ScopedRecord items (report + owner area/name)."""
    now = now or utcnow()
    rows = []
    status_counts: dict[str, int] = {}
    for item in scoped_reports:
        report = item.record
        status_counts[report.status] = status_counts.get(report.status, 0) + 1
        rows.append([
            report.report_number,
            report.status,
            item.owner_name or "",
            item.owner_area or "",
            len(report.sales_uuids or []),
            report.remarks or "",
            len(report.accounting_pot or []),
            report.created_at.strftime("%Y-%m-%d %H:%M") if report.created_at else "",
        ])

    summary = [("Total Reports:", len(rows))]
    summary += [(f"{status.title()}:", count) for status, count in sorted(status_counts.items())]

    content = _build(
        "COMMISSION REPORTS", "DETAILED COMMISSION REPORTS", REPORTS_HEADERS, REPORTS_WIDTHS,
        rows, summary, area, exported_by, now,
    )
    return ExportFile(_filename("Commission_Reports", area, now), content, len(rows))


def export_taxpayers(
    listings,
    area: str | None = None,
    exported_by: str | None = None,
    now: datetime | None = None,
) -> ExportFile:
    now = now or utcnow()
    rows = [
        [
            format_tin(t.tin),
            t.registered_name,
            _address(t),
            t.type,
            t.date_added.isoformat() if t.date_added else "",
            t.user_full_name or "",
        ]
        for t in listings
    ]
    summary = [
        ("Total Taxpayers:", len(rows)),
        ("Sales:", sum(1 for t in listings if t.type == "sales")),
        ("Purchases:", sum(1 for t in listings if t.type == "purchases")),
    ]
    content = _build(
        "TIN LIBRARY", "DETAILED TAXPAYER RECORDS", TAXPAYERS_HEADERS, TAXPAYERS_WIDTHS,
        rows, summary, area, exported_by, now,
    )
    return ExportFile(_filename("TIN_Library", area, now), content, len(rows))
