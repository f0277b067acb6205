# Overview: Flask API routes for sales records; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..models import SALES_ATTACHMENT_FIELDS
from ..services import sales_service
from ..services.activity_service import log_activity
from ..services.export_service import export_sales
from ..services.visibility import listing_payload
from ..decorators import require_auth
from .common import (
    DOMAIN_ERRORS,
    error_response,
    export_area,
    flag,
    id_list,
    internal_error,
    page_args,
    page_limits,
    request_files,
    request_payload,
    send_export,
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _filters() -> dict:
    return {
        "search": request.args.get("search"),
        "tax_type": request.args.get("tax_type"),
        "month": request.args.get("month"),
        "area": request.args.get("area"),
        "sale_type": request.args.get("sale_type"),
    }


def _attachment_files() -> dict:
    return {category: request_files(category) for category in SALES_ATTACHMENT_FIELDS}


def _sale_payload(sale) -> dict:
    data = sale.to_dict()
    data["missing_attachments"] = sales_service.missing_required_attachments(sale.sale_type, sale.attachments())
    return data


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Area-scoped sales listing, newest first.

    Query params: search (name, TIN or invoice #), tax_type, month (YYYY-MM),
    sale_type, area (super_admin only), page, per_page.

    A secretary without an assigned area gets an empty list with
    no_assigned_area=true.
    """
    page, per_page = page_args()
    try:
        visible = sales_service.list_sales(g.ctx, **_filters())
        result = listing_payload(visible, page, per_page, **page_limits())
        links = sales_service.commission_links(item["id"] for item in result["items"])
        for item in result["items"]:
            item["commission_report"] = links.get(item["id"])
        result["stats"] = sales_service.sales_stats(visible.records)
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("list sales")


@sales_bp.get("/export")
@require_auth
def export_sales_route():
    """
    Spreadsheet of the filtered (or explicitly selected, ?ids=) sales.
    ?invoice_only=true keeps invoice sales only.
    """
    try:
        records = sales_service.list_sales(g.ctx, **_filters()).records
        selected = id_list()
        if selected:
            wanted = set(selected)
            records = [r for r in records if r.id in wanted]
        export = export_sales(
            records,
            area=export_area(g.ctx),
            exported_by=g.ctx.full_name,
            invoice_only=flag("invoice_only"),
        )
        log_activity(g.ctx, "export_sales", f"Exported {export.row_count} sales",
                     {"filename": export.filename}, commit=True)
        return send_export(export)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("export sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale from JSON or multipart form data.

    Multipart requests may carry files under cheque, voucher, invoice,
    doc_2307 and deposit_slip. Files that fail to upload are listed in
    upload_errors; the sale is still created with the others.
    """
    try:
        sale, upload_errors = sales_service.create_sale(
            g.ctx,
            request_payload(),
            files=_attachment_files(),
            require_attachments=flag("require_attachments"),
        )
        return jsonify({"sale": _sale_payload(sale), "upload_errors": upload_errors}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("create sale")


@sales_bp.get("/<sale_id>")
@require_auth
def get_sale_route(sale_id: str):
    try:
        sale = sales_service.get_sale(g.ctx, sale_id)
        data = _sale_payload(sale)
        data["commission_report"] = sales_service.commission_links([sale.id]).get(sale.id)
        return jsonify(data), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@sales_bp.patch("/<sale_id>")
@require_auth
def update_sale_route(sale_id: str):
    try:
        sale, upload_errors = sales_service.update_sale(
            g.ctx, sale_id, request_payload(), files=_attachment_files(),
        )
        return jsonify({"sale": _sale_payload(sale), "upload_errors": upload_errors}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("update sale")


@sales_bp.delete("/<sale_id>")
@require_auth
def delete_sale_route(sale_id: str):
    try:
        sales_service.soft_delete_sale(g.ctx, sale_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("delete sale")


@sales_bp.post("/<sale_id>/remarks")
@require_auth
def add_remark_route(sale_id: str):
    data = request.get_json(silent=True) or {}
    try:
        entry = sales_service.add_remark(g.ctx, sale_id, data.get("remark"))
        return jsonify(entry), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("add sale remark")


@sales_bp.get("/<sale_id>/remarks/latest")
@require_auth
def latest_remark_route(sale_id: str):
    try:
        return jsonify({"remark": sales_service.latest_remark(g.ctx, sale_id)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@sales_bp.post("/<sale_id>/attachments")
@require_auth
def add_attachments_route(sale_id: str):
    try:
        sale, upload_errors = sales_service.update_sale(g.ctx, sale_id, {}, files=_attachment_files())
        return jsonify({"sale": _sale_payload(sale), "upload_errors": upload_errors}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("add sale attachments")


@sales_bp.delete("/<sale_id>/attachments")
@require_auth
def remove_attachment_route(sale_id: str):
    """Body: {"category": "cheque", "url": "..."}"""
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.remove_attachment(g.ctx, sale_id, data.get("category"), data.get("url"))
        return jsonify({"sale": _sale_payload(sale)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("remove sale attachment")
