# Overview: Flask API routes for the commission invoice generator.

from io import BytesIO

from flask import Blueprint, g, request, jsonify, send_file

from ..services import invoice_service
from ..decorators import require_auth, require_role
from .common import DOMAIN_ERRORS, error_response, internal_error, page_args, page_limits


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.post("/preview")
@require_auth
@require_role("admin", "super_admin")
def preview_route():
    """Line amounts and totals for the posted invoice; nothing is stored."""
    try:
        invoice = invoice_service.parse_invoice(request.get_json(silent=True) or {})
        return jsonify(invoice.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@invoices_bp.post("/pdf")
@require_auth
@require_role("admin", "super_admin")
def pdf_route():
    try:
        invoice = invoice_service.parse_invoice(request.get_json(silent=True) or {})
        content = invoice_service.render_invoice_pdf(invoice)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("render invoice")

    return send_file(
        BytesIO(content),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"Invoice_{invoice.number}.pdf",
    )


@invoices_bp.post("")
@require_auth
@require_role("admin", "super_admin")
def save_route():
    try:
        record = invoice_service.save_invoice(g.ctx, request.get_json(silent=True) or {})
        return jsonify(record.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("save invoice")


@invoices_bp.get("")
@require_auth
@require_role("admin", "super_admin")
def list_route():
    """Saved invoices, newest first. Query params: search (number or client), page, per_page."""
    page, per_page = page_args()
    try:
        listing = invoice_service.list_invoices(request.args.get("search"), page, per_page, **page_limits())
        return jsonify(listing), 200
    except Exception:
        return internal_error("list invoices")


@invoices_bp.get("/<invoice_id>/pdf")
@require_auth
@require_role("admin", "super_admin")
def saved_pdf_route(invoice_id):
    try:
        record, content = invoice_service.render_saved_invoice(invoice_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("render invoice")

    return send_file(
        BytesIO(content),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"Invoice_{record.invoice_number}.pdf",
    )
