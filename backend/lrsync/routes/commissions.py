# Overview: Flask API routes for commission reports; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import commission_service
from ..services.activity_service import log_activity
from ..services.export_service import export_commission_reports
from ..services.visibility import listing_payload
from ..decorators import require_auth, require_role
from .common import (
    DOMAIN_ERRORS,
    error_response,
    export_area,
    internal_error,
    page_args,
    page_limits,
    request_files,
    send_export,
)


commissions_bp = Blueprint("commissions", __name__, url_prefix="/api/commission-reports")


def _filters() -> dict:
    return {
        "search": request.args.get("search"),
        "status": request.args.get("status"),
        "area": request.args.get("area"),
    }


@commissions_bp.get("")
@require_auth
def list_reports_route():
    """
    Area-scoped commission reports (owner = created_by).

    Query params: search (report # or remarks), status (UI token or stored
    value), area (super_admin only), page, per_page.
    """
    page, per_page = page_args()
    try:
        visible = commission_service.list_reports(g.ctx, **_filters())
        return jsonify(listing_payload(visible, page, per_page, **page_limits())), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("list commission reports")


@commissions_bp.get("/statuses")
@require_auth
def statuses_route():
    return jsonify({"statuses": [
        {"token": token, "value": value} for token, value in commission_service.STATUS_TOKENS.items()
    ]}), 200


@commissions_bp.get("/export")
@require_auth
def export_reports_route():
    try:
        visible = commission_service.list_reports(g.ctx, **_filters())
        export = export_commission_reports(visible.items, area=export_area(g.ctx), exported_by=g.ctx.full_name)
        log_activity(g.ctx, "export_commission_reports", f"Exported {export.row_count} commission reports",
                     {"filename": export.filename}, commit=True)
        return send_export(export)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("export commission reports")


@commissions_bp.post("")
@require_auth
@require_role("admin", "super_admin")
def create_report_route():
    """Body: {"sales_uuids": [...], "remarks": "..."}"""
    data = request.get_json(silent=True) or {}
    try:
        report = commission_service.create_report(g.ctx, data.get("sales_uuids") or [], data.get("remarks"))
        return jsonify(report.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("create commission report")


@commissions_bp.get("/<report_uuid>")
@require_auth
def get_report_route(report_uuid: str):
    try:
        return jsonify(commission_service.get_report(g.ctx, report_uuid)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("load commission report")


@commissions_bp.post("/<report_uuid>/status")
@require_auth
@require_role("admin", "super_admin")
def update_status_route(report_uuid: str):
    """Body: {"status": "ongoing_verification", "remarks": "..."}"""
    data = request.get_json(silent=True) or {}
    try:
        report = commission_service.update_status(g.ctx, report_uuid, data.get("status"), data.get("remarks"))
        return jsonify(report.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("update commission report status")


@commissions_bp.delete("/<report_uuid>")
@require_auth
@require_role("admin", "super_admin")
def delete_report_route(report_uuid: str):
    try:
        commission_service.soft_delete_report(g.ctx, report_uuid)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("delete commission report")


@commissions_bp.post("/<report_uuid>/attachments")
@require_auth
def add_attachments_route(report_uuid: str):
    """Multipart: one or more "files"."""
    try:
        report, upload_errors = commission_service.add_attachments(g.ctx, report_uuid, request_files("files"))
        return jsonify({"report": report.to_dict(), "upload_errors": upload_errors}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("upload commission report attachments")


@commissions_bp.delete("/<report_uuid>/attachments/<int:index>")
@require_auth
def delete_attachment_route(report_uuid: str, index: int):
    try:
        report = commission_service.delete_attachment(g.ctx, report_uuid, index)
        return jsonify({"report": report.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("delete commission report attachment")


@commissions_bp.get("/<report_uuid>/breakdown")
@require_auth
@require_role("admin", "super_admin")
def breakdown_route(report_uuid: str):
    try:
        rows = commission_service.list_agent_breakdown(g.ctx, report_uuid)
        return jsonify({"items": rows, "count": len(rows)}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("load commission agent breakdown")


@commissions_bp.patch("/<report_uuid>/breakdown/<int:row_id>")
@require_auth
@require_role("admin", "super_admin")
def update_breakdown_route(report_uuid: str, row_id: int):
    """
    Body: any of the breakdown inputs (names, comm, rates, calculation
    types). Returns the row with recomputed figures.
    """
    try:
        row = commission_service.update_agent_breakdown(g.ctx, report_uuid, row_id, request.get_json(silent=True))
        return jsonify(row), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("update commission agent breakdown")
