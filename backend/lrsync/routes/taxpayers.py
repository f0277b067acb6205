# Overview: Flask API routes for the TIN library; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import taxpayer_service
from ..services.activity_service import log_activity
from ..services.export_service import export_taxpayers
from ..services.visibility import listing_payload
from ..decorators import require_auth, require_role
from .common import (
    DOMAIN_ERRORS,
    error_response,
    export_area,
    internal_error,
    page_args,
    page_limits,
    request_payload,
    send_export,
)


taxpayers_bp = Blueprint("taxpayers", __name__, url_prefix="/api/taxpayers")


@taxpayers_bp.get("")
@require_auth
def list_taxpayers_route():
    """
    Area-scoped TIN library listing.

    Query params: search (name or TIN digits), type, area (super_admin only),
    page, per_page.
    """
    page, per_page = page_args()
    try:
        visible = taxpayer_service.list_taxpayers(
            g.ctx,
            search=request.args.get("search"),
            taxpayer_type=request.args.get("type"),
            area=request.args.get("area"),
        )
        return jsonify(listing_payload(visible, page, per_page, **page_limits())), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("list taxpayers")


@taxpayers_bp.get("/suggest")
@require_auth
def suggest_route():
    """
    Autocomplete for record forms: ?type=sales&tin=123 or ?type=sales&name=acm.
    Fewer than three digits/characters returns an empty list.
    """
    taxpayer_type = request.args.get("type") or "sales"
    try:
        if request.args.get("tin") is not None:
            items = taxpayer_service.suggest_by_tin(request.args.get("tin"), taxpayer_type)
        else:
            items = taxpayer_service.suggest_by_name(request.args.get("name") or "", taxpayer_type)
        return jsonify({"items": items, "count": len(items)}), 200
    except Exception:
        return internal_error("suggest taxpayers")


@taxpayers_bp.get("/export")
@require_auth
def export_route():
    try:
        visible = taxpayer_service.list_taxpayers(
            g.ctx,
            search=request.args.get("search"),
            taxpayer_type=request.args.get("type"),
            area=request.args.get("area"),
        )
        export = export_taxpayers(visible.records, area=export_area(g.ctx), exported_by=g.ctx.full_name)
        log_activity(g.ctx, "export_taxpayers", f"Exported {export.row_count} taxpayers",
                     {"filename": export.filename}, commit=True)
        return send_export(export)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("export taxpayers")


@taxpayers_bp.post("")
@require_auth
def create_taxpayer_route():
    try:
        listing = taxpayer_service.create_taxpayer(g.ctx, request_payload())
        return jsonify(listing.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("create taxpayer")


@taxpayers_bp.get("/<int:taxpayer_id>")
@require_auth
def get_taxpayer_route(taxpayer_id: int):
    try:
        return jsonify(taxpayer_service.get_taxpayer(g.ctx, taxpayer_id).to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@taxpayers_bp.patch("/<int:taxpayer_id>")
@require_auth
def update_taxpayer_route(taxpayer_id: int):
    try:
        listing = taxpayer_service.update_taxpayer(g.ctx, taxpayer_id, request_payload())
        return jsonify(listing.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("update taxpayer")


@taxpayers_bp.delete("/<int:taxpayer_id>")
@require_auth
@require_role("admin", "super_admin")
def delete_taxpayer_route(taxpayer_id: int):
    try:
        taxpayer_service.delete_taxpayer(g.ctx, taxpayer_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("delete taxpayer")
