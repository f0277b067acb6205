# Overview: Flask API routes for purchase records and categories; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import purchase_service
from ..services.activity_service import log_activity
from ..services.export_service import export_purchases
from ..services.visibility import listing_payload
from ..decorators import require_auth, require_role
from .common import (
    DOMAIN_ERRORS,
    error_response,
    export_area,
    id_list,
    internal_error,
    page_args,
    page_limits,
    request_files,
    request_payload,
    send_export,
)


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _filters() -> dict:
    return {
        "search": request.args.get("search"),
        "tax_type": request.args.get("tax_type"),
        "month": request.args.get("month"),
        "area": request.args.get("area"),
        "category_id": request.args.get("category_id", type=int),
    }


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    """
    Area-scoped purchases listing, newest first.

    Query params: search, tax_type, month (YYYY-MM), category_id,
    area (super_admin only), page, per_page.
    """
    page, per_page = page_args()
    try:
        visible = purchase_service.list_purchases(g.ctx, **_filters())
        result = listing_payload(visible, page, per_page, **page_limits())
        result["stats"] = purchase_service.purchase_stats(visible.records)
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("list purchases")


@purchases_bp.get("/export")
@require_auth
def export_purchases_route():
    try:
        records = purchase_service.list_purchases(g.ctx, **_filters()).records
        selected = id_list()
        if selected:
            wanted = set(selected)
            records = [r for r in records if r.id in wanted]
        export = export_purchases(records, area=export_area(g.ctx), exported_by=g.ctx.full_name)
        log_activity(g.ctx, "export_purchases", f"Exported {export.row_count} purchases",
                     {"filename": export.filename}, commit=True)
        return send_export(export)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("export purchases")


@purchases_bp.get("/categories")
@require_auth
def list_categories_route():
    categories = purchase_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200


@purchases_bp.post("/categories")
@require_auth
@require_role("admin", "super_admin")
def create_category_route():
    data = request.get_json(silent=True) or {}
    try:
        category = purchase_service.create_category(g.ctx, data.get("category"))
        return jsonify(category.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("create purchase category")


@purchases_bp.delete("/categories/<int:category_id>")
@require_auth
@require_role("admin", "super_admin")
def delete_category_route(category_id: int):
    try:
        purchase_service.soft_delete_category(g.ctx, category_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("delete purchase category")


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Create a purchase from JSON or multipart form data; official receipt
    files go under the "official_receipt" field.
    """
    try:
        purchase, upload_errors = purchase_service.create_purchase(
            g.ctx, request_payload(), receipts=request_files("official_receipt"),
        )
        return jsonify({"purchase": purchase.to_dict(), "upload_errors": upload_errors}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("create purchase")


@purchases_bp.get("/<purchase_id>")
@require_auth
def get_purchase_route(purchase_id: str):
    try:
        return jsonify(purchase_service.get_purchase(g.ctx, purchase_id).to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@purchases_bp.patch("/<purchase_id>")
@require_auth
def update_purchase_route(purchase_id: str):
    try:
        purchase, upload_errors = purchase_service.update_purchase(
            g.ctx, purchase_id, request_payload(), receipts=request_files("official_receipt"),
        )
        return jsonify({"purchase": purchase.to_dict(), "upload_errors": upload_errors}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("update purchase")


@purchases_bp.delete("/<purchase_id>")
@require_auth
def delete_purchase_route(purchase_id: str):
    try:
        purchase_service.soft_delete_purchase(g.ctx, purchase_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("delete purchase")


@purchases_bp.post("/<purchase_id>/remarks")
@require_auth
def add_remark_route(purchase_id: str):
    data = request.get_json(silent=True) or {}
    try:
        entry = purchase_service.add_remark(g.ctx, purchase_id, data.get("remark"))
        return jsonify(entry), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("add purchase remark")


@purchases_bp.delete("/<purchase_id>/receipts/<int:index>")
@require_auth
def remove_receipt_route(purchase_id: str, index: int):
    try:
        purchase = purchase_service.remove_receipt(g.ctx, purchase_id, index)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("remove official receipt")
