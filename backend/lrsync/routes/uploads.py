# Overview: Upload proxy endpoints for commission report attachments.

from flask import Blueprint, request, jsonify, g

from ..services.activity_service import log_activity
from ..services.attachment_service import key_prefix
from ..services.commission_service import store_commission_files
from ..services.storage import get_object_store
from ..decorators import require_auth, require_role
from .common import DOMAIN_ERRORS, error_response, internal_error, request_files


uploads_bp = Blueprint("uploads", __name__, url_prefix="/api/uploads")


@uploads_bp.post("/commission")
@require_auth
def upload_commission_route():
    """
    Multipart fields: files (repeated), reportId, assigned_area,
    created_date, report_number, existing_count.

    Returns {"files": [{name, url}], "errors": [...]}. The caller stores
    the result on the report.
    """
    files = request_files("files")
    if not files:
        return jsonify({"error": "No files provided"}), 400

    try:
        existing_count = int(request.form.get("existing_count") or 0)
    except ValueError:
        return jsonify({"error": "existing_count must be an integer"}), 400

    try:
        stored, errors = store_commission_files(
            request.form.get("report_number"),
            request.form.get("assigned_area"),
            files,
            existing_count=existing_count,
        )
        log_activity(g.ctx, "commission_files_uploaded", f"Uploaded {len(stored)} commission file(s)",
                     {"report_id": request.form.get("reportId"), "failed": len(errors)}, commit=True)
        return jsonify({"files": stored, "errors": errors}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("upload commission files")


@uploads_bp.post("/delete")
@require_auth
@require_role("admin", "super_admin")
def delete_object_route():
    """
    Body: {"key": "<object key>"}; only keys under the storage prefix.

    Admin roles only. Secretaries remove files through the record
    endpoints, which check the record's area first.
    """
    data = request.get_json(silent=True) or {}
    key = (data.get("key") or "").strip()
    if not key:
        return jsonify({"error": "key required"}), 400
    if not key.startswith(key_prefix() + "/"):
        return jsonify({"error": "Invalid key"}), 400

    try:
        deleted = get_object_store().delete(key)
        log_activity(g.ctx, "object_deleted", f"Deleted stored object {key}", {"key": key}, commit=True)
        return jsonify({"ok": True, "deleted": deleted}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("delete stored object")
