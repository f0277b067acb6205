# Overview: Flask API routes for the activity tracker.

from flask import Blueprint, request, jsonify

from ..services import activity_service
from ..decorators import require_auth, require_role
from .common import internal_error, page_args


activity_bp = Blueprint("activity", __name__, url_prefix="/api/activity")


@activity_bp.get("")
@require_auth
@require_role("super_admin")
def list_activity_route():
    """Query params: action, user (name or email), page (default 1), per_page."""
    page, per_page = page_args()
    try:
        result = activity_service.list_activity(
            action=request.args.get("action"),
            user=request.args.get("user"),
            page=page or 1,
            per_page=per_page,
        )
        return jsonify(result), 200
    except Exception:
        return internal_error("list activity")


@activity_bp.get("/actions")
@require_auth
@require_role("super_admin")
def list_actions_route():
    return jsonify({"actions": activity_service.list_actions()}), 200
