# Overview: Flask API routes for user management; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import user_service
from ..decorators import require_auth, require_role
from .common import DOMAIN_ERRORS, error_response, internal_error, page_args, request_payload


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role("admin", "super_admin")
def list_users_route():
    """
    Query params: search, role, status, area, page, per_page.
    """
    page, per_page = page_args()
    try:
        result = user_service.list_users(
            search=request.args.get("search"),
            role=request.args.get("role"),
            status=request.args.get("status"),
            area=request.args.get("area"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except Exception:
        return internal_error("list users")


@users_bp.get("/areas")
@require_auth
@require_role("admin", "super_admin")
def list_areas_route():
    return jsonify({"areas": user_service.list_areas()}), 200


@users_bp.post("")
@require_auth
@require_role("admin", "super_admin")
def create_user_route():
    try:
        profile = user_service.create_user(g.ctx, request_payload())
        return jsonify(profile.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("create user")


@users_bp.get("/<profile_id>")
@require_auth
@require_role("admin", "super_admin")
def get_user_route(profile_id: str):
    try:
        return jsonify(user_service.get_user(profile_id).to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@users_bp.patch("/<profile_id>")
@require_auth
@require_role("admin", "super_admin")
def update_user_route(profile_id: str):
    try:
        profile = user_service.update_user(g.ctx, profile_id, request_payload())
        return jsonify(profile.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("update user")


@users_bp.post("/<profile_id>/status")
@require_auth
@require_role("admin", "super_admin")
def set_status_route(profile_id: str):
    data = request.get_json(silent=True) or {}
    try:
        profile = user_service.set_status(g.ctx, profile_id, data.get("status"))
        return jsonify(profile.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("set user status")


@users_bp.post("/<profile_id>/role")
@require_auth
@require_role("admin", "super_admin")
def set_role_route(profile_id: str):
    data = request.get_json(silent=True) or {}
    try:
        profile = user_service.set_role(g.ctx, profile_id, data.get("role"))
        return jsonify(profile.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("set user role")


@users_bp.post("/<profile_id>/password")
@require_auth
@require_role("admin", "super_admin")
def set_password_route(profile_id: str):
    data = request.get_json(silent=True) or {}
    if not data.get("password"):
        return jsonify({"error": "password required"}), 400
    try:
        profile = user_service.set_password(g.ctx, profile_id, data["password"])
        return jsonify(profile.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("reset user password")
