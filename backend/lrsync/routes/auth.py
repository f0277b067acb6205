# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..services import auth_service, session_service, user_service
from ..services.activity_service import log_activity
from ..services.auth_service import AccountInactiveError
from ..services.visibility import RequestContext
from ..decorators import require_auth
from .common import DOMAIN_ERRORS, error_response, internal_error, request_payload


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Exchange email + password for a bearer token.

    401 for bad credentials, 403 for inactive or suspended accounts.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        try:
            profile = auth_service.authenticate(email, password)
        except AccountInactiveError as e:
            return jsonify({"error": str(e)}), 403
        if not profile:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            profile_id=profile.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        ctx = RequestContext.from_profile(profile, ip_address=ip_address, user_agent=user_agent)
        log_activity(ctx, "login", f"{profile.full_name} logged in", commit=True)

        return jsonify({
            "user": profile.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200
    except Exception:
        return internal_error("login user")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        log_activity(g.ctx, "logout", f"{g.ctx.full_name} logged out")
        session_service.revoke_session(g.session_token)
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        return internal_error("logout user")


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_profile.to_dict()}), 200


@auth_bp.patch("/me")
@require_auth
def update_me_route():
    try:
        profile = user_service.update_own_profile(g.ctx, request_payload())
        return jsonify({"user": profile.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("update profile")


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password")
    new_password = data.get("new_password")
    if not current_password or not new_password:
        return jsonify({"error": "current_password and new_password required"}), 400

    try:
        user_service.change_password(g.ctx, current_password, new_password)
        # Every other device has to log in again
        session_service.revoke_all_sessions(g.ctx.profile_id, reason="Password changed")
        return jsonify({"message": "Password changed. Please log in again."}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("change password")
