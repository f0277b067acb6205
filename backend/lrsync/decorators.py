# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .services.visibility import RequestContext


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session and build the request context.

    Sets on flask.g:
    - g.ctx: RequestContext for the caller (passed into every service)
    - g.current_profile: the UserProfile row
    - g.session_token: the plaintext token (for logout)

    Returns 401 when the header is missing, the token is unknown, expired,
    idle or revoked, or the account is no longer active.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_profile = context.profile
        g.session_token = token
        g.ctx = RequestContext.from_profile(
            context.profile,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Allow only the given roles; use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            ctx = getattr(g, "ctx", None)
            if ctx is None:
                return jsonify({"error": "Authentication required"}), 401
            if ctx.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator
