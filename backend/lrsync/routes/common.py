# Overview: Shared request parsing and error translation for API routes.

from __future__ import annotations

from flask import current_app, jsonify, request, send_file
from io import BytesIO

from ..services.attachment_service import IncomingFile, UploadError
from ..services.auth_service import AccountInactiveError, PasswordValidationError
from ..services.storage import StorageError
from ..services.user_service import UserPermissionError
from ..services.visibility import VisibilityError
from ..validation import ConflictError, NotFoundError, ValidationError


# Errors a service raises on purpose; anything else is a 500
DOMAIN_ERRORS = (
    ValidationError,
    ConflictError,
    NotFoundError,
    VisibilityError,
    UploadError,
    StorageError,
    PasswordValidationError,
    UserPermissionError,
    AccountInactiveError,
)


def error_response(e: Exception):
    if isinstance(e, UploadError):
        return jsonify({"error": str(e), "files": e.errors}), e.status_code
    if isinstance(e, ConflictError):
        status = 409
    elif isinstance(e, NotFoundError):
        status = 404
    elif isinstance(e, (VisibilityError, UserPermissionError, AccountInactiveError)):
        status = 403
    elif isinstance(e, StorageError):
        status = 502
    else:
        status = 400
    return jsonify({"error": str(e)}), status


def internal_error(action: str):
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


def page_args() -> tuple[int | None, int | None]:
    page = request.args.get("page", type=int)
    per_page = request.args.get("per_page", type=int)
    return page, per_page


def page_limits() -> dict:
    return {
        "default_per_page": current_app.config.get("DEFAULT_PER_PAGE", 10),
        "max_per_page": current_app.config.get("MAX_PER_PAGE", 100),
    }


def request_payload() -> dict:
    """Form fields for multipart requests, JSON body otherwise."""
    if request.mimetype == "multipart/form-data" or request.form:
        return request.form.to_dict()
    return request.get_json(silent=True) or {}


def request_files(field: str) -> list[IncomingFile]:
    return [IncomingFile.from_storage(f) for f in request.files.getlist(field) if f and f.filename]


def flag(name: str) -> bool:
    value = request.args.get(name)
    if value is None:
        value = request.form.get(name)
    if value is None and request.is_json:
        value = (request.get_json(silent=True) or {}).get(name)
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def id_list(name: str = "ids") -> list[str]:
    """ids from ?ids=a,b or repeated ?ids=a&ids=b."""
    values = []
    for raw in request.args.getlist(name):
        values.extend(v.strip() for v in raw.split(",") if v.strip())
    return values


def send_export(export):
    return send_file(
        BytesIO(export.content),
        mimetype=export.mimetype,
        as_attachment=True,
        download_name=export.filename,
    )


def export_area(ctx) -> str | None:
    """Area label printed on an export: the filter a super admin chose, or a secretary's own area."""
    if ctx.is_super_admin:
        return request.args.get("area") or None
    if ctx.is_admin:
        return None
    return ctx.assigned_area
