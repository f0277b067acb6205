# backend/lrsync/routes/system.py
"""
System health and version endpoints.
"""

import os
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import UserProfile, SessionToken
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)

APP_VERSION = "1.0.0"


def check_database_health() -> dict:
    """Check database connectivity with a couple of cheap counts."""
    start_time = time.time()
    try:
        profile_count = db.session.query(UserProfile).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "profiles": profile_count,
                "active_sessions": active_sessions,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_storage_config() -> dict:
    backend = (current_app.config.get("STORAGE_BACKEND") or "local").lower()
    if backend == "s3" and not current_app.config.get("S3_BUCKET_NAME"):
        return {"status": "degraded", "backend": backend, "warning": "S3_BUCKET_NAME is not set"}
    return {
        "status": "healthy",
        "backend": backend,
        "upload_api": bool(current_app.config.get("UPLOAD_API_BASE_URL")),
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()
    database_health = check_database_health()
    storage_health = check_storage_config()

    checks = [database_health, storage_health]
    if any(c["status"] == "unhealthy" for c in checks):
        overall_status, http_status = "unhealthy", 503
    elif any(c["status"] == "degraded" for c in checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "storage": storage_health,
        },
    }, http_status


@system_bp.get("/version")
def version():
    return {
        "name": "lrsync",
        "version": os.environ.get("APP_VERSION", APP_VERSION),
        "git_sha": os.environ.get("GIT_SHA"),
    }
