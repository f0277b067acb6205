# backend/lrsync/config.py
from __future__ import annotations
import os
import tempfile


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # hosted database in production
        "sqlite:///lrsync.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Attachments: multipart bodies above this size are rejected by Flask
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", str(25 * 1024 * 1024)))

    # Object storage
    # "local" writes under LOCAL_STORAGE_DIR, "s3" uses the S3_* settings
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "local")
    STORAGE_KEY_PREFIX = os.environ.get("STORAGE_KEY_PREFIX", "lrsync")
    LOCAL_STORAGE_DIR = os.environ.get("LOCAL_STORAGE_DIR", "instance/uploads")
    LOCAL_STORAGE_PUBLIC_URL = os.environ.get("LOCAL_STORAGE_PUBLIC_URL", "http://localhost:5000/files")
    S3_BUCKET_NAME = os.environ.get("S3_BUCKET_NAME")
    S3_REGION = os.environ.get("S3_REGION")
    S3_PUBLIC_URL = os.environ.get("S3_PUBLIC_URL")

    # External upload API for sales/purchase attachments. When unset,
    # attachments go straight to the configured object store.
    UPLOAD_API_BASE_URL = os.environ.get("UPLOAD_API_BASE_URL")
    UPLOAD_API_TIMEOUT = float(os.environ.get("UPLOAD_API_TIMEOUT", "30"))

    # Listing defaults
    DEFAULT_PER_PAGE = 10
    MAX_PER_PAGE = 100

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    }


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    STORAGE_BACKEND = "local"
    LOCAL_STORAGE_DIR = os.path.join(tempfile.gettempdir(), "lrsync-test-uploads")
    LOCAL_STORAGE_PUBLIC_URL = "https://files.test"
    UPLOAD_API_BASE_URL = None
