# Overview: Object storage backends and the external upload API client.

"""
Object storage

Three interchangeable targets share put/delete/key_from_url:

- LocalObjectStore: files under a directory, served from a public base URL
  (default; also what the tests use).
- S3ObjectStore: an S3 bucket through boto3, public URL = S3_PUBLIC_URL/key.
- UploadApiClient: the external upload API (POST {base}/api/upload,
  multipart with file, tax_month, tin, type, filename), used for sales and
  purchase attachments when UPLOAD_API_BASE_URL is configured.

Stored URLs are "{public_url}/{quoted key}", so key_from_url can recover
the key for deletes.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from urllib.parse import quote, unquote

import httpx
from flask import current_app


logger = logging.getLogger(__name__)

MAX_UPLOAD_WORKERS = 5


class StorageError(Exception):
    """Object store rejected a put/delete or returned something unusable."""


@dataclass
class PendingUpload:
    key: str
    data: bytes
    content_type: str
    filename: str
    # Extra multipart fields for the upload API (tax_month, tin, type)
    fields: dict = field(default_factory=dict)

    @property
    def stored_name(self) -> str:
        return self.key.rsplit("/", 1)[-1]


@dataclass
class UploadBatch:
    succeeded: list[tuple[PendingUpload, str]] = field(default_factory=list)
    failed: list[tuple[PendingUpload, str]] = field(default_factory=list)

    @property
    def urls(self) -> list[str]:
        return [url for _, url in self.succeeded]

    def errors(self) -> list[dict]:
        return [{"name": u.filename, "error": err} for u, err in self.failed]


def url_for_key(public_url: str, key: str) -> str:
    return f"{public_url.rstrip('/')}/{quote(key, safe='/')}"


def key_from_url(url: str, public_url: str | None = None) -> str:
    """
    Recover the object key from a stored URL.

    Tries the configured public base first, then the S3 virtual-host form
    ("https://bucket.s3.region.amazonaws.com/<key>").
    """
    if not url:
        raise StorageError("Attachment URL is empty")
    if public_url:
        base = public_url.rstrip("/") + "/"
        if url.startswith(base):
            return unquote(url[len(base):])
    marker = ".amazonaws.com/"
    if marker in url:
        return unquote(url.split(marker, 1)[1])
    raise StorageError(f"Cannot derive storage key from URL: {url}")


class LocalObjectStore:
    def __init__(self, root_dir: str, public_url: str):
        self.root_dir = root_dir
        self.public_url = public_url

    def _path(self, key: str) -> str:
        path = os.path.normpath(os.path.join(self.root_dir, key))
        root = os.path.normpath(self.root_dir)
        if not path.startswith(root + os.sep):
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def put(self, upload: PendingUpload) -> str:
        path = self._path(upload.key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(upload.data)
        return url_for_key(self.public_url, upload.key)

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True

    def exists(self, key: str) -> bool:
        return os.path.exists(self._path(key))

    def key_from_url(self, url: str) -> str:
        return key_from_url(url, self.public_url)


class S3ObjectStore:
    def __init__(self, bucket: str, region: str | None, public_url: str | None):
        import boto3

        if not bucket:
            raise StorageError("S3_BUCKET_NAME is not configured")
        self.bucket = bucket
        self.public_url = public_url or f"https://{bucket}.s3.{region}.amazonaws.com"
        self.client = boto3.client("s3", region_name=region)

    def put(self, upload: PendingUpload) -> str:
        self.client.put_object(
            Bucket=self.bucket,
            Key=upload.key,
            Body=upload.data,
            ContentType=upload.content_type,
        )
        return url_for_key(self.public_url, upload.key)

    def delete(self, key: str) -> bool:
        self.client.delete_object(Bucket=self.bucket, Key=key)
        return True

    def key_from_url(self, url: str) -> str:
        return key_from_url(url, self.public_url)


class UploadApiClient:
    """Client for the external attachment upload API."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def put(self, upload: PendingUpload) -> str:
        data = {"filename": upload.stored_name}
        data.update({k: v for k, v in upload.fields.items() if v is not None})
        response = httpx.post(
            f"{self.base_url}/api/upload",
            files={"file": (upload.stored_name, upload.data, upload.content_type)},
            data=data,
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            raise StorageError(f"Upload failed with status {response.status_code}")
        body = response.json()
        url = body.get("url")
        if not url:
            results = body.get("files") or body.get("results") or []
            url = next((r.get("url") for r in results if isinstance(r, dict) and r.get("url")), None)
        if not url:
            raise StorageError("Upload API returned no URL")
        return url


def upload_files(target, uploads: list[PendingUpload]) -> UploadBatch:
    """
    Upload every file in parallel and wait for all of them.

    Failures do not undo the successes; callers persist whatever succeeded
    and report the rest.
    """
    batch = UploadBatch()
    if not uploads:
        return batch

    def _put(upload: PendingUpload):
        try:
            return upload, target.put(upload), None
        except (StorageError, httpx.HTTPError, OSError) as e:
            return upload, None, str(e)
        except Exception as e:  # boto3 raises botocore's own hierarchy
            return upload, None, str(e) or e.__class__.__name__

    workers = min(MAX_UPLOAD_WORKERS, len(uploads))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        for upload, url, error in pool.map(_put, uploads):
            if error is None:
                batch.succeeded.append((upload, url))
            else:
                batch.failed.append((upload, error))

    if batch.failed:
        logger.warning(
            "%d of %d uploads failed: %s",
            len(batch.failed), len(uploads),
            ", ".join(f"{u.filename} ({err})" for u, err in batch.failed),
        )
    return batch


def delete_object(store, url: str) -> bool:
    """Best-effort delete of a stored object; failure leaves an orphan and is logged."""
    try:
        return store.delete(store.key_from_url(url))
    except Exception:
        logger.warning("Failed to delete stored object for %s", url, exc_info=True)
        return False


def get_object_store():
    """Configured object store for the current app (cached per app)."""
    store = current_app.extensions.get("lrsync_object_store")
    if store is not None:
        return store

    cfg = current_app.config
    backend = (cfg.get("STORAGE_BACKEND") or "local").lower()
    if backend == "s3":
        store = S3ObjectStore(cfg.get("S3_BUCKET_NAME"), cfg.get("S3_REGION"), cfg.get("S3_PUBLIC_URL"))
    elif backend == "local":
        root = os.path.abspath(cfg.get("LOCAL_STORAGE_DIR"))
        store = LocalObjectStore(root, cfg.get("LOCAL_STORAGE_PUBLIC_URL"))
    else:
        raise StorageError(f"Unknown STORAGE_BACKEND: {backend}")

    current_app.extensions["lrsync_object_store"] = store
    return store


def get_record_uploader():
    """Target for sales/purchase attachments: upload API if configured, else the object store."""
    base_url = current_app.config.get("UPLOAD_API_BASE_URL")
    if base_url:
        return UploadApiClient(base_url, current_app.config.get("UPLOAD_API_TIMEOUT", 30.0))
    return get_object_store()
