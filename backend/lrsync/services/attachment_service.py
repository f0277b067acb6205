# Overview: Attachment validation and storage key naming for records and commission reports.

"""
Attachment naming

Record attachments (sales categories cheque/voucher/invoice/doc_2307/
deposit_slip):
    {prefix}/{record_type}/{YYYY-MM}/{tin}/{file_type}_{n}.{ext}
n continues after the files already on the record, so a second upload
never reuses a key.

Commission report attachments:
    {prefix}/commission_report_attachments/{area}/CR_{report}/
        CR_{report}-{label}_{seq}-{yyyyMMdd-HHmmss}.{ext}
label is Accounting_PDF_Attachment, Accounting_Image_Attachment or
Attachment. Each file in a batch is stamped one second after the previous
one.

Official receipts (purchases):
    {prefix}/purchases/{yyyy}/{mm}/{dd}/OR # {8 digits} - {name} - {tin} ({area} - {user}).{ext}

Only image/* and application/pdf files are accepted.
"""

from __future__ import annotations

import mimetypes
import re
import secrets
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from flask import current_app

from ..time_utils import utcnow
from .storage import PendingUpload


ALLOWED_MIME_PREFIXES = ("image/",)
ALLOWED_MIME_TYPES = ("application/pdf",)


class UploadError(Exception):
    """Rejected attachment(s); carries one error per offending file."""

    def __init__(self, message: str, errors: list[dict] | None = None, status_code: int = 400):
        super().__init__(message)
        self.errors = errors or []
        self.status_code = status_code


@dataclass
class IncomingFile:
    """A file taken off the request, independent of werkzeug."""
    filename: str
    content_type: str
    data: bytes

    @classmethod
    def from_storage(cls, storage) -> "IncomingFile":
        content_type = storage.mimetype or mimetypes.guess_type(storage.filename or "")[0] or ""
        return cls(
            filename=storage.filename or "upload",
            content_type=content_type,
            data=storage.read(),
        )


def key_prefix() -> str:
    return (current_app.config.get("STORAGE_KEY_PREFIX") or "lrsync").strip("/")


def is_allowed_mime(content_type: str | None) -> bool:
    if not content_type:
        return False
    content_type = content_type.split(";", 1)[0].strip().lower()
    return content_type.startswith(ALLOWED_MIME_PREFIXES) or content_type in ALLOWED_MIME_TYPES


def check_files(files: list[IncomingFile]) -> None:
    """Raise UploadError listing every file that is not an image or PDF."""
    errors = [
        {"name": f.filename, "error": "Only image and PDF files are allowed"}
        for f in files
        if not is_allowed_mime(f.content_type)
    ]
    if errors:
        names = ", ".join(e["name"] for e in errors)
        raise UploadError(f"Unsupported file type: {names}", errors)


def extension_for(filename: str | None, content_type: str | None = None) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].strip().lower()
        if ext:
            return ext
    guessed = mimetypes.guess_extension(content_type or "") if content_type else None
    return guessed.lstrip(".") if guessed else "dat"


def record_attachment_key(
    record_type: str,
    tax_month: date,
    tin: str,
    file_type: str,
    index: int,
    ext: str,
    prefix: str | None = None,
) -> str:
    prefix = prefix if prefix is not None else key_prefix()
    period = tax_month.strftime("%Y-%m")
    return f"{prefix}/{record_type}/{period}/{tin}/{file_type}_{index}.{ext}"


def record_uploads(
    record_type: str,
    tax_month: date,
    tin: str,
    file_type: str,
    files: list[IncomingFile],
    existing_count: int = 0,
) -> list[PendingUpload]:
    """Build keyed uploads for one attachment category of a record."""
    check_files(files)
    uploads = []
    for i, f in enumerate(files):
        key = record_attachment_key(
            record_type, tax_month, tin, file_type,
            existing_count + i + 1, extension_for(f.filename, f.content_type),
        )
        uploads.append(PendingUpload(
            key=key,
            data=f.data,
            content_type=f.content_type,
            filename=f.filename,
            fields={"tax_month": tax_month.strftime("%Y-%m"), "tin": tin, "type": file_type},
        ))
    return uploads


def _safe_report(report_number) -> str:
    return re.sub(r"[^\w\-]+", "_", str(report_number or "Unknown"))


def _safe_area(area: str | None) -> str:
    return re.sub(r"[^\w\- ]+", "_", area or "Unknown")


def commission_type_label(content_type: str) -> str:
    if content_type == "application/pdf":
        return "Accounting_PDF_Attachment"
    if content_type.startswith("image/"):
        return "Accounting_Image_Attachment"
    return "Attachment"


def commission_attachment_key(
    report_number,
    area: str | None,
    content_type: str,
    seq: int,
    stamp: datetime,
    ext: str,
    prefix: str | None = None,
) -> str:
    prefix = prefix if prefix is not None else key_prefix()
    report = _safe_report(report_number)
    name = f"CR_{report}-{commission_type_label(content_type)}_{seq}-{stamp.strftime('%Y%m%d-%H%M%S')}.{ext}"
    return f"{prefix}/commission_report_attachments/{_safe_area(area)}/CR_{report}/{name}"


def commission_uploads(
    report_number,
    area: str | None,
    files: list[IncomingFile],
    existing_count: int = 0,
    now: datetime | None = None,
) -> list[PendingUpload]:
    check_files(files)
    now = now or utcnow()
    uploads = []
    for i, f in enumerate(files):
        key = commission_attachment_key(
            report_number, area, f.content_type, existing_count + i + 1,
            now + timedelta(seconds=i), extension_for(f.filename, f.content_type),
        )
        uploads.append(PendingUpload(key=key, data=f.data, content_type=f.content_type, filename=f.filename))
    return uploads


def _clean_label(value: str | None) -> str:
    text = re.sub(r"[^\w\s\-]", "", value or "Unknown")
    return re.sub(r"\s+", " ", text).strip() or "Unknown"


def generate_or_number() -> str:
    return str(10_000_000 + secrets.randbelow(90_000_000))


def official_receipt_key(
    or_number: str,
    tin_name: str,
    tin: str,
    area: str | None,
    user_full_name: str | None,
    ext: str,
    on: date,
    prefix: str | None = None,
) -> str:
    prefix = prefix if prefix is not None else key_prefix()
    safe_tin = re.sub(r"[^\w\-]", "", tin or "Unknown") or "Unknown"
    name = (
        f"OR # {or_number} - {_clean_label(tin_name)} - {safe_tin} "
        f"({_clean_label(area)} - {_clean_label(user_full_name)}).{ext}"
    )
    return f"{prefix}/purchases/{on.strftime('%Y/%m/%d')}/{name}"


def official_receipt_uploads(
    tin_name: str,
    tin: str,
    area: str | None,
    user_full_name: str | None,
    files: list[IncomingFile],
    on: date | None = None,
) -> list[PendingUpload]:
    check_files(files)
    on = on or utcnow().date()
    uploads = []
    used: set[str] = set()
    for f in files:
        or_number = generate_or_number()
        while or_number in used:
            or_number = generate_or_number()
        used.add(or_number)
        key = official_receipt_key(
            or_number, tin_name, tin, area, user_full_name,
            extension_for(f.filename, f.content_type), on,
        )
        uploads.append(PendingUpload(key=key, data=f.data, content_type=f.content_type, filename=f.filename))
    return uploads
