from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from .time_utils import parse_iso_date


# Largest amount a Numeric(14, 2) column can hold
MAX_AMOUNT = Decimal("999999999999.99")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_LENGTH = 254


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate TIN for a type)."""


class NotFoundError(LookupError):
    """404: row does not exist or is soft-deleted."""


def parse_amount(value: Any, field: str) -> Decimal | None:
    """
    Parse a money amount typed into a form.

    "15,000.50" -> Decimal("15000.50"). Thousands separators and
    surrounding whitespace are ignored; blank means "not given".
    Negative values are rejected.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    else:
        raw = str(value).replace(",", "").strip()
        if not raw:
            return None
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    return amount.quantize(Decimal("0.01"))


def parse_date_field(value: Any, field: str) -> date | None:
    if value is None or isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")


def require_text(payload: dict, field: str, message: str) -> str:
    value = payload.get(field)
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(message)
    return text


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_choice(value: Any, choices: Iterable[str], field: str) -> str:
    text = str(value).strip().lower() if value is not None else ""
    choices = tuple(choices)
    if text not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return text


def validate_email(value: Any) -> str:
    """Lowercased email or ValidationError."""
    email = str(value or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    if len(email) > MAX_EMAIL_LENGTH or not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address")
    return email


