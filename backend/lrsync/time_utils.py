from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.utcnow()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a calendar date.

    Accepts "YYYY-MM-DD", a full ISO datetime (date part is kept) and
    "YYYY-MM", which is read as the first day of that month.
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if len(s) == 7:
        return datetime.strptime(s, "%Y-%m").date()
    if len(s) > 10:
        return parse_iso_datetime(s).date()
    return date.fromisoformat(s)


def month_bounds(month: str) -> tuple[date, date]:
    """
    "YYYY-MM" -> (first day of month, first day of next month).

    The upper bound is exclusive, matching gte/lt range filters.
    """
    start = datetime.strptime(month.strip(), "%Y-%m").date()
    if start.month == 12:
        end = date(start.year + 1, 1, 1)
    else:
        end = date(start.year, start.month + 1, 1)
    return start, end


def format_month_label(value: Optional[date]) -> str:
    """date(2024, 3, 31) -> "Mar 2024"."""
    if value is None:
        return ""
    return value.strftime("%b %Y")


def format_day_label(value: Optional[date]) -> str:
    """date(2024, 3, 5) -> "Mar 05, 2024"."""
    if value is None:
        return ""
    return value.strftime("%b %d, %Y")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_iso_date(d: Optional[date]) -> Optional[str]:
    if d is None:
        return None
    return d.isoformat()
