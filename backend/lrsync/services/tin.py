"""TIN normalization and display formatting."""

from __future__ import annotations

import re

_NON_DIGIT = re.compile(r"\D")
_GROUP_OF_THREE = re.compile(r"(\d{3})(?=\d)")


def normalize_tin(value) -> str:
    """Strip every non-digit: "123-456-789-000" -> "123456789000"."""
    if value is None:
        return ""
    return _NON_DIGIT.sub("", str(value))


def format_tin(value) -> str:
    """Group digits by three with dashes: "123456789" -> "123-456-789"."""
    digits = normalize_tin(value)
    return _GROUP_OF_THREE.sub(r"\1-", digits)
