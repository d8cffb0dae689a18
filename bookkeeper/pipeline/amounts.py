"""
Locale-formatted amount parsing.

Source amounts use the comma as a thousands separator ("16,500" is
16500), never as a decimal point, and carry no fractional units.
"""
from __future__ import annotations

import re
from typing import Any, Optional

from bookkeeper.schemas import Amount

_NON_DIGIT = re.compile(r"[^0-9]")


def normalize_amount(value: Optional[str]) -> Optional[int]:
    """Strip every non-digit and parse what is left as a base-10 integer.

    ``None`` or a string without any digit gives ``None``, not zero.
    """
    if value is None:
        return None
    digits = _NON_DIGIT.sub("", value)
    return int(digits) if digits else None


def coerce_amount(value: Any) -> Optional[Amount]:
    """Canonical amount for a raw field value.

    Strings go through :func:`normalize_amount`; numbers are already
    canonical and pass through untouched.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return normalize_amount(value)
    return None


def coerce_count(value: Any) -> Optional[int]:
    amount = coerce_amount(value)
    return int(amount) if amount is not None else None
