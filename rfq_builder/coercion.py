from __future__ import annotations

import math
import re
from typing import Any

_NON_NUMERIC = re.compile(r"[^0-9,.\-]")


def coerce_number(value: Any) -> float | None:
    """Convert a loosely typed numeric value into a finite float.

    Strings may carry currency symbols and either locale convention. The
    rightmost separator decides: when the last comma comes after the last
    period the comma is the decimal mark, otherwise the period is. A bare
    ``"1.234"`` therefore reads as ``1.234``, not one thousand two hundred
    thirty-four.

    Returns None for anything that cannot be read as a finite number.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None

    cleaned = _NON_NUMERIC.sub("", value)
    if not cleaned:
        return None

    last_comma = cleaned.rfind(",")
    last_dot = cleaned.rfind(".")
    if last_comma > -1 and last_comma > last_dot:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def normalize_text(value: Any) -> str | None:
    """Trim a text value, collapsing missing, null and blank into None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return str(value)
        except ValueError:
            return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
