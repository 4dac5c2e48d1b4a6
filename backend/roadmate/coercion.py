"""Scalar coercions shared by the patch validator, stored documents and platform imports."""

from __future__ import annotations

import math
from typing import Any, Optional


def as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def as_number(value: Any) -> Optional[float]:
    """Coerce ``value`` to a float, returning ``None`` when it is not numeric."""
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0.0
        try:
            number = float(stripped)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number


def as_int(value: Any, default: int = 0) -> int:
    number = as_number(value)
    if number is None or not math.isfinite(number):
        return default
    return int(number)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_percent(value: Any) -> int:
    """Coerce to a whole percentage in [0, 100]; non-numeric input becomes 0."""
    number = as_number(value)
    if number is None:
        return 0
    return round_half_up(min(100.0, max(0.0, number)))


__all__ = ["as_int", "as_number", "as_text", "clamp_percent", "round_half_up"]
