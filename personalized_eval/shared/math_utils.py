"""Numeric helpers shared by score aggregation and normalization."""

import math
from typing import Any


def is_number(value: Any) -> bool:
    """True for int/float values, excluding bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounding up (2.5 -> 3)."""
    return math.floor(value + 0.5)
