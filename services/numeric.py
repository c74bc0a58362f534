"""Rounding and ratio helpers shared by the report reducers."""

from __future__ import annotations

import math
from typing import Optional


def round_half_up(value: float) -> int:
    """Round to the nearest integer with ties going towards positive infinity."""
    return int(math.floor(value + 0.5))


def safe_ratio(numerator: float, denominator: float) -> Optional[float]:
    if denominator == 0:
        return None
    return numerator / denominator


def percentage(count: float, total: float) -> int:
    ratio = safe_ratio(count, total)
    if ratio is None:
        return 0
    return round_half_up(ratio * 100)
