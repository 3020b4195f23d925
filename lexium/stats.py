from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

import numpy as np

LOW = "LOW"
AVERAGE = "AVERAGE"
HIGH = "HIGH"
NO_DATA = "no data"

LOW_MAX = 40
HIGH_MIN = 71


def is_finite(value: object) -> bool:
    try:
        return math.isfinite(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False


def round_half_away(value: float, digits: int = 0) -> float:
    """Round half away from zero (2.5 -> 3, -2.5 -> -3), unlike the built-in banker's rounding."""
    quantum = Decimal(1).scaleb(-digits)
    magnitude = Decimal(str(abs(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    return float(magnitude) if value >= 0 else -float(magnitude)


def bucket(value: object) -> str:
    if not is_finite(value):
        return NO_DATA
    number = float(value)  # type: ignore[arg-type]
    if number <= LOW_MAX:
        return LOW
    if number >= HIGH_MIN:
        return HIGH
    return AVERAGE


def mid_rank_percentile(value: float, cohort: Iterable[float]) -> int | None:
    """
    Percentile rank of `value` within `cohort` using the mid-rank method:
    100 * (below + 0.5 * equal) / n, rounded half away from zero and clamped to [1, 100].

    Non-finite cohort values are ignored. Returns None when there is nothing to rank.
    """
    if not is_finite(value):
        return None
    values = np.asarray([float(v) for v in cohort if is_finite(v)], dtype="float64")
    if values.size == 0:
        return None
    below = int((values < value).sum())
    equal = int((values == value).sum())
    raw = 100.0 * (below + 0.5 * equal) / values.size
    return int(min(100, max(1, round_half_away(raw))))
