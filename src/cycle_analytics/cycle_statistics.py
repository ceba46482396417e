"""Descriptive statistics over reconstructed cycle lengths."""

from __future__ import annotations

import math
import statistics
from typing import Sequence


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always rounding up.

    ``round()`` uses banker's rounding (``round(2.5) == 2``); percentages and
    averages in reports need ``2.5 → 3``.
    """
    return int(math.floor(value + 0.5))


def variation(lengths: Sequence[int | float]) -> float:
    """Population standard deviation of cycle lengths.

    Returns 0.0 for fewer than two samples so downstream formatting never
    sees NaN.
    """
    if len(lengths) < 2:
        return 0.0
    return statistics.pstdev(lengths)


def average(lengths: Sequence[int | float], fallback: int) -> int:
    """Rounded mean cycle length, or ``fallback`` when there are no cycles."""
    if not lengths:
        return fallback
    return round_half_up(statistics.mean(lengths))


def shortest(lengths: Sequence[int]) -> int:
    return min(lengths) if lengths else 0


def longest(lengths: Sequence[int]) -> int:
    return max(lengths) if lengths else 0
