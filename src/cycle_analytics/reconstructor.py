"""Reconstruct historical cycles from the flat daily-record log.

A *period start* is the first day of a run of consecutive flow days.  The
interval between two consecutive period starts is a candidate cycle; it is
accepted only when its length falls inside the caller's ``CycleBounds``.
Intervals outside the bounds (spotting, missed logging) are discarded, never
merged with their neighbours.

Which bounds are used where:
    - full analytics report → ``AnalyticsConfig.report_bounds``  (21–40, inclusive)
    - summary report        → ``AnalyticsConfig.summary_bounds`` (20–40, exclusive)
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date, timedelta
from typing import Iterable, Sequence

from src.cycle_analytics.base import Cycle, DailyRecord
from src.cycle_analytics.config_loader import CycleBounds

logger = logging.getLogger("entrefases.cycle_analytics.reconstructor")


def period_runs(records: Iterable[DailyRecord]) -> list[tuple[date, int]]:
    """Group flow records into runs of consecutive days.

    Args:
        records: Daily records in any order.

    Returns:
        ``(run_start, run_length)`` pairs, oldest first.
    """
    flow_dates = sorted({r.date for r in records if r.has_flow})
    runs: list[tuple[date, int]] = []
    for d in flow_dates:
        if runs:
            start, length = runs[-1]
            if d - (start + timedelta(days=length - 1)) == timedelta(days=1):
                runs[-1] = (start, length + 1)
                continue
        runs.append((d, 1))
    return runs


def latest_period_start(records: Iterable[DailyRecord]) -> date | None:
    """Return the first day of the most recent flow run, or None without flow data."""
    runs = period_runs(records)
    return runs[-1][0] if runs else None


def cycle_gaps(records: Iterable[DailyRecord]) -> list[int]:
    """Days between consecutive period starts, before any bounds are applied."""
    starts = [start for start, _ in period_runs(records)]
    return [(b - a).days for a, b in zip(starts, starts[1:])]


def _union_symptoms(records: Sequence[DailyRecord]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for record in records:
        for symptom in record.symptoms:
            seen.setdefault(symptom, None)
    return tuple(seen)


def _dominant_mood(records: Sequence[DailyRecord]) -> str | None:
    moods = Counter(r.mood for r in records if r.has_mood)
    if not moods:
        return None
    # most_common keeps first-seen order among ties
    return moods.most_common(1)[0][0]


def reconstruct(
    records: Sequence[DailyRecord],
    bounds: CycleBounds | None = None,
) -> list[Cycle]:
    """Derive discrete historical cycles from daily records.

    Args:
        records: Daily records (any order, one per date).
        bounds:  Accepted cycle-length range.  Defaults to 21–40 inclusive.

    Returns:
        Accepted cycles, oldest first.
    """
    bounds = bounds or CycleBounds()
    ordered = sorted(records, key=lambda r: r.date)
    runs = period_runs(ordered)

    cycles: list[Cycle] = []
    discarded = 0
    for (start, run_length), (next_start, _) in zip(runs, runs[1:]):
        length = (next_start - start).days
        if not bounds.accepts(length):
            discarded += 1
            continue

        inside = [r for r in ordered if start <= r.date <= next_start]
        before_next = [r for r in inside if r.date < next_start]
        cycles.append(
            Cycle(
                start=start,
                length=length,
                symptoms=_union_symptoms(inside),
                period_length=run_length,
                dominant_mood=_dominant_mood(before_next),
            )
        )

    if discarded:
        logger.debug(
            "Discarded %d interval(s) outside %d–%d days (inclusive=%s)",
            discarded, bounds.min_days, bounds.max_days, bounds.inclusive,
        )
    return cycles
