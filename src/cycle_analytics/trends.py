"""Symptom trends, mood distribution, monthly and daily series, symptom↔mood pairs.

All functions take the records of the selected window and return plain
result dataclasses, sorted and capped for display.  Frequencies are always
expressed as a share of *all* records in the window, not only of the records
carrying a symptom or mood.
"""

from __future__ import annotations

import logging
import statistics
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence

from src.cycle_analytics.base import Cycle, DailyRecord, TrendDirection
from src.cycle_analytics.config_loader import TrendConfig, get_analytics_config
from src.cycle_analytics.cycle_statistics import round_half_up

logger = logging.getLogger("entrefases.cycle_analytics.trends")


@dataclass(frozen=True)
class SymptomTrend:
    """Frequency and direction for one symptom.

    Attributes:
        name:              Symptom identifier.
        frequency_percent: Share of records mentioning the symptom (0–100).
        trend:             Recent months vs earliest months.
    """

    name: str
    frequency_percent: int
    trend: TrendDirection = TrendDirection.stable


@dataclass(frozen=True)
class MoodShare:
    mood: str
    percentage: int
    color: str


@dataclass(frozen=True)
class MonthlyTrend:
    """Aggregate for one calendar month.

    Attributes:
        month:     ``YYYY-MM``.
        avg_cycle: Mean length of cycles starting in the month (0 if none).
        symptoms:  Total symptom mentions in the month.
    """

    month: str
    avg_cycle: int
    symptoms: int


@dataclass(frozen=True)
class DailyPoint:
    """One day of the daily series.

    Attributes:
        day:        Calendar date.
        symptoms:   Symptoms logged that day (0 without a record).
        mood_score: Weighted mood, 1 (low) to 5 (high); neutral when unknown.
    """

    day: date
    symptoms: int
    mood_score: int


@dataclass(frozen=True)
class SymptomMoodCorrelation:
    symptom: str
    mood: str
    count: int


def _month_key(record: DailyRecord) -> str:
    return record.date.strftime("%Y-%m")


def _trend_direction(
    monthly_counts: dict[str, int],
    months: list[str],
    config: TrendConfig,
) -> TrendDirection:
    """Compare the mean monthly count of the latest vs the earliest months."""
    if len(months) < 2:
        return TrendDirection.stable

    n = config.comparison_months
    recent = statistics.mean(monthly_counts.get(m, 0) for m in months[-n:])
    old = statistics.mean(monthly_counts.get(m, 0) for m in months[:n])

    if recent == old:
        return TrendDirection.stable
    if recent >= old * config.up_ratio:
        return TrendDirection.up
    if recent <= old * config.down_ratio:
        return TrendDirection.down
    return TrendDirection.stable


def symptom_trends(
    records: Sequence[DailyRecord],
    limit: int | None = None,
    config: TrendConfig | None = None,
) -> list[SymptomTrend]:
    """Most frequent symptoms with their trend direction.

    Args:
        records: Records of the selected window.
        limit:   Maximum entries returned (defaults to ``config.symptom_limit``).
        config:  Trend settings.

    Returns:
        Symptoms sorted by frequency descending; ties keep first-seen order.
    """
    config = config or get_analytics_config().trends
    limit = limit or config.symptom_limit
    if not records:
        return []

    occurrences: dict[str, int] = {}
    monthly: dict[str, dict[str, int]] = defaultdict(dict)
    months: set[str] = set()

    for record in records:
        month = _month_key(record)
        months.add(month)
        for symptom in dict.fromkeys(record.symptoms):
            occurrences[symptom] = occurrences.get(symptom, 0) + 1
            monthly[symptom][month] = monthly[symptom].get(month, 0) + 1

    ordered_months = sorted(months)
    total = len(records)
    trends = [
        SymptomTrend(
            name=symptom,
            frequency_percent=round_half_up(count / total * 100),
            trend=_trend_direction(monthly[symptom], ordered_months, config),
        )
        for symptom, count in occurrences.items()
    ]
    trends.sort(key=lambda t: t.frequency_percent, reverse=True)
    return trends[:limit]


def mood_distribution(
    records: Sequence[DailyRecord],
    limit: int | None = None,
    config: TrendConfig | None = None,
) -> list[MoodShare]:
    """Share of records per mood, tagged with a display color."""
    config = config or get_analytics_config().trends
    limit = limit or config.mood_limit
    if not records:
        return []

    counts: dict[str, int] = {}
    for record in records:
        if record.has_mood:
            counts[record.mood] = counts.get(record.mood, 0) + 1

    total = len(records)
    shares = [
        MoodShare(
            mood=mood,
            percentage=round_half_up(count / total * 100),
            color=config.color_for(mood),
        )
        for mood, count in counts.items()
    ]
    shares.sort(key=lambda s: s.percentage, reverse=True)
    return shares[:limit]


def monthly_trends(
    records: Sequence[DailyRecord],
    cycles: Sequence[Cycle],
    limit: int | None = None,
    config: TrendConfig | None = None,
) -> list[MonthlyTrend]:
    """Per-month symptom volume and mean cycle length, latest ``limit`` months."""
    config = config or get_analytics_config().trends
    limit = limit or config.monthly_limit

    symptom_totals: dict[str, int] = {}
    for record in records:
        month = _month_key(record)
        symptom_totals[month] = symptom_totals.get(month, 0) + len(record.symptoms)

    cycle_lengths: dict[str, list[int]] = defaultdict(list)
    for cycle in cycles:
        month = cycle.start.strftime("%Y-%m")
        # Only months that have records are reported
        if month in symptom_totals:
            cycle_lengths[month].append(cycle.length)

    series = [
        MonthlyTrend(
            month=month,
            avg_cycle=round_half_up(statistics.mean(cycle_lengths[month]))
            if cycle_lengths.get(month)
            else 0,
            symptoms=total,
        )
        for month, total in sorted(symptom_totals.items())
    ]
    return series[-limit:]


def daily_series(
    records: Sequence[DailyRecord],
    today: date,
    days: int | None = None,
    config: TrendConfig | None = None,
) -> list[DailyPoint]:
    """Symptom count and mood score for each of the last ``days`` days, oldest first.

    Every day in the range is present, including days without a record.
    """
    config = config or get_analytics_config().trends
    days = days or config.daily_series_days
    by_day = {r.date: r for r in records}

    series = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        record = by_day.get(day)
        if record is None:
            series.append(DailyPoint(day=day, symptoms=0, mood_score=config.neutral_mood_score))
            continue
        series.append(
            DailyPoint(
                day=day,
                symptoms=len(record.symptoms),
                mood_score=config.mood_score(record.mood if record.has_mood else None),
            )
        )
    return series


def correlations(
    records: Sequence[DailyRecord],
    limit: int | None = None,
    config: TrendConfig | None = None,
) -> list[SymptomMoodCorrelation]:
    """Count how often each symptom is logged on the same day as each mood."""
    config = config or get_analytics_config().trends
    limit = limit or config.correlation_limit

    pairs: dict[tuple[str, str], int] = {}
    for record in records:
        if not record.has_mood:
            continue
        for symptom in dict.fromkeys(record.symptoms):
            key = (symptom, record.mood)
            pairs[key] = pairs.get(key, 0) + 1

    result = [
        SymptomMoodCorrelation(symptom=symptom, mood=mood, count=count)
        for (symptom, mood), count in pairs.items()
    ]
    result.sort(key=lambda c: c.count, reverse=True)
    return result[:limit]
