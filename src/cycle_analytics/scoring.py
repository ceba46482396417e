"""Heuristic health score, data-quality score and regularity classification.

These are explicit heuristics, NOT clinical measures.  The thresholds come
from ``analytics_config.yaml`` (``scoring`` section); every comparison is
strict exactly as configured, so a variation of 3.0 days does not trigger the
``above_days: 3`` penalty while 3.01 does.
"""

from __future__ import annotations

import logging
from typing import Sequence

from src.cycle_analytics.base import Cycle, DailyRecord, Regularity
from src.cycle_analytics.config_loader import (
    DataQualityConfig,
    HealthScoreConfig,
    RegularityConfig,
    get_analytics_config,
)
from src.cycle_analytics.cycle_statistics import round_half_up, variation
from src.cycle_analytics.trends import SymptomTrend

logger = logging.getLogger("entrefases.cycle_analytics.scoring")


def _clamp(score: float) -> int:
    return max(0, min(100, round_half_up(score)))


def matches_any(name: str, patterns: Sequence[str]) -> bool:
    """True if the symptom name contains any of the listed symptom names."""
    return any(p in name for p in patterns)


def health_score(
    cycles: Sequence[Cycle],
    symptoms: Sequence[SymptomTrend],
    config: HealthScoreConfig | None = None,
) -> int:
    """Compute the 0–100 health score.

    Args:
        cycles:   Reconstructed cycles of the window.
        symptoms: Symptom trends of the window (frequency in percent).
        config:   Health score settings.

    Returns:
        Score clamped to [0, 100].
    """
    config = config or get_analytics_config().scoring.health
    score = config.base

    cycle_variation = variation([c.length for c in cycles])
    # Penalties are cumulative
    for step in config.variation_penalties:
        if cycle_variation > step.above_days:
            score -= step.penalty

    if any(
        matches_any(s.name, config.concerning_symptoms)
        and s.frequency_percent > config.concerning_frequency_pct
        for s in symptoms
    ):
        score -= config.concerning_penalty

    for bonus in config.cycle_bonuses:
        if len(cycles) >= bonus.min_cycles:
            score += bonus.bonus

    return _clamp(score)


def data_quality(
    records: Sequence[DailyRecord],
    cycle_count: int,
    config: DataQualityConfig | None = None,
) -> int:
    """Compute the 0–100 data-quality score.

    Rewards volume (stepped bonuses), symptom and mood coverage
    (proportional), and enough reconstructed cycles.
    """
    config = config or get_analytics_config().scoring.data_quality
    quality = config.base
    total = len(records)

    for step in config.record_bonuses:
        if total > step.above_records:
            quality += step.bonus

    if total > 0:
        with_symptoms = sum(1 for r in records if r.has_symptoms)
        with_mood = sum(1 for r in records if r.has_mood)
        quality += round_half_up(with_symptoms / total * config.symptom_coverage_points)
        quality += round_half_up(with_mood / total * config.mood_coverage_points)

    if cycle_count >= config.min_cycles:
        quality += config.cycle_bonus

    return _clamp(quality)


def regularity(
    cycle_variation: float,
    config: RegularityConfig | None = None,
) -> Regularity:
    """Classify cycle-length variation (days) into four regularity levels."""
    config = config or get_analytics_config().scoring.regularity
    if cycle_variation <= config.very_regular:
        return Regularity.very_regular
    if cycle_variation <= config.regular:
        return Regularity.regular
    if cycle_variation <= config.irregular:
        return Regularity.irregular
    return Regularity.very_irregular
