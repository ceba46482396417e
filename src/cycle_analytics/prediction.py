"""Calendar-based predictions: next period, ovulation, fertile window, forecasts.

All predictions are anchored on a single date, the start of the most recent
known period.  The facade picks the later of ``CycleConfig.last_period_date``
and the most recent flow run in the *full* record history, so a narrow
report window never hides a recent period.

Fertile window variants:
    - full report   → ovulation - 2 .. ovulation + 2
    - summary report → ovulation - 3 .. ovulation + 1
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Sequence

from src.cycle_analytics.base import Regularity
from src.cycle_analytics.config_loader import (
    AccuracyConfig,
    FertileWindowSpec,
    PredictionConfig,
    get_analytics_config,
)
from src.cycle_analytics.cycle_statistics import round_half_up

logger = logging.getLogger("entrefases.cycle_analytics.prediction")

_ACCURACY_LABELS: dict[Regularity, str] = {
    Regularity.very_regular: "high",
    Regularity.regular: "good",
    Regularity.irregular: "moderate",
    Regularity.very_irregular: "low",
}


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range, optionally with a confidence percentage."""

    start: date
    end: date
    confidence: int | None = None


@dataclass(frozen=True)
class ForecastCycle:
    """One forecast period: start and displayed end."""

    cycle_number: int
    start: date
    end: date


@dataclass(frozen=True)
class Prediction:
    """Prediction for the user's next cycle.

    Attributes:
        anchor:            Start of the most recent known period.
        cycle_length:      Cycle length used for the projection.
        next_period:       Best estimate for the next period start.
        next_period_range: Earliest/latest plausible next period start.
        ovulation:         Best estimate for the next ovulation.
        ovulation_range:   Earliest/latest plausible ovulation.
        fertile_window:    Predicted fertile window.
        future_cycles:     Forecasts for the following cycles.
        accuracy_percent:  Model accuracy the range confidences derive from.
    """

    anchor: date
    cycle_length: int
    next_period: date
    next_period_range: DateRange
    ovulation: date
    ovulation_range: DateRange
    fertile_window: DateRange
    future_cycles: tuple[ForecastCycle, ...] = field(default_factory=tuple)
    accuracy_percent: int | None = None


def next_period(anchor: date, cycle_length: int) -> date:
    return anchor + timedelta(days=cycle_length)


def ovulation_date(next_period_date: date, luteal_days: int = 14) -> date:
    return next_period_date - timedelta(days=luteal_days)


def fertile_window(ovulation: date, spec: FertileWindowSpec) -> DateRange:
    return DateRange(
        start=ovulation - timedelta(days=spec.days_before),
        end=ovulation + timedelta(days=spec.days_after),
    )


def future_cycles(
    anchor: date,
    cycle_length: int,
    period_days: int,
    n: int = 3,
) -> list[ForecastCycle]:
    """Project the next ``n`` period starts.

    Args:
        anchor:       Start of the most recent known period.
        cycle_length: Days between period starts.
        period_days:  Days added to each start to get the displayed end.
        n:            Number of cycles to forecast.
    """
    forecasts = []
    for i in range(1, n + 1):
        start = anchor + timedelta(days=cycle_length * i)
        forecasts.append(
            ForecastCycle(cycle_number=i, start=start, end=start + timedelta(days=period_days))
        )
    return forecasts


def accuracy_label(regularity: Regularity) -> str:
    """Confidence label for predictions, derived from cycle regularity."""
    return _ACCURACY_LABELS[regularity]


def model_accuracy(cycle_lengths: Sequence[int], config: AccuracyConfig | None = None) -> int:
    """Prediction model accuracy in percent.

    With fewer than ``config.min_cycles`` cycles the fixed fallback is used.
    Otherwise accuracy grows with consistency (``1 - sd / mean``, floored at 0)
    and with the number of cycles, capped at ``config.ceiling``.
    """
    config = config or get_analytics_config().prediction.accuracy
    if len(cycle_lengths) < config.min_cycles:
        return config.fallback

    mean = statistics.mean(cycle_lengths)
    consistency = max(0.0, 1 - statistics.pstdev(cycle_lengths) / mean)
    data_bonus = min(config.max_data_bonus, len(cycle_lengths))
    score = config.base + consistency * config.consistency_points + data_bonus
    return min(config.ceiling, round_half_up(score))


def predict(
    anchor: date,
    cycle_length: int,
    period_length: int,
    window: FertileWindowSpec | None = None,
    config: PredictionConfig | None = None,
    accuracy: int | None = None,
) -> Prediction:
    """Build a full prediction from an anchor date.

    Args:
        anchor:        Start of the most recent known period.
        cycle_length:  Cycle length to project with.
        period_length: The user's average period length.
        window:        Fertile window variant (defaults to the report variant).
        config:        Prediction settings.
        accuracy:      Model accuracy (see ``model_accuracy``).  When given,
                       every range carries a confidence derived from it.

    Returns:
        Prediction with next period, ovulation, fertile window and forecasts.
    """
    config = config or get_analytics_config().prediction
    window = window or config.report_window

    predicted_start = next_period(anchor, cycle_length)
    predicted_ov = ovulation_date(predicted_start, config.luteal_days)
    period_margin = timedelta(days=config.next_period_margin_days)
    ov_margin = timedelta(days=config.ovulation_margin_days)
    forecast_days = config.forecast_period_days or period_length

    rules = config.accuracy
    fertile = fertile_window(predicted_ov, window)
    if accuracy is not None:
        fertile = replace(fertile, confidence=rules.fertile_window.apply(accuracy))

    prediction = Prediction(
        anchor=anchor,
        cycle_length=cycle_length,
        next_period=predicted_start,
        next_period_range=DateRange(
            predicted_start - period_margin,
            predicted_start + period_margin,
            rules.next_period.apply(accuracy) if accuracy is not None else None,
        ),
        ovulation=predicted_ov,
        ovulation_range=DateRange(
            predicted_ov - ov_margin,
            predicted_ov + ov_margin,
            rules.ovulation.apply(accuracy) if accuracy is not None else None,
        ),
        fertile_window=fertile,
        future_cycles=tuple(
            future_cycles(anchor, cycle_length, forecast_days, config.forecast_cycles)
        ),
        accuracy_percent=accuracy,
    )
    logger.debug(
        "Predicted next period %s from anchor %s (length %d)",
        prediction.next_period, anchor, cycle_length,
    )
    return prediction
