"""Entre Fases Cycle Analytics & Prediction Engine.

Turns the append-only daily log plus the user's cycle configuration into
reconstructed cycles, statistics, trends, heuristic scores, the current
phase, predictions and plain-language insights.

Core modules:
    base: Canonical types, error taxonomy, RecordStore ABC
    config_loader: Load/validate analytics_config.yaml
    store: In-memory and key-value RecordStore adapters
    reconstructor: Historical cycles from flow records
    cycle_statistics: Average / variation / min / max cycle length
    trends: Symptom trends, mood distribution, monthly series
    scoring: Health score, data quality, regularity
    phase: Current cycle phase
    prediction: Next period, ovulation, fertile window, forecasts
    insights: Rule-based insights, recommendations, risk factors
    facade: AnalyticsFacade, the entry point for callers
"""

from src.cycle_analytics.base import (
    Cycle,
    CycleAnalyticsError,
    CycleConfig,
    CyclePhase,
    CorruptedDataError,
    DailyRecord,
    MalformedRecordError,
    RecordStore,
    Regularity,
    ReportStatus,
    TrendDirection,
)
from src.cycle_analytics.config_loader import AnalyticsConfig, get_analytics_config

__all__ = [
    "RecordStore",
    "DailyRecord",
    "CycleConfig",
    "Cycle",
    "CyclePhase",
    "Regularity",
    "TrendDirection",
    "ReportStatus",
    "CycleAnalyticsError",
    "CorruptedDataError",
    "MalformedRecordError",
    "AnalyticsConfig",
    "get_analytics_config",
]
