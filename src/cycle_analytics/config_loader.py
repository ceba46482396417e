"""Load, validate, and hot-reload the cycle analytics configuration.

The config lives in ``analytics_config.yaml`` alongside this module.  At
startup it is loaded once and cached.  Call ``reload_analytics_config()`` to
re-read from disk after an admin update, no restart required.

Usage::

    from src.cycle_analytics.config_loader import get_analytics_config

    config = get_analytics_config()
    config.report_bounds.accepts(28)          # True
    config.scoring.health.base                # 85
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("entrefases.cycle_analytics.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "analytics_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CycleBounds:
    """Accepted range for the gap between two period starts.

    ``inclusive=False`` excludes both ends, so ``CycleBounds(20, 40, False)``
    accepts 21–39.
    """

    min_days: int = 21
    max_days: int = 40
    inclusive: bool = True

    def accepts(self, length: int) -> bool:
        if self.inclusive:
            return self.min_days <= length <= self.max_days
        return self.min_days < length < self.max_days


@dataclass(frozen=True)
class VariationPenalty:
    above_days: float
    penalty: int


@dataclass(frozen=True)
class CycleBonus:
    min_cycles: int
    bonus: int


@dataclass(frozen=True)
class RecordBonus:
    above_records: int
    bonus: int


@dataclass(frozen=True)
class HealthScoreConfig:
    """Health score heuristic: base, penalties and bonuses."""

    base: int = 85
    variation_penalties: tuple[VariationPenalty, ...] = (
        VariationPenalty(3, 10),
        VariationPenalty(7, 15),
    )
    concerning_symptoms: tuple[str, ...] = (
        "Cólicas severas",
        "Sangramento excessivo",
        "Dor intensa",
    )
    concerning_frequency_pct: int = 50
    concerning_penalty: int = 20
    cycle_bonuses: tuple[CycleBonus, ...] = (CycleBonus(3, 10), CycleBonus(6, 5))


@dataclass(frozen=True)
class DataQualityConfig:
    """Data-quality score heuristic."""

    base: int = 50
    record_bonuses: tuple[RecordBonus, ...] = (
        RecordBonus(30, 20),
        RecordBonus(60, 15),
        RecordBonus(90, 10),
    )
    symptom_coverage_points: int = 25
    mood_coverage_points: int = 15
    min_cycles: int = 3
    cycle_bonus: int = 10


@dataclass(frozen=True)
class RegularityConfig:
    """Inclusive upper bounds of cycle-length variation (days) per class."""

    very_regular: float = 2
    regular: float = 4
    irregular: float = 7


@dataclass(frozen=True)
class ScoringConfig:
    health: HealthScoreConfig = field(default_factory=HealthScoreConfig)
    data_quality: DataQualityConfig = field(default_factory=DataQualityConfig)
    regularity: RegularityConfig = field(default_factory=RegularityConfig)


@dataclass(frozen=True)
class TrendConfig:
    """Symptom/mood trend settings."""

    symptom_limit: int = 10
    summary_symptom_limit: int = 5
    mood_limit: int = 8
    monthly_limit: int = 6
    correlation_limit: int = 5
    comparison_months: int = 3
    up_ratio: float = 1.2
    down_ratio: float = 0.8
    default_color: str = "#757575"
    mood_colors: dict[str, str] = field(default_factory=dict)
    daily_series_days: int = 30
    neutral_mood_score: int = 3
    mood_weights: dict[str, int] = field(default_factory=dict)

    def color_for(self, label: str) -> str:
        return self.mood_colors.get(label, self.default_color)

    def mood_score(self, mood: str | None) -> int:
        if mood is None:
            return self.neutral_mood_score
        return self.mood_weights.get(mood, self.neutral_mood_score)


@dataclass(frozen=True)
class FertileWindowSpec:
    """Days before/after predicted ovulation that make up the fertile window."""

    days_before: int
    days_after: int


@dataclass(frozen=True)
class ConfidenceRule:
    """Per-prediction confidence: model accuracy minus ``offset``, at least ``floor``."""

    offset: int
    floor: int

    def apply(self, accuracy: int) -> int:
        return max(self.floor, accuracy - self.offset)


@dataclass(frozen=True)
class AccuracyConfig:
    """Model accuracy from cycle-length consistency plus a data-volume bonus."""

    min_cycles: int = 3
    fallback: int = 65
    base: int = 70
    consistency_points: int = 25
    max_data_bonus: int = 10
    ceiling: int = 95
    next_period: ConfidenceRule = ConfidenceRule(5, 60)
    ovulation: ConfidenceRule = ConfidenceRule(10, 55)
    fertile_window: ConfidenceRule = ConfidenceRule(5, 70)


@dataclass(frozen=True)
class PredictionConfig:
    """Next-period / ovulation / forecast settings."""

    luteal_days: int = 14
    default_cycle_length: int = 28
    report_window: FertileWindowSpec = FertileWindowSpec(2, 2)
    summary_window: FertileWindowSpec = FertileWindowSpec(3, 1)
    next_period_margin_days: int = 2
    ovulation_margin_days: int = 1
    forecast_cycles: int = 3
    forecast_period_days: int | None = None
    accuracy: AccuracyConfig = field(default_factory=AccuracyConfig)


@dataclass(frozen=True)
class InsightConfig:
    """Thresholds for the insight / recommendation / risk rules."""

    max_insights: int = 6
    max_recommendations: int = 6
    low_health_score: int = 70
    top_symptom_frequency_pct: int = 60
    prediction_ready_cycles: int = 6
    pain_symptoms: tuple[str, ...] = ("Cólicas severas", "Dor intensa")
    pain_frequency_pct: int = 40
    severe_symptoms: tuple[str, ...] = (
        "Sangramento excessivo",
        "Dor extrema",
        "Cólicas severas",
    )
    severe_frequency_pct: int = 30
    short_cycle_days: int = 21
    long_cycle_days: int = 35


@dataclass(frozen=True)
class AnalyticsConfig:
    """Complete, validated analytics configuration.

    This is the single in-memory representation of analytics_config.yaml.
    Every engine component reads its thresholds from this object.

    Attributes:
        version:               Config schema version string.
        report_bounds:         Cycle validity bounds for the full report.
        summary_bounds:        Cycle validity bounds for the summary report.
        min_records_in_window: Records required in a window to build a report.
        scoring:               Health / data-quality / regularity settings.
        trends:                Symptom and mood trend settings.
        prediction:            Prediction and forecast settings.
        insights:              Rule-engine thresholds.
    """

    version: str = "1.0"
    report_bounds: CycleBounds = CycleBounds(21, 40, True)
    summary_bounds: CycleBounds = CycleBounds(20, 40, False)
    min_records_in_window: int = 5
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    trends: TrendConfig = field(default_factory=TrendConfig)
    prediction: PredictionConfig = field(default_factory=PredictionConfig)
    insights: InsightConfig = field(default_factory=InsightConfig)
    _raw: dict = field(default_factory=dict, repr=False, compare=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when analytics_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Analytics config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> AnalyticsConfig:
    """Validate the raw YAML dict and construct an AnalyticsConfig.

    Missing optional keys fall back to the dataclass defaults.  Every problem
    found is collected and reported in a single ConfigValidationError.
    """
    errors: list[str] = []

    def _int(section: dict, key: str, default: int, where: str, minimum: int = 0) -> int:
        val = section.get(key, default)
        try:
            num = int(val)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be an integer, got {val!r}")
            return default
        if num < minimum:
            errors.append(f"{where}.{key} = {num} must be >= {minimum}")
        return num

    def _float(section: dict, key: str, default: float, where: str) -> float:
        val = section.get(key, default)
        try:
            return float(val)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be a number, got {val!r}")
            return default

    def _section(d: Any, key: str, where: str) -> dict:
        val = d.get(key) if isinstance(d, dict) else None
        if val is None:
            return {}
        if not isinstance(val, dict):
            errors.append(f"{where}{key} must be a mapping")
            return {}
        return val

    def _str_list(section: dict, key: str, default: tuple[str, ...], where: str) -> tuple[str, ...]:
        val = section.get(key)
        if val is None:
            return default
        if not isinstance(val, list) or not all(isinstance(v, str) for v in val):
            errors.append(f"{where}.{key} must be a list of strings")
            return default
        return tuple(val)

    version = str(raw.get("version", "1.0"))

    # ── Cycle bounds ──
    cb_raw = _section(raw, "cycle_bounds", "")

    def _bounds(key: str, default: CycleBounds) -> CycleBounds:
        b_raw = _section(cb_raw, key, "cycle_bounds.")
        bounds = CycleBounds(
            min_days=_int(b_raw, "min_days", default.min_days, f"cycle_bounds.{key}", 1),
            max_days=_int(b_raw, "max_days", default.max_days, f"cycle_bounds.{key}", 1),
            inclusive=bool(b_raw.get("inclusive", default.inclusive)),
        )
        if bounds.min_days >= bounds.max_days:
            errors.append(
                f"cycle_bounds.{key}: min_days ({bounds.min_days}) must be below "
                f"max_days ({bounds.max_days})"
            )
        return bounds

    report_bounds = _bounds("report", CycleBounds(21, 40, True))
    summary_bounds = _bounds("summary", CycleBounds(20, 40, False))
    min_records = _int(raw, "min_records_in_window", 5, "root", 1)

    # ── Scoring ──
    sc_raw = _section(raw, "scoring", "")
    hs_raw = _section(sc_raw, "health", "scoring.")
    hs_default = HealthScoreConfig()

    penalties: list[VariationPenalty] = []
    for item in hs_raw.get("variation_penalties", []) or []:
        if not isinstance(item, dict):
            errors.append("scoring.health.variation_penalties entries must be mappings")
            continue
        penalties.append(
            VariationPenalty(
                above_days=_float(item, "above_days", 0.0, "scoring.health.variation_penalties"),
                penalty=_int(item, "penalty", 0, "scoring.health.variation_penalties"),
            )
        )

    cycle_bonuses: list[CycleBonus] = []
    for item in hs_raw.get("cycle_bonuses", []) or []:
        if not isinstance(item, dict):
            errors.append("scoring.health.cycle_bonuses entries must be mappings")
            continue
        cycle_bonuses.append(
            CycleBonus(
                min_cycles=_int(item, "min_cycles", 0, "scoring.health.cycle_bonuses"),
                bonus=_int(item, "bonus", 0, "scoring.health.cycle_bonuses"),
            )
        )

    health = HealthScoreConfig(
        base=_int(hs_raw, "base", hs_default.base, "scoring.health"),
        variation_penalties=tuple(penalties) if "variation_penalties" in hs_raw else hs_default.variation_penalties,
        concerning_symptoms=_str_list(
            hs_raw, "concerning_symptoms", hs_default.concerning_symptoms, "scoring.health"
        ),
        concerning_frequency_pct=_int(
            hs_raw, "concerning_frequency_pct", hs_default.concerning_frequency_pct, "scoring.health"
        ),
        concerning_penalty=_int(
            hs_raw, "concerning_penalty", hs_default.concerning_penalty, "scoring.health"
        ),
        cycle_bonuses=tuple(cycle_bonuses) if "cycle_bonuses" in hs_raw else hs_default.cycle_bonuses,
    )

    dq_raw = _section(sc_raw, "data_quality", "scoring.")
    dq_default = DataQualityConfig()
    record_bonuses: list[RecordBonus] = []
    for item in dq_raw.get("record_bonuses", []) or []:
        if not isinstance(item, dict):
            errors.append("scoring.data_quality.record_bonuses entries must be mappings")
            continue
        record_bonuses.append(
            RecordBonus(
                above_records=_int(item, "above_records", 0, "scoring.data_quality.record_bonuses"),
                bonus=_int(item, "bonus", 0, "scoring.data_quality.record_bonuses"),
            )
        )
    data_quality = DataQualityConfig(
        base=_int(dq_raw, "base", dq_default.base, "scoring.data_quality"),
        record_bonuses=tuple(record_bonuses) if "record_bonuses" in dq_raw else dq_default.record_bonuses,
        symptom_coverage_points=_int(
            dq_raw, "symptom_coverage_points", dq_default.symptom_coverage_points, "scoring.data_quality"
        ),
        mood_coverage_points=_int(
            dq_raw, "mood_coverage_points", dq_default.mood_coverage_points, "scoring.data_quality"
        ),
        min_cycles=_int(dq_raw, "min_cycles", dq_default.min_cycles, "scoring.data_quality"),
        cycle_bonus=_int(dq_raw, "cycle_bonus", dq_default.cycle_bonus, "scoring.data_quality"),
    )

    rg_raw = _section(sc_raw, "regularity", "scoring.")
    rg_default = RegularityConfig()
    regularity = RegularityConfig(
        very_regular=_float(rg_raw, "very_regular", rg_default.very_regular, "scoring.regularity"),
        regular=_float(rg_raw, "regular", rg_default.regular, "scoring.regularity"),
        irregular=_float(rg_raw, "irregular", rg_default.irregular, "scoring.regularity"),
    )
    if not (regularity.very_regular <= regularity.regular <= regularity.irregular):
        errors.append("scoring.regularity thresholds must be ascending")

    scoring = ScoringConfig(health=health, data_quality=data_quality, regularity=regularity)

    # ── Trends ──
    tr_raw = _section(raw, "trends", "")
    tr_default = TrendConfig()
    colors_raw = tr_raw.get("mood_colors", {}) or {}
    mood_colors: dict[str, str] = {}
    if not isinstance(colors_raw, dict):
        errors.append("trends.mood_colors must be a mapping of mood→color")
    else:
        for mood, color in colors_raw.items():
            if not isinstance(color, str):
                errors.append(f"trends.mood_colors.{mood} must be a string, got {color!r}")
                continue
            mood_colors[str(mood)] = color
    weights_raw = tr_raw.get("mood_weights", {}) or {}
    mood_weights: dict[str, int] = {}
    if not isinstance(weights_raw, dict):
        errors.append("trends.mood_weights must be a mapping of mood→score")
    else:
        for mood, weight in weights_raw.items():
            if isinstance(weight, bool) or not isinstance(weight, int):
                errors.append(f"trends.mood_weights.{mood} must be an integer, got {weight!r}")
                continue
            mood_weights[str(mood)] = weight
    trends = TrendConfig(
        symptom_limit=_int(tr_raw, "symptom_limit", tr_default.symptom_limit, "trends", 1),
        summary_symptom_limit=_int(
            tr_raw, "summary_symptom_limit", tr_default.summary_symptom_limit, "trends", 1
        ),
        mood_limit=_int(tr_raw, "mood_limit", tr_default.mood_limit, "trends", 1),
        monthly_limit=_int(tr_raw, "monthly_limit", tr_default.monthly_limit, "trends", 1),
        correlation_limit=_int(tr_raw, "correlation_limit", tr_default.correlation_limit, "trends", 1),
        comparison_months=_int(tr_raw, "comparison_months", tr_default.comparison_months, "trends", 1),
        up_ratio=_float(tr_raw, "up_ratio", tr_default.up_ratio, "trends"),
        down_ratio=_float(tr_raw, "down_ratio", tr_default.down_ratio, "trends"),
        default_color=str(tr_raw.get("default_color", tr_default.default_color)),
        mood_colors=mood_colors,
        daily_series_days=_int(tr_raw, "daily_series_days", tr_default.daily_series_days, "trends", 1),
        neutral_mood_score=_int(
            tr_raw, "neutral_mood_score", tr_default.neutral_mood_score, "trends"
        ),
        mood_weights=mood_weights,
    )
    if not (trends.down_ratio < 1.0 < trends.up_ratio):
        errors.append(
            f"trends: down_ratio ({trends.down_ratio}) must be < 1.0 < up_ratio ({trends.up_ratio})"
        )

    # ── Prediction ──
    pr_raw = _section(raw, "prediction", "")
    pr_default = PredictionConfig()
    fw_raw = _section(pr_raw, "fertile_window", "prediction.")

    def _window(key: str, default: FertileWindowSpec) -> FertileWindowSpec:
        w_raw = _section(fw_raw, key, "prediction.fertile_window.")
        return FertileWindowSpec(
            days_before=_int(w_raw, "days_before", default.days_before, f"prediction.fertile_window.{key}"),
            days_after=_int(w_raw, "days_after", default.days_after, f"prediction.fertile_window.{key}"),
        )

    forecast_days_raw = pr_raw.get("forecast_period_days")
    forecast_days: int | None = None
    if forecast_days_raw is not None:
        forecast_days = _int(pr_raw, "forecast_period_days", 5, "prediction", 1)

    ac_raw = _section(pr_raw, "accuracy", "prediction.")
    ac_default = AccuracyConfig()
    cf_raw = _section(ac_raw, "confidence", "prediction.accuracy.")

    def _confidence(key: str, default: ConfidenceRule) -> ConfidenceRule:
        c_raw = _section(cf_raw, key, "prediction.accuracy.confidence.")
        where = f"prediction.accuracy.confidence.{key}"
        return ConfidenceRule(
            offset=_int(c_raw, "offset", default.offset, where),
            floor=_int(c_raw, "floor", default.floor, where),
        )

    accuracy = AccuracyConfig(
        min_cycles=_int(ac_raw, "min_cycles", ac_default.min_cycles, "prediction.accuracy", 1),
        fallback=_int(ac_raw, "fallback", ac_default.fallback, "prediction.accuracy"),
        base=_int(ac_raw, "base", ac_default.base, "prediction.accuracy"),
        consistency_points=_int(
            ac_raw, "consistency_points", ac_default.consistency_points, "prediction.accuracy"
        ),
        max_data_bonus=_int(ac_raw, "max_data_bonus", ac_default.max_data_bonus, "prediction.accuracy"),
        ceiling=_int(ac_raw, "ceiling", ac_default.ceiling, "prediction.accuracy"),
        next_period=_confidence("next_period", ac_default.next_period),
        ovulation=_confidence("ovulation", ac_default.ovulation),
        fertile_window=_confidence("fertile_window", ac_default.fertile_window),
    )
    if accuracy.ceiling > 100 or accuracy.fallback > accuracy.ceiling:
        errors.append(
            f"prediction.accuracy: fallback ({accuracy.fallback}) must not exceed "
            f"ceiling ({accuracy.ceiling}), and ceiling must be <= 100"
        )

    prediction = PredictionConfig(
        luteal_days=_int(pr_raw, "luteal_days", pr_default.luteal_days, "prediction", 1),
        default_cycle_length=_int(
            pr_raw, "default_cycle_length", pr_default.default_cycle_length, "prediction", 1
        ),
        report_window=_window("report", pr_default.report_window),
        summary_window=_window("summary", pr_default.summary_window),
        next_period_margin_days=_int(
            pr_raw, "next_period_margin_days", pr_default.next_period_margin_days, "prediction"
        ),
        ovulation_margin_days=_int(
            pr_raw, "ovulation_margin_days", pr_default.ovulation_margin_days, "prediction"
        ),
        forecast_cycles=_int(pr_raw, "forecast_cycles", pr_default.forecast_cycles, "prediction"),
        forecast_period_days=forecast_days,
        accuracy=accuracy,
    )

    # ── Insights ──
    in_raw = _section(raw, "insights", "")
    in_default = InsightConfig()
    insights = InsightConfig(
        max_insights=_int(in_raw, "max_insights", in_default.max_insights, "insights", 1),
        max_recommendations=_int(
            in_raw, "max_recommendations", in_default.max_recommendations, "insights", 1
        ),
        low_health_score=_int(in_raw, "low_health_score", in_default.low_health_score, "insights"),
        top_symptom_frequency_pct=_int(
            in_raw, "top_symptom_frequency_pct", in_default.top_symptom_frequency_pct, "insights"
        ),
        prediction_ready_cycles=_int(
            in_raw, "prediction_ready_cycles", in_default.prediction_ready_cycles, "insights"
        ),
        pain_symptoms=_str_list(in_raw, "pain_symptoms", in_default.pain_symptoms, "insights"),
        pain_frequency_pct=_int(in_raw, "pain_frequency_pct", in_default.pain_frequency_pct, "insights"),
        severe_symptoms=_str_list(in_raw, "severe_symptoms", in_default.severe_symptoms, "insights"),
        severe_frequency_pct=_int(
            in_raw, "severe_frequency_pct", in_default.severe_frequency_pct, "insights"
        ),
        short_cycle_days=_int(in_raw, "short_cycle_days", in_default.short_cycle_days, "insights"),
        long_cycle_days=_int(in_raw, "long_cycle_days", in_default.long_cycle_days, "insights"),
    )

    if errors:
        raise ConfigValidationError(
            f"analytics_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return AnalyticsConfig(
        version=version,
        report_bounds=report_bounds,
        summary_bounds=summary_bounds,
        min_records_in_window=min_records,
        scoring=scoring,
        trends=trends,
        prediction=prediction,
        insights=insights,
        _raw=raw,
    )


def load_analytics_config(path: Path | None = None) -> AnalyticsConfig:
    """Load and validate the analytics config from disk.

    Args:
        path: Override path to YAML. Uses the bundled analytics_config.yaml by default.

    Returns:
        Validated AnalyticsConfig instance.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"{target} must contain a mapping at the top level")
    config = _validate_and_build(raw)
    logger.info("Loaded analytics config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: AnalyticsConfig | None = None
_config_lock = threading.Lock()


def get_analytics_config() -> AnalyticsConfig:
    """Return the global AnalyticsConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_analytics_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_analytics_config()
    return _config


def reload_analytics_config(path: Path | None = None) -> AnalyticsConfig:
    """Reload the analytics config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_analytics_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info(
        "Reloaded analytics config: %s → %s",
        old_version,
        new_config.version,
    )
    return new_config
