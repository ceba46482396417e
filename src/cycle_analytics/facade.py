"""Analytics facade: the single entry point callers use.

Reads one snapshot from a ``RecordStore``, filters it by time window and
composes the pure engine functions into an immutable report:

    snapshot → window filter → reconstruct → statistics / trends / scoring
             → phase + prediction (full history) → insights → report

Predictions and the current phase are anchored on the *full* history, every
other section only sees the records of the selected window.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import date
from enum import Enum
from typing import Any

from dateutil.relativedelta import relativedelta

from src.cycle_analytics.base import (
    INSUFFICIENT_DATA,
    CorruptedDataError,
    Cycle,
    CycleConfig,
    DailyRecord,
    MalformedRecordError,
    RecordStore,
    Regularity,
    ReportStatus,
    StoreSnapshot,
)
from src.cycle_analytics.config_loader import (
    AnalyticsConfig,
    FertileWindowSpec,
    get_analytics_config,
)
from src.cycle_analytics.cycle_statistics import average, longest, shortest, variation
from src.cycle_analytics.insights import (
    AnalysisContext,
    generate_insights,
    generate_recommendations,
    identify_risk_factors,
)
from src.cycle_analytics.phase import PhaseInfo, current_phase
from src.cycle_analytics.prediction import (
    Prediction,
    accuracy_label,
    model_accuracy,
    predict,
)
from src.cycle_analytics.reconstructor import cycle_gaps, latest_period_start, reconstruct
from src.cycle_analytics.scoring import data_quality, health_score, regularity
from src.cycle_analytics.trends import (
    DailyPoint,
    MonthlyTrend,
    MoodShare,
    SymptomMoodCorrelation,
    SymptomTrend,
    correlations,
    daily_series,
    monthly_trends,
    mood_distribution,
    symptom_trends,
)

logger = logging.getLogger("entrefases.cycle_analytics.facade")

NO_DATA_MESSAGE = "No data yet. Log your first day or set up your cycle to see your analytics."
NO_RECORDS_MESSAGE = "No daily records yet. Predictions are based on your cycle settings only."
FEW_RECORDS_MESSAGE = (
    "Not enough records in the selected period (at least {minimum} needed). Keep logging!"
)
CORRUPTED_MESSAGE = "Your stored data appears to be corrupted. Please reload the app."

RECENT_CYCLES = 6
DEFAULT_PERIOD_LENGTH = 5


class TimeWindow(str, Enum):
    three_months = "3m"
    six_months = "6m"
    one_year = "1y"
    all_time = "all"

    def cutoff(self, today: date) -> date | None:
        """Records must be dated strictly after this day; None keeps everything."""
        months = {"3m": 3, "6m": 6, "1y": 12}.get(self.value)
        if months is None:
            return None
        return today - relativedelta(months=months)

    def filter(self, records: tuple[DailyRecord, ...], today: date) -> tuple[DailyRecord, ...]:
        cutoff = self.cutoff(today)
        if cutoff is None:
            return records
        return tuple(r for r in records if r.date > cutoff)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _plain(value: Any) -> Any:
    """Convert dataclasses, enums, dates and tuples into JSON-ready values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def _or_sentinel(value: Any, cls: type) -> dict[str, Any]:
    """Render a dataclass, or every one of its fields as the sentinel text."""
    if value is None:
        return {f.name: INSUFFICIENT_DATA for f in fields(cls)}
    return _plain(value)


class _JsonReport:
    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    def to_json(self, sort_keys: bool = True, indent: int | None = None) -> str:
        """Serialize to JSON.  Sorted keys make equal reports byte-identical."""
        return json.dumps(self.to_dict(), sort_keys=sort_keys, indent=indent, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Report value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalyticsReport(_JsonReport):
    """Immutable analytics snapshot for one window.

    Analytic sections (scores, trends, insights) are only filled when
    ``status`` is ``ok``.  Prediction and phase are filled whenever an anchor
    date exists, even when the window itself has too little data.
    """

    status: ReportStatus
    message: str
    window: TimeWindow
    as_of: date
    token: int = 0
    total_records: int = 0
    cycle_count: int = 0
    average_cycle_length: int = 0
    cycle_variation: float = 0.0
    shortest_cycle: int = 0
    longest_cycle: int = 0
    recent_cycles: tuple[Cycle, ...] = ()
    symptoms: tuple[SymptomTrend, ...] = ()
    moods: tuple[MoodShare, ...] = ()
    monthly_trends: tuple[MonthlyTrend, ...] = ()
    daily_series: tuple[DailyPoint, ...] = ()
    correlations: tuple[SymptomMoodCorrelation, ...] = ()
    health_score: int = 0
    data_quality: int = 0
    regularity: Regularity | None = None
    insights: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    risk_factors: tuple[str, ...] = ()
    prediction: Prediction | None = None
    accuracy: str | None = None
    phase: PhaseInfo | None = None

    @property
    def available(self) -> bool:
        return self.status is ReportStatus.ok

    @property
    def accuracy_percent(self) -> int | None:
        return self.prediction.accuracy_percent if self.prediction else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "window": self.window.value,
            "as_of": self.as_of.isoformat(),
            "token": self.token,
            "total_records": self.total_records,
            "cycles": {
                "count": self.cycle_count,
                "average_length": self.average_cycle_length,
                "variation": self.cycle_variation,
                "shortest": self.shortest_cycle,
                "longest": self.longest_cycle,
                "recent": _plain(self.recent_cycles),
            },
            "symptoms": _plain(self.symptoms),
            "moods": _plain(self.moods),
            "monthly_trends": _plain(self.monthly_trends),
            "daily_series": _plain(self.daily_series),
            "correlations": _plain(self.correlations),
            "health_score": self.health_score,
            "data_quality": self.data_quality,
            "regularity": self.regularity.value if self.regularity else None,
            "insights": list(self.insights),
            "recommendations": list(self.recommendations),
            "risk_factors": list(self.risk_factors),
            "prediction": {
                **_or_sentinel(self.prediction, Prediction),
                "accuracy": self.accuracy or INSUFFICIENT_DATA,
            },
            "phase": _or_sentinel(self.phase, PhaseInfo),
        }


@dataclass(frozen=True)
class AnalyticsSummary(_JsonReport):
    """Lighter report: wider cycle bounds, top symptoms, −3/+1 fertile window."""

    status: ReportStatus
    message: str
    window: TimeWindow
    as_of: date
    token: int = 0
    total_records: int = 0
    cycle_count: int = 0
    average_cycle_length: int = 0
    cycle_variation: float = 0.0
    regularity: Regularity | None = None
    top_symptoms: tuple[SymptomTrend, ...] = ()
    prediction: Prediction | None = None
    phase: PhaseInfo | None = None

    @property
    def accuracy_percent(self) -> int | None:
        return self.prediction.accuracy_percent if self.prediction else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "window": self.window.value,
            "as_of": self.as_of.isoformat(),
            "token": self.token,
            "total_records": self.total_records,
            "cycle_count": self.cycle_count,
            "average_cycle_length": self.average_cycle_length,
            "cycle_variation": self.cycle_variation,
            "regularity": self.regularity.value if self.regularity else None,
            "top_symptoms": _plain(self.top_symptoms),
            "prediction": _or_sentinel(self.prediction, Prediction),
            "accuracy_percent": (
                self.accuracy_percent if self.accuracy_percent is not None else INSUFFICIENT_DATA
            ),
            "phase": _or_sentinel(self.phase, PhaseInfo),
        }


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Inputs:
    """One snapshot, windowed and classified."""

    status: ReportStatus
    message: str
    window: TimeWindow
    today: date
    snapshot: StoreSnapshot = field(default_factory=StoreSnapshot)
    windowed: tuple[DailyRecord, ...] = ()
    anchor: date | None = None


class AnalyticsFacade:
    """Compose the engine into reports over a ``RecordStore``.

    Usage::

        facade = AnalyticsFacade(store)
        report = facade.build_report(TimeWindow.three_months)
        token = report.token
        ...
        if facade.has_changed_since(token):
            report = facade.build_report(TimeWindow.three_months)
    """

    def __init__(self, store: RecordStore, config: AnalyticsConfig | None = None) -> None:
        self._store = store
        self._config = config or get_analytics_config()

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    def change_token(self) -> int:
        return self._store.change_token()

    def has_changed_since(self, token: int) -> bool:
        """True if the store was written after ``token`` was issued."""
        return self._store.change_token() != token

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def build_report(
        self,
        window: TimeWindow | str = TimeWindow.six_months,
        today: date | None = None,
    ) -> AnalyticsReport:
        """Build the full analytics report.

        Args:
            window: Time window applied to every section except prediction
                    and phase.
            today:  Reference date (defaults to ``date.today()``).

        Returns:
            AnalyticsReport; never raises for missing or corrupted data.

        Raises:
            MalformedRecordError: If a stored record cannot be parsed.
        """
        inputs = self._prepare(window, today)
        base = AnalyticsReport(
            status=inputs.status,
            message=inputs.message,
            window=inputs.window,
            as_of=inputs.today,
            token=inputs.snapshot.token,
            total_records=len(inputs.windowed),
        )
        if inputs.status in (ReportStatus.no_data, ReportStatus.corrupted):
            return base

        config = inputs.snapshot.config
        cycles = reconstruct(inputs.windowed, self._config.report_bounds)
        lengths = [c.length for c in cycles]
        cycle_variation = variation(lengths)
        cycle_length = average(lengths, self._fallback_length(config))
        level = regularity(cycle_variation, self._config.scoring.regularity)

        prediction = self._predict(
            inputs.anchor, cycle_length, lengths, config, self._config.prediction.report_window
        )
        report = replace(
            base,
            cycle_count=len(cycles),
            average_cycle_length=cycle_length,
            cycle_variation=round(cycle_variation, 1),
            shortest_cycle=shortest(lengths),
            longest_cycle=longest(lengths),
            recent_cycles=tuple(cycles[-RECENT_CYCLES:]),
            regularity=level,
            prediction=prediction,
            accuracy=accuracy_label(level) if prediction else None,
            phase=self._phase(inputs.anchor, cycle_length, config, inputs.today),
        )
        if inputs.status is not ReportStatus.ok:
            return report

        trend_config = self._config.trends
        symptoms = symptom_trends(inputs.windowed, config=trend_config)
        moods = mood_distribution(inputs.windowed, config=trend_config)
        score = health_score(cycles, symptoms, self._config.scoring.health)
        ctx = AnalysisContext(
            cycles=tuple(cycles),
            symptoms=tuple(symptoms),
            moods=tuple(moods),
            regularity=level,
            health_score=score,
            record_count=len(inputs.windowed),
            config=self._config.insights,
            gaps=tuple(cycle_gaps(inputs.windowed)),
        )
        report = replace(
            report,
            symptoms=tuple(symptoms),
            moods=tuple(moods),
            monthly_trends=tuple(monthly_trends(inputs.windowed, cycles, config=trend_config)),
            daily_series=tuple(daily_series(inputs.windowed, inputs.today, config=trend_config)),
            correlations=tuple(correlations(inputs.windowed, config=trend_config)),
            health_score=score,
            data_quality=data_quality(inputs.windowed, len(cycles), self._config.scoring.data_quality),
            insights=tuple(generate_insights(ctx)),
            recommendations=tuple(generate_recommendations(ctx)),
            risk_factors=tuple(identify_risk_factors(ctx)),
        )
        logger.info(
            "Built %s report: %d records, %d cycles, health %d",
            inputs.window.value, report.total_records, report.cycle_count, report.health_score,
        )
        return report

    def build_summary(
        self,
        window: TimeWindow | str = TimeWindow.six_months,
        today: date | None = None,
    ) -> AnalyticsSummary:
        """Build the lighter summary report (20–40 exclusive cycle bounds)."""
        inputs = self._prepare(window, today)
        base = AnalyticsSummary(
            status=inputs.status,
            message=inputs.message,
            window=inputs.window,
            as_of=inputs.today,
            token=inputs.snapshot.token,
            total_records=len(inputs.windowed),
        )
        if inputs.status in (ReportStatus.no_data, ReportStatus.corrupted):
            return base

        config = inputs.snapshot.config
        cycles = reconstruct(inputs.windowed, self._config.summary_bounds)
        lengths = [c.length for c in cycles]
        cycle_variation = variation(lengths)
        cycle_length = average(lengths, self._fallback_length(config))
        prediction = self._predict(
            inputs.anchor, cycle_length, lengths, config, self._config.prediction.summary_window
        )

        return replace(
            base,
            cycle_count=len(cycles),
            average_cycle_length=cycle_length,
            cycle_variation=round(cycle_variation, 1),
            regularity=regularity(cycle_variation, self._config.scoring.regularity),
            top_symptoms=tuple(
                symptom_trends(
                    inputs.windowed,
                    limit=self._config.trends.summary_symptom_limit,
                    config=self._config.trends,
                )
            ),
            prediction=prediction,
            phase=self._phase(inputs.anchor, cycle_length, config, inputs.today),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _prepare(self, window: TimeWindow | str, today: date | None) -> _Inputs:
        window = TimeWindow(window)
        today = today or date.today()

        try:
            snapshot = self._store.snapshot()
        except CorruptedDataError as exc:
            logger.error("Corrupted stored data under %r: %s", exc.key, exc)
            return _Inputs(ReportStatus.corrupted, CORRUPTED_MESSAGE, window, today)
        except MalformedRecordError as exc:
            logger.error("Malformed daily record: %s", exc)
            raise

        if not snapshot.records and snapshot.config is None:
            return _Inputs(ReportStatus.no_data, NO_DATA_MESSAGE, window, today, snapshot)

        windowed = window.filter(snapshot.records, today)
        anchor = self._anchor(snapshot)
        if not snapshot.records:
            status, message = ReportStatus.insufficient_data, NO_RECORDS_MESSAGE
        elif len(windowed) < self._config.min_records_in_window:
            status = ReportStatus.insufficient_data
            message = FEW_RECORDS_MESSAGE.format(minimum=self._config.min_records_in_window)
        else:
            status, message = ReportStatus.ok, ""

        return _Inputs(status, message, window, today, snapshot, windowed, anchor)

    @staticmethod
    def _anchor(snapshot: StoreSnapshot) -> date | None:
        """Later of the configured last period and the latest flow run start."""
        candidates = [latest_period_start(snapshot.records)]
        if snapshot.config is not None:
            candidates.append(snapshot.config.last_period_date)
        known = [d for d in candidates if d is not None]
        return max(known) if known else None

    def _fallback_length(self, config: CycleConfig | None) -> int:
        if config is not None:
            return config.average_cycle_length
        return self._config.prediction.default_cycle_length

    @staticmethod
    def _period_length(config: CycleConfig | None) -> int:
        return config.average_period_length if config is not None else DEFAULT_PERIOD_LENGTH

    def _predict(
        self,
        anchor: date | None,
        cycle_length: int,
        lengths: list[int],
        config: CycleConfig | None,
        window: FertileWindowSpec,
    ) -> Prediction | None:
        if anchor is None:
            return None
        return predict(
            anchor,
            cycle_length,
            self._period_length(config),
            window=window,
            config=self._config.prediction,
            accuracy=model_accuracy(lengths, self._config.prediction.accuracy),
        )

    def _phase(
        self,
        anchor: date | None,
        cycle_length: int,
        config: CycleConfig | None,
        today: date,
    ) -> PhaseInfo | None:
        if anchor is None:
            return None
        if config is not None:
            phase_config = replace(config, last_period_date=anchor)
        else:
            phase_config = CycleConfig(
                last_period_date=anchor,
                average_cycle_length=cycle_length,
                average_period_length=DEFAULT_PERIOD_LENGTH,
            )
        return current_phase(today, phase_config, self._config.prediction.luteal_days)
