"""End-to-end tests for the analytics facade."""

from __future__ import annotations

import json
from datetime import date

import pytest

from src.cycle_analytics.base import (
    INSUFFICIENT_DATA,
    CycleConfig,
    CyclePhase,
    MalformedRecordError,
    Regularity,
    ReportStatus,
)
from src.cycle_analytics.config_loader import AnalyticsConfig
from src.cycle_analytics.facade import (
    CORRUPTED_MESSAGE,
    NO_DATA_MESSAGE,
    NO_RECORDS_MESSAGE,
    AnalyticsFacade,
    TimeWindow,
)
from src.cycle_analytics.prediction import DateRange
from src.cycle_analytics.store import RECORDS_KEY, InMemoryRecordStore, KeyValueRecordStore
from src.cycle_analytics.tests.conftest import (
    TEST_DATE,
    daily_log,
    flow_days,
    make_record,
    merge,
    regular_history,
)


def regular_store(config: CycleConfig | None = None) -> InMemoryRecordStore:
    """Six period starts 28 days apart (Jan 5 … May 24) plus symptom/mood logs."""
    records = merge(
        daily_log(date(2024, 1, 10), 10, ["headache"], mood="happy"),
        daily_log(date(2024, 4, 1), 10, ["Cólicas severas"], mood="irritated"),
        regular_history(date(2024, 1, 5), cycles=5, period_length=5),
    )
    return InMemoryRecordStore(records, config)


class TestTimeWindow:
    def test_cutoffs(self) -> None:
        assert TimeWindow.three_months.cutoff(TEST_DATE) == date(2024, 3, 15)
        assert TimeWindow.six_months.cutoff(TEST_DATE) == date(2023, 12, 15)
        assert TimeWindow.one_year.cutoff(TEST_DATE) == date(2023, 6, 15)
        assert TimeWindow.all_time.cutoff(TEST_DATE) is None

    def test_month_end_is_clamped(self) -> None:
        assert TimeWindow.three_months.cutoff(date(2024, 5, 31)) == date(2024, 2, 29)

    def test_filter_is_strictly_after_cutoff(self) -> None:
        records = (make_record(date(2024, 3, 15)), make_record(date(2024, 3, 16)))
        kept = TimeWindow.three_months.filter(records, TEST_DATE)
        assert [r.date for r in kept] == [date(2024, 3, 16)]

    def test_all_keeps_everything(self) -> None:
        records = (make_record(date(2001, 1, 1)),)
        assert TimeWindow.all_time.filter(records, TEST_DATE) == records

    def test_from_string(self) -> None:
        assert TimeWindow("1y") is TimeWindow.one_year


class TestEmptyStates:
    def test_no_records_no_config(
        self, empty_store: InMemoryRecordStore, analytics_config: AnalyticsConfig
    ) -> None:
        report = AnalyticsFacade(empty_store, analytics_config).build_report(today=TEST_DATE)
        assert report.status is ReportStatus.no_data
        assert report.message == NO_DATA_MESSAGE
        assert report.prediction is None

        data = report.to_dict()
        assert data["prediction"]["next_period"] == INSUFFICIENT_DATA
        assert data["prediction"]["accuracy"] == INSUFFICIENT_DATA
        assert data["phase"]["phase"] == INSUFFICIENT_DATA

    def test_config_without_records_still_predicts(
        self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig
    ) -> None:
        store = InMemoryRecordStore(config=cycle_config)
        report = AnalyticsFacade(store, analytics_config).build_report(today=TEST_DATE)
        assert report.status is ReportStatus.insufficient_data
        assert report.message == NO_RECORDS_MESSAGE
        assert report.prediction.next_period == date(2024, 1, 29)
        assert report.to_dict()["prediction"]["next_period"] == "2024-01-29"
        assert report.phase is not None
        assert report.insights == ()

    def test_too_few_records_in_window(
        self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig
    ) -> None:
        store = InMemoryRecordStore(daily_log(date(2024, 6, 1), 4, ["acne"]), cycle_config)
        report = AnalyticsFacade(store, analytics_config).build_report(today=TEST_DATE)
        assert report.status is ReportStatus.insufficient_data
        assert "at least 5" in report.message
        assert report.message != NO_RECORDS_MESSAGE
        assert report.total_records == 4
        assert report.health_score == 0
        assert report.symptoms == ()

    def test_predictions_use_full_history(self, analytics_config: AnalyticsConfig) -> None:
        # Every record is older than the 3-month window
        store = InMemoryRecordStore(regular_history(date(2024, 1, 5), cycles=1, period_length=5))
        report = AnalyticsFacade(store, analytics_config).build_report(
            TimeWindow.three_months, today=TEST_DATE
        )
        assert report.status is ReportStatus.insufficient_data
        assert report.total_records == 0
        assert report.prediction.anchor == date(2024, 2, 2)
        assert report.prediction.next_period == date(2024, 3, 1)


class TestFullReport:
    def test_ok_report(self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig) -> None:
        facade = AnalyticsFacade(regular_store(cycle_config), analytics_config)
        report = facade.build_report(TimeWindow.six_months, today=TEST_DATE)

        assert report.status is ReportStatus.ok
        assert report.available
        assert report.cycle_count == 5
        assert report.average_cycle_length == 28
        assert report.cycle_variation == 0.0
        assert (report.shortest_cycle, report.longest_cycle) == (28, 28)
        assert report.regularity is Regularity.very_regular
        assert report.accuracy == "high"
        assert report.accuracy_percent == 95
        assert report.insights
        assert len(report.daily_series) == 30
        assert report.daily_series[-1].day == TEST_DATE
        assert len(report.recommendations) <= 6

    def test_prediction_anchors_on_latest_flow_run(
        self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig
    ) -> None:
        report = AnalyticsFacade(regular_store(cycle_config), analytics_config).build_report(
            today=TEST_DATE
        )
        prediction = report.prediction
        assert prediction.anchor == date(2024, 5, 24)
        assert prediction.next_period == date(2024, 6, 21)
        assert prediction.ovulation == date(2024, 6, 7)
        assert prediction.fertile_window == DateRange(date(2024, 6, 5), date(2024, 6, 9), confidence=90)
        assert [f.start for f in prediction.future_cycles] == [
            date(2024, 6, 21),
            date(2024, 7, 19),
            date(2024, 8, 16),
        ]
        # Forecast end uses the configured period length
        assert all((f.end - f.start).days == 5 for f in prediction.future_cycles)

    def test_phase_follows_anchor(
        self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig
    ) -> None:
        report = AnalyticsFacade(regular_store(cycle_config), analytics_config).build_report(
            today=TEST_DATE
        )
        assert report.phase.day_of_cycle == 23
        assert report.phase.phase is CyclePhase.pre_menstrual

    def test_works_without_config(self, analytics_config: AnalyticsConfig) -> None:
        report = AnalyticsFacade(regular_store(), analytics_config).build_report(today=TEST_DATE)
        assert report.status is ReportStatus.ok
        assert report.prediction.next_period == date(2024, 6, 21)
        assert report.phase.day_of_cycle == 23

    def test_no_anchor_renders_sentinel(self, analytics_config: AnalyticsConfig) -> None:
        store = InMemoryRecordStore(daily_log(date(2024, 6, 1), 10, ["acne"]))
        report = AnalyticsFacade(store, analytics_config).build_report(today=TEST_DATE)
        assert report.status is ReportStatus.ok
        assert report.average_cycle_length == 28
        data = report.to_dict()
        assert data["prediction"]["fertile_window"] == INSUFFICIENT_DATA
        assert data["prediction"]["accuracy_percent"] == INSUFFICIENT_DATA
        assert data["phase"]["day_of_cycle"] == INSUFFICIENT_DATA

    def test_narrow_window_sees_fewer_cycles(
        self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig
    ) -> None:
        facade = AnalyticsFacade(regular_store(cycle_config), analytics_config)
        report = facade.build_report(TimeWindow.three_months, today=TEST_DATE)
        assert report.cycle_count == 2
        assert report.prediction.anchor == date(2024, 5, 24)

    @pytest.mark.parametrize("symptom,expected", [("Cólicas severas", 75), ("Cólicas", 95)])
    def test_concerning_symptom_lowers_health_score(
        self, analytics_config: AnalyticsConfig, symptom: str, expected: int
    ) -> None:
        # 3 cycles (+10) and the symptom in 10 of 14 records
        records = merge(
            regular_history(date(2024, 1, 5), cycles=3),
            daily_log(date(2024, 4, 1), 10, [symptom]),
        )
        facade = AnalyticsFacade(InMemoryRecordStore(records), analytics_config)
        report = facade.build_report(TimeWindow.six_months, today=TEST_DATE)
        assert report.symptoms[0].frequency_percent == 71
        assert report.health_score == expected

    def test_short_gap_flagged_even_though_it_is_not_a_cycle(
        self, analytics_config: AnalyticsConfig
    ) -> None:
        records = merge(
            flow_days(date(2024, 1, 1)),
            flow_days(date(2024, 1, 16)),
            flow_days(date(2024, 2, 13)),
            flow_days(date(2024, 3, 12)),
            daily_log(date(2024, 4, 1), 5, ["acne"]),
        )
        facade = AnalyticsFacade(InMemoryRecordStore(records), analytics_config)
        report = facade.build_report(TimeWindow.all_time, today=TEST_DATE)
        assert [c.length for c in report.recent_cycles] == [28, 28]
        assert "Very short cycles detected" in report.risk_factors

    def test_config_only_accuracy_falls_back(
        self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig
    ) -> None:
        store = InMemoryRecordStore(config=cycle_config)
        report = AnalyticsFacade(store, analytics_config).build_report(today=TEST_DATE)
        assert report.accuracy_percent == 65
        assert report.prediction.next_period_range.confidence == 60
        assert report.to_dict()["prediction"]["accuracy_percent"] == 65

    def test_to_json_is_idempotent(
        self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig
    ) -> None:
        facade = AnalyticsFacade(regular_store(cycle_config), analytics_config)
        first = facade.build_report(TimeWindow.six_months, today=TEST_DATE)
        second = facade.build_report(TimeWindow.six_months, today=TEST_DATE)
        assert first == second
        assert first.to_json() == second.to_json()
        assert json.loads(first.to_json())["status"] == "ok"

    def test_string_window_accepted(
        self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig
    ) -> None:
        facade = AnalyticsFacade(regular_store(cycle_config), analytics_config)
        assert facade.build_report("1y", today=TEST_DATE).window is TimeWindow.one_year


class TestSummary:
    def test_summary_variant(self, cycle_config: CycleConfig, analytics_config: AnalyticsConfig) -> None:
        facade = AnalyticsFacade(regular_store(cycle_config), analytics_config)
        summary = facade.build_summary(TimeWindow.six_months, today=TEST_DATE)
        assert summary.status is ReportStatus.ok
        assert summary.cycle_count == 5
        assert summary.prediction.fertile_window == DateRange(date(2024, 6, 4), date(2024, 6, 8), confidence=90)
        assert summary.accuracy_percent == 95
        assert len(summary.top_symptoms) <= 5
        assert summary.to_dict()["prediction"]["next_period"] == "2024-06-21"

    def test_summary_bounds_exclude_40_day_cycle(self, analytics_config: AnalyticsConfig) -> None:
        records = regular_history(date(2024, 1, 1), cycles=2, cycle_length=40) + daily_log(
            date(2024, 1, 10), 5
        )
        facade = AnalyticsFacade(InMemoryRecordStore(records), analytics_config)
        assert facade.build_report(TimeWindow.all_time, today=TEST_DATE).cycle_count == 2
        assert facade.build_summary(TimeWindow.all_time, today=TEST_DATE).cycle_count == 0

    def test_summary_no_data(self, empty_store: InMemoryRecordStore) -> None:
        summary = AnalyticsFacade(empty_store).build_summary(today=TEST_DATE)
        assert summary.status is ReportStatus.no_data
        assert summary.to_dict()["accuracy_percent"] == INSUFFICIENT_DATA


class TestStoreErrors:
    def test_corrupted_records_reported(self, analytics_config: AnalyticsConfig) -> None:
        store = KeyValueRecordStore({RECORDS_KEY: json.dumps({"not": "a list"})})
        report = AnalyticsFacade(store, analytics_config).build_report(today=TEST_DATE)
        assert report.status is ReportStatus.corrupted
        assert report.message == CORRUPTED_MESSAGE

    def test_malformed_record_propagates(self, analytics_config: AnalyticsConfig) -> None:
        store = KeyValueRecordStore({RECORDS_KEY: json.dumps([{"date": "yesterday"}])})
        with pytest.raises(MalformedRecordError) as excinfo:
            AnalyticsFacade(store, analytics_config).build_report(today=TEST_DATE)
        assert excinfo.value.record == {"date": "yesterday"}


class TestChangeDetection:
    def test_has_changed_since(self, analytics_config: AnalyticsConfig) -> None:
        store = InMemoryRecordStore()
        facade = AnalyticsFacade(store, analytics_config)
        token = facade.change_token()
        assert not facade.has_changed_since(token)

        store.save_record(make_record(date(2024, 6, 1), flow="light"))
        assert facade.has_changed_since(token)
        assert not facade.has_changed_since(facade.change_token())

    def test_report_carries_token(self, cycle_config: CycleConfig) -> None:
        store = InMemoryRecordStore(config=cycle_config)
        store.save_record(make_record(date(2024, 6, 1)))
        report = AnalyticsFacade(store).build_report(today=TEST_DATE)
        assert report.token == 1
