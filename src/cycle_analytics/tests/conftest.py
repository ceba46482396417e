"""Shared fixtures and record builders for cycle analytics tests."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

import pytest

from src.cycle_analytics.base import CycleConfig, DailyRecord
from src.cycle_analytics.config_loader import AnalyticsConfig, load_analytics_config
from src.cycle_analytics.store import InMemoryRecordStore

# Reference "today" for every test that needs one
TEST_DATE = date(2024, 6, 15)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_record(
    d: date,
    symptoms: Iterable[str] = (),
    mood: str | None = None,
    flow: str | None = None,
) -> DailyRecord:
    return DailyRecord(date=d, symptoms=tuple(symptoms), mood=mood, flow=flow)


def flow_days(start: date, period_length: int = 1, flow: str = "medium") -> list[DailyRecord]:
    """Consecutive flow records starting at ``start``."""
    return [make_record(start + timedelta(days=i), flow=flow) for i in range(period_length)]


def regular_history(
    first_start: date,
    cycles: int,
    cycle_length: int = 28,
    period_length: int = 1,
) -> list[DailyRecord]:
    """Flow records for ``cycles + 1`` evenly spaced period starts."""
    records: list[DailyRecord] = []
    for i in range(cycles + 1):
        records.extend(flow_days(first_start + timedelta(days=cycle_length * i), period_length))
    return records


def daily_log(
    start: date,
    days: int,
    symptoms: Iterable[str] = (),
    mood: str | None = None,
) -> list[DailyRecord]:
    """Non-flow records on ``days`` consecutive dates."""
    return [make_record(start + timedelta(days=i), symptoms, mood) for i in range(days)]


def merge(*groups: Iterable[DailyRecord]) -> list[DailyRecord]:
    """Combine record groups, later groups winning on the same date."""
    by_date: dict[date, DailyRecord] = {}
    for group in groups:
        for record in group:
            by_date[record.date] = record
    return sorted(by_date.values(), key=lambda r: r.date)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def analytics_config() -> AnalyticsConfig:
    """Load the real analytics config for tests."""
    return load_analytics_config()


@pytest.fixture
def cycle_config() -> CycleConfig:
    return CycleConfig(
        last_period_date=date(2024, 1, 1),
        average_cycle_length=28,
        average_period_length=5,
    )


@pytest.fixture
def empty_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()
