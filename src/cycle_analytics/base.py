"""Canonical types for the Entre Fases cycle analytics engine.

Every component of the engine consumes or produces the types defined here.
``DailyRecord`` and ``CycleConfig`` are the input snapshot handed over by a
``RecordStore``; ``Cycle`` is derived by the reconstructor.  All of them are
frozen: the engine never mutates its input.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

logger = logging.getLogger("entrefases.cycle_analytics")

# Flow labels that mean "no menstrual flow that day"
NO_FLOW_VALUES = frozenset({"", "none"})

# Sentinel rendered in place of predictions that cannot be computed
INSUFFICIENT_DATA = "insufficient data"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CyclePhase(str, Enum):
    menstrual = "menstrual"
    post_menstrual = "postMenstrual"
    fertile = "fertile"
    ovulation = "ovulation"
    pre_menstrual = "preMenstrual"


class Regularity(str, Enum):
    very_regular = "very_regular"
    regular = "regular"
    irregular = "irregular"
    very_irregular = "very_irregular"


class TrendDirection(str, Enum):
    up = "up"
    down = "down"
    stable = "stable"


class ReportStatus(str, Enum):
    ok = "ok"
    no_data = "no_data"
    insufficient_data = "insufficient_data"
    corrupted = "corrupted"


# ---------------------------------------------------------------------------
# Input snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DailyRecord:
    """One user observation for a calendar date.

    Attributes:
        date:     Calendar date of the observation.
        symptoms: Symptom identifiers recorded that day (may be empty).
        mood:     Optional single mood label.
        flow:     Optional flow intensity.  ``None``, ``""`` and ``"none"``
                  all mean there was no menstrual flow.
        notes:    Free text, never analyzed.
    """

    date: date
    symptoms: tuple[str, ...] = ()
    mood: str | None = None
    flow: str | None = None
    notes: str = ""

    @property
    def has_flow(self) -> bool:
        return self.flow is not None and self.flow.strip().lower() not in NO_FLOW_VALUES

    @property
    def has_symptoms(self) -> bool:
        return len(self.symptoms) > 0

    @property
    def has_mood(self) -> bool:
        return bool(self.mood)


@dataclass(frozen=True)
class CycleConfig:
    """User-declared cycle baseline.

    Attributes:
        last_period_date:      First day of the most recent known period.
        average_cycle_length:  Days between period starts, 21–40.
        average_period_length: Days of bleeding, 2–10.
    """

    last_period_date: date
    average_cycle_length: int = 28
    average_period_length: int = 5


# ---------------------------------------------------------------------------
# Derived
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Cycle:
    """A cycle reconstructed from flow records.

    Attributes:
        start:         First day of the flow run that opens the cycle.
        length:        Days until the next detected flow start.
        symptoms:      Symptom ids seen in ``[start, next_start]``, first-seen order.
        period_length: Flow days in the opening run.
        dominant_mood: Most frequent mood in ``[start, next_start)``.
    """

    start: date
    length: int
    symptoms: tuple[str, ...] = ()
    period_length: int = 1
    dominant_mood: str | None = None


@dataclass(frozen=True)
class StoreSnapshot:
    """Everything one computation reads from the store, read exactly once."""

    records: tuple[DailyRecord, ...] = ()
    config: CycleConfig | None = None
    token: int = 0


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class CycleAnalyticsError(Exception):
    """Base class for every error raised by the analytics engine."""


class CorruptedDataError(CycleAnalyticsError):
    """Stored data does not have the expected shape (e.g. records is not a list)."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class MalformedRecordError(CycleAnalyticsError):
    """A single stored record could not be interpreted.

    Carries the offending raw record so callers can log it.
    """

    def __init__(self, message: str, record: Any = None) -> None:
        super().__init__(message)
        self.record = record

    def __str__(self) -> str:
        return f"{self.args[0]} (record={self.record!r})"


# ---------------------------------------------------------------------------
# Store adapter contract
# ---------------------------------------------------------------------------


class RecordStore(ABC):
    """Source of daily records and the cycle configuration.

    Implementations own persistence.  The engine only reads through this
    contract and treats what it gets back as an immutable snapshot.
    """

    @abstractmethod
    def load_daily_records(self) -> list[DailyRecord]:
        """Return every stored daily record (one per date).

        Raises:
            CorruptedDataError:   If the stored collection has the wrong shape.
            MalformedRecordError: If an individual record cannot be parsed.
        """

    @abstractmethod
    def load_cycle_config(self) -> CycleConfig | None:
        """Return the cycle configuration, or None when the user has none yet.

        Raises:
            CorruptedDataError: If the stored config is malformed.
        """

    @abstractmethod
    def change_token(self) -> int:
        """Return a token that increases every time the stored data changes."""

    def snapshot(self) -> StoreSnapshot:
        """Read records, config and token in one go."""
        token = self.change_token()
        records = tuple(self.load_daily_records())
        config = self.load_cycle_config()
        return StoreSnapshot(records=records, config=config, token=token)
