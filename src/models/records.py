"""Pydantic models for stored payloads: daily records and the cycle config.

Field aliases follow the camelCase keys of the stored JSON documents
(``lastPeriodDate``, ``averageCycleLength``...), so a payload read from the
store validates as-is and ``model_dump(by_alias=True)`` writes it back in the
same shape.
"""

from __future__ import annotations

import datetime
from typing import Any

from pydantic import Field, field_validator

from src.cycle_analytics.base import CycleConfig, DailyRecord
from src.models.base import EntreFasesBase


# ---------- Daily records ----------

class DailyRecordBody(EntreFasesBase):
    """Everything logged for one day except the date itself."""

    symptoms: list[str] = Field(default_factory=list)
    mood: str | None = None
    flow: str | None = None
    notes: str = ""

    @field_validator("symptoms", mode="before")
    @classmethod
    def _clean_symptoms(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            # Drop blanks and repeats, keep first-seen order
            cleaned = [s.strip() for s in value if isinstance(s, str) and s.strip()]
            return list(dict.fromkeys(cleaned))
        return value

    @field_validator("notes", mode="before")
    @classmethod
    def _none_notes(cls, value: Any) -> Any:
        return "" if value is None else value


class DailyRecordPayload(DailyRecordBody):
    date: datetime.date

    def to_record(self) -> DailyRecord:
        return DailyRecord(
            date=self.date,
            symptoms=tuple(self.symptoms),
            mood=self.mood or None,
            flow=self.flow,
            notes=self.notes,
        )

    @classmethod
    def from_record(cls, record: DailyRecord) -> DailyRecordPayload:
        return cls(
            date=record.date,
            symptoms=list(record.symptoms),
            mood=record.mood,
            flow=record.flow,
            notes=record.notes,
        )


# ---------- Cycle configuration ----------

class CycleConfigPayload(EntreFasesBase):
    last_period_date: datetime.date = Field(alias="lastPeriodDate")
    average_cycle_length: int = Field(default=28, ge=21, le=40, alias="averageCycleLength")
    average_period_length: int = Field(default=5, ge=2, le=10, alias="averagePeriodLength")

    def to_config(self) -> CycleConfig:
        return CycleConfig(
            last_period_date=self.last_period_date,
            average_cycle_length=self.average_cycle_length,
            average_period_length=self.average_period_length,
        )

    @classmethod
    def from_config(cls, config: CycleConfig) -> CycleConfigPayload:
        return cls(
            last_period_date=config.last_period_date,
            average_cycle_length=config.average_cycle_length,
            average_period_length=config.average_period_length,
        )


# ---------- Responses ----------

class WriteResult(EntreFasesBase):
    """Change token issued by a store write."""

    token: int


class ChangeStatus(EntreFasesBase):
    token: int
    changed: bool
