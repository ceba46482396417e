"""Record store adapters.

The engine reads through the ``RecordStore`` contract only.  Two adapters
ship with the package:

    InMemoryRecordStore: holds already-parsed ``DailyRecord`` objects, for
        tests and for callers that do their own parsing.
    KeyValueRecordStore: wraps a string key-value mapping holding the JSON
        documents written by the mobile app:
            "dailyRecords"    → JSON array of records
            "cycleData"       → JSON object (cycle config)
            "dataLastUpdate"  → integer change token

Every write bumps the change token, so ``has_changed_since(token)`` on the
facade is a single integer comparison.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import date
from typing import Any, Iterable, MutableMapping

from pydantic import ValidationError

from src.cycle_analytics.base import (
    CorruptedDataError,
    CycleConfig,
    DailyRecord,
    MalformedRecordError,
    RecordStore,
)
from src.models.records import CycleConfigPayload, DailyRecordPayload

logger = logging.getLogger("entrefases.cycle_analytics.store")

RECORDS_KEY = "dailyRecords"
CONFIG_KEY = "cycleData"
TOKEN_KEY = "dataLastUpdate"


class InMemoryRecordStore(RecordStore):
    """Store backed by plain Python objects."""

    def __init__(
        self,
        records: Iterable[DailyRecord] = (),
        config: CycleConfig | None = None,
    ) -> None:
        self._records: dict[date, DailyRecord] = {r.date: r for r in records}
        self._config = config
        self._token = 0
        self._lock = threading.Lock()

    def load_daily_records(self) -> list[DailyRecord]:
        with self._lock:
            return sorted(self._records.values(), key=lambda r: r.date)

    def load_cycle_config(self) -> CycleConfig | None:
        return self._config

    def change_token(self) -> int:
        return self._token

    def save_record(self, record: DailyRecord) -> int:
        """Insert or replace the record for ``record.date``; returns the new token."""
        with self._lock:
            self._records[record.date] = record
            self._token += 1
            return self._token

    def save_cycle_config(self, config: CycleConfig) -> int:
        with self._lock:
            self._config = config
            self._token += 1
            return self._token


class KeyValueRecordStore(RecordStore):
    """Store over a ``str → str`` mapping of JSON documents.

    Args:
        storage: Any mutable mapping (a dict in tests, a persistent KV
                 backend in production).  Values are JSON strings.
    """

    def __init__(self, storage: MutableMapping[str, str] | None = None) -> None:
        self._storage: MutableMapping[str, str] = storage if storage is not None else {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load_json(self, key: str) -> Any:
        raw = self._storage.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptedDataError(f"Stored value under {key!r} is not valid JSON", key=key) from exc

    def load_daily_records(self) -> list[DailyRecord]:
        payload = self._load_json(RECORDS_KEY)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise CorruptedDataError(
                f"Expected a list under {RECORDS_KEY!r}, got {type(payload).__name__}",
                key=RECORDS_KEY,
            )

        by_date: dict[date, DailyRecord] = {}
        for item in payload:
            if not isinstance(item, dict):
                raise MalformedRecordError("Daily record is not an object", record=item)
            try:
                record = DailyRecordPayload.model_validate(item).to_record()
            except ValidationError as exc:
                raise MalformedRecordError(
                    f"Invalid daily record: {exc.error_count()} error(s)", record=item
                ) from exc
            if record.date in by_date:
                logger.warning("Duplicate daily record for %s, keeping the last one", record.date)
            by_date[record.date] = record

        return sorted(by_date.values(), key=lambda r: r.date)

    def load_cycle_config(self) -> CycleConfig | None:
        payload = self._load_json(CONFIG_KEY)
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise CorruptedDataError(
                f"Expected an object under {CONFIG_KEY!r}, got {type(payload).__name__}",
                key=CONFIG_KEY,
            )
        try:
            return CycleConfigPayload.model_validate(payload).to_config()
        except ValidationError as exc:
            raise CorruptedDataError(f"Invalid cycle config: {exc}", key=CONFIG_KEY) from exc

    def change_token(self) -> int:
        raw = self._storage.get(TOKEN_KEY)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError as exc:
            raise CorruptedDataError(f"Invalid change token {raw!r}", key=TOKEN_KEY) from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _next_token(self) -> int:
        """Next change token; raises CorruptedDataError before anything is written."""
        return self.change_token() + 1

    def save_record(self, record: DailyRecord) -> int:
        """Insert or replace the record for ``record.date``; returns the new token."""
        with self._lock:
            records = {r.date: r for r in self.load_daily_records()}
            token = self._next_token()
            records[record.date] = record
            self._storage[RECORDS_KEY] = json.dumps(
                [
                    DailyRecordPayload.from_record(r).model_dump(mode="json", by_alias=True)
                    for r in sorted(records.values(), key=lambda r: r.date)
                ],
                ensure_ascii=False,
            )
            self._storage[TOKEN_KEY] = str(token)
        logger.info("Saved daily record for %s (token %d)", record.date, token)
        return token

    def save_cycle_config(self, config: CycleConfig) -> int:
        with self._lock:
            token = self._next_token()
            self._storage[CONFIG_KEY] = json.dumps(
                CycleConfigPayload.from_config(config).model_dump(mode="json", by_alias=True)
            )
            self._storage[TOKEN_KEY] = str(token)
        logger.info("Saved cycle config (last period %s, token %d)", config.last_period_date, token)
        return token
