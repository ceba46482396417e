"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

import threading
from typing import Annotated

from fastapi import Depends

from src.config import Settings, get_settings
from src.cycle_analytics.config_loader import get_analytics_config
from src.cycle_analytics.facade import AnalyticsFacade
from src.cycle_analytics.store import KeyValueRecordStore

_store: KeyValueRecordStore | None = None
_store_lock = threading.Lock()


def get_store() -> KeyValueRecordStore:
    """Return the process-wide record store, creating it on first call."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:  # double-checked locking
                _store = KeyValueRecordStore()
    return _store


def get_facade(store: Annotated[KeyValueRecordStore, Depends(get_store)]) -> AnalyticsFacade:
    return AnalyticsFacade(store, get_analytics_config())


# Annotated shortcuts for route signatures
AppSettings = Annotated[Settings, Depends(get_settings)]
Store = Annotated[KeyValueRecordStore, Depends(get_store)]
Facade = Annotated[AnalyticsFacade, Depends(get_facade)]
