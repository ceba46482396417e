"""Analytics endpoints: full report, summary and change detection."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.cycle_analytics.base import CorruptedDataError
from src.cycle_analytics.facade import TimeWindow
from src.dependencies import AppSettings, Facade
from src.models.records import ChangeStatus

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/report")
def get_report(
    facade: Facade,
    settings: AppSettings,
    window: TimeWindow | None = Query(default=None, description="Defaults to the configured window"),
    today: date | None = Query(default=None, description="Reference date, defaults to today"),
) -> dict[str, Any]:
    return facade.build_report(window or TimeWindow(settings.default_window), today).to_dict()


@router.get("/summary")
def get_summary(
    facade: Facade,
    settings: AppSettings,
    window: TimeWindow | None = Query(default=None, description="Defaults to the configured window"),
    today: date | None = Query(default=None, description="Reference date, defaults to today"),
) -> dict[str, Any]:
    return facade.build_summary(window or TimeWindow(settings.default_window), today).to_dict()


@router.get("/changes", response_model=ChangeStatus)
def get_changes(facade: Facade, since: int = Query(ge=0)) -> Any:
    """Cheap check callers poll instead of rebuilding the report."""
    try:
        return ChangeStatus(token=facade.change_token(), changed=facade.has_changed_since(since))
    except CorruptedDataError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
