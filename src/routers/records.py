"""Write endpoints for daily records and the cycle configuration."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException

from src.cycle_analytics.base import CorruptedDataError
from src.dependencies import Store
from src.models.records import (
    CycleConfigPayload,
    DailyRecordBody,
    DailyRecordPayload,
    WriteResult,
)

router = APIRouter(tags=["records"])
logger = logging.getLogger("entrefases.routers.records")


@router.get("/records", response_model=list[DailyRecordPayload])
def list_records(store: Store) -> Any:
    try:
        records = store.load_daily_records()
    except CorruptedDataError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return [DailyRecordPayload.from_record(r) for r in records]


@router.put("/records/{record_date}", response_model=WriteResult)
def put_record(record_date: date, body: DailyRecordBody, store: Store) -> Any:
    record = DailyRecordPayload(date=record_date, **body.model_dump()).to_record()
    try:
        token = store.save_record(record)
    except CorruptedDataError as exc:
        logger.error("Refusing to write over corrupted records: %s", exc)
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return WriteResult(token=token)


@router.get("/cycle-config", response_model=CycleConfigPayload)
def get_cycle_config(store: Store) -> Any:
    try:
        config = store.load_cycle_config()
    except CorruptedDataError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    if config is None:
        raise HTTPException(status_code=404, detail="Cycle configuration not set")
    return CycleConfigPayload.from_config(config)


@router.put("/cycle-config", response_model=WriteResult)
def put_cycle_config(body: CycleConfigPayload, store: Store) -> Any:
    try:
        token = store.save_cycle_config(body.to_config())
    except CorruptedDataError as exc:
        logger.error("Refusing to write cycle config over corrupted data: %s", exc)
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return WriteResult(token=token)
