"""Health check endpoint, public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.cycle_analytics.base import CycleAnalyticsError
from src.dependencies import AppSettings, Store

router = APIRouter(tags=["system"])
logger = logging.getLogger("entrefases.health")


@router.get("/health")
def health_check(settings: AppSettings, store: Store) -> dict:
    """Liveness check. Returns 200 if the API process is up.

    Also checks that the stored data can be read.
    """
    store_ok = False
    try:
        store.snapshot()
        store_ok = True
    except CycleAnalyticsError as exc:
        logger.warning("Health check store read failed: %s", exc)

    return {
        "status": "healthy" if store_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "store": "readable" if store_ok else "corrupted",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
