"""Entre Fases API: FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.config import get_settings
from src.cycle_analytics.base import MalformedRecordError
from src.cycle_analytics.config_loader import reload_analytics_config
from src.routers import analytics, health, records

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("entrefases")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logging.getLogger("entrefases").setLevel(settings.log_level.upper())
    logger.info(
        "Starting Entre Fases API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    if settings.analytics_config_path:
        reload_analytics_config(Path(settings.analytics_config_path))
    yield
    logger.info("Entre Fases API shut down")


# ---------- Error handlers ----------

async def malformed_record_handler(request: Request, exc: MalformedRecordError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": exc.args[0], "record": exc.record},
    )


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Entre Fases API",
        description=(
            "Cycle analytics and prediction engine: reconstructed cycles, "
            "symptom and mood trends, heuristic scores and period forecasts."
        ),
        version=settings.app_version,
        debug=settings.debug,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MalformedRecordError, malformed_record_handler)

    # ---------- Health check (outside v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(analytics.router, prefix=v1_prefix)
    app.include_router(records.router, prefix=v1_prefix)

    return app


app = create_app()
