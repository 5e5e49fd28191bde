from __future__ import annotations
from fastapi import APIRouter, Depends
import sqlalchemy

from siphon import metrics
from siphon.auth import require_api_key
from siphon.config import settings
from siphon.database import engine
from siphon.schemas import HealthResponse, MetricsResponse
from siphon.services.scheduler import scheduler_running

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse)
async def health():
    """Health check is intentionally unauthenticated for load balancer probes."""
    try:
        async with engine.connect() as conn:
            await conn.execute(sqlalchemy.text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "error"

    return HealthResponse(
        status="ok" if db_status == "ok" else "degraded",
        database=db_status,
        scheduler="running" if scheduler_running() else "stopped",
        version=settings.APP_VERSION,
    )


@router.get("/metrics", response_model=MetricsResponse, dependencies=[Depends(require_api_key)])
async def metrics_snapshot():
    return MetricsResponse(**await metrics.snapshot())
