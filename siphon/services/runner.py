from __future__ import annotations

import time
from typing import Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from siphon import metrics
from siphon.database import SessionLocal
from siphon.exceptions import AppError, StoreError
from siphon.repositories.audits import AuditRepository
from siphon.repositories.records import RecordRepository
from siphon.schemas import DiscoverResult, FetchResult
from siphon.services.discovery import discover
from siphon.services.fetch_scheduler import run_fetch
from siphon.services.session import SessionProvider

log = structlog.get_logger(__name__)


async def _audit(db: AsyncSession, **fields) -> None:
    # the audit row must never mask the outcome it describes
    try:
        await AuditRepository(db).log(**fields)
    except StoreError as exc:
        log.warning("audit.write.failed", kind=fields.get("kind"), error=exc.detail)


async def discover_and_audit(
    db: AsyncSession,
    triggered_by: str = "manual",
    client: Optional[httpx.AsyncClient] = None,
) -> DiscoverResult:
    t0 = time.monotonic()
    try:
        result = await discover(db, client)
    except AppError as exc:
        await _audit(
            db, kind="discover", status="error",
            duration_ms=int((time.monotonic() - t0) * 1000),
            error_detail=exc.detail, triggered_by=triggered_by,
        )
        raise
    await _audit(
        db, kind="discover", status="ok",
        records_processed=result.identifiers_seen,
        duration_ms=int((time.monotonic() - t0) * 1000),
        triggered_by=triggered_by,
    )
    return result


async def fetch_and_audit(
    db: AsyncSession,
    triggered_by: str = "manual",
    provider: Optional[SessionProvider] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FetchResult:
    t0 = time.monotonic()
    try:
        result = await run_fetch(db, provider, client)
    except AppError as exc:
        await _audit(
            db, kind="fetch", status="error",
            duration_ms=int((time.monotonic() - t0) * 1000),
            error_detail=exc.detail, triggered_by=triggered_by,
        )
        raise
    await _audit(
        db, kind="fetch", status=result.status,
        records_processed=result.fetched,
        duration_ms=int((time.monotonic() - t0) * 1000),
        triggered_by=triggered_by,
    )
    return result


async def publish_stats(db: AsyncSession) -> dict:
    counts = await RecordRepository(db).counts()
    await metrics.gauge("stats.docs", counts["docs"])
    await metrics.gauge("stats.api", counts["api"])
    await metrics.gauge("stats.discovered", counts["discovered"])
    return counts


async def run_cycle(triggered_by: str = "scheduler") -> None:
    """
    Discovery, then fetching, then stats. Each stage gets its own session and
    a failure in one does not stop the next.
    """
    async with SessionLocal() as db:
        try:
            result = await discover_and_audit(db, triggered_by)
            log.info("cycle.discover.done", areas=result.areas_discovered)
        except AppError as exc:
            log.error("cycle.discover.failed", error=exc.detail, context=exc.context)

    async with SessionLocal() as db:
        try:
            result = await fetch_and_audit(db, triggered_by)
            log.info("cycle.fetch.done", status=result.status, fetched=result.fetched)
        except AppError as exc:
            log.error("cycle.fetch.failed", error=exc.detail, context=exc.context)

    async with SessionLocal() as db:
        try:
            await publish_stats(db)
        except StoreError as exc:
            log.error("cycle.stats.failed", error=exc.detail)
