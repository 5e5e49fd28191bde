from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from siphon import metrics
from siphon.config import settings
from siphon.exceptions import AppError
from siphon.models import Area
from siphon.repositories.areas import AreaRepository
from siphon.repositories.records import RecordRepository
from siphon.retry import with_store_retry
from siphon.schemas import AreaResult, DiscoverResult
from siphon.services.tile_source import fetch_tile
from siphon.tiles import MIN_ZOOM, covering_tiles, to_geo_bounds

log = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def discover_area(
    area: Area,
    client: httpx.AsyncClient,
    records: RecordRepository,
    clock: Clock = utcnow,
) -> int:
    """Crawl every tile covering the area; returns identifiers seen (not deduplicated)."""
    zoom = max(settings.TILE_ZOOM, MIN_ZOOM)
    tiles = covering_tiles(area.polygon, zoom)
    log.info("discover.area.start", area=area.name, tiles=len(tiles))

    count = 0
    for tile in tiles:
        seen_at = clock()
        try:
            identifiers = await fetch_tile(client, tile)
        except AppError as exc:
            exc.context.setdefault("area", area.name)
            log.error("discover.tile.failed", area=area.name, tile=str(tile), error=exc.detail)
            raise
        bounds = to_geo_bounds(tile)
        await records.upsert_discovered(identifiers, tile, bounds, seen_at)

        count += len(identifiers)
        await metrics.increment("discover.tile", tags=[f"area:{area.name}"])
        await metrics.increment("discover.gc", len(identifiers), tags=[f"area:{area.name}"])
        log.debug("discover.tile", area=area.name, tile=str(tile), identifiers=len(identifiers))
    return count


async def discover(
    db: AsyncSession,
    client: Optional[httpx.AsyncClient] = None,
    clock: Clock = utcnow,
) -> DiscoverResult:
    """
    Crawl all areas that are due, most overdue first.

    A failing tile aborts the whole run; areas finished before it keep their
    updates and are not retried until the next run.
    """
    areas = AreaRepository(db)
    records = RecordRepository(db)

    now = clock()
    due = await with_store_retry(lambda: areas.due_for_discovery(now))
    log.info("discover.start", areas=len(due))

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)

    results = []
    try:
        for area in due:
            started = clock()
            t0 = time.monotonic()
            count = await discover_area(area, client, records, clock)
            await areas.mark_discovered(area, started, count)
            ms = int((time.monotonic() - t0) * 1000)
            log.info("discover.area.done", area=area.name, count=count, ms=ms)
            results.append(AreaResult(area_id=area.id, name=area.name, count=count, duration_ms=ms))
    finally:
        if owns_client:
            await client.aclose()

    log.info("discover.complete", areas=len(results))
    return DiscoverResult(
        areas_discovered=len(results),
        identifiers_seen=sum(r.count for r in results),
        areas=results,
    )
