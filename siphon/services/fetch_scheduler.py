from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

import httpx
import structlog
from shapely.geometry.base import BaseGeometry
from sqlalchemy.ext.asyncio import AsyncSession

from siphon import metrics
from siphon.config import settings
from siphon.repositories.areas import AreaRepository
from siphon.repositories.records import RecordRepository
from siphon.retry import with_store_retry
from siphon.schemas import FetchResult
from siphon.services.catalog import fetch_batch
from siphon.services.discovery import Clock, utcnow
from siphon.services.priority import priority_region
from siphon.services.quota import Quota, current_quota
from siphon.services.session import SessionProvider

log = structlog.get_logger(__name__)


class FetchScope(enum.Enum):
    PRIORITY = "priority"
    GLOBAL = "global"


class ScopeTracker:
    """
    Starts in PRIORITY scope when there is a region to prefer and falls back to
    GLOBAL the first time a priority selection comes back empty. The switch is
    one-way for the rest of the run.
    """

    def __init__(self, region: Optional[BaseGeometry]):
        self.region = region
        self.scope = FetchScope.PRIORITY if region is not None else FetchScope.GLOBAL

    @property
    def active_region(self) -> Optional[BaseGeometry]:
        return self.region if self.scope is FetchScope.PRIORITY else None

    def on_empty_selection(self) -> bool:
        """Returns True when the selection should be retried in global scope."""
        if self.scope is FetchScope.PRIORITY:
            self.scope = FetchScope.GLOBAL
            log.info("apifetch.scope.global")
            return True
        return False


async def run_fetch(
    db: AsyncSession,
    provider: Optional[SessionProvider] = None,
    client: Optional[httpx.AsyncClient] = None,
    clock: Clock = utcnow,
) -> FetchResult:
    """
    Refresh the stalest records within the remaining daily budget.

    One ``now`` is taken at the start and used for every staleness check and
    every stored ``api_date``. Any remote or store failure aborts the run;
    batches committed before it stay committed. Fetch metrics are reported
    however the run ends.
    """
    provider = provider or SessionProvider()
    if not provider.can_login():
        log.info("apifetch.disabled", reason="missing catalog credentials")
        return FetchResult(status="disabled")

    now = clock()
    records = RecordRepository(db)
    areas = AreaRepository(db)

    quota: Optional[Quota] = None
    todo: Optional[int] = None
    fetched = 0
    batches = 0
    try:
        quota = await with_store_retry(lambda: current_quota(records, now))
        todo = await with_store_retry(lambda: records.count_todo(now))
        log.info(
            "apifetch.start",
            spent=quota.spent, limit=quota.limit, remaining=quota.remaining, todo=todo,
        )

        if quota.exhausted:
            log.info("apifetch.quota.exhausted", spent=quota.spent)
            return FetchResult(
                status="ok", fetched=0, batches=0, todo=todo, remaining_budget=quota.remaining
            )

        tracker = ScopeTracker(await with_store_retry(lambda: priority_region(areas)))
        token: Optional[str] = None

        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
        try:
            while fetched < quota.remaining:
                limit = min(settings.REQUEST_BATCH_LIMIT, quota.remaining - fetched)
                docs = await with_store_retry(
                    lambda: records.next_batch(now, limit, tracker.active_region)
                )
                if not docs:
                    if tracker.on_empty_selection():
                        continue
                    log.info("apifetch.nothing_to_do")
                    break

                if token is None:
                    token = await provider.login(client)

                identifiers = [doc.identifier for doc in docs]
                log.info("apifetch.batch", size=len(identifiers), scope=tracker.scope.value)
                try:
                    payloads = await fetch_batch(client, identifiers, token)
                    await records.store_fetched(payloads, now)
                except Exception as exc:
                    log.error("apifetch.batch.failed", identifiers=identifiers, error=str(exc))
                    raise
                fetched += len(docs)
                batches += 1
        finally:
            if owns_client:
                await client.aclose()
    finally:
        await metrics.increment("apifetch.count", fetched)
        if todo is not None:
            await metrics.gauge("apifetch.todo", todo)
        if quota is not None:
            await metrics.gauge("apifetch.limit", quota.remaining)

    log.info("apifetch.complete", fetched=fetched, batches=batches)
    return FetchResult(
        status="ok",
        fetched=fetched,
        batches=batches,
        todo=todo,
        remaining_budget=quota.remaining - fetched,
    )
