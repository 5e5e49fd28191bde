from __future__ import annotations

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from siphon.config import settings

log = structlog.get_logger(__name__)
_scheduler: AsyncIOScheduler | None = None


async def _scheduled_cycle() -> None:
    from siphon.services.runner import run_cycle
    await run_cycle(triggered_by="scheduler")
    log.info("scheduler.cycle.done")


def start_scheduler() -> None:
    global _scheduler
    if not settings.SCHEDULER_ENABLED:
        log.info("scheduler.disabled")
        return

    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        _scheduled_cycle,
        trigger=IntervalTrigger(minutes=settings.CYCLE_INTERVAL_MINUTES),
        id="siphon_cycle",
        replace_existing=True,
        max_instances=1,
    )
    _scheduler.start()
    log.info("scheduler.started", interval_minutes=settings.CYCLE_INTERVAL_MINUTES)


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        log.info("scheduler.stopped")


def scheduler_running() -> bool:
    return bool(_scheduler and _scheduler.running)
