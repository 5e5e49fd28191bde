from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from siphon.config import settings
from siphon.repositories.records import RecordRepository


@dataclass(frozen=True)
class Quota:
    limit: int
    spent: int

    @property
    def remaining(self) -> int:
        return self.limit - self.spent

    @property
    def exhausted(self) -> bool:
        return self.remaining <= 0


async def spent_today(records: RecordRepository, now: datetime) -> int:
    """Fetches already made inside the trailing quota window."""
    since = now - timedelta(hours=settings.QUOTA_WINDOW_HOURS)
    return await records.count_fetched_since(since)


async def current_quota(records: RecordRepository, now: datetime) -> Quota:
    spent = await spent_today(records, now)
    return Quota(limit=settings.ABSOLUTE_DAILY_LIMIT, spent=spent)
