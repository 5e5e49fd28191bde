from __future__ import annotations

from datetime import datetime, timedelta
from typing import List

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from siphon.config import settings
from siphon.database import store_errors
from siphon.models import Area


class AreaRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def due_for_discovery(self, now: datetime) -> List[Area]:
        """
        Active areas never crawled, or crawled too long ago and not one-shot.
        Most overdue first, never-discovered before everything else.
        """
        cutoff = now - timedelta(hours=settings.DISCOVER_INTERVAL_HOURS)
        query = (
            select(Area)
            .where(Area.inactive.is_not(True))
            .where(
                or_(
                    Area.discover_date.is_(None),
                    and_(Area.discover_date < cutoff, Area.one_shot.is_not(True)),
                )
            )
            .order_by(Area.discover_date.asc().nulls_first(), Area.id)
        )
        async with store_errors(self.db, "areas.due"):
            rows = await self.db.execute(query)
            return list(rows.scalars().all())

    async def all(self) -> List[Area]:
        async with store_errors(self.db, "areas.all"):
            rows = await self.db.execute(select(Area).order_by(Area.id))
            return list(rows.scalars().all())

    async def mark_discovered(self, area: Area, discovered_at: datetime, count: int) -> None:
        async with store_errors(self.db, "areas.mark_discovered", area=area.name):
            area.discover_date = discovered_at
            area.count = count
            await self.db.commit()
