from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from shapely.geometry.base import BaseGeometry
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from siphon.database import store_errors
from siphon.geometry import GeoPoint, contains
from siphon.models import Record
from siphon.payload import CatalogPayload
from siphon.staleness import eligible_clause
from siphon.tiles import TileAddress

_STREAM_CHUNK = 500


class RecordRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _existing(self, identifiers: Iterable[str]) -> Dict[str, Record]:
        rows = await self.db.execute(
            select(Record).where(Record.identifier.in_(list(identifiers)))
        )
        return {row.identifier: row for row in rows.scalars().all()}

    # ── Discovery ─────────────────────────────────────────────────────────────

    async def upsert_discovered(
        self,
        identifiers: List[str],
        tile: TileAddress,
        bounds: Tuple[GeoPoint, GeoPoint],
        discovered_at: datetime,
    ) -> None:
        """Set discovery fields on each record, creating missing ones. Other fields stay."""
        if not identifiers:
            return
        bbox = [corner.as_dict() for corner in bounds]
        async with store_errors(self.db, "records.upsert_discovered", tile=str(tile)):
            existing = await self._existing(identifiers)
            for identifier in identifiers:
                row = existing.get(identifier)
                if row is None:
                    row = Record(identifier=identifier)
                    self.db.add(row)
                    existing[identifier] = row
                row.tile = tile.as_dict()
                row.bbox = bbox
                row.discover_date = discovered_at
            await self.db.commit()

    # ── Fetching ──────────────────────────────────────────────────────────────

    async def count_fetched_since(self, since: datetime) -> int:
        async with store_errors(self.db, "records.count_fetched"):
            result = await self.db.execute(
                select(func.count()).select_from(Record).where(Record.api_date >= since)
            )
            return result.scalar_one()

    async def count_todo(self, now: datetime) -> int:
        async with store_errors(self.db, "records.count_todo"):
            result = await self.db.execute(
                select(func.count()).select_from(Record).where(eligible_clause(now))
            )
            return result.scalar_one()

    async def next_batch(
        self,
        now: datetime,
        limit: int,
        region: Optional[BaseGeometry] = None,
    ) -> List[Record]:
        """
        Stalest eligible records first (never-fetched before everything else).
        With a region, only records whose coordinate lies inside it count.
        """
        if limit <= 0:
            return []
        query = (
            select(Record)
            .where(eligible_clause(now))
            .order_by(Record.api_date.asc().nulls_first(), Record.identifier)
        )
        async with store_errors(self.db, "records.next_batch"):
            if region is None:
                rows = await self.db.execute(query.limit(limit))
                return list(rows.scalars().all())

            batch: List[Record] = []
            result = await self.db.stream_scalars(
                query.execution_options(yield_per=_STREAM_CHUNK)
            )
            try:
                async for row in result:
                    point = row.coordinate
                    if point is not None and contains(region, point):
                        batch.append(row)
                        if len(batch) >= limit:
                            break
            finally:
                await result.close()
            return batch

    async def store_fetched(
        self, payloads: Dict[str, CatalogPayload], fetched_at: datetime
    ) -> None:
        """Merge fetched payloads into their records, all stamped with ``fetched_at``."""
        async with store_errors(
            self.db, "records.store_fetched", identifiers=sorted(payloads)
        ):
            existing = await self._existing(payloads)
            for identifier, payload in payloads.items():
                row = existing.get(identifier)
                if row is None:
                    row = Record(identifier=identifier)
                    self.db.add(row)
                row.api = payload.raw
                row.api_date = fetched_at
            await self.db.commit()

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def get_paginated(self, page: int, page_size: int) -> Tuple[int, List[Record]]:
        async with store_errors(self.db, "records.paginate"):
            total = (
                await self.db.execute(select(func.count()).select_from(Record))
            ).scalar_one()
            rows = (
                await self.db.execute(
                    select(Record)
                    .order_by(Record.discover_date.desc().nulls_last(), Record.identifier)
                    .offset((page - 1) * page_size)
                    .limit(page_size)
                )
            ).scalars().all()
            return total, list(rows)

    async def get_by_identifier(self, identifier: str) -> Optional[Record]:
        async with store_errors(self.db, "records.get", identifier=identifier):
            return await self.db.get(Record, identifier)

    async def counts(self) -> Dict[str, int]:
        async with store_errors(self.db, "records.counts"):
            row = (
                await self.db.execute(
                    select(
                        func.count().label("docs"),
                        func.count(Record.api).label("api"),
                        func.count(Record.discover_date).label("discovered"),
                    ).select_from(Record)
                )
            ).one()
            return {"docs": row.docs, "api": row.api, "discovered": row.discovered}
