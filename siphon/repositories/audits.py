from __future__ import annotations
from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from siphon.database import store_errors
from siphon.models import RunAudit


class AuditRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        kind: str,
        status: str,
        records_processed: int = 0,
        duration_ms: int = 0,
        error_detail: str | None = None,
        triggered_by: str = "manual",
    ) -> None:
        async with store_errors(self.db, "audits.log", kind=kind):
            self.db.add(
                RunAudit(
                    kind=kind,
                    status=status,
                    records_processed=records_processed,
                    duration_ms=duration_ms,
                    error_detail=error_detail,
                    triggered_by=triggered_by,
                )
            )
            await self.db.commit()

    async def recent(self, limit: int = 50) -> List[RunAudit]:
        async with store_errors(self.db, "audits.recent"):
            rows = await self.db.execute(
                select(RunAudit)
                .order_by(RunAudit.created_at.desc(), RunAudit.id.desc())
                .limit(limit)
            )
            return list(rows.scalars().all())
