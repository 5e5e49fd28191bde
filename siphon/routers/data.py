from __future__ import annotations
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from siphon.auth import require_api_key
from siphon.database import get_db
from siphon.exceptions import NotFoundError
from siphon.models import Record
from siphon.payload import CatalogPayload
from siphon.repositories.areas import AreaRepository
from siphon.repositories.audits import AuditRepository
from siphon.repositories.records import RecordRepository
from siphon.schemas import (
    AreaOut, AuditOut, DiscoverResult, FetchResult,
    PaginatedRecords, QuotaResponse, RecordOut,
)
from siphon.services.discovery import utcnow
from siphon.services.quota import current_quota
from siphon.services.runner import discover_and_audit, fetch_and_audit
from siphon.staleness import is_eligible

router = APIRouter(prefix="/api/v1", tags=["data"], dependencies=[Depends(require_api_key)])


def _record_out(row: Record, now: datetime) -> RecordOut:
    out = RecordOut.model_validate(row)
    out.due = is_eligible(row, now)
    if row.api:
        out.api_updated = CatalogPayload(row.api).updated
    return out


@router.post("/discover", response_model=DiscoverResult)
async def trigger_discover(db: AsyncSession = Depends(get_db)):
    """Blocking discovery run over every due area."""
    return await discover_and_audit(db, triggered_by="manual")


@router.post("/fetch", response_model=FetchResult)
async def trigger_fetch(db: AsyncSession = Depends(get_db)):
    """Blocking fetch run; returns status "disabled" without credentials."""
    return await fetch_and_audit(db, triggered_by="manual")


@router.get("/areas", response_model=List[AreaOut])
async def list_areas(db: AsyncSession = Depends(get_db)):
    rows = await AreaRepository(db).all()
    return [AreaOut.model_validate(r) for r in rows]


@router.get("/records", response_model=PaginatedRecords)
async def list_records(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    now = utcnow()
    total, rows = await RecordRepository(db).get_paginated(page, page_size)
    return PaginatedRecords(
        total=total, page=page, page_size=page_size,
        items=[_record_out(r, now) for r in rows],
    )


@router.get("/records/{identifier}", response_model=RecordOut)
async def get_record(identifier: str, db: AsyncSession = Depends(get_db)):
    row = await RecordRepository(db).get_by_identifier(identifier)
    if not row:
        raise NotFoundError(f"Record {identifier} not found")
    return _record_out(row, utcnow())


@router.get("/quota", response_model=QuotaResponse)
async def quota(db: AsyncSession = Depends(get_db)):
    records = RecordRepository(db)
    now = utcnow()
    current = await current_quota(records, now)
    return QuotaResponse(
        limit=current.limit,
        spent=current.spent,
        remaining=current.remaining,
        todo=await records.count_todo(now),
    )


@router.get("/logs", response_model=List[AuditOut])
async def fetch_logs(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    rows = await AuditRepository(db).recent(limit)
    return [AuditOut.model_validate(r) for r in rows]
