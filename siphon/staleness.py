"""
Refetch eligibility.

A record is due when it has never been fetched, or when its payload is older
than the window for its kind: regular records go stale after STALE_DAYS,
archived and premium ones only after their own (longer) windows. The same
rule is expressed twice, once in Python and once as a SQL clause; keep them
in step.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, false, func, or_

from siphon.config import settings
from siphon.models import Record
from siphon.payload import CatalogPayload


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite hands back naive datetimes; everything is stored as UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _cutoffs(now: datetime):
    return (
        now - timedelta(days=settings.STALE_DAYS),
        now - timedelta(days=settings.ARCHIVED_STALE_DAYS),
        now - timedelta(days=settings.PREMIUM_STALE_DAYS),
    )


def is_eligible(record: Record, now: datetime) -> bool:
    if record.api is None:
        return True
    fetched = as_utc(record.api_date)
    if fetched is None:
        return True
    payload = CatalogPayload(record.api)
    regular, archived, premium = _cutoffs(now)
    if payload.archived and fetched < archived:
        return True
    if payload.premium and fetched < premium:
        return True
    return not payload.archived and not payload.premium and fetched < regular


def _payload_flag(key: str):
    # missing keys and JSON null read as false, like CatalogPayload does
    return func.coalesce(Record.api[key].as_boolean(), false())


def eligible_clause(now: datetime):
    regular, archived, premium = _cutoffs(now)
    is_archived = _payload_flag("Archived")
    is_premium = _payload_flag("IsPremium")
    return or_(
        Record.api.is_(None),
        Record.api_date.is_(None),
        and_(is_archived.is_(False), is_premium.is_(False), Record.api_date < regular),
        and_(is_archived.is_(True), Record.api_date < archived),
        and_(is_premium.is_(True), Record.api_date < premium),
    )
