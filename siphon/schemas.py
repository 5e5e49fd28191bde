from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class AreaResult(BaseModel):
    area_id: int
    name: str
    count: int
    duration_ms: int


class DiscoverResult(BaseModel):
    areas_discovered: int
    identifiers_seen: int
    areas: List[AreaResult]


class FetchResult(BaseModel):
    status: str                         # ok | disabled
    fetched: int = 0
    batches: int = 0
    todo: int = 0
    remaining_budget: Optional[int] = None


class AreaOut(BaseModel):
    id: int
    name: str
    polygon: Optional[Dict[str, Any]]
    discover_date: Optional[datetime]
    count: Optional[int]
    inactive: bool
    one_shot: bool
    model_config = {"from_attributes": True}


class RecordOut(BaseModel):
    identifier: str
    tile: Optional[Dict[str, int]]
    bbox: Optional[List[Dict[str, float]]]
    discover_date: Optional[datetime]
    api: Any
    api_date: Optional[datetime]
    api_updated: Optional[datetime] = None   # catalog-side DateLastUpdate
    due: Optional[bool] = None               # eligible for refetch right now
    model_config = {"from_attributes": True}


class PaginatedRecords(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[RecordOut]


class QuotaResponse(BaseModel):
    limit: int
    spent: int
    remaining: int
    todo: int


class AuditOut(BaseModel):
    id: int
    kind: str
    status: str
    records_processed: int
    duration_ms: Optional[int]
    error_detail: Optional[str]
    triggered_by: str
    created_at: datetime
    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str
    database: str
    scheduler: str
    version: str


class MetricsResponse(BaseModel):
    counters: Dict[str, float]
    gauges: Dict[str, float]
