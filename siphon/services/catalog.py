from __future__ import annotations

import time
from typing import Dict, List

import httpx
import structlog

from siphon.config import settings
from siphon.exceptions import RemoteBatchError
from siphon.payload import CatalogPayload

log = structlog.get_logger(__name__)


async def _search(client: httpx.AsyncClient, identifiers: List[str], token: str) -> list:
    t0 = time.monotonic()
    context = {"identifiers": identifiers}
    try:
        resp = await client.post(
            settings.CATALOG_SEARCH_URL,
            params={"format": "json"},
            json={
                "AccessToken": token,
                "CacheCode": {"CacheCodes": identifiers},
                "GeocacheLogCount": settings.ACTIVITY_LOG_COUNT,
                "IsLite": False,
                "MaxPerPage": settings.REQUEST_BATCH_LIMIT,
                "TrackableLogCount": 0,
            },
            timeout=settings.HTTP_TIMEOUT,
        )
    except httpx.HTTPError as exc:
        raise RemoteBatchError(f"Search request failed: {exc}", context=context) from exc

    ms = int((time.monotonic() - t0) * 1000)
    log.debug("catalog.search", status=resp.status_code, requested=len(identifiers), ms=ms)
    if not resp.is_success:
        raise RemoteBatchError(
            f"Search rejected: HTTP {resp.status_code}",
            context={**context, "status": resp.status_code},
        )
    try:
        entries = resp.json().get("Geocaches")
    except (ValueError, AttributeError) as exc:
        raise RemoteBatchError(f"Malformed search response: {exc}", context=context) from exc
    if not isinstance(entries, list):
        raise RemoteBatchError("Search response has no result list", context=context)
    return entries


async def fetch_batch(
    client: httpx.AsyncClient, identifiers: List[str], token: str
) -> Dict[str, CatalogPayload]:
    """
    Full payloads for exactly ``identifiers``, keyed by identifier.

    Identifiers missing from the response are usually premium-only; they get a
    placeholder payload so they are not requested again on every run.
    """
    requested = set(identifiers)
    fetched: Dict[str, CatalogPayload] = {}
    for entry in await _search(client, identifiers, token):
        payload = CatalogPayload(entry)
        if payload.identifier in requested:
            fetched[payload.identifier] = payload

    for identifier in identifiers:
        if identifier not in fetched:
            log.info("catalog.missing", identifier=identifier, reason="probably premium")
            fetched[identifier] = CatalogPayload.inaccessible()
    return fetched
