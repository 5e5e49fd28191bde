from __future__ import annotations

import random
import time
from typing import List, Optional

import httpx
import structlog

from siphon.config import settings
from siphon.exceptions import EmptyTileDataError, TileFetchError
from siphon.tiles import TileAddress

log = structlog.get_logger(__name__)


def _pick_server() -> str:
    return random.choice(settings.TILE_SERVERS).rstrip("/")


def extract_identifiers(data: dict) -> List[str]:
    """Flatten the screen-position buckets and drop duplicates, first seen wins."""
    seen: dict[str, None] = {}
    for entries in data.values():
        for entry in entries or ():
            identifier = entry.get("i") if isinstance(entry, dict) else None
            if identifier:
                seen.setdefault(identifier, None)
    return list(seen)


async def _get(client: httpx.AsyncClient, url: str, tile: TileAddress) -> httpx.Response:
    try:
        resp = await client.get(
            url,
            params={"x": tile.x, "y": tile.y, "z": tile.zoom},
            timeout=settings.HTTP_TIMEOUT,
        )
    except httpx.HTTPError as exc:
        raise TileFetchError(
            f"Unable to fetch tile {tile}: {exc}", context={"tile": tile.as_dict()}
        ) from exc
    if not resp.is_success:
        raise TileFetchError(
            f"Unable to fetch tile {tile}: HTTP {resp.status_code}",
            context={"tile": tile.as_dict(), "status": resp.status_code},
        )
    return resp


async def fetch_tile(
    client: httpx.AsyncClient,
    tile: TileAddress,
    server: Optional[str] = None,
) -> List[str]:
    """Identifiers visible in one tile."""
    server = server or _pick_server()
    t0 = time.monotonic()

    # The data endpoint answers empty unless the image for the same tile was
    # requested first.
    await _get(client, f"{server}/map.png", tile)
    resp = await _get(client, f"{server}/map.info", tile)
    ms = int((time.monotonic() - t0) * 1000)

    if resp.status_code == httpx.codes.NO_CONTENT:
        log.debug("tile.fetch.no_content", tile=str(tile), ms=ms)
        return []

    try:
        body = resp.json() if resp.content.strip() else None
    except ValueError:
        # an HTML challenge page instead of JSON
        body = None
    if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
        log.warning("tile.fetch.empty", tile=str(tile), status=resp.status_code)
        raise EmptyTileDataError(
            f"Tile {tile} returned no data (status {resp.status_code})",
            context={"tile": tile.as_dict(), "status": resp.status_code},
        )

    identifiers = extract_identifiers(body["data"])
    log.debug("tile.fetch.ok", tile=str(tile), identifiers=len(identifiers), ms=ms)
    return identifiers
