import httpx
import pytest

from siphon.exceptions import EmptyTileDataError, TileFetchError
from siphon.services.tile_source import extract_identifiers, fetch_tile
from siphon.tiles import TileAddress

TILE = TileAddress(2048, 2046, 12)


def test_extract_flattens_and_dedupes():
    data = {
        "(0,0)": [{"i": "GC0001"}, {"i": "GC0002"}],
        "(1,0)": [{"i": "GC0002"}, {"i": "GC0003"}],
        "(2,0)": [],
    }
    assert extract_identifiers(data) == ["GC0001", "GC0002", "GC0003"]


@pytest.mark.asyncio
async def test_image_requested_before_data(catalog, http):
    catalog.set_tile(2048, 2046, 12, {"(0,0)": [{"i": "GC0001"}]})

    ids = await fetch_tile(http, TILE)

    assert ids == ["GC0001"]
    assert catalog.requests == [
        ("map.png", (2048, 2046, 12)),
        ("map.info", (2048, 2046, 12)),
    ]


@pytest.mark.asyncio
async def test_empty_bucket_map_is_a_legit_empty_tile(catalog, http):
    assert await fetch_tile(http, TILE) == []


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_no_content_is_empty_tile():
    def handler(request):
        if request.url.path.endswith("map.info"):
            return httpx.Response(204)
        return httpx.Response(200, content=b"png")

    async with _client(handler) as c:
        assert await fetch_tile(c, TILE, server="http://tiles") == []


@pytest.mark.asyncio
async def test_ok_with_empty_body_is_refusal():
    def handler(request):
        return httpx.Response(200, content=b"")

    async with _client(handler) as c:
        with pytest.raises(EmptyTileDataError) as info:
            await fetch_tile(c, TILE, server="http://tiles")
    assert info.value.context["tile"] == {"x": 2048, "y": 2046, "z": 12}


@pytest.mark.asyncio
async def test_html_challenge_is_refusal():
    def handler(request):
        return httpx.Response(200, content=b"<html>are you a robot?</html>")

    async with _client(handler) as c:
        with pytest.raises(EmptyTileDataError):
            await fetch_tile(c, TILE, server="http://tiles")


@pytest.mark.asyncio
async def test_server_error_is_fetch_error(catalog, http):
    catalog.tile_status[(2048, 2046, 12)] = 503
    with pytest.raises(TileFetchError) as info:
        await fetch_tile(http, TILE)
    assert info.value.context["status"] == 503


@pytest.mark.asyncio
async def test_transport_failure_is_fetch_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    async with _client(handler) as c:
        with pytest.raises(TileFetchError):
            await fetch_tile(c, TILE, server="http://tiles")
