import os

# Set required env vars BEFORE any siphon imports trigger Settings()
os.environ.setdefault("API_KEY", "test-api-key-for-testing")
os.environ.setdefault("DB_USER", "test")
os.environ.setdefault("DB_PASSWORD", "test")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from siphon.main import app
from siphon.database import Base, get_db
from siphon.auth import require_api_key
from siphon import metrics
from siphon.services.session import SessionProvider

TEST_DB = "sqlite+aiosqlite:///:memory:"
TEST_API_KEY = "test-api-key-for-testing"
NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        TEST_DB,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_engine):
    Session = async_sessionmaker(db_engine, expire_on_commit=False)
    async with Session() as session:
        yield session


@pytest.fixture(autouse=True)
def clear_metrics():
    metrics._counters.clear()
    metrics._gauges.clear()
    yield
    metrics._counters.clear()
    metrics._gauges.clear()


@pytest.fixture
def provider():
    """Session provider that always has credentials and hands out one token."""
    p = MagicMock(spec=SessionProvider)
    p.can_login.return_value = True
    p.login = AsyncMock(return_value="secret-access-token")
    return p


class FakeCatalog:
    """
    httpx MockTransport handler for the tile servers and the search endpoint.
    Tiles default to an empty (but well-formed) bucket map.
    """

    def __init__(self):
        self.tiles = {}
        self.requests = []
        self.searches = []
        self.missing = set()
        self.search_status = []
        self.tile_status = {}

    def set_tile(self, x, y, z, data):
        self.tiles[(x, y, z)] = data

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/map.png") or path.endswith("/map.info"):
            key = tuple(int(request.url.params[k]) for k in ("x", "y", "z"))
            self.requests.append((path.rsplit("/", 1)[-1], key))
            status = self.tile_status.get(key, 200)
            if status != 200:
                return httpx.Response(status)
            if path.endswith("/map.png"):
                return httpx.Response(200, content=b"\x89PNG")
            return httpx.Response(200, json={"data": self.tiles.get(key, {})})

        if path.endswith("/SearchForGeocaches"):
            body = json.loads(request.content)
            codes = body["CacheCode"]["CacheCodes"]
            self.searches.append(body)
            if self.search_status:
                status = self.search_status.pop(0)
                if status != 200:
                    return httpx.Response(status, json={"error": "boom"})
            return httpx.Response(
                200,
                json={
                    "Geocaches": [
                        {"Code": code, "Key": "Value"}
                        for code in codes
                        if code not in self.missing
                    ]
                },
            )
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest_asyncio.fixture
async def http(catalog):
    async with catalog.client() as c:
        yield c


@pytest_asyncio.fixture
async def client(db):
    async def override_get_db():
        yield db

    async def override_api_key():
        return TEST_API_KEY

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[require_api_key] = override_api_key

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()
