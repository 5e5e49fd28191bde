import json

import httpx
import pytest

from siphon.exceptions import AuthenticationError
from siphon.services.session import SessionProvider


def _provider(**overrides):
    creds = {
        "username": "user",
        "password": "secret",
        "consumer_key": "key",
        "login_url": "http://catalog/Login",
    }
    creds.update(overrides)
    return SessionProvider(**creds)


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize("missing", ["username", "password", "consumer_key"])
def test_cannot_login_with_missing_credential(missing):
    assert _provider(**{missing: ""}).can_login() is False


def test_can_login_with_all_credentials():
    assert _provider().can_login() is True


@pytest.mark.asyncio
async def test_login_returns_token():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"AccessToken": "tok"})

    async with _client(handler) as c:
        assert await _provider().login(c) == "tok"
    assert seen == {"ConsumerKey": "key", "UserName": "user", "Password": "secret"}


@pytest.mark.asyncio
async def test_rejected_login():
    async with _client(lambda r: httpx.Response(401)) as c:
        with pytest.raises(AuthenticationError) as info:
            await _provider().login(c)
    assert info.value.context["status"] == 401


@pytest.mark.asyncio
async def test_login_without_token():
    async with _client(lambda r: httpx.Response(200, json={"Status": "nope"})) as c:
        with pytest.raises(AuthenticationError):
            await _provider().login(c)


@pytest.mark.asyncio
async def test_login_without_credentials_raises():
    async with _client(lambda r: httpx.Response(200)) as c:
        with pytest.raises(AuthenticationError):
            await _provider(password="").login(c)
