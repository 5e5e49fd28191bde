from __future__ import annotations

import httpx
import structlog

from siphon.config import settings
from siphon.exceptions import AuthenticationError

log = structlog.get_logger(__name__)


class SessionProvider:
    """Credentials for the remote catalog. Missing credentials disable fetching."""

    def __init__(
        self,
        username: str | None = None,
        password: str | None = None,
        consumer_key: str | None = None,
        login_url: str | None = None,
    ):
        self.username = username if username is not None else settings.CATALOG_USERNAME
        self.password = password if password is not None else settings.CATALOG_PASSWORD
        self.consumer_key = (
            consumer_key if consumer_key is not None else settings.CATALOG_CONSUMER_KEY
        )
        self.login_url = login_url or settings.CATALOG_LOGIN_URL

    def can_login(self) -> bool:
        return bool(self.username and self.password and self.consumer_key)

    async def login(self, client: httpx.AsyncClient) -> str:
        if not self.can_login():
            raise AuthenticationError("Catalog credentials are not configured")
        try:
            resp = await client.post(
                self.login_url,
                params={"format": "json"},
                json={
                    "ConsumerKey": self.consumer_key,
                    "UserName": self.username,
                    "Password": self.password,
                },
                timeout=settings.HTTP_TIMEOUT,
            )
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Login request failed: {exc}") from exc

        if not resp.is_success:
            raise AuthenticationError(
                f"Login rejected: HTTP {resp.status_code}",
                context={"status": resp.status_code},
            )
        try:
            body = resp.json()
        except ValueError:
            body = None
        token = body.get("AccessToken") if isinstance(body, dict) else None
        if not token:
            raise AuthenticationError("Login response carried no access token")

        log.info("session.login.ok", username=self.username)
        return token
