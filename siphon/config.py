from __future__ import annotations
from functools import lru_cache
from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ──────────────────────────────────────────────────────────────────
    APP_NAME: str = "siphon"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # ── Authentication ───────────────────────────────────────────────────────
    API_KEY: str  # required, no default

    # ── Database ─────────────────────────────────────────────────────────────
    DB_USER: str  # required, no default
    DB_PASSWORD: str  # required, no default
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "siphon"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    STORE_RETRY_ATTEMPTS: int = 3

    # ── Remote catalog credentials (empty → fetch disabled) ──────────────────
    CATALOG_USERNAME: str = ""
    CATALOG_PASSWORD: str = ""
    CATALOG_CONSUMER_KEY: str = ""
    CATALOG_LOGIN_URL: str = (
        "https://api.groundspeak.com/LiveV6/Geocaching.svc/internal/Login"
    )
    CATALOG_SEARCH_URL: str = (
        "https://api.groundspeak.com/LiveV6/Geocaching.svc/internal/SearchForGeocaches"
    )

    # ── Tiles ────────────────────────────────────────────────────────────────
    TILE_SERVERS: List[str] = [
        "https://tiles01.geocaching.com",
        "https://tiles02.geocaching.com",
        "https://tiles03.geocaching.com",
        "https://tiles04.geocaching.com",
    ]
    TILE_ZOOM: int = 12

    # ── HTTP ─────────────────────────────────────────────────────────────────
    HTTP_TIMEOUT: float = 8.0

    # ── Quota & staleness ────────────────────────────────────────────────────
    ABSOLUTE_DAILY_LIMIT: int = 2000
    REQUEST_BATCH_LIMIT: int = 50
    QUOTA_WINDOW_HOURS: int = 23
    DISCOVER_INTERVAL_HOURS: int = 23
    STALE_DAYS: int = 7
    ARCHIVED_STALE_DAYS: int = 90
    PREMIUM_STALE_DAYS: int = 90
    ACTIVITY_LOG_COUNT: int = 5

    # ── Scheduler ────────────────────────────────────────────────────────────
    SCHEDULER_ENABLED: bool = True
    CYCLE_INTERVAL_MINUTES: int = 60

    # ── Metrics ──────────────────────────────────────────────────────────────
    METRICS_ENABLED: bool = True

    @property
    def DATABASE_URL(self) -> str:
        from urllib.parse import quote_plus
        return (
            f"postgresql+asyncpg://{quote_plus(self.DB_USER)}:{quote_plus(self.DB_PASSWORD)}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of {allowed}")
        return v

    @field_validator("TILE_ZOOM")
    @classmethod
    def validate_zoom(cls, v: int) -> int:
        # the catalog silently drops results below zoom 12
        if v < 12:
            raise ValueError("TILE_ZOOM must be at least 12")
        return v

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
