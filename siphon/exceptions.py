from __future__ import annotations
from typing import Any, Dict, Optional
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse


# ── Typed domain exceptions ───────────────────────────────────────────────────

class AppError(Exception):
    """Base for all application-level errors."""
    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, detail: str, context: Optional[Dict[str, Any]] = None):
        self.detail = detail
        self.context = context or {}
        super().__init__(detail)


class NotFoundError(AppError):
    status_code = 404
    error_code = "NOT_FOUND"


class TileFetchError(AppError):
    """Transport failure or non-OK status on a tile request."""
    status_code = 502
    error_code = "TILE_FETCH_FAILED"


class EmptyTileDataError(AppError):
    """OK status but no tile data: the catalog refused or starved the request."""
    status_code = 502
    error_code = "TILE_DATA_EMPTY"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "UNAUTHORIZED"


class RemoteBatchError(AppError):
    status_code = 502
    error_code = "REMOTE_BATCH_FAILED"


class StoreError(AppError):
    status_code = 503
    error_code = "STORE_UNAVAILABLE"


# ── FastAPI exception handlers ────────────────────────────────────────────────

async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "detail": exc.detail,
            "context": exc.context,
        },
    )


async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTP_ERROR",
            "detail": exc.detail,
        },
    )
