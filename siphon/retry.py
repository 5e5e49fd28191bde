from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

import structlog
from tenacity import (
    AsyncRetrying, retry_if_exception_type, stop_after_attempt,
)

from siphon.config import settings
from siphon.exceptions import StoreError

log = structlog.get_logger(__name__)

T = TypeVar("T")


def _log_retry(retry_state) -> None:
    log.warning(
        "store.retry",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()),
    )


async def with_store_retry(
    work: Callable[[], Awaitable[T]],
    attempts: int | None = None,
) -> T:
    """
    Run ``work`` again when it fails with StoreError, at most ``attempts``
    times in total with no wait in between. The last error is re-raised.
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(StoreError),
        stop=stop_after_attempt(attempts or settings.STORE_RETRY_ATTEMPTS),
        before_sleep=_log_retry,
        reraise=True,
    ):
        with attempt:
            return await work()
