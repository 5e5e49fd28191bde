from __future__ import annotations

import asyncio
from typing import Dict, Iterable, Optional, Tuple

import structlog
from siphon.config import settings

log = structlog.get_logger(__name__)

# ── Fire-and-forget counters & gauges ─────────────────────────────────────────
#
# Kept in-process and mirrored to the log. With METRICS_ENABLED off every call
# is a silent no-op; emitting never raises into the caller.

_lock = asyncio.Lock()
_counters: Dict[Tuple[str, Tuple[str, ...]], float] = {}
_gauges: Dict[Tuple[str, Tuple[str, ...]], float] = {}


def _key(name: str, tags: Optional[Iterable[str]]) -> Tuple[str, Tuple[str, ...]]:
    return name, tuple(sorted(tags or ()))


async def increment(name: str, value: float = 1, tags: Optional[Iterable[str]] = None) -> None:
    if not settings.METRICS_ENABLED:
        return
    key = _key(name, tags)
    async with _lock:
        _counters[key] = _counters.get(key, 0) + value
    log.debug("metrics.increment", metric=name, value=value, tags=list(key[1]))


async def gauge(name: str, value: float, tags: Optional[Iterable[str]] = None) -> None:
    if not settings.METRICS_ENABLED:
        return
    key = _key(name, tags)
    async with _lock:
        _gauges[key] = value
    log.debug("metrics.gauge", metric=name, value=value, tags=list(key[1]))


def _render(store: dict) -> dict:
    out = {}
    for (name, tags), value in store.items():
        label = name if not tags else f"{name}[{','.join(tags)}]"
        out[label] = value
    return out


async def snapshot() -> dict:
    async with _lock:
        return {"counters": _render(_counters), "gauges": _render(_gauges)}
