import pytest

from siphon import metrics
from siphon.config import settings


@pytest.mark.asyncio
async def test_counters_accumulate_per_tag_set():
    await metrics.increment("discover.tile", tags=["area:a"])
    await metrics.increment("discover.tile", tags=["area:a"])
    await metrics.increment("discover.tile", tags=["area:b"])
    await metrics.increment("apifetch.count", 7)

    snap = await metrics.snapshot()
    assert snap["counters"] == {
        "discover.tile[area:a]": 2,
        "discover.tile[area:b]": 1,
        "apifetch.count": 7,
    }


@pytest.mark.asyncio
async def test_gauge_keeps_last_value():
    await metrics.gauge("apifetch.todo", 10)
    await metrics.gauge("apifetch.todo", 3)
    assert (await metrics.snapshot())["gauges"] == {"apifetch.todo": 3}


@pytest.mark.asyncio
async def test_disabled_sink_is_silent(monkeypatch):
    monkeypatch.setattr(settings, "METRICS_ENABLED", False)
    await metrics.increment("apifetch.count", 5)
    await metrics.gauge("apifetch.limit", 1)
    assert await metrics.snapshot() == {"counters": {}, "gauges": {}}
