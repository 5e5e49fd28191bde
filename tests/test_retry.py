import pytest

from siphon.exceptions import RemoteBatchError, StoreError
from siphon.retry import with_store_retry


class Flaky:
    def __init__(self, failures, exc=StoreError):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc("transient")
        return "done"


@pytest.mark.asyncio
async def test_recovers_from_transient_store_errors():
    work = Flaky(failures=2)
    assert await with_store_retry(work, attempts=3) == "done"
    assert work.calls == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    work = Flaky(failures=5)
    with pytest.raises(StoreError):
        await with_store_retry(work, attempts=3)
    assert work.calls == 3


@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    work = Flaky(failures=1, exc=RemoteBatchError)
    with pytest.raises(RemoteBatchError):
        await with_store_retry(work, attempts=3)
    assert work.calls == 1
