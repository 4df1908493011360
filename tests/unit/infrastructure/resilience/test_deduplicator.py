import asyncio

import pytest

from chatlink.domain.events.api_events import RequestDeduplicated
from chatlink.infrastructure.resilience.deduplicator import RequestDeduplicator

KEY = "GET:/chat/conversations"


@pytest.mark.asyncio
async def test_concurrent_identical_calls_share_one_invocation(events):
    dedup = RequestDeduplicator(event_listener=events.append)
    gate = asyncio.Event()
    invocations = 0

    async def factory():
        nonlocal invocations
        invocations += 1
        await gate.wait()
        return {"value": 42}

    tasks = [asyncio.ensure_future(dedup.run(KEY, factory)) for _ in range(5)]
    await asyncio.sleep(0)
    assert dedup.in_flight(KEY)

    gate.set()
    results = await asyncio.gather(*tasks)

    assert invocations == 1
    assert all(r is results[0] for r in results)
    assert sum(isinstance(e, RequestDeduplicated) for e in events) == 4
    assert not dedup.in_flight(KEY)


@pytest.mark.asyncio
async def test_waiters_observe_identical_error():
    dedup = RequestDeduplicator()
    gate = asyncio.Event()
    error = RuntimeError("down")

    async def factory():
        await gate.wait()
        raise error

    tasks = [asyncio.ensure_future(dedup.run(KEY, factory)) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*tasks, return_exceptions=True)

    assert all(r is error for r in results)
    assert len(dedup) == 0


@pytest.mark.asyncio
async def test_call_after_settlement_starts_fresh():
    dedup = RequestDeduplicator()
    invocations = 0

    async def factory():
        nonlocal invocations
        invocations += 1
        return invocations

    assert await dedup.run(KEY, factory) == 1
    assert await dedup.run(KEY, factory) == 2


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_call():
    dedup = RequestDeduplicator()
    gate = asyncio.Event()

    async def factory():
        await gate.wait()
        return "done"

    first = asyncio.ensure_future(dedup.run(KEY, factory))
    second = asyncio.ensure_future(dedup.run(KEY, factory))
    await asyncio.sleep(0)

    first.cancel()
    gate.set()

    assert await second == "done"
    with pytest.raises(asyncio.CancelledError):
        await first
