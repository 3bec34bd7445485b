"""
Live Redis integration tests.

Run with a disposable Redis (these tests FLUSHALL):
    REDISQUEUE_LIVE_REDIS=1 REDIS_HOST=localhost pytest -m integration
"""

import asyncio
import os
import sys
import uuid

import pytest
import pytest_asyncio

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from redisqueue.config import EnvConfigProvider
from redisqueue.modules.queue import Queue

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.getenv("REDISQUEUE_LIVE_REDIS") != "1",
        reason="set REDISQUEUE_LIVE_REDIS=1 to run against a live Redis",
    ),
]


@pytest_asyncio.fixture
async def live_queue():
    q = Queue.from_config(f"test-{uuid.uuid4()}", EnvConfigProvider().get_queue_config())
    ready = asyncio.Event()
    q.once("ready", ready.set)
    await q.connect()
    await asyncio.wait_for(ready.wait(), 5)
    yield q
    await q.clear()
    await q.quit()


@pytest.mark.asyncio
async def test_put_then_get_all(live_queue):
    await live_queue.flush()
    await live_queue.put("first elem")
    await live_queue.put("second elem")

    assert await live_queue.get_all() == ["first elem", "second elem"]


@pytest.mark.asyncio
async def test_publish_subscribe_roundtrip(live_queue):
    received = asyncio.Queue()
    live_queue.on("message", received.put_nowait)

    assert await live_queue.subscribe() == 1
    live_queue.publish("ping")

    assert await asyncio.wait_for(received.get(), 2) == "ping"
    assert await live_queue.unsubscribe() == 0


@pytest.mark.asyncio
async def test_unresolvable_host_reports_enotfound():
    q = Queue("jobs", host="redisqueue-nonexistent.invalid")
    errors = []
    q.on("error", errors.append)
    readies = []
    q.on("ready", lambda: readies.append(True))

    try:
        await q.connect()
        await asyncio.wait_for(q._monitor_task, 10)
    finally:
        await q.close()

    assert [e.code for e in errors] == ["ENOTFOUND"]
    assert readies == []
