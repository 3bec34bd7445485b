"""
Shared pytest fixtures for redisqueue tests.

This module provides:
- Redis mocks for queue command tests
- A data-backed Redis mock that reads back what it writes
- A fake pub/sub broker with controllable confirmations
"""

import asyncio
import os
import sys
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from redis.asyncio import Redis

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from redisqueue.modules.queue import Queue


# =============================================================================
# Pub/Sub Fakes
# =============================================================================

class FakePubSub:
    """
    Stand-in for redis.asyncio.client.PubSub.

    Confirmations and messages are queued in the order Redis would send them
    on a single connection. Set ``confirm = False`` to simulate Redis never
    acknowledging subscribe/unsubscribe.
    """

    def __init__(self, broker: "FakeBroker"):
        self.broker = broker
        self.confirm = broker.confirm
        self.channels = set()
        self.messages: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def subscribe(self, *channels: str) -> None:
        await asyncio.sleep(0)  # network round trip
        for channel in channels:
            self.channels.add(channel)
            if self.confirm:
                self.push("subscribe", channel, len(self.channels))

    async def unsubscribe(self, *channels: str) -> None:
        await asyncio.sleep(0)
        for channel in channels:
            self.channels.discard(channel)
            if self.confirm:
                self.push("unsubscribe", channel, len(self.channels))

    async def get_message(self, ignore_subscribe_messages: bool = False, timeout: float = 0.0):
        try:
            return await asyncio.wait_for(self.messages.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def aclose(self) -> None:
        self.closed = True
        self.broker.pubsubs.remove(self)

    def push(self, kind: str, channel: str, data: Any) -> None:
        self.messages.put_nowait(
            {"type": kind, "pattern": None, "channel": channel, "data": data}
        )


class FakeBroker:
    """Routes PUBLISH calls to every FakePubSub subscribed to the channel."""

    def __init__(self):
        self.pubsubs: List[FakePubSub] = []
        self.confirm = True

    def create(self) -> FakePubSub:
        pubsub = FakePubSub(self)
        self.pubsubs.append(pubsub)
        return pubsub

    def publish(self, channel: str, message: str) -> int:
        receivers = [p for p in self.pubsubs if channel in p.channels]
        for pubsub in receivers:
            pubsub.push("message", channel, message)
        return len(receivers)


@pytest.fixture
def pubsub_broker():
    return FakeBroker()


# =============================================================================
# Redis Mocking Infrastructure
# =============================================================================

@pytest.fixture
def mock_redis(pubsub_broker):
    """Create a mock async Redis client that passes isinstance checks."""
    redis = AsyncMock(spec=Redis)

    # List operations
    redis.rpush = AsyncMock(return_value=1)
    redis.lpop = AsyncMock(return_value=None)
    redis.lrange = AsyncMock(return_value=[])
    redis.delete = AsyncMock(return_value=0)
    redis.flushall = AsyncMock(return_value=True)

    # Pub/sub
    redis.publish = AsyncMock(return_value=0)
    redis.pubsub = MagicMock(side_effect=pubsub_broker.create)

    # Connection
    redis.ping = AsyncMock(return_value=True)
    redis.aclose = AsyncMock()

    return redis


@pytest.fixture
def mock_redis_with_data(mock_redis, pubsub_broker):
    """
    Redis mock with in-memory list storage for more realistic tests.

    This allows testing code that reads back what it writes.
    """
    storage: Dict[str, List[str]] = {}

    async def mock_rpush(key, *values):
        storage.setdefault(key, []).extend(values)
        return len(storage[key])

    async def mock_lpop(key) -> Optional[str]:
        items = storage.get(key)
        if not items:
            return None
        item = items.pop(0)
        if not items:
            del storage[key]
        return item

    async def mock_lrange(key, start, end):
        items = storage.get(key, [])
        return list(items[start:] if end == -1 else items[start:end + 1])

    async def mock_delete(*keys):
        count = 0
        for key in keys:
            if key in storage:
                del storage[key]
                count += 1
        return count

    async def mock_flushall():
        storage.clear()
        return True

    async def mock_publish(channel, message):
        return pubsub_broker.publish(channel, message)

    mock_redis.rpush = mock_rpush
    mock_redis.lpop = mock_lpop
    mock_redis.lrange = mock_lrange
    mock_redis.delete = mock_delete
    mock_redis.flushall = mock_flushall
    mock_redis.publish = mock_publish
    mock_redis._storage = storage  # Expose for test assertions

    return mock_redis


@pytest_asyncio.fixture
async def queue(mock_redis_with_data):
    """Queue named 'jobs' on the data-backed mock; closed after the test."""
    q = Queue("jobs", client=mock_redis_with_data)
    yield q
    await q.close()


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring a live Redis"
    )
