import asyncio
from typing import Any, Dict, Optional

import redis.asyncio as redis


class SubscriptionHandle:
    """
    Dedicated subscriber-mode connection.

    Redis rejects list and key commands on a connection that has entered
    subscriber mode, so this handle only exposes pub/sub operations. Commands
    are serialized so that concurrent subscribe/unsubscribe calls reach Redis
    in the order they were made.
    """

    def __init__(self, client: redis.Redis):
        self._pubsub = client.pubsub()
        self._send_lock = asyncio.Lock()

    async def subscribe(self, channel: str) -> None:
        async with self._send_lock:
            await self._pubsub.subscribe(channel)

    async def unsubscribe(self, channel: str) -> None:
        async with self._send_lock:
            await self._pubsub.unsubscribe(channel)

    async def read(self, timeout: float) -> Optional[Dict[str, Any]]:
        """Next raw pub/sub message, including subscribe confirmations."""
        return await self._pubsub.get_message(
            ignore_subscribe_messages=False, timeout=timeout
        )

    async def close(self) -> None:
        await self._pubsub.aclose()
