"""
Storage Module - Black Box Interface

Purpose: Own the primary Redis connection handle
Interface: client, owns_client, close(), classify_connection_error()
Hidden: Client construction, ownership rules, socket error classification

Can be replaced with any Redis-compatible client factory.
"""

import logging
import socket
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import TimeoutError as RedisTimeoutError

from ...exceptions import ConfigurationError, QueueConnectionError

logger = logging.getLogger("redisqueue.storage")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6379

# Resolver messages redis-py embeds when it re-raises socket.gaierror
DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname provided",
    "no address associated with hostname",
    "getaddrinfo failed",
)


class StorageModule:
    """Creates or adopts the primary client and tracks who owns it."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        options: Optional[Dict[str, Any]] = None,
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize storage.

        Args:
            host: Redis hostname
            port: Redis port
            options: Extra keyword arguments for redis.asyncio.Redis
            client: Existing client to adopt instead of creating one

        No I/O happens here; redis-py connects lazily on the first command.
        """
        self.host = host
        self.port = port

        if client is not None:
            if not isinstance(client, redis.Redis):
                raise ConfigurationError(
                    "client must be a redis.asyncio.Redis instance",
                    config_key="client",
                    config_value=type(client).__name__,
                )
            self.client = client
            self.owns_client = False
            pool = getattr(client, "connection_pool", None)
            kwargs = getattr(pool, "connection_kwargs", None)
            if isinstance(kwargs, dict):
                self.host = kwargs.get("host", host)
                self.port = kwargs.get("port", port)
        else:
            # Queue runs its own fixed-delay reconnect loop, so redis-py must
            # surface the first connection failure instead of backing off
            connection_kwargs = {
                "decode_responses": True,
                "retry": Retry(NoBackoff(), 0),
            }
            connection_kwargs.update(options or {})
            self.client = redis.Redis(host=host, port=port, **connection_kwargs)
            self.owns_client = True

    async def close(self, force: bool = False) -> None:
        """
        Close the client if this module created it.

        Args:
            force: Drop connections that are still in use instead of
                waiting for the pool to release them
        """
        if not self.owns_client:
            logger.debug("Leaving adopted Redis client open")
            return

        if force:
            await self.client.connection_pool.disconnect(inuse_connections=True)
        await self.client.aclose()

    def classify_connection_error(self, error: Exception) -> QueueConnectionError:
        """Wrap a transport failure with an ENOTFOUND/ECONNREFUSED/... code."""
        if isinstance(error, QueueConnectionError):
            return error
        return QueueConnectionError(
            code=connection_error_code(error),
            host=self.host,
            port=self.port,
            original_error=error,
        )


def connection_error_code(error: BaseException) -> str:
    """Map an exception chain to a socket-style error code."""
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return "ENOTFOUND"
        if isinstance(current, ConnectionRefusedError):
            return "ECONNREFUSED"
        current = current.__cause__ or current.__context__

    message = str(error).lower()
    if any(marker in message for marker in DNS_FAILURE_MARKERS):
        return "ENOTFOUND"
    if "connection refused" in message:
        return "ECONNREFUSED"
    if isinstance(error, (RedisTimeoutError, TimeoutError)) or "timeout" in message:
        return "ETIMEDOUT"
    return "ECONNRESET"


__all__ = [
    "StorageModule",
    "connection_error_code",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
]
