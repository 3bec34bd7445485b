import asyncio
import logging
from collections import deque
from contextlib import suppress
from typing import Any, Deque, Dict, Optional, Set

import redis.asyncio as redis
from redis.exceptions import RedisError

from ...config import QueueConfig
from ...exceptions import (
    ConfigurationError,
    ConfirmationTimeoutError,
    NotSubscribedError,
    StoreCommandError,
)
from ..events import EventEmitter
from ..storage import DEFAULT_HOST, DEFAULT_PORT, StorageModule
from .subscription import SubscriptionHandle

logger = logging.getLogger("redisqueue.queue")

ERROR_SUFFIX = "_error"


class Queue(EventEmitter):
    """
    FIFO queue and pub/sub channel backed by a Redis list.

    Events:
        connect: transport established
        ready: command interface usable
        error(err): transport or publish failure
        reconnecting(err): a reconnect attempt is scheduled
        message(payload): channel message, only after subscribe()
    """

    RECONNECT_DELAY = 3.0
    CONFIRMATION_TIMEOUT = 1.0
    HEALTH_CHECK_INTERVAL = 30.0
    READ_TIMEOUT = 1.0

    def __init__(
        self,
        name: str,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        options: Optional[Dict[str, Any]] = None,
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize queue.

        Args:
            name: Queue name, used as list key and channel name
            host: Redis hostname
            port: Redis port
            options: Extra keyword arguments for redis.asyncio.Redis
            client: Existing client to adopt; it is never closed by the queue

        Raises:
            ConfigurationError: If name is empty or client is not a Redis client
        """
        super().__init__()

        if not isinstance(name, str) or not name:
            raise ConfigurationError(
                "Queue constructor error: parameter `name` is not set",
                config_key="name",
                config_value=name,
            )
        self.name = name
        self.error_name = f"{name}{ERROR_SUFFIX}"

        self.storage = StorageModule(host=host, port=port, options=options, client=client)
        self.client = self.storage.client

        self.connected = False
        self.ready = False

        self._subscription: Optional[SubscriptionHandle] = None
        self._pending: Dict[str, Deque[asyncio.Future]] = {
            "subscribe": deque(),
            "unsubscribe": deque(),
        }
        self._monitor_task: Optional[asyncio.Task] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._publish_tasks: Set[asyncio.Task] = set()
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closing = False

        # Inside a running loop the monitor starts right away, so listeners
        # attached straight after construction see the first events
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"Queue '{name}' created outside an event loop; call connect()")
        else:
            self._monitor_task = asyncio.ensure_future(self._monitor())

    @classmethod
    def from_config(cls, name: str, config: QueueConfig) -> "Queue":
        return cls(
            name,
            host=config.host,
            port=config.port,
            options=config.connection_options(),
        )

    async def __aenter__(self) -> "Queue":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.quit()

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None

    # Connection lifecycle

    async def connect(self) -> None:
        """Start the connection monitor; progress is reported through events."""
        self._closing = False
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.ensure_future(self._monitor())

    async def _monitor(self) -> None:
        """
        Ping the primary handle and report connection state.

        Logic:
        1. PING; on success emit connect and ready once per (re)connection
        2. Re-check every HEALTH_CHECK_INTERVAL seconds
        3. On failure emit error; DNS failures stop the loop
        4. Otherwise emit reconnecting and retry after RECONNECT_DELAY
        """
        while not self._closing:
            try:
                await self.client.ping()
            except (RedisError, OSError) as e:
                error = self.storage.classify_connection_error(e)
                self.connected = False
                self.ready = False
                logger.warning(f"Queue '{self.name}' connection failed: {error.message}")
                self.emit("error", error)
                if not error.retryable:
                    logger.error(
                        f"Queue '{self.name}' cannot resolve {error.host}, not retrying"
                    )
                    return
                self.emit("reconnecting", error)
                await asyncio.sleep(self.RECONNECT_DELAY)
                continue

            if not self.ready:
                self.connected = True
                self.emit("connect")
                self.ready = True
                logger.info(f"Queue '{self.name}' ready on {self.storage.host}:{self.storage.port}")
                self.emit("ready")

            await asyncio.sleep(self.HEALTH_CHECK_INTERVAL)

    async def close(self) -> None:
        """Terminate connections without waiting for pending commands."""
        self._closing = True
        for task in list(self._publish_tasks):
            task.cancel()
        await self._stop_background()
        await self._close_subscription()
        await self.storage.close(force=True)
        self.connected = False
        self.ready = False
        logger.info(f"Queue '{self.name}' closed")

    async def quit(self) -> None:
        """Wait for in-flight commands to finish, then close connections."""
        if self._publish_tasks:
            await asyncio.gather(*list(self._publish_tasks), return_exceptions=True)
        await self._idle.wait()

        self._closing = True
        await self._stop_background()
        await self._close_subscription()
        await self.storage.close()
        self.connected = False
        self.ready = False
        logger.info(f"Queue '{self.name}' shut down")

    async def _stop_background(self) -> None:
        for task in (self._monitor_task, self._reader_task):
            if task is not None and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._monitor_task = None
        self._reader_task = None

    async def _close_subscription(self) -> None:
        for pending in self._pending.values():
            while pending:
                pending.popleft().cancel()

        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            await subscription.close()

    # List commands

    async def _execute(self, command: str, *args: Any) -> Any:
        """Run a command on the primary handle, tracking it for quit()."""
        self._in_flight += 1
        self._idle.clear()
        try:
            logger.debug(f"{command.upper()} {args[0] if args else ''}")
            return await getattr(self.client, command)(*args)
        except RedisError as e:
            key = args[0] if args else None
            logger.warning(f"{command.upper()} on '{key}' failed: {e}")
            raise StoreCommandError(command.upper(), key=key, original_error=e) from e
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

    async def put(self, payload: str) -> int:
        """Append payload to the tail of the queue. Returns the new length."""
        return await self._execute("rpush", self.name, payload)

    async def pop(self) -> Optional[str]:
        """Remove and return the head of the queue, or None when empty."""
        return await self._execute("lpop", self.name)

    async def get_all(self) -> list:
        """All queued items, head to tail, without removing them."""
        return await self._execute("lrange", self.name, 0, -1)

    async def get_all_errors(self) -> list:
        return await self._execute("lrange", self.error_name, 0, -1)

    async def requeue(self, payload: str) -> int:
        """Park a payload on the error list for later inspection."""
        return await self._execute("rpush", self.error_name, payload)

    async def clear(self) -> int:
        """Delete this queue's list and error list. Returns keys removed."""
        return await self._execute("delete", self.name, self.error_name)

    async def flush(self) -> Any:
        """
        Remove every key in the Redis database.

        This is store-wide and destroys data belonging to other queues and
        applications sharing the database. Use clear() for this queue only.
        """
        logger.warning(f"Queue '{self.name}' flushing all Redis keys")
        return await self._execute("flushall")

    # Pub/sub

    def publish(self, payload: str) -> None:
        """Broadcast payload on the queue channel without waiting for Redis."""
        task = asyncio.ensure_future(self._execute("publish", self.name, payload))
        self._publish_tasks.add(task)
        task.add_done_callback(self._publish_done)

    def _publish_done(self, task: asyncio.Task) -> None:
        self._publish_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.emit("error", error)

    async def subscribe(self) -> int:
        """
        Subscribe to the queue channel.

        Returns:
            Subscriber count reported by Redis

        Raises:
            ConfirmationTimeoutError: Not sent and confirmed within CONFIRMATION_TIMEOUT
            StoreCommandError: SUBSCRIBE could not be sent
        """
        if self._subscription is None:
            self._subscription = SubscriptionHandle(self.client)

        count = await self._request("subscribe")
        logger.info(f"Subscribed to '{self.name}' ({count} subscriptions)")
        return count

    async def unsubscribe(self) -> int:
        """
        Unsubscribe from the queue channel.

        Returns:
            Remaining subscription count reported by Redis

        Raises:
            NotSubscribedError: subscribe() was never called
            ConfirmationTimeoutError: Not sent and confirmed within CONFIRMATION_TIMEOUT
        """
        if self._subscription is None:
            raise NotSubscribedError(self.name)

        count = await self._request("unsubscribe")
        logger.info(f"Unsubscribed from '{self.name}' ({count} subscriptions left)")
        return count

    async def _request(self, kind: str) -> int:
        """Send SUBSCRIBE or UNSUBSCRIBE and wait for Redis to confirm it."""
        try:
            return await asyncio.wait_for(
                self._send_and_confirm(kind), self.CONFIRMATION_TIMEOUT
            )
        except asyncio.TimeoutError:
            logger.warning(f"{kind} on '{self.name}' not confirmed in time")
            raise ConfirmationTimeoutError(kind, self.CONFIRMATION_TIMEOUT, self.name) from None

    async def _send_and_confirm(self, kind: str) -> int:
        confirmation = self._expect(kind)
        sent = False
        try:
            try:
                await getattr(self._subscription, kind)(self.name)
            except (RedisError, OSError) as e:
                raise StoreCommandError(kind.upper(), key=self.name, original_error=e) from e
            sent = True
            self._start_reader()
            return await confirmation
        finally:
            # A sent request keeps its cancelled slot so that its late
            # confirmation is consumed there instead of by a later call
            if not sent:
                with suppress(ValueError):
                    self._pending[kind].remove(confirmation)
            confirmation.cancel()

    def _expect(self, kind: str) -> asyncio.Future:
        confirmation = asyncio.get_running_loop().create_future()
        self._pending[kind].append(confirmation)
        return confirmation

    def _start_reader(self) -> None:
        if self._reader_task is None or self._reader_task.done():
            self._reader_task = asyncio.ensure_future(self._read_subscription())

    async def _read_subscription(self) -> None:
        while not self._closing and self._subscription is not None:
            try:
                message = await self._subscription.read(timeout=self.READ_TIMEOUT)
            except (RedisError, OSError) as e:
                error = self.storage.classify_connection_error(e)
                logger.warning(f"Subscription to '{self.name}' lost: {error.message}")
                self._discard_stale_confirmations()
                self.emit("error", error)
                if not error.retryable:
                    return
                self.emit("reconnecting", error)
                await asyncio.sleep(self.RECONNECT_DELAY)
                continue

            if message is not None:
                self._dispatch(message)

    def _dispatch(self, message: Dict[str, Any]) -> None:
        kind = message.get("type")
        if kind in self._pending:
            self._confirm(kind, message.get("data"))
        elif kind == "message":
            self.emit("message", message.get("data"))

    def _confirm(self, kind: str, count: Any) -> None:
        pending = self._pending[kind]
        if not pending:
            logger.debug(f"Ignoring unsolicited {kind} confirmation on '{self.name}'")
            return

        confirmation = pending.popleft()
        if confirmation.done():
            logger.debug(f"Ignoring late {kind} confirmation on '{self.name}'")
            return
        confirmation.set_result(count)

    def _discard_stale_confirmations(self) -> None:
        # Replies for a dropped connection never arrive
        for kind, pending in self._pending.items():
            self._pending[kind] = deque(f for f in pending if not f.done())
