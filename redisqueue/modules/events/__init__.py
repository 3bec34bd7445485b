"""
Events Module - Black Box Interface

Purpose: Deliver lifecycle and message notifications to local listeners
Interface: on(), once(), off(), emit(), listener_count()
Hidden: Listener bookkeeping, coroutine scheduling

Can be replaced with any observer or channel based notification mechanism.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import suppress
from typing import Any, Callable, Dict, List, Set, Tuple

logger = logging.getLogger("redisqueue.events")

Listener = Callable[..., Any]


class EventEmitter:
    """Synchronous in-process event emitter."""

    def __init__(self) -> None:
        # (listener, once) per registration, in registration order
        self._listeners: Dict[str, List[Tuple[Listener, bool]]] = defaultdict(list)
        self._listener_tasks: Set[asyncio.Task] = set()

    def on(self, event: str, listener: Listener) -> Listener:
        """Register a listener. Returns it so this can be used as a decorator."""
        self._listeners[event].append((listener, False))
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Register a listener that is removed after its first call."""
        self._listeners[event].append((listener, True))
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove the earliest registration of ``listener`` for ``event``."""
        entries = self._listeners.get(event, [])
        for index, (registered, _) in enumerate(entries):
            if registered == listener:
                del entries[index]
                return

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """
        Call every listener of ``event`` in registration order.

        Returns:
            True if at least one listener was registered

        Coroutine listeners are scheduled on the running loop. An ``error``
        event with no listeners is logged so connection failures are never
        silent.
        """
        entries = list(self._listeners.get(event, []))
        if not entries:
            if event == "error":
                err = args[0] if args else None
                logger.error(f"Unhandled error event: {err}")
            return False

        for entry in entries:
            listener, once = entry
            if once:
                with suppress(ValueError):
                    self._listeners[event].remove(entry)
            try:
                result = listener(*args)
            except Exception:
                logger.exception(f"Listener for '{event}' raised")
                continue

            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._listener_tasks.add(task)
                task.add_done_callback(self._listener_done)

        return True

    def _listener_done(self, task: asyncio.Task) -> None:
        self._listener_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Async listener failed: {task.exception()}")
