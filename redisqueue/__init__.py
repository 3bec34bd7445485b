"""
redisqueue - FIFO queue and pub/sub on Redis

A thin asyncio façade over Redis lists and channels.

Architecture:
- Each module is self-contained with clear interfaces
- No module knows the internals of another

Modules:
- queue: Queue façade and subscription handle
- events: Local event emitter
- storage: Primary Redis connection ownership
"""

from .exceptions import (
    ConfigurationError,
    ConfirmationTimeoutError,
    NotSubscribedError,
    QueueConnectionError,
    QueueException,
    StoreCommandError,
)
from .modules.queue import Queue

__version__ = "1.0.0"

__all__ = [
    "Queue",
    "QueueException",
    "ConfigurationError",
    "StoreCommandError",
    "QueueConnectionError",
    "ConfirmationTimeoutError",
    "NotSubscribedError",
]
