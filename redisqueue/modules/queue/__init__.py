"""
Queue Module - Black Box Interface

Purpose: FIFO queue and pub/sub channel on top of Redis
Interface: put(), pop(), get_all(), requeue(), publish(), subscribe(), unsubscribe()
Hidden: Redis commands, subscriber connection, confirmation tracking

Can be replaced with any list and pub/sub capable store.
"""

from .queue import ERROR_SUFFIX, Queue
from .subscription import SubscriptionHandle

__all__ = ["Queue", "SubscriptionHandle", "ERROR_SUFFIX"]
