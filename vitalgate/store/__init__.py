"""
Shared Counter Store
====================
Atomic increment-with-expiry counters backing the rate limiter.
"""

from .base import CounterState, CounterStore
from .in_memory import InMemoryCounterStore
from .redis_store import FIXED_WINDOW_SCRIPT, RedisCounterStore, create_redis_client

__all__ = [
    "CounterState",
    "CounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "FIXED_WINDOW_SCRIPT",
    "create_redis_client",
]
