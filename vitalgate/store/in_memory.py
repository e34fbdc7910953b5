"""
In-Memory Counter Store
=======================
Process-local counter store for development and testing.
"""

import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

from .base import CounterState


def _now_ms() -> int:
    return int(time.time() * 1000)


class InMemoryCounterStore:
    """
    In-memory fixed-window counters.

    For development and testing only; counts are not shared between
    processes. Use RedisCounterStore in production.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        """
        Args:
            clock: Returns the current time in milliseconds
        """
        self._clock = clock or _now_ms
        self._counters: Dict[str, Tuple[int, int]] = {}  # key -> (count, expires_at_ms)
        self._lock = asyncio.Lock()

    async def increment(self, key: str, window_ms: int) -> CounterState:
        async with self._lock:
            now = self._clock()
            count, expires_at = self._counters.get(key, (0, 0))

            if count == 0 or now >= expires_at:
                count, expires_at = 0, now + window_ms

            count += 1
            self._counters[key] = (count, expires_at)
            return CounterState(count=count, ttl_ms=expires_at - now)

    def peek(self, key: str) -> int:
        """Current count for ``key`` without consuming (expired counts as 0)."""
        count, expires_at = self._counters.get(key, (0, 0))
        if self._clock() >= expires_at:
            return 0
        return count

    def clear(self) -> None:
        self._counters.clear()
