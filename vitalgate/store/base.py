"""
Counter Store Interface
=======================
Contract every shared counter backend implements.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class CounterState:
    """Counter value after an increment and the time left in its window."""
    count: int
    ttl_ms: int


class CounterStore(Protocol):
    """
    A key-value store with atomic increment/expire semantics.

    ``increment`` must be atomic across every service instance sharing the
    store: it adds one to ``key``, sets the expiry to ``window_ms`` only when
    the increment created the key, and returns the new count together with
    the remaining time to live.

    Implementations raise ``StoreUnavailable`` when the backend cannot be
    reached or the call times out.
    """

    async def increment(self, key: str, window_ms: int) -> CounterState:
        ...
