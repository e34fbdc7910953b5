"""
Redis Counter Store
===================
Redis-backed fixed-window counters using a Lua script for atomic operations.
"""

import asyncio
from typing import Optional

import structlog
from redis.asyncio import Redis
from redis.exceptions import NoScriptError, RedisError

from ..config import StoreConfig
from ..errors import StoreUnavailable
from .base import CounterState

logger = structlog.get_logger(__name__)

# Lua script for an atomic fixed-window increment.
# The expiry is only set when INCR created the key, so the window
# self-resets; a key that somehow lost its TTL gets one again.
FIXED_WINDOW_SCRIPT = """
local key = KEYS[1]
local window_ms = tonumber(ARGV[1])

local count = redis.call('INCR', key)
if count == 1 then
    redis.call('PEXPIRE', key, window_ms)
end

local ttl = redis.call('PTTL', key)
if ttl < 0 then
    redis.call('PEXPIRE', key, window_ms)
    ttl = window_ms
end

return {count, ttl}
"""


def create_redis_client(config: StoreConfig) -> Redis:
    """Build an async Redis client from store settings."""
    return Redis.from_url(
        config.url,
        socket_connect_timeout=config.connect_timeout_ms / 1000,
        socket_timeout=config.timeout_ms / 1000,
        decode_responses=True,
    )


class RedisCounterStore:
    """
    Redis-backed counter store.

    Every call is bounded by ``timeout_ms``; timeouts and connection errors
    are raised as StoreUnavailable so the caller can apply its failure policy.
    """

    def __init__(self, redis_client: Redis, timeout_ms: int = 500):
        """
        Args:
            redis_client: Async Redis client
            timeout_ms: Upper bound for a single store round trip
        """
        self.redis = redis_client
        self.timeout = timeout_ms / 1000
        self._script_sha: Optional[str] = None

    async def _ensure_script(self) -> str:
        """Load Lua script into Redis if needed."""
        if self._script_sha is None:
            self._script_sha = await self.redis.script_load(FIXED_WINDOW_SCRIPT)
        return self._script_sha

    async def _run_script(self, key: str, window_ms: int):
        script_sha = await self._ensure_script()
        try:
            return await self.redis.evalsha(script_sha, 1, key, window_ms)
        except NoScriptError:
            # Redis restarted or flushed its script cache
            self._script_sha = None
            script_sha = await self._ensure_script()
            return await self.redis.evalsha(script_sha, 1, key, window_ms)

    async def increment(self, key: str, window_ms: int) -> CounterState:
        try:
            count, ttl = await asyncio.wait_for(
                self._run_script(key, window_ms), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            logger.error("counter_store_timeout", key=key, timeout=self.timeout)
            raise StoreUnavailable(f"Counter store timed out for {key}", e) from e
        except (RedisError, OSError) as e:
            logger.error("counter_store_error", key=key, error=str(e))
            raise StoreUnavailable(f"Counter store unavailable: {e}", e) from e

        return CounterState(count=int(count), ttl_ms=int(ttl))

    async def close(self) -> None:
        await self.redis.aclose()
