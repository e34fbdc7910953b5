"""
Rate Limiter Core
=================
Fixed-window quota enforcement on top of a shared counter store.

Every decision goes to the store; nothing is cached in-process, so all
instances sharing the store see the same counts. When the store cannot be
reached the configured FailurePolicy decides the outcome.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Union

import structlog

from ..config import RateLimitConfig
from ..errors import QuotaExceeded, StoreUnavailable
from ..metrics import RATE_LIMIT_DECISIONS, STORE_DEGRADED
from ..store.base import CounterState, CounterStore
from .buckets import DYNAMIC, tier_limit
from .models import ANONYMOUS, FailurePolicy, RateLimitInfo, Tier

logger = structlog.get_logger(__name__)

TierResolver = Callable[[str], Awaitable[Optional[Union[str, Tier]]]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """
    Tiered, shared-state rate limiter.

    Example:
        limiter = RateLimiter(RedisCounterStore(redis), settings.rate_limit)

        info = await limiter.consume("auth", client_ip)  # raises QuotaExceeded
    """

    def __init__(
        self,
        store: CounterStore,
        config: Optional[RateLimitConfig] = None,
        tier_resolver: Optional[TierResolver] = None,
        timeout_ms: int = 500,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            store: Shared counter store
            config: Buckets, tier limits and failure policy
            tier_resolver: Async lookup of a subject's current tier
            timeout_ms: Upper bound on a store round trip
            clock: Returns the current time in milliseconds
        """
        self.store = store
        self.config = config or RateLimitConfig()
        self.tier_resolver = tier_resolver
        self.timeout = timeout_ms / 1000
        self.failure_policy = FailurePolicy(self.config.failure_policy)
        self._clock = clock or _now_ms

    def get_key(self, bucket: str, identity: Optional[str]) -> str:
        """Generate the store key for a (bucket, identity) pair."""
        return f"{self.config.key_prefix}:{bucket}:{identity or ANONYMOUS}"

    async def _increment(self, key: str, window_ms: int) -> CounterState:
        # The increment runs as its own task so that cancelling the request
        # (or hitting the timeout) never rolls back or skips the count.
        task = asyncio.ensure_future(self.store.increment(key, window_ms))
        task.add_done_callback(_retrieve_exception)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StoreUnavailable(f"Counter store timed out for {key}", e) from e

    async def check_and_consume(
        self,
        bucket: str,
        identity: Optional[str],
        limit: int,
        window_ms: int,
    ) -> RateLimitInfo:
        """
        Count one request against ``(bucket, identity)`` and decide.

        Args:
            bucket: Bucket name
            identity: IP address, subject id, or None for anonymous
            limit: Requests allowed per window
            window_ms: Window length in milliseconds

        Returns:
            RateLimitInfo with decision and quota

        Raises:
            StoreUnavailable: Store unreachable and the policy is CLOSED
        """
        key = self.get_key(bucket, identity)

        try:
            state = await self._increment(key, window_ms)
        except (StoreUnavailable, ConnectionError, OSError) as e:
            return self._handle_store_failure(bucket, identity, limit, window_ms, e)

        now = self._clock()
        allowed = state.count <= limit
        info = RateLimitInfo(
            allowed=allowed,
            remaining=max(0, limit - state.count),
            limit=limit,
            reset_at_ms=now + state.ttl_ms,
            retry_after_ms=None if allowed else state.ttl_ms,
            bucket=bucket,
        )

        RATE_LIMIT_DECISIONS.labels(bucket=bucket, outcome=info.result.value).inc()
        if not allowed:
            logger.warning(
                "rate_limit_exceeded",
                bucket=bucket,
                identity=identity or ANONYMOUS,
                count=state.count,
                limit=limit,
                retry_after_ms=state.ttl_ms,
            )
        return info

    def _handle_store_failure(
        self,
        bucket: str,
        identity: Optional[str],
        limit: int,
        window_ms: int,
        error: Exception,
    ) -> RateLimitInfo:
        STORE_DEGRADED.labels(bucket=bucket, policy=self.failure_policy.value).inc()
        logger.error(
            "rate_limit_store_unavailable",
            bucket=bucket,
            identity=identity or ANONYMOUS,
            policy=self.failure_policy.value,
            timestamp=self._clock(),
            error=str(error),
        )

        if self.failure_policy == FailurePolicy.CLOSED:
            if isinstance(error, StoreUnavailable):
                raise error
            raise StoreUnavailable(f"Counter store unavailable: {error}", error) from error

        return RateLimitInfo(
            allowed=True,
            remaining=limit,
            limit=limit,
            reset_at_ms=self._clock() + window_ms,
            bucket=bucket,
            degraded=True,
        )

    async def check(self, bucket: str, identity: Optional[str]) -> RateLimitInfo:
        """Consume from a static bucket by name without raising on rejection."""
        try:
            policy = self.config.buckets[bucket]
        except KeyError:
            raise ValueError(f"Unknown rate limit bucket: {bucket}") from None
        return await self.check_and_consume(
            bucket, identity, policy.limit, policy.window_ms
        )

    async def consume(self, bucket: str, identity: Optional[str]) -> RateLimitInfo:
        """
        Consume from a static bucket, raising when the quota is exhausted.

        Raises:
            QuotaExceeded: Limit reached for the current window
        """
        info = await self.check(bucket, identity)
        _raise_if_blocked(info, identity)
        return info

    async def resolve_tier(self, subject_id: Optional[str]) -> Tier:
        """Look up the subject's tier now; any failure yields DEFAULT."""
        if not subject_id or self.tier_resolver is None:
            return Tier.DEFAULT
        try:
            return Tier.parse(await self.tier_resolver(subject_id))
        except Exception as e:
            logger.warning("tier_lookup_failed", subject_id=subject_id, error=str(e))
            return Tier.DEFAULT

    async def check_dynamic(
        self,
        subject_id: Optional[str],
        tier: Optional[Union[str, Tier]] = None,
    ) -> RateLimitInfo:
        """
        Consume from the tier-based bucket.

        Args:
            subject_id: Authenticated subject, or None for anonymous callers
            tier: Tier to apply; resolved via ``tier_resolver`` when omitted
        """
        if tier is None:
            tier = await self.resolve_tier(subject_id)
        limit = tier_limit(tier, self.config.tier_limits)
        return await self.check_and_consume(
            DYNAMIC, subject_id or ANONYMOUS, limit, self.config.dynamic_window_ms
        )

    async def consume_dynamic(
        self,
        subject_id: Optional[str],
        tier: Optional[Union[str, Tier]] = None,
    ) -> RateLimitInfo:
        """Tier-based variant of ``consume``."""
        info = await self.check_dynamic(subject_id, tier)
        _raise_if_blocked(info, subject_id)
        return info


def _raise_if_blocked(info: RateLimitInfo, identity: Optional[str]) -> None:
    if not info.allowed:
        raise QuotaExceeded(
            bucket=info.bucket or "",
            identity=identity or ANONYMOUS,
            retry_after=info.retry_after or 1,
            limit=info.limit,
        )


def _retrieve_exception(task: "asyncio.Future") -> None:
    # Abandoned increments (timeout, cancelled request) still finish; mark
    # their failure as seen so it is not reported as never retrieved.
    if not task.cancelled():
        task.exception()
