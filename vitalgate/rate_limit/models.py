"""
Rate Limit Models
=================
Data models for rate limiting results, tiers and failure policies.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

ANONYMOUS = "anonymous"


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    DEGRADED = "degraded"


class FailurePolicy(str, Enum):
    """What the limiter does when the counter store is unreachable."""
    OPEN = "open"      # Allow the request, log the degradation
    CLOSED = "closed"  # Surface StoreUnavailable to the caller


class Tier(str, Enum):
    """Quota class attached to an authenticated identity."""
    DEFAULT = "default"
    PRO = "pro"
    PREMIUM = "premium"

    @classmethod
    def parse(cls, value) -> "Tier":
        """Map a stored tier value to a Tier, falling back to DEFAULT."""
        if isinstance(value, Tier):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.DEFAULT


@dataclass
class RateLimitInfo:
    """Rate limit check result with quota information."""
    allowed: bool
    remaining: int
    limit: int
    reset_at_ms: int  # Unix timestamp in milliseconds
    retry_after_ms: Optional[int] = None  # Time left in the window when blocked
    bucket: Optional[str] = None
    degraded: bool = False

    @property
    def result(self) -> RateLimitResult:
        if self.degraded:
            return RateLimitResult.DEGRADED
        return RateLimitResult.ALLOWED if self.allowed else RateLimitResult.BLOCKED

    @property
    def reset_at(self) -> int:
        """Window reset as a Unix timestamp in seconds."""
        return math.ceil(self.reset_at_ms / 1000)

    @property
    def retry_after(self) -> Optional[int]:
        """Seconds until retry allowed, rounded up."""
        if self.retry_after_ms is None:
            return None
        return max(1, math.ceil(self.retry_after_ms / 1000))
