"""
Rate Limiting Module
====================
Tiered fixed-window rate limiting backed by a shared counter store.
"""

from .models import ANONYMOUS, FailurePolicy, RateLimitInfo, RateLimitResult, Tier
from .buckets import classify_path, describe_tiers, tier_limit
from .headers import quota_headers, read_quota_headers
from .limiter import RateLimiter

__all__ = [
    # Models
    "ANONYMOUS",
    "FailurePolicy",
    "RateLimitInfo",
    "RateLimitResult",
    "Tier",
    # Buckets
    "classify_path",
    "describe_tiers",
    "tier_limit",
    # Headers
    "quota_headers",
    "read_quota_headers",
    # Limiter
    "RateLimiter",
]
