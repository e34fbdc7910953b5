"""
Quota Headers
=============
Standard response headers communicating rate-limit decisions.
"""

from typing import Dict, Mapping, Optional, Tuple

from .models import RateLimitInfo

LIMIT_HEADER = "X-RateLimit-Limit"
REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"
RETRY_AFTER_HEADER = "Retry-After"


def quota_headers(info: RateLimitInfo) -> Dict[str, str]:
    """Build limit/remaining/reset headers, plus Retry-After on rejection."""
    headers = {
        LIMIT_HEADER: str(info.limit),
        REMAINING_HEADER: str(info.remaining),
        RESET_HEADER: str(info.reset_at),
    }
    if not info.allowed and info.retry_after is not None:
        headers[RETRY_AFTER_HEADER] = str(info.retry_after)
    return headers


def read_quota_headers(headers: Mapping[str, str]) -> Optional[Tuple[int, int]]:
    """Return ``(limit, remaining)`` from response headers, if both are valid."""
    raw_limit = headers.get(LIMIT_HEADER)
    raw_remaining = headers.get(REMAINING_HEADER)
    if raw_limit is None or raw_remaining is None:
        return None
    try:
        return int(raw_limit), int(raw_remaining)
    except (TypeError, ValueError):
        return None
