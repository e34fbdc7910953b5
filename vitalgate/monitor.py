"""
Usage Monitor
=============
Warns when a response's quota usage approaches its limit.
"""

from typing import Mapping, Optional

import structlog

from .metrics import USAGE_WARNINGS
from .rate_limit.headers import read_quota_headers

logger = structlog.get_logger(__name__)

DEFAULT_WARNING_THRESHOLD = 80.0


class UsageMonitor:
    """
    Stateless observer of rate-limit response metadata.

    Never blocks or mutates the response; its only effect is a log line and
    a metric increment when usage crosses ``threshold`` percent.
    """

    def __init__(self, threshold: float = DEFAULT_WARNING_THRESHOLD):
        self.threshold = threshold

    def observe(
        self,
        limit: int,
        remaining: int,
        identity: Optional[str] = None,
        path: Optional[str] = None,
    ) -> Optional[float]:
        """
        Compute usage percent and emit a warning at or above the threshold.

        Returns:
            Usage percent, or None when ``limit`` is not positive
        """
        if limit <= 0:
            return None

        usage = (limit - remaining) * 100 / limit
        if usage >= self.threshold:
            USAGE_WARNINGS.inc()
            logger.warning(
                "rate_limit_usage_high",
                identity=identity,
                path=path,
                usage=round(usage, 1),
                limit=limit,
                remaining=remaining,
            )
        return usage

    def observe_headers(
        self,
        headers: Mapping[str, str],
        identity: Optional[str] = None,
        path: Optional[str] = None,
    ) -> Optional[float]:
        """Observe ``X-RateLimit-Limit``/``X-RateLimit-Remaining`` headers."""
        quota = read_quota_headers(headers)
        if quota is None:
            return None
        limit, remaining = quota
        return self.observe(limit, remaining, identity=identity, path=path)
