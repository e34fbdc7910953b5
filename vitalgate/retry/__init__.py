"""
Retry Logic with Exponential Backoff
=====================================
Bounded retries for transient store and audit-chain failures.
"""

from .exceptions import RetryExhausted
from .backoff import RetryPolicy, retry_with_backoff

__all__ = [
    "RetryExhausted",
    "RetryPolicy",
    "retry_with_backoff",
]
