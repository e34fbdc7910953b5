"""
Retry Exceptions
================
"""

from typing import Optional


class RetryExhausted(Exception):
    """The retry policy ran out of attempts; ``last_exception`` is the final cause."""

    def __init__(self, message: str, attempts: int, last_exception: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception
