"""
Shared Test Fixtures
====================
Controllable clocks and pre-wired governance components.
"""

from datetime import datetime, timedelta, timezone

import pytest

TEST_SECRET = "test-secret-key-with-at-least-32-bytes!!"


class FakeClock:
    """Manually advanced clock reporting milliseconds."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeWallClock:
    """Manually advanced clock returning aware datetimes."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return FakeWallClock()


@pytest.fixture
def store(clock):
    from vitalgate.store import InMemoryCounterStore

    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def limiter(store, clock):
    from vitalgate.rate_limit import RateLimiter

    return RateLimiter(store, clock=clock)


@pytest.fixture
def token_config():
    from vitalgate.config import TokenConfig

    return TokenConfig(secret=TEST_SECRET)
