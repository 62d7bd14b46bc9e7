"""Shared fixtures for guard tests."""

import os

# Keep test runs from writing log files or picking up a developer .env
os.environ.setdefault("GUARD_LOG_TO_FILE", "false")
os.environ.setdefault("APP_ENV", "test")

import pytest

from Guard.account_lockout import AccountLockoutGuard, LockoutConfig
from Guard.counter_store import ExpiringKeyedCounterStore
from Guard.identifier_hashing import IdentifierHasher
from Guard.keyed_store import ShardedKeyedStore
from Guard.rate_limiter import RateLimiter
from guard_integration import GuardIntegration


START_MS = 1_700_000_000_000


class ManualClock:
    """Millisecond clock that only moves when a test advances it."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def hasher():
    return IdentifierHasher(pepper="")


@pytest.fixture
def counter_store():
    return ExpiringKeyedCounterStore(ShardedKeyedStore(shards=8))


@pytest.fixture
def rate_limiter(counter_store, hasher, clock):
    return RateLimiter(counter_store, hasher=hasher, clock=clock)


@pytest.fixture
def lockout(hasher, clock):
    return AccountLockoutGuard(LockoutConfig(), ShardedKeyedStore(shards=8), hasher, clock)


@pytest.fixture
def guard(clock, hasher):
    integration = GuardIntegration(hasher=hasher, clock=clock, shards=4)
    yield integration
    integration.shutdown()
