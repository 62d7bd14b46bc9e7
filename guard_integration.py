"""
GUARD INTEGRATION MODULE
========================
Owns the abuse guards for one application instance.

This module builds the shared stores, the three guards and their sweepers,
and wires them into a FastAPI application:

1. guard_config - environment-driven settings
2. identifier_hashing - SHA-256 keys for identifiers
3. counter_store / keyed_store - sharded in-memory state
4. rate_limiter - fixed-window buckets (auth, password-reset, registration)
5. account_lockout - failure tracking and timed lockout
6. input_sanitizer / input_validation_middleware - dangerous input scan
7. error_handling - JSON rendering of guard rejections
8. sweeper - periodic eviction of expired state
"""

from __future__ import annotations

import contextlib
import logging
from typing import Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from Guard.account_lockout import AccountLockoutGuard, LockoutConfig
from Guard.counter_store import ExpiringKeyedCounterStore
from Guard.error_handling import register_error_handlers
from Guard.guard_config import GUARD_SETTINGS, feature_enabled, now_ms
from Guard.identifier_hashing import IdentifierHasher
from Guard.input_sanitizer import InputSanitizer, InputValidationOptions
from Guard.input_validation_middleware import InputValidationMiddleware
from Guard.keyed_store import ShardedKeyedStore
from Guard.metrics import set_store_entries
from Guard.rate_limiter import RateLimitBucket, RateLimiter
from Guard.sweeper import PeriodicSweeper


class GuardIntegration:
    """
    Lifecycle owner for guard state: construct at startup, start() the
    sweepers, shutdown() on exit. Instances are fully isolated from each other.
    """

    def __init__(
        self,
        buckets: Optional[Dict[str, RateLimitBucket]] = None,
        lockout_config: Optional[LockoutConfig] = None,
        input_options: Optional[InputValidationOptions] = None,
        hasher: Optional[IdentifierHasher] = None,
        clock: Callable[[], int] = now_ms,
        shards: Optional[int] = None,
    ):
        self.logger = logging.getLogger("guard")
        self.clock = clock
        self.hasher = hasher or IdentifierHasher()

        self.counters = ExpiringKeyedCounterStore(ShardedKeyedStore(shards))
        self.lockout_store = ShardedKeyedStore(shards)

        self.rate_limiter = RateLimiter(self.counters, buckets, self.hasher, clock)
        self.lockout = AccountLockoutGuard(lockout_config, self.lockout_store, self.hasher, clock)
        self.sanitizer = InputSanitizer(input_options or InputValidationOptions.from_settings())

        self.scheduler = BackgroundScheduler(daemon=True)
        self.sweepers = [
            PeriodicSweeper("rate-limit", self.sweep_rate_limits, GUARD_SETTINGS["RATE_LIMIT_SWEEP_SECONDS"]),
            PeriodicSweeper("lockout", self.sweep_lockouts, GUARD_SETTINGS["LOCKOUT_SWEEP_SECONDS"]),
        ]

    def sweep_rate_limits(self) -> int:
        removed = self.rate_limiter.sweep()
        for name in self.rate_limiter.buckets:
            set_store_entries(name, self.counters.size(name))
        return removed

    def sweep_lockouts(self) -> int:
        removed = self.lockout.sweep()
        set_store_entries("login-attempts", self.lockout_store.size())
        return removed

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if self.scheduler.running:
            return
        for sweeper in self.sweepers:
            sweeper.schedule(self.scheduler)
        self.scheduler.start()
        self.logger.info("Guard sweepers started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.counters.clear()
        self.lockout_store.clear()
        self.logger.info("Guard sweepers stopped and state cleared")

    @contextlib.asynccontextmanager
    async def lifespan(self, app):
        self.start()
        try:
            yield
        finally:
            self.shutdown()

    def apply_middlewares(self, app) -> None:
        if feature_enabled("input-validation", True):
            app.add_middleware(InputValidationMiddleware, sanitizer=self.sanitizer)
            self.logger.info("Input validation enabled for %s", GUARD_SETTINGS["GRAPHQL_PATHS"])
        else:
            self.logger.info("Input validation disabled - set FEATURE_INPUT_VALIDATION=true to enable")


_guard_instance: Optional[GuardIntegration] = None


def get_guard() -> GuardIntegration:
    """Get or create the process-wide guard instance."""
    global _guard_instance
    if _guard_instance is None:
        _guard_instance = GuardIntegration()
    return _guard_instance


def apply_guard_to_app(app, guard: Optional[GuardIntegration] = None) -> GuardIntegration:
    """
    Wire the guards into a FastAPI app.

    Usage:
        guard = GuardIntegration()
        app = FastAPI(lifespan=guard.lifespan)
        apply_guard_to_app(app, guard)
    """
    guard = guard or get_guard()
    guard.apply_middlewares(app)
    register_error_handlers(app)
    app.state.guard = guard
    return guard


__all__ = [
    "GUARD_SETTINGS",
    "GuardIntegration",
    "get_guard",
    "apply_guard_to_app",
]
