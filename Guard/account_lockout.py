"""
ACCOUNT LOCKOUT
===============
Temporary lockout after repeated credential failures.
"""

# FLOW:
# - check_lockout() runs before credential verification.
# - record_failure() / clear() run after it, based on the result.
# WHY:
# - Stops brute-force and credential stuffing against a single account,
#   and warns the user before the lock lands.
# HOW:
# - One LoginAttemptRecord per hashed identifier. Failures inside the
#   attempt window accumulate; reaching max_attempts sets locked_until.
#   Every transition happens inside the store's per-shard lock.

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, replace
from typing import Callable, Optional

from Guard.guard_config import GUARD_SETTINGS, feature_enabled, now_ms
from Guard.guard_logging import audit, get_logger
from Guard.identifier_hashing import IdentifierHasher
from Guard.keyed_store import ShardedKeyedStore
from Guard.outcomes import (
    ALLOWED,
    AccountLocked,
    GuardOutcome,
    InvalidCredentialsWarning,
)


NAMESPACE = "login-attempts"

logger = get_logger("lockout")


@dataclass(frozen=True)
class LockoutConfig:
    max_attempts: int = 5
    lockout_duration_ms: int = 30 * 60 * 1000
    attempt_window_ms: int = 15 * 60 * 1000
    warning_threshold: int = 3
    stale_after_ms: int = 24 * 60 * 60 * 1000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.lockout_duration_ms <= 0 or self.attempt_window_ms <= 0:
            raise ValueError("lockout_duration_ms and attempt_window_ms must be positive")

    @classmethod
    def from_settings(cls) -> "LockoutConfig":
        return cls(
            max_attempts=GUARD_SETTINGS["LOGIN_MAX_ATTEMPTS"],
            lockout_duration_ms=GUARD_SETTINGS["LOGIN_LOCKOUT_MS"],
            attempt_window_ms=GUARD_SETTINGS["LOGIN_ATTEMPT_WINDOW_MS"],
            warning_threshold=GUARD_SETTINGS["LOGIN_WARNING_THRESHOLD"],
            stale_after_ms=GUARD_SETTINGS["LOCKOUT_STALE_MS"],
        )


@dataclass
class LoginAttemptRecord:
    count: int
    first_attempt: int
    last_attempt: int
    locked_until: Optional[int] = None

    def is_locked(self, now: int) -> bool:
        return self.locked_until is not None and self.locked_until > now


class LockoutState(enum.Enum):
    CLEAN = "clean"
    WARNING = "warning"
    ALERT = "alert"
    LOCKED = "locked"


class AccountLockoutGuard:
    def __init__(
        self,
        config: LockoutConfig | None = None,
        store: ShardedKeyedStore | None = None,
        hasher: IdentifierHasher | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.config = config or LockoutConfig.from_settings()
        self.store = store or ShardedKeyedStore()
        self.hasher = hasher or IdentifierHasher()
        self.clock = clock

    def _window_elapsed(self, record: LoginAttemptRecord, now: int) -> bool:
        return now - record.first_attempt > self.config.attempt_window_ms

    def _locked_outcome(self, record: LoginAttemptRecord, now: int) -> AccountLocked:
        remaining = math.ceil((record.locked_until - now) / 60000)
        return AccountLocked(locked_until=record.locked_until, remaining_minutes=remaining)

    def check_lockout(self, identifier: str) -> GuardOutcome:
        key = self.hasher.hash(identifier)
        if not feature_enabled("account-lockout", True):
            return ALLOWED
        now = self.clock()
        outcome: GuardOutcome = ALLOWED

        def _check(record: Optional[LoginAttemptRecord]) -> Optional[LoginAttemptRecord]:
            nonlocal outcome
            if record is None:
                return None
            if record.is_locked(now):
                outcome = self._locked_outcome(record, now)
                return record
            if self._window_elapsed(record, now):
                return None
            return record

        self.store.mutate(NAMESPACE, key, _check)
        return outcome

    def record_failure(self, identifier: str) -> GuardOutcome:
        key = self.hasher.hash(identifier)
        if not feature_enabled("account-lockout", True):
            return ALLOWED
        now = self.clock()
        cfg = self.config
        newly_locked = False
        snapshot = None

        def _fail(record: Optional[LoginAttemptRecord]) -> LoginAttemptRecord:
            nonlocal newly_locked, snapshot
            if record is None or self._window_elapsed(record, now):
                record = LoginAttemptRecord(count=1, first_attempt=now, last_attempt=now)
            else:
                record.count += 1
                record.last_attempt = now
            if record.count >= cfg.max_attempts:
                newly_locked = not record.is_locked(now)
                record.locked_until = now + cfg.lockout_duration_ms
            snapshot = replace(record)
            return record

        self.store.mutate(NAMESPACE, key, _fail)
        record = snapshot

        if record.is_locked(now):
            if newly_locked:
                logger.warning(
                    "account locked key=%s failures=%s locked_until=%s",
                    key[:16],
                    record.count,
                    record.locked_until,
                )
                audit("account_locked", "account-lockout", subject=key[:16], failures=record.count)
            return self._locked_outcome(record, now)
        if record.count >= cfg.warning_threshold:
            return InvalidCredentialsWarning(remaining_attempts=cfg.max_attempts - record.count)
        return ALLOWED

    def clear(self, identifier: str) -> None:
        self.store.delete(NAMESPACE, self.hasher.hash(identifier))

    def state(self, identifier: str) -> LockoutState:
        now = self.clock()
        record = self.store.get(NAMESPACE, self.hasher.hash(identifier), replace)
        if record is None or (not record.is_locked(now) and self._window_elapsed(record, now)):
            return LockoutState.CLEAN
        if record.is_locked(now):
            return LockoutState.LOCKED
        if record.count >= self.config.warning_threshold:
            return LockoutState.ALERT
        return LockoutState.WARNING

    def record_for(self, identifier: str) -> Optional[LoginAttemptRecord]:
        return self.store.get(NAMESPACE, self.hasher.hash(identifier), replace)

    def sweep(self, now: Optional[int] = None) -> int:
        now = self.clock() if now is None else now
        stale_after = self.config.stale_after_ms
        return self.store.sweep(
            lambda namespace, record: namespace == NAMESPACE
            and not record.is_locked(now)
            and now - record.last_attempt > stale_after
        )
