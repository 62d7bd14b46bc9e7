"""
RATE LIMITING
=============
Fixed-window request throttling per named bucket.
"""

# FLOW:
# - check(bucket, context) derives a hashed key, counts the event and
#   returns Allowed or RateLimitExceeded(retry_after_seconds).
# WHY:
# - Slows brute-force, password-reset spam and mass registration.
# HOW:
# - Each bucket owns a namespace in the shared counter store. Windows are
#   fixed, not sliding: a burst straddling a boundary can admit up to 2x max
#   events. That is accepted in exchange for one counter per caller.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from Guard.counter_store import ExpiringKeyedCounterStore
from Guard.guard_config import GUARD_SETTINGS, feature_enabled, now_ms
from Guard.guard_logging import audit, get_logger
from Guard.identifier_hashing import IdentifierHasher
from Guard.outcomes import ALLOWED, GuardOutcome, RateLimitExceeded
from Guard.request_context import UNKNOWN_IP, CallerContext


KeyDerivation = Callable[[CallerContext, IdentifierHasher], str]

logger = get_logger("ratelimit")


def _present(value) -> str:
    return str(value).strip() if value is not None else ""


def key_by_ip_and_user(context: CallerContext, hasher: IdentifierHasher) -> str:
    ip = _present(context.ip) or UNKNOWN_IP
    user_id = _present(context.user_id) or "anonymous"
    return hasher.hash(f"{ip}-{user_id}")


def key_by_ip(context: CallerContext, hasher: IdentifierHasher) -> str:
    return hasher.hash(_present(context.ip) or UNKNOWN_IP)


def key_by_target_identifier(context: CallerContext, hasher: IdentifierHasher) -> str:
    # Keyed by the account being targeted, not by the caller, so a victim
    # stays protected when requests come from rotating IPs.
    args = context.args or {}
    identifier = _present(args.get("email")) or _present(args.get("username")) or "unknown"
    return hasher.hash(identifier)


@dataclass(frozen=True)
class RateLimitBucket:
    name: str
    window_ms: int = 15 * 60 * 1000
    max: int = 5
    message: str = "Too many requests, please try again later."
    key_derivation: KeyDerivation = field(default=key_by_ip_and_user, compare=False)


def auth_bucket() -> RateLimitBucket:
    return RateLimitBucket(
        name="auth",
        window_ms=GUARD_SETTINGS["AUTH_WINDOW_MS"],
        max=GUARD_SETTINGS["AUTH_MAX"],
        message="Too many authentication attempts. Please try again later.",
    )


def password_reset_bucket() -> RateLimitBucket:
    return RateLimitBucket(
        name="password-reset",
        window_ms=GUARD_SETTINGS["PASSWORD_RESET_WINDOW_MS"],
        max=GUARD_SETTINGS["PASSWORD_RESET_MAX"],
        message="Too many password reset requests. Please try again later.",
        key_derivation=key_by_target_identifier,
    )


def registration_bucket() -> RateLimitBucket:
    return RateLimitBucket(
        name="registration",
        window_ms=GUARD_SETTINGS["REGISTRATION_WINDOW_MS"],
        max=GUARD_SETTINGS["REGISTRATION_MAX"],
        message="Too many registration attempts. Please try again later.",
        key_derivation=key_by_ip,
    )


def default_buckets() -> Dict[str, RateLimitBucket]:
    return {b.name: b for b in (auth_bucket(), password_reset_bucket(), registration_bucket())}


class RateLimiter:
    def __init__(
        self,
        store: ExpiringKeyedCounterStore,
        buckets: Dict[str, RateLimitBucket] | None = None,
        hasher: IdentifierHasher | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.buckets = dict(buckets) if buckets is not None else default_buckets()
        self.hasher = hasher or IdentifierHasher()
        self.clock = clock

    def bucket(self, name: str) -> RateLimitBucket:
        try:
            return self.buckets[name]
        except KeyError:
            raise KeyError(f"unknown rate-limit bucket: {name}") from None

    def register(self, bucket: RateLimitBucket) -> None:
        self.buckets[bucket.name] = bucket

    def check(self, bucket: RateLimitBucket | str, context: CallerContext) -> GuardOutcome:
        if isinstance(bucket, str):
            bucket = self.bucket(bucket)
        if not feature_enabled("rate-limiting", True):
            return ALLOWED

        key = bucket.key_derivation(context, self.hasher)
        now = self.clock()
        entry = self.store.increment_or_create(bucket.name, key, now, bucket.window_ms)

        if entry.count <= bucket.max:
            return ALLOWED

        retry_after = math.ceil((entry.reset_at - now) / 1000)
        logger.warning(
            "rate limit exceeded bucket=%s key=%s count=%s max=%s retry_after=%s",
            bucket.name,
            key[:16],
            entry.count,
            bucket.max,
            retry_after,
        )
        audit("rate_limited", "rate-limiting", bucket=bucket.name, subject=key[:16])
        return RateLimitExceeded(bucket=bucket.name, retry_after_seconds=retry_after, detail=bucket.message)

    def reset(self, bucket: RateLimitBucket | str, context: CallerContext) -> bool:
        if isinstance(bucket, str):
            bucket = self.bucket(bucket)
        return self.store.reset(bucket.name, bucket.key_derivation(context, self.hasher))

    def sweep(self, now: Optional[int] = None) -> int:
        return self.store.sweep(self.clock() if now is None else now)
