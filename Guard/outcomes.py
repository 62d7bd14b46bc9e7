"""
GUARD OUTCOMES
==============
Tagged results returned by every guard.
"""

# FLOW:
# - Guards return one of the outcome types below instead of a bare boolean.
# WHY:
# - Call sites need machine-readable metadata to render a user-facing message
#   (wait time, remaining attempts, offending field).
# HOW:
# - Frozen dataclasses sharing code/message/extensions(); rejecting outcomes
#   can be turned into a GuardRejected exception with raise_for_rejection().

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Union

from Guard.errors import GuardRejected


@dataclass(frozen=True)
class Allowed:
    code = "ALLOWED"
    rejected = False
    warning = False

    @property
    def message(self) -> str:
        return ""

    def extensions(self) -> Dict[str, Any]:
        return {}

    def raise_for_rejection(self) -> None:
        return None


ALLOWED = Allowed()


@dataclass(frozen=True)
class RateLimitExceeded:
    bucket: str
    retry_after_seconds: int
    detail: str = "Too many requests, please try again later."

    code = "RATE_LIMIT_EXCEEDED"
    rejected = True
    warning = False

    @property
    def message(self) -> str:
        return self.detail

    def extensions(self) -> Dict[str, Any]:
        return {"code": self.code, "retryAfter": self.retry_after_seconds}

    def raise_for_rejection(self) -> None:
        raise GuardRejected(self)


@dataclass(frozen=True)
class AccountLocked:
    locked_until: int
    remaining_minutes: int

    code = "ACCOUNT_LOCKED"
    rejected = True
    warning = False

    @property
    def message(self) -> str:
        return f"Account is locked. Please try again in {self.remaining_minutes} minutes."

    def extensions(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "lockedUntil": self.locked_until,
            "remainingMinutes": self.remaining_minutes,
        }

    def raise_for_rejection(self) -> None:
        raise GuardRejected(self)


@dataclass(frozen=True)
class InvalidCredentialsWarning:
    """Soft signal: the attempt failed and the account is close to lockout."""

    remaining_attempts: int

    code = "INVALID_CREDENTIALS"
    rejected = False
    warning = True

    @property
    def message(self) -> str:
        return (
            f"Invalid credentials. {self.remaining_attempts} attempts "
            "remaining before account lockout."
        )

    def extensions(self) -> Dict[str, Any]:
        return {"code": self.code, "remainingAttempts": self.remaining_attempts}

    def raise_for_rejection(self) -> None:
        return None


@dataclass(frozen=True)
class DangerousInputRejected:
    path: str
    signature_label: str

    code = "DANGEROUS_INPUT"
    rejected = True
    warning = False

    @property
    def message(self) -> str:
        return f"Potentially dangerous content detected in {self.path}"

    def extensions(self) -> Dict[str, Any]:
        return {"code": self.code, "path": self.path, "signature": self.signature_label}

    def raise_for_rejection(self) -> None:
        raise GuardRejected(self)


GuardOutcome = Union[
    Allowed,
    RateLimitExceeded,
    AccountLocked,
    InvalidCredentialsWarning,
    DangerousInputRejected,
]
