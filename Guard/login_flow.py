"""
GUARDED ACCOUNT FLOWS
=====================
Call-site helpers that run the guards in the required order.
"""

# FLOW:
# - login_with_password(): rate limit -> lockout pre-check -> verify ->
#   record failure or clear.
# - request_password_reset(): rate limit keyed by target -> send if user
#   exists -> always report success.
# - register_account(): rate limit keyed by IP -> create.
# WHY:
# - A locked-out caller must never reach expensive credential verification,
#   and reset responses must not reveal whether an account exists.
# HOW:
# - User lookup, verification and delivery are caller-supplied callables;
#   guard rejections surface as GuardRejected / InvalidCredentials.

from __future__ import annotations

from typing import Any, Callable, Optional

from Guard.errors import InvalidCredentials, UsernameOrEmailRequired
from Guard.guard_logging import get_logger
from Guard.request_context import CallerContext


logger = get_logger("flows")


def login_with_password(
    guard,
    context: CallerContext,
    verify: Callable[[], Optional[Any]],
    username: str | None = None,
    email: str | None = None,
):
    """Authenticate through the guards; ``verify`` returns the user or None."""
    guard.rate_limiter.check("auth", context.with_args(username=username, email=email)).raise_for_rejection()

    identifier = (username or email or "").strip()
    if not identifier:
        raise UsernameOrEmailRequired()

    guard.lockout.check_lockout(identifier).raise_for_rejection()

    user = verify()
    if not user:
        outcome = guard.lockout.record_failure(identifier)
        outcome.raise_for_rejection()
        raise InvalidCredentials(outcome if outcome.warning else None)

    guard.lockout.clear(identifier)
    return user


def request_password_reset(
    guard,
    context: CallerContext,
    email: str,
    find_user: Callable[[str], Optional[Any]],
    send_reset: Callable[[Any, str], None],
) -> dict:
    guard.rate_limiter.check("password-reset", context.with_args(email=email)).raise_for_rejection()

    user = find_user(email)
    if user:
        try:
            send_reset(user, email)
        except Exception:
            logger.exception("password reset delivery failed")
    return {"success": True}


def register_account(guard, context: CallerContext, create: Callable[[], Any]):
    guard.rate_limiter.check("registration", context).raise_for_rejection()
    return create()
