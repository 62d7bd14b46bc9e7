"""
ERROR HANDLING
==============
Render guard rejections as structured JSON responses.
"""

# FLOW:
# - register_error_handlers() maps guard exceptions to HTTP responses.
# WHY:
# - Clients need the failure code plus metadata (retry time, remaining
#   attempts, offending field) to render a message, and nothing else.
# HOW:
# - GuardRejected / InvalidCredentials become {"detail", "code", "extensions"};
#   anything unexpected becomes a generic 500.

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from Guard.errors import GuardRejected, InvalidCredentials, UsernameOrEmailRequired
from Guard.guard_logging import get_logger


logger = get_logger("errors")

STATUS_BY_CODE = {
    "RATE_LIMIT_EXCEEDED": 429,
    "ACCOUNT_LOCKED": 423,
    "DANGEROUS_INPUT": 400,
    "INVALID_CREDENTIALS": 401,
    "USERNAME_OR_EMAIL_REQUIRED": 400,
}


def outcome_response(outcome) -> JSONResponse:
    headers = {}
    retry_after = getattr(outcome, "retry_after_seconds", None)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        {"detail": outcome.message, "code": outcome.code, "extensions": outcome.extensions()},
        status_code=STATUS_BY_CODE.get(outcome.code, 400),
        headers=headers,
    )


def register_error_handlers(app):
    @app.exception_handler(GuardRejected)
    async def guard_rejected_handler(request: Request, exc: GuardRejected):
        return outcome_response(exc.outcome)

    @app.exception_handler(InvalidCredentials)
    async def invalid_credentials_handler(request: Request, exc: InvalidCredentials):
        return JSONResponse(
            {"detail": str(exc), "code": exc.code, "extensions": exc.extensions},
            status_code=401,
        )

    @app.exception_handler(UsernameOrEmailRequired)
    async def identifier_required_handler(request: Request, exc: UsernameOrEmailRequired):
        return JSONResponse(
            {"detail": str(exc), "code": exc.code, "extensions": exc.extensions},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s", request.url.path)
        return JSONResponse({"detail": "An error occurred"}, status_code=500)
