"""
INPUT VALIDATION MIDDLEWARE
===========================
Scan GraphQL variables before they reach resolvers.
"""

# FLOW:
# - For requests on the configured GraphQL paths, pull operationName and
#   variables from the JSON body (POST) or query string (GET) and scan them.
# WHY:
# - Rejects the whole request before any business logic sees a
#   half-validated payload.
# HOW:
# - Runs InputSanitizer.scan_variables and answers 400 on the first match.
#   Unparseable bodies are passed through for the GraphQL server to reject.

from __future__ import annotations

import json

from starlette.middleware.base import BaseHTTPMiddleware

from Guard.error_handling import outcome_response
from Guard.guard_config import GUARD_SETTINGS
from Guard.input_sanitizer import InputSanitizer


def _extract_params(payload):
    if not isinstance(payload, dict):
        return None, None
    return payload.get("operationName"), payload.get("variables")


class InputValidationMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, sanitizer: InputSanitizer | None = None, paths: list[str] | None = None):
        super().__init__(app)
        self.sanitizer = sanitizer or InputSanitizer()
        self.paths = set(paths if paths is not None else GUARD_SETTINGS["GRAPHQL_PATHS"])

    async def _read_params(self, request):
        if request.method == "GET":
            raw = request.query_params.get("variables")
            try:
                variables = json.loads(raw) if raw else None
            except json.JSONDecodeError:
                return None, None
            return request.query_params.get("operationName"), variables
        if request.method != "POST":
            return None, None
        content_type = request.headers.get("content-type") or ""
        if "application/json" not in content_type:
            return None, None
        body = await request.body()
        if not body:
            return None, None
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None, None
        return _extract_params(payload)

    async def dispatch(self, request, call_next):
        if request.url.path not in self.paths:
            return await call_next(request)
        operation_name, variables = await self._read_params(request)
        if isinstance(variables, dict):
            outcome = self.sanitizer.scan_variables(variables, operation_name)
            if outcome.rejected:
                return outcome_response(outcome)
        return await call_next(request)
