"""
GUARD LOGGING & AUDIT
=====================
Structured logging for guard decisions.

FLOW:
- get_logger() hands out rotating-file loggers under the "guard." prefix.
- audit() records security events (lockouts, throttling, rejected input).

WHY:
- Provides traceability for incident response without retaining raw
  identifiers or IP addresses.

HOW:
- Writes key=value lines to logs/guard.log; callers only pass hashed keys.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler

from Guard.guard_config import feature_enabled
from Guard.metrics import increment_guard_event


_LOG_DIR = os.getenv("GUARD_LOG_DIR", "logs")

_SECRET_PATTERNS = [
    re.compile(r"(password[\"']?\s*[:=]\s*[\"']?)([^&\s\"',}]+)", re.IGNORECASE),
    re.compile(r"(token[\"']?\s*[:=]\s*[\"']?)([^&\s\"',}]+)", re.IGNORECASE),
    re.compile(r"(key[\"']?\s*[:=]\s*[\"']?)([^&\s\"',}]+)", re.IGNORECASE),
]


def _file_handler() -> logging.Handler:
    os.makedirs(_LOG_DIR, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(_LOG_DIR, "guard.log"), maxBytes=2_000_000, backupCount=3
    )
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    return handler


def get_logger(name: str) -> logging.Logger:
    # one rotating handler on the "guard" parent; children propagate to it
    parent = logging.getLogger("guard")
    if not parent.handlers and get_file_logging_enabled():
        parent.addHandler(_file_handler())
        parent.setLevel(logging.INFO)
    return logging.getLogger(f"guard.{name}")


def get_file_logging_enabled() -> bool:
    return os.getenv("GUARD_LOG_TO_FILE", "true").lower() == "true"


def redact(value: str) -> str:
    """Mask credential-looking fragments before they reach a log line."""
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return value


_audit_logger = get_logger("audit")


def audit(event: str, feature: str, **fields) -> None:
    increment_guard_event(feature, event)
    if not feature_enabled("audit-trail", True):
        return
    details = " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
    _audit_logger.info("event=%s feature=%s %s", event, feature, redact(details))
