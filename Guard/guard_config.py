"""
GUARD CONFIG
============
Centralized abuse-guard settings loaded from environment.
"""

# FLOW:
# - Load the active .env file, read env vars once and expose GUARD_SETTINGS.
# WHY:
# - Lets each environment tune windows, ceilings and lockout policy.
# HOW:
# - Reads env vars with typed fallbacks and stores them in a dict.

from __future__ import annotations

import logging
import os
import time

import dotenv


def get_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() == "true"


def get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_name() -> str:
    env = os.getenv("APP_ENV", "").strip().lower()
    if env in {"prod", "production"}:
        return ".env.production"
    if env in {"local", "localhost", "dev", "development"}:
        return ".env.localhost"

    # Auto-select based on ENV_ACTIVE flag if APP_ENV is not set
    root = os.path.dirname(os.path.dirname(__file__))
    prod_path = os.path.join(root, ".env.production")

    def _is_active(path: str) -> bool:
        if not os.path.exists(path):
            return False
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip().startswith("ENV_ACTIVE="):
                    return line.split("=", 1)[1].strip().strip('"').lower() == "true"
        return False

    if _is_active(prod_path):
        return ".env.production"
    return ".env.localhost"


def _env_path() -> str:
    root = os.path.dirname(os.path.dirname(__file__))
    return os.path.join(root, _env_name())


dotenv.load_dotenv(_env_path())

if os.getenv("APP_ENV_LOG", "false").lower() == "true":
    logging.getLogger("guard.env").info("Active env file: %s", _env_path())


GUARD_SETTINGS = {
    # rate-limit buckets
    "AUTH_WINDOW_MS": get_int("AUTH_WINDOW_MS", 15 * 60 * 1000),
    "AUTH_MAX": get_int("AUTH_MAX", 5),
    "PASSWORD_RESET_WINDOW_MS": get_int("PASSWORD_RESET_WINDOW_MS", 60 * 60 * 1000),
    "PASSWORD_RESET_MAX": get_int("PASSWORD_RESET_MAX", 3),
    "REGISTRATION_WINDOW_MS": get_int("REGISTRATION_WINDOW_MS", 60 * 60 * 1000),
    "REGISTRATION_MAX": get_int("REGISTRATION_MAX", 10),
    # account lockout
    "LOGIN_MAX_ATTEMPTS": get_int("LOGIN_MAX_ATTEMPTS", 5),
    "LOGIN_LOCKOUT_MS": get_int("LOGIN_LOCKOUT_MS", 30 * 60 * 1000),
    "LOGIN_ATTEMPT_WINDOW_MS": get_int("LOGIN_ATTEMPT_WINDOW_MS", 15 * 60 * 1000),
    "LOGIN_WARNING_THRESHOLD": get_int("LOGIN_WARNING_THRESHOLD", 3),
    "LOCKOUT_STALE_MS": get_int("LOCKOUT_STALE_MS", 24 * 60 * 60 * 1000),
    # background sweeps
    "RATE_LIMIT_SWEEP_SECONDS": get_int("RATE_LIMIT_SWEEP_SECONDS", 60),
    "LOCKOUT_SWEEP_SECONDS": get_int("LOCKOUT_SWEEP_SECONDS", 60 * 60),
    "STORE_SHARDS": get_int("STORE_SHARDS", 16),
    # input validation
    "INPUT_SKIP_OPERATIONS": get_list("INPUT_SKIP_OPERATIONS", []),
    "INPUT_SKIP_FIELDS": get_list("INPUT_SKIP_FIELDS", []),
    "INPUT_LOG_ERRORS": get_bool("INPUT_LOG_ERRORS", False),
    "GRAPHQL_PATHS": get_list("GRAPHQL_PATHS", ["/graphql"]),
    # proxies whose X-Forwarded-For / X-Real-IP headers are honoured
    "TRUSTED_PROXIES": get_list("TRUSTED_PROXIES", []),
    # hashing
    "IDENTIFIER_PEPPER": os.getenv("IDENTIFIER_PEPPER", ""),
}


def feature_enabled(name: str, default: bool = True) -> bool:
    """Per-feature kill switch, e.g. FEATURE_ACCOUNT_LOCKOUT=false."""
    env_name = "FEATURE_" + name.upper().replace("-", "_")
    return get_bool(env_name, default)


def now_ms() -> int:
    """Wall clock in epoch milliseconds; every guard takes this as its default clock."""
    return int(time.time() * 1000)
