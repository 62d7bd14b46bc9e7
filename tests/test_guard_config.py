from Guard.guard_config import GUARD_SETTINGS, feature_enabled, get_bool, get_int, get_list
from Guard.account_lockout import LockoutConfig
from Guard.input_sanitizer import InputValidationOptions


def test_get_int_falls_back_on_garbage(monkeypatch):
    monkeypatch.setenv("AUTH_MAX", "lots")
    assert get_int("AUTH_MAX", 5) == 5
    monkeypatch.setenv("AUTH_MAX", "7")
    assert get_int("AUTH_MAX", 5) == 7


def test_get_list_splits_and_trims(monkeypatch):
    monkeypatch.setenv("INPUT_SKIP_FIELDS", " html , ,body")
    assert get_list("INPUT_SKIP_FIELDS", []) == ["html", "body"]
    monkeypatch.delenv("INPUT_SKIP_FIELDS")
    assert get_list("INPUT_SKIP_FIELDS", ["x"]) == ["x"]


def test_get_bool(monkeypatch):
    monkeypatch.setenv("INPUT_LOG_ERRORS", "TRUE")
    assert get_bool("INPUT_LOG_ERRORS") is True
    monkeypatch.setenv("INPUT_LOG_ERRORS", "yes")
    assert get_bool("INPUT_LOG_ERRORS") is False


def test_feature_enabled(monkeypatch):
    assert feature_enabled("account-lockout") is True
    monkeypatch.setenv("FEATURE_ACCOUNT_LOCKOUT", "false")
    assert feature_enabled("account-lockout") is False


def test_configs_built_from_settings():
    lockout = LockoutConfig.from_settings()
    assert lockout.max_attempts == GUARD_SETTINGS["LOGIN_MAX_ATTEMPTS"]
    assert lockout.lockout_duration_ms == GUARD_SETTINGS["LOGIN_LOCKOUT_MS"]
    assert lockout.stale_after_ms == 24 * 60 * 60 * 1000

    options = InputValidationOptions.from_settings()
    assert options.skip_fields == frozenset(GUARD_SETTINGS["INPUT_SKIP_FIELDS"])
    assert options.custom_validator is None
