"""
INPUT SANITIZATION
==================
Denylist scan of untrusted structured input for markup/script payloads.

FLOW:
- scan() walks a value depth-first and stops at the first string matching
  a dangerous signature.
- scan_variables() applies scan() to a request's variables, honoring
  operation and field exclusions and an optional custom check.

WHY:
- Stops stored-XSS style payloads from being accepted into data that is
  later rendered elsewhere.

HOW:
- Values are classified into a closed set of kinds (null, string, other
  scalar, sequence or set, mapping) and each kind is handled explicitly.

NOTE:
- This is a heuristic defense-in-depth layer. It does not replace
  output-context-aware escaping where the data is rendered.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Iterable, Optional, Pattern, Tuple

from Guard.guard_config import GUARD_SETTINGS, feature_enabled
from Guard.guard_logging import audit, get_logger
from Guard.outcomes import ALLOWED, DangerousInputRejected, GuardOutcome


logger = get_logger("input")


@dataclass(frozen=True)
class SanitizationRule:
    label: str
    pattern: Pattern[str]

    def matches(self, value: str) -> bool:
        return self.pattern.search(value) is not None


def _rule(label: str, regex: str, flags: int = re.IGNORECASE) -> SanitizationRule:
    return SanitizationRule(label=label, pattern=re.compile(regex, flags))


DEFAULT_RULES: Tuple[SanitizationRule, ...] = (
    _rule("script-tag", r"<script"),
    _rule("iframe-tag", r"<iframe"),
    _rule("object-tag", r"<object"),
    _rule("embed-tag", r"<embed"),
    _rule("link-tag", r"<link"),
    _rule("javascript-uri", r"javascript:"),
    _rule("vbscript-uri", r"vbscript:"),
    _rule("event-handler", r"on\w+\s*="),
    _rule("meta-tag", r"<meta"),
    _rule("data-uri-html", r"data:text/html"),
    _rule("svg-onload", r"<svg.*onload"),
    _rule("character-reference", r"&#x?[0-9a-f]+;"),
    _rule("unicode-escape", r"\\u[0-9a-f]{4}"),
    _rule("css-expression", r"expression\s*\("),
    _rule("css-import", r"@import"),
    _rule("html-comment", r"<!--|-->", 0),
)

DEPTH_LABEL = "excessive-nesting"
CUSTOM_LABEL = "custom-validator"

# Returns None to accept, or a label (True/False are treated as accept/reject).
CustomValidator = Callable[[Any, str], Any]


class ValueKind(enum.Enum):
    NULL = "null"
    STRING = "string"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def classify(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.NULL
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    # lists, tuples and sets alike; set elements get positional paths
    if isinstance(value, Collection) and not isinstance(value, (bytes, bytearray)):
        return ValueKind.SEQUENCE
    return ValueKind.SCALAR


def _child_path(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


@dataclass(frozen=True)
class InputValidationOptions:
    skip_operations: FrozenSet[str] = frozenset()
    skip_fields: FrozenSet[str] = frozenset()
    custom_validator: Optional[CustomValidator] = field(default=None, compare=False)
    log_errors: bool = False
    max_depth: int = 64

    @classmethod
    def from_settings(cls, custom_validator: Optional[CustomValidator] = None) -> "InputValidationOptions":
        return cls(
            skip_operations=frozenset(GUARD_SETTINGS["INPUT_SKIP_OPERATIONS"]),
            skip_fields=frozenset(GUARD_SETTINGS["INPUT_SKIP_FIELDS"]),
            custom_validator=custom_validator,
            log_errors=GUARD_SETTINGS["INPUT_LOG_ERRORS"],
        )


class InputSanitizer:
    def __init__(
        self,
        options: InputValidationOptions | None = None,
        rules: Iterable[SanitizationRule] = DEFAULT_RULES,
    ):
        self.options = options or InputValidationOptions()
        self.rules = tuple(rules)

    def check_string(self, value: str, path: str) -> GuardOutcome:
        for rule in self.rules:
            if rule.matches(value):
                return DangerousInputRejected(path=path, signature_label=rule.label)
        return ALLOWED

    def _custom_check(self, value: Any, path: str) -> GuardOutcome:
        validator = self.options.custom_validator
        if validator is None:
            return ALLOWED
        verdict = validator(value, path)
        if verdict is None or verdict is True:
            return ALLOWED
        label = verdict if isinstance(verdict, str) else CUSTOM_LABEL
        return DangerousInputRejected(path=path, signature_label=label)

    def scan(self, value: Any, path: str = "", _depth: int = 0) -> GuardOutcome:
        if _depth > self.options.max_depth:
            return DangerousInputRejected(path=path, signature_label=DEPTH_LABEL)

        kind = classify(value)
        if kind is ValueKind.NULL:
            return ALLOWED
        if kind is ValueKind.STRING:
            outcome = self.check_string(value, path)
            if outcome.rejected:
                return outcome
            return self._custom_check(value, path)
        if kind is ValueKind.SCALAR:
            return self._custom_check(value, path)
        if kind is ValueKind.SEQUENCE:
            for index, item in enumerate(value):
                outcome = self.scan(item, f"{path}[{index}]", _depth + 1)
                if outcome.rejected:
                    return outcome
            return ALLOWED
        for key, item in value.items():
            outcome = self.scan(item, _child_path(path, key), _depth + 1)
            if outcome.rejected:
                return outcome
        return ALLOWED

    def scan_variables(self, variables: Mapping[str, Any] | None, operation_name: str | None = None) -> GuardOutcome:
        """Scan a request's variables; the whole payload is rejected on first match."""
        if not feature_enabled("input-validation", True):
            return ALLOWED
        if operation_name and operation_name in self.options.skip_operations:
            return ALLOWED
        if not variables:
            return ALLOWED

        for name, value in variables.items():
            if name in self.options.skip_fields:
                continue
            outcome = self.scan(value, f"variables.{name}")
            if outcome.rejected:
                if self.options.log_errors:
                    logger.warning(
                        "dangerous input rejected operation=%s path=%s signature=%s",
                        operation_name or "-",
                        outcome.path,
                        outcome.signature_label,
                    )
                audit("dangerous_input", "input-validation", path=outcome.path, signature=outcome.signature_label)
                return outcome
        return ALLOWED
