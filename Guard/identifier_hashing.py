"""
IDENTIFIER HASHING
==================
SHA-256 keys for caller and account identifiers.

FLOW:
- hash_identifier() turns an email, username, IP or composite key into a
  fixed-width hex key used by every guard store.

WHY:
- Guard state never retains raw credentials or IP addresses.
- A cryptographic digest resists targeted collisions on low-entropy inputs
  such as IPv4 addresses.

HOW:
- Trims and lower-cases the identifier, then computes SHA-256 (HMAC-SHA-256
  when IDENTIFIER_PEPPER is configured).
"""

from __future__ import annotations

import hashlib
import hmac

from Guard.errors import InvalidIdentifierError
from Guard.guard_config import GUARD_SETTINGS


def normalize_identifier(identifier: str) -> str:
    if not isinstance(identifier, str):
        raise InvalidIdentifierError(f"identifier must be a string, got {type(identifier).__name__}")
    normalized = identifier.strip().lower()
    if not normalized:
        raise InvalidIdentifierError("identifier must not be empty")
    return normalized


class IdentifierHasher:
    def __init__(self, pepper: str | bytes | None = None):
        if pepper is None:
            pepper = GUARD_SETTINGS["IDENTIFIER_PEPPER"]
        if isinstance(pepper, str):
            pepper = pepper.encode("utf-8")
        self._pepper = pepper or b""

    def hash(self, identifier: str) -> str:
        data = normalize_identifier(identifier).encode("utf-8")
        if self._pepper:
            return hmac.new(self._pepper, data, hashlib.sha256).hexdigest()
        return hashlib.sha256(data).hexdigest()

    __call__ = hash


_default_hasher = IdentifierHasher()


def hash_identifier(identifier: str) -> str:
    return _default_hasher.hash(identifier)
