"""
GUARD ERRORS
============
Exceptions raised by guards and the call-site flows built on them.
"""

from __future__ import annotations


class GuardError(Exception):
    """Base class for guard exceptions."""


class InvalidIdentifierError(GuardError, ValueError):
    """An identifier could not be hashed (empty or not a string)."""


class GuardRejected(GuardError):
    """A guard refused the call; ``outcome`` carries the structured reason."""

    def __init__(self, outcome):
        super().__init__(outcome.message)
        self.outcome = outcome

    @property
    def code(self) -> str:
        return self.outcome.code

    @property
    def extensions(self) -> dict:
        return self.outcome.extensions()


class InvalidCredentials(GuardError):
    """Credential verification failed.

    ``warning`` is set once the identifier is close to lockout so the
    remaining-attempts hint travels with the failure itself.
    """

    code = "INVALID_CREDENTIALS"

    def __init__(self, warning=None):
        super().__init__(warning.message if warning else "Invalid credentials.")
        self.warning = warning

    @property
    def extensions(self) -> dict:
        if self.warning is None:
            return {"code": self.code}
        return self.warning.extensions()


class UsernameOrEmailRequired(GuardError):
    code = "USERNAME_OR_EMAIL_REQUIRED"

    def __init__(self):
        super().__init__("Username or email is required.")

    @property
    def extensions(self) -> dict:
        return {"code": self.code}
