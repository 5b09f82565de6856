"""
Exception taxonomy for the recommendation lifecycle engine.

Five failure categories exist; only the first three raise:

  1. Caller-contract violations   — ``ContractViolationError`` subclasses.
     Raised synchronously, never retried, only caught by tests or the
     top-level fatal-error handler.
  2. Exhausted transport retries  — ``TransportRetriesExhaustedError``.
     Shown as a full-screen fatal error.
  3. Authentication rejection     — ``SignInRequired``.  A control-flow
     signal, not an error: it derives from ``BaseException`` so that
     ``except Exception`` blocks along the call chain let it through.
  4. Backend-reported terminal failures and
  5. backend-reported ambiguous failures are stored on the affected
     ``RecommendationRecord`` (``error_header`` / ``error_description``)
     and never raised.

This module has NO imports from any other ``recomator`` package.
"""

from __future__ import annotations

from typing import Iterable


class ContractViolationError(RuntimeError):
    """A caller broke an engine precondition (programming error)."""


class DuplicateRecommendationError(ContractViolationError):
    """Raised when a recommendation name is ingested twice.

    Attributes:
        name: The duplicated recommendation name.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Duplicate recommendation name: '{name}'.")


class UnknownRecommendationError(ContractViolationError):
    """Raised when a name does not match any recommendation in the store."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Name given doesn't match an existing recommendation: '{name}'.")


class DuplicateNamesError(ContractViolationError):
    """Raised when an apply batch lists the same name more than once."""

    def __init__(self, duplicates: Iterable[str]) -> None:
        self.duplicates = sorted(set(duplicates))
        super().__init__(
            f"Duplicates found among given recommendation names: {self.duplicates}."
        )


class DuplicateProjectError(ContractViolationError):
    """Raised when the backend lists the same project twice."""

    def __init__(self, project: str) -> None:
        self.project = project
        super().__init__(f"Duplicate project name: '{project}'.")


class WatcherAlreadyRunningError(ContractViolationError):
    """Raised on a second ``CentralStatusWatcher.start()``."""

    def __init__(self) -> None:
        super().__init__("More than one central status watcher.")


class UnknownStatusError(ContractViolationError):
    """Raised when a status string falls outside the fixed translation table."""

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Invalid status name passed: '{status}'.")


class RecommendationParseError(ContractViolationError):
    """Raised when derived fields cannot be computed from a raw recommendation."""


class TransportRetriesExhaustedError(RuntimeError):
    """Raised once every retry of a transport-level failure has been used.

    Attributes:
        url:      Request URL that kept failing.
        attempts: Total attempts made (1 + retries).
    """

    def __init__(self, url: str, attempts: int, last_error: BaseException) -> None:
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Request to {url} failed after {attempts} attempt(s): {last_error}"
        )


class AuthCodeExchangeError(RuntimeError):
    """Raised when ``GET /auth?code=`` does not answer 200."""

    def __init__(self, status_code: int, reason: str) -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Authentication failed (HTTP {status_code}): {reason}")


class SignInRequired(BaseException):
    """The backend rejected our credentials; the caller's flow must stop.

    Raised by ``ResilientFetch`` after the sign-in redirect hook has run.
    Only the application's top level catches it.
    """

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Sign-in required (HTTP {status_code}).")
