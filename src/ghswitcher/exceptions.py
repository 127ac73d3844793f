"""Custom exceptions for gh-switcher."""

from __future__ import annotations

from typing import Any


class GhsError(Exception):
    """Base exception for all gh-switcher errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        remediation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.remediation = remediation


class NotFoundError(GhsError):
    """Raised when an identity, assignment or hook does not exist."""


class DuplicateIdentityError(GhsError):
    """Raised when adding an identity whose username is already stored."""


class InvalidFieldError(GhsError):
    """Raised when editing a field outside the recognized set."""


class InvalidIdentityError(GhsError):
    """Raised when identity field values fail validation."""


class AuthSwitchFailedError(GhsError):
    """Raised when the gh CLI cannot switch to the target account."""


class SshProbeError(GhsError):
    """Raised when an SSH key fails its authentication probe."""

    def __init__(
        self,
        message: str,
        result: Any,
        details: dict[str, Any] | None = None,
        remediation: str | None = None,
    ) -> None:
        super().__init__(message, details=details, remediation=remediation)
        self.result = result


class PersistenceError(GhsError):
    """Raised when a store file cannot be written."""


class StoreFormatError(GhsError):
    """Raised when a store file exists but cannot be parsed."""


class SwitchStepError(GhsError):
    """Raised when one step of an identity switch fails."""

    def __init__(
        self,
        message: str,
        step: Any,
        details: dict[str, Any] | None = None,
        remediation: str | None = None,
    ) -> None:
        super().__init__(message, details=details, remediation=remediation)
        self.step = step


class ExternalCommandError(GhsError):
    """Raised when an external CLI (git, gh) fails unexpectedly."""


class NotARepositoryError(GhsError):
    """Raised when a repository-only operation runs outside a git work tree."""
