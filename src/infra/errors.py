"""Custom exception hierarchy for Rulebook.

All application-specific exceptions inherit from RulebookError,
which carries an error code the calling layer maps to user-facing messages.
"""

from __future__ import annotations


class RulebookError(Exception):
    """Base exception for all Rulebook errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ValidationError(RulebookError):
    """A required field is missing or invalid. Nothing was written."""

    def __init__(self, message: str, *, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message, code=code)


class BackupFormatError(ValidationError):
    """A backup document could not be parsed or failed validation."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_BACKUP")


class InvalidTransitionError(RulebookError):
    """Operation attempted against a rule not in the required source status."""

    def __init__(self, message: str, *, code: str = "INVALID_TRANSITION") -> None:
        super().__init__(message, code=code)


class RepositoryError(RulebookError):
    """Errors raised by a Repository implementation."""

    def __init__(self, message: str, *, code: str = "REPOSITORY_ERROR") -> None:
        super().__init__(message, code=code)


class NotFoundError(RepositoryError):
    """Requested rule or system does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="NOT_FOUND")


class DuplicateIdError(RepositoryError):
    """A rule with the same id already exists (or the id was retired)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DUPLICATE_ID")


class DuplicateNameError(RepositoryError):
    """A system with the same name already exists."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DUPLICATE_NAME")


class InUseError(RepositoryError):
    """System is still referenced by at least one rule."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="IN_USE")
