"""
Domain exceptions for the LifeRPG XP engine.

Purpose
-------
Structured, domain-specific exception hierarchy raised by the stat, ledger
and award services. Request handlers translate these into responses; the
engine itself never formats user-facing text.

Design Notes
------------
- All domain exceptions inherit from `LifeRPGDomainException`.
- Each exception carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- `NotFoundError` is raised identically for "does not exist" and "belongs
  to someone else" so callers cannot probe for other users' stats.
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"  # Caller mistakes (validation, not found)
    WARNING = "warning"  # Handled contention (conflicts)
    ERROR = "error"
    CRITICAL = "critical"


class LifeRPGDomainException(Exception):
    """
    Base exception for all LifeRPG domain-level errors.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error (dict-like)
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling

    Example:
        >>> raise LifeRPGDomainException(
        ...     "Stat is archived",
        ...     {"stat_id": "..."}
        ... )
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class NotFoundError(LifeRPGDomainException):
    """
    Raised when a stat (or other resource) does not exist or is not owned
    by the requesting user.

    Args:
        resource_type: Type of resource (e.g., "CharacterStat")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": str(identifier) if identifier is not None else None,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class ValidationError(LifeRPGDomainException):
    """
    Raised when caller input fails domain validation: non-integer or zero
    XP amounts, unknown source types, empty names, grants that would drive
    a stat's XP below zero, attempts to edit derived fields.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class ConflictError(LifeRPGDomainException):
    """
    Raised when a concurrent modification is detected on a stat row.

    Retryable: the award service retries automatically and only surfaces
    this once its attempts are exhausted.

    Args:
        resource_type: Type of the contended resource
        identifier: Identifier of the contended row
        attempts: Number of attempts made before giving up (0 when raised
            from a single attempt)
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        resource_type: str,
        identifier: Optional[Any] = None,
        attempts: int = 0,
    ) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        self.attempts = attempts

        message = f"Concurrent modification of {resource_type}"
        if identifier is not None:
            message += f": {identifier}"
        if attempts:
            message += f" (gave up after {attempts} attempts)"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": str(identifier) if identifier is not None else None,
                "attempts": attempts,
            },
            error_code=f"{resource_type.upper()}_CONFLICT",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """True if the exception is a domain error flagged as retryable."""
    if isinstance(exc, LifeRPGDomainException):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity for logging; unknown exceptions are treated as ERROR."""
    if isinstance(exc, LifeRPGDomainException):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
