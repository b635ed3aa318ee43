"""
Infrastructure exceptions for TaskQuest.

Purpose
-------
Structured hierarchy for engineering-level failures: database, configuration,
outbound push delivery and event dispatch. Game-rule violations live in
``taskquest.modules.shared.exceptions`` instead.

Design Notes
------------
- All infrastructure exceptions inherit from ``TaskQuestInfrastructureError``.
- Each carries ``message``, ``details``, ``severity``, ``is_retryable`` and a
  stable ``error_code``. The HTTP layer maps any of these to a 500 response
  without echoing ``details`` to the client.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"
    INFO = "info"  # expected, player-caused (validation, stale approval)
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class TaskQuestInfrastructureError(Exception):
    """
    Base exception for infrastructure-level errors.

    Example:
        >>> raise TaskQuestInfrastructureError(
        ...     "Database connection failed",
        ...     {"url_scheme": "postgresql+asyncpg"}
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


class ConfigurationError(TaskQuestInfrastructureError):
    """A configuration key is missing or holds an unusable value."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class DatabaseError(TaskQuestInfrastructureError):
    """
    A database operation failed.

    Args:
        operation: What was being attempted (e.g. "approve task").
        original_error: The underlying driver/SQLAlchemy exception.
    """

    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Database error during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
        )


class DatabaseInitializationError(TaskQuestInfrastructureError):
    """Raised when database engine initialization fails."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL


class DatabaseNotInitializedError(TaskQuestInfrastructureError):
    """Raised when database operations are attempted before initialization."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL


class PushDeliveryError(TaskQuestInfrastructureError):
    """
    One push endpoint rejected or failed a delivery.

    Raised by the dispatcher for a single endpoint; the notifier logs it and
    carries on with the remaining endpoints.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        self.url = url
        self.status = status
        super().__init__(
            f"Push delivery to {url} failed: {reason}",
            details={"url": url, "reason": reason, "status": status},
            error_code="PUSH_DELIVERY_FAILED",
        )


class EventBusError(TaskQuestInfrastructureError):
    """Event dispatch failed outside of listener isolation."""

    def __init__(self, event_name: str, message: str) -> None:
        self.event_name = event_name
        super().__init__(
            f"Event dispatch error for {event_name}: {message}",
            details={"event_name": event_name},
            error_code="EVENT_BUS_ERROR",
        )
