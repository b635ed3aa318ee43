"""
Domain exceptions for TaskQuest.

Purpose
-------
Exceptions raised by services for rule violations. The HTTP layer maps each
family to a status code:

- ValidationError     -> 400 (malformed or out-of-range input)
- AuthorizationError  -> 403 (actor may not perform the action)
- NotFoundError       -> 404 (task, player or reward unknown)
- PreconditionError   -> 409 (entity in the wrong state, e.g. a stale approval)

Design Notes
------------
- All domain exceptions inherit from ``TaskQuestError``.
- They carry the same structured metadata as infrastructure errors so a
  single error handler can log and serialize either family.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from taskquest.core.exceptions import ErrorSeverity, TaskQuestInfrastructureError


class TaskQuestError(Exception):
    """
    Base exception for all TaskQuest domain-level errors.

    Example:
        >>> raise TaskQuestError("Approval failed", {"task_id": 17})
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.INFO
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
            f"severity={self.severity.value!r}"
            ")"
        )


class ValidationError(TaskQuestError):
    """
    Input failed validation.

    Args:
        field: Name of the offending field (wire name, e.g. "dueDate").
        message: Why it was rejected.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class AuthorizationError(TaskQuestError):
    """
    The acting player may not perform this action.

    Raised for self-approval and for approvals by someone other than the
    designated approver.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, action: str, actor: Optional[str], reason: str) -> None:
        self.action = action
        self.actor = actor
        self.reason = reason
        super().__init__(
            f"Not allowed to {action}: {reason}",
            details={"action": action, "actor": actor, "reason": reason},
            error_code="NOT_AUTHORIZED",
        )


class NotFoundError(TaskQuestError):
    """
    A requested resource does not exist.

    Args:
        resource_type: "Task", "Player", "Reward", ...
        identifier: The id that was looked up.
    """

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class PreconditionError(TaskQuestError):
    """
    The entity exists but is not in a state that allows the action.

    The loser of two concurrent approvals of the same task gets this, with
    reason "task not found or not awaiting approval".
    """

    def __init__(self, action: str, reason: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            reason,
            details={"action": action, "reason": reason, **(details or {})},
            error_code="PRECONDITION_FAILED",
        )


def is_transient_error(exc: Exception) -> bool:
    """True when the failed operation may succeed if retried."""
    if isinstance(exc, (TaskQuestError, TaskQuestInfrastructureError)):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    if isinstance(exc, (TaskQuestError, TaskQuestInfrastructureError)):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
