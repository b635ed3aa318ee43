from taskquest.domain.models.base import DomainEvent, isoformat_utc
from taskquest.domain.models.notification import Notification, NotificationType
from taskquest.domain.models.player import PlayerStats, PushTarget
from taskquest.domain.models.task import (
    ANYONE,
    AnyExcept,
    Approver,
    ArchivedTask,
    SpecificApprover,
    Task,
    TaskStatus,
    Unassigned,
    parse_approver,
)

__all__ = [
    "DomainEvent",
    "isoformat_utc",
    "Notification",
    "NotificationType",
    "PlayerStats",
    "PushTarget",
    "ANYONE",
    "AnyExcept",
    "Approver",
    "ArchivedTask",
    "SpecificApprover",
    "Task",
    "TaskStatus",
    "Unassigned",
    "parse_approver",
]
