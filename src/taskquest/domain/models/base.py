"""
Base domain building blocks.

Domain objects in TaskQuest are immutable values: every transition returns a
new instance, so a store can publish a new snapshot by swapping references
and readers never observe a half-applied change.

Services collect ``DomainEvent`` records while they work and publish them on
the EventBus only after the database transaction has committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


@dataclass(frozen=True)
class DomainEvent:
    """
    A state change worth telling the rest of the system about.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "task.approved")
    payload : Dict[str, Any]
        JSON-serializable event data
    occurred_at : datetime
        When the change happened (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def isoformat_utc(value: datetime) -> str:
    """
    ISO-8601 with a ``Z`` suffix, millisecond precision.

    >>> isoformat_utc(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
    '2024-05-01T12:00:00.000Z'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
