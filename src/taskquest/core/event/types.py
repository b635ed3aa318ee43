"""
Core event types for the TaskQuest EventBus.

Purpose
-------
Type definitions shared by the event system: the payload alias, listener
priority tiers, the callback union and the immutable listener record.

Priority Levels
---------------
- CRITICAL (0): sequential, awaited, timeout-protected.
- HIGH (10): sequential, awaited, timeout-protected.
- NORMAL (50): concurrent (gather), awaited. Realtime broadcast lives here.
- LOW (100): fire-and-forget background tasks. Outbound push lives here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# Should stay JSON-serializable; the realtime hub forwards payloads to clients.
EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    """Priority levels for event listeners (lower value runs earlier)."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


@dataclass(slots=True, frozen=True)
class EventListener:
    """
    A registered event listener.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the event payload.
    priority:
        Tier that decides ordering and concurrency.
    identifier:
        Unique string used for deduplication and unsubscription.
    once:
        Remove the listener before its first execution.
    """

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        """
        Build a listener, deriving an identifier from the callback when absent.

        >>> listener = EventListener.from_callback(
        ...     "task.approved", on_approved, ListenerPriority.LOW, None, False
        ... )
        >>> listener.identifier
        'mymodule.on_approved@task.approved'
        """
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(
                callback, "__qualname__", getattr(callback, "__name__", "callback")
            )
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
