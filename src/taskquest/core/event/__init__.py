"""Event system: async pub/sub with tiered listener execution."""

from taskquest.core.event.bus import EventBus
from taskquest.core.event.metrics import EventMetrics, EventMetricsRecorder
from taskquest.core.event.registry import ListenerRegistry
from taskquest.core.event.router import EventRouter
from taskquest.core.event.scheduler import EventScheduler
from taskquest.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventMetrics",
    "EventMetricsRecorder",
    "ListenerRegistry",
    "EventRouter",
    "EventScheduler",
    "CallbackType",
    "EventListener",
    "EventPayload",
    "ListenerPriority",
]
