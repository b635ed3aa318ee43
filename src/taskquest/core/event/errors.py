"""
Listener error handling for the EventBus.

A failing listener is logged and counted; it never propagates to the
publisher. Push delivery and websocket broadcast rely on this isolation.
"""

from __future__ import annotations

import asyncio
from logging import Logger
from typing import Optional

from taskquest.core.event.metrics import EventMetricsRecorder
from taskquest.core.event.types import EventListener


def handle_listener_error(
    *,
    logger: Logger,
    event_name: str,
    listener: EventListener,
    exc: BaseException,
    metrics: Optional[EventMetricsRecorder],
) -> None:
    """Log a listener failure and update metrics. Never raises."""
    if metrics is not None:
        metrics.record_error(event_name, timed_out=isinstance(exc, asyncio.TimeoutError))

    logger.error(
        "EventBus listener error",
        extra={
            "event_name": event_name,
            "listener_id": listener.identifier,
            "priority": listener.priority.name,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )
