"""
TaskQuest EventBus: async pub/sub with tiered concurrency.

Purpose
-------
Decouples the game services from their side effects. Services publish
"something changed" events; the realtime hub fans them out to connected
clients and the push notifier turns a few of them into phone notifications.

Responsibilities
----------------
- Register/unregister listeners with priorities and wildcard patterns
- Publish events to all matching listeners
- Isolate listener failures from the publisher
- Collect per-event metrics
- ``drain()`` background work for clean shutdown and deterministic tests

Design Decisions
----------------
- Instance-based so tests can build a fresh bus per case.
- Listener timeouts are read from ConfigManager when one is supplied.
"""

from __future__ import annotations

import inspect
from typing import Any, Optional

from taskquest.core.config.manager import ConfigManager
from taskquest.core.event.metrics import EventMetrics, EventMetricsRecorder
from taskquest.core.event.registry import ListenerRegistry
from taskquest.core.event.scheduler import EventScheduler
from taskquest.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from taskquest.core.logging.logger import get_logger, set_log_context

logger = get_logger(__name__)


class EventBus:
    """
    Async EventBus with CRITICAL/HIGH/NORMAL/LOW listener tiers.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("task.approved", on_approved, priority=ListenerPriority.LOW)
    >>> await bus.publish("task.approved", {"task_id": 17, "player_id": "1"})
    """

    def __init__(
        self,
        registry: Optional[ListenerRegistry] = None,
        scheduler: Optional[EventScheduler] = None,
        metrics: Optional[EventMetricsRecorder] = None,
        config_manager: Optional[type[ConfigManager]] = None,
        *,
        enable_metrics: bool = True,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._config_manager = config_manager
        self._registry = registry or ListenerRegistry()
        self._scheduler = scheduler or EventScheduler()
        self._metrics = metrics or EventMetricsRecorder()
        self._metrics_enabled = enable_metrics

        self._critical_timeout = self._load_timeout(
            key="core.event.listener_timeout.critical_seconds",
            override=critical_timeout_seconds,
            default=5.0,
        )
        self._high_timeout = self._load_timeout(
            key="core.event.listener_timeout.high_seconds",
            override=high_timeout_seconds,
            default=5.0,
        )

        logger.info(
            "EventBus initialized",
            extra={
                "metrics_enabled": self._metrics_enabled,
                "critical_timeout_seconds": self._critical_timeout,
                "high_timeout_seconds": self._high_timeout,
            },
        )

    # ------------------------------------------------------------------ #
    # Configuration Loading
    # ------------------------------------------------------------------ #

    def _load_timeout(self, key: str, override: Optional[float], default: float) -> float:
        """Resolve a timeout: override, then config, then default."""
        if override is not None:
            return float(override)

        if self._config_manager is None:
            return float(default)

        try:
            return self._config_manager.get_float(key, default)
        except (TypeError, ValueError) as exc:
            logger.warning(
                "Failed to load timeout from config, using default",
                extra={"config_key": key, "default_value": default, "error": str(exc)},
            )
            return float(default)

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """Reject callbacks that cannot take exactly one payload argument."""
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            callback_name = getattr(callback, "__qualname__", None) or getattr(
                callback, "__name__", repr(callback)
            )
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{callback_name}'"
            )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns the listener identifier for later ``unsubscribe``.

        Raises
        ------
        ValueError:
            If the callback does not take exactly one parameter.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        added = self._registry.add_listener(
            event_name=event_name,
            listener=listener,
            allow_duplicates=allow_duplicates,
        )

        if added:
            logger.debug(
                "EventBus: subscribed listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "once": listener.once,
                },
            )
        else:
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )

        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        removed = self._registry.remove_listener(
            event_name=event_name, identifier=identifier
        )

        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )

        return removed

    def clear(self) -> None:
        """Remove every listener. Intended for tests and full reinit."""
        total = self._registry.clear_all()

        logger.info(
            "EventBus: cleared all listeners",
            extra={"previous_listener_count": total},
        )

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all subscribed listeners.

        Returns results from CRITICAL/HIGH/NORMAL listeners. LOW listeners are
        scheduled in the background and contribute nothing.
        """
        if self._metrics_enabled:
            self._metrics.record_publish(event_name)

        set_log_context(event_name=event_name)

        listeners = self._registry.extract_listeners_for_event(event_name=event_name)

        if not listeners:
            logger.debug(
                "EventBus: no listeners for event",
                extra={"event_name": event_name},
            )
            return []

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )

        return await self._scheduler.execute(
            event_name=event_name,
            payload=data,
            listeners=listeners,
            metrics=self._metrics if self._metrics_enabled else None,
            logger=logger,
            critical_timeout=self._critical_timeout,
            high_timeout=self._high_timeout,
        )

    async def drain(self) -> None:
        """Await all in-flight LOW-tier listeners."""
        await self._scheduler.drain()

    # ------------------------------------------------------------------ #
    # Metrics & Introspection
    # ------------------------------------------------------------------ #

    def get_metrics(self) -> Optional[EventMetrics]:
        if not self._metrics_enabled:
            return None
        return self._metrics.snapshot()

    def get_metrics_summary(self) -> dict[str, Any]:
        metrics = self.get_metrics()
        if metrics is None:
            return {"metrics_enabled": False}
        summary = metrics.get_summary()
        summary["total_listeners"] = self._registry.get_total_listener_count()
        summary["background_tasks"] = self._scheduler.get_background_task_count()
        return summary

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return self._registry.get_total_listener_count()
        return self._registry.get_listener_count_for_event(event_name)

    def get_registered_events(self) -> list[str]:
        return self._registry.get_all_event_keys()
