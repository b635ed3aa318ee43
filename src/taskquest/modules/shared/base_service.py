"""
Base Service Foundation

Purpose
-------
Foundational class for TaskQuest domain services. Services implement the
game rules, run guards before any write, persist through stores inside a
single transaction, and publish domain events once the write has committed.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers (immediate or collected-then-published)

What this class does NOT do:
- Manage database transactions (that's DatabaseService's job)
- Hold state (stores own the authoritative collections)

Usage
-----
    class TaskService(BaseService):
        def __init__(self, tasks, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)
            self.tasks = tasks

        async def delete(self, task_id: int) -> None:
            ...
            await self.publish_events(events)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional, Type

from taskquest.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from logging import Logger

    from taskquest.core.config.manager import ConfigManager
    from taskquest.core.event.bus import EventBus
    from taskquest.domain.models.base import DomainEvent


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: ConfigManager class (classmethod API)
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None, required: bool = False) -> Any:
        """
        Safely retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(key, f"Required configuration key '{key}' is missing")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._events.publish(event_type, {**data, **(context or {})})

    async def publish_events(self, events: Iterable[DomainEvent]) -> None:
        """Publish events collected during a committed write, in order."""
        for event in events:
            await self._events.publish(event.event_name, event.payload)

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
