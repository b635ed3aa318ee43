"""
Service Container
=================

Purpose
-------
Centralized dependency injection for the TaskQuest stores and services.

Responsibilities
----------------
- Build stores and services with their dependencies
- Load every store from the database at startup
- Seed the id generator from persisted ids
- Register the push notifier on the EventBus
- Close outbound resources at shutdown

Non-Responsibilities
--------------------
- Infrastructure initialization order (delegated to ``taskquest.main``)
- HTTP routing (delegated to ``taskquest.web``)

Architecture Notes
------------------
Stores are constructed here and shared: ApprovalWorkflow, TaskService,
PlayerService and the NotificationBus all see the same in-memory snapshots
and the same writer locks.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Type

from taskquest.core.logging.logger import get_logger
from taskquest.modules.approval.workflow import ApprovalWorkflow
from taskquest.modules.notifications.bus import NotificationBus
from taskquest.modules.notifications.push import PushDispatcher, PushNotifier
from taskquest.modules.notifications.store import NotificationStore
from taskquest.modules.players.service import PlayerService
from taskquest.modules.players.store import PlayerStatsStore, PushTargetStore
from taskquest.modules.shared.clock import Clock, IdGenerator
from taskquest.modules.tasks.service import TaskService
from taskquest.modules.tasks.store import ArchiveStore, TaskStore

if TYPE_CHECKING:
    from logging import Logger

    from taskquest.core.config.manager import ConfigManager
    from taskquest.core.event.bus import EventBus


class ServiceContainer:
    """
    Usage:
        container = ServiceContainer(ConfigManager, event_bus, logger)
        await container.initialize()
        await container.approval.approve(task_id, "2", rating=5)
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
        logger: Optional[Logger] = None,
        *,
        clock: Optional[Clock] = None,
        push_dispatcher: Optional[PushDispatcher] = None,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger or get_logger(__name__)

        self.clock = clock or Clock()
        self.ids = IdGenerator(self.clock)

        # Stores
        self.task_store = TaskStore()
        self.archive_store = ArchiveStore()
        self.player_store = PlayerStatsStore()
        self.push_target_store = PushTargetStore()
        self.notification_store = NotificationStore()

        # Services
        self.notifications = NotificationBus(
            self.notification_store,
            self.player_store,
            self.ids,
            config_manager,
            event_bus,
        )
        self.players = PlayerService(
            self.player_store,
            self.push_target_store,
            self.notifications,
            config_manager,
            event_bus,
        )
        self.approval = ApprovalWorkflow(
            self.task_store,
            self.archive_store,
            self.player_store,
            self.notifications,
            self.players,
            self.clock,
            config_manager,
            event_bus,
        )
        self.tasks = TaskService(
            self.task_store,
            self.archive_store,
            self.approval,
            self.clock,
            self.ids,
            config_manager,
            event_bus,
        )

        # Push
        self.push_dispatcher = push_dispatcher or PushDispatcher()
        self.push_notifier = PushNotifier(
            self.push_dispatcher,
            self.push_target_store,
            self.player_store,
            config_manager,
        )

        self._initialized = False
        self._load_times: Dict[str, float] = {}

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """Load all stores and wire listeners. Requires DatabaseService."""
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._logger.info("Service container initialization starting...")

        for store in (
            self.task_store,
            self.archive_store,
            self.player_store,
            self.push_target_store,
            self.notification_store,
        ):
            start = time.perf_counter()
            await store.load()
            self._load_times[store.name] = time.perf_counter() - start

        self.ids.observe(self.task_store.keys())
        self.ids.observe(self.archive_store.keys())
        self.ids.observe(self.notification_store.keys())

        self.push_notifier.register(self._event_bus)

        self._initialized = True
        self._logger.info(
            "Service container initialized",
            extra={"store_sizes": self.store_sizes()},
        )

    async def shutdown(self) -> None:
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        await self.push_dispatcher.close()
        self._initialized = False
        self._logger.info("Service container shut down")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> Type[ConfigManager]:
        return self._config_manager

    # ========================================================================
    # Health
    # ========================================================================

    def store_sizes(self) -> Dict[str, int]:
        return {
            "tasks": len(self.task_store),
            "archive": len(self.archive_store),
            "players": len(self.player_store),
            "push_targets": len(self.push_target_store),
            "notifications": len(self.notification_store),
        }

    async def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "stores": self.store_sizes(),
            "load_times_ms": {name: round(t * 1000, 2) for name, t in self._load_times.items()},
            "push": self.push_dispatcher.get_metrics(),
            "config": self._config_manager.health_snapshot(),
        }
