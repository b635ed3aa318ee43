"""
Pytest Configuration and Fixtures for TaskQuest Tests
=====================================================

Purpose
-------
Centralized fixtures for the TaskQuest test suite: a throwaway SQLite
database, the YAML-backed ConfigManager, a fresh EventBus, a frozen clock,
a push dispatcher that records instead of sending, the full ServiceContainer
and an aiohttp test client for the HTTP surface.

Architecture Notes
------------------
- Every test gets its own database file under ``tmp_path``
- ConfigManager and DatabaseService are class-level singletons; fixtures
  reset them on teardown
- Background (LOW priority) listeners are drained before assertions that
  depend on them
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Tuple

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from taskquest.core.config.manager import ConfigManager
from taskquest.core.database.service import DatabaseService
from taskquest.core.event.bus import EventBus
from taskquest.core.exceptions import PushDeliveryError
from taskquest.core.logging.logger import get_logger
from taskquest.core.services.container import ServiceContainer
from taskquest.domain.models.player import PushTarget
from taskquest.modules.notifications.push import PushDispatcher
from taskquest.modules.shared.clock import Clock
from taskquest.web.app import create_app

logger = get_logger(__name__)

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"
START = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ.setdefault("ENVIRONMENT", "testing")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")


# ============================================================================
# TEST DOUBLES
# ============================================================================


class FrozenClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current


class RecordingPushDispatcher(PushDispatcher):
    """
    Records every delivery attempt instead of opening HTTP connections.

    URLs listed in ``failing_urls`` raise PushDeliveryError, exercising the
    same swallow-and-log path as a real endpoint failure.
    """

    def __init__(self) -> None:
        super().__init__(timeout_seconds=1, priority=5)
        self.deliveries: List[Tuple[str, Dict[str, Any], Dict[str, str]]] = []
        self.failing_urls: set[str] = set()

    async def _post(self, target: PushTarget, payload: Dict[str, Any]) -> None:
        if target.url in self.failing_urls:
            raise PushDeliveryError(target.url, "endpoint rejected push", 502)
        self.deliveries.append((target.url, payload, {"X-Gotify-Key": target.token}))

    def messages_for(self, url: str) -> List[str]:
        return [payload["message"] for sent_url, payload, _ in self.deliveries if sent_url == url]


class EventRecorder(list):
    """(event_name, payload) pairs in publish order."""

    def names(self) -> List[str]:
        return [name for name, _ in self]

    def payloads(self, event_name: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self if name == event_name]


# ============================================================================
# INFRASTRUCTURE FIXTURES
# ============================================================================


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'taskquest.db'}"


@pytest_asyncio.fixture
async def database(database_url: str) -> AsyncGenerator[str, None]:
    """
    Initialized DatabaseService with the schema created.

    Scope: function (fresh database file per test)
    """
    await DatabaseService.initialize(database_url)
    await DatabaseService.create_schema()
    yield database_url
    await DatabaseService.shutdown()


@pytest_asyncio.fixture
async def config_manager(database: str) -> AsyncGenerator[type[ConfigManager], None]:
    """ConfigManager loaded from the repository YAML plus (empty) overrides."""
    ConfigManager.clear_cache()
    await ConfigManager.initialize(CONFIG_DIR)
    yield ConfigManager
    ConfigManager.clear_cache()


@pytest.fixture
def event_bus(config_manager: type[ConfigManager]) -> EventBus:
    bus = EventBus(config_manager=config_manager)
    config_manager.attach_event_bus(bus)
    return bus


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def push() -> RecordingPushDispatcher:
    return RecordingPushDispatcher()


@pytest_asyncio.fixture
async def container(
    config_manager: type[ConfigManager],
    event_bus: EventBus,
    clock: FrozenClock,
    push: RecordingPushDispatcher,
) -> AsyncGenerator[ServiceContainer, None]:
    """Fully wired container over the test database."""
    services = ServiceContainer(config_manager, event_bus, clock=clock, push_dispatcher=push)
    await services.initialize()
    yield services
    await event_bus.drain()
    await services.shutdown()


@pytest_asyncio.fixture
async def client(container: ServiceContainer, event_bus: EventBus) -> AsyncGenerator[TestClient, None]:
    """aiohttp test client bound to the real application."""
    app = create_app(container, event_bus)
    async with TestClient(TestServer(app)) as test_client:
        yield test_client


@pytest.fixture
def recorded_events(event_bus: EventBus) -> EventRecorder:
    """
    Every event published on the bus, in order.

    Subscribes one NORMAL listener per event family so the event name is
    captured alongside the payload.
    """
    seen = EventRecorder()
    names = (
        "task.created",
        "task.updated",
        "task.submitted",
        "task.declined",
        "task.approved",
        "task.deleted",
        "tasks.cleared",
        "archive.cleared",
        "player.updated",
        "player.leveled_up",
        "reward.claimed",
        "notification.published",
        "notifications.acknowledged",
        "config.updated",
        "config.refreshed",
    )

    def recorder(name: str):
        async def record(payload: Dict[str, Any]) -> None:
            seen.append((name, payload))

        return record

    for name in names:
        event_bus.subscribe(name, recorder(name), identifier=f"test.recorder@{name}")
    return seen


# ============================================================================
# FACTORIES
# ============================================================================


@pytest.fixture
def make_task(container: ServiceContainer):
    """Create an open task through the service; overrides win over defaults."""

    async def factory(**overrides: Any):
        data: Dict[str, Any] = {"title": "Take out the trash", "player": "1", "difficulty": 3, "urgency": 2}
        data.update(overrides)
        return await container.tasks.create(data)

    return factory


@pytest.fixture
def submitted_task(container: ServiceContainer, make_task):
    """Create a task and submit it for review."""

    async def factory(approver: Any = None, **overrides: Any):
        task = await make_task(**overrides)
        return await container.approval.submit(task.id, task.owner, approver=approver)

    return factory


