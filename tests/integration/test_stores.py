"""
Snapshot stores loading rows written straight to the database.
"""

from datetime import datetime, timedelta, timezone

import pytest

from taskquest.core.database.service import DatabaseService
from taskquest.database.models import NotificationModel, PlayerStatsModel, TaskModel
from taskquest.modules.notifications.store import NotificationStore
from taskquest.modules.players.store import PlayerStatsStore
from taskquest.modules.tasks.store import TaskStore

pytestmark = [pytest.mark.integration, pytest.mark.database]

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


async def test_task_store_loads_in_id_order(database):
    async with DatabaseService.get_transaction() as session:
        for task_id in (300, 100, 200):
            session.add(TaskModel(id=task_id, title=f"Chore {task_id}", owner="1", created_at=T0))

    store = TaskStore()
    await store.load()

    assert store.keys() == [100, 200, 300]
    assert store.get(200).title == "Chore 200"


async def test_player_store_loads_in_creation_order(database):
    async with DatabaseService.get_transaction() as session:
        session.add(PlayerStatsModel(id="2", name="Sam", exp=0, claimed_rewards=[], created_at=T0 + timedelta(hours=1)))
        session.add(PlayerStatsModel(id="1", name="Alex", exp=120, claimed_rewards=[], created_at=T0))

    store = PlayerStatsStore()
    await store.load()

    assert store.keys() == ["1", "2"]
    assert store.get("1").exp == 120


async def test_notification_store_loads_oldest_first(database):
    async with DatabaseService.get_transaction() as session:
        session.add(NotificationModel(id=2_000, type="levelup", player_id="1", player_name="Alex", level=3, seen_by=[]))
        session.add(NotificationModel(id=1_000, type="levelup", player_id="1", player_name="Alex", level=2, seen_by=["2"]))

    store = NotificationStore()
    await store.load()

    assert store.keys() == [1_000, 2_000]
    assert store.get(1_000).seen_by == frozenset({"2"})
