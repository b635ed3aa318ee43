"""
Tests for the NotificationBus: durable log, per-player acknowledgement and
garbage collection against the current roster.
"""

import pytest
from sqlalchemy import func, select

from taskquest.core.database.service import DatabaseService
from taskquest.database.models import NotificationModel
from taskquest.modules.shared.exceptions import ValidationError


async def stored_notifications() -> int:
    async with DatabaseService.get_session() as session:
        return (await session.execute(select(func.count()).select_from(NotificationModel))).scalar_one()


@pytest.fixture
def roster(container):
    async def build(*player_ids):
        for player_id in player_ids:
            await container.players.upsert_stats({"id": player_id, "name": f"P{player_id}"})

    return build


@pytest.mark.unit
class TestPublish:
    async def test_publish_appends_and_announces(self, container, roster, recorded_events):
        await roster("1", "2")
        notification = container.notifications.new_levelup("1", "P1", 2)

        await container.notifications.publish(notification)

        assert container.notifications.list_all() == [notification]
        assert await stored_notifications() == 1
        assert recorded_events.payloads("notification.published") == [notification.to_dict()]

    async def test_list_unacknowledged_is_oldest_first(self, container, roster):
        await roster("1", "2")
        first = await container.notifications.publish(container.notifications.new_levelup("1", "P1", 2))
        second = await container.notifications.publish(container.notifications.new_reward("2", "P2", "movie-night"))

        assert first.id < second.id
        assert [n.id for n in container.notifications.list_unacknowledged("1")] == [first.id, second.id]


@pytest.mark.unit
class TestAcknowledge:
    async def test_partial_ack_marks_but_keeps(self, container, roster, recorded_events):
        await roster("1", "2")
        notification = await container.notifications.publish(container.notifications.new_levelup("1", "P1", 2))

        removed = await container.notifications.acknowledge("1")

        assert removed == 0
        assert container.notifications.list_unacknowledged("1") == []
        assert [n.id for n in container.notifications.list_unacknowledged("2")] == [notification.id]
        assert container.notification_store.get(notification.id).seen_by == frozenset({"1"})
        assert recorded_events.payloads("notifications.acknowledged")[-1] == {
            "player_id": "1",
            "marked": 1,
            "removed": 0,
        }

    async def test_last_ack_collects(self, container, roster):
        await roster("1", "2")
        await container.notifications.publish(container.notifications.new_levelup("1", "P1", 2))

        await container.notifications.acknowledge("1")
        removed = await container.notifications.acknowledge("2")

        assert removed == 1
        assert container.notifications.list_all() == []
        assert await stored_notifications() == 0

    async def test_ack_is_idempotent(self, container, roster):
        await roster("1", "2")
        await container.notifications.publish(container.notifications.new_levelup("1", "P1", 2))

        await container.notifications.acknowledge("1")
        assert await container.notifications.acknowledge("1") == 0
        assert len(container.notifications.list_all()) == 1

    async def test_player_joining_later_must_also_ack(self, container, roster):
        await roster("1", "2")
        notification = await container.notifications.publish(container.notifications.new_levelup("1", "P1", 2))
        await container.notifications.acknowledge("1")

        await roster("3")
        assert await container.notifications.acknowledge("2") == 0
        assert [n.id for n in container.notifications.list_unacknowledged("3")] == [notification.id]

        assert await container.notifications.acknowledge("3") == 1

    async def test_player_id_is_required(self, container):
        with pytest.raises(ValidationError):
            await container.notifications.acknowledge(None)
