"""
Restart behaviour: a second ServiceContainer over the same database file
must see exactly what the first one committed.
"""

import pytest

from taskquest.core.services.container import ServiceContainer
from taskquest.domain.models.task import ANYONE, SpecificApprover, TaskStatus

pytestmark = [pytest.mark.integration, pytest.mark.database]


@pytest.fixture
def restart(config_manager, event_bus, clock, push):
    async def build() -> ServiceContainer:
        services = ServiceContainer(config_manager, event_bus, clock=clock, push_dispatcher=push)
        await services.initialize()
        return services

    return build


async def test_state_survives_restart(container, submitted_task, make_task, restart):
    await container.players.upsert_stats({"id": "1", "name": "Alex"})
    await container.players.upsert_stats({"id": "2", "name": "Sam"})
    await container.players.set_push_targets("2", [{"url": "https://push.example/sam", "token": "s"}])

    open_task = await make_task(title="Sweep", note="porch too")
    pending = await submitted_task(approver="2", title="Windows")
    done = await submitted_task(approver=ANYONE, difficulty=5, urgency=0)
    archived = await container.approval.approve(done.id, "2", 4, "nice")

    reloaded = await restart()

    assert reloaded.task_store.get(open_task.id) == open_task
    restored = reloaded.task_store.get(pending.id)
    assert restored.status is TaskStatus.SUBMITTED
    assert restored.approver == SpecificApprover("2")
    assert reloaded.archive_store.get(done.id) == archived
    assert reloaded.player_store.get("1") == container.player_store.get("1")
    assert reloaded.players.get_push_targets("2") == [{"url": "https://push.example/sam", "token": "s"}]
    assert [n.id for n in reloaded.notifications.list_all()] == [n.id for n in container.notifications.list_all()]


async def test_ids_stay_monotonic_after_restart(container, clock, make_task, restart):
    first = await make_task()
    clock.advance(seconds=-30)

    reloaded = await restart()
    second = await reloaded.tasks.create({"title": "Dust", "player": "1"})

    assert second.id > first.id


async def test_notification_acks_survive_restart(container, restart):
    await container.players.upsert_stats({"id": "1", "name": "Alex"})
    await container.players.upsert_stats({"id": "2", "name": "Sam"})
    await container.players.upsert_stats({"id": "1", "exp": 100})
    await container.notifications.acknowledge("1")

    reloaded = await restart()

    assert reloaded.notifications.list_unacknowledged("1") == []
    assert len(reloaded.notifications.list_unacknowledged("2")) == 1
