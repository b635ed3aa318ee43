"""
Unit tests for TaskService: CRUD, PATCH status routing and bulk clears.
"""

import pytest

from taskquest.domain.models.task import ANYONE, TaskStatus
from taskquest.modules.shared.exceptions import (
    AuthorizationError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)


@pytest.mark.unit
class TestCreate:
    async def test_create_assigns_monotonic_ids(self, container, make_task, recorded_events):
        first = await make_task()
        second = await make_task(title="Water plants")

        assert second.id > first.id
        assert [t.id for t in container.tasks.list_tasks()] == [first.id, second.id]
        assert recorded_events.names() == ["task.created", "task.created"]

    async def test_invalid_task_is_not_stored(self, container, make_task):
        with pytest.raises(ValidationError):
            await make_task(difficulty=9)

        assert container.tasks.list_tasks() == []


@pytest.mark.unit
class TestUpdate:
    async def test_field_edit(self, container, make_task, recorded_events):
        task = await make_task()

        updated = await container.tasks.update(task.id, {"note": "blue bin", "urgency": 4})

        assert updated.note == "blue bin"
        assert container.task_store.get(task.id).urgency == 4
        assert recorded_events.names()[-1] == "task.updated"

    async def test_minutes_worked_is_the_new_total(self, container, make_task):
        task = await make_task(minutesWorked=10)

        updated = await container.tasks.update(task.id, {"minutesWorked": 25})
        assert updated.minutes_worked == 25

        with pytest.raises(ValidationError):
            await container.tasks.update(task.id, {"minutesWorked": -5})
        assert container.task_store.get(task.id).minutes_worked == 25

    async def test_no_op_edit_publishes_nothing(self, container, make_task, recorded_events):
        task = await make_task()
        recorded_events.clear()

        assert await container.tasks.update(task.id, {"added": "whenever"}) == task
        assert recorded_events == []

    async def test_status_submitted_routes_to_submit(self, container, make_task):
        task = await make_task()

        submitted = await container.tasks.update(
            task.id, {"status": "submitted", "player": "1", "approver": "2", "note": "done early"}
        )

        assert submitted.status is TaskStatus.SUBMITTED
        assert submitted.approver.to_wire() == "2"
        assert submitted.note == "done early"

    async def test_status_submitted_requires_the_owner(self, container, make_task):
        task = await make_task()

        with pytest.raises(ValidationError):
            await container.tasks.update(task.id, {"status": "submitted", "approver": "2"})
        with pytest.raises(AuthorizationError):
            await container.tasks.update(task.id, {"status": "submitted", "approver": "3", "player": "2"})

        assert container.task_store.get(task.id) == task

    async def test_status_open_on_submitted_routes_to_decline(self, container, submitted_task):
        task = await submitted_task(approver=ANYONE)

        reopened = await container.tasks.update(task.id, {"status": "open", "player": "2"})

        assert reopened.status is TaskStatus.OPEN

    async def test_decline_through_patch_still_checks_reviewer(self, container, submitted_task):
        task = await submitted_task(approver="2")

        with pytest.raises(AuthorizationError):
            await container.tasks.update(task.id, {"status": "open", "player": "1"})

    @pytest.mark.parametrize("status", ["done", "archived", "approved"])
    async def test_other_statuses_rejected(self, container, make_task, status):
        task = await make_task()

        with pytest.raises(ValidationError):
            await container.tasks.update(task.id, {"status": status})

    async def test_submitted_task_cannot_be_edited(self, container, submitted_task):
        task = await submitted_task()

        with pytest.raises(PreconditionError):
            await container.tasks.update(task.id, {"note": "sneaky"})

    async def test_unknown_task(self, container):
        with pytest.raises(NotFoundError):
            await container.tasks.update(404, {"note": "x"})


@pytest.mark.unit
class TestDeleteAndClear:
    async def test_delete_open_task(self, container, make_task, recorded_events):
        task = await make_task()

        await container.tasks.delete(task.id)

        assert container.task_store.get(task.id) is None
        assert recorded_events.payloads("task.deleted") == [{"task_id": task.id, "owner": "1"}]

    async def test_submitted_task_cannot_be_deleted(self, container, submitted_task):
        task = await submitted_task()

        with pytest.raises(PreconditionError):
            await container.tasks.delete(task.id)

        assert container.task_store.get(task.id) is not None

    async def test_clear_tasks_and_archive(self, container, make_task, submitted_task):
        await make_task()
        done = await submitted_task(approver=ANYONE)
        await container.approval.approve(done.id, "2", 4)

        assert await container.tasks.clear_tasks() == 1
        assert await container.tasks.clear_archive() == 1
        assert container.tasks.snapshot_counts() == {"tasks": 0, "archive": 0}
        assert container.player_store.get("1").exp > 0
