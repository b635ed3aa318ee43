"""
Task Service
============

CRUD for active tasks plus the archive reads and bulk clears.

``update()`` is the generic PATCH: plain field edits on an open task, or a
review transition when the body carries ``status``:

- ``status: "submitted"`` -> ApprovalWorkflow.submit (edits applied first,
  ``player`` names the submitting owner and is required)
- ``status: "open"`` on a submitted task -> ApprovalWorkflow.decline
- any other status -> ValidationError

Events: ``task.created``, ``task.updated``, ``task.deleted``,
``tasks.cleared``, ``archive.cleared``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Type

from taskquest.core.database.service import DatabaseService
from taskquest.core.logging.logger import LogContext, get_logger
from taskquest.domain.models.task import ArchivedTask, Task, TaskStatus
from taskquest.modules.shared.base_service import BaseService
from taskquest.modules.shared.exceptions import PreconditionError, ValidationError
from taskquest.modules.shared.store import write_locks

if TYPE_CHECKING:
    from taskquest.core.config.manager import ConfigManager
    from taskquest.core.event.bus import EventBus
    from taskquest.modules.approval.workflow import ApprovalWorkflow
    from taskquest.modules.shared.clock import Clock, IdGenerator
    from taskquest.modules.tasks.store import ArchiveStore, TaskStore

logger = get_logger(__name__)

TASK_CREATED = "task.created"
TASK_UPDATED = "task.updated"
TASK_DELETED = "task.deleted"
TASKS_CLEARED = "tasks.cleared"
ARCHIVE_CLEARED = "archive.cleared"

REVIEW_KEYS = ("status", "approver")


class TaskService(BaseService):
    def __init__(
        self,
        tasks: TaskStore,
        archive: ArchiveStore,
        workflow: ApprovalWorkflow,
        clock: Clock,
        ids: IdGenerator,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.tasks = tasks
        self.archive = archive
        self.workflow = workflow
        self.clock = clock
        self.ids = ids

    # ========================================================================
    # READS
    # ========================================================================

    def list_tasks(self) -> List[Task]:
        return self.tasks.snapshot()

    def list_archive(self) -> List[ArchivedTask]:
        return self.archive.snapshot()

    def get(self, task_id: int) -> Task:
        return self.tasks.require(task_id)

    # ========================================================================
    # WRITES
    # ========================================================================

    async def create(self, data: Mapping[str, Any]) -> Task:
        """
        Validate and store a new open task.

        ``id`` and ``status`` in the body are ignored.
        """
        async with write_locks(self.tasks):
            task = Task.create(self.ids.next_id(), data, self.clock.now())
            async with DatabaseService.get_transaction() as session:
                await self.tasks.persist(session, task)
            self.tasks.commit_put(task)

        with LogContext(task_id=task.id, player_id=task.owner):
            self.log_operation("create_task", title=task.title, difficulty=task.difficulty, urgency=task.urgency)
        await self.emit_event(TASK_CREATED, {"task_id": task.id, "owner": task.owner, "task": task.to_dict()})
        return task

    async def update(self, task_id: int, changes: Mapping[str, Any]) -> Task:
        """Generic PATCH. See module docstring for status routing."""
        status = changes.get("status")
        edits = {k: v for k, v in changes.items() if k not in REVIEW_KEYS}

        if status is not None and status not in (TaskStatus.OPEN.value, TaskStatus.SUBMITTED.value):
            raise ValidationError("status", f"cannot be set to {status!r}")

        if status == TaskStatus.SUBMITTED.value:
            current = self.tasks.require(task_id)
            if current.is_submitted:
                raise PreconditionError("submit task", "task is already awaiting approval", {"task_id": task_id})
            return await self.workflow.submit(
                task_id,
                changes.get("player"),
                approver=changes.get("approver"),
                edits={k: v for k, v in edits.items() if k != "player"},
            )

        if status == TaskStatus.OPEN.value and self.tasks.require(task_id).is_submitted:
            return await self.workflow.decline(task_id, changes.get("player"))

        async with write_locks(self.tasks):
            current = self.tasks.require(task_id)
            updated = current.with_edits(edits)
            if updated is not current:
                async with DatabaseService.get_transaction() as session:
                    await self.tasks.persist(session, updated)
                self.tasks.commit_put(updated)

        if updated is not current:
            with LogContext(task_id=task_id, player_id=updated.owner):
                self.log_operation("update_task", fields=sorted(edits))
            await self.emit_event(
                TASK_UPDATED,
                {"task_id": task_id, "owner": updated.owner, "task": updated.to_dict()},
            )
        return updated

    async def delete(self, task_id: int) -> Task:
        """
        Remove an open task.

        Raises:
            NotFoundError: unknown task
            PreconditionError: task is awaiting approval
        """
        async with write_locks(self.tasks):
            task = self.tasks.require(task_id)
            if task.is_submitted:
                raise PreconditionError("delete task", "task is awaiting approval", {"task_id": task_id})
            async with DatabaseService.get_transaction() as session:
                await self.tasks.persist_delete(session, task_id)
            self.tasks.commit_remove(task_id)

        self.log_operation("delete_task", task_id=task_id)
        await self.emit_event(TASK_DELETED, {"task_id": task_id, "owner": task.owner})
        return task

    async def clear_tasks(self) -> int:
        """Administrative reset: drop every active task."""
        async with write_locks(self.tasks):
            async with DatabaseService.get_transaction() as session:
                removed = await self.tasks.persist_clear(session)
            self.tasks.commit_replace([])

        self.log.warning("All active tasks cleared", extra={"removed": removed})
        await self.emit_event(TASKS_CLEARED, {"removed": removed})
        return removed

    async def clear_archive(self) -> int:
        async with write_locks(self.archive):
            async with DatabaseService.get_transaction() as session:
                removed = await self.archive.persist_clear(session)
            self.archive.commit_replace([])

        self.log.warning("Archive cleared", extra={"removed": removed})
        await self.emit_event(ARCHIVE_CLEARED, {"removed": removed})
        return removed

    def snapshot_counts(self) -> Dict[str, int]:
        return {"tasks": len(self.tasks), "archive": len(self.archive)}
