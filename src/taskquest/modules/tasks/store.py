"""
TaskStore and ArchiveStore.

Both keep their rows in id order, which is creation order since ids are
monotonic milliseconds.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import timezone
from typing import Any, Dict

from taskquest.core.logging.logger import get_logger
from taskquest.database.models.task import (
    APPROVER_ANYONE,
    APPROVER_SPECIFIC,
    APPROVER_UNASSIGNED,
    ArchivedTaskModel,
    TaskModel,
)
from taskquest.domain.models.task import (
    AnyExcept,
    Approver,
    ArchivedTask,
    SpecificApprover,
    Task,
    TaskStatus,
    Unassigned,
)
from taskquest.modules.shared.base_repository import BaseRepository
from taskquest.modules.shared.exceptions import NotFoundError
from taskquest.modules.shared.store import SnapshotStore


class TaskRepository(BaseRepository[TaskModel]):
    pass


class ArchivedTaskRepository(BaseRepository[ArchivedTaskModel]):
    pass


def _approver_columns(approver: Approver) -> Dict[str, Any]:
    if isinstance(approver, SpecificApprover):
        return {"approver_mode": APPROVER_SPECIFIC, "approver_id": approver.player_id}
    if isinstance(approver, AnyExcept):
        return {"approver_mode": APPROVER_ANYONE, "approver_id": None}
    return {"approver_mode": APPROVER_UNASSIGNED, "approver_id": None}


def _approver_from_columns(mode: str, approver_id: Any, owner: str, status: TaskStatus) -> Approver:
    if mode == APPROVER_SPECIFIC and approver_id:
        return SpecificApprover(str(approver_id))
    if mode == APPROVER_ANYONE:
        return AnyExcept(owner)
    # A submitted task with no recorded approver is open to any non-owner.
    if status is TaskStatus.SUBMITTED:
        return AnyExcept(owner)
    return Unassigned()


def _task_columns(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "owner": task.owner,
        "difficulty": task.difficulty,
        "urgency": task.urgency,
        "due_date": task.due_date,
        "minutes_worked": task.minutes_worked,
        "status": task.status.value,
        "commentary": task.commentary,
        "note": task.note,
        "created_at": task.created_at,
        **_approver_columns(task.approver),
    }


def _task_from_row(row: TaskModel) -> Task:
    status = TaskStatus(row.status) if row.status in ("open", "submitted") else TaskStatus.OPEN
    created_at = row.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Task(
        id=row.id,
        title=row.title,
        owner=row.owner,
        difficulty=row.difficulty,
        urgency=row.urgency,
        due_date=row.due_date,
        status=status,
        approver=_approver_from_columns(row.approver_mode, row.approver_id, row.owner, status),
        minutes_worked=row.minutes_worked,
        commentary=row.commentary or "",
        note=row.note or "",
        created_at=created_at,
    )


class TaskStore(SnapshotStore[int, Task, TaskModel]):
    """Active tasks: open or waiting for review."""

    name = "tasks"
    load_order = "id"

    def __init__(self) -> None:
        super().__init__(
            TaskRepository(TaskModel, get_logger(f"{__name__}.TaskRepository")),
            get_logger(f"{__name__}.TaskStore"),
        )

    def key_of(self, value: Task) -> int:
        return value.id

    def to_row(self, value: Task) -> TaskModel:
        return TaskModel(**_task_columns(value))

    def from_row(self, row: TaskModel) -> Task:
        return _task_from_row(row)

    def require(self, task_id: int) -> Task:
        task = self.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task


class ArchiveStore(SnapshotStore[int, ArchivedTask, ArchivedTaskModel]):
    """Completed tasks. Append-only apart from a bulk clear."""

    name = "archive"
    load_order = "id"

    def __init__(self) -> None:
        super().__init__(
            ArchivedTaskRepository(ArchivedTaskModel, get_logger(f"{__name__}.ArchivedTaskRepository")),
            get_logger(f"{__name__}.ArchiveStore"),
        )

    def key_of(self, value: ArchivedTask) -> int:
        return value.id

    def to_row(self, value: ArchivedTask) -> ArchivedTaskModel:
        columns = _task_columns(value.task)
        columns["status"] = "done"
        return ArchivedTaskModel(
            **columns,
            confirmed_by=value.confirmed_by,
            completed_at=value.completed_at,
            rating=value.rating,
            answer_commentary=value.answer_commentary,
            exp=value.exp,
        )

    def from_row(self, row: ArchivedTaskModel) -> ArchivedTask:
        completed_at = row.completed_at
        if completed_at.tzinfo is None:
            completed_at = completed_at.replace(tzinfo=timezone.utc)
        # archived rows store status "done"; the wrapped task was submitted when approved
        task = replace(_task_from_row(row), status=TaskStatus.SUBMITTED)  # type: ignore[arg-type]
        return ArchivedTask(
            task=task,
            confirmed_by=row.confirmed_by,
            completed_at=completed_at,
            rating=row.rating,
            answer_commentary=row.answer_commentary or "",
            exp=row.exp,
        )
