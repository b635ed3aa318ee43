"""
ApprovalWorkflow: submit -> (decline | approve -> archive).

Purpose
-------
Orchestrates TaskStore, ArchiveStore, PlayerStatsStore and the
NotificationBus for the review transitions of a task.

Guarantees
----------
- Guards run before anything is written; a rejected transition leaves every
  store untouched.
- Approval holds the writer locks of all four stores (fixed order), writes
  every row in one transaction and swaps all snapshots in the same
  event-loop step. Readers never see the task both active and archived.
- First writer wins. Whichever of two racing approve/decline calls gets the
  task lock second finds the task gone or reopened and fails with
  ``PreconditionError("task not found or not awaiting approval")``.
- Events are published only after the commit.

Events
------
- ``task.submitted`` / ``task.declined`` / ``task.approved``
- plus ``player.*``, ``reward.claimed`` and ``notification.published``
  produced by the EXP award (see PlayerService.progress)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional, Type

from taskquest.core.database.service import DatabaseService
from taskquest.core.logging.logger import LogContext, get_logger
from taskquest.domain.models.base import DomainEvent, isoformat_utc
from taskquest.domain.models.player import PlayerStats
from taskquest.domain.models.task import (
    NOT_AWAITING_APPROVAL,
    ArchivedTask,
    Task,
    normalize_player_id,
)
from taskquest.modules.shared import game_settings
from taskquest.modules.shared.base_service import BaseService
from taskquest.modules.shared.exceptions import PreconditionError
from taskquest.modules.shared.formulas import compute_exp
from taskquest.modules.shared.store import write_locks

if TYPE_CHECKING:
    from taskquest.core.config.manager import ConfigManager
    from taskquest.core.event.bus import EventBus
    from taskquest.modules.notifications.bus import NotificationBus
    from taskquest.modules.players.service import PlayerService
    from taskquest.modules.players.store import PlayerStatsStore
    from taskquest.modules.shared.clock import Clock
    from taskquest.modules.tasks.store import ArchiveStore, TaskStore

logger = get_logger(__name__)

TASK_SUBMITTED = "task.submitted"
TASK_DECLINED = "task.declined"
TASK_APPROVED = "task.approved"


class ApprovalWorkflow(BaseService):
    def __init__(
        self,
        tasks: TaskStore,
        archive: ArchiveStore,
        players: PlayerStatsStore,
        notifications: NotificationBus,
        player_service: PlayerService,
        clock: Clock,
        config_manager: Type[ConfigManager],
        event_bus: EventBus,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self.tasks = tasks
        self.archive = archive
        self.players = players
        self.notifications = notifications
        self.player_service = player_service
        self.clock = clock

    def _require_submitted(self, task_id: int) -> Task:
        task = self.tasks.get(task_id)
        if task is None or not task.is_submitted:
            raise PreconditionError("review task", NOT_AWAITING_APPROVAL, {"task_id": task_id})
        return task

    # ========================================================================
    # open -> submitted
    # ========================================================================

    async def submit(
        self,
        task_id: int,
        actor: Any,
        approver: Any = None,
        commentary: Optional[str] = None,
        minutes_worked: Any = None,
        edits: Optional[Mapping[str, Any]] = None,
    ) -> Task:
        """
        Owner hands an open task over for review.

        ``edits`` are merged first, in the same write, so a PATCH carrying
        both field changes and ``status: "submitted"`` is atomic.
        """
        actor_id = normalize_player_id(actor)

        with LogContext(task_id=task_id, player_id=actor_id, operation="submit"):
            async with write_locks(self.tasks):
                task = self.tasks.require(task_id)
                if task.is_submitted:
                    raise PreconditionError("submit task", "task is already awaiting approval", {"task_id": task_id})
                if edits:
                    task = task.with_edits(edits)
                submitted = task.submit(actor_id, approver, commentary, minutes_worked)

                async with DatabaseService.get_transaction() as session:
                    await self.tasks.persist(session, submitted)
                self.tasks.commit_put(submitted)

            self.log_operation(
                "submit_task",
                task_id=task_id,
                approver=submitted.approver.to_wire(),
            )
            await self.emit_event(
                TASK_SUBMITTED,
                {"task_id": task_id, "owner": submitted.owner, "task": submitted.to_dict()},
            )
            return submitted

    # ========================================================================
    # submitted -> open
    # ========================================================================

    async def decline(self, task_id: int, actor: Any) -> Task:
        """Reviewer sends the task back; approver and proof are cleared."""
        actor_id = normalize_player_id(actor)

        with LogContext(task_id=task_id, player_id=actor_id, operation="decline"):
            async with write_locks(self.tasks):
                task = self._require_submitted(task_id)
                reopened = task.decline(actor_id)

                async with DatabaseService.get_transaction() as session:
                    await self.tasks.persist(session, reopened)
                self.tasks.commit_put(reopened)

            self.log_operation("decline_task", task_id=task_id, owner=reopened.owner)
            await self.emit_event(
                TASK_DECLINED,
                {
                    "task_id": task_id,
                    "owner": reopened.owner,
                    "declined_by": actor_id,
                    "task": reopened.to_dict(),
                },
            )
            return reopened

    # ========================================================================
    # submitted -> archived
    # ========================================================================

    async def approve(
        self,
        task_id: int,
        actor: Any,
        rating: Any,
        answer_commentary: Optional[str] = None,
    ) -> ArchivedTask:
        """
        Reviewer confirms the task: score it, award EXP, archive it.

        Raises:
            PreconditionError: task missing or not submitted
            AuthorizationError: actor is the owner or not the approver
            ValidationError: rating outside 1-5
        """
        actor_id = normalize_player_id(actor)

        with LogContext(task_id=task_id, player_id=actor_id, operation="approve"):
            async with write_locks(self.tasks, self.archive, self.players, self.notifications.store):
                task = self._require_submitted(task_id)
                completed_at = self.clock.now()
                exp = compute_exp(
                    difficulty=task.difficulty,
                    urgency=task.urgency,
                    minutes_worked=task.minutes_worked,
                    due_date=task.due_at,
                    completed_at=completed_at,
                    config=game_settings.scoring_config(self._config),
                )
                archived = task.approve(actor_id, rating, answer_commentary, completed_at, exp)

                before = self.players.get(task.owner)
                after = (before or PlayerStats.new(task.owner)).award(exp)
                progress = self.player_service.progress(before, after, source="approval")

                async with DatabaseService.get_transaction() as session:
                    await self.tasks.persist_delete(session, task_id)
                    await self.archive.persist(session, archived)
                    await self.players.persist(session, after)
                    await self.notifications.persist_new(session, progress.notifications)

                self.tasks.commit_remove(task_id)
                self.archive.commit_put(archived)
                self.players.commit_put(after)
                announcements = self.notifications.commit_new(progress.notifications)

            self.log_operation(
                "approve_task",
                task_id=task_id,
                owner=task.owner,
                exp=exp,
                rating=archived.rating,
                new_total=after.exp,
                levels_crossed=len(progress.notifications),
            )

            approved = DomainEvent(
                TASK_APPROVED,
                {
                    "task_id": task_id,
                    "title": task.title,
                    "owner": task.owner,
                    "owner_name": after.name,
                    "approver": actor_id,
                    "approver_name": self.players.display_name(actor_id),
                    "exp": exp,
                    "rating": archived.rating,
                    "completed_at": isoformat_utc(completed_at),
                },
            )
            await self.publish_events([approved, *progress.events, *announcements])
            return archived
