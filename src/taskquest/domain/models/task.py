"""
Task domain model and the approval state machine.

States
------
``open`` -> ``submitted`` -> ``open`` (decline) or archived (approve).

A task never carries a "done" status while it is active: approval turns it
into an ``ArchivedTask`` and the store removes the active one.

Approver
--------
Modelled as a tagged variant instead of a magic string:

- ``Unassigned``            nobody may review (open tasks)
- ``SpecificApprover(id)``  only that player may review
- ``AnyExcept(owner_id)``   any player except the owner may review

On the wire the variants are ``null``, the player id, and ``"__anyone__"``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from taskquest.domain.models.base import isoformat_utc
from taskquest.modules.shared.exceptions import (
    AuthorizationError,
    PreconditionError,
    ValidationError,
)

ANYONE = "__anyone__"
NOT_AWAITING_APPROVAL = "task not found or not awaiting approval"

DIFFICULTY_RANGE = (1, 5)
URGENCY_RANGE = (0, 5)
RATING_RANGE = (1, 5)


class TaskStatus(str, Enum):
    OPEN = "open"
    SUBMITTED = "submitted"


# ============================================================================
# APPROVER VARIANTS
# ============================================================================


@dataclass(frozen=True)
class Unassigned:
    def permits(self, actor: str) -> bool:
        return False

    def to_wire(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class SpecificApprover:
    player_id: str

    def permits(self, actor: str) -> bool:
        return actor == self.player_id

    def to_wire(self) -> Optional[str]:
        return self.player_id


@dataclass(frozen=True)
class AnyExcept:
    owner_id: str

    def permits(self, actor: str) -> bool:
        return actor != self.owner_id

    def to_wire(self) -> Optional[str]:
        return ANYONE


Approver = Union[Unassigned, SpecificApprover, AnyExcept]


def parse_approver(value: Any, owner: str, *, default_anyone: bool = True) -> Approver:
    """
    Turn a wire approver into a variant.

    Missing values become ``AnyExcept(owner)`` when ``default_anyone`` is set.
    Naming the owner as approver is rejected.

    >>> parse_approver("__anyone__", "1")
    AnyExcept(owner_id='1')
    >>> parse_approver(2, "1")
    SpecificApprover(player_id='2')
    """
    if value is None or value == "":
        return AnyExcept(owner) if default_anyone else Unassigned()
    if value == ANYONE:
        return AnyExcept(owner)
    approver_id = normalize_player_id(value, "approver")
    if approver_id == owner:
        raise ValidationError("approver", "a player cannot approve their own task")
    return SpecificApprover(approver_id)


# ============================================================================
# FIELD HELPERS
# ============================================================================


def normalize_player_id(value: Any, field_name: str = "player") -> str:
    """Player ids are strings on the inside; clients may send numbers."""
    if value is None or isinstance(value, bool):
        raise ValidationError(field_name, "is required")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if not text:
        raise ValidationError(field_name, "is required")
    return text


def bounded_int(
    field_name: str,
    value: Any,
    low: Optional[int],
    high: Optional[int],
    default: Optional[int] = None,
) -> int:
    if value is None or value == "":
        if default is None:
            raise ValidationError(field_name, "is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(field_name, "must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(field_name, "must be an integer") from None
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(field_name, "must be an integer")
    if low is not None and number < low:
        raise ValidationError(field_name, f"must be at least {low}")
    if high is not None and number > high:
        raise ValidationError(field_name, f"must be at most {high}")
    return number


def parse_due_date(value: Any) -> Optional[str]:
    """
    Validate a due date and return it unchanged (ISO date or datetime).

    >>> parse_due_date("2024-05-01")
    '2024-05-01'
    >>> parse_due_date(None) is None
    True
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError("dueDate", "must be an ISO date string")
    try:
        due_instant(value)
    except ValueError:
        raise ValidationError("dueDate", f"not an ISO date: {value!r}") from None
    return value


def due_instant(value: str) -> datetime:
    """
    Instant a due date refers to, in UTC.

    A bare date means the start of that day in UTC.

    >>> due_instant("2024-05-01")
    datetime.datetime(2024, 5, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    text = value.strip()
    if len(text) == 10:
        return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _text(data: Mapping[str, Any], key: str, default: str = "") -> str:
    value = data.get(key, default)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(key, "must be a string")
    return value


# ============================================================================
# TASK
# ============================================================================

EDITABLE_FIELDS = {
    "title",
    "name",
    "difficulty",
    "urgency",
    "dueDate",
    "minutesWorked",
    "note",
    "commentary",
}


@dataclass(frozen=True)
class Task:
    """An active task: open, or submitted and waiting for review."""

    id: int
    title: str
    owner: str
    difficulty: int = 1
    urgency: int = 0
    due_date: Optional[str] = None
    status: TaskStatus = TaskStatus.OPEN
    approver: Approver = field(default_factory=Unassigned)
    minutes_worked: int = 0
    commentary: str = ""
    note: str = ""
    created_at: Optional[datetime] = None

    @classmethod
    def create(cls, task_id: int, data: Mapping[str, Any], now: datetime) -> "Task":
        """
        Validate client input and build a new open task.

        Raises
        ------
        ValidationError
            For a missing title or owner, or out-of-range numbers.
        """
        title = data.get("title", data.get("name"))
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("title", "is required")

        return cls(
            id=task_id,
            title=title.strip(),
            owner=normalize_player_id(data.get("player")),
            difficulty=bounded_int("difficulty", data.get("difficulty"), *DIFFICULTY_RANGE, default=1),
            urgency=bounded_int("urgency", data.get("urgency"), *URGENCY_RANGE, default=0),
            due_date=parse_due_date(data.get("dueDate")),
            minutes_worked=bounded_int("minutesWorked", data.get("minutesWorked"), 0, None, default=0),
            commentary=_text(data, "commentary"),
            note=_text(data, "note"),
            created_at=now,
        )

    @property
    def due_at(self) -> Optional[datetime]:
        return due_instant(self.due_date) if self.due_date else None

    @property
    def is_submitted(self) -> bool:
        return self.status is TaskStatus.SUBMITTED

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def with_edits(self, changes: Mapping[str, Any]) -> "Task":
        """
        Merge editable fields into an open task.

        Unknown keys are ignored. ``id`` and ``player`` may be echoed back but
        not changed.
        """
        if self.is_submitted:
            raise PreconditionError("edit task", "task is awaiting approval")

        if "id" in changes and changes["id"] is not None:
            if bounded_int("id", changes["id"], None, None) != self.id:
                raise ValidationError("id", "cannot be changed")
        if "player" in changes and changes["player"] is not None:
            if normalize_player_id(changes["player"]) != self.owner:
                raise ValidationError("player", "owner cannot be changed")

        updates: Dict[str, Any] = {}
        if "title" in changes or "name" in changes:
            title = changes.get("title", changes.get("name"))
            if not isinstance(title, str) or not title.strip():
                raise ValidationError("title", "must not be empty")
            updates["title"] = title.strip()
        if "difficulty" in changes:
            updates["difficulty"] = bounded_int("difficulty", changes["difficulty"], *DIFFICULTY_RANGE, default=1)
        if "urgency" in changes:
            updates["urgency"] = bounded_int("urgency", changes["urgency"], *URGENCY_RANGE, default=0)
        if "dueDate" in changes:
            updates["due_date"] = parse_due_date(changes["dueDate"])
        if "minutesWorked" in changes:
            updates["minutes_worked"] = bounded_int("minutesWorked", changes["minutesWorked"], 0, None, default=0)
        if "note" in changes:
            updates["note"] = _text(changes, "note")
        if "commentary" in changes:
            updates["commentary"] = _text(changes, "commentary")

        return replace(self, **updates) if updates else self

    def submit(
        self,
        actor: str,
        approver: Any = None,
        commentary: Optional[str] = None,
        minutes_worked: Any = None,
    ) -> "Task":
        """open -> submitted. Owner only."""
        if actor != self.owner:
            raise AuthorizationError("submit task", actor, "only the owner can submit a task")
        if self.status is not TaskStatus.OPEN:
            raise PreconditionError("submit task", "task is not open")

        updates: Dict[str, Any] = {
            "status": TaskStatus.SUBMITTED,
            "approver": parse_approver(approver, self.owner),
        }
        if commentary is not None:
            if not isinstance(commentary, str):
                raise ValidationError("commentary", "must be a string")
            updates["commentary"] = commentary
        if minutes_worked is not None:
            updates["minutes_worked"] = bounded_int("minutesWorked", minutes_worked, 0, None)
        return replace(self, **updates)

    def ensure_reviewable_by(self, actor: str, action: str) -> None:
        """
        Guard shared by decline and approve.

        The owner is never a valid reviewer, even for ``"__anyone__"``.
        """
        if not self.is_submitted:
            raise PreconditionError(action, NOT_AWAITING_APPROVAL, {"task_id": self.id})
        if actor == self.owner:
            raise AuthorizationError(action, actor, "players cannot review their own tasks")
        if not self.approver.permits(actor):
            raise AuthorizationError(action, actor, "not the designated approver")

    def decline(self, actor: str) -> "Task":
        """submitted -> open; clears approver and proof."""
        self.ensure_reviewable_by(actor, "decline task")
        return replace(
            self,
            status=TaskStatus.OPEN,
            approver=Unassigned(),
            commentary="",
        )

    def approve(
        self,
        actor: str,
        rating: Any,
        answer_commentary: Any,
        completed_at: datetime,
        exp: int,
    ) -> "ArchivedTask":
        """submitted -> archived. The caller computes ``exp``."""
        self.ensure_reviewable_by(actor, "approve task")
        rating_value = bounded_int("rating", rating, *RATING_RANGE)
        if answer_commentary is not None and not isinstance(answer_commentary, str):
            raise ValidationError("answerCommentary", "must be a string")

        return ArchivedTask(
            task=replace(self, approver=SpecificApprover(actor)),
            confirmed_by=actor,
            completed_at=completed_at,
            rating=rating_value,
            answer_commentary=answer_commentary or "",
            exp=exp,
        )

    # ------------------------------------------------------------------ #
    # Serialization
    # ------------------------------------------------------------------ #

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "name": self.title,
            "player": self.owner,
            "difficulty": self.difficulty,
            "urgency": self.urgency,
            "dueDate": self.due_date,
            "status": self.status.value,
            "approver": self.approver.to_wire(),
            "minutesWorked": self.minutes_worked,
            "commentary": self.commentary,
            "note": self.note,
            "added": isoformat_utc(self.created_at) if self.created_at else None,
        }


@dataclass(frozen=True)
class ArchivedTask:
    """A completed task. Never changes after creation."""

    task: Task
    confirmed_by: str
    completed_at: datetime
    rating: int
    answer_commentary: str
    exp: int

    @property
    def id(self) -> int:
        return self.task.id

    @property
    def owner(self) -> str:
        return self.task.owner

    def to_dict(self) -> Dict[str, Any]:
        data = self.task.to_dict()
        data.update(
            {
                "status": "done",
                "confirmedBy": self.confirmed_by,
                "completedAt": isoformat_utc(self.completed_at),
                "rating": self.rating,
                "answerCommentary": self.answer_commentary,
                "exp": self.exp,
            }
        )
        return data
