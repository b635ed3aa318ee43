"""
Unit Tests for the Task Domain Model
====================================

Test Coverage
-------------
- Creation and field validation
- Approver variants and their wire form
- The open -> submitted -> open / archived state machine
- Edit rules for open and submitted tasks
"""

from datetime import datetime, timezone

import pytest

from taskquest.domain.models.task import (
    ANYONE,
    NOT_AWAITING_APPROVAL,
    AnyExcept,
    SpecificApprover,
    Task,
    TaskStatus,
    Unassigned,
    due_instant,
    parse_approver,
)
from taskquest.modules.shared.exceptions import (
    AuthorizationError,
    PreconditionError,
    ValidationError,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def new_task(**overrides):
    data = {"title": "Dishes", "player": "1", "difficulty": 2, "urgency": 1}
    data.update(overrides)
    return Task.create(1741608000000, data, NOW)


# ============================================================================
# CREATION
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestTaskCreation:
    def test_defaults(self):
        task = Task.create(1, {"title": "Vacuum", "player": 1}, NOW)

        assert task.status is TaskStatus.OPEN
        assert task.owner == "1"
        assert task.difficulty == 1
        assert task.urgency == 0
        assert task.approver == Unassigned()
        assert task.created_at == NOW

    def test_name_is_an_alias_for_title(self):
        assert Task.create(1, {"name": "Laundry", "player": "2"}, NOW).title == "Laundry"

    def test_status_and_id_in_body_are_ignored(self):
        task = new_task(status="submitted", id=5)
        assert task.status is TaskStatus.OPEN
        assert task.id == 1741608000000

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"title": "  "}, "title"),
            ({"player": None}, "player"),
            ({"difficulty": 6}, "difficulty"),
            ({"difficulty": 0}, "difficulty"),
            ({"urgency": -1}, "urgency"),
            ({"urgency": "high"}, "urgency"),
            ({"dueDate": "next tuesday"}, "dueDate"),
            ({"minutesWorked": -5}, "minutesWorked"),
            ({"note": 12}, "note"),
        ],
    )
    def test_invalid_fields_rejected(self, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            new_task(**overrides)
        assert exc_info.value.field == field

    def test_due_date_only_is_midnight_utc(self):
        assert due_instant("2025-03-11") == datetime(2025, 3, 11, tzinfo=timezone.utc)
        assert new_task(dueDate="2025-03-11").due_at == datetime(2025, 3, 11, tzinfo=timezone.utc)

    def test_due_datetime_with_offset_normalized_to_utc(self):
        assert due_instant("2025-03-11T10:00:00+02:00") == datetime(2025, 3, 11, 8, tzinfo=timezone.utc)
        assert due_instant("2025-03-11T10:00:00Z") == datetime(2025, 3, 11, 10, tzinfo=timezone.utc)


# ============================================================================
# APPROVER
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestApprover:
    def test_missing_approver_means_anyone(self):
        assert parse_approver(None, "1") == AnyExcept("1")
        assert parse_approver("", "1") == AnyExcept("1")

    def test_anyone_sentinel(self):
        approver = parse_approver(ANYONE, "1")
        assert approver.to_wire() == ANYONE
        assert approver.permits("2")
        assert not approver.permits("1")

    def test_specific_approver_from_number(self):
        approver = parse_approver(2, "1")
        assert approver == SpecificApprover("2")
        assert approver.permits("2")
        assert not approver.permits("3")

    def test_owner_cannot_be_named_approver(self):
        with pytest.raises(ValidationError):
            parse_approver("1", "1")

    def test_unassigned_permits_nobody(self):
        assert not Unassigned().permits("1")
        assert Unassigned().to_wire() is None


# ============================================================================
# STATE MACHINE
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestSubmit:
    def test_owner_submits(self):
        submitted = new_task().submit("1", approver="2", commentary="done!", minutes_worked=20)

        assert submitted.status is TaskStatus.SUBMITTED
        assert submitted.approver == SpecificApprover("2")
        assert submitted.commentary == "done!"
        assert submitted.minutes_worked == 20

    def test_non_owner_cannot_submit(self):
        with pytest.raises(AuthorizationError):
            new_task().submit("2")

    def test_cannot_submit_twice(self):
        submitted = new_task().submit("1")
        with pytest.raises(PreconditionError):
            submitted.submit("1")


@pytest.mark.unit
@pytest.mark.domain
class TestReview:
    def test_owner_cannot_approve_even_with_anyone(self):
        submitted = new_task().submit("1", approver=ANYONE)
        with pytest.raises(AuthorizationError):
            submitted.approve("1", 5, None, NOW, 10)

    def test_only_designated_approver_may_review(self):
        submitted = new_task().submit("1", approver="2")
        with pytest.raises(AuthorizationError):
            submitted.approve("3", 5, None, NOW, 10)
        with pytest.raises(AuthorizationError):
            submitted.decline("3")

    def test_open_task_is_not_reviewable(self):
        with pytest.raises(PreconditionError) as exc_info:
            new_task().approve("2", 5, None, NOW, 10)
        assert exc_info.value.reason == NOT_AWAITING_APPROVAL

    def test_decline_reopens_and_clears_proof(self):
        submitted = new_task().submit("1", approver=ANYONE, commentary="photo attached")
        reopened = submitted.decline("3")

        assert reopened.status is TaskStatus.OPEN
        assert reopened.approver == Unassigned()
        assert reopened.commentary == ""

    def test_approve_resolves_anyone_to_the_actor(self):
        submitted = new_task().submit("1", approver=ANYONE)
        archived = submitted.approve("3", "4", "nice", NOW, 42)

        assert archived.confirmed_by == "3"
        assert archived.task.approver == SpecificApprover("3")
        assert archived.rating == 4
        assert archived.exp == 42
        assert archived.to_dict()["status"] == "done"
        assert archived.to_dict()["approver"] == "3"

    @pytest.mark.parametrize("rating", [0, 6, None, "great"])
    def test_rating_must_be_one_to_five(self, rating):
        submitted = new_task().submit("1")
        with pytest.raises(ValidationError):
            submitted.approve("2", rating, None, NOW, 10)


@pytest.mark.unit
@pytest.mark.domain
class TestEdits:
    def test_edit_open_task(self):
        edited = new_task().with_edits({"note": "use the blue bin", "urgency": 4, "dueDate": None})

        assert edited.note == "use the blue bin"
        assert edited.urgency == 4
        assert edited.due_date is None

    def test_unknown_fields_are_ignored(self):
        task = new_task()
        assert task.with_edits({"added": "yesterday", "colour": "red"}) is task

    def test_echoed_id_and_owner_are_accepted(self):
        task = new_task()
        assert task.with_edits({"id": task.id, "player": "1", "note": "x"}).note == "x"

    def test_id_cannot_change(self):
        with pytest.raises(ValidationError):
            new_task().with_edits({"id": 7})

    def test_submitted_task_cannot_be_edited(self):
        submitted = new_task().submit("1")
        with pytest.raises(PreconditionError):
            submitted.with_edits({"note": "sneaky"})

    def test_wire_form(self):
        data = new_task(dueDate="2025-03-11").submit("1").to_dict()

        assert data["status"] == "submitted"
        assert data["approver"] == ANYONE
        assert data["name"] == data["title"] == "Dishes"
        assert data["player"] == "1"
        assert data["dueDate"] == "2025-03-11"
        assert data["added"].startswith("2025-03-10T12:00:00")
