"""
Tests for the task workflow (TaskService) against a real SQLite store.

Tests cover:
- Creation with multiple assignees and primary assignee selection
- Assignment, completion and deletion permissions
- State conflicts (double completion, duplicate assignment)
- Store-level guarantees (conditional completion, immutable creator,
  primary assignee always in the assignment set)
"""

import logging
import uuid

import pytest
from sqlalchemy.orm import Session

from taskboard import models
from taskboard.errors import Conflict, Forbidden, InvalidInput, NotFound
from taskboard.repositories import TaskRepository, UserRepository
from taskboard.services import TaskService

logger = logging.getLogger(__name__)


def _user_ids(task: models.Task):
    return {user.uuid for user in task.users}


# ============== Creation ==============


def test_create_task_with_assignees(task_service: TaskService, alice: models.User, bob: models.User, carol: models.User):
    """First listed assignee becomes primary; all listed users are in the set."""
    logger.debug("Testing task creation with two assignees")

    task = task_service.create_task("X", "", [str(bob.uuid), str(carol.uuid)], alice.uuid)
    fetched = task_service.get_task(task.uuid)

    assert fetched.title == "X"
    assert fetched.completed is False
    assert fetched.created_by.uuid == alice.uuid
    assert _user_ids(fetched) == {bob.uuid, carol.uuid}
    assert fetched.assigned_to.uuid == bob.uuid
    logger.info("✓ Task created with assignment set {bob, carol} and primary bob")


def test_create_task_without_assignees(task_service: TaskService, alice: models.User):
    task = task_service.create_task("Solo", None, [], alice.uuid)

    assert task.users == []
    assert task.assigned_to is None
    assert task.description == ""
    logger.info("✓ Task without assignees has empty set and no primary")


def test_create_task_deduplicates_assignees(task_service: TaskService, alice: models.User, bob: models.User):
    """Repeated ids in the creation list are ignored, not rejected."""
    task = task_service.create_task("Dup", "", [str(bob.uuid), str(bob.uuid)], alice.uuid)

    assert [user.uuid for user in task.users] == [bob.uuid]
    assert task.assigned_to.uuid == bob.uuid
    logger.info("✓ Duplicate assignees collapsed")


def test_create_task_empty_title(task_service: TaskService, alice: models.User):
    with pytest.raises(InvalidInput):
        task_service.create_task("   ", "", [], alice.uuid)
    assert task_service.list_tasks() == []
    logger.info("✓ Empty title rejected")


def test_create_task_unknown_assignee_writes_nothing(task_service: TaskService, alice: models.User, bob: models.User):
    """A missing assignee fails the whole creation; no task row is left behind."""
    missing = uuid.uuid4()

    with pytest.raises(NotFound) as exc_info:
        task_service.create_task("X", "", [str(bob.uuid), str(missing)], alice.uuid)

    assert str(missing) in exc_info.value.message
    assert task_service.list_tasks() == []
    logger.info("✓ Unknown assignee rejected atomically")


def test_create_task_malformed_assignee(task_service: TaskService, alice: models.User):
    with pytest.raises(InvalidInput) as exc_info:
        task_service.create_task("X", "", ["not-a-uuid"], alice.uuid)

    assert "not-a-uuid" in exc_info.value.message
    logger.info("✓ Malformed assignee id rejected")


def test_create_task_unknown_creator(task_service: TaskService):
    with pytest.raises(NotFound):
        task_service.create_task("X", "", [], uuid.uuid4())


def test_create_task_deactivated_assignee(
    task_service: TaskService, user_service, alice: models.User, bob: models.User
):
    """Soft-deleted users no longer resolve as assignees."""
    user_service.deactivate_user(bob.uuid)

    with pytest.raises(NotFound):
        task_service.create_task("X", "", [str(bob.uuid)], alice.uuid)
    logger.info("✓ Deactivated user cannot be assigned")


# ============== Reads ==============


def test_get_task_not_found(task_service: TaskService):
    with pytest.raises(NotFound):
        task_service.get_task(uuid.uuid4())


def test_get_task_malformed_id(task_service: TaskService):
    with pytest.raises(InvalidInput):
        task_service.get_task("abc")


def test_list_created_and_assigned(task_service: TaskService, alice: models.User, bob: models.User, carol: models.User):
    """Assigned listing uses set membership, not only the primary pointer."""
    first = task_service.create_task("First", "", [str(bob.uuid), str(carol.uuid)], alice.uuid)
    second = task_service.create_task("Second", "", [str(carol.uuid)], bob.uuid)

    created_by_alice = task_service.list_tasks_created_by(alice.uuid)
    assigned_to_carol = task_service.list_tasks_assigned_to(carol.uuid)
    assigned_to_bob = task_service.list_tasks_assigned_to(bob.uuid)

    assert [task.uuid for task in created_by_alice] == [first.uuid]
    assert {task.uuid for task in assigned_to_carol} == {first.uuid, second.uuid}
    assert [task.uuid for task in assigned_to_bob] == [first.uuid]
    assert len(task_service.list_tasks()) == 2
    logger.info("✓ Created/assigned listings correct")


# ============== Assignment ==============


def test_assign_by_creator(task_service: TaskService, alice_task: models.Task, alice: models.User, bob: models.User):
    task = task_service.assign_task(alice_task.uuid, bob.uuid, alice.uuid)

    assert _user_ids(task) == {bob.uuid}
    assert task.assigned_to.uuid == bob.uuid
    logger.info("✓ Creator assigned bob")


def test_assign_moves_primary_and_keeps_set(
    task_service: TaskService, alice_task: models.Task, alice: models.User, bob: models.User, carol: models.User
):
    """The set only grows; the primary follows the latest assignment."""
    task_service.assign_task(alice_task.uuid, bob.uuid, alice.uuid)
    task = task_service.assign_task(alice_task.uuid, carol.uuid, alice.uuid)

    assert _user_ids(task) == {bob.uuid, carol.uuid}
    assert task.assigned_to.uuid == carol.uuid
    logger.info("✓ Last assignment wins the primary pointer")


def test_assign_twice_conflict(task_service: TaskService, alice_task: models.Task, alice: models.User, bob: models.User):
    task_service.assign_task(alice_task.uuid, bob.uuid, alice.uuid)

    with pytest.raises(Conflict):
        task_service.assign_task(alice_task.uuid, bob.uuid, alice.uuid)

    task = task_service.get_task(alice_task.uuid)
    assert [user.uuid for user in task.users] == [bob.uuid]
    assert task.assigned_to.uuid == bob.uuid
    logger.info("✓ Re-assigning the same user is a conflict")


def test_assign_by_non_creator_forbidden(
    task_service: TaskService, alice_task: models.Task, bob: models.User, carol: models.User
):
    with pytest.raises(Forbidden):
        task_service.assign_task(alice_task.uuid, carol.uuid, bob.uuid)

    task = task_service.get_task(alice_task.uuid)
    assert task.users == []
    assert task.assigned_to is None
    logger.info("✓ Non-creator cannot assign")


def test_assignee_cannot_assign_others(
    task_service: TaskService, alice: models.User, bob: models.User, carol: models.User
):
    task = task_service.create_task("X", "", [str(bob.uuid)], alice.uuid)

    with pytest.raises(Forbidden):
        task_service.assign_task(task.uuid, carol.uuid, bob.uuid)


def test_assign_unknown_user(task_service: TaskService, alice_task: models.Task, alice: models.User):
    with pytest.raises(NotFound):
        task_service.assign_task(alice_task.uuid, uuid.uuid4(), alice.uuid)


def test_assign_unknown_task(task_service: TaskService, alice: models.User, bob: models.User):
    with pytest.raises(NotFound):
        task_service.assign_task(uuid.uuid4(), bob.uuid, alice.uuid)


def test_forbidden_checked_before_unknown_assignee(task_service: TaskService, alice_task: models.Task, bob: models.User):
    """Authorization is decided before the target user is looked up."""
    with pytest.raises(Forbidden):
        task_service.assign_task(alice_task.uuid, uuid.uuid4(), bob.uuid)


def test_assign_after_completion_allowed(
    task_service: TaskService, alice_task: models.Task, alice: models.User, bob: models.User
):
    task_service.complete_task(alice_task.uuid, alice.uuid)
    task = task_service.assign_task(alice_task.uuid, bob.uuid, alice.uuid)

    assert task.completed is True
    assert task.assigned_to.uuid == bob.uuid


# ============== Completion ==============


def test_complete_by_creator(task_service: TaskService, alice_task: models.Task, alice: models.User):
    task = task_service.complete_task(alice_task.uuid, alice.uuid)

    assert task.completed is True
    assert task_service.get_task(alice_task.uuid).completed is True
    logger.info("✓ Creator completed task")


def test_complete_twice_conflict(task_service: TaskService, alice_task: models.Task, alice: models.User):
    task_service.complete_task(alice_task.uuid, alice.uuid)
    updated_at = task_service.get_task(alice_task.uuid).updated_at

    with pytest.raises(Conflict):
        task_service.complete_task(alice_task.uuid, alice.uuid)

    task = task_service.get_task(alice_task.uuid)
    assert task.completed is True
    assert task.updated_at == updated_at
    logger.info("✓ Second completion is a conflict and changes nothing")


def test_unassigned_user_cannot_complete_until_assigned(
    task_service: TaskService, alice_task: models.Task, alice: models.User, bob: models.User
):
    with pytest.raises(Forbidden):
        task_service.complete_task(alice_task.uuid, bob.uuid)
    assert task_service.get_task(alice_task.uuid).completed is False

    task_service.assign_task(alice_task.uuid, bob.uuid, alice.uuid)
    task = task_service.complete_task(alice_task.uuid, bob.uuid)

    assert task.completed is True
    logger.info("✓ Bob can complete only after being assigned")


def test_non_primary_assignee_can_complete(
    task_service: TaskService, alice: models.User, bob: models.User, carol: models.User
):
    task = task_service.create_task("X", "", [str(bob.uuid), str(carol.uuid)], alice.uuid)
    assert task.assigned_to.uuid == bob.uuid

    task = task_service.complete_task(task.uuid, carol.uuid)
    assert task.completed is True


def test_forbidden_checked_before_completed_state(
    task_service: TaskService, alice_task: models.Task, alice: models.User, carol: models.User
):
    """An outsider gets Forbidden even when the task is already completed."""
    task_service.complete_task(alice_task.uuid, alice.uuid)

    with pytest.raises(Forbidden):
        task_service.complete_task(alice_task.uuid, carol.uuid)


# ============== Deletion ==============


def test_delete_by_creator(task_service: TaskService, alice: models.User, bob: models.User, test_db: Session):
    task = task_service.create_task("X", "", [str(bob.uuid)], alice.uuid)
    task_uuid = task.uuid

    task_service.delete_task(task_uuid, alice.uuid)

    with pytest.raises(NotFound):
        task_service.get_task(task_uuid)
    assert task_service.list_tasks_assigned_to(bob.uuid) == []
    assert test_db.query(models.task_users).count() == 0
    logger.info("✓ Creator deleted task and its assignment rows")


def test_delete_by_assignee_forbidden(task_service: TaskService, alice: models.User, bob: models.User):
    task = task_service.create_task("X", "", [str(bob.uuid)], alice.uuid)

    with pytest.raises(Forbidden):
        task_service.delete_task(task.uuid, bob.uuid)

    assert task_service.get_task(task.uuid).uuid == task.uuid
    logger.info("✓ Assignee cannot delete")


def test_delete_unknown_task(task_service: TaskService, alice: models.User):
    with pytest.raises(NotFound):
        task_service.delete_task(uuid.uuid4(), alice.uuid)


# ============== Store guarantees ==============


def test_creator_is_immutable(test_db: Session, alice_task: models.Task, bob: models.User):
    repo = TaskRepository(test_db)
    task = repo.get_by_uuid(alice_task.uuid)
    task.created_by_id = bob.id

    with pytest.raises(InvalidInput):
        repo.update(task)

    assert repo.get_by_uuid(alice_task.uuid).created_by.email == "alice@example.com"
    logger.info("✓ created_by cannot be changed")


def test_update_mutable_fields(test_db: Session, alice_task: models.Task):
    repo = TaskRepository(test_db)
    task = repo.get_by_uuid(alice_task.uuid)
    task.title = "Renamed"

    task = repo.update(task)
    assert task.title == "Renamed"


def test_conditional_completion_rejects_stale_task(test_db: Session, alice_task: models.Task):
    """Two completions of the same loaded task: exactly one succeeds."""
    repo = TaskRepository(test_db)
    task = repo.get_by_uuid(alice_task.uuid)

    repo.mark_completed(task)
    with pytest.raises(Conflict):
        repo.mark_completed(task)

    assert repo.get_by_uuid(alice_task.uuid).completed is True
    logger.info("✓ Conditional update settles racing completions")


def test_primary_assignee_must_be_in_set(test_db: Session, alice_task: models.Task, bob: models.User):
    repo = TaskRepository(test_db)
    task = repo.get_by_uuid(alice_task.uuid)
    user = UserRepository(test_db).get_by_uuid(bob.uuid)

    with pytest.raises(InvalidInput):
        repo.set_primary_assignee(task, user)
    test_db.rollback()

    assert repo.get_by_uuid(alice_task.uuid).assigned_to is None
    logger.info("✓ Primary assignee outside the set refused")


def test_duplicate_assignment_precheck_conflict(test_db: Session, alice_task: models.Task, bob: models.User):
    repo = TaskRepository(test_db)
    task = repo.get_by_uuid(alice_task.uuid)
    user = UserRepository(test_db).get_by_uuid(bob.uuid)
    repo.assign_user(task, user)

    with pytest.raises(Conflict):
        repo.assign_user(repo.get_by_uuid(alice_task.uuid), user)


def test_duplicate_assignment_rejected_by_store(
    test_db: Session, alice_task: models.Task, bob: models.User, monkeypatch
):
    """When the pre-check misses a concurrent insert, the composite key still rejects it."""
    repo = TaskRepository(test_db)
    user = UserRepository(test_db).get_by_uuid(bob.uuid)
    repo.assign_user(repo.get_by_uuid(alice_task.uuid), user)

    original_is_assigned = TaskRepository.is_assigned
    calls = []

    def stale_is_assigned(self, task, user):
        calls.append(user.id)
        if len(calls) == 1:
            return False
        return original_is_assigned(self, task, user)

    monkeypatch.setattr(TaskRepository, "is_assigned", stale_is_assigned)

    with pytest.raises(Conflict):
        repo.assign_user(repo.get_by_uuid(alice_task.uuid), user)

    task = repo.get_by_uuid(alice_task.uuid)
    assert [u.uuid for u in task.users] == [bob.uuid]
    assert task.assigned_to.uuid == bob.uuid
    logger.info("✓ Unique key settles a duplicate assignment the pre-check missed")


def test_conflicting_task_insert_rejected_by_store(test_db: Session, alice_task: models.Task, alice: models.User):
    repo = TaskRepository(test_db)
    clash = models.Task(uuid=alice_task.uuid, title="Copy", created_by_id=alice.id)

    with pytest.raises(Conflict):
        repo.create(clash)

    assert len(repo.get_all()) == 1
    logger.info("✓ Insert rejected by the store leaves nothing behind")


def test_update_rejects_primary_outside_set(test_db: Session, alice_task: models.Task, bob: models.User):
    repo = TaskRepository(test_db)
    task = repo.get_by_uuid(alice_task.uuid)
    task.assigned_to_id = bob.id

    with pytest.raises(InvalidInput):
        repo.update(task)

    task = repo.get_by_uuid(alice_task.uuid)
    assert task.assigned_to is None
    assert task.users == []
    logger.info("✓ update() cannot point the primary at an unassigned user")


def test_update_moves_primary_within_set(
    test_db: Session, task_service: TaskService, alice: models.User, bob: models.User, carol: models.User
):
    created = task_service.create_task("X", "", [str(bob.uuid), str(carol.uuid)], alice.uuid)
    repo = TaskRepository(test_db)
    task = repo.get_by_uuid(created.uuid)
    task.assigned_to_id = carol.id

    task = repo.update(task)

    assert task.assigned_to.uuid == carol.uuid
    assert _user_ids(task) == {bob.uuid, carol.uuid}


def test_update_cannot_reopen_completed_task(
    test_db: Session, task_service: TaskService, alice_task: models.Task, alice: models.User
):
    task_service.complete_task(alice_task.uuid, alice.uuid)
    repo = TaskRepository(test_db)
    task = repo.get_by_uuid(alice_task.uuid)
    task.completed = False

    with pytest.raises(Conflict):
        repo.update(task)

    assert repo.get_by_uuid(alice_task.uuid).completed is True
    logger.info("✓ Completion is one-way")


def test_create_task_repeated_missing_assignee_reported_once(task_service: TaskService, alice: models.User):
    missing = str(uuid.uuid4())

    with pytest.raises(NotFound) as exc_info:
        task_service.create_task("X", "", [missing, missing], alice.uuid)

    assert exc_info.value.message.count(missing) == 1


def test_create_task_title_too_long(task_service: TaskService, alice: models.User):
    with pytest.raises(InvalidInput):
        task_service.create_task("x" * 256, "", [], alice.uuid)
    assert task_service.list_tasks() == []

    task = task_service.create_task("x" * 255, "", [], alice.uuid)
    assert len(task.title) == 255
