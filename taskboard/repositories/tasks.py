"""
Task persistence, including the task_users assignment relation.

Every read eagerly resolves the creator, the primary assignee and the full
assignment set. Writes that touch more than one table run in a single
transaction and roll back completely on any error.
"""

import logging
import uuid
from typing import List, Sequence

from sqlalchemy import inspect, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from taskboard.errors import Conflict, InvalidInput, NotFound
from taskboard.models import Task, User, task_users
from taskboard.time_utils import utc_now

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ("uuid", "created_by_id", "created_at")

class TaskRepository:
    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return (
            self.db.query(Task)
            .options(
                joinedload(Task.created_by),
                joinedload(Task.assigned_to),
                selectinload(Task.users),
            )
            .filter(Task.deleted_at.is_(None))
        )

    def create(self, task: Task, assignee_uuids: Sequence[uuid.UUID] = ()) -> Task:
        """
        Insert a task together with its initial assignment set.

        Repeated assignee ids are dropped silently, keeping first-seen order.
        The first assignee becomes the primary assignee. If any assignee does
        not resolve to an active user, nothing is written.

        Raises:
            NotFound: an assignee does not exist
            Conflict: the store rejected the insert
        """
        try:
            self.db.add(task)
            self.db.flush()

            assignees: List[User] = []
            seen = set()
            for assignee_uuid in assignee_uuids:
                if assignee_uuid in seen:
                    continue
                seen.add(assignee_uuid)

                user = (
                    self.db.query(User)
                    .filter(User.uuid == assignee_uuid, User.deleted_at.is_(None))
                    .first()
                )
                if user is None:
                    raise NotFound(f"User with ID {assignee_uuid} not found")
                assignees.append(user)

            if assignees:
                task.users.extend(assignees)
                task.assigned_to_id = assignees[0].id

            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("Task could not be created: conflicting data") from e
        except Exception:
            self.db.rollback()
            raise

        logger.debug(f"Task {task.uuid} inserted with {len(assignees)} assignees")
        return self.get_by_uuid(task.uuid)

    def get_by_uuid(self, task_uuid: uuid.UUID) -> Task:
        task = self._query().filter(Task.uuid == task_uuid).first()
        if task is None:
            raise NotFound("Task not found")
        return task

    def get_all(self) -> List[Task]:
        return self._query().order_by(Task.created_at.desc(), Task.id.desc()).all()

    def get_created_by(self, user: User) -> List[Task]:
        return (
            self._query()
            .filter(Task.created_by_id == user.id)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .all()
        )

    def get_assigned_to(self, user: User) -> List[Task]:
        """Tasks whose assignment set contains the user."""
        return (
            self._query()
            .join(task_users, task_users.c.task_id == Task.id)
            .filter(task_users.c.user_id == user.id)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .all()
        )

    def update(self, task: Task) -> Task:
        """
        Persist changes to the mutable fields of a loaded task
        (title, description, completed, updated_at, assigned_to_id).

        Completion only moves forward, and a new primary assignee must
        already be in the assignment set.

        Raises:
            InvalidInput: an immutable field such as the creator was changed,
                or the primary assignee is not assigned to the task
            Conflict: the change would reopen a completed task
        """
        state = inspect(task)
        for field in IMMUTABLE_FIELDS:
            if state.attrs[field].history.has_changes():
                self.db.rollback()
                raise InvalidInput(f"Task field '{field}' cannot be changed")

        if state.attrs.completed.history.has_changes() and not task.completed:
            # autoflush is off, so this reads the stored value
            stored = self.db.query(Task.completed).filter(Task.id == task.id).scalar()
            if stored:
                self.db.rollback()
                raise Conflict("Completed tasks cannot be reopened")

        if state.attrs.assigned_to_id.history.has_changes() and task.assigned_to_id is not None:
            if not self._has_assignment(task.id, task.assigned_to_id):
                self.db.rollback()
                raise InvalidInput("Primary assignee must be assigned to the task")

        task.updated_at = utc_now()
        self.db.commit()
        return self.get_by_uuid(task.uuid)

    def mark_completed(self, task: Task) -> None:
        """
        Flip an open task to completed.

        The update is conditional on the row still being open, so of two
        concurrent completions exactly one succeeds.

        Raises:
            Conflict: the task was already completed
        """
        result = self.db.execute(
            update(Task)
            .where(Task.id == task.id, Task.completed.is_(False))
            .values(completed=True, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise Conflict("Task is already completed")
        self.db.commit()

    def delete(self, task: Task) -> None:
        """Remove the task; its assignment rows go with it."""
        self.db.delete(task)
        self.db.commit()

    def _has_assignment(self, task_id: int, user_id: int) -> bool:
        query = self.db.query(task_users).filter(
            task_users.c.task_id == task_id, task_users.c.user_id == user_id
        )
        return self.db.query(query.exists()).scalar()

    def is_assigned(self, task: Task, user: User) -> bool:
        return self._has_assignment(task.id, user.id)

    def add_user(self, task: Task, user: User) -> None:
        """
        Insert an assignment row inside the caller's transaction.

        Raises:
            Conflict: the user is already assigned to the task
        """
        if self.is_assigned(task, user):
            raise Conflict("User is already assigned to this task")
        self.db.execute(task_users.insert().values(task_id=task.id, user_id=user.id))

    def set_primary_assignee(self, task: Task, user: User) -> None:
        """
        Point the task's primary assignee at a user, inside the caller's transaction.

        Raises:
            InvalidInput: the user is not in the task's assignment set
        """
        if not self.is_assigned(task, user):
            raise InvalidInput("Primary assignee must be assigned to the task")
        task.assigned_to_id = user.id
        task.updated_at = utc_now()

    def assign_user(self, task: Task, user: User) -> Task:
        """
        Add a user to the assignment set and make them the primary assignee,
        as one transaction.

        Raises:
            Conflict: the user is already assigned (pre-check or unique key)
        """
        try:
            self.add_user(task, user)
            self.set_primary_assignee(task, user)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info(f"Assignment of user {user.uuid} to task {task.uuid} rejected by unique key")
            raise Conflict("User is already assigned to this task") from e
        except Exception:
            self.db.rollback()
            raise

        return self.get_by_uuid(task.uuid)
