"""
Task workflow: creation, assignment, completion and deletion.

Every mutation follows the same order: load the task fresh from the store
(NotFound), check the requestor's permission (Forbidden), check the state
precondition (Conflict), apply the change in one transaction, then re-fetch
the task so the caller sees committed state with its relations resolved.
"""

import logging
import uuid
from typing import List, Optional, Sequence, Union

from taskboard.auth.permissions import TaskAction, require_task_permission
from taskboard.errors import Conflict, InvalidInput, NotFound
from taskboard.identifiers import parse_uuid
from taskboard.models import TITLE_MAX_LENGTH, Task
from taskboard.repositories import TaskRepository, UserRepository

logger = logging.getLogger(__name__)

Identifier = Union[str, uuid.UUID]


class TaskService:
    def __init__(self, tasks: TaskRepository, users: UserRepository):
        self.tasks = tasks
        self.users = users

    def _resolve_assignees(self, assignee_ids: Sequence[Identifier]) -> List[uuid.UUID]:
        """
        Validate a creation-time assignee list.

        Every entry is checked so the error names all bad ids at once.
        Duplicates are dropped, keeping the first occurrence.
        """
        malformed = []
        missing = []
        resolved: List[uuid.UUID] = []
        seen = set()

        for raw_id in assignee_ids:
            try:
                assignee_uuid = parse_uuid(raw_id, "user ID")
            except InvalidInput:
                malformed.append(f"{raw_id} (invalid format)")
                continue
            if assignee_uuid in seen:
                continue
            seen.add(assignee_uuid)
            if self.users.find_by_uuid(assignee_uuid) is None:
                missing.append(f"{raw_id} (not found)")
                continue
            resolved.append(assignee_uuid)

        if malformed:
            raise InvalidInput(
                "Some users could not be assigned to the task: " + ", ".join(malformed + missing)
            )
        if missing:
            raise NotFound("Some users could not be assigned to the task: " + ", ".join(missing))
        return resolved

    def create_task(
        self,
        title: str,
        description: Optional[str],
        assignee_ids: Optional[Sequence[Identifier]],
        creator_id: Identifier,
    ) -> Task:
        """
        Create a task owned by creator_id, optionally assigned to several users.

        The first listed assignee becomes the primary assignee. The task and
        its assignment rows are written in one transaction.

        Raises:
            InvalidInput: empty or overlong title, or malformed id
            NotFound: creator or an assignee does not exist
        """
        title = (title or "").strip()
        if not title:
            raise InvalidInput("Task title is required")
        if len(title) > TITLE_MAX_LENGTH:
            raise InvalidInput(f"Task title must be at most {TITLE_MAX_LENGTH} characters")

        creator_uuid = parse_uuid(creator_id, "creator ID")
        creator = self.users.find_by_uuid(creator_uuid)
        if creator is None:
            raise NotFound("Creator not found")

        logger.info(f"User {creator_uuid} creating task: {title}")
        assignee_uuids = self._resolve_assignees(assignee_ids or [])

        task = Task(
            uuid=uuid.uuid4(),
            title=title,
            description=description or "",
            completed=False,
            created_by_id=creator.id,
        )
        task = self.tasks.create(task, assignee_uuids)

        logger.info(f"Task created successfully: id={task.uuid} with {len(assignee_uuids)} assignees")
        return task

    def get_task(self, task_id: Identifier) -> Task:
        return self.tasks.get_by_uuid(parse_uuid(task_id, "task ID"))

    def list_tasks(self) -> List[Task]:
        return self.tasks.get_all()

    def list_tasks_created_by(self, user_id: Identifier) -> List[Task]:
        user = self.users.get_by_uuid(parse_uuid(user_id, "user ID"))
        return self.tasks.get_created_by(user)

    def list_tasks_assigned_to(self, user_id: Identifier) -> List[Task]:
        user = self.users.get_by_uuid(parse_uuid(user_id, "user ID"))
        return self.tasks.get_assigned_to(user)

    def assign_task(self, task_id: Identifier, assignee_id: Identifier, requestor_id: Identifier) -> Task:
        """
        Add a user to a task's assignment set and make them the primary assignee.

        Raises:
            NotFound: task or user does not exist
            Forbidden: requestor is not the task creator
            Conflict: user is already assigned
        """
        requestor_uuid = parse_uuid(requestor_id, "requestor ID")
        assignee_uuid = parse_uuid(assignee_id, "user ID")
        task = self.get_task(task_id)
        logger.debug(f"User {requestor_uuid} assigning task {task.uuid} to {assignee_uuid}")

        require_task_permission(task, requestor_uuid, TaskAction.assign)

        assignee = self.users.get_by_uuid(assignee_uuid)
        if task.has_user(assignee.id):
            logger.info(f"User {assignee_uuid} is already assigned to task {task.uuid}")
            raise Conflict("User is already assigned to this task")

        task = self.tasks.assign_user(task, assignee)
        logger.info(f"Task {task.uuid} assigned to user {assignee_uuid} by {requestor_uuid}")
        return task

    def complete_task(self, task_id: Identifier, requestor_id: Identifier) -> Task:
        """
        Mark a task completed. Allowed for the creator and any assignee, once.

        Raises:
            NotFound: task does not exist
            Forbidden: requestor is neither creator nor assignee
            Conflict: task already completed
        """
        requestor_uuid = parse_uuid(requestor_id, "requestor ID")
        task = self.get_task(task_id)
        logger.debug(f"User {requestor_uuid} completing task {task.uuid}")

        require_task_permission(task, requestor_uuid, TaskAction.complete)

        if task.completed:
            logger.info(f"Task {task.uuid} is already completed")
            raise Conflict("Task is already completed")

        self.tasks.mark_completed(task)
        logger.info(f"Task {task.uuid} completed by user {requestor_uuid}")
        return self.tasks.get_by_uuid(task.uuid)

    def delete_task(self, task_id: Identifier, requestor_id: Identifier) -> None:
        """
        Delete a task and its assignments. Creator only.

        Raises:
            NotFound: task does not exist
            Forbidden: requestor is not the creator
        """
        requestor_uuid = parse_uuid(requestor_id, "requestor ID")
        task = self.get_task(task_id)
        logger.debug(f"User {requestor_uuid} deleting task {task.uuid}")

        require_task_permission(task, requestor_uuid, TaskAction.delete)

        task_uuid = task.uuid
        self.tasks.delete(task)
        logger.info(f"Task {task_uuid} deleted by user {requestor_uuid}")
