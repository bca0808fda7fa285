"""
Task-level permission checking utilities.

This module decides whether a user may perform an operation on a task based
on their relation to it: the creator has full authority, users in the
assignment set may complete it, everyone else is refused.

All checks take the task as freshly loaded by the caller, with its creator
and assignment set resolved.
"""

import enum
import logging
import uuid

from taskboard.errors import Forbidden
from taskboard.models import Task

logger = logging.getLogger(__name__)


class TaskAction(str, enum.Enum):
    assign = "assign"
    complete = "complete"
    delete = "delete"


class TaskRelation(str, enum.Enum):
    none = "none"
    assignee = "assignee"
    creator = "creator"


# Relation hierarchy: creator > assignee > none
RELATION_HIERARCHY = {TaskRelation.none: 0, TaskRelation.assignee: 1, TaskRelation.creator: 2}

# Minimum relation required for each action
REQUIRED_RELATION = {
    TaskAction.assign: TaskRelation.creator,
    TaskAction.complete: TaskRelation.assignee,
    TaskAction.delete: TaskRelation.creator,
}

DENIAL_MESSAGES = {
    TaskAction.assign: "Only the task creator can assign users",
    TaskAction.complete: "You are not authorized to complete this task",
    TaskAction.delete: "Only the task creator can delete the task",
}


def get_task_relation(task: Task, user_uuid: uuid.UUID) -> TaskRelation:
    """
    Work out how a user relates to a task.

    Args:
        task: Task with created_by and users loaded
        user_uuid: External identifier of the user

    Returns:
        TaskRelation.creator, TaskRelation.assignee or TaskRelation.none
    """
    if task.created_by is not None and task.created_by.uuid == user_uuid:
        return TaskRelation.creator
    if any(user.uuid == user_uuid for user in task.users):
        return TaskRelation.assignee
    return TaskRelation.none


def check_task_permission(task: Task, user_uuid: uuid.UUID, action: TaskAction) -> bool:
    """
    Check if a user may perform an action on a task.

    Example:
        >>> if not check_task_permission(task, user.uuid, TaskAction.complete):
        ...     raise Forbidden("You are not authorized to complete this task")
    """
    relation = get_task_relation(task, user_uuid)
    required = REQUIRED_RELATION[action]
    has_permission = RELATION_HIERARCHY[relation] >= RELATION_HIERARCHY[required]

    if has_permission:
        logger.debug(
            f"User {user_uuid} is '{relation.value}' of task {task.uuid}, "
            f"permission granted for '{action.value}'"
        )
    else:
        logger.info(
            f"User {user_uuid} is '{relation.value}' of task {task.uuid}, "
            f"but '{required.value}' is required for '{action.value}'"
        )
    return has_permission


def require_task_permission(task: Task, user_uuid: uuid.UUID, action: TaskAction) -> None:
    """
    Require a user to be allowed an action on a task, or raise.

    Raises:
        Forbidden: if the user's relation to the task is insufficient
    """
    if not check_task_permission(task, user_uuid, action):
        raise Forbidden(DENIAL_MESSAGES[action])
