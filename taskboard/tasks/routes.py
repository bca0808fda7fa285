"""
Task API endpoints.

All endpoints require authentication. The caller's identity is the
requestor for every permission check; task and user ids in paths are
public UUIDs.
"""

import logging

from fastapi import APIRouter, Depends, status

from taskboard import schemas
from taskboard.auth.dependencies import get_current_user, get_task_service
from taskboard.models import User
from taskboard.services import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])


def _envelope(task) -> schemas.TaskEnvelope:
    return schemas.TaskEnvelope(task=schemas.Task.model_validate(task))


def _list_envelope(tasks) -> schemas.TasksEnvelope:
    return schemas.TasksEnvelope(tasks=[schemas.Task.model_validate(task) for task in tasks])


@router.get("", response_model=schemas.TasksEnvelope)
def list_tasks(
    current_user: User = Depends(get_current_user),
    task_service: TaskService = Depends(get_task_service),
):
    """List every task, newest first."""
    return _list_envelope(task_service.list_tasks())


@router.post("", response_model=schemas.TaskEnvelope, status_code=status.HTTP_201_CREATED)
def create_task(
    body: schemas.TaskCreate,
    current_user: User = Depends(get_current_user),
    task_service: TaskService = Depends(get_task_service),
):
    """
    Create a task owned by the caller.

    The first entry in `users` becomes the primary assignee; repeated
    entries are ignored.

    Raises:
        InvalidInput (400) for an empty title or malformed user id
        NotFound (404) if any listed user does not exist
    """
    task = task_service.create_task(
        body.title,
        body.description,
        [assignee.id for assignee in body.users],
        current_user.uuid,
    )
    return _envelope(task)


# Declared before /{task_id} so these paths are not parsed as task ids
@router.get("/created", response_model=schemas.TasksEnvelope)
def list_created_tasks(
    current_user: User = Depends(get_current_user),
    task_service: TaskService = Depends(get_task_service),
):
    return _list_envelope(task_service.list_tasks_created_by(current_user.uuid))


@router.get("/assigned", response_model=schemas.TasksEnvelope)
def list_assigned_tasks(
    current_user: User = Depends(get_current_user),
    task_service: TaskService = Depends(get_task_service),
):
    """Tasks whose assignment set includes the caller."""
    return _list_envelope(task_service.list_tasks_assigned_to(current_user.uuid))


@router.get("/{task_id}", response_model=schemas.TaskEnvelope)
def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    task_service: TaskService = Depends(get_task_service),
):
    return _envelope(task_service.get_task(task_id))


@router.delete("/{task_id}", response_model=schemas.MessageResponse)
def delete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    task_service: TaskService = Depends(get_task_service),
):
    """Delete a task. Only its creator may do this."""
    task_service.delete_task(task_id, current_user.uuid)
    return {"message": "Task deleted successfully"}


@router.put("/{task_id}/complete", response_model=schemas.TaskEnvelope)
def complete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    task_service: TaskService = Depends(get_task_service),
):
    """
    Mark a task completed.

    Raises:
        Forbidden (403) unless the caller is the creator or an assignee
        Conflict (409) if the task is already completed
    """
    return _envelope(task_service.complete_task(task_id, current_user.uuid))


@router.put("/{task_id}/assign/{user_id}", response_model=schemas.TaskEnvelope)
def assign_task(
    task_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    task_service: TaskService = Depends(get_task_service),
):
    """
    Add a user to the task and make them the primary assignee.

    Raises:
        Forbidden (403) unless the caller created the task
        Conflict (409) if the user is already assigned
    """
    return _envelope(task_service.assign_task(task_id, user_id, current_user.uuid))
