from taskboard.services.tasks import TaskService
from taskboard.services.users import UserService

__all__ = ["TaskService", "UserService"]
