from taskboard.repositories.tasks import TaskRepository
from taskboard.repositories.users import UserRepository

__all__ = ["TaskRepository", "UserRepository"]
