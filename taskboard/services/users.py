"""
User registration, authentication and profile management.
"""

import logging
import uuid
from typing import List, Optional, Tuple, Union

from fastapi import BackgroundTasks

from taskboard.auth.security import create_access_token, hash_password, verify_password
from taskboard.config import Settings
from taskboard.errors import Conflict, InvalidInput, NotFound, Unauthorized
from taskboard.identifiers import parse_uuid
from taskboard.models import User
from taskboard.notifications import EmailNotifier, send_registration_email
from taskboard.repositories import UserRepository

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserService:
    def __init__(self, users: UserRepository, settings: Settings, notifier: Optional[EmailNotifier] = None):
        self.users = users
        self.settings = settings
        self.notifier = notifier

    def create_user(
        self,
        name: str,
        email: str,
        password: str,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> User:
        """
        Register a new user.

        The email pre-check only gives a friendlier early answer; two racing
        registrations for the same email are settled by the unique index.

        Raises:
            InvalidInput: name, email or password missing
            Conflict: email already registered
        """
        name = (name or "").strip()
        email = normalize_email(email)
        if not name or not email or not password:
            raise InvalidInput("Name, email, and password are required")

        logger.info(f"Registration attempt for email: {email}")
        if self.users.email_exists(email):
            logger.info(f"Registration failed: email already exists: {email}")
            raise Conflict("Email already registered")

        user = User(uuid=uuid.uuid4(), name=name, email=email, password_hash=hash_password(password))
        user = self.users.create(user)
        logger.info(f"User registered successfully: {user.email} (ID: {user.uuid})")

        self._notify_registration(user, background_tasks)
        return user

    def _notify_registration(self, user: User, background_tasks: Optional[BackgroundTasks]) -> None:
        if self.notifier is None:
            return
        if background_tasks is not None:
            background_tasks.add_task(send_registration_email, self.notifier, user.email, user.name)
        else:
            send_registration_email(self.notifier, user.email, user.name)

    def authenticate_user(self, email: str, password: str) -> Tuple[User, str]:
        """
        Check credentials and mint an access token.

        Raises:
            Unauthorized: unknown email, deactivated account or wrong password
        """
        email = normalize_email(email)
        logger.info(f"Login attempt for email: {email}")

        try:
            user = self.users.get_by_email(email)
        except NotFound:
            logger.info(f"Login failed: user not found: {email}")
            raise Unauthorized("Invalid email or password")

        if not verify_password(password or "", user.password_hash):
            logger.info(f"Login failed: invalid password: {email}")
            raise Unauthorized("Invalid email or password")

        token = create_access_token({"sub": str(user.uuid)}, self.settings)
        logger.info(f"User logged in successfully: {user.email} (ID: {user.uuid})")
        return user, token

    def get_user(self, user_id: Union[str, uuid.UUID]) -> User:
        return self.users.get_by_uuid(parse_uuid(user_id, "user ID"))

    def list_users(self) -> List[User]:
        return self.users.get_all()

    def update_user(
        self,
        user_id: Union[str, uuid.UUID],
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """
        Update a user's name and/or email.

        Raises:
            NotFound: user does not exist
            InvalidInput: a provided value is empty
            Conflict: email is taken by another user
        """
        user = self.get_user(user_id)
        logger.debug(f"Updating user {user.uuid}")

        if name is not None:
            name = name.strip()
            if not name:
                raise InvalidInput("Name cannot be empty")

        if email is not None:
            email = normalize_email(email)
            if not email:
                raise InvalidInput("Email cannot be empty")
            if email != user.email and self.users.email_exists(email, exclude_id=user.id):
                raise Conflict("Email already registered by another user")

        # Validate everything before touching the loaded entity
        if name is not None:
            user.name = name
        if email is not None:
            user.email = email

        user = self.users.update(user)
        logger.info(f"User updated: {user.email} (ID: {user.uuid})")
        return user

    def deactivate_user(self, user_id: Union[str, uuid.UUID]) -> User:
        """Soft-delete a user; their email becomes available again."""
        user = self.get_user(user_id)
        user = self.users.soft_delete(user)
        logger.info(f"User deactivated: {user.email} (ID: {user.uuid})")
        return user
