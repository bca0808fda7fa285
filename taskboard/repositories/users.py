"""
User persistence.

Only users without a deleted_at timestamp are visible to lookups; the
partial unique index on email is the final arbiter of email uniqueness.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskboard.errors import Conflict, NotFound
from taskboard.models import User
from taskboard.time_utils import utc_now

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def _active(self):
        return self.db.query(User).filter(User.deleted_at.is_(None))

    def create(self, user: User) -> User:
        """Insert a user, translating a unique-index violation into Conflict."""
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info(f"User insert rejected by unique constraint: {user.email}")
            raise Conflict("Email already registered") from e
        self.db.refresh(user)
        return user

    def find_by_uuid(self, user_uuid: uuid.UUID) -> Optional[User]:
        return self._active().filter(User.uuid == user_uuid).first()

    def get_by_uuid(self, user_uuid: uuid.UUID) -> User:
        user = self.find_by_uuid(user_uuid)
        if user is None:
            raise NotFound("User not found")
        return user

    def get_by_email(self, email: str) -> User:
        user = self._active().filter(User.email == email).first()
        if user is None:
            raise NotFound("User not found")
        return user

    def get_all(self) -> List[User]:
        return self._active().order_by(User.created_at, User.id).all()

    def email_exists(self, email: str, exclude_id: Optional[int] = None) -> bool:
        query = self._active().filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return self.db.query(query.exists()).scalar()

    def update(self, user: User) -> User:
        """Persist name/email/password changes on an already loaded user."""
        user.updated_at = utc_now()
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info(f"User update rejected by unique constraint: user {user.uuid}")
            raise Conflict("Email already registered by another user") from e
        self.db.refresh(user)
        return user

    def soft_delete(self, user: User) -> User:
        user.deleted_at = utc_now()
        self.db.commit()
        self.db.refresh(user)
        return user
