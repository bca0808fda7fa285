"""
Test configuration and fixtures for taskboard tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client built by the app factory around that database
- Services wired to a test session for workflow-level tests
- Authentication helpers (JWT token generation)
- Common fixtures for users and tasks
"""

import logging
from datetime import timedelta
from typing import Callable, Dict, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from taskboard import models
from taskboard.auth.security import create_access_token, hash_password
from taskboard.config import Settings
from taskboard.database import Database
from taskboard.main import create_app
from taskboard.repositories import TaskRepository, UserRepository
from taskboard.services import TaskService, UserService

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# SQLite in-memory database for fast testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_PASSWORD = "secret123"


@pytest.fixture(scope="function")
def settings() -> Settings:
    """Settings with a fixed signing key and no SMTP."""
    return Settings(
        database_url=SQLALCHEMY_TEST_DATABASE_URL,
        jwt_secret_key="test-secret-key-not-for-production",
        environment="test",
        log_level="WARNING",
        create_tables=False,
    )


@pytest.fixture(scope="function")
def database(settings: Settings) -> Generator[Database, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.

    This ensures test isolation and fast execution.
    """
    logger.debug("Creating test database")
    database = Database(settings.database_url)
    database.create_all()
    try:
        yield database
    finally:
        database.drop_all()
        logger.debug("Test database cleaned up")


@pytest.fixture(scope="function")
def test_db(database: Database) -> Generator[Session, None, None]:
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(settings: Settings, database: Database) -> TestClient:
    """
    Create FastAPI test client around the test database.

    The lifespan is not entered, so the shared in-memory connection is not
    disposed before the database fixture tears down.
    """
    app = create_app(settings=settings, database=database)
    return TestClient(app)


@pytest.fixture(scope="function")
def user_service(test_db: Session, settings: Settings) -> UserService:
    return UserService(UserRepository(test_db), settings)


@pytest.fixture(scope="function")
def task_service(test_db: Session) -> TaskService:
    return TaskService(TaskRepository(test_db), UserRepository(test_db))


def _create_user(db: Session, name: str, email: str) -> models.User:
    logger.debug(f"Creating user {email}")
    user = models.User(name=name, email=email, password_hash=hash_password(TEST_PASSWORD))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {email} with ID: {user.uuid}")
    return user


@pytest.fixture(scope="function")
def alice(test_db: Session) -> models.User:
    return _create_user(test_db, "Alice", "alice@example.com")


@pytest.fixture(scope="function")
def bob(test_db: Session) -> models.User:
    return _create_user(test_db, "Bob", "bob@example.com")


@pytest.fixture(scope="function")
def carol(test_db: Session) -> models.User:
    """A user with no relation to the tasks under test."""
    return _create_user(test_db, "Carol", "carol@example.com")


@pytest.fixture(scope="function")
def create_auth_token(settings: Settings) -> Callable[..., str]:
    """
    Helper to create JWT access tokens.

    Usage:
        token = create_auth_token(user)
        token = create_auth_token(user, expires_delta=timedelta(seconds=-1))
    """
    def _create(user: models.User, expires_delta: Optional[timedelta] = None) -> str:
        logger.debug(f"Creating auth token for user {user.uuid}")
        return create_access_token({"sub": str(user.uuid)}, settings, expires_delta)

    return _create


@pytest.fixture(scope="function")
def auth_headers_for(create_auth_token: Callable[..., str]) -> Callable[[models.User], Dict[str, str]]:
    def _headers(user: models.User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_auth_token(user)}"}

    return _headers


@pytest.fixture(scope="function")
def alice_headers(alice: models.User, auth_headers_for) -> Dict[str, str]:
    return auth_headers_for(alice)


@pytest.fixture(scope="function")
def bob_headers(bob: models.User, auth_headers_for) -> Dict[str, str]:
    return auth_headers_for(bob)


@pytest.fixture(scope="function")
def carol_headers(carol: models.User, auth_headers_for) -> Dict[str, str]:
    return auth_headers_for(carol)


@pytest.fixture(scope="function")
def alice_task(task_service: TaskService, alice: models.User) -> models.Task:
    """An open task created by alice with nobody assigned."""
    return task_service.create_task("Write report", "Quarterly numbers", [], alice.uuid)
