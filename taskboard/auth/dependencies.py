"""
FastAPI dependencies for authentication and service wiring.

This module provides dependency functions that can be used in route handlers to:
- Read the application settings and notifier from app state
- Build per-request services over the request's database session
- Extract and validate the current user from a JWT bearer token or cookie
"""

import logging
from typing import Optional

from fastapi import Cookie, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from taskboard.auth.security import verify_token
from taskboard.config import Settings
from taskboard.database import get_db
from taskboard.errors import InvalidInput, Unauthorized
from taskboard.identifiers import parse_uuid
from taskboard.models import User
from taskboard.repositories import TaskRepository, UserRepository
from taskboard.services import TaskService, UserService

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme for JWT authentication
security = HTTPBearer(auto_error=False)

AUTH_COOKIE_NAME = "Authorization"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_service(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> UserService:
    notifier = getattr(request.app.state, "notifier", None)
    return UserService(UserRepository(db), settings, notifier)


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    return TaskService(TaskRepository(db), UserRepository(db))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    authorization_cookie: Optional[str] = Cookie(None, alias=AUTH_COOKIE_NAME),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Extract and validate the current user.

    The Authorization bearer header is tried first, then the Authorization
    cookie set at login.

    Raises:
        Unauthorized: no token, invalid or expired token, or unknown user

    Example:
        @router.get("/profile")
        def profile(user: User = Depends(get_current_user)):
            return {"user_id": str(user.uuid)}
    """
    token = None
    if credentials and credentials.credentials:
        logger.debug("Found token in Authorization header")
        token = credentials.credentials
    elif authorization_cookie:
        logger.debug("Found token in cookie")
        token = authorization_cookie.removeprefix("Bearer ").strip()

    if not token:
        logger.info("No authentication credentials provided")
        raise Unauthorized("Authentication required")

    payload = verify_token(token, settings)
    if payload is None:
        raise Unauthorized("Invalid or expired token")

    if payload.get("type") != "access":
        logger.info(f"Invalid token type: {payload.get('type')}")
        raise Unauthorized("Invalid token type")

    subject = payload.get("sub")
    try:
        user_uuid = parse_uuid(subject, "token subject")
    except InvalidInput:
        logger.info(f"Invalid user id format in token: {subject}")
        raise Unauthorized("Invalid token format")

    user = UserRepository(db).find_by_uuid(user_uuid)
    if user is None:
        logger.info(f"User not found or deactivated for id: {user_uuid}")
        raise Unauthorized("User not found")

    logger.debug(f"User authenticated via JWT: {user.email}")
    return user
