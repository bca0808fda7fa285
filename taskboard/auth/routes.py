"""
Authentication and user API endpoints.

This module provides REST API endpoints for:
- User registration (with a fire-and-forget welcome email)
- Login, which returns a bearer token and sets it as an httpOnly cookie
- Reading, updating and deactivating the caller's profile
- Listing users
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status

from taskboard import schemas
from taskboard.auth.dependencies import (
    AUTH_COOKIE_NAME,
    get_current_user,
    get_settings,
    get_user_service,
)
from taskboard.config import Settings
from taskboard.models import User
from taskboard.services import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["auth"])


@router.post("/register", response_model=schemas.UserEnvelope, status_code=status.HTTP_201_CREATED)
def register(
    request: schemas.RegisterRequest,
    background_tasks: BackgroundTasks,
    user_service: UserService = Depends(get_user_service),
):
    """
    Register a new user account.

    Raises:
        Conflict (409) if the email is already registered
    """
    user = user_service.create_user(
        request.name, request.email, request.password, background_tasks=background_tasks
    )
    return schemas.UserEnvelope(user=schemas.User.model_validate(user))


@router.post("/login", response_model=schemas.LoginResponse)
def login(
    request: schemas.LoginRequest,
    response: Response,
    user_service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """
    Login with email and password.

    Returns the user and an access token; the token is also set as an
    httpOnly cookie so browser clients need not store it.

    Raises:
        Unauthorized (401) if credentials are invalid
    """
    user, token = user_service.authenticate_user(request.email, request.password)

    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=settings.access_token_expire_minutes * 60,
    )
    return schemas.LoginResponse(user=schemas.User.model_validate(user), token=token)


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(response: Response, settings: Settings = Depends(get_settings)):
    """Clear the auth cookie. Bearer tokens stay valid until they expire."""
    response.delete_cookie(
        key=AUTH_COOKIE_NAME,
        path="/",
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )
    return {"message": "Logged out"}


@router.get("/profile", response_model=schemas.UserEnvelope)
def get_profile(current_user: User = Depends(get_current_user)):
    return schemas.UserEnvelope(user=schemas.User.model_validate(current_user))


@router.put("/profile", response_model=schemas.UserEnvelope)
def update_profile(
    update: schemas.UserUpdate,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """Update the caller's name and/or email (email must stay unique)."""
    user = user_service.update_user(current_user.uuid, name=update.name, email=update.email)
    return schemas.UserEnvelope(user=schemas.User.model_validate(user))


@router.delete("/profile", response_model=schemas.MessageResponse)
def deactivate_profile(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """Soft-delete the caller's account."""
    user_service.deactivate_user(current_user.uuid)
    return {"message": "Account deactivated"}


@router.get("/users", response_model=schemas.UsersEnvelope)
def list_users(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """List active users, e.g. to pick assignees."""
    logger.debug(f"User {current_user.uuid} listing users")
    users = user_service.list_users()
    return schemas.UsersEnvelope(users=[schemas.User.model_validate(user) for user in users])
