from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from taskboard.models import TITLE_MAX_LENGTH


# User schemas
class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID = Field(validation_alias="uuid")
    name: str
    email: str


class User(UserSummary):
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None


class UserEnvelope(BaseModel):
    user: User


class UsersEnvelope(BaseModel):
    users: List[User] = Field(default_factory=list)


class LoginResponse(BaseModel):
    user: User
    token: str
    token_type: str = "bearer"


# Task schemas
class UserAssign(BaseModel):
    # Kept as a string so malformed ids are reported by the workflow alongside missing ones
    id: str


class TaskCreate(BaseModel):
    title: str = Field(..., max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = ""
    users: List[UserAssign] = Field(default_factory=list)


class Task(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID = Field(validation_alias="uuid")
    title: str
    description: str = ""
    completed: bool = False
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
    created_by: UserSummary
    assigned_to: Optional[UserSummary] = None
    users: List[UserSummary] = Field(default_factory=list)


class TaskEnvelope(BaseModel):
    task: Task


class TasksEnvelope(BaseModel):
    tasks: List[Task] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: str
