"""
Domain error taxonomy.

Services and repositories raise these; the HTTP layer maps each one to a
status code and a stable machine-readable kind.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class TaskboardError(Exception):
    """Base class for every error surfaced to API callers."""

    kind = "error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class InvalidInput(TaskboardError):
    """A required field is missing or malformed."""

    kind = "invalid_input"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(TaskboardError):
    """An entity identifier does not resolve."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(TaskboardError):
    """Uniqueness or state violation: duplicate email, duplicate assignment, already completed."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class Forbidden(TaskboardError):
    """Authenticated, but not allowed to perform this operation."""

    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class Unauthorized(TaskboardError):
    """Missing or invalid credentials."""

    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


async def taskboard_error_handler(request: Request, exc: TaskboardError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)
