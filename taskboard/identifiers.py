import uuid
from typing import Union

from taskboard.errors import InvalidInput


def parse_uuid(value: Union[str, uuid.UUID], label: str = "ID") -> uuid.UUID:
    """Coerce an external identifier to a UUID, raising InvalidInput if malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        raise InvalidInput(f"Invalid {label}: {value}")
