from uuid import UUID

from agora.core.errors import InvalidArgumentError


def as_uuid(value) -> UUID:
    """Normalise a path/session identifier to a UUID for column comparisons."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidArgumentError(f"Invalid identifier: {value}")
