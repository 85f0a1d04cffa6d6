"""Domain errors raised by the service layer.

Routers translate these into HTTP responses:

- ``ValidationError`` -> 400
- ``NotFoundError`` -> 404 (also used when the caller may not see the entry)
- ``ConflictError`` -> 409
- ``StorageError`` -> 500
"""
import functools
import logging
from typing import Optional

from pymongo.errors import PyMongoError


log = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for time tracking service errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Input is missing, malformed, or breaks a time entry invariant."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_detail(self) -> dict:
        detail = {"message": self.message}
        if self.field:
            detail["field"] = self.field
        return detail


class NotFoundError(ServiceError):
    """Record does not exist or is outside the caller's scope."""


class ConflictError(ServiceError):
    """Operation conflicts with current state, e.g. a timer is already running."""


class StorageError(ServiceError):
    """The database is unreachable or returned something unexpected."""


def storage_errors(operation: str):
    """
    Decorator converting driver failures of an async service method into StorageError.

    The original exception is logged with the operation name; the message
    carried by StorageError never includes query details.

    Args:
        operation: Name used in logs, e.g. "time_entries.create"
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except PyMongoError as e:
                log.exception("Storage failure during %s", operation)
                raise StorageError(f"Storage unavailable during {operation}") from e

        return wrapper

    return decorator
