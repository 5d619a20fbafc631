"""
Service-level error taxonomy and database error mapping.

Services raise these exceptions; routes translate them into HTTPException
with the `{"error": ..., "details": ...}` body used across the API.
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, NoResultFound
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for expected, caller-visible failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "internal_error"

    def __init__(self, details: str, **extra):
        super().__init__(details)
        self.details = details
        self.extra = extra

    def to_http_exception(self) -> HTTPException:
        detail = {"error": self.error, "details": self.details}
        detail.update(self.extra)
        return HTTPException(status_code=self.status_code, detail=detail)


class InvalidInput(ServiceError):
    """Missing/malformed fields or a business rule violated by the input."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_request"


class NotFound(ServiceError):
    """Referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class Conflict(ServiceError):
    """Uniqueness violation."""

    status_code = status.HTTP_409_CONFLICT
    error = "conflict"


class InvalidState(ServiceError):
    """Status-machine precondition failed."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_state"


_UNIQUE_MARKERS = ("unique", "duplicate")
_FOREIGN_KEY_MARKERS = ("foreign key", "foreign_key", "violates foreign")


def map_database_error(exc: Exception, entity: str = "Record") -> ServiceError:
    """
    Translate a database exception into a ServiceError.

    Args:
        exc: Exception raised by SQLAlchemy
        entity: Human-readable entity name used in the message

    Returns:
        The matching ServiceError

    Raises:
        The original exception when it is not a recognized constraint violation.
    """
    if isinstance(exc, (NoResultFound, StaleDataError)):
        return NotFound(f"{entity} not found")

    if isinstance(exc, IntegrityError):
        message = str(exc.orig).lower()
        if any(marker in message for marker in _UNIQUE_MARKERS):
            return Conflict(f"{entity} already exists")
        if any(marker in message for marker in _FOREIGN_KEY_MARKERS):
            return InvalidInput(f"{entity} references a record that does not exist")
        return InvalidInput(f"{entity} violates a database constraint")

    raise exc
