"""
Error taxonomy of the Availability Engine.

Every error carries the offending ResourceRef (when there is one) so callers
can report precisely which provider, room or location failed.
"""

from enum import Enum
from typing import List, Optional

from models import ResourceRef, BusyInterval


class ErrorKind(str, Enum):
    INVALID_REQUEST = "InvalidRequest"
    INVALID_DURATION = "InvalidDuration"
    RESOURCE_NOT_FOUND = "ResourceNotFound"
    RESOURCE_UNAUTHORIZED = "ResourceUnauthorized"
    LOADER_TIMEOUT = "LoaderTimeout"
    LOADER_UNAVAILABLE = "LoaderUnavailable"
    CANCELLED = "Cancelled"
    SLOT_CONFLICT = "SlotConflict"


class SchedulingError(Exception):
    """Base class for all engine errors."""
    kind: ErrorKind = ErrorKind.INVALID_REQUEST

    def __init__(self, message: str, resource: Optional[ResourceRef] = None):
        super().__init__(message)
        self.message = message
        self.resource = resource

    @property
    def is_recoverable(self) -> bool:
        """Loader hiccups may be retried by the caller; the engine itself never retries."""
        return self.kind in (ErrorKind.LOADER_TIMEOUT, ErrorKind.LOADER_UNAVAILABLE)

    def __str__(self) -> str:
        if self.resource is not None:
            return f"[{self.kind.value}] {self.message} ({self.resource.key})"
        return f"[{self.kind.value}] {self.message}"


class InvalidRequestError(SchedulingError):
    kind = ErrorKind.INVALID_REQUEST


class InvalidDurationError(InvalidRequestError):
    kind = ErrorKind.INVALID_DURATION


class ResourceNotFoundError(SchedulingError):
    kind = ErrorKind.RESOURCE_NOT_FOUND


class ResourceUnauthorizedError(SchedulingError):
    kind = ErrorKind.RESOURCE_UNAUTHORIZED


class LoaderTimeoutError(SchedulingError):
    kind = ErrorKind.LOADER_TIMEOUT


class LoaderUnavailableError(SchedulingError):
    kind = ErrorKind.LOADER_UNAVAILABLE


class CancelledError(SchedulingError):
    kind = ErrorKind.CANCELLED


class SlotConflictError(SchedulingError):
    """
    Raised on the booking commit path when a slot computed earlier has been
    taken in the meantime (optimistic concurrency).
    """
    kind = ErrorKind.SLOT_CONFLICT

    def __init__(
        self,
        message: str,
        resource: Optional[ResourceRef] = None,
        conflicts: Optional[List[BusyInterval]] = None
    ):
        super().__init__(message, resource)
        self.conflicts = conflicts or []
