"""
Error taxonomy for photo management.

None of these are fatal: the service reports them to the caller and
records them in the audit log.
"""
from enum import Enum
from typing import Optional


class PhotoManagerError(Exception):
    """Base class for all photo management failures."""
    pass


class QuotaExceededError(PhotoManagerError):
    """Upload size or photo count is over the user's subscription limit."""

    SIZE = "size"
    COUNT = "count"

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


class ProcessingFailureError(PhotoManagerError):
    """A processing pipeline stage failed; nothing was stored."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class StorageFailureError(PhotoManagerError):
    """A storage backend call failed or timed out."""

    def __init__(self, message: str, operation: str):
        super().__init__(message)
        self.operation = operation


class RegistrationError(PhotoManagerError):
    """User registration was rejected (duplicate username, missing password)."""
    pass


class MutationStatus(str, Enum):
    """Outcome of an update/delete request against a photo."""
    APPLIED = "applied"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"

    @property
    def applied(self) -> bool:
        return self is MutationStatus.APPLIED
