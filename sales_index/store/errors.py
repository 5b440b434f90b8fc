"""
Typed store errors.

Backends translate driver exceptions into one of three classes at the store
boundary; callers decide whether to retry from the class alone, never from
message text.
"""

from enum import Enum


class ErrorClass(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    INVALID_ARGUMENT = "invalid_argument"


class StoreError(Exception):
    """Base class for document store failures."""

    error_class: ErrorClass = ErrorClass.PERMANENT

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(f"[{operation}] {message}" if operation else message)

    @property
    def retryable(self) -> bool:
        return self.error_class is ErrorClass.TRANSIENT


class TransientStoreError(StoreError):
    """Quota, contention, timeout or temporary unavailability."""

    error_class = ErrorClass.TRANSIENT


class PermanentStoreError(StoreError):
    """Permission problems and other failures a retry will not fix."""

    error_class = ErrorClass.PERMANENT


class InvalidArgumentError(StoreError):
    """The request itself is malformed (bad path, bad filter, oversized batch)."""

    error_class = ErrorClass.INVALID_ARGUMENT
