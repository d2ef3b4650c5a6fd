"""
Custom exceptions for configdb.
"""

from typing import Dict, Optional

from pymongo import errors as mongo_errors


class ConfigDBError(Exception):
    """Base exception for configdb."""
    pass


class ConfigurationError(ConfigDBError):
    """Request scope is missing the collection or the customer GUID."""
    pass


class ValidationError(ConfigDBError):
    """Input validation error."""
    pass


class FormatError(ValidationError):
    """Malformed filter, operator or ordering syntax."""
    pass


class UnsupportedFeatureError(FormatError):
    """Request uses a feature that is not supported."""
    pass


class TemplateError(ConfigDBError):
    """Predefined query template is missing or malformed."""
    pass


class TemplateNotFoundError(TemplateError):
    """No template registered under the requested name."""
    pass


class NoFieldsToUpdateError(ConfigDBError):
    """Update command has no fields to update."""

    def __init__(self, message: str = "no fields to update"):
        super().__init__(message)


class StoreError(ConfigDBError):
    """Error raised by the document store driver."""
    pass


class DuplicateKeyError(StoreError):
    """Insert or update collided with an existing unique key."""
    pass


class StoreTimeoutError(StoreError):
    """Store call exceeded the request deadline."""
    pass


class TenantDeletionError(StoreError):
    """
    One or more collections failed during a tenant-wide deletion.

    Attributes:
        errors: Failed collection name -> exception raised for it
        deleted_count: Documents deleted across all collections anyway
    """

    def __init__(self, errors: Dict[str, BaseException], deleted_count: int = 0):
        self.errors = dict(errors)
        self.deleted_count = deleted_count
        lines = [
            f"collection '{name}': {self.errors[name]}"
            for name in sorted(self.errors)
        ]
        super().__init__(
            f"{len(lines)} error(s) occurred while deleting tenant documents:\n  "
            + "\n  ".join(lines)
        )


def wrap_store_error(exc: mongo_errors.PyMongoError, message: str) -> StoreError:
    """Translate a driver error into the matching StoreError subclass."""
    if isinstance(exc, mongo_errors.DuplicateKeyError):
        return DuplicateKeyError(f"{message}: {exc}")
    if getattr(exc, "timeout", False):
        return StoreTimeoutError(f"{message}: {exc}")
    return StoreError(f"{message}: {exc}")


def is_duplicate_key_error(exc: Optional[BaseException]) -> bool:
    """True if exc (or the driver error it wraps) is a duplicate key error."""
    while exc is not None:
        if isinstance(exc, (DuplicateKeyError, mongo_errors.DuplicateKeyError)):
            return True
        exc = exc.__cause__
    return False


def is_no_fields_to_update_error(exc: Optional[BaseException]) -> bool:
    """True if exc signals an empty update."""
    return isinstance(exc, NoFieldsToUpdateError)
