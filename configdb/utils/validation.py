"""
Input validation utilities.
"""

from typing import Iterable, List
import re

from ..core.exceptions import ValidationError


# Collection names: alphanumeric, underscores, hyphens, dots; no "$", no "system." prefix
COLLECTION_PATTERN = re.compile(r'^[a-zA-Z0-9_\-\.]+$')

# Field paths: dot separated segments, no leading "$"
FIELD_PATH_PATTERN = re.compile(r'^[^$.\s][^\s]*$')

MAX_ID_LENGTH = 256
MAX_COLLECTION_LENGTH = 120


def validate_id(id: str, allow_empty: bool = False) -> str:
    """
    Validate a document GUID or name.

    Args:
        id: The ID to validate
        allow_empty: Whether to allow empty IDs

    Returns:
        The validated ID

    Raises:
        ValidationError: If ID is invalid
    """
    if not isinstance(id, str):
        raise ValidationError(f"ID must be a string, got {type(id).__name__}")

    if not id:
        if allow_empty:
            return id
        raise ValidationError("ID cannot be empty")

    if len(id) > MAX_ID_LENGTH:
        raise ValidationError(
            f"ID too long: {len(id)} characters (max {MAX_ID_LENGTH})"
        )

    return id


def validate_ids(ids: Iterable[str]) -> List[str]:
    """Validate a collection of IDs, preserving order."""
    return [validate_id(i) for i in ids]


def validate_collection_name(name: str) -> str:
    """
    Validate a collection name.

    Raises:
        ValidationError: If the name is empty, too long, or not a plain name
    """
    if not isinstance(name, str):
        raise ValidationError(
            f"Collection name must be a string, got {type(name).__name__}"
        )

    if len(name) > MAX_COLLECTION_LENGTH:
        raise ValidationError(
            f"Collection name too long: {len(name)} characters "
            f"(max {MAX_COLLECTION_LENGTH})"
        )

    if not COLLECTION_PATTERN.match(name) or name.startswith("system."):
        raise ValidationError(
            f"Invalid collection name '{name}': must contain only alphanumeric "
            "characters, underscores, hyphens, or dots"
        )

    return name


def validate_field_path(path: str) -> str:
    """
    Validate a dotted document field path.

    Raises:
        ValidationError: If the path is empty, starts with "$" or ".", or has spaces
    """
    if not isinstance(path, str) or not FIELD_PATH_PATTERN.match(path):
        raise ValidationError(f"Invalid field path '{path}'")
    return path
