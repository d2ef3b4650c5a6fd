"""
Update documents for array and field changes.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from ..core.document import DocContent, ID_FIELD
from ..core.exceptions import NoFieldsToUpdateError


def add_to_set(field: str, values: Iterable[Any]) -> Dict[str, Any]:
    """Add every value to the array field, skipping ones already present."""
    return {"$addToSet": {field: {"$each": list(values)}}}


def pull(field: str, values: Iterable[Any]) -> Dict[str, Any]:
    """Remove every occurrence of each value from the array field."""
    return {"$pull": {field: {"$in": list(values)}}}


class UpdateBuilder:
    """
    Accumulates $set fields.

    Example:
        >>> UpdateBuilder().set("name", "new").set("attributes.env", "prod").build()
        {'$set': {'name': 'new', 'attributes.env': 'prod'}}
    """

    def __init__(self):
        self._set: Dict[str, Any] = {}

    def set(self, field: str, value: Any) -> "UpdateBuilder":
        self._set[field] = value
        return self

    def set_many(self, fields: Optional[Dict[str, Any]]) -> "UpdateBuilder":
        for field, value in (fields or {}).items():
            self.set(field, value)
        return self

    def build(self) -> Dict[str, Any]:
        if not self._set:
            raise NoFieldsToUpdateError()
        return {"$set": dict(self._set)}

    def __len__(self) -> int:
        return len(self._set)


def update_from_content(content: DocContent) -> Dict[str, Any]:
    """$set of every stored field of content (the id never changes)."""
    fields = {k: v for k, v in content.to_dict().items() if k != ID_FIELD}
    return UpdateBuilder().set_many(fields).build()
