"""
Static schema information for a collection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class SchemaInfo:
    """
    Which document paths hold arrays.

    Used to decide when a filter must become an element match and when a
    unique-values pipeline has to unwind.

    Example:
        >>> schema = SchemaInfo(array_paths=["resources", "resources.labels"])
        >>> schema.get_array_details("resources.kind")
        (True, 'resources', 'kind')
    """

    array_paths: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept lists from callers but keep the value hashable
        object.__setattr__(self, "array_paths", tuple(self.array_paths))

    def get_array_details(self, path: str) -> Tuple[bool, str, str]:
        """
        Find the nearest array enclosing path.

        Returns:
            (is_array, array_path, sub_path); sub_path is empty when path is
            the array itself.
        """
        best = ""
        for array_path in self.array_paths:
            if path == array_path or path.startswith(array_path + "."):
                if len(array_path) > len(best):
                    best = array_path
        if not best:
            return False, "", ""
        sub_path = path[len(best) + 1:] if path != best else ""
        return True, best, sub_path

    def is_array(self, path: str) -> bool:
        return self.get_array_details(path)[0]

    @classmethod
    def from_dict(cls, data: dict) -> "SchemaInfo":
        return cls(array_paths=tuple(data.get("arrayPaths", []) or []))

    def to_dict(self) -> dict:
        return {"arrayPaths": list(self.array_paths)}
