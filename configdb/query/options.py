"""
Find/aggregation options: filter, sort, projection and paging for one query.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from .filters import FilterBuilder


class SortBuilder:
    """Ordered field -> direction list."""

    def __init__(self):
        self._fields: List[Tuple[str, int]] = []

    def add(self, field: str, direction: int = ASCENDING) -> "SortBuilder":
        """Add (or move to the end) a sort key."""
        if direction not in (ASCENDING, DESCENDING):
            raise ValueError(f"Invalid sort direction: {direction}")
        self._fields = [(f, d) for f, d in self._fields if f != field]
        self._fields.append((field, direction))
        return self

    def asc(self, field: str) -> "SortBuilder":
        return self.add(field, ASCENDING)

    def desc(self, field: str) -> "SortBuilder":
        return self.add(field, DESCENDING)

    def build(self) -> Dict[str, int]:
        """Sort document for a $sort stage."""
        return dict(self._fields)

    def items(self) -> List[Tuple[str, int]]:
        """Sort keys for Collection.find()."""
        return list(self._fields)

    def __len__(self) -> int:
        return len(self._fields)


class ProjectionBuilder:
    """Field inclusion (or exclusion) set."""

    def __init__(self):
        self._fields: Dict[str, int] = {}

    def include(self, *fields: str) -> "ProjectionBuilder":
        for field in fields:
            self._fields[field] = 1
        return self

    def exclude(self, *fields: str) -> "ProjectionBuilder":
        for field in fields:
            self._fields[field] = 0
        return self

    def build(self) -> Optional[Dict[str, int]]:
        """Projection document, or None when every field is wanted."""
        if not self._fields:
            return None
        return dict(self._fields)

    def __len__(self) -> int:
        return len(self._fields)


class FindOptions:
    """
    Filter, sort, projection, skip and limit for one query.

    A missing options value and a fresh FindOptions() mean the same thing:
    match everything, no sort, no projection, no paging.

    Example:
        >>> opts = FindOptions()
        >>> opts.filter().with_name("default")
        >>> opts.sort().desc("creationTime")
        >>> opts.set_limit(10)
    """

    def __init__(
        self,
        filter: Optional[FilterBuilder] = None,
        skip: int = 0,
        limit: int = 0,
    ):
        self._filter = filter if filter is not None else FilterBuilder()
        self._sort = SortBuilder()
        self._projection = ProjectionBuilder()
        self.skip = skip
        self.limit = limit

    @staticmethod
    def ensure(options: Optional["FindOptions"]) -> "FindOptions":
        """Return options, or a fresh instance if None."""
        return options if options is not None else FindOptions()

    def filter(self) -> FilterBuilder:
        return self._filter

    def sort(self) -> SortBuilder:
        return self._sort

    def projection(self) -> ProjectionBuilder:
        return self._projection

    def set_skip(self, skip: int) -> "FindOptions":
        if skip < 0:
            raise ValueError(f"skip must be >= 0, got {skip}")
        self.skip = skip
        return self

    def set_limit(self, limit: int) -> "FindOptions":
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        self.limit = limit
        return self

    def find_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for Collection.find()."""
        kwargs: Dict[str, Any] = {"filter": self._filter.build()}
        projection = self._projection.build()
        if projection is not None:
            kwargs["projection"] = projection
        if len(self._sort):
            kwargs["sort"] = self._sort.items()
        if self.skip:
            kwargs["skip"] = self.skip
        if self.limit:
            kwargs["limit"] = self.limit
        return kwargs

    def results_stages(self) -> List[Dict[str, Any]]:
        """Sort -> skip -> limit -> project stages, in that order."""
        stages: List[Dict[str, Any]] = []
        if len(self._sort):
            stages.append({"$sort": self._sort.build()})
        if self.skip > 0:
            stages.append({"$skip": self.skip})
        if self.limit > 0:
            stages.append({"$limit": self.limit})
        projection = self._projection.build()
        if projection is not None:
            stages.append({"$project": projection})
        return stages

    def __repr__(self) -> str:
        return (
            f"FindOptions(filter={self._filter.build()!r}, "
            f"sort={self._sort.build()!r}, "
            f"projection={self._projection.build()!r}, "
            f"skip={self.skip}, limit={self.limit})"
        )
