"""
Composable Mongo filters for a single logical document set.

Every clause added to a FilterBuilder is AND'ed with the others. The
builder is mutable; build() hands out a fresh copy so the compiled filter
can't be changed behind the builder's back.

Example:
    >>> filter = (
    ...     FilterBuilder()
    ...     .with_not_deleted_for_customer("tenant-1")
    ...     .with_name("default")
    ...     .build()
    ... )
    >>> filter
    {'customers': 'tenant-1', 'deleted': {'$ne': True}, 'name': 'default'}
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Optional

from ..core.document import (
    CUSTOMERS_FIELD,
    DELETED_FIELD,
    GLOBAL_CUSTOMER,
    ID_FIELD,
    NAME_FIELD,
)


AND_KEY = "$and"


class FilterBuilder:
    """
    Fluent builder for tenant-scoped document filters.

    Setting the same key twice keeps the most recent value. Merging another
    builder never drops a clause: a clause whose key is already set to a
    different value is kept under "$and".
    """

    def __init__(self):
        self._clauses: Dict[str, Any] = {}
        self._extra: List[Dict[str, Any]] = []

    def _set(self, key: str, value: Any) -> "FilterBuilder":
        self._clauses[key] = value
        return self

    # ------------------------------------------------------------------
    # Scope clauses
    # ------------------------------------------------------------------

    def with_not_deleted(self) -> "FilterBuilder":
        """Exclude soft-deleted documents."""
        return self._set(DELETED_FIELD, {"$ne": True})

    def with_not_deleted_for_customer(self, customer_guid: str) -> "FilterBuilder":
        """Documents owned by the tenant that are not soft-deleted."""
        self._set(CUSTOMERS_FIELD, customer_guid)
        return self.with_not_deleted()

    def with_not_deleted_for_customer_and_global(
        self, customer_guid: str
    ) -> "FilterBuilder":
        """Documents owned by the tenant or global, not soft-deleted."""
        self._set(CUSTOMERS_FIELD, {"$in": [customer_guid, GLOBAL_CUSTOMER]})
        return self.with_not_deleted()

    def with_customers(self, customer_guids: Iterable[str]) -> "FilterBuilder":
        """Documents owned by any of the tenants."""
        return self._set(CUSTOMERS_FIELD, {"$in": list(customer_guids)})

    # ------------------------------------------------------------------
    # Identity clauses
    # ------------------------------------------------------------------

    def with_id(self, id: str) -> "FilterBuilder":
        return self._set(ID_FIELD, id)

    def with_ids(self, ids: Iterable[str]) -> "FilterBuilder":
        return self._set(ID_FIELD, {"$in": list(ids)})

    def with_name(self, name: str) -> "FilterBuilder":
        return self._set(NAME_FIELD, name)

    # ------------------------------------------------------------------
    # Generic clauses
    # ------------------------------------------------------------------

    def with_value(self, field: str, value: Any) -> "FilterBuilder":
        """Field equals value (or matches a raw condition such as {"$gt": 1})."""
        return self._set(field, copy.deepcopy(value))

    def with_in(self, field: str, values: Iterable[Any]) -> "FilterBuilder":
        return self._set(field, {"$in": list(values)})

    def with_elem_match(self, field: str, condition: Dict[str, Any]) -> "FilterBuilder":
        """At least one element of the array field matches condition."""
        return self._set(field, {"$elemMatch": copy.deepcopy(condition)})

    def with_filter(
        self, other: Optional["FilterBuilder"]
    ) -> "FilterBuilder":
        """Merge the clauses of another builder into this one."""
        if other is None:
            return self
        return self.with_raw(other.build())

    def with_raw(self, raw: Optional[Dict[str, Any]]) -> "FilterBuilder":
        """Merge a raw Mongo filter document."""
        if not raw:
            return self
        for key, value in raw.items():
            if key == AND_KEY:
                self._extra.extend(copy.deepcopy(value))
            elif key in self._clauses and self._clauses[key] != value:
                self._extra.append({key: copy.deepcopy(value)})
            else:
                self._clauses[key] = copy.deepcopy(value)
        return self

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def build(self) -> Dict[str, Any]:
        """Compiled filter; a new copy on each call."""
        result = copy.deepcopy(self._clauses)
        if self._extra:
            result[AND_KEY] = copy.deepcopy(self._extra)
        return result

    def __len__(self) -> int:
        return len(self._clauses) + len(self._extra)

    def __bool__(self) -> bool:
        return len(self) > 0

    def __repr__(self) -> str:
        return f"FilterBuilder({self.build()!r})"
