"""
Request and response models for list, unique-value and aggregation queries.

Requests are pydantic models so the route layer can bind JSON bodies
directly; field names accept both snake_case and the camelCase wire names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


T = TypeVar("T")


# =============================================================================
# REQUESTS
# =============================================================================

class ListRequest(BaseModel):
    """
    Generic list/search request.

    inner_filters is a list of filter groups: groups are OR'ed, the fields
    inside one group are AND'ed. Each field value uses the
    ``val1,val2|op1&op2,val3|op3`` syntax parsed by FieldFilterParser.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "orderBy": "name:asc",
                    "pageSize": 50,
                    "innerFilters": [
                        {"name": "prod-cluster|match", "attributes.env": "prod"}
                    ],
                }
            ]
        },
    )

    inner_filters: List[Dict[str, str]] = Field(default_factory=list, alias="innerFilters")
    order_by: Optional[str] = Field(default=None, alias="orderBy")
    page_size: Optional[int] = Field(default=None, ge=1, alias="pageSize")
    page_num: Optional[int] = Field(default=None, ge=1, alias="pageNum")
    fields_list: List[str] = Field(default_factory=list, alias="fieldsList")
    until: Optional[Any] = None


class UniqueValuesRequest(BaseModel):
    """Distinct values (with counts) for one or more fields."""
    model_config = ConfigDict(populate_by_name=True)

    fields: List[str] = Field(..., min_length=1)
    inner_filters: List[Dict[str, str]] = Field(default_factory=list, alias="innerFilters")
    page_size: Optional[int] = Field(default=None, ge=1, alias="pageSize")
    page_num: Optional[int] = Field(default=None, ge=1, alias="pageNum")

    @field_validator("fields")
    @classmethod
    def validate_fields(cls, v: List[str]) -> List[str]:
        for name in v:
            if not name or name.startswith("$"):
                raise ValueError(f"Invalid field name: '{name}'")
        return v


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class Metadata:
    """Paging metadata of an aggregation result."""
    total: int = 0
    limit: int = 0
    next_skip: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "limit": self.limit, "nextSkip": self.next_skip}


@dataclass
class AggResult(Generic[T]):
    """Paginated result envelope: {metadata: {...}, results: [...]}."""
    metadata: Metadata = field(default_factory=Metadata)
    results: List[T] = field(default_factory=list)

    def __iter__(self):
        return iter(self.results)

    def __len__(self):
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "results": [_encode(r) for r in self.results],
        }


@dataclass
class SearchResult(Generic[T]):
    """Result of a paginated find: total match count plus the page."""
    total: int = 0
    results: List[T] = field(default_factory=list)

    def __iter__(self):
        return iter(self.results)

    def __len__(self):
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "results": [_encode(r) for r in self.results]}


@dataclass
class FieldCount:
    key: str
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "count": self.count}


@dataclass
class UniqueValuesResult:
    """Distinct values of one (possibly composite) key, ascending."""
    values: List[str] = field(default_factory=list)
    count: List[FieldCount] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "values": list(self.values),
            "count": [c.to_dict() for c in self.count],
        }


@dataclass
class UniqueValuesResponse:
    """Per-field distinct values and counts."""
    fields: Dict[str, List[str]] = field(default_factory=dict)
    fields_count: Dict[str, List[FieldCount]] = field(default_factory=dict)

    def add(self, field_name: str, result: UniqueValuesResult) -> None:
        self.fields[field_name] = list(result.values)
        self.fields_count[field_name] = list(result.count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fields": {k: list(v) for k, v in self.fields.items()},
            "fieldsCount": {
                k: [c.to_dict() for c in v] for k, v in self.fields_count.items()
            },
        }


def _encode(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    return to_dict() if callable(to_dict) else value
