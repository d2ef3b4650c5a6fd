"""
Filter values as a closed tagged variant.

Mongo filter values are arbitrarily nested documents and arrays. Rewrites
over them convert the raw value to a FilterNode once and walk it with a
single recursive function instead of inspecting types at every step.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple, Union


OPERATOR_SIGIL = "$"


@dataclass(frozen=True)
class FilterLeaf:
    """A scalar (or otherwise opaque) value."""
    value: Any


@dataclass(frozen=True)
class FilterMap:
    """An ordered key -> node mapping (a sub-document)."""
    items: Tuple[Tuple[str, "FilterNode"], ...]

    def get(self, key: str):
        for k, v in self.items:
            if k == key:
                return v
        return None


@dataclass(frozen=True)
class FilterList:
    """A sequence of nodes (an array)."""
    items: Tuple["FilterNode", ...]


FilterNode = Union[FilterLeaf, FilterMap, FilterList]


def is_operator(key: str) -> bool:
    return key.startswith(OPERATOR_SIGIL)


def to_node(value: Any) -> FilterNode:
    """Convert a raw filter value into a node tree."""
    if isinstance(value, dict):
        return FilterMap(tuple((k, to_node(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return FilterList(tuple(to_node(v) for v in value))
    return FilterLeaf(value)


def from_node(node: FilterNode) -> Any:
    """Convert a node tree back into plain dicts and lists."""
    if isinstance(node, FilterMap):
        return {k: from_node(v) for k, v in node.items}
    if isinstance(node, FilterList):
        return [from_node(v) for v in node.items]
    return node.value


def prefix_field_keys(node: FilterNode, prefix: str) -> FilterNode:
    """
    Prefix every field key in a condition body with prefix + ".".

    Operator keys ("$or", "$and", ...) stay as they are, but the field
    references nested under them are prefixed too. The value of a field
    key is a condition on that field and is left untouched.

    Example:
        >>> body = to_node({"$or": [{"kind": "Pod"}, {"kind": "Job"}], "ns": "x"})
        >>> from_node(prefix_field_keys(body, "resources"))
        {'$or': [{'resources.kind': 'Pod'}, {'resources.kind': 'Job'}], 'resources.ns': 'x'}
    """
    if isinstance(node, FilterMap):
        items = []
        for key, value in node.items:
            if is_operator(key):
                items.append((key, prefix_field_keys(value, prefix)))
            else:
                items.append((f"{prefix}.{key}", value))
        return FilterMap(tuple(items))
    if isinstance(node, FilterList):
        return FilterList(tuple(prefix_field_keys(v, prefix) for v in node.items))
    return node
