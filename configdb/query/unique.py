"""
Distinct values (with counts) of one or more fields.

The pipeline matches, unwinds every array path the requested fields live
under, re-matches the unwound elements, groups on the (possibly composite)
key and finally collapses the groups into a single document:

    {"values": [...], "count": [{"key": ..., "count": n}, ...]}
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..core.schema import SchemaInfo
from .models import FieldCount, UniqueValuesResult
from .nodes import (
    FilterList,
    FilterMap,
    FilterNode,
    from_node,
    is_operator,
    prefix_field_keys,
    to_node,
)


LOGICAL_OPERATORS = ("$and", "$or", "$nor")
ELEM_MATCH = "$elemMatch"

# Conditions on the shape of the whole array; they have no per-element meaning
ARRAY_SHAPE_OPERATORS = ("$size", "$all")


def clean_field_name(field: str) -> str:
    """Composite-key member name: dots are not allowed in keys."""
    return field.replace(".", "_")


def enclosing_array_paths(field: str, schema_info: SchemaInfo) -> List[str]:
    """Array paths a field lives under, outermost first."""
    return sorted(
        (p for p in schema_info.array_paths if field == p or field.startswith(p + ".")),
        key=len,
    )


def _hoist_elem_match(array_path: str, body: FilterNode) -> List[Tuple[str, FilterNode]]:
    """
    Turn an element match body into top-level clauses on the unwound array.

    Field keys get the array path as prefix. Value operators that applied to
    the element itself ({"$elemMatch": {"$gt": 1}}) now apply to the array
    path directly.
    """
    if not isinstance(body, FilterMap):
        return [(array_path, body)]

    value_ops = tuple(
        (k, v) for k, v in body.items if is_operator(k) and k not in LOGICAL_OPERATORS
    )
    rest = FilterMap(tuple(
        (k, v) for k, v in body.items if not (is_operator(k) and k not in LOGICAL_OPERATORS)
    ))

    items: List[Tuple[str, FilterNode]] = []
    if value_ops:
        items.append((array_path, FilterMap(value_ops)))
    items.extend(prefix_field_keys(rest, array_path).items)
    return items


def _rewrite(node: FilterMap, array_path: str) -> FilterMap:
    items: List[Tuple[str, FilterNode]] = []
    for key, value in node.items:
        if key == array_path and isinstance(value, FilterMap):
            body = value.get(ELEM_MATCH)
            if body is not None:
                items.extend(_hoist_elem_match(array_path, body))
            # array-shape conditions already held before the unwind
            element_ops = tuple(
                (k, v) for k, v in value.items
                if k != ELEM_MATCH and k not in ARRAY_SHAPE_OPERATORS
            )
            if element_ops:
                items.append((key, FilterMap(element_ops)))
        elif key in LOGICAL_OPERATORS and isinstance(value, FilterList):
            items.append((key, FilterList(tuple(
                _rewrite(v, array_path) if isinstance(v, FilterMap) else v
                for v in value.items
            ))))
        else:
            items.append((key, value))
    return FilterMap(tuple(items))


def _to_filter(node: FilterMap) -> Dict[str, Any]:
    """Plain filter document; repeated keys are AND'ed instead of overwritten."""
    result: Dict[str, Any] = {}
    extra: List[Dict[str, Any]] = []
    for key, value in node.items:
        plain = from_node(value)
        if key == "$and":
            extra.extend(plain)
        elif key in result:
            extra.append({key: plain})
        else:
            result[key] = plain
    if extra:
        result["$and"] = extra
    return result


def match_filters_for_unwind(array_path: str, match: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rewrite a match filter so it applies to documents whose array_path has
    been unwound: element matches on that array become plain clauses on
    the element's fields, also inside $and/$or/$nor.

    Example:
        >>> match_filters_for_unwind(
        ...     "resources", {"resources": {"$elemMatch": {"kind": "Pod"}}})
        {'resources.kind': 'Pod'}
    """
    return _to_filter(_rewrite(to_node(match), array_path))


def unique_values_pipeline(
    fields: List[str],
    match: Dict[str, Any],
    skip: int,
    limit: int,
    schema_info: Optional[SchemaInfo] = None,
) -> List[Dict[str, Any]]:
    """
    Build the distinct-values pipeline for one or more fields.

    Several fields are grouped on a composite key built with $addFields.
    """
    schema_info = schema_info or SchemaInfo()
    pipeline: List[Dict[str, Any]] = [{"$match": match}]

    current = match
    unwound = set()
    for name in fields:
        for array_path in enclosing_array_paths(name, schema_info):
            if array_path in unwound:
                continue
            unwound.add(array_path)
            current = match_filters_for_unwind(array_path, current)
            pipeline.append({"$unwind": f"${array_path}"})
            pipeline.append({"$match": current})

    if len(fields) == 1:
        group_id: Any = f"${fields[0]}"
    else:
        pipeline.append({"$addFields": {clean_field_name(f): f"${f}" for f in fields}})
        group_id = {clean_field_name(f): f"${clean_field_name(f)}" for f in fields}

    pipeline.append({"$group": {"_id": group_id, "count": {"$sum": 1}}})
    pipeline.append({"$sort": {"_id": 1}})
    if skip > 0:
        pipeline.append({"$skip": skip})
    pipeline.append({"$limit": limit})
    pipeline.append({
        "$group": {
            "_id": None,
            "values": {"$push": "$_id"},
            "count": {"$push": {"key": "$_id", "count": "$count"}},
        }
    })
    pipeline.append({"$project": {"_id": 0, "values": 1, "count": 1}})
    return pipeline


def stringify_value(value: Any) -> str:
    """Render a grouped key as a string (JSON for composite keys)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return json.dumps(value, sort_keys=True, default=str)


def to_unique_values_result(docs: List[Dict[str, Any]]) -> UniqueValuesResult:
    """Decode the collapsed document of a distinct-values pipeline."""
    result = UniqueValuesResult()
    if not docs:
        return result

    doc = docs[0]
    result.values = [stringify_value(v) for v in doc.get("values") or []]
    result.count = [
        FieldCount(key=stringify_value(c.get("key")), count=int(c.get("count", 0)))
        for c in doc.get("count") or []
    ]
    return result
