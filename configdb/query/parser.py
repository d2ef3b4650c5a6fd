"""
Field-filter grammar for list requests.

A list request carries filter groups (``inner_filters``); every field in a
group maps to a raw string in this syntax:

    val1,val2|op1&op2,val3|op3

- The raw value splits on commas; ``\\,`` is a literal comma.
- A segment holding ``|`` closes a group: the group's values are the bare
  segments before it plus the text before its last ``|``, its operator
  chain is the text after that ``|`` split on ``&``.
- Bare segments left at the end form an equality group.
- Groups on one field are OR'ed, values inside a group are OR'ed, operators
  in one chain are AND'ed.

Operators:
    equal       equality (default)
    match       substring match
    regex       regular expression
    ignorecase  case-insensitive modifier for match/regex/equal
    exists      field is present
    missing     field is absent
    range       exactly two values of one type, inclusive on both ends
    greater     greater than or equal
    lower       lower than or equal

Example:
    >>> parser = FieldFilterParser()
    >>> parser.parse_field("name", "prod|match&ignorecase")
    {'name': {'$regex': 'prod', '$options': 'i'}}
    >>> parser.parse_field("data", "0,5|range")
    {'data': {'$gte': 0, '$lte': 5}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
import re

from pymongo import ASCENDING, DESCENDING

from ..core.exceptions import FormatError
from ..core.schema import SchemaInfo


VALUES_SEPARATOR = ","
OPERATOR_SEPARATOR = "|"
OPERATORS_CHAIN_SEPARATOR = "&"
ESCAPE = "\\"

NUMBER_PATTERN = re.compile(r'^-?\d+(\.\d+)?$')


class FilterOperator(str, Enum):
    """Field-filter operators."""
    EQUAL = "equal"
    MATCH = "match"
    REGEX = "regex"
    IGNORECASE = "ignorecase"
    EXISTS = "exists"
    MISSING = "missing"
    RANGE = "range"
    GREATER = "greater"
    LOWER = "lower"


# Operators producing one condition per value (values OR'ed)
VALUE_OPERATORS = {
    FilterOperator.EQUAL,
    FilterOperator.MATCH,
    FilterOperator.REGEX,
    FilterOperator.GREATER,
    FilterOperator.LOWER,
}


@dataclass
class FilterGroup:
    """Values sharing one operator chain."""
    values: List[str] = field(default_factory=list)
    operators: List[FilterOperator] = field(default_factory=list)
    ignore_case: bool = False


def and_clauses(clauses: List[Dict[str, Any]]) -> Dict[str, Any]:
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def or_clauses(clauses: List[Dict[str, Any]]) -> Dict[str, Any]:
    if len(clauses) == 1:
        return clauses[0]
    return {"$or": clauses}


def split_values(raw: str) -> List[str]:
    """Split on commas, honouring the ``\\,`` escape."""
    segments = []
    current = []
    i = 0
    while i < len(raw):
        ch = raw[i]
        if ch == ESCAPE and i + 1 < len(raw) and raw[i + 1] == VALUES_SEPARATOR:
            current.append(VALUES_SEPARATOR)
            i += 2
            continue
        if ch == VALUES_SEPARATOR:
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    segments.append("".join(current))
    return segments


def typed_value(value: str) -> Union[int, float, str]:
    """Numeric-looking strings become numbers; everything else stays a string."""
    if NUMBER_PATTERN.match(value):
        return float(value) if "." in value else int(value)
    return value


def value_kind(value: Any) -> str:
    return "number" if isinstance(value, (int, float)) else "string"


class FieldFilterParser:
    """
    Compiles list-request filter groups into a Mongo filter.

    Fields that live under an array path of the schema become element
    matches on that array; conditions on the same array inside one group
    share a single ``$elemMatch``.
    """

    def __init__(self, schema_info: Optional[SchemaInfo] = None):
        self.schema_info = schema_info or SchemaInfo()

    # ------------------------------------------------------------------
    # Tokenizing
    # ------------------------------------------------------------------

    def parse_groups(self, field: str, raw: str) -> List[FilterGroup]:
        """Split a raw field value into operator groups."""
        groups = []
        pending: List[str] = []

        for segment in split_values(raw):
            if OPERATOR_SEPARATOR in segment:
                value, _, chain = segment.rpartition(OPERATOR_SEPARATOR)
                pending.append(value)
                groups.append(self._make_group(field, pending, chain))
                pending = []
            else:
                pending.append(segment)

        if pending:
            groups.append(FilterGroup(values=pending, operators=[FilterOperator.EQUAL]))

        return groups

    def _make_group(self, field: str, values: List[str], chain: str) -> FilterGroup:
        group = FilterGroup(values=list(values))

        for token in chain.split(OPERATORS_CHAIN_SEPARATOR):
            token = token.strip().lower()
            if not token:
                continue
            try:
                operator = FilterOperator(token)
            except ValueError:
                raise FormatError(
                    f"unsupported operator '{token}' in filter on field '{field}'"
                )
            if operator == FilterOperator.IGNORECASE:
                group.ignore_case = True
            elif operator not in group.operators:
                group.operators.append(operator)

        if not group.operators:
            group.operators.append(FilterOperator.EQUAL)

        return group

    # ------------------------------------------------------------------
    # Conditions
    # ------------------------------------------------------------------

    def parse_field(self, field: str, raw: str) -> Dict[str, Any]:
        """Filter clause for one field (paths relative to the caller)."""
        if not field or field.startswith("$"):
            raise FormatError(f"invalid filter field name '{field}'")
        if not isinstance(raw, str):
            raise FormatError(
                f"filter value of field '{field}' must be a string, "
                f"got {type(raw).__name__}"
            )

        clauses = [self._group_clause(field, g) for g in self.parse_groups(field, raw)]
        return or_clauses(clauses)

    def _group_clause(self, field: str, group: FilterGroup) -> Dict[str, Any]:
        chain: List[Dict[str, Any]] = []
        value_ops = [op for op in group.operators if op in VALUE_OPERATORS]

        for op in group.operators:
            if op == FilterOperator.EXISTS:
                chain.append({field: {"$exists": True}})
            elif op == FilterOperator.MISSING:
                chain.append({field: {"$exists": False}})
            elif op == FilterOperator.RANGE:
                chain.append({field: self._range_condition(field, group.values)})

        if value_ops:
            per_value = [
                and_clauses([
                    {field: self._value_condition(field, op, value, group.ignore_case)}
                    for op in value_ops
                ])
                for value in group.values
            ]
            chain.append(or_clauses(per_value))

        return and_clauses(chain)

    def _value_condition(
        self,
        field: str,
        op: FilterOperator,
        value: str,
        ignore_case: bool,
    ) -> Any:
        if op == FilterOperator.EQUAL:
            if ignore_case:
                return self._regex(f"^{re.escape(value)}$", True)
            typed = typed_value(value)
            if isinstance(typed, str):
                return value
            return {"$in": [value, typed]}

        if op == FilterOperator.MATCH:
            return self._regex(re.escape(value), ignore_case)

        if op == FilterOperator.REGEX:
            try:
                re.compile(value)
            except re.error as e:
                raise FormatError(
                    f"invalid regex '{value}' in filter on field '{field}': {e}"
                )
            return self._regex(value, ignore_case)

        if op == FilterOperator.GREATER:
            return {"$gte": typed_value(value)}

        if op == FilterOperator.LOWER:
            return {"$lte": typed_value(value)}

        raise FormatError(f"unsupported operator '{op.value}' in filter on field '{field}'")

    @staticmethod
    def _regex(pattern: str, ignore_case: bool) -> Dict[str, Any]:
        condition: Dict[str, Any] = {"$regex": pattern}
        if ignore_case:
            condition["$options"] = "i"
        return condition

    def _range_condition(self, field: str, values: List[str]) -> Dict[str, Any]:
        if len(values) != 2:
            raise FormatError(
                f"range filter on field '{field}' requires exactly two values "
                f"separated by '{VALUES_SEPARATOR}', got {len(values)}: {values}"
            )
        low, high = typed_value(values[0]), typed_value(values[1])
        if value_kind(low) != value_kind(high):
            raise FormatError(
                f"range filter on field '{field}' mixes value types: "
                f"'{values[0]}' is a {value_kind(low)}, "
                f"'{values[1]}' is a {value_kind(high)}"
            )
        return {"$gte": low, "$lte": high}

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def parse_group(self, fields: Dict[str, str]) -> Dict[str, Any]:
        """AND of every field in one filter group."""
        clauses = []
        element_matches: Dict[str, List[Dict[str, Any]]] = {}

        for field, raw in fields.items():
            is_array, array_path, sub_path = self.schema_info.get_array_details(field)
            if is_array and sub_path:
                element_matches.setdefault(array_path, []).append(
                    self.parse_field(sub_path, raw)
                )
            else:
                clauses.append(self.parse_field(field, raw))

        for array_path, conditions in element_matches.items():
            clauses.append({array_path: {"$elemMatch": and_clauses(conditions)}})

        return and_clauses(clauses)

    def parse_inner_filters(
        self, inner_filters: Optional[List[Dict[str, str]]]
    ) -> Optional[Dict[str, Any]]:
        """OR of every non-empty filter group, or None when there are none."""
        groups = [self.parse_group(g) for g in inner_filters or [] if g]
        if not groups:
            return None
        return or_clauses(groups)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    @staticmethod
    def parse_order_by(order_by: Optional[str]) -> List[Tuple[str, int]]:
        """
        Parse ``field:asc|desc[,field2:asc|desc]``.

        A field without a direction sorts ascending.
        """
        if not order_by:
            return []

        result = []
        for part in order_by.split(VALUES_SEPARATOR):
            part = part.strip()
            if not part:
                continue
            field, _, direction = part.partition(":")
            field = field.strip()
            direction = direction.strip().lower()
            if not field:
                raise FormatError(f"missing field name in orderBy '{order_by}'")
            if direction in ("", "asc"):
                result.append((field, ASCENDING))
            elif direction == "desc":
                result.append((field, DESCENDING))
            else:
                raise FormatError(
                    f"invalid sort direction '{direction}' in orderBy '{order_by}' "
                    "(expected asc or desc)"
                )
        return result
