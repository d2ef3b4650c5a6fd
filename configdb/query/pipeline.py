"""
Compiles list requests into a paginated aggregation pipeline.

Every compiled pipeline has the same shape:

    [{"$match": ...},
     {"$facet": {"metadata": [{"$count": "total"}],
                 "results": [sort, skip, limit, project]}}]

so one round trip returns both the page and the total match count.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from config.settings import DEFAULT_MAX_AGGREGATION_LIMIT
from ..core.exceptions import UnsupportedFeatureError
from ..core.schema import SchemaInfo
from ..utils.logging import get_logger
from .filters import FilterBuilder
from .models import AggResult, ListRequest, Metadata
from .options import FindOptions
from .parser import FieldFilterParser


logger = get_logger(__name__)

MAX_AGGREGATION_LIMIT = DEFAULT_MAX_AGGREGATION_LIMIT


def resolve_limit(limit: Optional[int], max_limit: int = MAX_AGGREGATION_LIMIT) -> int:
    """Page size to use: max_limit when unset, zero or too large."""
    if not limit or limit <= 0 or limit > max_limit:
        return max_limit
    return limit


def page_skip(page_num: Optional[int], limit: int) -> int:
    """Documents to skip for a 1-based page number."""
    if not page_num or page_num < 1:
        return 0
    return (page_num - 1) * limit


def next_skip(skip: int, returned: int, total: int) -> int:
    """Skip for the following page, or 0 when this page is the last one."""
    following = skip + returned
    return following if following < total else 0


@dataclass
class CompiledQuery:
    """A compiled pipeline and the paging it was compiled with."""
    pipeline: List[Dict[str, Any]] = field(default_factory=list)
    match: Dict[str, Any] = field(default_factory=dict)
    skip: int = 0
    limit: int = 0


class PipelineCompiler:
    """
    Turns a ListRequest into a $match + $facet pipeline.

    Args:
        schema_info: Array paths of the document type (for element matches)
        max_limit: Upper bound (and default) for the page size
    """

    def __init__(
        self,
        schema_info: Optional[SchemaInfo] = None,
        max_limit: int = MAX_AGGREGATION_LIMIT,
    ):
        self.schema_info = schema_info or SchemaInfo()
        self.max_limit = max_limit
        self.parser = FieldFilterParser(self.schema_info)

    def match_filter(
        self,
        inner_filters: Optional[List[Dict[str, str]]],
        base_filter: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Base (scope) filter AND'ed with the request's filter groups."""
        builder = FilterBuilder().with_raw(base_filter)
        builder.with_raw(self.parser.parse_inner_filters(inner_filters))
        return builder.build()

    def compile(
        self,
        request: ListRequest,
        base_filter: Optional[Dict[str, Any]] = None,
        skip: int = 0,
    ) -> CompiledQuery:
        """
        Compile a list request.

        Args:
            request: The list request
            base_filter: Filter AND'ed with the request's filter groups
            skip: Documents to skip when the request carries no page number

        Returns:
            The compiled pipeline with its effective skip and limit
        """
        if request.until is not None:
            raise UnsupportedFeatureError("until is not supported in list requests")

        match = self.match_filter(request.inner_filters, base_filter)
        limit = resolve_limit(request.page_size, self.max_limit)
        if request.page_num:
            skip = page_skip(request.page_num, limit)

        options = FindOptions(skip=skip, limit=limit)
        for name, direction in self.parser.parse_order_by(request.order_by):
            options.sort().add(name, direction)
        if request.fields_list:
            options.projection().include(*request.fields_list)

        pipeline = [
            {"$match": match},
            {
                "$facet": {
                    "metadata": [{"$count": "total"}],
                    "results": options.results_stages() or [{"$match": {}}],
                }
            },
        ]
        logger.debug(f"Compiled list pipeline: skip={skip}, limit={limit}")
        return CompiledQuery(pipeline=pipeline, match=match, skip=skip, limit=limit)


def build_agg_result(
    docs: List[Dict[str, Any]],
    skip: int,
    limit: int,
    decode: Optional[Callable[[Dict[str, Any]], Any]] = None,
) -> AggResult:
    """
    Unwrap the single {metadata: [...], results: [...]} document of a
    $facet pipeline.

    An empty cursor gives zero metadata and no results.
    """
    result: AggResult = AggResult()
    if not docs:
        return result

    facet = docs[0]
    metadata = facet.get("metadata") or []
    if metadata:
        result.metadata = Metadata(total=int(metadata[0].get("total", 0)))

    raw_results = facet.get("results") or []
    result.results = [decode(r) for r in raw_results] if decode else list(raw_results)
    result.metadata.limit = limit
    result.metadata.next_skip = next_skip(skip, len(result.results), result.metadata.total)
    return result
