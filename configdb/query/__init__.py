"""
Query building and compilation for configdb.

This module provides:
- Tenant-scoped filter and find-option builders
- The field-filter grammar and list-request pipeline compiler
- Distinct-value pipelines over array fields
- Predefined aggregation templates

Example:
    >>> from configdb.query import FindOptions, PipelineCompiler, ListRequest
    >>>
    >>> opts = FindOptions()
    >>> opts.filter().with_not_deleted_for_customer("tenant-1").with_name("default")
    >>>
    >>> compiled = PipelineCompiler().compile(
    ...     ListRequest(innerFilters=[{"name": "prod|match"}], pageSize=20)
    ... )
"""

from .filters import FilterBuilder

from .options import (
    FindOptions,
    SortBuilder,
    ProjectionBuilder,
)

from .models import (
    ListRequest,
    UniqueValuesRequest,
    Metadata,
    AggResult,
    SearchResult,
    FieldCount,
    UniqueValuesResult,
    UniqueValuesResponse,
)

from .parser import (
    FieldFilterParser,
    FilterGroup,
    FilterOperator,
)

from .pipeline import (
    PipelineCompiler,
    CompiledQuery,
    MAX_AGGREGATION_LIMIT,
    build_agg_result,
    resolve_limit,
)

from .unique import (
    unique_values_pipeline,
    match_filters_for_unwind,
    to_unique_values_result,
)

from .aggregation import (
    TemplateRegistry,
    QueryTemplate,
    AggregationRunner,
    CUSTOMERS_WITH_SCANS_BETWEEN_DATES,
)

from .updates import (
    UpdateBuilder,
    add_to_set,
    pull,
    update_from_content,
)

__all__ = [
    # Filters and options
    "FilterBuilder",
    "FindOptions",
    "SortBuilder",
    "ProjectionBuilder",
    # Models
    "ListRequest",
    "UniqueValuesRequest",
    "Metadata",
    "AggResult",
    "SearchResult",
    "FieldCount",
    "UniqueValuesResult",
    "UniqueValuesResponse",
    # Compiler
    "FieldFilterParser",
    "FilterGroup",
    "FilterOperator",
    "PipelineCompiler",
    "CompiledQuery",
    "MAX_AGGREGATION_LIMIT",
    "build_agg_result",
    "resolve_limit",
    # Unique values
    "unique_values_pipeline",
    "match_filters_for_unwind",
    "to_unique_values_result",
    # Templates
    "TemplateRegistry",
    "QueryTemplate",
    "AggregationRunner",
    "CUSTOMERS_WITH_SCANS_BETWEEN_DATES",
    # Updates
    "UpdateBuilder",
    "add_to_set",
    "pull",
    "update_from_content",
]
