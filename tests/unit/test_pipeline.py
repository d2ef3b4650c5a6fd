"""
Unit tests for the list-request pipeline compiler.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from configdb.core.exceptions import FormatError, UnsupportedFeatureError
from configdb.core.schema import SchemaInfo
from configdb.query.models import ListRequest, UniqueValuesRequest
from configdb.query.pipeline import (
    MAX_AGGREGATION_LIMIT,
    PipelineCompiler,
    build_agg_result,
    next_skip,
    page_skip,
    resolve_limit,
)


BASE = {"customers": "tenant-1", "deleted": {"$ne": True}}


def facet_results(compiled):
    return compiled.pipeline[1]["$facet"]["results"]


class TestPaging:
    """Limit, skip and next-skip arithmetic."""

    def test_resolve_limit(self):
        assert MAX_AGGREGATION_LIMIT == 10000
        assert resolve_limit(None) == 10000
        assert resolve_limit(0) == 10000
        assert resolve_limit(50) == 50
        assert resolve_limit(20000) == 10000
        assert resolve_limit(500, max_limit=100) == 100

    def test_page_skip(self):
        assert page_skip(None, 20) == 0
        assert page_skip(1, 20) == 0
        assert page_skip(3, 20) == 40

    def test_next_skip(self):
        assert next_skip(0, 10, 25) == 10
        assert next_skip(20, 5, 25) == 0
        assert next_skip(0, 0, 0) == 0


class TestCompile:
    """Pipeline shape."""

    @pytest.fixture
    def compiler(self):
        return PipelineCompiler(SchemaInfo(array_paths=["resources"]))

    def test_default_request(self, compiler):
        compiled = compiler.compile(ListRequest(), BASE)

        assert compiled.pipeline[0] == {"$match": BASE}
        assert compiled.pipeline[1]["$facet"]["metadata"] == [{"$count": "total"}]
        assert facet_results(compiled) == [{"$limit": 10000}]
        assert compiled.skip == 0
        assert compiled.limit == 10000

    def test_paging(self, compiler):
        compiled = compiler.compile(ListRequest(pageSize=20, pageNum=3), BASE)

        assert compiled.skip == 40
        assert compiled.limit == 20
        assert facet_results(compiled) == [{"$skip": 40}, {"$limit": 20}]

    def test_caller_skip_without_page_num(self, compiler):
        compiled = compiler.compile(ListRequest(pageSize=20), BASE, skip=7)
        assert facet_results(compiled) == [{"$skip": 7}, {"$limit": 20}]

    def test_page_size_capped(self, compiler):
        compiled = compiler.compile(ListRequest(pageSize=50000), BASE)
        assert compiled.limit == 10000

    def test_stage_order(self, compiler):
        """Test sort -> skip -> limit -> project."""
        request = ListRequest(
            orderBy="name:desc",
            pageSize=10,
            pageNum=2,
            fieldsList=["name", "guid"],
        )
        compiled = compiler.compile(request, BASE)

        assert facet_results(compiled) == [
            {"$sort": {"name": -1}},
            {"$skip": 10},
            {"$limit": 10},
            {"$project": {"name": 1, "guid": 1}},
        ]

    def test_filters_anded_with_scope(self, compiler):
        request = ListRequest(innerFilters=[{"name": "a"}])
        compiled = compiler.compile(request, BASE)

        assert compiled.match == {**BASE, "name": "a"}

    def test_filter_groups_ored(self, compiler):
        request = ListRequest(innerFilters=[{"name": "a"}, {"name": "b"}])
        compiled = compiler.compile(request, BASE)

        assert compiled.match == {**BASE, "$or": [{"name": "a"}, {"name": "b"}]}

    def test_scope_never_overridden(self, compiler):
        """Test that a request filter on a scope field is AND'ed, not merged over it."""
        request = ListRequest(innerFilters=[{"customers": "tenant-2"}])
        compiled = compiler.compile(request, BASE)

        assert compiled.match["customers"] == "tenant-1"
        assert compiled.match["$and"] == [{"customers": "tenant-2"}]

    def test_until_unsupported(self, compiler):
        with pytest.raises(UnsupportedFeatureError):
            compiler.compile(ListRequest(until="2024-01-01"), BASE)

    def test_bad_order_by(self, compiler):
        with pytest.raises(FormatError):
            compiler.compile(ListRequest(orderBy="name:sideways"), BASE)

    def test_compile_is_pure(self, compiler):
        request = ListRequest(innerFilters=[{"resources.kind": "Pod"}], pageSize=5)
        assert compiler.compile(request, BASE).pipeline == compiler.compile(request, BASE).pipeline


class TestRequestModels:
    """Request validation."""

    def test_aliases(self):
        request = ListRequest(
            innerFilters=[{"name": "a"}], orderBy="name", pageSize=5, pageNum=2
        )
        assert request.inner_filters == [{"name": "a"}]
        assert request.page_size == 5

    def test_snake_case_names(self):
        request = ListRequest(page_size=5, order_by="name")
        assert request.page_size == 5

    def test_invalid_page_size(self):
        with pytest.raises(PydanticValidationError):
            ListRequest(pageSize=0)

    def test_unique_values_needs_fields(self):
        with pytest.raises(PydanticValidationError):
            UniqueValuesRequest(fields=[])

        with pytest.raises(PydanticValidationError):
            UniqueValuesRequest(fields=["$name"])


class TestBuildAggResult:
    """Unwrapping of $facet results."""

    def test_empty_cursor(self):
        result = build_agg_result([], skip=0, limit=10)

        assert result.metadata.total == 0
        assert result.metadata.limit == 0
        assert result.results == []

    def test_no_matches(self):
        result = build_agg_result([{"metadata": [], "results": []}], skip=0, limit=10)

        assert result.metadata.total == 0
        assert result.metadata.limit == 10
        assert result.metadata.next_skip == 0

    def test_first_page(self):
        docs = [{"metadata": [{"total": 25}], "results": [{"n": i} for i in range(10)]}]
        result = build_agg_result(docs, skip=0, limit=10)

        assert result.metadata.total == 25
        assert result.metadata.next_skip == 10
        assert len(result) == 10

    def test_last_page(self):
        docs = [{"metadata": [{"total": 25}], "results": [{"n": i} for i in range(5)]}]
        result = build_agg_result(docs, skip=20, limit=10)

        assert result.metadata.next_skip == 0

    def test_decode(self):
        docs = [{"metadata": [{"total": 1}], "results": [{"n": 1}]}]
        result = build_agg_result(docs, skip=0, limit=10, decode=lambda d: d["n"])

        assert result.results == [1]
        assert result.to_dict() == {
            "metadata": {"total": 1, "limit": 10, "nextSkip": 0},
            "results": [1],
        }
