"""
Unit tests for filter nodes and the distinct-values pipeline.
"""

from configdb.core.schema import SchemaInfo
from configdb.query.nodes import (
    FilterLeaf,
    FilterList,
    FilterMap,
    from_node,
    prefix_field_keys,
    to_node,
)
from configdb.query.unique import (
    match_filters_for_unwind,
    stringify_value,
    to_unique_values_result,
    unique_values_pipeline,
)


COLLAPSE = {
    "$group": {
        "_id": None,
        "values": {"$push": "$_id"},
        "count": {"$push": {"key": "$_id", "count": "$count"}},
    }
}
PROJECT = {"$project": {"_id": 0, "values": 1, "count": 1}}


class TestFilterNodes:
    """Tagged-variant conversion and key prefixing."""

    def test_to_node(self):
        node = to_node({"a": [1, {"b": 2}]})

        assert isinstance(node, FilterMap)
        assert isinstance(node.get("a"), FilterList)
        assert node.get("a").items[0] == FilterLeaf(1)
        assert node.get("missing") is None

    def test_round_trip_keeps_order(self):
        value = {"z": 1, "a": {"$in": [1, 2]}, "m": [{"x": None}]}
        result = from_node(to_node(value))

        assert result == value
        assert list(result) == ["z", "a", "m"]

    def test_prefix_field_keys(self):
        body = to_node({"$or": [{"kind": "Pod"}, {"kind": "Job"}], "ns": "x"})

        assert from_node(prefix_field_keys(body, "resources")) == {
            "$or": [{"resources.kind": "Pod"}, {"resources.kind": "Job"}],
            "resources.ns": "x",
        }

    def test_prefix_leaves_conditions_alone(self):
        """Test that a field's condition document is not prefixed."""
        body = to_node({"kind": {"$in": ["Pod", "Job"]}})

        assert from_node(prefix_field_keys(body, "resources")) == {
            "resources.kind": {"$in": ["Pod", "Job"]}
        }

    def test_prefix_nested_logical(self):
        body = to_node({"$and": [{"$or": [{"a": 1}, {"b": 2}]}, {"c": 3}]})

        assert from_node(prefix_field_keys(body, "p")) == {
            "$and": [{"$or": [{"p.a": 1}, {"p.b": 2}]}, {"p.c": 3}]
        }


class TestMatchFiltersForUnwind:
    """Element-match rewriting after $unwind."""

    def test_elem_match_hoisted(self):
        match = {"customers": "t", "resources": {"$elemMatch": {"kind": "Pod"}}}

        assert match_filters_for_unwind("resources", match) == {
            "customers": "t",
            "resources.kind": "Pod",
        }

    def test_elem_match_with_and(self):
        match = {
            "resources": {
                "$elemMatch": {"$and": [{"kind": "Pod"}, {"namespace": "default"}]}
            }
        }

        assert match_filters_for_unwind("resources", match) == {
            "$and": [{"resources.kind": "Pod"}, {"resources.namespace": "default"}]
        }

    def test_inside_or(self):
        """Test that element matches nested under $or are rewritten too."""
        match = {
            "$or": [
                {"resources": {"$elemMatch": {"kind": "Pod"}}},
                {"name": "a"},
            ]
        }

        assert match_filters_for_unwind("resources", match) == {
            "$or": [{"resources.kind": "Pod"}, {"name": "a"}]
        }

    def test_value_operators_on_scalar_array(self):
        match = {"tags": {"$elemMatch": {"$regex": "^prod", "$options": "i"}}}

        assert match_filters_for_unwind("tags", match) == {
            "tags": {"$regex": "^prod", "$options": "i"}
        }

    def test_other_arrays_untouched(self):
        match = {"tags": {"$elemMatch": {"$eq": "x"}}}
        assert match_filters_for_unwind("resources", match) == match

    def test_array_level_conditions_dropped(self):
        """Test that conditions on the whole array are not re-applied to elements."""
        match = {"customers": "t", "resources": {"$size": 2}, "tags": {"$all": ["a", "b"]}}

        assert match_filters_for_unwind("resources", match) == {
            "customers": "t",
            "tags": {"$all": ["a", "b"]},
        }
        assert match_filters_for_unwind("tags", match) == {
            "customers": "t",
            "resources": {"$size": 2},
        }

    def test_element_conditions_on_scalar_array_kept(self):
        """Test that per-element operators still filter the unwound elements."""
        match = {"tags": {"$regex": "prod"}}
        assert match_filters_for_unwind("tags", match) == match

        match = {"tags": {"$gte": "b", "$lte": "d", "$size": 3}}
        assert match_filters_for_unwind("tags", match) == {"tags": {"$gte": "b", "$lte": "d"}}

    def test_equality_on_scalar_array_kept(self):
        match = {"tags": "prod-1"}
        assert match_filters_for_unwind("tags", match) == match

    def test_colliding_keys_anded(self):
        match = {
            "resources.kind": "Pod",
            "resources": {"$elemMatch": {"kind": "Job"}},
        }

        assert match_filters_for_unwind("resources", match) == {
            "resources.kind": "Pod",
            "$and": [{"resources.kind": "Job"}],
        }

    def test_input_not_modified(self):
        match = {"resources": {"$elemMatch": {"kind": "Pod"}}}
        match_filters_for_unwind("resources", match)
        assert match == {"resources": {"$elemMatch": {"kind": "Pod"}}}


class TestUniqueValuesPipeline:
    """Pipeline shape."""

    def test_scalar_field(self):
        pipeline = unique_values_pipeline(["data"], {"customers": "t"}, 0, 100)

        assert pipeline == [
            {"$match": {"customers": "t"}},
            {"$group": {"_id": "$data", "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
            {"$limit": 100},
            COLLAPSE,
            PROJECT,
        ]

    def test_skip(self):
        pipeline = unique_values_pipeline(["data"], {}, 5, 100)

        assert pipeline[3] == {"$skip": 5}
        assert pipeline[4] == {"$limit": 100}

    def test_array_field(self):
        schema = SchemaInfo(array_paths=["resources"])
        match = {"resources": {"$elemMatch": {"kind": "Pod"}}}

        pipeline = unique_values_pipeline(["resources.kind"], match, 0, 10, schema)

        assert pipeline[:3] == [
            {"$match": match},
            {"$unwind": "$resources"},
            {"$match": {"resources.kind": "Pod"}},
        ]
        assert pipeline[3] == {"$group": {"_id": "$resources.kind", "count": {"$sum": 1}}}

    def test_array_unwound_once(self):
        schema = SchemaInfo(array_paths=["resources"])
        pipeline = unique_values_pipeline(
            ["resources.kind", "resources.namespace"], {}, 0, 10, schema
        )

        unwinds = [s for s in pipeline if "$unwind" in s]
        assert unwinds == [{"$unwind": "$resources"}]

    def test_composite_key(self):
        pipeline = unique_values_pipeline(["name", "attributes.env"], {}, 0, 10)

        assert pipeline[1] == {
            "$addFields": {"name": "$name", "attributes_env": "$attributes.env"}
        }
        assert pipeline[2]["$group"]["_id"] == {
            "name": "$name",
            "attributes_env": "$attributes_env",
        }

    def test_nested_arrays_outer_first(self):
        schema = SchemaInfo(array_paths=["resources", "resources.labels"])
        pipeline = unique_values_pipeline(["resources.labels.key"], {}, 0, 10, schema)

        unwinds = [s["$unwind"] for s in pipeline if "$unwind" in s]
        assert unwinds == ["$resources", "$resources.labels"]


class TestUniqueValuesResult:
    """Stringifying grouped keys."""

    def test_stringify(self):
        assert stringify_value("a") == "a"
        assert stringify_value(1) == "1"
        assert stringify_value(1.0) == "1"
        assert stringify_value(1.5) == "1.5"
        assert stringify_value(True) == "true"
        assert stringify_value(None) == ""
        assert stringify_value({"b": 1, "a": "x"}) == '{"a": "x", "b": 1}'

    def test_decode(self):
        docs = [{
            "values": [1, 5],
            "count": [{"key": 1, "count": 2}, {"key": 5, "count": 1}],
        }]
        result = to_unique_values_result(docs)

        assert result.values == ["1", "5"]
        assert [(c.key, c.count) for c in result.count] == [("1", 2), ("5", 1)]

    def test_decode_empty(self):
        result = to_unique_values_result([])

        assert result.values == []
        assert result.count == []
