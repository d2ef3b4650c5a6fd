"""
Unit tests for scope, schema, documents, errors and logging.
"""

import logging

import pytest
from pymongo import _csot
from pymongo import errors as mongo_errors

from configdb.core.document import BaseDocContent, Customer, Document
from configdb.core.exceptions import (
    ConfigurationError,
    DuplicateKeyError,
    StoreError,
    StoreTimeoutError,
    TenantDeletionError,
    ValidationError,
    is_duplicate_key_error,
    wrap_store_error,
)
from configdb.core.schema import SchemaInfo
from configdb.core.scope import RequestScope
from configdb.core.store import MongoStore, store_errors
from configdb.utils.logging import LogContext, log_enter_exit
from configdb.utils.validation import (
    validate_collection_name,
    validate_field_path,
    validate_id,
    validate_ids,
)


class TestRequestScope:
    """Scope construction."""

    def test_valid(self):
        scope = RequestScope(collection="clusters", customer_guid="t1")

        assert scope.collection == "clusters"
        assert scope.timeout is None

    def test_missing_collection(self):
        with pytest.raises(ConfigurationError, match="collection is not in scope"):
            RequestScope(collection="", customer_guid="t1")

    def test_missing_customer(self):
        with pytest.raises(ConfigurationError, match="customerGUID is not in scope"):
            RequestScope(collection="clusters", customer_guid="")

    def test_invalid_timeout(self):
        with pytest.raises(ConfigurationError):
            RequestScope(collection="clusters", customer_guid="t1", timeout=0)

    def test_invalid_collection_name(self):
        with pytest.raises(ValidationError):
            RequestScope(collection="system.users", customer_guid="t1")

    def test_for_collection(self):
        scope = RequestScope(collection="clusters", customer_guid="t1", timeout=5)
        other = scope.for_collection("customers")

        assert other.collection == "customers"
        assert other.customer_guid == "t1"
        assert other.timeout == 5

    def test_deadline(self):
        scope = RequestScope(collection="clusters", customer_guid="t1", timeout=5)

        with scope.deadline():
            remaining = _csot.get_timeout()

        assert 0 < remaining <= 5
        assert _csot.get_timeout() is None

    def test_no_deadline(self):
        with RequestScope(collection="clusters", customer_guid="t1").deadline():
            assert _csot.get_timeout() is None


class TestSchemaInfo:
    """Array path lookup."""

    def test_get_array_details(self):
        schema = SchemaInfo(array_paths=["resources", "resources.labels"])

        assert schema.get_array_details("resources.kind") == (True, "resources", "kind")
        assert schema.get_array_details("resources.labels.key") == (
            True, "resources.labels", "key",
        )
        assert schema.get_array_details("resources") == (True, "resources", "")
        assert schema.get_array_details("resourcesX.kind") == (False, "", "")
        assert schema.get_array_details("name") == (False, "", "")

    def test_is_hashable(self):
        schema = SchemaInfo(array_paths=["a"])
        assert hash(schema) == hash(SchemaInfo(array_paths=("a",)))

    def test_dict_round_trip(self):
        schema = SchemaInfo.from_dict({"arrayPaths": ["a", "b"]})
        assert schema.to_dict() == {"arrayPaths": ["a", "b"]}


class TestDocument:
    """Envelope and content encoding."""

    def test_new_generates_guid(self):
        doc = Document.new(Customer(name="acme"), "t1")

        assert doc.id
        assert doc.id == doc.content.get_guid()
        assert doc.customers == ["t1"]
        assert doc.content.creation_time is not None

    def test_new_keeps_guid(self):
        doc = Document.new(Customer(guid="g1", name="acme"), "t1")
        assert doc.id == "g1"

    def test_to_mongo(self):
        content = Customer(guid="g1", name="acme", last_posture_scan_time="2024-01-01")
        data = Document(id="g1", content=content, customers=["t1"]).to_mongo()

        assert data["_id"] == "g1"
        assert data["lastPostureScanTime"] == "2024-01-01"
        assert data["customers"] == ["t1"]
        assert "deleted" not in data
        assert "creationTime" not in data

    def test_from_mongo(self):
        data = {"_id": "g1", "guid": "g1", "name": "acme", "customers": ["t1"], "deleted": True}
        doc = Document.from_mongo(data, Customer)

        assert doc.content.name == "acme"
        assert doc.deleted is True

    def test_from_dict_tolerates_projection(self):
        content = BaseDocContent.from_dict({"name": "only-name"})

        assert content.get_name() == "only-name"
        assert content.get_guid() == ""
        assert content.get_attributes() == {}

    def test_attributes(self):
        content = Customer()
        content.set_attributes({"env": "prod"})
        content.set_name("n")

        assert content.to_dict()["attributes"] == {"env": "prod"}
        assert content.get_name() == "n"


class TestExceptions:
    """Error translation and predicates."""

    def test_wrap_duplicate_key(self):
        err = wrap_store_error(mongo_errors.DuplicateKeyError("E11000"), "insert")

        assert isinstance(err, DuplicateKeyError)
        assert "insert" in str(err)

    def test_wrap_timeout(self):
        err = wrap_store_error(mongo_errors.ExecutionTimeout("slow"), "find")
        assert isinstance(err, StoreTimeoutError)

    def test_wrap_other(self):
        err = wrap_store_error(mongo_errors.OperationFailure("boom"), "find")

        assert type(err) is StoreError

    def test_store_errors_chains_cause(self):
        with pytest.raises(DuplicateKeyError) as exc_info:
            with store_errors("insert"):
                raise mongo_errors.DuplicateKeyError("E11000")

        assert isinstance(exc_info.value.__cause__, mongo_errors.DuplicateKeyError)
        assert is_duplicate_key_error(exc_info.value)

    def test_is_duplicate_key_error(self):
        assert is_duplicate_key_error(mongo_errors.DuplicateKeyError("E11000"))
        assert not is_duplicate_key_error(StoreError("x"))
        assert not is_duplicate_key_error(None)

    def test_tenant_deletion_error(self):
        err = TenantDeletionError(
            {"z": StoreError("boom"), "a": StoreError("bang")}, deleted_count=3
        )

        assert err.deleted_count == 3
        assert set(err.errors) == {"a", "z"}
        assert "2 error(s)" in str(err)
        assert str(err).index("'a'") < str(err).index("'z'")


class TestStore:
    """MongoStore wiring."""

    def test_unknown_read_preference(self, database):
        with pytest.raises(ValueError):
            MongoStore(database, read_preference="fastest")

    def test_list_collection_names(self, store, database):
        database["b"].insert_one({"x": 1})
        database["a"].insert_one({"x": 1})

        assert store.list_collection_names() == ["a", "b"]

    def test_ensure_indexes(self, store):
        store.ensure_indexes("clusters")
        index_keys = [
            list(i["key"]) for i in store.read_collection("clusters").list_indexes()
        ]

        assert ["customers"] in index_keys
        assert ["name"] in index_keys


class TestValidation:
    """Input validation helpers."""

    def test_validate_id(self):
        assert validate_id("abc") == "abc"
        assert validate_id("", allow_empty=True) == ""
        with pytest.raises(ValidationError):
            validate_id("")
        with pytest.raises(ValidationError):
            validate_id("x" * 300)

    def test_validate_ids(self):
        assert validate_ids(iter(["a", "b"])) == ["a", "b"]

    def test_validate_collection_name(self):
        assert validate_collection_name("clusters.v1") == "clusters.v1"
        with pytest.raises(ValidationError):
            validate_collection_name("bad name")
        with pytest.raises(ValidationError):
            validate_collection_name("system.indexes")

    def test_validate_field_path(self):
        assert validate_field_path("resources.kind") == "resources.kind"
        with pytest.raises(ValidationError):
            validate_field_path("$name")


class TestLogEnterExit:
    """Tracing decorator."""

    def test_traces_call(self, caplog):
        logger = logging.getLogger("configdb.tests.trace")

        @log_enter_exit(logger)
        def find_things(x):
            return x * 2

        with caplog.at_level(logging.DEBUG, logger="configdb.tests.trace"):
            assert find_things(2) == 4

        messages = [r.getMessage() for r in caplog.records]
        assert any(m.startswith("enter") and "find_things" in m for m in messages)
        assert any(m.startswith("exit") and "find_things" in m for m in messages)
        assert find_things.__name__ == "find_things"

    def test_traces_exit_on_error(self, caplog):
        logger = logging.getLogger("configdb.tests.trace")

        @log_enter_exit(logger)
        def fail():
            raise RuntimeError("x")

        with caplog.at_level(logging.DEBUG, logger="configdb.tests.trace"):
            with pytest.raises(RuntimeError):
                fail()

        assert any(r.getMessage().startswith("exit") for r in caplog.records)


class TestLogContext:
    """Temporary log levels."""

    def test_restores_level(self):
        logger = logging.getLogger("configdb.tests.context")
        logger.setLevel(logging.WARNING)

        with LogContext(logger, "debug") as scoped:
            assert scoped.level == logging.DEBUG

        assert logger.level == logging.WARNING
