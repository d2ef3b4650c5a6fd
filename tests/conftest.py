"""
Pytest fixtures for configdb tests.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import mongomock
import pytest

from configdb.core.document import BaseDocContent, Customer
from configdb.core.repository import DocumentRepository
from configdb.core.schema import SchemaInfo
from configdb.core.scope import RequestScope
from configdb.core.store import MongoStore
from configdb.query.aggregation import TemplateRegistry


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: runs against the in-memory database")


TENANT = "tenant-1"
OTHER_TENANT = "tenant-2"


@dataclass
class Cluster(BaseDocContent):
    """Sample document type with scalar and array fields."""

    data: Optional[Any] = None
    resources: List[Dict[str, Any]] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


@pytest.fixture
def database():
    """Fresh in-memory database."""
    client = mongomock.MongoClient()
    yield client["configdb_test"]
    client.close()


@pytest.fixture
def store(database) -> MongoStore:
    return MongoStore(database)


@pytest.fixture
def scope() -> RequestScope:
    """Scope of the default tenant on the clusters collection."""
    return RequestScope(collection="clusters", customer_guid=TENANT)


@pytest.fixture
def other_scope() -> RequestScope:
    return RequestScope(collection="clusters", customer_guid=OTHER_TENANT)


@pytest.fixture
def schema_info() -> SchemaInfo:
    return SchemaInfo(array_paths=["resources", "tags"])


@pytest.fixture
def repo(store: MongoStore, schema_info: SchemaInfo) -> DocumentRepository:
    """Cluster repository with the bundled query templates."""
    return DocumentRepository(
        store,
        Cluster,
        schema_info=schema_info,
        templates=TemplateRegistry.load(),
    )


@pytest.fixture
def customers_repo(store: MongoStore) -> DocumentRepository:
    return DocumentRepository(store, Customer, templates=TemplateRegistry.load())


def make_cluster(name: str, **kwargs) -> Cluster:
    """Cluster content with a GUID derived from its name."""
    return Cluster(guid=f"guid-{name}", name=name, **kwargs)


@pytest.fixture
def cluster_factory():
    """Factory for Cluster contents."""
    return make_cluster


@pytest.fixture
def cluster_type():
    return Cluster
