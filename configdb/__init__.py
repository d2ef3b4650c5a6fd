"""
configdb - Multi-tenant document data access over MongoDB.

Example:
    >>> from config import load_config
    >>> from configdb import MongoStore, DocumentRepository, RequestScope, Customer
    >>>
    >>> store = MongoStore.from_settings(load_config())
    >>> repo = DocumentRepository(store, Customer)
    >>> scope = RequestScope(collection="customers", customer_guid="tenant-1")
    >>>
    >>> repo.insert_document(scope, Customer(name="acme"))
    >>> repo.search(scope, ListRequest(innerFilters=[{"name": "ac|match"}]))
"""

from .core import (
    # Documents
    DocContent,
    BaseDocContent,
    Customer,
    Document,
    # Scope and store
    RequestScope,
    SchemaInfo,
    MongoStore,
    # Exceptions
    ConfigDBError,
    ConfigurationError,
    ValidationError,
    FormatError,
    UnsupportedFeatureError,
    TemplateError,
    TemplateNotFoundError,
    NoFieldsToUpdateError,
    StoreError,
    DuplicateKeyError,
    StoreTimeoutError,
    TenantDeletionError,
    is_duplicate_key_error,
    is_no_fields_to_update_error,
)

from .query import (
    FilterBuilder,
    FindOptions,
    ListRequest,
    UniqueValuesRequest,
    AggResult,
    SearchResult,
    UniqueValuesResponse,
    PipelineCompiler,
    TemplateRegistry,
    AggregationRunner,
)

from .core.repository import DocumentRepository
from .core.tenants import TenantDeleter, DeletionResult, delete_customers_docs

__version__ = "0.1.0"

__all__ = [
    # Documents
    "DocContent",
    "BaseDocContent",
    "Customer",
    "Document",
    # Scope and store
    "RequestScope",
    "SchemaInfo",
    "MongoStore",
    # Data access
    "DocumentRepository",
    "TenantDeleter",
    "DeletionResult",
    "delete_customers_docs",
    # Queries
    "FilterBuilder",
    "FindOptions",
    "ListRequest",
    "UniqueValuesRequest",
    "AggResult",
    "SearchResult",
    "UniqueValuesResponse",
    "PipelineCompiler",
    "TemplateRegistry",
    "AggregationRunner",
    # Exceptions
    "ConfigDBError",
    "ConfigurationError",
    "ValidationError",
    "FormatError",
    "UnsupportedFeatureError",
    "TemplateError",
    "TemplateNotFoundError",
    "NoFieldsToUpdateError",
    "StoreError",
    "DuplicateKeyError",
    "StoreTimeoutError",
    "TenantDeletionError",
    "is_duplicate_key_error",
    "is_no_fields_to_update_error",
]
