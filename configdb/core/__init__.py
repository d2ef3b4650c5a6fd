"""
Core data model and store access for configdb.

The repository and tenant deletion modules build on the query package and
are imported from their own modules (or from the top-level package).
"""

from .document import (
    DocContent,
    BaseDocContent,
    Customer,
    Document,
    ID_FIELD,
    GUID_FIELD,
    NAME_FIELD,
    ATTRIBUTES_FIELD,
    CUSTOMERS_FIELD,
    DELETED_FIELD,
    CREATION_TIME_FIELD,
    GLOBAL_CUSTOMER,
)
from .exceptions import (
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
from .schema import SchemaInfo
from .scope import RequestScope
from .store import MongoStore, store_errors

__all__ = [
    # Documents
    "DocContent",
    "BaseDocContent",
    "Customer",
    "Document",
    "ID_FIELD",
    "GUID_FIELD",
    "NAME_FIELD",
    "ATTRIBUTES_FIELD",
    "CUSTOMERS_FIELD",
    "DELETED_FIELD",
    "CREATION_TIME_FIELD",
    "GLOBAL_CUSTOMER",
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
    # Scope and store
    "SchemaInfo",
    "RequestScope",
    "MongoStore",
    "store_errors",
]
