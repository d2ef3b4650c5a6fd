"""
Generic tenant-scoped CRUD over one document type.

Every operation takes a RequestScope naming the collection and the tenant.
Point lookups return None when nothing matches; "not found" is never an
error. Driver failures surface as StoreError subclasses.

Example:
    >>> repo = DocumentRepository(store, Customer)
    >>> scope = RequestScope(collection="clusters", customer_guid="tenant-1")
    >>> repo.insert_document(scope, Customer(name="prod"))
    >>> repo.get_doc_by_name(scope, "prod")
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING, Any, Dict, Generic, Iterable, List, Mapping, Optional, Sequence, Type, TypeVar,
)

from pymongo import ReturnDocument

from config.settings import DEFAULT_MAX_AGGREGATION_LIMIT
from ..query.aggregation import AggregationRunner, TemplateRegistry
from ..query.filters import FilterBuilder
from ..query.models import (
    AggResult,
    ListRequest,
    SearchResult,
    UniqueValuesRequest,
    UniqueValuesResponse,
    UniqueValuesResult,
)
from ..query.options import FindOptions
from ..query.pipeline import PipelineCompiler, build_agg_result, page_skip, resolve_limit
from ..query.unique import to_unique_values_result, unique_values_pipeline
from ..query.updates import add_to_set, pull, update_from_content
from ..utils.logging import get_logger, log_enter_exit
from ..utils.validation import validate_field_path, validate_id
from .document import ID_FIELD, NAME_FIELD, DocContent, Document
from .schema import SchemaInfo
from .scope import RequestScope
from .store import MongoStore, store_errors
from .tenants import DEFAULT_CUSTOMERS_COLLECTION, DeletionResult, TenantDeleter

if TYPE_CHECKING:
    from config import Settings


logger = get_logger(__name__)

C = TypeVar("C", bound=DocContent)


class DocumentRepository(Generic[C]):
    """
    CRUD, search and aggregation for one document content type.

    Args:
        store: Document store
        doc_type: DocContent subclass used to decode stored documents
        schema_info: Array paths of the document type
        max_limit: Upper bound (and default) for aggregation page sizes
        templates: Predefined query templates (for aggregate_template)
    """

    def __init__(
        self,
        store: MongoStore,
        doc_type: Type[C],
        schema_info: Optional[SchemaInfo] = None,
        max_limit: int = DEFAULT_MAX_AGGREGATION_LIMIT,
        templates: Optional[TemplateRegistry] = None,
        customers_collection: str = DEFAULT_CUSTOMERS_COLLECTION,
        deletion_workers: Optional[int] = None,
    ):
        self.store = store
        self.doc_type = doc_type
        self.schema_info = schema_info or SchemaInfo()
        self.max_limit = max_limit
        self.compiler = PipelineCompiler(self.schema_info, max_limit)
        self.runner = AggregationRunner(store, templates or TemplateRegistry({}), max_limit)
        self.deleter = TenantDeleter(store, customers_collection, deletion_workers)

    @classmethod
    def from_settings(
        cls,
        store: MongoStore,
        doc_type: Type[C],
        settings: "Settings",
        schema_info: Optional[SchemaInfo] = None,
    ) -> "DocumentRepository[C]":
        """Repository using the query and deletion sections of the settings."""
        return cls(
            store,
            doc_type,
            schema_info=schema_info,
            max_limit=settings.query.max_aggregation_limit,
            templates=TemplateRegistry.load(settings.query.templates_dir),
            customers_collection=settings.deletion.customers_collection,
            deletion_workers=settings.deletion.max_workers,
        )

    def _decode(self, data: Dict[str, Any]) -> C:
        return self.doc_type.from_dict(data)

    def _decode_optional(self, data: Optional[Dict[str, Any]]) -> Optional[C]:
        return self._decode(data) if data is not None else None

    # ------------------------------------------------------------------
    # Find
    # ------------------------------------------------------------------

    @log_enter_exit(logger)
    def get_all_for_customer(self, scope: RequestScope, include_globals: bool = False) -> List[C]:
        """Every live document of the tenant (and the global ones if asked)."""
        options = FindOptions()
        if include_globals:
            options.filter().with_not_deleted_for_customer_and_global(scope.customer_guid)
        else:
            options.filter().with_not_deleted_for_customer(scope.customer_guid)
        return self.admin_find(scope, options)

    @log_enter_exit(logger)
    def find_for_customer_with_globals(
        self, scope: RequestScope, find_options: Optional[FindOptions] = None
    ) -> List[C]:
        find_options = FindOptions.ensure(find_options)
        find_options.filter().with_not_deleted_for_customer_and_global(scope.customer_guid)
        return self.admin_find(scope, find_options)

    @log_enter_exit(logger)
    def find_for_customer(
        self, scope: RequestScope, find_options: Optional[FindOptions] = None
    ) -> List[C]:
        find_options = FindOptions.ensure(find_options)
        find_options.filter().with_not_deleted_for_customer(scope.customer_guid)
        return self.admin_find(scope, find_options)

    @log_enter_exit(logger)
    def admin_find(
        self, scope: RequestScope, find_options: Optional[FindOptions] = None
    ) -> List[C]:
        """Find across all tenants unless the options filter says otherwise."""
        find_options = FindOptions.ensure(find_options)
        with scope.deadline(), store_errors(f"failed to find in {scope.collection}"):
            cursor = self.store.read_collection(scope.collection).find(
                **find_options.find_kwargs()
            )
            return [self._decode(d) for d in cursor]

    @log_enter_exit(logger)
    def find_paginated_for_customer(
        self, scope: RequestScope, find_options: Optional[FindOptions] = None
    ) -> SearchResult[C]:
        find_options = FindOptions.ensure(find_options)
        find_options.filter().with_not_deleted_for_customer(scope.customer_guid)
        return self.admin_find_paginated(scope, find_options)

    @log_enter_exit(logger)
    def admin_find_paginated(
        self, scope: RequestScope, find_options: Optional[FindOptions] = None
    ) -> SearchResult[C]:
        """Page of documents plus the total match count, in one round trip."""
        find_options = FindOptions.ensure(find_options)
        pipeline = [
            {"$match": find_options.filter().build()},
            {
                "$facet": {
                    "metadata": [{"$count": "total"}],
                    "results": find_options.results_stages() or [{"$match": {}}],
                }
            },
        ]
        with scope.deadline(), store_errors(f"failed to find in {scope.collection}"):
            docs = list(self.store.read_collection(scope.collection).aggregate(pipeline))

        agg = build_agg_result(docs, find_options.skip, find_options.limit, self._decode)
        return SearchResult(total=agg.metadata.total, results=agg.results)

    # ------------------------------------------------------------------
    # Point lookups
    # ------------------------------------------------------------------

    @log_enter_exit(logger)
    def get_doc_by_guid(self, scope: RequestScope, guid: str) -> Optional[C]:
        validate_id(guid)
        filter = (
            FilterBuilder()
            .with_not_deleted_for_customer(scope.customer_guid)
            .with_id(guid)
        )
        return self.get_doc(scope, filter)

    @log_enter_exit(logger)
    def get_doc_by_name(self, scope: RequestScope, name: str) -> Optional[C]:
        filter = (
            FilterBuilder()
            .with_not_deleted_for_customer(scope.customer_guid)
            .with_name(name)
        )
        return self.get_doc(scope, filter)

    @log_enter_exit(logger)
    def get_doc(self, scope: RequestScope, filter: Optional[FilterBuilder] = None) -> Optional[C]:
        """First document matching filter as given (no tenant scope added)."""
        query = filter.build() if filter is not None else {}
        with scope.deadline(), store_errors(f"failed to get document from {scope.collection}"):
            data = self.store.read_collection(scope.collection).find_one(query)
        return self._decode_optional(data)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    @log_enter_exit(logger)
    def update_document(
        self, scope: RequestScope, id: str, update: Mapping[str, Any]
    ) -> Optional[List[C]]:
        """
        Apply update to one of the tenant's documents.

        The old state is read before the update is applied, without a
        transaction; a concurrent writer can slip in between.

        Returns:
            [old, new], or None when the document doesn't exist
        """
        validate_id(id)
        filter = (
            FilterBuilder()
            .with_not_deleted_for_customer(scope.customer_guid)
            .with_id(id)
            .build()
        )
        with scope.deadline(), store_errors(f"failed to update document {id}"):
            old = self.store.read_collection(scope.collection).find_one(filter)
            if old is None:
                return None
            new = self.store.write_collection(scope.collection).find_one_and_update(
                filter, dict(update), return_document=ReturnDocument.AFTER
            )
        if new is None:
            return None
        return [self._decode(old), self._decode(new)]

    @log_enter_exit(logger)
    def update_content(self, scope: RequestScope, content: C) -> Optional[List[C]]:
        """Overwrite the stored fields of the document content belongs to."""
        return self.update_document(scope, content.get_guid(), update_from_content(content))

    @log_enter_exit(logger)
    def update_one(self, scope: RequestScope, id: str, update: Mapping[str, Any]) -> int:
        """Apply update to one of the tenant's documents; returns the modified count."""
        filter = (
            FilterBuilder()
            .with_not_deleted_for_customer(scope.customer_guid)
            .with_id(id)
            .build()
        )
        with scope.deadline(), store_errors(f"failed to update document {id}"):
            res = self.store.write_collection(scope.collection).update_one(filter, dict(update))
        return res.modified_count

    @log_enter_exit(logger)
    def add_to_array(self, scope: RequestScope, id: str, array_path: str, *values: Any) -> int:
        """Add values not yet present; 0 when the array already had them all."""
        return self.update_one(scope, id, add_to_set(array_path, values))

    @log_enter_exit(logger)
    def pull_from_array(self, scope: RequestScope, id: str, array_path: str, *values: Any) -> int:
        """Remove values; 0 when none of them was present."""
        return self.update_one(scope, id, pull(array_path, values))

    # ------------------------------------------------------------------
    # Existence and counting
    # ------------------------------------------------------------------

    def _scoped_filter(self, scope: RequestScope, filter: Optional[FilterBuilder]) -> Dict[str, Any]:
        return (
            FilterBuilder()
            .with_not_deleted_for_customer(scope.customer_guid)
            .with_filter(filter)
            .build()
        )

    @log_enter_exit(logger)
    def doc_exist(self, scope: RequestScope, filter: Optional[FilterBuilder] = None) -> bool:
        query = self._scoped_filter(scope, filter)
        with scope.deadline(), store_errors(f"failed to count documents in {scope.collection}"):
            n = self.store.read_collection(scope.collection).count_documents(query, limit=1)
        return n > 0

    @log_enter_exit(logger)
    def doc_with_name_exist(self, scope: RequestScope, name: str) -> bool:
        return self.doc_exist(scope, FilterBuilder().with_name(name))

    @log_enter_exit(logger)
    def count_docs(self, scope: RequestScope, filter: Optional[FilterBuilder] = None) -> int:
        query = self._scoped_filter(scope, filter)
        with scope.deadline(), store_errors(f"failed to count documents in {scope.collection}"):
            return self.store.read_collection(scope.collection).count_documents(query)

    # ------------------------------------------------------------------
    # Inserts
    # ------------------------------------------------------------------

    @log_enter_exit(logger)
    def insert_document(self, scope: RequestScope, content: C) -> C:
        """Insert new content owned by the scope's tenant."""
        return self.insert_documents(scope, [content])[0]

    @log_enter_exit(logger)
    def insert_db_document(self, scope: RequestScope, document: Document) -> DocContent:
        """Insert a ready-made envelope as is."""
        with scope.deadline(), store_errors(f"failed to insert document into {scope.collection}"):
            self.store.write_collection(scope.collection).insert_one(document.to_mongo())
        return document.content

    @log_enter_exit(logger)
    def insert_documents(self, scope: RequestScope, contents: Sequence[C]) -> List[C]:
        """
        Insert new contents owned by the scope's tenant.

        More than one document goes through a single insert_many.
        """
        if not contents:
            return []
        docs = [Document.new(c, scope.customer_guid).to_mongo() for c in contents]
        collection = self.store.write_collection(scope.collection)
        with scope.deadline(), store_errors(f"failed to insert documents into {scope.collection}"):
            if len(docs) == 1:
                collection.insert_one(docs[0])
            else:
                collection.insert_many(docs)
        logger.debug(f"Inserted {len(docs)} documents into '{scope.collection}'")
        return list(contents)

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    def _delete_found(self, scope: RequestScope, found: Optional[C]) -> Optional[C]:
        if found is None:
            return None
        with scope.deadline(), store_errors(f"failed to delete document from {scope.collection}"):
            res = self.store.write_collection(scope.collection).delete_one(
                {ID_FIELD: found.get_guid()}
            )
        if res.deleted_count == 0:
            return None
        return found

    @log_enter_exit(logger)
    def delete_by_guid(self, scope: RequestScope, guid: str) -> Optional[C]:
        """Delete one of the tenant's documents; returns it, or None if absent."""
        return self._delete_found(scope, self.get_doc_by_guid(scope, guid))

    @log_enter_exit(logger)
    def delete_by_name(self, scope: RequestScope, name: str) -> Optional[C]:
        return self._delete_found(scope, self.get_doc_by_name(scope, name))

    @log_enter_exit(logger)
    def bulk_delete_by_name(self, scope: RequestScope, names: Iterable[str]) -> int:
        return self.bulk_delete(scope, FilterBuilder().with_in(NAME_FIELD, names))

    @log_enter_exit(logger)
    def bulk_delete(self, scope: RequestScope, filter: Optional[FilterBuilder] = None) -> int:
        """Delete every tenant document matching filter; returns the count."""
        query = self._scoped_filter(scope, filter)
        with scope.deadline(), store_errors(f"failed to delete documents from {scope.collection}"):
            res = self.store.write_collection(scope.collection).delete_many(query)
        return res.deleted_count

    @log_enter_exit(logger)
    def delete_customer_docs(self, scope: RequestScope) -> DeletionResult:
        """Delete the scope's tenant and everything it owns."""
        return self.deleter.delete([scope.customer_guid], timeout=scope.timeout)

    @log_enter_exit(logger)
    def admin_delete_customers_docs(
        self, customer_guids: Sequence[str], timeout: Optional[float] = None
    ) -> DeletionResult:
        return self.deleter.delete(customer_guids, timeout=timeout)

    # ------------------------------------------------------------------
    # Search and aggregation
    # ------------------------------------------------------------------

    @log_enter_exit(logger)
    def search(
        self,
        scope: RequestScope,
        request: ListRequest,
        include_globals: bool = False,
        skip: int = 0,
    ) -> AggResult[C]:
        """Run a list request over the tenant's documents."""
        base = FilterBuilder()
        if include_globals:
            base.with_not_deleted_for_customer_and_global(scope.customer_guid)
        else:
            base.with_not_deleted_for_customer(scope.customer_guid)

        compiled = self.compiler.compile(request, base.build(), skip=skip)
        with scope.deadline(), store_errors(f"failed to search {scope.collection}"):
            docs = list(
                self.store.read_collection(scope.collection).aggregate(compiled.pipeline)
            )
        return build_agg_result(docs, compiled.skip, compiled.limit, self._decode)

    @log_enter_exit(logger)
    def unique_values(
        self,
        scope: RequestScope,
        request: UniqueValuesRequest,
        include_globals: bool = False,
    ) -> UniqueValuesResponse:
        """Distinct values and counts of each requested field."""
        response = UniqueValuesResponse()
        for field in request.fields:
            response.add(field, self._unique(scope, request, [field], include_globals))
        return response

    @log_enter_exit(logger)
    def unique_composite_values(
        self,
        scope: RequestScope,
        request: UniqueValuesRequest,
        include_globals: bool = False,
    ) -> UniqueValuesResult:
        """
        Distinct combinations of all requested fields, with counts.

        Each value is the combination rendered as sorted JSON, keyed by the
        field names with dots replaced by underscores:

            {"name": "prod", "resources_kind": "Pod"}
        """
        return self._unique(scope, request, list(request.fields), include_globals)

    def _unique(
        self,
        scope: RequestScope,
        request: UniqueValuesRequest,
        fields: List[str],
        include_globals: bool,
    ) -> UniqueValuesResult:
        for field in fields:
            validate_field_path(field)

        base = FilterBuilder()
        if include_globals:
            base.with_not_deleted_for_customer_and_global(scope.customer_guid)
        else:
            base.with_not_deleted_for_customer(scope.customer_guid)
        match = self.compiler.match_filter(request.inner_filters, base.build())
        limit = resolve_limit(request.page_size, self.max_limit)
        skip = page_skip(request.page_num, limit)

        pipeline = unique_values_pipeline(fields, match, skip, limit, self.schema_info)
        with scope.deadline(), store_errors(f"failed to get unique values of {', '.join(fields)}"):
            docs = list(self.store.read_collection(scope.collection).aggregate(pipeline))
        return to_unique_values_result(docs)

    @log_enter_exit(logger)
    def aggregate_template(
        self,
        scope: RequestScope,
        template_name: str,
        limit: int = 0,
        cursor: int = 0,
        template_args: Optional[Mapping[str, Any]] = None,
    ) -> AggResult[C]:
        """Run a predefined query on the scope's collection."""
        return self.runner.aggregate(
            scope, template_name, limit, cursor, template_args, decode=self._decode
        )

    @log_enter_exit(logger)
    def ensure_indexes(self, scope: RequestScope) -> List[str]:
        return self.store.ensure_indexes(scope.collection)
