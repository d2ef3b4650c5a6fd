"""
Tenant-wide deletion across every collection of the store.

Collections are discovered at call time, so a new document type needs no
change here. One worker runs per collection, plus one that deletes the
tenant records themselves from the customers collection. A failing
collection never stops its siblings: errors are collected into a single
TenantDeletionError returned next to the partial deleted count.
"""

from __future__ import annotations

import contextlib
import queue
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import pymongo

from ..query.filters import FilterBuilder
from ..utils.logging import get_logger, log_enter_exit
from ..utils.validation import validate_ids
from .exceptions import TenantDeletionError, ValidationError
from .store import MongoStore, store_errors


logger = get_logger(__name__)

DEFAULT_CUSTOMERS_COLLECTION = "customers"

_DONE = object()


class DeletedCounter:
    """Thread-safe running total of deleted documents."""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    def add(self, n: int) -> None:
        with self._lock:
            self._value += n

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class DeletionResult:
    """
    Outcome of a tenant-wide deletion.

    deleted_count holds the documents deleted even when error is set.
    """
    deleted_count: int = 0
    error: Optional[TenantDeletionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@contextlib.contextmanager
def _deadline(timeout: Optional[float]) -> Iterator[None]:
    if timeout is None:
        yield
        return
    with pymongo.timeout(timeout):
        yield


class TenantDeleter:
    """
    Deletes every document owned by a set of tenants.

    Args:
        store: Document store
        customers_collection: Collection holding the tenant records
        max_workers: Thread pool size (None = one per collection)
    """

    def __init__(
        self,
        store: MongoStore,
        customers_collection: str = DEFAULT_CUSTOMERS_COLLECTION,
        max_workers: Optional[int] = None,
    ):
        self.store = store
        self.customers_collection = customers_collection
        self.max_workers = max_workers

    @log_enter_exit(logger)
    def delete(
        self,
        customer_guids: Sequence[str],
        timeout: Optional[float] = None,
    ) -> DeletionResult:
        """
        Delete the tenant records and every document they own.

        Args:
            customer_guids: Tenants to delete
            timeout: Deadline in seconds applied to each store call

        Returns:
            DeletionResult with the total deleted count and, if any
            collection failed, a TenantDeletionError naming each one

        Raises:
            ValidationError: If customer_guids is a single string
            StoreError: If the collection list can't be read
        """
        if isinstance(customer_guids, str):
            raise ValidationError("customer_guids must be a sequence of GUIDs, not a string")
        guids = validate_ids(g for g in customer_guids if g)
        if not guids:
            return DeletionResult()

        with _deadline(timeout):
            collections = self.store.list_collection_names()

        owners_filter = FilterBuilder().with_customers(guids).build()
        ids_filter = FilterBuilder().with_ids(guids).build()

        jobs: List[Tuple[str, Dict]] = [(self.customers_collection, ids_filter)]
        jobs.extend(
            (name, owners_filter)
            for name in collections
            if name != self.customers_collection
        )

        counter = DeletedCounter()
        errors: Dict[str, BaseException] = {}
        error_queue: "queue.Queue" = queue.Queue()

        def collect():
            while True:
                item = error_queue.get()
                if item is _DONE:
                    return
                name, exc = item
                errors[name] = exc

        collector = threading.Thread(target=collect, name="tenant-deletion-errors")
        collector.start()

        def delete_from(name: str, filter: Dict) -> None:
            try:
                with _deadline(timeout), store_errors(
                    f"failed to delete tenant documents in collection {name}"
                ):
                    res = self.store.write_collection(name).delete_many(filter)
            except Exception as e:
                error_queue.put((name, e))
                return
            counter.add(res.deleted_count)
            logger.info(f"Deleted {res.deleted_count} documents in collection '{name}'")

        workers = self.max_workers or len(jobs)
        try:
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="tenant-deletion"
            ) as executor:
                futures = [executor.submit(delete_from, name, f) for name, f in jobs]
                wait(futures)
        finally:
            error_queue.put(_DONE)
            collector.join()

        deleted = counter.value
        if not errors:
            logger.info(f"Deleted {deleted} documents of {len(guids)} tenant(s)")
            return DeletionResult(deleted_count=deleted)

        error = TenantDeletionError(errors, deleted_count=deleted)
        logger.error(f"Tenant deletion finished with errors: {error}")
        return DeletionResult(deleted_count=deleted, error=error)


def delete_customers_docs(
    store: MongoStore,
    customer_guids: Sequence[str],
    customers_collection: str = DEFAULT_CUSTOMERS_COLLECTION,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> DeletionResult:
    """Delete every document owned by the given tenants (admin operation)."""
    return TenantDeleter(store, customers_collection, max_workers).delete(
        customer_guids, timeout=timeout
    )
