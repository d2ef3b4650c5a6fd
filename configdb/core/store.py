"""
Thin wrapper over a pymongo database.

Hands out read and write collection handles, lists collections for
tenant-wide operations and translates driver errors into StoreError.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any, Iterator, List, Optional

from pymongo import ASCENDING, IndexModel, MongoClient, ReadPreference
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from .document import CUSTOMERS_FIELD, NAME_FIELD
from .exceptions import wrap_store_error
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from config import Settings


logger = get_logger(__name__)


READ_PREFERENCES = {
    "primary": ReadPreference.PRIMARY,
    "primaryPreferred": ReadPreference.PRIMARY_PREFERRED,
    "secondary": ReadPreference.SECONDARY,
    "secondaryPreferred": ReadPreference.SECONDARY_PREFERRED,
    "nearest": ReadPreference.NEAREST,
}

# Indexes every document collection gets
DEFAULT_INDEXES = [
    IndexModel([(CUSTOMERS_FIELD, ASCENDING)]),
    IndexModel([(NAME_FIELD, ASCENDING)]),
]


@contextlib.contextmanager
def store_errors(message: str) -> Iterator[None]:
    """Log and re-raise driver errors as StoreError subclasses."""
    try:
        yield
    except PyMongoError as e:
        logger.error(f"{message}: {e}")
        raise wrap_store_error(e, message) from e


class MongoStore:
    """
    Document store handle.

    Example:
        >>> store = MongoStore.from_settings(load_config())
        >>> store.read_collection("clusters").count_documents({})
    """

    def __init__(
        self,
        database: Database,
        read_preference: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """
        Args:
            database: pymongo (or pymongo-compatible) database
            read_preference: Name of the read preference for read handles
            client: Owning client, closed by close()
        """
        if read_preference is not None and read_preference not in READ_PREFERENCES:
            raise ValueError(f"Unknown read preference: {read_preference}")
        self._database = database
        self._read_preference = read_preference
        self._client = client

    @classmethod
    def from_settings(cls, settings: "Settings") -> "MongoStore":
        """Connect using the mongo section of the settings."""
        client = MongoClient(
            settings.mongo.uri,
            appname=settings.mongo.app_name,
            serverSelectionTimeoutMS=settings.mongo.server_selection_timeout_ms,
        )
        logger.info(
            f"Connecting to database '{settings.mongo.database}' "
            f"(read preference {settings.mongo.read_preference})"
        )
        return cls(
            client[settings.mongo.database],
            read_preference=settings.mongo.read_preference,
            client=client,
        )

    @property
    def database(self) -> Database:
        return self._database

    def read_collection(self, name: str) -> Collection:
        if self._read_preference is None:
            return self._database.get_collection(name)
        return self._database.get_collection(
            name, read_preference=READ_PREFERENCES[self._read_preference]
        )

    def write_collection(self, name: str) -> Collection:
        return self._database.get_collection(name)

    def list_collection_names(self) -> List[str]:
        with store_errors("failed to list collections"):
            names = self._database.list_collection_names()
        return sorted(n for n in names if not n.startswith("system."))

    def ensure_indexes(self, name: str) -> List[str]:
        """Create the default indexes on a collection."""
        with store_errors(f"failed to index collection {name}"):
            created = self.write_collection(name).create_indexes(DEFAULT_INDEXES)
        logger.info(f"Indexed collection '{name}': {created}")
        return created

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def __enter__(self) -> "MongoStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"MongoStore(database='{self._database.name}')"
