"""
Request scope threaded through every data-access operation.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, replace
from typing import Iterator, Optional

import pymongo

from .exceptions import ConfigurationError
from ..utils.validation import validate_collection_name


@dataclass(frozen=True)
class RequestScope:
    """
    Resolved collection and tenant for one call.

    The route layer builds one per request. A scope without a collection or
    a customer GUID cannot be constructed.

    Attributes:
        collection: Collection the call operates on
        customer_guid: Tenant the call is scoped to
        timeout: Optional deadline in seconds forwarded to the driver
    """

    collection: str
    customer_guid: str
    timeout: Optional[float] = None

    def __post_init__(self):
        missing = []
        if not self.collection:
            missing.append("collection is not in scope")
        if not self.customer_guid:
            missing.append("customerGUID is not in scope")
        if missing:
            raise ConfigurationError("; ".join(missing))
        validate_collection_name(self.collection)
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")

    def for_collection(self, collection: str) -> "RequestScope":
        """Same tenant and deadline on another collection."""
        return replace(self, collection=collection)

    @contextlib.contextmanager
    def deadline(self) -> Iterator[None]:
        """Apply the scope timeout to driver calls made inside the block."""
        if self.timeout is None:
            yield
            return
        with pymongo.timeout(self.timeout):
            yield
