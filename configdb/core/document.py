"""
Document envelope and the content capability interface.

Every stored document is an envelope around a content payload. Content
fields are stored inline at the top level of the Mongo document, next to
the envelope fields:

    {"_id": "<guid>", "guid": "<guid>", "name": "...", ..., "customers": ["<tenant>"]}

Global documents (visible to every tenant) carry GLOBAL_CUSTOMER in
their customers list.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar


# Envelope and well-known content fields
ID_FIELD = "_id"
GUID_FIELD = "guid"
NAME_FIELD = "name"
ATTRIBUTES_FIELD = "attributes"
CUSTOMERS_FIELD = "customers"
DELETED_FIELD = "deleted"
CREATION_TIME_FIELD = "creationTime"

# Tenant marker for documents shared by every tenant
GLOBAL_CUSTOMER = ""

C = TypeVar("C", bound="DocContent")


class DocContent(ABC):
    """
    Capability interface implemented by every document payload type.

    The data-access layer is written once against this interface.
    """

    @abstractmethod
    def get_guid(self) -> str:
        pass

    @abstractmethod
    def set_guid(self, guid: str) -> None:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    @abstractmethod
    def set_name(self, name: str) -> None:
        pass

    @abstractmethod
    def get_attributes(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def set_attributes(self, attributes: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def init_new(self) -> None:
        """Prepare a freshly created payload (GUID, creation time)."""
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Fields to store inline in the Mongo document."""
        pass

    @classmethod
    @abstractmethod
    def from_dict(cls: Type[C], data: Dict[str, Any]) -> C:
        """Decode a (possibly projected) Mongo document."""
        pass


@dataclass
class BaseDocContent(DocContent):
    """
    Dataclass implementation of DocContent.

    Subclasses add their own dataclass fields; camelCase aliases are
    declared with ``field(metadata={"alias": "..."})``.
    """

    guid: str = ""
    name: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    creation_time: Optional[str] = field(
        default=None, metadata={"alias": CREATION_TIME_FIELD}
    )

    def get_guid(self) -> str:
        return self.guid

    def set_guid(self, guid: str) -> None:
        self.guid = guid

    def get_name(self) -> str:
        return self.name

    def set_name(self, name: str) -> None:
        self.name = name

    def get_attributes(self) -> Dict[str, Any]:
        return self.attributes

    def set_attributes(self, attributes: Dict[str, Any]) -> None:
        self.attributes = attributes

    def init_new(self) -> None:
        if not self.guid:
            self.guid = str(uuid.uuid4())
        self.creation_time = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[f.metadata.get("alias", f.name)] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        kwargs = {}
        for f in fields(cls):
            key = f.metadata.get("alias", f.name)
            if key in data:
                kwargs[f.name] = data[key]
        return cls(**kwargs)


@dataclass
class Customer(BaseDocContent):
    """A tenant record; stored in the customers collection keyed by its GUID."""

    description: str = ""
    email: str = ""
    last_posture_scan_time: Optional[str] = field(
        default=None, metadata={"alias": "lastPostureScanTime"}
    )


@dataclass
class Document:
    """
    Envelope around a content payload.

    Attributes:
        id: Document GUID (stored as "_id")
        content: The domain payload
        customers: Owning tenants (GLOBAL_CUSTOMER for shared documents)
        deleted: Soft-delete flag
    """

    id: str
    content: DocContent
    customers: List[str] = field(default_factory=list)
    deleted: bool = False

    @classmethod
    def new(cls, content: DocContent, customer_guid: str) -> "Document":
        """Wrap new content for a tenant, generating a GUID if none was supplied."""
        content.init_new()
        return cls(
            id=content.get_guid(),
            content=content,
            customers=[customer_guid],
        )

    def to_mongo(self) -> Dict[str, Any]:
        doc = {ID_FIELD: self.id}
        doc.update(self.content.to_dict())
        doc[CUSTOMERS_FIELD] = list(self.customers)
        if self.deleted:
            doc[DELETED_FIELD] = True
        return doc

    @classmethod
    def from_mongo(cls, data: Dict[str, Any], doc_type: Type[DocContent]) -> "Document":
        return cls(
            id=data.get(ID_FIELD, ""),
            content=doc_type.from_dict(data),
            customers=list(data.get(CUSTOMERS_FIELD, [])),
            deleted=bool(data.get(DELETED_FIELD, False)),
        )
