"""
Abstract base class and record types for document stores.

This module defines the contract the Cosmos implementation follows, so the
orchestration layer and tests can depend on the interface rather than on
azure-cosmos types.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, AsyncIterator, Optional, Sequence, TypeVar, Union

from core.storage.errors import NotFound, should_retry


JsonValue = Union[None, bool, int, float, str, list[Any], dict[str, Any]]
Document = dict[str, Any]
PartitionKeyValue = Union[str, int, float, bool]

T = TypeVar("T")

# Properties the service adds to every stored resource
SYSTEM_PROPERTIES = ("_rid", "_self", "_etag", "_attachments", "_ts")

# Fixed backoff between retries of transient errors
RETRY_INTERVAL = timedelta(seconds=5)


@dataclass(frozen=True)
class StoredProcedureRecord:
    """A server-side procedure: id plus its JavaScript body."""
    id: str
    body: str

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> "StoredProcedureRecord":
        return cls(id=resource["id"], body=resource.get("body", ""))


def version_of(document: Document) -> Optional[str]:
    """Version token (ETag) of a stored document, if it carries one."""
    return document.get("_etag")


def strip_system_properties(document: Document) -> Document:
    """Copy of a document without service-managed properties."""
    return {k: v for k, v in document.items() if k not in SYSTEM_PROPERTIES}


class BaseDocumentStore(ABC):
    """
    Abstract base class for document and stored-procedure access.

    Every operation accepts an optional cancellation signal. When it fires,
    the in-flight request is aborted and Canceled is raised.
    """

    RETRY_INTERVAL = RETRY_INTERVAL

    @staticmethod
    def should_retry(error: BaseException) -> bool:
        """True for throttling, unavailability and transport failures."""
        return should_retry(error)

    @abstractmethod
    async def create_collection_if_missing(
        self,
        partition_key_path: str,
        *,
        throughput: int = 5000,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Provision the bound collection with a single partition-key path.

        Idempotent: an existing collection is left untouched.
        """
        pass

    @abstractmethod
    async def delete_collection(self, *, cancel: Optional[asyncio.Event] = None) -> None:
        """Drop the bound collection."""
        pass

    @abstractmethod
    async def create(self, document: Document, *, cancel: Optional[asyncio.Event] = None) -> Document:
        """
        Insert a new document.

        Raises:
            Conflict: If a document with the same id/partition key exists
        """
        pass

    @abstractmethod
    async def read(
        self,
        document_id: str,
        partition_key: Optional[PartitionKeyValue] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> Document:
        """
        Read a document by id.

        Without a partition key the lookup fans out across partitions.

        Raises:
            NotFound: If the document doesn't exist
        """
        pass

    async def exists(
        self,
        document_id: str,
        partition_key: Optional[PartitionKeyValue] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> bool:
        """True iff read() succeeds. Only NotFound is folded into False."""
        try:
            await self.read(document_id, partition_key, cancel=cancel)
        except NotFound:
            return False
        return True

    @abstractmethod
    async def replace(
        self,
        document_id: str,
        document: Document,
        expected_version: Optional[str] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> Document:
        """
        Replace a document, conditionally when expected_version is given.

        Raises:
            VersionConflict: If the stored version differs from expected_version
            NotFound: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def upsert(self, document: Document, *, cancel: Optional[asyncio.Event] = None) -> Document:
        """Insert or replace without a version check (last writer wins)."""
        pass

    @abstractmethod
    async def delete(
        self,
        document_id: str,
        partition_key: PartitionKeyValue,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Delete a document.

        Raises:
            NotFound: If the document doesn't exist
        """
        pass

    @abstractmethod
    def query(
        self,
        query: str,
        parameters: Optional[Sequence[dict[str, Any]]] = None,
        partition_key: Optional[PartitionKeyValue] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Document]:
        """
        Run a SQL query, scoped to one partition when a key is given.

        The cancel signal is checked before every fetch; once it fires the
        iteration stops with Canceled.
        """
        pass

    @abstractmethod
    async def upsert_stored_procedure(
        self,
        procedure_id: str,
        body: str,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> StoredProcedureRecord:
        """Create a stored procedure, replacing it if the id already exists."""
        pass

    @abstractmethod
    async def execute_stored_procedure(
        self,
        procedure_id: str,
        partition_key: PartitionKeyValue,
        params: Sequence[JsonValue] = (),
        *,
        result_type: Optional[type[T]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Any:
        """Execute a stored procedure bound to one partition."""
        pass
