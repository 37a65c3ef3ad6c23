"""
Cosmos DB implementation of the document store.

Each operation resolves its client through the ConnectionRegistry, so every
store bound to the same account shares one client regardless of collection.
"""

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Sequence, TypeVar

from azure.core import MatchConditions
from azure.cosmos import PartitionKey
from pydantic import TypeAdapter

from core.logging import get_logger
from core.storage.base import (
    BaseDocumentStore,
    Document,
    JsonValue,
    PartitionKeyValue,
    StoredProcedureRecord,
)
from core.storage.descriptor import ConnectionDescriptor
from core.storage.errors import (
    Canceled,
    Conflict,
    InvalidRequest,
    NotFound,
    translate_errors,
)
from core.storage.registry import ConnectionRegistry


logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_THROUGHPUT = 5000


async def _cancellable(operation: str, coro: Awaitable[T], cancel: asyncio.Event) -> T:
    """
    Await coro unless the cancel event fires first.

    On cancellation the request task is cancelled and awaited before
    Canceled is raised; a write that already reached the service may
    still have been applied.
    """
    if cancel.is_set():
        if asyncio.iscoroutine(coro):
            coro.close()
        raise Canceled(f"{operation} canceled before it started")

    task = asyncio.ensure_future(coro)
    waiter = asyncio.ensure_future(cancel.wait())
    done: set = set()
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if task in done:
        return task.result()
    raise Canceled(f"{operation} canceled")


def _is_blank(partition_key: Optional[PartitionKeyValue]) -> bool:
    return partition_key is None or (isinstance(partition_key, str) and not partition_key.strip())


class CosmosDocumentStore(BaseDocumentStore):
    """
    Document and stored-procedure access for one Cosmos DB collection.

    Usage:
        registry = ConnectionRegistry()
        store = CosmosDocumentStore(descriptor, registry)

        await store.create_collection_if_missing("instanceId")
        doc = await store.create({"id": "i-1", "instanceId": "i-1", "status": "Running"})
        doc["status"] = "Completed"
        await store.replace("i-1", doc, expected_version=doc["_etag"])
    """

    def __init__(self, descriptor: ConnectionDescriptor, registry: ConnectionRegistry):
        """
        Initialize the store.

        Args:
            descriptor: Account and collection to bind to
            registry: Shared client pool
        """
        self.descriptor = descriptor
        self._registry = registry
        self._partition_key_path: Optional[str] = None
        self._log = logger.bind(
            database=descriptor.database_name,
            collection=descriptor.collection_name,
        )

    # =========================================
    # Client plumbing
    # =========================================

    def _client(self) -> Any:
        return self._registry.resolve(self.descriptor)

    def _database(self) -> Any:
        return self._client().get_database_client(self.descriptor.database_name)

    def _container(self) -> Any:
        return self._database().get_container_client(self.descriptor.collection_name)

    async def _call(
        self,
        operation: str,
        request: Callable[[], Awaitable[T]],
        cancel: Optional[asyncio.Event],
        **context: Any,
    ) -> T:
        with translate_errors(operation, collection=self.descriptor.collection_name, **context):
            if cancel is None:
                return await request()
            return await _cancellable(operation, request(), cancel)

    # =========================================
    # Collections
    # =========================================

    async def create_collection_if_missing(
        self,
        partition_key_path: str,
        *,
        throughput: int = DEFAULT_THROUGHPUT,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        """Create the database and collection if they don't exist yet."""
        path = self._normalize_partition_key_path(partition_key_path)

        async def request() -> None:
            client = self._client()
            database = await client.create_database_if_not_exists(self.descriptor.database_name)
            await database.create_container_if_not_exists(
                id=self.descriptor.collection_name,
                partition_key=PartitionKey(path=path),
                offer_throughput=throughput,
            )

        await self._call("create_collection_if_missing", request, cancel, partition_key_path=path)
        self._partition_key_path = None
        self._log.info(
            "Collection provisioned",
            partition_key_path=path,
            throughput=throughput,
        )

    async def delete_collection(self, *, cancel: Optional[asyncio.Event] = None) -> None:
        await self._call(
            "delete_collection",
            lambda: self._database().delete_container(self.descriptor.collection_name),
            cancel,
        )
        self._partition_key_path = None
        self._log.info("Collection deleted")

    async def partition_key_path(self, *, cancel: Optional[asyncio.Event] = None) -> Optional[str]:
        """
        Partition-key path of the bound collection, e.g. '/instanceId'.

        Collections carry at most one path. The value is cached per store.
        """
        if self._partition_key_path is None:
            properties = await self._call("read_collection", lambda: self._container().read(), cancel)
            paths = properties.get("partitionKey", {}).get("paths", [])
            self._partition_key_path = paths[0] if paths else None
        return self._partition_key_path

    @staticmethod
    def _normalize_partition_key_path(partition_key_path: str) -> str:
        if not isinstance(partition_key_path, str) or not partition_key_path.strip():
            raise InvalidRequest("A single partition key path is required")
        path = partition_key_path.strip()
        if "," in path:
            raise InvalidRequest(f"Only one partition key path is supported: {path!r}")
        return path if path.startswith("/") else f"/{path}"

    # =========================================
    # Documents
    # =========================================

    async def create(self, document: Document, *, cancel: Optional[asyncio.Event] = None) -> Document:
        document_id = self._require_id(document)
        created = await self._call(
            "create",
            lambda: self._container().create_item(body=document),
            cancel,
            document_id=document_id,
        )
        self._log.debug("Document created", document_id=document_id)
        return created

    async def read(
        self,
        document_id: str,
        partition_key: Optional[PartitionKeyValue] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> Document:
        if _is_blank(partition_key):
            return await self._call(
                "read",
                lambda: self._find_by_id(document_id),
                cancel,
                document_id=document_id,
            )
        return await self._call(
            "read",
            lambda: self._container().read_item(item=document_id, partition_key=partition_key),
            cancel,
            document_id=document_id,
        )

    async def _find_by_id(self, document_id: str) -> Document:
        # Partition-agnostic lookup: fans out across every partition
        items = self._container().query_items(
            query="SELECT * FROM c WHERE c.id = @id",
            parameters=[{"name": "@id", "value": document_id}],
        )
        async for item in items:
            return item
        raise NotFound(f"Document {document_id} not found", status_code=404)

    async def replace(
        self,
        document_id: str,
        document: Document,
        expected_version: Optional[str] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> Document:
        body = dict(document)
        if body.setdefault("id", document_id) != document_id:
            raise InvalidRequest(
                f"Document id {body['id']!r} does not match {document_id!r}"
            )

        options: dict[str, Any] = {}
        if expected_version:
            options["etag"] = expected_version
            options["match_condition"] = MatchConditions.IfNotModified

        replaced = await self._call(
            "replace",
            lambda: self._container().replace_item(item=document_id, body=body, **options),
            cancel,
            document_id=document_id,
            conditional=bool(expected_version),
        )
        self._log.debug("Document replaced", document_id=document_id)
        return replaced

    async def upsert(self, document: Document, *, cancel: Optional[asyncio.Event] = None) -> Document:
        document_id = self._require_id(document)
        return await self._call(
            "upsert",
            lambda: self._container().upsert_item(body=document),
            cancel,
            document_id=document_id,
        )

    async def delete(
        self,
        document_id: str,
        partition_key: PartitionKeyValue,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        if partition_key is None:
            raise InvalidRequest("Partition key is required for delete")

        await self._call(
            "delete",
            lambda: self._container().delete_item(item=document_id, partition_key=partition_key),
            cancel,
            document_id=document_id,
        )
        self._log.debug("Document deleted", document_id=document_id)

    async def query(
        self,
        query: str,
        parameters: Optional[Sequence[dict[str, Any]]] = None,
        partition_key: Optional[PartitionKeyValue] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Document]:
        kwargs: dict[str, Any] = {"query": query}
        if parameters:
            kwargs["parameters"] = list(parameters)
        if partition_key is not None:
            kwargs["partition_key"] = partition_key
        if self.descriptor.query_max_item_count > 0:
            kwargs["max_item_count"] = self.descriptor.query_max_item_count

        with translate_errors("query", collection=self.descriptor.collection_name):
            items = self._container().query_items(**kwargs).__aiter__()
            try:
                while True:
                    if cancel is not None and cancel.is_set():
                        raise Canceled("query canceled")
                    # Each step may fetch the next page from the service
                    try:
                        if cancel is None:
                            item = await items.__anext__()
                        else:
                            item = await _cancellable("query", items.__anext__(), cancel)
                    except StopAsyncIteration:
                        return
                    yield item
            finally:
                close = getattr(items, "aclose", None)
                if close is not None:
                    await close()

    @staticmethod
    def _require_id(document: Document) -> str:
        document_id = document.get("id")
        if not isinstance(document_id, str) or not document_id:
            raise InvalidRequest("Document must have a non-empty string 'id'")
        return document_id

    # =========================================
    # Stored procedures
    # =========================================

    async def upsert_stored_procedure(
        self,
        procedure_id: str,
        body: str,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> StoredProcedureRecord:
        """
        Create a stored procedure, or replace it when the id is taken.

        The service has no native upsert for procedures, so a Conflict on
        create falls back to replace.
        """
        definition = {"id": procedure_id, "body": body}
        try:
            resource = await self._call(
                "create_stored_procedure",
                lambda: self._container().scripts.create_stored_procedure(body=definition),
                cancel,
                procedure_id=procedure_id,
            )
            self._log.info("Stored procedure created", procedure_id=procedure_id)
        except Conflict:
            resource = await self._call(
                "replace_stored_procedure",
                lambda: self._container().scripts.replace_stored_procedure(
                    sproc=procedure_id, body=definition
                ),
                cancel,
                procedure_id=procedure_id,
            )
            self._log.info("Stored procedure replaced", procedure_id=procedure_id)
        return StoredProcedureRecord.from_resource(resource)

    async def read_stored_procedure(
        self,
        procedure_id: str,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> StoredProcedureRecord:
        resource = await self._call(
            "read_stored_procedure",
            lambda: self._container().scripts.get_stored_procedure(sproc=procedure_id),
            cancel,
            procedure_id=procedure_id,
        )
        return StoredProcedureRecord.from_resource(resource)

    async def execute_stored_procedure(
        self,
        procedure_id: str,
        partition_key: PartitionKeyValue,
        params: Sequence[JsonValue] = (),
        *,
        result_type: Optional[type[T]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Any:
        """
        Execute a stored procedure in one partition.

        Args:
            procedure_id: Procedure to run
            partition_key: Partition the procedure is scoped to
            params: Ordered JSON-serializable arguments
            result_type: When given, the result is validated and coerced to it

        Returns:
            The procedure's response body
        """
        result = await self._call(
            "execute_stored_procedure",
            lambda: self._container().scripts.execute_stored_procedure(
                sproc=procedure_id,
                partition_key=partition_key,
                params=list(params),
            ),
            cancel,
            procedure_id=procedure_id,
        )
        if result_type is not None:
            return TypeAdapter(result_type).validate_python(result)
        return result
