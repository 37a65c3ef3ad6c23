"""
In-memory stand-in for azure.cosmos.aio.CosmosClient.

Implements the subset of the async SDK surface the document store uses,
raising the SDK's own exception types so error translation is exercised
exactly as against the real service.

Key features:
- Per-write ETags and If-Match replace
- Partition-aware addressing (single-path partition keys)
- Stored procedures backed by Python handlers
- Fault and latency injection for testing retry and cancellation
"""

import asyncio
import copy
import inspect
import re
import time
import uuid
from collections import deque
from typing import Any, AsyncIterator, Callable, Optional, Union

from azure.core import MatchConditions
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosHttpResponseError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)


ProcedureHandler = Callable[..., Any]

_FILTER = re.compile(r"c\.(\w+)\s*=\s*(@\w+)")


def http_error(status_code: int, message: str = "") -> CosmosHttpResponseError:
    """SDK exception matching what the service raises for a status code."""
    error_cls = {
        404: CosmosResourceNotFoundError,
        409: CosmosResourceExistsError,
        412: CosmosAccessConditionFailedError,
    }.get(status_code, CosmosHttpResponseError)
    return error_cls(status_code=status_code, message=message or f"Mock error {status_code}")


def _partition_value(path: str, body: dict[str, Any]) -> Any:
    value: Any = body
    for part in path.strip("/").split("/"):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


class MockCollection:
    """Internal state of one collection."""

    def __init__(self, collection_id: str, partition_key_path: str):
        self.id = collection_id
        self.partition_key_path = partition_key_path
        self.items: dict[tuple[Any, str], dict[str, Any]] = {}
        self.procedures: dict[str, dict[str, Any]] = {}

    def partition_of(self, body: dict[str, Any]) -> Any:
        return _partition_value(self.partition_key_path, body)

    def stamp(self, body: dict[str, Any], link: str) -> dict[str, Any]:
        stored = copy.deepcopy(body)
        stored.update({
            "_rid": uuid.uuid4().hex[:12],
            "_self": link,
            "_etag": f'"{uuid.uuid4()}"',
            "_attachments": "attachments/",
            "_ts": int(time.time()),
        })
        return stored


class MockScriptsProxy:
    """Stored procedure operations of a mock container."""

    def __init__(self, container: "MockContainerProxy"):
        self._container = container

    async def create_stored_procedure(self, body: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        collection = await self._container._collection()
        if body["id"] in collection.procedures:
            raise http_error(409, f"Stored procedure {body['id']} already exists")
        stored = collection.stamp(body, f"{self._container.link}/sprocs/{body['id']}")
        collection.procedures[body["id"]] = stored
        return copy.deepcopy(stored)

    async def replace_stored_procedure(
        self, sproc: str, body: dict[str, Any], **kwargs: Any
    ) -> dict[str, Any]:
        collection = await self._container._collection()
        if sproc not in collection.procedures:
            raise http_error(404, f"Stored procedure {sproc} not found")
        stored = collection.stamp(body, f"{self._container.link}/sprocs/{sproc}")
        collection.procedures[sproc] = stored
        return copy.deepcopy(stored)

    async def get_stored_procedure(self, sproc: str, **kwargs: Any) -> dict[str, Any]:
        collection = await self._container._collection()
        if sproc not in collection.procedures:
            raise http_error(404, f"Stored procedure {sproc} not found")
        return copy.deepcopy(collection.procedures[sproc])

    async def execute_stored_procedure(
        self,
        sproc: str,
        partition_key: Any = None,
        params: Optional[list[Any]] = None,
        **kwargs: Any,
    ) -> Any:
        collection = await self._container._collection()
        if sproc not in collection.procedures:
            raise http_error(404, f"Stored procedure {sproc} not found")

        handler = self._container._client._procedure_handlers.get(sproc)
        if handler is None:
            raise http_error(400, f"No handler registered for stored procedure {sproc}")

        result = handler(self._container, partition_key, *(params or []))
        if inspect.isawaitable(result):
            result = await result
        return copy.deepcopy(result)


class MockContainerProxy:
    """Document operations of a mock collection."""

    def __init__(self, client: "MockCosmosClient", database_id: str, container_id: str):
        self._client = client
        self.database_id = database_id
        self.id = container_id
        self.link = f"dbs/{database_id}/colls/{container_id}"
        self.scripts = MockScriptsProxy(self)

    async def _collection(self) -> MockCollection:
        await self._client._before_request()
        collections = self._client._databases.get(self.database_id)
        if collections is None or self.id not in collections:
            raise http_error(404, f"Collection {self.link} not found")
        return collections[self.id]

    async def read(self, **kwargs: Any) -> dict[str, Any]:
        collection = await self._collection()
        return {
            "id": collection.id,
            "partitionKey": {"paths": [collection.partition_key_path], "kind": "Hash"},
        }

    async def create_item(self, body: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        collection = await self._collection()
        key = (collection.partition_of(body), body["id"])
        if key in collection.items:
            raise http_error(409, f"Document {body['id']} already exists")
        collection.items[key] = collection.stamp(body, f"{self.link}/docs/{body['id']}")
        return copy.deepcopy(collection.items[key])

    async def read_item(self, item: str, partition_key: Any, **kwargs: Any) -> dict[str, Any]:
        collection = await self._collection()
        stored = collection.items.get((partition_key, item))
        if stored is None:
            raise http_error(404, f"Document {item} not found")
        return copy.deepcopy(stored)

    async def replace_item(
        self,
        item: str,
        body: dict[str, Any],
        etag: Optional[str] = None,
        match_condition: Optional[MatchConditions] = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        collection = await self._collection()
        key = (collection.partition_of(body), item)
        current = collection.items.get(key)
        if current is None:
            raise http_error(404, f"Document {item} not found")
        if match_condition == MatchConditions.IfNotModified and etag != current["_etag"]:
            raise http_error(412, "Precondition failed: version token mismatch")
        collection.items[key] = collection.stamp(body, current["_self"])
        return copy.deepcopy(collection.items[key])

    async def upsert_item(self, body: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        collection = await self._collection()
        key = (collection.partition_of(body), body["id"])
        collection.items[key] = collection.stamp(body, f"{self.link}/docs/{body['id']}")
        return copy.deepcopy(collection.items[key])

    async def delete_item(self, item: str, partition_key: Any, **kwargs: Any) -> None:
        collection = await self._collection()
        if collection.items.pop((partition_key, item), None) is None:
            raise http_error(404, f"Document {item} not found")

    def query_items(
        self,
        query: str,
        parameters: Optional[list[dict[str, Any]]] = None,
        partition_key: Any = None,
        max_item_count: Optional[int] = None,
        **kwargs: Any,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Evaluate a query.

        Only conjunctions of `c.<field> = @<param>` are understood; any
        other predicate text is ignored.
        """
        values = {p["name"]: p["value"] for p in parameters or []}
        self._client.query_page_sizes.append(max_item_count)
        filters = [(field, values.get(param)) for field, param in _FILTER.findall(query)]
        return self._iterate(filters, partition_key)

    async def _iterate(
        self, filters: list[tuple[str, Any]], partition_key: Any
    ) -> AsyncIterator[dict[str, Any]]:
        collection = await self._collection()
        for (pk, _), stored in list(collection.items.items()):
            if partition_key is not None and pk != partition_key:
                continue
            if all(stored.get(field) == value for field, value in filters):
                yield copy.deepcopy(stored)


class MockDatabaseProxy:
    """Collection management of a mock database."""

    def __init__(self, client: "MockCosmosClient", database_id: str):
        self._client = client
        self.id = database_id

    def get_container_client(self, container: str) -> MockContainerProxy:
        return MockContainerProxy(self._client, self.id, container)

    async def create_container_if_not_exists(
        self,
        id: str,
        partition_key: Any,
        offer_throughput: Optional[int] = None,
        **kwargs: Any,
    ) -> MockContainerProxy:
        await self._client._before_request()
        collections = self._client._databases.get(self.id)
        if collections is None:
            raise http_error(404, f"Database {self.id} not found")
        if id not in collections:
            path = partition_key["paths"][0]
            collections[id] = MockCollection(id, path)
            self._client.throughput[(self.id, id)] = offer_throughput
        return self.get_container_client(id)

    async def delete_container(self, container: str, **kwargs: Any) -> None:
        await self._client._before_request()
        collections = self._client._databases.get(self.id)
        if collections is None or collections.pop(container, None) is None:
            raise http_error(404, f"Collection {container} not found")


class MockCosmosClient:
    """
    Mock implementation of the async Cosmos client for testing.

    Usage:
        client = MockCosmosClient()
        registry = ConnectionRegistry(client_factory=lambda descriptor: client)

        client.fail_next(429)                 # next request is throttled
        client.register_procedure_handler(
            "bumpCounter", lambda container, pk, amount: amount + 1
        )
    """

    def __init__(self, endpoint: Optional[str] = None, latency: float = 0.0):
        """
        Initialize mock client.

        Args:
            endpoint: Account URI this client pretends to talk to.
            latency: Seconds each request sleeps before completing.
        """
        self.endpoint = endpoint
        self.latency = latency
        self.closed = False
        self.request_count = 0
        self.query_page_sizes: list[Optional[int]] = []
        self.throughput: dict[tuple[str, str], Optional[int]] = {}
        self._databases: dict[str, dict[str, MockCollection]] = {}
        self._faults: deque[BaseException] = deque()
        self._procedure_handlers: dict[str, ProcedureHandler] = {}

    async def _before_request(self) -> None:
        if self.closed:
            raise RuntimeError("Client is closed")
        self.request_count += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._faults:
            raise self._faults.popleft()

    def get_database_client(self, database: str) -> MockDatabaseProxy:
        return MockDatabaseProxy(self, database)

    async def create_database_if_not_exists(self, id: str, **kwargs: Any) -> MockDatabaseProxy:
        await self._before_request()
        self._databases.setdefault(id, {})
        return self.get_database_client(id)

    async def close(self) -> None:
        self.closed = True

    # =========================================
    # Testing utilities
    # =========================================

    def fail_next(self, error: Union[int, BaseException], times: int = 1) -> None:
        """Make the next `times` requests fail with a status code or exception."""
        for _ in range(times):
            self._faults.append(http_error(error) if isinstance(error, int) else error)

    def register_procedure_handler(self, procedure_id: str, handler: ProcedureHandler) -> None:
        """
        Back a stored procedure with a Python callable.

        The handler receives (container, partition_key, *params) and may be
        sync or async.
        """
        self._procedure_handlers[procedure_id] = handler

    def collection(self, database_id: str, collection_id: str) -> Optional[MockCollection]:
        """Direct access to collection state (for assertions)."""
        return self._databases.get(database_id, {}).get(collection_id)
