"""
Process-wide pool of Cosmos DB clients keyed by descriptor fingerprint.

One client serves every collection of an account. The registry is created
by the host at startup, handed to each store, and closed at shutdown.
"""

from typing import Any, Callable, Optional

from azure.cosmos.aio import CosmosClient

from core.logging import get_logger
from core.storage.descriptor import ConnectionDescriptor


logger = get_logger(__name__)

ClientFactory = Callable[[ConnectionDescriptor], Any]


def create_cosmos_client(descriptor: ConnectionDescriptor) -> CosmosClient:
    """
    Build an async Cosmos client for a descriptor.

    The client is not opened here. Opening would fetch metadata for every
    partition of every collection in the account and open a connection to
    each; a process only touches a few collections, so that cost is left
    to the first real request.
    """
    return CosmosClient(
        descriptor.endpoint,
        credential=descriptor.primary_key,
        preferred_locations=list(descriptor.preferred_locations),
        connection_timeout=descriptor.request_timeout_seconds,
    )


class ConnectionRegistry:
    """
    Fingerprint -> client cache with atomic get-or-create.

    resolve() never takes a lock: the map is read without one, and a new
    client is published with dict.setdefault, which is atomic. Racing
    callers may each construct a candidate, but only the first published
    one is ever returned; the others hold no open handles and are dropped.

    Usage:
        registry = ConnectionRegistry()
        client = registry.resolve(descriptor)
        ...
        await registry.close()  # host shutdown only
    """

    def __init__(self, client_factory: Optional[ClientFactory] = None):
        """
        Initialize the registry.

        Args:
            client_factory: Builds a client for a descriptor.
                Defaults to create_cosmos_client.
        """
        self._client_factory = client_factory or create_cosmos_client
        self._clients: dict[str, Any] = {}

    def resolve(self, descriptor: ConnectionDescriptor) -> Any:
        """Return the pooled client for the descriptor, creating it on first use."""
        key = descriptor.fingerprint()

        client = self._clients.get(key)
        if client is not None:
            return client

        candidate = self._client_factory(descriptor)
        client = self._clients.setdefault(key, candidate)

        if client is candidate:
            logger.info(
                "Pooled new database client",
                endpoint=descriptor.endpoint,
                pooled_clients=len(self._clients),
            )
        else:
            logger.debug(
                "Discarded duplicate client from concurrent resolve",
                endpoint=descriptor.endpoint,
            )
        return client

    @property
    def client_count(self) -> int:
        """Number of distinct pooled clients."""
        return len(self._clients)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._clients

    async def close(self) -> None:
        """Close every pooled client. Called by the host's shutdown sequence."""
        clients = list(self._clients.values())
        self._clients.clear()

        for client in clients:
            close = getattr(client, "close", None)
            if close is not None:
                await close()

        logger.info("Connection registry closed", closed_clients=len(clients))
