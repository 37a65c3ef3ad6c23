"""
Connection descriptor for a Cosmos DB account and collection.

A descriptor says how to reach one collection (endpoint, key, database,
collection, read-region preference, timeout, retry budget) and yields the
fingerprint under which its client is pooled.
"""

import dataclasses
import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

from core.storage.errors import InvalidRequest


if TYPE_CHECKING:
    from core.config import Settings


DEFAULT_REQUEST_TIMEOUT = timedelta(minutes=1)
PROVIDER_DEFAULT = -1


def normalize_endpoint(uri: str) -> str:
    """Canonical form of an account URI: lower-case scheme/host, '/' path when empty."""
    if not uri or not uri.strip():
        raise InvalidRequest("Endpoint URI is required")

    parts = urlsplit(uri.strip())
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        raise InvalidRequest(f"Endpoint must be an absolute http(s) URI: {uri!r}")

    netloc = parts.hostname.lower()
    if parts.port is not None:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme.lower(), netloc, parts.path or "/", parts.query, ""))


@dataclass(frozen=True)
class ConnectionDescriptor:
    """
    Immutable description of one Cosmos DB collection.

    Two descriptors for different collections in the same account share a
    fingerprint and therefore a pooled client.

    Usage:
        descriptor = ConnectionDescriptor(
            endpoint="https://myaccount.documents.azure.com:443/",
            primary_key=key,
            database_name="durabletask",
            collection_name="taskhub",
            preferred_locations=["West US 2", "East US"],
        )
        descriptor.fingerprint()  # 'https://myaccount.documents.azure.com:443/-Primary'
    """

    # Documents larger than this should be externalized by the caller
    MAX_DOCUMENT_SIZE = (512 + 1024) * 1024  # 1.5 MiB

    endpoint: str
    primary_key: str = field(repr=False)
    database_name: str
    collection_name: str
    preferred_locations: tuple[str, ...] = ()
    request_timeout: timedelta = DEFAULT_REQUEST_TIMEOUT
    concurrent_update_retry_count: int = PROVIDER_DEFAULT
    query_max_item_count: int = PROVIDER_DEFAULT
    credential_role: str = "Primary"

    def __post_init__(self) -> None:
        if not self.database_name:
            raise InvalidRequest("Database name is required")
        if not self.collection_name:
            raise InvalidRequest("Collection name is required")
        if self.request_timeout is None:
            object.__setattr__(self, "request_timeout", DEFAULT_REQUEST_TIMEOUT)
        elif not isinstance(self.request_timeout, timedelta):
            raise InvalidRequest(
                f"Request timeout must be a timedelta, got {type(self.request_timeout).__name__}"
            )
        elif self.request_timeout <= timedelta(0):
            raise InvalidRequest("Request timeout must be positive")

        object.__setattr__(self, "endpoint", normalize_endpoint(self.endpoint))
        locations: Optional[Iterable[str]] = self.preferred_locations
        if isinstance(locations, str):
            # A single region name, not a sequence of characters
            locations = (locations,)
        object.__setattr__(self, "preferred_locations", tuple(locations or ()))

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ConnectionDescriptor":
        """Build a descriptor from application settings."""
        return cls(
            endpoint=settings.cosmos_endpoint,
            primary_key=settings.cosmos_key,
            database_name=settings.cosmos_database,
            collection_name=settings.cosmos_collection,
            preferred_locations=tuple(settings.cosmos_preferred_locations),
            request_timeout=timedelta(seconds=settings.cosmos_request_timeout_seconds),
            concurrent_update_retry_count=settings.cosmos_concurrent_update_retry_count,
            query_max_item_count=settings.cosmos_query_max_item_count,
        )

    def fingerprint(self) -> str:
        """
        Key identifying a reusable client.

        Depends only on the endpoint and the credential role, so it is
        stable across restarts and shared by every collection in the account.
        """
        return f"{self.endpoint}-{self.credential_role}"

    def with_collection(self, collection_name: str) -> "ConnectionDescriptor":
        """Copy of this descriptor bound to another collection."""
        return dataclasses.replace(self, collection_name=collection_name)

    def with_database(self, database_name: str) -> "ConnectionDescriptor":
        """Copy of this descriptor bound to another database."""
        return dataclasses.replace(self, database_name=database_name)

    @property
    def database_link(self) -> str:
        return f"dbs/{self.database_name}"

    @property
    def collection_link(self) -> str:
        return f"{self.database_link}/colls/{self.collection_name}"

    def document_link(self, document_id: str) -> str:
        return f"{self.collection_link}/docs/{document_id}"

    def stored_procedure_link(self, procedure_id: str) -> str:
        return f"{self.collection_link}/sprocs/{procedure_id}"

    @property
    def request_timeout_seconds(self) -> int:
        """Timeout rounded up to whole seconds, as the SDK expects."""
        return max(1, math.ceil(self.request_timeout.total_seconds()))
