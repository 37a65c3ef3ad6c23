"""
Storage layer for orchestration documents in Azure Cosmos DB.

Provides:
- ConnectionDescriptor: how to reach one collection, and its pooling fingerprint
- ConnectionRegistry: one shared client per fingerprint
- CosmosDocumentStore: document CRUD, optimistic concurrency, stored procedures
- Error taxonomy and the retry classification for transient failures
"""

from core.storage.base import (
    RETRY_INTERVAL,
    BaseDocumentStore,
    StoredProcedureRecord,
    strip_system_properties,
    version_of,
)
from core.storage.cosmos import CosmosDocumentStore
from core.storage.descriptor import ConnectionDescriptor
from core.storage.errors import (
    Canceled,
    Conflict,
    DocumentStoreError,
    InvalidRequest,
    NotFound,
    Throttled,
    TransportFailure,
    Unavailable,
    VersionConflict,
    should_retry,
)
from core.storage.factory import (
    create_connection_descriptor,
    create_document_store,
)
from core.storage.registry import ConnectionRegistry, create_cosmos_client

__all__ = [
    # Abstract interface and records
    "BaseDocumentStore",
    "StoredProcedureRecord",
    "RETRY_INTERVAL",
    "strip_system_properties",
    "version_of",
    # Implementations
    "ConnectionDescriptor",
    "ConnectionRegistry",
    "CosmosDocumentStore",
    "create_cosmos_client",
    # Factory functions
    "create_connection_descriptor",
    "create_document_store",
    # Errors
    "DocumentStoreError",
    "NotFound",
    "Conflict",
    "VersionConflict",
    "Throttled",
    "Unavailable",
    "TransportFailure",
    "Canceled",
    "InvalidRequest",
    "should_retry",
]
