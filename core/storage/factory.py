"""
Storage factory for creating document store instances.

This module provides factory functions to build the descriptor and the
store from configuration, so the host only wires the shared registry.
"""

from typing import TYPE_CHECKING, Optional

from core.logging import get_logger
from core.storage.base import BaseDocumentStore
from core.storage.cosmos import CosmosDocumentStore
from core.storage.descriptor import ConnectionDescriptor
from core.storage.registry import ConnectionRegistry


if TYPE_CHECKING:
    from core.config import Settings


logger = get_logger(__name__)


def create_connection_descriptor(
    settings: "Settings",
    collection_name: Optional[str] = None,
) -> ConnectionDescriptor:
    """
    Create a connection descriptor from settings.

    Args:
        settings: Application settings
        collection_name: Overrides the configured collection

    Returns:
        Immutable descriptor
    """
    descriptor = ConnectionDescriptor.from_settings(settings)
    if collection_name:
        descriptor = descriptor.with_collection(collection_name)
    return descriptor


def create_document_store(
    settings: "Settings",
    registry: ConnectionRegistry,
    collection_name: Optional[str] = None,
) -> BaseDocumentStore:
    """
    Create a document store bound to the configured collection.

    Args:
        settings: Application settings
        registry: Process-wide client pool owned by the host
        collection_name: Overrides the configured collection

    Returns:
        Store instance; no request is issued until the first operation
    """
    descriptor = create_connection_descriptor(settings, collection_name)

    logger.info(
        "Creating Cosmos document store",
        endpoint=descriptor.endpoint,
        database=descriptor.database_name,
        collection=descriptor.collection_name,
    )
    return CosmosDocumentStore(descriptor, registry)
