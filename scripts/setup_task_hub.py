"""
Task hub setup script.

Creates the Cosmos DB database and task-hub collection from settings.
Run this before starting the application, or set COSMOS_CREATE_IF_MISSING.

Usage:
    python -m scripts.setup_task_hub
    python -m scripts.setup_task_hub --recreate
    python -m scripts.setup_task_hub --delete
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import settings
from core.logging import configure_logging, get_logger
from core.storage import ConnectionRegistry, DocumentStoreError, create_document_store
from manager.orchestrator import CosmosOrchestrationService
from manager.retry import retry_transient


logger = get_logger(__name__)


async def setup_task_hub(recreate: bool = False, delete: bool = False) -> None:
    """Provision (or drop) the configured task hub."""
    registry = ConnectionRegistry()
    service = CosmosOrchestrationService(create_document_store(settings, registry), settings)

    try:
        if delete:
            await retry_transient(service.delete, operation_name="delete_task_hub")
        else:
            await retry_transient(
                lambda: service.create(recreate=recreate),
                operation_name="create_task_hub",
            )
    finally:
        await registry.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Provision the Cosmos DB task hub")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--recreate", action="store_true", help="drop and recreate the collection")
    group.add_argument("--delete", action="store_true", help="drop the collection")
    args = parser.parse_args()

    configure_logging()
    logger.info(
        "Setting up task hub",
        endpoint=settings.cosmos_endpoint,
        database=settings.cosmos_database,
        collection=settings.cosmos_collection,
    )

    try:
        asyncio.run(setup_task_hub(recreate=args.recreate, delete=args.delete))
    except DocumentStoreError as e:
        logger.error("Task hub setup failed", error_type=type(e).__name__, error=str(e))
        return 1

    logger.info("Task hub setup complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
