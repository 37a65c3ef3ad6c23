"""
Retry loops around document store operations.

The store only classifies errors; the loops live here, on the engine side.
Two policies:
- retry_transient: fixed backoff while should_retry() holds
- update_with_retry: read / mutate / conditional replace, re-read on VersionConflict
"""

import asyncio
from datetime import timedelta
from typing import Awaitable, Callable, Optional, TypeVar

from core.logging import get_logger
from core.storage.base import RETRY_INTERVAL, BaseDocumentStore, Document, PartitionKeyValue
from core.storage.errors import VersionConflict, should_retry


logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def resolve_attempts(retry_count: int) -> int:
    """Attempts allowed for a configured retry count; -1 means the default."""
    if retry_count < 0:
        return DEFAULT_MAX_ATTEMPTS
    return retry_count + 1


async def retry_transient(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval: timedelta = RETRY_INTERVAL,
    operation_name: str = "operation",
) -> T:
    """
    Run an async operation, retrying transient failures.

    Args:
        operation: Zero-argument coroutine factory
        max_attempts: Total attempts including the first
        interval: Fixed delay between attempts

    Returns:
        The operation's result

    Raises:
        The last error once attempts are exhausted, or the first terminal error
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            if not should_retry(e) or attempt >= max_attempts:
                raise
            logger.warning(
                "Retrying after transient error",
                operation=operation_name,
                attempt=attempt,
                max_attempts=max_attempts,
                error_type=type(e).__name__,
                delay_seconds=interval.total_seconds(),
            )
            attempt += 1
            await asyncio.sleep(interval.total_seconds())


async def update_with_retry(
    store: BaseDocumentStore,
    document_id: str,
    mutate: Callable[[Document], Document],
    *,
    partition_key: Optional[PartitionKeyValue] = None,
    max_attempts: Optional[int] = None,
) -> Document:
    """
    Apply `mutate` to a document under optimistic concurrency.

    Each attempt reads the current document, applies the mutation and
    replaces it conditioned on the version that was read. A concurrent
    writer causes VersionConflict, after which the document is re-read.

    Args:
        store: Store holding the document
        document_id: Document to update
        mutate: Returns the new body given the current one
        partition_key: Partition of the document
        max_attempts: Defaults to the descriptor's concurrent-update budget

    Raises:
        VersionConflict: If every attempt lost the race
    """
    if max_attempts is None:
        descriptor = getattr(store, "descriptor", None)
        retry_count = descriptor.concurrent_update_retry_count if descriptor else -1
        max_attempts = resolve_attempts(retry_count)

    attempt = 1
    while True:
        current = await store.read(document_id, partition_key)
        updated = mutate(dict(current))
        try:
            return await store.replace(document_id, updated, expected_version=current.get("_etag"))
        except VersionConflict:
            if attempt >= max_attempts:
                logger.warning(
                    "Concurrent update retries exhausted",
                    document_id=document_id,
                    attempts=attempt,
                )
                raise
            logger.debug(
                "Concurrent update detected, re-reading",
                document_id=document_id,
                attempt=attempt,
            )
            attempt += 1
