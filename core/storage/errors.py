"""
Error taxonomy for the document access layer.

SDK exceptions are translated into a small hierarchy so callers can apply
the retry classification without depending on azure-cosmos types:

- NotFound, Conflict, VersionConflict, InvalidRequest: terminal
- Throttled, Unavailable, TransportFailure: transient, safe to retry
- Canceled: the caller's cancellation signal fired
"""

import asyncio
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import aiohttp
from azure.core.exceptions import (
    HttpResponseError,
    ServiceRequestError,
    ServiceResponseError,
)

from core.logging import get_logger


logger = get_logger(__name__)

RETRIABLE_STATUS_CODES = frozenset({429, 503})

TRANSPORT_ERRORS = (
    ServiceRequestError,
    ServiceResponseError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
)


class DocumentStoreError(Exception):
    """Base exception for document store operations."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFound(DocumentStoreError):
    """Target document, procedure or collection doesn't exist."""
    pass


class Conflict(DocumentStoreError):
    """A resource with the same id (and partition key) already exists."""
    pass


class VersionConflict(DocumentStoreError):
    """Stored version token no longer matches the expected one."""
    pass


class Throttled(DocumentStoreError):
    """Request rate too large (429)."""
    pass


class Unavailable(DocumentStoreError):
    """Service unavailable (503)."""
    pass


class TransportFailure(DocumentStoreError):
    """Connection-level failure before a response was received."""
    pass


class Canceled(DocumentStoreError):
    """Operation aborted by the caller's cancellation signal."""
    pass


class InvalidRequest(DocumentStoreError, ValueError):
    """Malformed input, rejected locally or by the service (400)."""
    pass


_STATUS_TO_ERROR: dict[int, type[DocumentStoreError]] = {
    400: InvalidRequest,
    404: NotFound,
    409: Conflict,
    412: VersionConflict,
    429: Throttled,
    503: Unavailable,
}


def from_status(status_code: Optional[int], message: str) -> DocumentStoreError:
    """Build the taxonomy error for an HTTP status code."""
    error_cls = _STATUS_TO_ERROR.get(status_code, DocumentStoreError)
    return error_cls(message, status_code=status_code)


def should_retry(error: BaseException) -> bool:
    """
    Classify an error as transient.

    Rate limiting, service unavailability and transport failures are
    retriable. Everything else (conflict, not found, bad request,
    authorization, cancellation) is terminal. Accepts both translated
    errors and raw SDK exceptions.
    """
    if isinstance(error, (Throttled, Unavailable, TransportFailure)):
        return True
    if isinstance(error, DocumentStoreError):
        return False
    if isinstance(error, HttpResponseError):
        return error.status_code in RETRIABLE_STATUS_CODES
    return isinstance(error, TRANSPORT_ERRORS)


@contextmanager
def translate_errors(operation: str, **context: Any) -> Iterator[None]:
    """
    Re-raise SDK exceptions as DocumentStoreError subclasses.

    The original exception is chained as __cause__. Transient errors are
    logged at warning level; terminal ones at debug, since callers often
    expect them (existence checks, upsert fallbacks).
    """
    try:
        yield
    except DocumentStoreError:
        raise
    except HttpResponseError as e:
        error = from_status(e.status_code, f"{operation} failed: {e.message}")
        _log(operation, error, context)
        raise error from e
    except TRANSPORT_ERRORS as e:
        error = TransportFailure(f"{operation} failed: {e!r}")
        _log(operation, error, context)
        raise error from e


def _log(operation: str, error: DocumentStoreError, context: dict[str, Any]) -> None:
    if should_retry(error):
        logger.warning(
            "Transient database error",
            operation=operation,
            error_type=type(error).__name__,
            status_code=error.status_code,
            **context,
        )
    else:
        logger.debug(
            "Database request failed",
            operation=operation,
            error_type=type(error).__name__,
            status_code=error.status_code,
            **context,
        )
