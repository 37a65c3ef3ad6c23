"""
Tests for error translation and retry classification.
"""

import asyncio

import aiohttp
import pytest
from azure.core.exceptions import ServiceRequestError, ServiceResponseError
from azure.cosmos.exceptions import CosmosHttpResponseError

from core.storage import (
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
from core.storage.errors import translate_errors
from tools.cosmos_api import http_error


@pytest.mark.parametrize("status_code", [429, 503])
def test_throttling_and_unavailable_are_retriable(status_code):
    assert should_retry(http_error(status_code))


@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 409, 412, 413])
def test_other_statuses_are_terminal(status_code):
    assert not should_retry(http_error(status_code))


@pytest.mark.parametrize(
    "error",
    [
        ServiceRequestError("name resolution failed"),
        ServiceResponseError("connection reset"),
        aiohttp.ClientConnectionError("reset by peer"),
        ConnectionResetError(),
        asyncio.TimeoutError(),
    ],
)
def test_transport_errors_are_retriable(error):
    assert should_retry(error)


def test_translated_errors_keep_classification():
    assert should_retry(Throttled("slow down", status_code=429))
    assert should_retry(Unavailable("down", status_code=503))
    assert should_retry(TransportFailure("socket"))
    assert not should_retry(NotFound("gone", status_code=404))
    assert not should_retry(Conflict("dup", status_code=409))
    assert not should_retry(Canceled("stop"))
    assert not should_retry(ValueError("unrelated"))


@pytest.mark.parametrize(
    "status_code, expected",
    [
        (400, InvalidRequest),
        (404, NotFound),
        (409, Conflict),
        (412, VersionConflict),
        (429, Throttled),
        (503, Unavailable),
    ],
)
def test_translate_maps_status_codes(status_code, expected):
    with pytest.raises(expected) as exc_info:
        with translate_errors("read", document_id="d1"):
            raise http_error(status_code)

    assert exc_info.value.status_code == status_code
    assert isinstance(exc_info.value.__cause__, CosmosHttpResponseError)


def test_translate_unmapped_status_is_generic():
    with pytest.raises(DocumentStoreError) as exc_info:
        with translate_errors("read"):
            raise http_error(403)

    assert type(exc_info.value) is DocumentStoreError
    assert exc_info.value.status_code == 403


def test_translate_transport_failure():
    with pytest.raises(TransportFailure):
        with translate_errors("create"):
            raise ServiceRequestError("dns lookup failed")


def test_translate_leaves_other_errors_alone():
    with pytest.raises(KeyError):
        with translate_errors("create"):
            raise KeyError("id")


def test_invalid_request_is_a_value_error():
    assert issubclass(InvalidRequest, ValueError)
