"""
Tests for ConnectionDescriptor.
"""

import dataclasses
from datetime import timedelta

import pytest

from core.storage import ConnectionDescriptor, InvalidRequest
from core.storage.descriptor import normalize_endpoint


def make_descriptor(**overrides) -> ConnectionDescriptor:
    values = {
        "endpoint": "https://acct.documents.azure.com:443/",
        "primary_key": "secret",
        "database_name": "durabletask",
        "collection_name": "taskhub",
    }
    values.update(overrides)
    return ConnectionDescriptor(**values)


def test_defaults():
    descriptor = make_descriptor()

    assert descriptor.request_timeout == timedelta(minutes=1)
    assert descriptor.concurrent_update_retry_count == -1
    assert descriptor.query_max_item_count == -1
    assert descriptor.preferred_locations == ()
    assert ConnectionDescriptor.MAX_DOCUMENT_SIZE == 1536 * 1024


def test_fingerprint_ignores_collection_and_locations():
    first = make_descriptor(collection_name="orchestrations", preferred_locations=["West US"])
    second = make_descriptor(collection_name="activities", preferred_locations=["East US"])

    assert first.fingerprint() == second.fingerprint()
    assert first.fingerprint() == "https://acct.documents.azure.com:443/-Primary"


def test_fingerprint_differs_per_endpoint():
    first = make_descriptor(endpoint="https://one.documents.azure.com/")
    second = make_descriptor(endpoint="https://two.documents.azure.com/")

    assert first.fingerprint() != second.fingerprint()


def test_fingerprint_does_not_leak_key():
    descriptor = make_descriptor(primary_key="super-secret")

    assert "super-secret" not in descriptor.fingerprint()
    assert "super-secret" not in repr(descriptor)


def test_endpoint_is_normalized():
    assert normalize_endpoint("HTTPS://Acct.Documents.Azure.com") == "https://acct.documents.azure.com/"
    assert make_descriptor(endpoint="https://ACCT.documents.azure.com").fingerprint() == (
        make_descriptor(endpoint="https://acct.documents.azure.com/").fingerprint()
    )


@pytest.mark.parametrize("endpoint", ["", "not a uri", "ftp://acct/", "/relative/path"])
def test_invalid_endpoint_rejected(endpoint):
    with pytest.raises(InvalidRequest):
        make_descriptor(endpoint=endpoint)


def test_missing_names_rejected():
    with pytest.raises(InvalidRequest):
        make_descriptor(database_name="")
    with pytest.raises(InvalidRequest):
        make_descriptor(collection_name="")


def test_descriptor_is_immutable():
    descriptor = make_descriptor()

    with pytest.raises(dataclasses.FrozenInstanceError):
        descriptor.collection_name = "other"


def test_with_collection_returns_copy():
    descriptor = make_descriptor(preferred_locations=["West US", "East US"])
    other = descriptor.with_collection("history")

    assert other.collection_name == "history"
    assert descriptor.collection_name == "taskhub"
    assert other.preferred_locations == ("West US", "East US")
    assert other.fingerprint() == descriptor.fingerprint()


def test_with_database_keeps_fingerprint():
    descriptor = make_descriptor()
    other = descriptor.with_database("archive")

    assert other.database_name == "archive"
    assert other.collection_name == "taskhub"
    assert other.collection_link == "dbs/archive/colls/taskhub"
    assert descriptor.database_name == "durabletask"
    assert other.fingerprint() == descriptor.fingerprint()


def test_single_preferred_location_string():
    descriptor = make_descriptor(preferred_locations="West US")

    assert descriptor.preferred_locations == ("West US",)


@pytest.mark.parametrize("timeout", [30, 1.5, "60"])
def test_request_timeout_must_be_timedelta(timeout):
    with pytest.raises(InvalidRequest):
        make_descriptor(request_timeout=timeout)


def test_addressing_links():
    descriptor = make_descriptor()

    assert descriptor.database_link == "dbs/durabletask"
    assert descriptor.collection_link == "dbs/durabletask/colls/taskhub"
    assert descriptor.document_link("i-1") == "dbs/durabletask/colls/taskhub/docs/i-1"
    assert descriptor.stored_procedure_link("p1") == "dbs/durabletask/colls/taskhub/sprocs/p1"


def test_request_timeout_rounds_up():
    assert make_descriptor(request_timeout=timedelta(milliseconds=1500)).request_timeout_seconds == 2
    assert make_descriptor().request_timeout_seconds == 60


def test_from_settings(test_settings):
    descriptor = ConnectionDescriptor.from_settings(test_settings)

    assert descriptor.database_name == "durabletask"
    assert descriptor.collection_name == "taskhub"
    assert descriptor.request_timeout == timedelta(seconds=60)
    assert descriptor.primary_key == test_settings.cosmos_key
