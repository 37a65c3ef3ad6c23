"""
Tests for MockCosmosClient.

Verifies that the mock behaves like the SDK where the store depends on it.
"""

import pytest
from azure.cosmos import PartitionKey
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)
from azure.core import MatchConditions

from tools.cosmos_api import MockCosmosClient


@pytest.fixture
def mock_client():
    return MockCosmosClient()


async def make_container(client, path="/pk"):
    database = await client.create_database_if_not_exists("db")
    return await database.create_container_if_not_exists(id="coll", partition_key=PartitionKey(path=path))


@pytest.mark.asyncio
async def test_missing_database(mock_client):
    database = mock_client.get_database_client("nope")

    with pytest.raises(CosmosResourceNotFoundError):
        await database.create_container_if_not_exists(id="coll", partition_key=PartitionKey(path="/pk"))


@pytest.mark.asyncio
async def test_item_lifecycle(mock_client):
    container = await make_container(mock_client)

    created = await container.create_item(body={"id": "1", "pk": "a"})
    with pytest.raises(CosmosResourceExistsError):
        await container.create_item(body={"id": "1", "pk": "a"})

    replaced = await container.replace_item(
        item="1", body={"id": "1", "pk": "a", "v": 2},
        etag=created["_etag"], match_condition=MatchConditions.IfNotModified,
    )
    assert replaced["_etag"] != created["_etag"]

    with pytest.raises(CosmosAccessConditionFailedError):
        await container.replace_item(
            item="1", body={"id": "1", "pk": "a"},
            etag=created["_etag"], match_condition=MatchConditions.IfNotModified,
        )

    await container.delete_item(item="1", partition_key="a")
    with pytest.raises(CosmosResourceNotFoundError):
        await container.read_item(item="1", partition_key="a")


@pytest.mark.asyncio
async def test_nested_partition_key_path(mock_client):
    container = await make_container(mock_client, path="/meta/tenant")

    await container.create_item(body={"id": "1", "meta": {"tenant": "t1"}})

    assert (await container.read_item(item="1", partition_key="t1"))["id"] == "1"
    assert (await container.read())["partitionKey"]["paths"] == ["/meta/tenant"]


@pytest.mark.asyncio
async def test_fault_injection(mock_client):
    container = await make_container(mock_client)
    mock_client.fail_next(404)

    with pytest.raises(CosmosResourceNotFoundError):
        await container.upsert_item(body={"id": "1", "pk": "a"})

    await container.upsert_item(body={"id": "1", "pk": "a"})


@pytest.mark.asyncio
async def test_closed_client_rejects_requests(mock_client):
    await mock_client.close()

    with pytest.raises(RuntimeError):
        await mock_client.create_database_if_not_exists("db")
