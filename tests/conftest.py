"""
Pytest configuration and fixtures.
"""

import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from core.config import Settings
from core.storage import ConnectionDescriptor, ConnectionRegistry, CosmosDocumentStore
from tools.cosmos_api import MockCosmosClient


TEST_ENDPOINT = "https://unit-test.documents.azure.com:443/"
TEST_KEY = "dGVzdC1rZXk="


@pytest.fixture
def test_settings() -> Settings:
    """Settings pointing at a fake account, ignoring any local .env."""
    return Settings(
        _env_file=None,
        cosmos_endpoint=TEST_ENDPOINT,
        cosmos_key=TEST_KEY,
        cosmos_database="durabletask",
        cosmos_collection="taskhub",
        cosmos_partition_key="instanceId",
    )


@pytest.fixture
def descriptor() -> ConnectionDescriptor:
    return ConnectionDescriptor(
        endpoint=TEST_ENDPOINT,
        primary_key=TEST_KEY,
        database_name="durabletask",
        collection_name="taskhub",
    )


@pytest.fixture
def cosmos_client() -> MockCosmosClient:
    """One in-memory account shared by every store in a test."""
    return MockCosmosClient(endpoint=TEST_ENDPOINT)


@pytest.fixture
def registry(cosmos_client) -> ConnectionRegistry:
    return ConnectionRegistry(client_factory=lambda descriptor: cosmos_client)


@pytest_asyncio.fixture
async def store(descriptor, registry) -> CosmosDocumentStore:
    """Store bound to a provisioned collection partitioned on /instanceId."""
    store = CosmosDocumentStore(descriptor, registry)
    await store.create_collection_if_missing("instanceId")
    return store
