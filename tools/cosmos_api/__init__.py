"""
Cosmos DB API tools.

Exports the in-memory client used in tests and local development.
"""

from tools.cosmos_api.mock_client import MockCosmosClient, http_error

__all__ = ["MockCosmosClient", "http_error"]
