"""
Azure Cosmos DB session management for document storage.

Uses the async Cosmos DB SDK with DefaultAzureCredential for RBAC authentication,
or a connection string for the local emulator. Each aggregate lives in its own
container and is written back whole, guarded by its etag.
"""

import logging
from typing import Any

from azure.core import MatchConditions
from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)
from azure.identity.aio import DefaultAzureCredential

from core.config import settings
from core.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

# Container names
DEBATES_CONTAINER = "debates"
SURVEYS_CONTAINER = "surveys"
RESPONSES_CONTAINER = "responses"

# Container definitions: partition key path and unique keys (scoped per partition)
CONTAINER_DEFINITIONS: dict[str, dict[str, Any]] = {
    DEBATES_CONTAINER: {"partition_key": "/id", "unique_keys": []},
    SURVEYS_CONTAINER: {"partition_key": "/id", "unique_keys": []},
    # One live response per respondent per survey
    RESPONSES_CONTAINER: {"partition_key": "/survey_id", "unique_keys": ["/respondent_lock"]},
}

# Global client instances (lazy-initialized)
_cosmos_client: CosmosClient | None = None
_database: DatabaseProxy | None = None
_credential: DefaultAzureCredential | None = None


async def get_cosmos_client() -> CosmosClient:
    """
    Get or create the Cosmos DB client.

    Supports two authentication modes:
    1. Connection string (for local development with Cosmos DB Emulator)
    2. DefaultAzureCredential/RBAC (for Azure deployment)

    The client is a singleton and reused across requests.
    """
    global _cosmos_client, _credential

    if _cosmos_client is None:
        if settings.AZURE_COSMOS_CONNECTION_STRING:
            # Format: AccountEndpoint=https://...;AccountKey=...;
            conn_parts = dict(
                part.split("=", 1) for part in settings.AZURE_COSMOS_CONNECTION_STRING.split(";") if "=" in part
            )
            endpoint = conn_parts.get("AccountEndpoint", "")
            key = conn_parts.get("AccountKey", "")

            if not endpoint or not key:
                raise ValueError("AZURE_COSMOS_CONNECTION_STRING must contain AccountEndpoint and AccountKey")

            _cosmos_client = CosmosClient(
                url=endpoint,
                credential=key,
                connection_verify=not settings.AZURE_COSMOS_DISABLE_SSL,
            )
            logger.info(f"Initialized Cosmos DB client for {endpoint} (connection string mode)")
        else:
            if not settings.AZURE_COSMOS_ENDPOINT:
                raise ValueError("Either AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING must be set")

            _credential = DefaultAzureCredential()
            _cosmos_client = CosmosClient(
                url=settings.AZURE_COSMOS_ENDPOINT,
                credential=_credential,
            )
            logger.info(f"Initialized Cosmos DB client for {settings.AZURE_COSMOS_ENDPOINT} (RBAC mode)")

    return _cosmos_client


async def get_database() -> DatabaseProxy:
    """Get the Cosmos DB database proxy."""
    global _database

    if _database is None:
        client = await get_cosmos_client()
        _database = client.get_database_client(settings.AZURE_COSMOS_DATABASE)
        logger.info(f"Connected to database: {settings.AZURE_COSMOS_DATABASE}")

    return _database


async def get_container(container_name: str) -> ContainerProxy:
    """Get a container proxy for the specified container."""
    database = await get_database()
    return database.get_container_client(container_name)


async def init_cosmos() -> None:
    """
    Create the database and containers if they do not exist yet.

    Safe to run on every startup.
    """
    global _database

    client = await get_cosmos_client()
    _database = await client.create_database_if_not_exists(id=settings.AZURE_COSMOS_DATABASE)

    for name, definition in CONTAINER_DEFINITIONS.items():
        kwargs: dict[str, Any] = {
            "id": name,
            "partition_key": PartitionKey(path=definition["partition_key"]),
        }
        if definition["unique_keys"]:
            kwargs["unique_key_policy"] = {"uniqueKeys": [{"paths": [path]} for path in definition["unique_keys"]]}
        await _database.create_container_if_not_exists(**kwargs)
        logger.info(f"Ensured container {name} (partition key {definition['partition_key']})")


async def close_cosmos() -> None:
    """
    Close Cosmos DB connections.

    Should be called during application shutdown.
    """
    global _cosmos_client, _database, _credential

    if _cosmos_client is not None:
        await _cosmos_client.close()
        _cosmos_client = None
        _database = None
        logger.info("Closed Cosmos DB client")

    if _credential is not None:
        await _credential.close()
        _credential = None


# ============================================================================
# Utility Functions for Common Operations
# ============================================================================


async def create_item(container_name: str, item: dict[str, Any]) -> dict[str, Any]:
    """
    Create a new item in the specified container.

    Raises:
        CosmosResourceExistsError: If the id or a unique key is already taken
    """
    container = await get_container(container_name)
    return await container.create_item(body=item)


async def read_item(
    container_name: str,
    item_id: str,
    partition_key: str,
) -> dict[str, Any] | None:
    """
    Read an item by ID and partition key.

    Returns:
        Item data (including the _etag system property) or None if not found
    """
    container = await get_container(container_name)
    try:
        return await container.read_item(item=item_id, partition_key=partition_key)
    except CosmosResourceNotFoundError:
        return None


async def replace_item(
    container_name: str,
    item: dict[str, Any],
    etag: str | None = None,
) -> dict[str, Any]:
    """
    Replace an item, optionally only if it is unchanged since it was read.

    Args:
        container_name: Container holding the item
        item: Full item body (must include 'id' and the partition key field)
        etag: The _etag observed when the item was read

    Returns:
        The stored item with refreshed system properties

    Raises:
        ConcurrencyConflictError: If the item was modified by another writer
        CosmosResourceExistsError: If the new body violates a unique key
    """
    container = await get_container(container_name)
    kwargs: dict[str, Any] = {}
    if etag:
        kwargs["etag"] = etag
        kwargs["match_condition"] = MatchConditions.IfNotModified
    try:
        return await container.replace_item(item=item["id"], body=item, **kwargs)
    except CosmosAccessConditionFailedError as e:
        logger.info(f"Etag mismatch replacing {container_name}/{item['id']}")
        raise ConcurrencyConflictError("The record was modified concurrently") from e


async def query_items(
    container_name: str,
    query: str,
    parameters: list[dict[str, Any]] | None = None,
    partition_key: str | None = None,
    max_items: int | None = None,
) -> list[dict[str, Any]]:
    """
    Query items using SQL-like syntax.

    Example:
        results = await query_items(
            'responses',
            'SELECT * FROM c WHERE c.response_code = @code',
            parameters=[{'name': '@code', 'value': 'A1B2C3D4'}]
        )
    """
    container = await get_container(container_name)

    query_kwargs: dict[str, Any] = {
        "query": query,
    }

    if parameters:
        query_kwargs["parameters"] = parameters

    if partition_key:
        query_kwargs["partition_key"] = partition_key

    if max_items:
        query_kwargs["max_item_count"] = max_items

    items: list[dict[str, Any]] = []
    async for item in container.query_items(**query_kwargs):
        items.append(item)
        if max_items and len(items) >= max_items:
            break

    return items


async def query_count(
    container_name: str,
    query: str,
    parameters: list[dict[str, Any]] | None = None,
    partition_key: str | None = None,
) -> int:
    """Execute a SELECT VALUE COUNT(1) query and return the integer result."""
    results = await query_items(container_name, query, parameters, partition_key)
    if results:
        result = results[0]
        if isinstance(result, (int, float)):
            return int(result)
    return 0


__all__ = [
    "DEBATES_CONTAINER",
    "SURVEYS_CONTAINER",
    "RESPONSES_CONTAINER",
    "CosmosResourceExistsError",
    "init_cosmos",
    "close_cosmos",
    "create_item",
    "read_item",
    "replace_item",
    "query_items",
    "query_count",
]
