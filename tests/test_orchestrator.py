"""
Tests for CosmosOrchestrationService task-hub lifecycle.
"""

import pytest

from core.storage import CosmosDocumentStore, NotFound, Throttled
from manager.orchestrator import CosmosOrchestrationService, DispatcherSettings


LOCK_PROCEDURE = "function tryLockInstance(owner) { /* ... */ }"


@pytest.fixture
def service(descriptor, registry, test_settings):
    store = CosmosDocumentStore(descriptor, registry)
    return CosmosOrchestrationService(
        store,
        test_settings,
        stored_procedures={"tryLockInstance": LOCK_PROCEDURE},
    )


@pytest.mark.asyncio
async def test_create_if_missing_provisions_hub(service, cosmos_client):
    await service.create_if_missing()
    await service.create_if_missing()

    collection = cosmos_client.collection("durabletask", "taskhub")
    assert collection.partition_key_path == "/instanceId"
    assert collection.procedures["tryLockInstance"]["body"] == LOCK_PROCEDURE


@pytest.mark.asyncio
async def test_recreate_drops_existing_documents(service):
    await service.create_if_missing()
    await service.store.create({"id": "i1", "instanceId": "i1"})

    await service.create(recreate=True)

    assert await service.store.exists("i1", "i1") is False


@pytest.mark.asyncio
async def test_delete_missing_hub_is_ignored(service, cosmos_client):
    await service.delete()

    await service.create_if_missing()
    await service.delete()

    assert cosmos_client.collection("durabletask", "taskhub") is None


@pytest.mark.asyncio
async def test_get_orchestration_state(service):
    await service.create_if_missing()
    await service.store.create({"id": "i1", "instanceId": "i1", "status": "Running"})

    state = await service.get_orchestration_state("i1")

    assert state == {"id": "i1", "instanceId": "i1", "status": "Running"}
    assert await service.get_orchestration_state("i2") is None


def test_dispatcher_settings(service):
    assert service.dispatcher_settings == DispatcherSettings()


def test_fetch_error_backoff(service):
    assert service.delay_after_fetch_error(Throttled("x", status_code=429)) == 5
    assert service.delay_after_fetch_error(NotFound("x", status_code=404)) == 0
    assert service.delay_after_process_error(Throttled("x", status_code=429)) == 5


@pytest.mark.asyncio
async def test_work_item_surface_not_implemented(service):
    with pytest.raises(NotImplementedError):
        await service.lock_next_orchestration_work_item(30)
    with pytest.raises(NotImplementedError):
        await service.abandon_activity_work_item(object())
