"""
Orchestration service backed by a Cosmos DB task hub.

Bridges the orchestration engine and the document store. Task-hub
lifecycle (create, recreate, delete) and instance-state lookups are built
on the store's operations; the work-item dispatch surface is declared for
the engine but not implemented yet.
"""

from dataclasses import dataclass
from typing import Any, Optional

from core.config import Settings, settings as default_settings
from core.logging import get_logger
from core.storage.base import RETRY_INTERVAL, BaseDocumentStore, Document, strip_system_properties
from core.storage.errors import NotFound, should_retry


logger = get_logger(__name__)


@dataclass(frozen=True)
class DispatcherSettings:
    """Dispatcher sizing handed to the engine."""
    orchestration_dispatcher_count: int = 1
    max_concurrent_orchestrations: int = 100
    activity_dispatcher_count: int = 1
    max_concurrent_activities: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> "DispatcherSettings":
        return cls(
            orchestration_dispatcher_count=settings.orchestration_dispatcher_count,
            max_concurrent_orchestrations=settings.max_concurrent_orchestrations,
            activity_dispatcher_count=settings.activity_dispatcher_count,
            max_concurrent_activities=settings.max_concurrent_activities,
        )


class CosmosOrchestrationService:
    """
    Task hub lifecycle on top of a document store.

    - Provision / recreate / delete the task-hub collection
    - Install the hub's stored procedures
    - Look up instance state documents
    - Tell the dispatcher how long to back off after a failed fetch
    """

    def __init__(
        self,
        store: BaseDocumentStore,
        settings: Optional[Settings] = None,
        stored_procedures: Optional[dict[str, str]] = None,
    ):
        """
        Initialize the service.

        Args:
            store: Store bound to the task-hub collection
            settings: Defaults to the application settings
            stored_procedures: Procedure id -> body installed by create()
        """
        settings = settings or default_settings
        self.store = store
        self.partition_key = settings.cosmos_partition_key
        self.dispatcher_settings = DispatcherSettings.from_settings(settings)
        self.stored_procedures = dict(stored_procedures or {})

    # =========================================
    # Task hub lifecycle
    # =========================================

    async def create_if_missing(self) -> None:
        """Provision the task hub; a no-op for parts that already exist."""
        await self.store.create_collection_if_missing(self.partition_key)
        for procedure_id, body in self.stored_procedures.items():
            await self.store.upsert_stored_procedure(procedure_id, body)

        logger.info(
            "Task hub ready",
            partition_key=self.partition_key,
            stored_procedures=len(self.stored_procedures),
        )

    async def create(self, recreate: bool = False) -> None:
        """Provision the task hub, dropping the existing one first when recreate is set."""
        if recreate:
            await self.delete()
        await self.create_if_missing()

    async def delete(self) -> None:
        """Delete the task-hub collection. Missing collections are ignored."""
        try:
            await self.store.delete_collection()
        except NotFound:
            logger.debug("Task hub already absent")
            return
        logger.info("Task hub deleted")

    # =========================================
    # Instance state
    # =========================================

    async def get_orchestration_state(self, instance_id: str) -> Optional[Document]:
        """Instance-state document without service properties, or None."""
        # State documents use the instance id as both id and partition key
        try:
            document = await self.store.read(instance_id, instance_id)
        except NotFound:
            return None
        return strip_system_properties(document)

    # =========================================
    # Dispatcher hooks
    # =========================================

    def delay_after_fetch_error(self, error: BaseException) -> int:
        """Seconds the dispatcher waits before fetching again after `error`."""
        if should_retry(error):
            return int(RETRY_INTERVAL.total_seconds())
        return 0

    def delay_after_process_error(self, error: BaseException) -> int:
        """Seconds the dispatcher waits before processing again after `error`."""
        return self.delay_after_fetch_error(error)

    # =========================================
    # Work-item dispatch (engine surface, not implemented)
    # =========================================

    async def start(self) -> None:
        raise NotImplementedError

    async def stop(self, is_forced: bool = False) -> None:
        raise NotImplementedError

    async def lock_next_orchestration_work_item(self, receive_timeout: float, cancel: Any = None) -> Any:
        raise NotImplementedError

    async def lock_next_activity_work_item(self, receive_timeout: float, cancel: Any = None) -> Any:
        raise NotImplementedError

    async def renew_orchestration_work_item_lock(self, work_item: Any) -> None:
        raise NotImplementedError

    async def renew_activity_work_item_lock(self, work_item: Any) -> Any:
        raise NotImplementedError

    async def complete_orchestration_work_item(self, work_item: Any, *args: Any) -> None:
        raise NotImplementedError

    async def complete_activity_work_item(self, work_item: Any, response_message: Any) -> None:
        raise NotImplementedError

    async def abandon_orchestration_work_item(self, work_item: Any) -> None:
        raise NotImplementedError

    async def abandon_activity_work_item(self, work_item: Any) -> None:
        raise NotImplementedError

    async def release_orchestration_work_item(self, work_item: Any) -> None:
        raise NotImplementedError

    async def send_orchestration_message(self, *messages: Any) -> None:
        raise NotImplementedError

    async def wait_for_orchestration(
        self, instance_id: str, execution_id: str, timeout: float, cancel: Any = None
    ) -> Any:
        raise NotImplementedError

    async def get_orchestration_history(self, instance_id: str, execution_id: str) -> str:
        raise NotImplementedError

    async def purge_orchestration_history(self, threshold: Any, filter_type: Any) -> None:
        raise NotImplementedError

    async def force_terminate(self, instance_id: str, reason: str) -> None:
        raise NotImplementedError
