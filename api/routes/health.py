"""
Health check endpoints.

Provides endpoints for monitoring and load balancer health checks.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_orchestration_service, get_registry
from core.logging import get_logger
from core.storage.registry import ConnectionRegistry
from manager.orchestrator import CosmosOrchestrationService


logger = get_logger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """
    Basic health check.

    Returns 200 if the service is running.
    Used by load balancers and orchestration systems.
    """
    return {
        "status": "healthy",
        "service": "cosmos-task-hub",
    }


@router.get("/ready")
async def readiness_check(
    registry: ConnectionRegistry = Depends(get_registry),
    service: CosmosOrchestrationService = Depends(get_orchestration_service),
) -> dict:
    """
    Readiness check.

    Reports the task hub binding and how many database clients are pooled.
    No request is sent to the database: clients connect lazily.
    """
    descriptor = getattr(service.store, "descriptor", None)
    return {
        "status": "ready",
        "pooled_clients": registry.client_count,
        "task_hub": {
            "database": descriptor.database_name if descriptor else None,
            "collection": descriptor.collection_name if descriptor else None,
            "partition_key": service.partition_key,
        },
    }
