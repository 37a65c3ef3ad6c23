"""
FastAPI dependencies for dependency injection.

Provides the process-wide instances created in the app lifespan to route
handlers.
"""

from typing import Optional

from core.storage.registry import ConnectionRegistry
from manager.orchestrator import CosmosOrchestrationService


# Global singletons (set during app lifespan)
_registry: Optional[ConnectionRegistry] = None
_service: Optional[CosmosOrchestrationService] = None


def set_registry(registry: Optional[ConnectionRegistry]) -> None:
    """Set the global connection registry."""
    global _registry
    _registry = registry


def set_orchestration_service(service: Optional[CosmosOrchestrationService]) -> None:
    """Set the global orchestration service."""
    global _service
    _service = service


async def get_registry() -> ConnectionRegistry:
    """
    Dependency that provides the connection registry.

    Usage:
        @router.get("/ready")
        async def ready(registry: ConnectionRegistry = Depends(get_registry)):
            ...
    """
    if _registry is None:
        raise RuntimeError("Connection registry not initialized")
    return _registry


async def get_orchestration_service() -> CosmosOrchestrationService:
    """
    Dependency that provides the orchestration service.
    """
    if _service is None:
        raise RuntimeError("Orchestration service not initialized")
    return _service
