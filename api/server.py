"""
FastAPI application entry point.

Hosts the task hub and owns the lifetime of the process-wide connection
registry:
- Lifespan management (startup/shutdown)
- Route registration
- Error handling
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.dependencies import set_orchestration_service, set_registry
from api.routes import health_router
from core.config import Settings, settings as default_settings
from core.logging import configure_logging, get_logger
from core.storage import ConnectionRegistry, create_document_store
from manager.orchestrator import CosmosOrchestrationService


logger = get_logger(__name__)


def create_app(
    registry: Optional[ConnectionRegistry] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        registry: Client pool to use; a new one is created at startup if omitted
        settings: Defaults to the application settings
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Startup: create the registry, store and orchestration service,
        optionally provision the task hub.
        Shutdown: close every pooled client, also when startup failed.
        """
        configure_logging()

        pool = registry or ConnectionRegistry()
        try:
            store = create_document_store(settings, pool)
            service = CosmosOrchestrationService(store, settings)

            if settings.cosmos_create_if_missing:
                await service.create_if_missing()

            set_registry(pool)
            set_orchestration_service(service)
            app.state.registry = pool
            app.state.orchestration_service = service

            logger.info(
                "Task hub service started",
                database=settings.cosmos_database,
                collection=settings.cosmos_collection,
            )

            yield
        finally:
            logger.info("Shutting down task hub service...")
            set_orchestration_service(None)
            set_registry(None)
            await pool.close()
            logger.info("Task hub service stopped")

    app = FastAPI(
        title="Cosmos Task Hub",
        description="Cosmos DB persistence for a durable orchestration engine.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(health_router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "message": str(exc) if settings.debug else "An error occurred",
            },
        )

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.server:create_app",
        factory=True,
        host=default_settings.server_host,
        port=default_settings.server_port,
        reload=default_settings.debug,
    )
