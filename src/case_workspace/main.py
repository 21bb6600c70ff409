"""case-workspace service entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from case_workspace.adapters.storage import build_storage
from case_workspace.api.router import router
from case_workspace.core.interfaces import ISnapshotStorage
from case_workspace.core.services import CaseWorkspaceStore
from case_workspace.errors import NotFoundError, StoreNotInitializedError
from case_workspace.observability import get_logger, setup_logging
from case_workspace.settings import Settings

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, storage: ISnapshotStorage | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Service settings; read from the environment if omitted.
        storage: Snapshot storage; built from settings if omitted.

    Returns:
        The configured application. The store is created on startup and
        closed on shutdown by the lifespan.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application startup and shutdown lifecycle.

        Args:
            app: The FastAPI application instance.

        Yields:
            None
        """
        # Startup
        setup_logging(settings.log_level, settings.log_format)
        store = CaseWorkspaceStore(
            storage=storage or build_storage(settings),
            activity_limit=settings.activity_limit,
        )
        await store.initialize()
        app.state.store = store
        logger.info("service_started", service=settings.service_name)
        yield
        # Shutdown
        store.close()
        app.state.store = None

    app = FastAPI(title=settings.service_name, version="0.1.0", lifespan=lifespan)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(StoreNotInitializedError)
    async def not_ready_handler(request: Request, exc: StoreNotInitializedError) -> JSONResponse:
        logger.error("store_not_initialized", path=request.url.path)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/live", tags=["health"])
    async def live() -> dict[str, str]:
        """Liveness probe; never touches the store."""
        return {"status": "ok"}

    app.include_router(router, prefix="/api/v1")
    return app


app: FastAPI = create_app()
