"""FastAPI application factory."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bizsync.api.routes import records, sync as sync_routes
from bizsync.errors import LocalStoreError


def create_app(sync_engine=None) -> FastAPI:
    """Build and return the FastAPI app.

    Args:
        sync_engine: Pre-built SyncEngine (tests). When omitted, one is wired
            from settings on startup and its remote client closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.sync_engine is None
        if owned:
            from bizsync.sync.engine import create_sync_engine
            app.state.sync_engine = create_sync_engine()
        yield
        if owned:
            await app.state.sync_engine.remote.aclose()
            app.state.sync_engine = None

    app = FastAPI(
        title="BizSync API",
        description="Offline-first local store with remote sync",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.sync_engine = sync_engine

    @app.exception_handler(LocalStoreError)
    async def _local_store_error(request: Request, exc: LocalStoreError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    app.include_router(records.router, prefix="/records", tags=["records"])
    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    return app


# Module-level app instance for uvicorn
app = create_app()
