"""Application factory and top-level wiring for the Repair Tracker server.

This module brings together configuration, the document store, the live
sync machinery, HTTP routers and error handling. Reading ``create_app`` top to
bottom shows *what* pieces exist, *when* they are initialised and *how* they
are connected.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import AppSettings, get_settings
from .core.errors import (
    StorageError,
    ValidationError,
    http_exception_handler,
    storage_error_handler,
    validation_error_handler,
)
from .middlewares import OptionsShortCircuitMiddleware, RequestIdMiddleware
from .storage.documents import DocumentStore
from .sync import ChangeBroadcaster, ConnectionRegistry, SyncProtocolHandler

logger = logging.getLogger(__name__)


def create_app(settings: AppSettings | None = None, *, metrics: bool = False) -> FastAPI:
    """Build a fully wired FastAPI application.

    The connection registry, broadcaster and protocol handler are created
    here and hung off ``app.state``; nothing about live connections is
    module-global, so every app instance owns its own set.
    """

    settings = settings or get_settings()

    app = FastAPI(title=settings.APP_NAME)

    # ---------- Sync core ----------
    # One store, one registry and one broadcaster per process. Routers reach
    # them through the dependencies in ``deps``.
    store = DocumentStore(settings.resolved_data_dir)
    registry = ConnectionRegistry()
    broadcaster = ChangeBroadcaster(registry)
    app.state.settings = settings
    app.state.document_store = store
    app.state.connection_registry = registry
    app.state.broadcaster = broadcaster
    app.state.sync_handler = SyncProtocolHandler(
        store, registry, broadcaster, queue_size=settings.SYNC_QUEUE_SIZE
    )
    app.state.started_at = time.monotonic()

    # ---------- Lifecycle ----------
    @app.on_event("startup")
    async def _prepare_storage() -> None:
        store.ensure_root()
        logger.info(
            "server.started",
            extra={
                "extra_data": {
                    "data_dir": str(store.root),
                    "static_dir": str(settings.resolved_static_dir),
                    "documents": store.list_documents(),
                }
            },
        )

    @app.on_event("shutdown")
    async def _close_connections() -> None:
        closed = await app.state.sync_handler.close_all()
        logger.info("server.stopped", extra={"extra_data": {"connections_closed": closed}})

    # ---------- Middleware ----------
    # Added innermost first: CORS, then the OPTIONS short-circuit, then request ids.
    # Every OPTIONS request is answered before CORSMiddleware can reject a preflight.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.add_middleware(OptionsShortCircuitMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ---------- Exception handling ----------
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # ---------- Routers ----------
    from .routers import data as data_router
    from .routers import health as health_router
    from .routers import static as static_router
    from .routers import sync as sync_router

    app.include_router(health_router.router)
    app.include_router(data_router.router)
    app.include_router(sync_router.router)

    if metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        # Exposed before the static catch-all so /metrics is not shadowed.
        Instrumentator().instrument(app).expose(app)

    # The static catch-all must stay last.
    app.include_router(static_router.router)

    return app


__all__ = ["create_app"]
