"""FastAPI server exposing health results and the replication bridge."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from relaywatch import __version__
from relaywatch.api.routes import router
from relaywatch.config import settings
from relaywatch.health.executor import HealthCheckExecutor
from relaywatch.health.registry import CheckRegistry
from relaywatch.replication.bridge import EventReplicationBridge, RecordingSink
from relaywatch.replication.store import SqliteContentStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize shared resources on startup."""
    # Health checks
    registry = CheckRegistry()
    registry.load(settings.checks_file)
    app.state.registry = registry
    app.state.executor = HealthCheckExecutor(
        registry,
        timeout_ms=settings.check_timeout_ms,
        max_workers=settings.check_workers,
    )

    # Replication bridge
    store = SqliteContentStore(settings.store_path)
    sink = RecordingSink(maxlen=settings.request_history)
    bridge = EventReplicationBridge(store, nuggets_path=settings.nuggets_path, sink=sink)
    bridge.enable()
    app.state.content_store = store
    # reads go through their own session so only committed records are served
    app.state.record_store = SqliteContentStore(settings.store_path)
    app.state.replication_sink = sink
    app.state.bridge = bridge
    logger.info("relaywatch ready: %d checks, nuggets path %s", len(registry), bridge.nuggets_path)

    yield

    # Shutdown
    bridge.disable()
    app.state.record_store.close()
    app.state.executor.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="relaywatch",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(router, prefix="/api")
    return app


app = create_app()
