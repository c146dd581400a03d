"""
logpipe — Application Entry Point.

Creates the FastAPI storage / query server and dispatches to the other
process roles. Three run modes (controlled by ``RUN_MODE``):
  - ``server``    — ingest / query HTTP API over the append-only store (default)
  - ``collector`` — stream listener that enriches and forwards events
  - ``producer``  — sample event generator for local demos
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from api.routes import router
from config.settings import get_settings
from memory.record_store import FileRecordStore

# ── Logging setup ───────────────────────────────────────────────────────

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)-35s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)

logger = logging.getLogger("logpipe")


# ── Application factory ────────────────────────────────────────────────


def create_app(store: FileRecordStore | None = None) -> FastAPI:
    """Build the storage server.

    When ``store`` is None the engine is opened from ``STORAGE_FILE``
    during application startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        cfg = get_settings()
        logger.info("═══ Starting %s storage server ═══", cfg.APP_NAME)
        logger.info(
            "Environment: %s | Run Mode: %s",
            cfg.ENVIRONMENT.value,
            cfg.RUN_MODE,
        )
        if getattr(app.state, "store", None) is None:
            app.state.store = FileRecordStore(cfg.STORAGE_FILE)
        logger.info(
            "log-server ready: %d records in %s",
            app.state.store.count(),
            app.state.store.path,
        )
        yield
        logger.info("log-server shutting down")

    cfg = get_settings()
    app = FastAPI(
        title=cfg.APP_NAME,
        description=(
            "Append-only storage and query API for enriched security event "
            "records forwarded by the logpipe stream collector."
        ),
        version=cfg.VERSION,
        lifespan=lifespan,
    )
    app.state.store = store
    app.include_router(router)
    return app


app = create_app()


# ── CLI entry point ─────────────────────────────────────────────────────

if __name__ == "__main__":
    run_mode = settings.RUN_MODE.lower()

    if run_mode == "collector":
        from daemon.collector_service import run_collector

        asyncio.run(run_collector())

    elif run_mode == "producer":
        from demo.sample_producer import run_producer

        try:
            asyncio.run(run_producer())
        except KeyboardInterrupt:
            logger.info("Producer stopped")

    else:
        import uvicorn

        uvicorn.run(
            "main:app",
            host=settings.API_HOST,
            port=settings.API_PORT,
            reload=settings.DEBUG,
            log_level=settings.LOG_LEVEL.lower(),
        )
