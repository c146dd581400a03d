"""
CollectorService — the stream collector process.

Wires together::

    producer ──(tcp, ndjson)──→ IngestionListener ──→ EnrichmentParser
                                                            │
                                                            ▼
                                  storage server ←──(http)── RecordForwarder
                                                      (detached per record)

Runs standalone via ``RUN_MODE=collector python main.py``.
"""

from __future__ import annotations

import logging
from typing import Any

from config.settings import Settings, get_settings
from events.parser import EnrichmentParser
from events.stream_listener import IngestionListener
from monitoring.metrics_collector import PipelineMetrics
from services.forwarder import RecordForwarder

logger = logging.getLogger(__name__)


class CollectorService:
    """Stream listener + enrichment + forwarding, built from settings.

    Lifecycle:
      1. ``start()`` → binds the listener (``OSError`` if the port is taken)
      2. connections are served until shutdown is requested
      3. ``stop()`` → stops accepting, waits for in-flight forwards
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        forwarder: RecordForwarder | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._metrics = PipelineMetrics()
        self._parser = EnrichmentParser(blacklist=self._settings.blacklist_entries)
        self._forwarder = forwarder or RecordForwarder(
            self._settings.LOG_SERVER_URL,
            metrics=self._metrics,
        )
        self._listener = IngestionListener(
            self._parser,
            self._forwarder,
            host=self._settings.COLLECTOR_HOST,
            port=self._settings.COLLECTOR_PORT,
            max_line_bytes=self._settings.COLLECTOR_MAX_LINE_BYTES,
            metrics=self._metrics,
        )
        self._running = False

    async def start(self) -> None:
        await self._listener.start()
        self._running = True
        logger.info(
            "Collector forwarding to %s (blacklist: %d entries) | Environment: %s",
            self._forwarder.url,
            len(self._parser.blacklist),
            self._settings.ENVIRONMENT.value,
        )

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        await self._listener.stop()
        if self._forwarder.pending:
            logger.info("Waiting for %d in-flight forwards", self._forwarder.pending)
        await self._forwarder.close()
        logger.info("Collector stopped: %s", self.get_status())

    @property
    def running(self) -> bool:
        return self._running

    @property
    def listener(self) -> IngestionListener:
        return self._listener

    def get_status(self) -> dict[str, Any]:
        status = self._metrics.snapshot()
        status["pending_forwards"] = self._forwarder.pending
        return status


# ── CLI entry point ─────────────────────────────────────────────────────

async def run_collector() -> None:
    """Run the collector until SIGINT/SIGTERM.

    A failure to bind the listening port is the only fatal error.
    """
    from daemon.lifecycle import ServiceLifecycle

    service = CollectorService()
    lifecycle = ServiceLifecycle(service)
    try:
        await lifecycle.start()
    except OSError as exc:
        logger.critical("Cannot bind collector listener: %s", exc)
        raise SystemExit(1) from exc

    await lifecycle.wait_for_shutdown()
