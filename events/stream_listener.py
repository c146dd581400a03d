"""
IngestionListener — TCP listener for newline-delimited JSON event lines.

Each accepted connection gets its own reader task. Every line is decoded
into a ``RawEvent``, enriched by the ``EnrichmentParser`` and handed to
the forwarder detached, so a slow storage tier never slows down reading
of the next line. A malformed line is logged and skipped; a read error
or EOF ends only that connection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from core.exceptions import DecodeError
from events.event_models import RawEvent, StructuredRecord
from events.parser import EnrichmentParser
from monitoring.metrics_collector import PipelineMetrics

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    def dispatch(self, record: StructuredRecord) -> Any: ...


class IngestionListener:
    """Accepts concurrent stream connections and feeds the pipeline.

    Usage::

        listener = IngestionListener(parser, forwarder, host="0.0.0.0", port=6000)
        await listener.start()          # raises OSError if the port can't be bound
        ...
        await listener.stop()           # stops accepting; open readers are left alone
    """

    def __init__(
        self,
        parser: EnrichmentParser,
        forwarder: Dispatcher,
        *,
        host: str = "0.0.0.0",
        port: int = 6000,
        max_line_bytes: int = 1024 * 1024,
        metrics: PipelineMetrics | None = None,
    ) -> None:
        self._parser = parser
        self._forwarder = forwarder
        self._host = host
        self._port = port
        self._max_line_bytes = max_line_bytes
        self._metrics = metrics or PipelineMetrics()
        self._server: asyncio.AbstractServer | None = None

    # ── Public API ──────────────────────────────────────────────────────

    async def start(self) -> None:
        """Bind the listening socket and start accepting connections."""
        self._server = await asyncio.start_server(
            self._handle_connection,
            self._host,
            self._port,
            limit=self._max_line_bytes,
        )
        logger.info("log-collector listening on %s:%d", *self.address)

    async def stop(self) -> None:
        """Stop accepting new connections."""
        if self._server is None:
            return
        self._server.close()
        self._server = None
        logger.info("IngestionListener: stopped accepting connections")

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port); the port is real even when 0 was requested."""
        if self._server is None or not self._server.sockets:
            return self._host, self._port
        sockname = self._server.sockets[0].getsockname()
        return sockname[0], sockname[1]

    @property
    def metrics(self) -> PipelineMetrics:
        return self._metrics

    @property
    def running(self) -> bool:
        return self._server is not None

    # ── Connection handling ─────────────────────────────────────────────

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        self._metrics.record_connection()
        logger.debug("Connection opened from %s", peer)

        try:
            while True:
                try:
                    line = await reader.readline()
                except (ValueError, OSError) as exc:
                    logger.warning("read error from %s: %s", peer, exc)
                    break

                # EOF; an unterminated trailing fragment is dropped
                if not line.endswith(b"\n"):
                    break

                self.handle_line(line)
        finally:
            writer.close()
            self._metrics.record_disconnect()
            logger.debug("Connection closed from %s", peer)

    def handle_line(self, line: bytes | str) -> StructuredRecord | None:
        """Decode, enrich and dispatch one payload line.

        Returns the enriched record, or None when the line was skipped.
        """
        text = line.decode("utf-8", errors="replace") if isinstance(line, bytes) else line
        text = text.strip()
        if not text:
            return None

        self._metrics.record_line()
        try:
            raw = RawEvent.from_json(text)
        except DecodeError as exc:
            self._metrics.record_decode_error()
            logger.warning("%s line: %s", exc.message, text[:200])
            return None

        record = self._parser.parse_event(raw)
        self._forwarder.dispatch(record)
        return record
