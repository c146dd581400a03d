"""
RecordForwarder — pushes enriched records to the storage tier's ingest API.

Fire-and-forget: ``dispatch()`` spawns an independent task per record
and returns immediately, so the connection reader that produced the
record is never coupled to the outcome of the push. There is no retry
and no queue; a failed push is logged and counted, nothing more.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from core.exceptions import ForwardError
from events.event_models import StructuredRecord
from monitoring.metrics_collector import PipelineMetrics

logger = logging.getLogger(__name__)


class RecordForwarder:
    """HTTP client for the remote ``POST /ingest`` endpoint.

    Usage::

        forwarder = RecordForwarder("http://log-server:8081/ingest")
        forwarder.dispatch(record)      # detached, never awaited by caller
        await forwarder.close()         # waits for in-flight pushes
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        metrics: PipelineMetrics | None = None,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._metrics = metrics
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def url(self) -> str:
        return self._url

    @property
    def pending(self) -> int:
        """Number of detached forwards still in flight."""
        return len(self._pending)

    async def forward(self, record: StructuredRecord) -> None:
        """Serialize and POST one record.

        Raises:
            ForwardError: On transport failure or a non-2xx response.
        """
        try:
            response = await self._client.post(
                self._url,
                content=record.to_json().encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise ForwardError(f"transport error: {exc}") from exc

        if not response.is_success:
            raise ForwardError(
                f"remote error: {response.text.strip()}",
                status_code=response.status_code,
            )

    def dispatch(self, record: StructuredRecord) -> asyncio.Task[None]:
        """Forward ``record`` on its own task without awaiting it."""
        task = asyncio.create_task(self._forward_detached(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight forward to finish (no cancellation)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self._owns_client:
            await self._client.aclose()

    async def _forward_detached(self, record: StructuredRecord) -> None:
        try:
            await self.forward(record)
        except ForwardError as exc:
            logger.warning("forward error: %s", exc.message)
            if self._metrics:
                self._metrics.record_forward(ok=False)
            return

        if self._metrics:
            self._metrics.record_forward(ok=True)
        logger.debug("Forwarded %s record from %s", record.event_category, record.hostname)
