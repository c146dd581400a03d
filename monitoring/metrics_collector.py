"""
PipelineMetrics — observability counters for the stream collector.

The listener and the forwarder record into a shared instance; the
collector service logs a ``snapshot()`` on shutdown. Forward tasks and
connection readers run concurrently, so every update takes a lock.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Any


class PipelineMetrics:
    """Thread-safe counters for the collector side of the pipeline.

    Usage::

        metrics = PipelineMetrics()
        metrics.record_connection()
        metrics.record_line()
        metrics.record_forward(ok=False)
        snapshot = metrics.snapshot()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._start_time = time.monotonic()
        self._started_at = datetime.now(timezone.utc)

        self._connections = 0
        self._active_connections = 0
        self._lines_read = 0
        self._decode_errors = 0
        self._forwarded = 0
        self._forward_failures = 0

    # ── Recording ───────────────────────────────────────────────────────

    def record_connection(self) -> None:
        with self._lock:
            self._connections += 1
            self._active_connections += 1

    def record_disconnect(self) -> None:
        with self._lock:
            self._active_connections = max(0, self._active_connections - 1)

    def record_line(self) -> None:
        with self._lock:
            self._lines_read += 1

    def record_decode_error(self) -> None:
        with self._lock:
            self._decode_errors += 1

    def record_forward(self, *, ok: bool) -> None:
        """Record the outcome of one forward attempt."""
        with self._lock:
            if ok:
                self._forwarded += 1
            else:
                self._forward_failures += 1

    # ── Queries ─────────────────────────────────────────────────────────

    @property
    def lines_read(self) -> int:
        return self._lines_read

    @property
    def decode_errors(self) -> int:
        return self._decode_errors

    def snapshot(self) -> dict[str, Any]:
        """Build a point-in-time view of all counters."""
        with self._lock:
            return {
                "connections_total": self._connections,
                "connections_active": self._active_connections,
                "lines_read": self._lines_read,
                "decode_errors": self._decode_errors,
                "records_forwarded": self._forwarded,
                "forward_failures": self._forward_failures,
                "uptime_seconds": round(time.monotonic() - self._start_time, 1),
                "started_at": self._started_at.isoformat(),
            }
