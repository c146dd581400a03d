"""
FileRecordStore — append-only durable storage for structured records.

One JSON-encoded record per line in an append-only file, mirrored in
memory for query serving. A single lock guards both the file and the
mirror: writers and readers fully serialize, so a record is queryable
if and only if it has been durably appended, and the file and mirror
always agree on one total append order.

On startup the mirror is rebuilt by replaying the file from the
beginning; the first undecodable line ends the replay, and the file is
cut back to the last good line so later appends start on a clean line.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from pathlib import Path

from core.exceptions import DecodeError, StorageReadReplayError, StorageWriteError
from events.event_models import StructuredRecord
from memory.query_engine import RecordQuery, group_counts, run_query

logger = logging.getLogger(__name__)


class FileRecordStore:
    """Append-only record store with an in-memory mirror.

    Usage::

        store = FileRecordStore("/data/logs.jsonl")
        store.save(record)
        store.query({"service": "login.audit"}, limit=10, sort_key="timestamp")
        store.count()
        store.group_by("category")
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._mirror: list[StructuredRecord] = []
        self._replay()

    @property
    def path(self) -> Path:
        return self._path

    # ── Mutation ────────────────────────────────────────────────────────

    def save(self, record: StructuredRecord) -> None:
        """Durably append ``record``, then make it visible to queries.

        Raises:
            StorageWriteError: If the append fails; the mirror is unchanged.
        """
        line = record.to_json() + "\n"
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with open(self._path, "a", encoding="utf-8") as fh:
                    fh.write(line)
                    fh.flush()
            except OSError as exc:
                logger.error("Failed to append record to %s: %s", self._path, exc)
                raise StorageWriteError(f"save error: {exc}") from exc
            self._mirror.append(record)

    # ── Queries ─────────────────────────────────────────────────────────

    def query(
        self,
        filters: Mapping[str, str] | None = None,
        limit: int = 0,
        sort_key: str = "",
    ) -> list[StructuredRecord]:
        """Return records matching every filter, sorted and limited."""
        record_query = RecordQuery(filters=dict(filters or {}), limit=limit, sort_key=sort_key)
        with self._lock:
            return run_query(self._mirror, record_query)

    def count(self) -> int:
        with self._lock:
            return len(self._mirror)

    def group_by(self, field_name: str) -> dict[str, int]:
        """Count records per ``category`` or ``severity`` value."""
        with self._lock:
            return group_counts(self._mirror, field_name)

    def summary(self) -> dict[str, object]:
        """Total and per-category / per-severity counts from one consistent view."""
        with self._lock:
            return {
                "total_logs": len(self._mirror),
                "by_category": group_counts(self._mirror, "category"),
                "by_severity": group_counts(self._mirror, "severity"),
            }

    # ── Persistence ─────────────────────────────────────────────────────

    def _replay(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if not self._path.exists():
            logger.info("No existing log store at %s, starting empty", self._path)
            return

        good_end = 0  # byte offset just past the last replayed line
        terminated = True
        torn = False
        try:
            with open(self._path, "rb") as fh:
                for line_number, raw in enumerate(fh, start=1):
                    if raw.strip():
                        line = raw.decode("utf-8", errors="replace")
                        try:
                            self._mirror.append(self._decode(line, line_number))
                        except StorageReadReplayError as exc:
                            logger.warning(
                                "Replay of %s stopped at %s (%d records recovered)",
                                self._path,
                                exc.message,
                                len(self._mirror),
                            )
                            torn = True
                            break
                    good_end += len(raw)
                    terminated = raw.endswith(b"\n")
        except OSError as exc:
            logger.warning("Failed to read log store %s: %s", self._path, exc)
            return

        if torn or not terminated:
            self._repair_tail(good_end, terminate=not terminated)

        logger.info("Loaded %d records from %s", len(self._mirror), self._path)

    def _repair_tail(self, offset: int, *, terminate: bool) -> None:
        """Cut the file back to ``offset`` so the next append starts a fresh line."""
        try:
            with open(self._path, "r+b") as fh:
                dropped = fh.seek(0, 2) - offset
                fh.truncate(offset)
                if terminate:
                    fh.seek(offset)
                    fh.write(b"\n")
        except OSError as exc:
            logger.error("Failed to repair log store %s: %s", self._path, exc)
            return

        if dropped:
            logger.warning("Truncated %d trailing bytes from %s", dropped, self._path)

    @staticmethod
    def _decode(line: str, line_number: int) -> StructuredRecord:
        try:
            return StructuredRecord.from_json(line)
        except DecodeError as exc:
            raise StorageReadReplayError(line_number, exc.message) from exc
