"""
Pydantic schemas for the ingest / query API payloads.

Field aliases follow the dotted wire names (``event.category``,
``raw.message``, ``is.blacklisted``) used by the collector and by the
durable storage format.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from events.event_models import EventCategory, StructuredRecord, utc_now


# ── Request schemas ─────────────────────────────────────────────────────


class IngestRecord(BaseModel):
    """A structured record pushed to ``POST /ingest``.

    A missing timestamp defaults to now (UTC) and a missing category to
    ``unknown``. The blacklist flag is accepted as-is, never recomputed,
    and must be a JSON boolean.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    timestamp: Optional[datetime] = None
    event_category: Optional[str] = Field(default=None, alias="event.category")
    username: Optional[str] = None
    hostname: Optional[str] = None
    severity: Optional[str] = None
    raw_message: Optional[str] = Field(default=None, alias="raw.message")
    is_blacklisted: StrictBool = Field(default=False, alias="is.blacklisted")
    meta: Optional[dict[str, str]] = None

    def to_record(self) -> StructuredRecord:
        timestamp = self.timestamp or utc_now()
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return StructuredRecord(
            timestamp=timestamp.astimezone(timezone.utc),
            event_category=self.event_category or EventCategory.UNKNOWN,
            username=self.username or None,
            hostname=self.hostname or None,
            severity=self.severity or None,
            raw_message=self.raw_message or "",
            is_blacklisted=self.is_blacklisted,
            meta=dict(self.meta or {}),
        )


# ── Response schemas ────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    service: str = "logpipe"
    version: str = "1.0.0"
    timestamp: str
    total_logs: int


class MetricsResponse(BaseModel):
    """Aggregate counts over all stored records."""

    total_logs: int
    by_category: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
