"""
Event models — typed data containers for the ingestion pipeline.

``RawEvent`` is what producers send over the stream connection;
``StructuredRecord`` is the enriched, durable unit that is forwarded,
stored and queried. No enrichment logic lives here — see
``events.parser`` for that.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from core.exceptions import DecodeError


class EventCategory:
    """Known values of ``StructuredRecord.event_category``."""

    LOGIN = "login.audit"
    LOGOUT = "logout.audit"
    EVENT = "event"
    UNKNOWN = "unknown"


# Wire / storage field names
FIELD_TIMESTAMP = "timestamp"
FIELD_CATEGORY = "event.category"
FIELD_USERNAME = "username"
FIELD_HOSTNAME = "hostname"
FIELD_SEVERITY = "severity"
FIELD_RAW_MESSAGE = "raw.message"
FIELD_BLACKLISTED = "is.blacklisted"
FIELD_META = "meta"

_RFC3339_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))$"
)


def parse_rfc3339(value: str) -> datetime | None:
    """Parse an RFC3339 timestamp into an aware UTC datetime.

    Returns None when the value is not a well-formed RFC3339 instant.
    Fractional seconds beyond microsecond precision are truncated.
    """
    match = _RFC3339_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        return None

    year, month, day, hour, minute, second, frac, zulu, sign, off_h, off_m = match.groups()
    micro = int((frac or "0")[:6].ljust(6, "0"))

    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        if offset >= timedelta(hours=24):
            return None
        tz = timezone(offset if sign == "+" else -offset)

    try:
        parsed = datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second), micro,
            tzinfo=tz,
        )
    except ValueError:
        return None
    return parsed.astimezone(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """Render an instant as RFC3339 UTC with a ``Z`` suffix."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RawEvent:
    """One line received from a producer.

    Attributes:
        message: The unstructured event text.
        timestamp: Producer-supplied RFC3339 timestamp, if any.
    """

    message: str
    timestamp: str | None = None

    @classmethod
    def from_json(cls, line: str | bytes) -> RawEvent:
        """Decode one newline-delimited JSON payload.

        Unknown keys are ignored; a missing ``message`` decodes as an
        empty string.

        Raises:
            DecodeError: If the line is not a JSON object or a field has
                the wrong type.
        """
        try:
            data = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(f"invalid json: {exc}") from exc

        if not isinstance(data, dict):
            raise DecodeError("payload must be a JSON object")

        message = data.get("message", "")
        timestamp = data.get("timestamp")
        if message is None:
            message = ""
        if not isinstance(message, str):
            raise DecodeError("'message' must be a string")
        if timestamp is not None and not isinstance(timestamp, str):
            raise DecodeError("'timestamp' must be a string")

        return cls(message=message, timestamp=timestamp or None)


@dataclass(frozen=True)
class StructuredRecord:
    """An enriched event — the durable unit of the storage tier.

    Attributes:
        timestamp: When the event occurred (aware, UTC).
        event_category: One of ``EventCategory``; never empty.
        username: User extracted from the message text.
        hostname: Host extracted from the message text.
        severity: Severity label derived from the priority code.
        raw_message: Original message text, verbatim.
        is_blacklisted: True when a blacklisted user or literal matched.
        meta: Open string mapping for forward-compatible fields.
    """

    timestamp: datetime
    event_category: str = EventCategory.UNKNOWN
    username: str | None = None
    hostname: str | None = None
    severity: str | None = None
    raw_message: str = ""
    is_blacklisted: bool = False
    meta: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the wire field names; absent optionals are omitted."""
        out: dict[str, Any] = {
            FIELD_TIMESTAMP: format_timestamp(self.timestamp),
            FIELD_CATEGORY: self.event_category,
        }
        if self.username:
            out[FIELD_USERNAME] = self.username
        if self.hostname:
            out[FIELD_HOSTNAME] = self.hostname
        if self.severity:
            out[FIELD_SEVERITY] = self.severity
        out[FIELD_RAW_MESSAGE] = self.raw_message
        out[FIELD_BLACKLISTED] = self.is_blacklisted
        if self.meta:
            out[FIELD_META] = dict(self.meta)
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> StructuredRecord:
        """Rebuild a record from its serialized form.

        Raises:
            DecodeError: If a required field is missing or malformed.
        """
        if not isinstance(data, dict):
            raise DecodeError("record must be a JSON object")

        ts = parse_rfc3339(data.get(FIELD_TIMESTAMP, ""))
        if ts is None:
            raise DecodeError(f"invalid timestamp: {data.get(FIELD_TIMESTAMP)!r}")

        strings: dict[str, str | None] = {}
        for key in (FIELD_CATEGORY, FIELD_USERNAME, FIELD_HOSTNAME, FIELD_SEVERITY, FIELD_RAW_MESSAGE):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise DecodeError(f"'{key}' must be a string")
            strings[key] = value or None

        blacklisted = data.get(FIELD_BLACKLISTED, False)
        if not isinstance(blacklisted, bool):
            raise DecodeError(f"'{FIELD_BLACKLISTED}' must be a boolean")

        meta = data.get(FIELD_META) or {}
        if not isinstance(meta, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in meta.items()
        ):
            raise DecodeError(f"'{FIELD_META}' must map strings to strings")

        return cls(
            timestamp=ts,
            event_category=strings[FIELD_CATEGORY] or EventCategory.UNKNOWN,
            username=strings[FIELD_USERNAME],
            hostname=strings[FIELD_HOSTNAME],
            severity=strings[FIELD_SEVERITY],
            raw_message=strings[FIELD_RAW_MESSAGE] or "",
            is_blacklisted=blacklisted,
            meta=dict(meta),
        )

    @classmethod
    def from_json(cls, line: str) -> StructuredRecord:
        try:
            data = json.loads(line)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"invalid json: {exc}") from exc
        return cls.from_dict(data)
