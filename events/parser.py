"""
EnrichmentParser — turns unstructured syslog-style lines into records.

Pure and deterministic apart from the clock: no I/O and no shared
mutable state. The blacklist is fixed at construction time and scanned
in its configured order.

Enrichment steps:
  1. Timestamp — now (UTC), overridden by a valid producer timestamp
  2. Severity  — from a leading ``<N>`` priority marker
  3. Hostname  — first token after the priority marker
  4. Username  — ``by <token>`` anywhere in the message
  5. Category  — keyword classification (login / logout / event)
  6. Blacklist — username membership or literal substring match
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime

from events.event_models import EventCategory, RawEvent, StructuredRecord, parse_rfc3339, utc_now

logger = logging.getLogger(__name__)

# ── Rules ───────────────────────────────────────────────────────────────

_PRIORITY_RE = re.compile(r"^<(\d+)>")
_HOSTNAME_RE = re.compile(r"^<\d+>\s*(\S+)")
_USERNAME_RE = re.compile(r"by\s+([A-Za-z0-9_\-]+)")

SEVERITY_BY_PRIORITY: dict[str, str] = {
    "86": "INFO",
    "134": "WARN",
}
DEFAULT_SEVERITY = "INFO"

# Checked in order; the first matching category wins.
CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (EventCategory.LOGIN, ("login", "logged on", "session opened")),
    (EventCategory.LOGOUT, ("logout", "session closed", "terminated")),
)

DEFAULT_BLACKLIST: tuple[str, ...] = ("baduser", "192.0.2.1")


def map_severity(code: str) -> str:
    """Map a numeric priority code to a severity label."""
    return SEVERITY_BY_PRIORITY.get(code, DEFAULT_SEVERITY)


def classify(message: str) -> str:
    """Infer the event category from keywords (case-insensitive)."""
    lowered = message.lower()
    for category, keywords in CATEGORY_RULES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return EventCategory.EVENT


class EnrichmentParser:
    """Enriches raw event lines into ``StructuredRecord`` objects.

    Usage::

        parser = EnrichmentParser(blacklist=("baduser", "192.0.2.1"))
        record = parser.parse("<86> host1 sshd: session opened by alice")
        record = parser.parse_event(RawEvent.from_json(line))
    """

    def __init__(self, blacklist: Iterable[str] = DEFAULT_BLACKLIST) -> None:
        entries: list[str] = []
        for entry in blacklist:
            if entry and entry not in entries:
                entries.append(entry)
        self._blacklist: tuple[str, ...] = tuple(entries)
        self._blacklist_lower: frozenset[str] = frozenset(e.lower() for e in entries)

    @property
    def blacklist(self) -> tuple[str, ...]:
        return self._blacklist

    def parse(self, message: str, *, now: datetime | None = None) -> StructuredRecord:
        """Enrich a single raw message.

        Severity and hostname stay empty when there is no priority
        marker; an unrecognized code still maps to ``INFO``.
        """
        severity: str | None = None
        hostname: str | None = None
        username: str | None = None

        priority = _PRIORITY_RE.match(message)
        if priority:
            severity = map_severity(priority.group(1))
        host = _HOSTNAME_RE.match(message)
        if host:
            hostname = host.group(1)
        user = _USERNAME_RE.search(message)
        if user:
            username = user.group(1)

        return StructuredRecord(
            timestamp=now or utc_now(),
            event_category=classify(message),
            username=username,
            hostname=hostname,
            severity=severity,
            raw_message=message,
            is_blacklisted=self.is_blacklisted(message, username),
        )

    def parse_event(self, event: RawEvent, *, now: datetime | None = None) -> StructuredRecord:
        """Enrich a decoded ``RawEvent``, honouring its timestamp when valid.

        A malformed producer timestamp is ignored silently and the
        parse-time instant is kept.
        """
        timestamp = now
        if event.timestamp:
            supplied = parse_rfc3339(event.timestamp)
            if supplied is not None:
                timestamp = supplied
            else:
                logger.debug("Ignoring unparseable timestamp %r", event.timestamp)
        return self.parse(event.message, now=timestamp)

    def is_blacklisted(self, message: str, username: str | None) -> bool:
        """True if the username or any blacklist literal matches."""
        if username and username.lower() in self._blacklist_lower:
            return True
        return any(entry in message for entry in self._blacklist)
