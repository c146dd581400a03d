"""
Sample event producer for demo and local testing.

Sends one randomly chosen syslog-style line at a time to the stream
collector, wrapped in the collector's JSON line format, then sleeps a
random 1–2 seconds. Each event uses its own short-lived connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from datetime import datetime, timezone
from typing import Any

from config.settings import get_settings
from core.exceptions import ConfigurationError
from events.event_models import EventCategory, format_timestamp

logger = logging.getLogger(__name__)

SAMPLE_MESSAGES: tuple[str, ...] = (
    "<86> host1 sudo: pam_unix(sudo:session): session opened for user root(uid=0) by motadata(uid=1000)",
    "<86> host2 sshd: Accepted password for alice from 198.51.100.23 port 51234 ssh2",
    "<134> WIN-EQ5V3RA5F7H Microsoft-Windows-Security-Auditing: A user account was successfully logged on. Account Name: Motadata",
    "<86> host3 CRON[1234]: (root) CMD (run-parts /etc/cron.daily)",
    "<86> host1 pam_unix: session closed for user motadata",
)

DIAL_RETRY_SECONDS = 2.0


def build_payload(
    message: str,
    *,
    hostname: str,
    source_type: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Wrap a raw message in the collector's line format."""
    ts = (now or datetime.now(timezone.utc)).replace(microsecond=0)
    return {
        "timestamp": format_timestamp(ts),
        "hostname": hostname,
        "event.source.type": source_type,
        "event.category": EventCategory.LOGIN,
        "message": message,
    }


def parse_address(addr: str) -> tuple[str, int]:
    """Split ``host:port``.

    Raises:
        ConfigurationError: If the address has no valid port.
    """
    host, sep, port = addr.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ConfigurationError(f"Invalid collector address: '{addr}' (expected host:port)")
    return host, int(port)


def random_interval(rng: random.Random) -> float:
    """Delay before the next event, in seconds (1–2 s)."""
    return (1000 + rng.randrange(1000)) / 1000.0


async def send_line(host: str, port: int, payload: dict[str, Any]) -> None:
    _, writer = await asyncio.open_connection(host, port)
    try:
        writer.write((json.dumps(payload) + "\n").encode("utf-8"))
        await writer.drain()
    finally:
        writer.close()
        await writer.wait_closed()


async def run_producer(iterations: int | None = None, *, rng: random.Random | None = None) -> int:
    """Emit sample events until stopped (or ``iterations`` are sent).

    Returns the number of events successfully sent.
    """
    settings = get_settings()
    host, port = parse_address(settings.COLLECTOR_ADDR)
    rng = rng or random.Random()
    sent = 0
    attempts = 0

    logger.info("Producing sample events to %s:%d as '%s'", host, port, settings.PRODUCER_HOSTNAME)
    while iterations is None or attempts < iterations:
        attempts += 1
        payload = build_payload(
            rng.choice(SAMPLE_MESSAGES),
            hostname=settings.PRODUCER_HOSTNAME,
            source_type=settings.PRODUCER_CATEGORY,
        )
        try:
            await send_line(host, port, payload)
        except OSError as exc:
            logger.warning("dial error: %s", exc)
            await asyncio.sleep(DIAL_RETRY_SECONDS)
            continue

        sent += 1
        await asyncio.sleep(random_interval(rng))

    return sent
