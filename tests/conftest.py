"""
Shared test fixtures and configuration for pytest.
"""

from __future__ import annotations

import os
import sys
from datetime import datetime, timezone

import pytest

# Ensure project root is importable
_project_root = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _project_root)

os.environ.setdefault("BLACKLIST", "baduser,192.0.2.1")
os.environ.setdefault("LOG_SERVER_URL", "http://log-server.test/ingest")


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Clear settings cache so test env vars take effect."""
    from config.settings import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store_path(tmp_path):
    """Path of a fresh durable log file inside a temp directory."""
    return tmp_path / "data" / "logs.jsonl"


@pytest.fixture
def record_store(store_path):
    """Provide an empty FileRecordStore backed by a temp file."""
    from memory.record_store import FileRecordStore
    return FileRecordStore(store_path)


@pytest.fixture
def make_record():
    """Factory for StructuredRecord instances with sensible defaults."""
    from events.event_models import StructuredRecord

    def _make(
        *,
        minute: int = 0,
        category: str = "event",
        username: str | None = None,
        severity: str | None = None,
        blacklisted: bool = False,
        message: str = "",
        hostname: str | None = None,
    ) -> StructuredRecord:
        return StructuredRecord(
            timestamp=datetime(2024, 5, 1, 12, minute, tzinfo=timezone.utc),
            event_category=category,
            username=username,
            hostname=hostname,
            severity=severity,
            raw_message=message or f"{category} at minute {minute}",
            is_blacklisted=blacklisted,
        )

    return _make


@pytest.fixture
async def api_client(record_store):
    """Async HTTP client bound to a storage server over ``record_store``."""
    from httpx import ASGITransport, AsyncClient
    from main import create_app

    app = create_app(store=record_store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
