"""
Tests for the ingest / query HTTP API.

Covers:
  - POST /ingest acceptance, defaults, decode and storage failures
  - Method restrictions on /ingest
  - GET /logs filter / limit / sort translation
  - GET /metrics aggregation
  - GET /health
"""

from __future__ import annotations

import logging

import pytest
from httpx import ASGITransport, AsyncClient

from memory.record_store import FileRecordStore


async def _ingest(client: AsyncClient, **fields) -> int:
    response = await client.post("/ingest", json=fields)
    return response.status_code


# ═════════════════════════════════════════════════════════════════════════
# Ingestion
# ═════════════════════════════════════════════════════════════════════════


class TestIngest:
    @pytest.mark.asyncio
    async def test_accepts_record(self, api_client, record_store):
        response = await api_client.post(
            "/ingest",
            json={
                "timestamp": "2024-05-01T12:00:00Z",
                "event.category": "login.audit",
                "username": "motadata",
                "hostname": "host1",
                "severity": "INFO",
                "raw.message": "session opened by motadata",
                "meta": {"source": "test"},
            },
        )
        assert response.status_code == 202

        stored = record_store.query()
        assert len(stored) == 1
        assert stored[0].username == "motadata"
        assert stored[0].meta == {"source": "test"}
        assert stored[0].is_blacklisted is False

    @pytest.mark.asyncio
    async def test_defaults_missing_timestamp_and_category(self, api_client, record_store):
        assert await _ingest(api_client, **{"raw.message": "bare"}) == 202

        record = record_store.query()[0]
        assert record.event_category == "unknown"
        assert record.timestamp.tzinfo is not None

    @pytest.mark.asyncio
    async def test_blacklist_flag_accepted_as_is(self, api_client, record_store):
        await _ingest(api_client, username="alice", **{"is.blacklisted": True})
        assert record_store.query()[0].is_blacklisted is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b"not json", b"[]", b'{"timestamp": "never"}', b'{"is.blacklisted": [1]}', b""])
    async def test_rejects_malformed_payload(self, api_client, record_store, body):
        response = await api_client.post(
            "/ingest", content=body, headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("invalid payload")
        assert record_store.count() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("flag", ['"yes"', '"on"', "1", "null"])
    async def test_rejects_non_boolean_blacklist_flag(self, api_client, record_store, flag):
        body = '{"username": "alice", "is.blacklisted": %s}' % flag
        response = await api_client.post(
            "/ingest", content=body, headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert record_store.count() == 0

    @pytest.mark.asyncio
    async def test_rejects_non_post(self, api_client):
        response = await api_client.get("/ingest")
        assert response.status_code == 405

    @pytest.mark.asyncio
    async def test_storage_failure_returns_500(self, tmp_path):
        from main import create_app

        blocked = tmp_path / "logs.jsonl"
        blocked.mkdir()
        store = FileRecordStore(blocked)
        transport = ASGITransport(app=create_app(store=store))

        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/ingest", json={"event.category": "event"})

        assert response.status_code == 500
        assert store.count() == 0


# ═════════════════════════════════════════════════════════════════════════
# Query
# ═════════════════════════════════════════════════════════════════════════


class TestLogs:
    @pytest.fixture
    async def seeded(self, api_client):
        for fields in [
            {"timestamp": "2024-05-01T12:30:00Z", "event.category": "login.audit", "username": "motadata", "severity": "INFO"},
            {"timestamp": "2024-05-01T12:10:00Z", "event.category": "login.audit", "username": "baduser", "severity": "WARN", "is.blacklisted": True},
            {"timestamp": "2024-05-01T12:20:00Z", "event.category": "logout.audit", "username": "motadata", "severity": "INFO"},
            {"timestamp": "2024-05-01T12:10:00Z", "event.category": "event"},
        ]:
            assert await _ingest(api_client, **fields) == 202
        return api_client

    @pytest.mark.asyncio
    async def test_returns_all_in_append_order(self, seeded):
        data = (await seeded.get("/logs")).json()
        assert [r["timestamp"] for r in data] == [
            "2024-05-01T12:30:00Z",
            "2024-05-01T12:10:00Z",
            "2024-05-01T12:20:00Z",
            "2024-05-01T12:10:00Z",
        ]

    @pytest.mark.asyncio
    async def test_blacklisted_filter(self, seeded):
        flagged = (await seeded.get("/logs", params={"is.blacklisted": "true"})).json()
        assert [r["username"] for r in flagged] == ["baduser"]

        clean = (await seeded.get("/logs", params={"is.blacklisted": "false"})).json()
        assert all(r.get("username") != "baduser" for r in clean)
        assert len(clean) == 3

    @pytest.mark.asyncio
    async def test_service_level_username_are_conjunctive(self, seeded):
        data = (
            await seeded.get("/logs", params={"service": "login.audit", "level": "info", "username": "motadata"})
        ).json()
        assert len(data) == 1
        assert data[0]["event.category"] == "login.audit"

    @pytest.mark.asyncio
    async def test_sort_and_limit(self, seeded):
        data = (await seeded.get("/logs", params={"sort": "timestamp", "limit": "2"})).json()
        assert [r["timestamp"] for r in data] == ["2024-05-01T12:10:00Z", "2024-05-01T12:10:00Z"]
        assert data[0]["event.category"] == "login.audit"

    @pytest.mark.asyncio
    async def test_limit_zero_and_garbage_return_all(self, seeded):
        assert len((await seeded.get("/logs", params={"limit": "0"})).json()) == 4
        assert len((await seeded.get("/logs", params={"limit": "ten"})).json()) == 4

    @pytest.mark.asyncio
    async def test_empty_store_returns_empty_list(self, api_client):
        response = await api_client.get("/logs")
        assert response.status_code == 200
        assert response.json() == []


# ═════════════════════════════════════════════════════════════════════════
# Metrics & health
# ═════════════════════════════════════════════════════════════════════════


class TestMetrics:
    @pytest.mark.asyncio
    async def test_metrics_scenario(self, api_client):
        for category in ("login.audit", "login.audit", "event"):
            await _ingest(api_client, **{"event.category": category})

        data = (await api_client.get("/metrics")).json()
        assert data["total_logs"] == 3
        assert data["by_category"] == {"login.audit": 2, "event": 1}
        assert data["by_severity"] == {"": 3}

    @pytest.mark.asyncio
    async def test_health(self, api_client):
        await _ingest(api_client, **{"event.category": "event"})
        data = (await api_client.get("/health")).json()
        assert data["status"] == "healthy"
        assert data["total_logs"] == 1

    @pytest.mark.asyncio
    async def test_startup_logs_environment(self, record_store, monkeypatch, caplog):
        from config.settings import get_settings
        from main import create_app

        monkeypatch.setenv("ENVIRONMENT", "production")
        get_settings.cache_clear()
        app = create_app(store=record_store)

        with caplog.at_level(logging.INFO, logger="logpipe"):
            async with app.router.lifespan_context(app):
                assert app.state.store is record_store

        assert "Environment: production" in caplog.text
        assert "log-server ready" in caplog.text
