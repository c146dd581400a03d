"""
FastAPI routes for the logpipe storage server.

Endpoints:
  POST /ingest   — Append a structured record (202 / 400 / 500)
  GET  /logs     — Query stored records (filters, limit, sort)
  GET  /metrics  — Total and per-category / per-severity counts
  GET  /health   — Health check

The storage engine is created once at startup and attached to
``app.state.store``; routes receive it through ``get_store``. Storage
calls block on the engine lock and on file I/O, so they run in the
default executor rather than on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.schemas import HealthResponse, IngestRecord, MetricsResponse
from config.settings import get_settings
from core.exceptions import DecodeError, StorageWriteError
from memory.query_engine import FILTER_BLACKLISTED, FILTER_LEVEL, FILTER_SERVICE, FILTER_USERNAME
from memory.record_store import FileRecordStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request) -> FileRecordStore:
    """Return the storage engine bound to this application."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage engine not initialized",
        )
    return store


def decode_ingest_payload(body: bytes) -> IngestRecord:
    """Decode a ``POST /ingest`` body.

    Raises:
        DecodeError: If the body is not a valid record payload.
    """
    try:
        return IngestRecord.model_validate_json(body)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        reason = first.get("msg", "invalid payload")
        raise DecodeError(f"{location}: {reason}" if location else reason) from exc


def parse_limit(raw: Optional[str]) -> int:
    """Parse the ``limit`` parameter; a non-integer value means no limit."""
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        return 0


async def _run_blocking(func: Any, *args: Any) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


# ── Ingestion ───────────────────────────────────────────────────────────


@router.post(
    "/ingest",
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Ingestion"],
    summary="Append a structured record",
)
async def ingest(
    request: Request,
    store: FileRecordStore = Depends(get_store),
) -> Response:
    """Decode a record payload and append it to the durable store."""
    try:
        payload = decode_ingest_payload(await request.body())
    except DecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"invalid payload: {exc.message}",
        )

    record = payload.to_record()
    try:
        await _run_blocking(store.save, record)
    except StorageWriteError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.message,
        )

    logger.debug("Ingested %s record (blacklisted=%s)", record.event_category, record.is_blacklisted)
    return Response(status_code=status.HTTP_202_ACCEPTED)


# ── Queries ─────────────────────────────────────────────────────────────


@router.get(
    "/logs",
    tags=["Query"],
    summary="Query stored records",
)
async def query_logs(
    service: Optional[str] = None,
    level: Optional[str] = None,
    username: Optional[str] = None,
    is_blacklisted: Optional[str] = Query(default=None, alias="is.blacklisted"),
    limit: Optional[str] = None,
    sort: Optional[str] = None,
    store: FileRecordStore = Depends(get_store),
) -> JSONResponse:
    """Return records matching all supplied filters, sorted and limited."""
    filters: dict[str, str] = {}
    for key, value in (
        (FILTER_SERVICE, service),
        (FILTER_LEVEL, level),
        (FILTER_USERNAME, username),
        (FILTER_BLACKLISTED, is_blacklisted),
    ):
        if value:
            filters[key] = value

    records = await _run_blocking(store.query, filters, parse_limit(limit), sort or "")
    return JSONResponse(content=[r.to_dict() for r in records])


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    tags=["Query"],
    summary="Aggregate record counts",
)
async def metrics(store: FileRecordStore = Depends(get_store)) -> MetricsResponse:
    """Return the total record count grouped by category and severity."""
    summary = await _run_blocking(store.summary)
    return MetricsResponse(**summary)


# ── System ──────────────────────────────────────────────────────────────


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["System"],
    summary="Health check",
)
async def health_check(store: FileRecordStore = Depends(get_store)) -> HealthResponse:
    """Return the service health status."""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        service=settings.APP_NAME,
        version=settings.VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        total_logs=await _run_blocking(store.count),
    )
