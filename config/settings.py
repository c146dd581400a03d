"""
Application settings loaded from environment variables.

All configurable values are centralized here — no hard-coded values elsewhere.
Uses pydantic-settings for type-safe .env loading.
"""

from __future__ import annotations

import socket
from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration — loaded from .env / environment variables."""

    # ── General ──────────────────────────────────────────────────────────
    APP_NAME: str = "logpipe"
    VERSION: str = "1.0.0"
    ENVIRONMENT: Environment = Environment.DEVELOPMENT
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    RUN_MODE: str = "server"  # "server" | "collector" | "producer"

    # ── Ingest / Query API ───────────────────────────────────────────────
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8081
    STORAGE_FILE: str = "/data/logs.jsonl"

    # ── Stream collector ─────────────────────────────────────────────────
    COLLECTOR_HOST: str = "0.0.0.0"
    COLLECTOR_PORT: int = 6000
    COLLECTOR_MAX_LINE_BYTES: int = Field(default=1024 * 1024, gt=0)
    LOG_SERVER_URL: str = "http://log-server:8081/ingest"

    # ── Enrichment ───────────────────────────────────────────────────────
    BLACKLIST: str = "baduser,192.0.2.1"  # usernames and IP literals

    # ── Sample producer ──────────────────────────────────────────────────
    COLLECTOR_ADDR: str = "localhost:6000"
    PRODUCER_HOSTNAME: str = Field(default_factory=socket.gethostname)
    PRODUCER_CATEGORY: str = "linux"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @property
    def blacklist_entries(self) -> tuple[str, ...]:
        """Ordered, de-duplicated blacklist literals."""
        entries: list[str] = []
        for item in self.BLACKLIST.split(","):
            item = item.strip()
            if item and item not in entries:
                entries.append(item)
        return tuple(entries)


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
