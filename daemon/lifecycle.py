"""
ServiceLifecycle — startup/shutdown management for long-running services.

Installs SIGINT/SIGTERM handlers and blocks until one arrives. Shutdown
is never bounded by a timeout: stopping the service waits for work that
is already in flight instead of cancelling it.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Service(Protocol):
    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class ServiceLifecycle:
    """Manages service startup and shutdown sequences.

    Usage::

        lifecycle = ServiceLifecycle(service)
        await lifecycle.start()
        await lifecycle.wait_for_shutdown()
    """

    def __init__(self, service: Service) -> None:
        self._service = service
        self._shutdown_event = asyncio.Event()
        self._started = False

    # ── Public API ──────────────────────────────────────────────────────

    async def start(self) -> None:
        """Install signal handlers and start the service."""
        self._install_signal_handlers()
        await self._service.start()
        self._started = True
        logger.info("ServiceLifecycle: %s started", type(self._service).__name__)

    async def wait_for_shutdown(self) -> None:
        """Block until a shutdown is requested, then stop the service."""
        await self._shutdown_event.wait()
        await self.stop()

    async def stop(self) -> None:
        if not self._started:
            return
        logger.info("ServiceLifecycle: shutting down...")
        await self._service.stop()
        self._started = False
        logger.info("ServiceLifecycle: shutdown complete")

    def request_shutdown(self) -> None:
        """Request a graceful shutdown (can be called from signal handler)."""
        logger.info("ServiceLifecycle: shutdown requested")
        self._shutdown_event.set()

    def is_running(self) -> bool:
        return self._started

    def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy" if self._started else "stopped",
            "started": self._started,
        }

    # ── Signal handling ────────────────────────────────────────────────

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self.request_shutdown)
            logger.debug("ServiceLifecycle: signal handlers installed")
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            logger.debug("ServiceLifecycle: signal handlers not supported on this platform")
