"""
API server for archiver status and metrics.

Provides HTTP endpoints for:
- /health - Health check endpoint
- /status - Last sync cycle report and archive tip as JSON
- /metrics - Prometheus metrics endpoint
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Final

from aiohttp import web

from chain_archive.metrics import generate_metrics

logger = logging.getLogger(__name__)

SERVICE_NAME: Final = "chain-archive"
"""Fixed service identifier returned by the health endpoint."""

StatusGetter = Callable[[], dict[str, Any]]
"""Returns the JSON body served by /status."""


def _no_status() -> dict[str, Any]:
    """Default status getter used before the service is wired in."""
    return {}


async def _handle_health(_request: web.Request) -> web.Response:
    """Handle health check endpoint."""
    return web.json_response({"status": "healthy", "service": SERVICE_NAME})


async def _handle_metrics(_request: web.Request) -> web.Response:
    """Handle Prometheus metrics endpoint."""
    return web.Response(
        body=generate_metrics(),
        content_type="text/plain; version=0.0.4",
        charset="utf-8",
    )


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Configuration for the API server."""

    host: str = "127.0.0.1"
    """Host address to bind to."""

    port: int = 9380
    """Port to listen on."""


@dataclass(slots=True)
class ApiServer:
    """
    HTTP API server for archiver monitoring.

    Uses aiohttp to handle HTTP protocol details.
    """

    config: ApiServerConfig
    """Server configuration."""

    status_getter: StatusGetter = _no_status
    """Callable that returns the current status snapshot."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """The aiohttp application runner."""

    _stopped: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)
    """Set when the server should shut down."""

    def create_app(self) -> web.Application:
        """Build the aiohttp application with all routes."""
        app = web.Application()
        app.add_routes(
            [
                web.get("/health", _handle_health),
                web.get("/status", self._handle_status),
                web.get("/metrics", _handle_metrics),
            ]
        )
        return app

    async def start(self) -> None:
        """Start serving in the background."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await site.start()

        logger.info("API server listening on %s:%d", self.config.host, self.config.port)

    async def run(self) -> None:
        """
        Run the API server until shutdown.

        Starts the server if needed and blocks until stop() is called.
        """
        if self._runner is None:
            await self.start()
        try:
            await self._stopped.wait()
        finally:
            await self._cleanup()

    def stop(self) -> None:
        """Request graceful shutdown."""
        self._stopped.set()

    async def _cleanup(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("API server stopped")

    async def _handle_status(self, _request: web.Request) -> web.Response:
        """
        Handle status endpoint.

        Response format:
        {
            "running": <bool>,
            "archive_height": <int | null>,
            "last_cycle": {...} | null
        }
        """
        return web.json_response(self.status_getter())
