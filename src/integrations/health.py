"""Health check — a tiny HTTP server that answers ``200 OK``.

Hosting platforms keep the process alive as long as this port responds.
Runs on the bot's own event loop alongside polling.
"""

from __future__ import annotations

import logging

from aiohttp import web

logger = logging.getLogger(__name__)


async def _ok(request: web.Request) -> web.Response:
    return web.Response(text="OK")


def create_health_app() -> web.Application:
    app = web.Application()
    app.router.add_get("/", _ok)
    app.router.add_get("/health", _ok)
    return app


class HealthServer:
    """Start/stop wrapper around an aiohttp AppRunner."""

    def __init__(self, port: int, host: str = "0.0.0.0") -> None:
        self.port = port
        self.host = host
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(create_health_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Health check server listening on port %d", self.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Health check server stopped")
