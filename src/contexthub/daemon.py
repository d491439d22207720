"""Serve-mode process — the long-lived listener the supervisor spawns.

Usage: python -m contexthub serve [--port N] [--root DIR]

Manages:
- HTTP listener (aiohttp AppRunner + TCPSite)
- Graceful shutdown (SIGTERM/SIGINT)
- Heartbeat log line so the log file shows the process is alive
- Top-level fault logging: a bad request never takes the process down

PID bookkeeping belongs to the supervisor, not to this process.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import signal

from aiohttp import web

from contexthub.config import HubConfig
from contexthub.server import create_app

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PORT_IN_USE = 1


class HubDaemon:
    """Runs the HTTP gateway until a shutdown signal arrives."""

    def __init__(self, config: HubConfig, app: web.Application | None = None) -> None:
        self.config = config
        self._app = app
        self._shutdown_event: asyncio.Event | None = None

    # ── Signal handling ──────────────────────────────────────

    def _setup_signals(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _teardown_signals(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info(
            "Received %s (pid=%d, ppid=%d), shutting down...", sig.name, os.getpid(), os.getppid()
        )
        self.request_shutdown()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @staticmethod
    def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        logger.error("Unhandled error in event loop: %s", context.get("message"), exc_info=exc)

    # ── Main run loop ────────────────────────────────────────

    async def run(self) -> int:
        """Serve until shutdown. Returns the process exit code."""
        loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()
        loop.set_exception_handler(self._handle_loop_exception)

        app = self._app or create_app(self.config)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, self.config.host, self.config.port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            if e.errno == errno.EADDRINUSE:
                logger.error("Port %d is already in use. Exiting.", self.config.port)
                return EXIT_PORT_IN_USE
            raise

        self._setup_signals(loop)
        logger.info(
            "Context hub listening on %s:%d (pid=%d, root=%s)",
            self.config.host,
            self.config.port,
            os.getpid(),
            self.config.root,
        )

        try:
            await self._heartbeat_until_shutdown()
        finally:
            self._teardown_signals(loop)
            await runner.cleanup()
            logger.info("Context hub stopped.")
        return EXIT_OK

    async def _heartbeat_until_shutdown(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.config.heartbeat_interval,
                )
            except asyncio.TimeoutError:
                logger.info("Heartbeat: still running (pid=%d)", os.getpid())
