"""Tests for the serve-mode daemon process."""

from __future__ import annotations

import asyncio
import logging
import socket
from pathlib import Path

import aiohttp
import pytest

from contexthub.config import HubConfig
from contexthub.daemon import EXIT_OK, EXIT_PORT_IN_USE, HubDaemon


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def wait_healthy(port: int, attempts: int = 50) -> bool:
    async with aiohttp.ClientSession() as session:
        for _ in range(attempts):
            try:
                async with session.get(f"http://127.0.0.1:{port}/health") as resp:
                    if resp.status == 200:
                        return True
            except aiohttp.ClientError:
                pass
            await asyncio.sleep(0.05)
    return False


class TestHubDaemon:
    @pytest.mark.asyncio
    async def test_exits_1_when_port_taken(self, tmp_path: Path):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen()
            port = sock.getsockname()[1]

            code = await HubDaemon(HubConfig(root=tmp_path, port=port)).run()

        assert code == EXIT_PORT_IN_USE

    @pytest.mark.asyncio
    async def test_serves_until_shutdown(self, tmp_path: Path):
        port = free_port()
        daemon = HubDaemon(HubConfig(root=tmp_path, port=port))
        task = asyncio.create_task(daemon.run())

        assert await wait_healthy(port)
        daemon.request_shutdown()
        assert await asyncio.wait_for(task, timeout=5) == EXIT_OK
        assert not await wait_healthy(port, attempts=1)

    @pytest.mark.asyncio
    async def test_heartbeat_logged(self, tmp_path: Path, caplog):
        port = free_port()
        caplog.set_level(logging.INFO, logger="contexthub.daemon")
        config = HubConfig(root=tmp_path, port=port, heartbeat_interval=0.02)
        daemon = HubDaemon(config)
        task = asyncio.create_task(daemon.run())
        assert await wait_healthy(port)
        await asyncio.sleep(0.05)
        daemon.request_shutdown()
        await asyncio.wait_for(task, timeout=5)
        assert any("Heartbeat" in r.getMessage() for r in caplog.records)
