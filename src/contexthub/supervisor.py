"""Daemon supervisor — start/stop/restart/ensure/status for one project root.

The supervisor and the serve-mode process are separate OS processes. They
share only the files under ``.contexthub/`` (PID, token, start lock) and
OS signals.

Policy for ``ensure``: a process is never killed unless it fails the health
check and is not the PID we recorded ourselves.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import socket
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path

import aiohttp
import psutil

from contexthub.auth import TokenStore
from contexthub.config import HubConfig

logger = logging.getLogger(__name__)


@dataclass
class SupervisorResult:
    """Outcome of a lifecycle operation, rendered as-is by the CLI."""

    success: bool
    message: str
    pid: int | None = None


@dataclass
class HubStatus:
    running: bool
    pid: int | None = None
    port: int | None = None


class ProcessHandle:
    """PID-file bookkeeping plus signal-based process probes."""

    def __init__(self, pid_file: Path) -> None:
        self.pid_file = pid_file

    def read(self) -> int | None:
        try:
            return int(self.pid_file.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return None
        except ValueError:
            logger.warning("Corrupt PID file %s, removing", self.pid_file)
            self.forget()
            return None

    def record(self, pid: int) -> None:
        self.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.pid_file.write_text(str(pid), encoding="utf-8")
        logger.debug("PID file written: %s (pid=%d)", self.pid_file, pid)

    def forget(self) -> None:
        self.pid_file.unlink(missing_ok=True)

    def is_alive(self, pid: int) -> bool:
        """Signal-0 probe; zombies count as dead."""
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        try:
            return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            return True

    def terminate(self, pid: int) -> None:
        self._send(pid, signal.SIGTERM)

    def kill(self, pid: int) -> None:
        self._send(pid, signal.SIGKILL)

    def _send(self, pid: int, sig: signal.Signals) -> None:
        try:
            os.kill(pid, sig)
        except ProcessLookupError:
            pass

    def find_listener(self, port: int) -> int | None:
        """PID of the process listening on ``port``, if the OS lets us see it."""
        try:
            connections = psutil.net_connections(kind="inet")
        except psutil.AccessDenied:
            logger.debug("Not permitted to inspect listeners on port %d", port)
            return None
        for conn in connections:
            if conn.laddr and conn.laddr.port == port and conn.status == psutil.CONN_LISTEN:
                return conn.pid
        return None


class DaemonSupervisor:
    """Idempotent lifecycle control for the context hub of one project root."""

    def __init__(self, config: HubConfig, process: ProcessHandle | None = None) -> None:
        self.config = config
        self.process = process or ProcessHandle(config.pid_file)
        self.tokens = TokenStore(config.token_file)
        self._timing = config.supervisor

    # ── Probes ───────────────────────────────────────────────

    def status(self) -> HubStatus:
        """Read the PID file and probe it; a stale PID file is removed."""
        pid = self.process.read()
        if pid is None:
            return HubStatus(running=False, port=self.config.port)
        if self.process.is_alive(pid):
            return HubStatus(running=True, pid=pid, port=self.config.port)
        logger.info("Removing stale PID file (pid=%d)", pid)
        self.process.forget()
        return HubStatus(running=False, port=self.config.port)

    def port_in_use(self, port: int) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind((self.config.host, port))
            except OSError:
                return True
        return False

    def _url(self, port: int, path: str) -> str:
        return f"http://{self.config.host}:{port}{path}"

    async def health_check(self, port: int | None = None) -> bool:
        port = port or self.config.port
        timeout = aiohttp.ClientTimeout(total=self._timing.health_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self._url(port, "/health")) as resp:
                    return resp.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return False

    async def summary(self, port: int | None = None) -> dict | None:
        """Fetch /api/context/status with our own token; None when unreachable."""
        port = port or self.config.port
        headers = {}
        token = self.tokens.read()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        timeout = aiohttp.ClientTimeout(total=self._timing.health_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.get(self._url(port, "/api/context/status")) as resp:
                    if resp.status != 200:
                        return None
                    return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return None

    # ── Start lock ───────────────────────────────────────────

    async def _acquire_start_lock(self) -> bool:
        """Create the lock file exclusively, waiting out a concurrent holder."""
        lock = self.config.lock_file
        lock.parent.mkdir(parents=True, exist_ok=True)
        deadline = time.monotonic() + self._timing.lock_timeout
        while True:
            try:
                fd = os.open(lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
            except FileExistsError:
                if self._lock_is_stale(lock):
                    logger.warning("Breaking stale start lock %s", lock)
                    lock.unlink(missing_ok=True)
                    continue
                if time.monotonic() >= deadline:
                    return False
                await asyncio.sleep(self._timing.poll_interval)
                continue
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(str(os.getpid()))
            return True

    def _lock_is_stale(self, lock: Path) -> bool:
        try:
            return time.time() - lock.stat().st_mtime > self._timing.lock_timeout
        except FileNotFoundError:
            return False

    def _release_start_lock(self) -> None:
        self.config.lock_file.unlink(missing_ok=True)

    # ── Lifecycle ────────────────────────────────────────────

    def _build_command(self, port: int) -> list[str]:
        return [
            sys.executable,
            "-m",
            "contexthub",
            "serve",
            "--port",
            str(port),
            "--root",
            str(self.config.root),
        ]

    def _spawn(self, port: int) -> subprocess.Popen:
        log_file = self.config.log_file
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(log_file, "ab") as log:
            return subprocess.Popen(
                self._build_command(port),
                cwd=self.config.root,
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )

    async def start(self, port: int | None = None) -> SupervisorResult:
        port = port or self.config.port

        if not await self._acquire_start_lock():
            return SupervisorResult(False, "Another start is still in progress")
        try:
            return await self._start_locked(port)
        finally:
            self._release_start_lock()

    async def _start_locked(self, port: int) -> SupervisorResult:
        status = self.status()
        if status.running:
            return SupervisorResult(
                True, f"Context hub already running (PID: {status.pid})", status.pid
            )

        if self.port_in_use(port):
            return SupervisorResult(False, f"Port {port} is already in use by another process")

        token = self.tokens.get_or_create()

        try:
            child = self._spawn(port)
        except OSError as e:
            logger.error("Failed to spawn context hub: %s", e)
            return SupervisorResult(False, f"Failed to spawn daemon process: {e}")

        self.process.record(child.pid)
        logger.info("Spawned context hub (pid=%d, port=%d)", child.pid, port)

        await asyncio.sleep(self._timing.probe_delay)
        if child.poll() is not None or not self.process.is_alive(child.pid):
            self.process.forget()
            return SupervisorResult(
                False,
                f"Process started but immediately exited (see {self.config.log_file})",
            )

        await asyncio.sleep(self._timing.ready_grace)
        return SupervisorResult(
            True, f"Started (PID: {child.pid}). Token: {token[:8]}...", child.pid
        )

    async def stop(self) -> SupervisorResult:
        status = self.status()
        if not status.running:
            return SupervisorResult(True, "Context hub is not running")

        pid = status.pid
        try:
            self.process.terminate(pid)

            deadline = time.monotonic() + self._timing.stop_timeout
            while time.monotonic() < deadline:
                await asyncio.sleep(self._timing.poll_interval)
                if not self.process.is_alive(pid):
                    break
            else:
                if self.process.is_alive(pid):
                    logger.warning("Context hub (pid=%d) ignored SIGTERM, killing", pid)
                    self.process.kill(pid)
                    await asyncio.sleep(self._timing.kill_wait)
        except OSError as e:
            logger.error("Failed to stop context hub (pid=%d): %s", pid, e)
            return SupervisorResult(False, f"Failed to stop daemon: {e}", pid)

        self.process.forget()
        self.tokens.remove()
        return SupervisorResult(True, "Context hub stopped", pid)

    async def restart(self, port: int | None = None) -> SupervisorResult:
        stopped = await self.stop()
        if not stopped.success:
            return stopped
        await asyncio.sleep(self._timing.restart_pause)
        return await self.start(port)

    async def ensure(self, port: int | None = None) -> SupervisorResult:
        """Make the hub healthy, starting it if needed. Never kills a responsive service."""
        port = port or self.config.port

        status = self.status()
        if status.running and await self.health_check(port):
            return SupervisorResult(True, f"Context hub healthy (PID: {status.pid})", status.pid)

        if self.port_in_use(port):
            if await self.health_check(port):
                return SupervisorResult(
                    True, f"Port {port} already serves a healthy context hub; leaving it alone"
                )

            orphan = self.process.find_listener(port)
            if orphan is not None and orphan != status.pid:
                logger.warning("Terminating unresponsive process %d holding port %d", orphan, port)
                try:
                    self.process.terminate(orphan)
                except OSError as e:
                    logger.warning("Could not terminate process %d: %s", orphan, e)
                else:
                    await asyncio.sleep(self._timing.orphan_wait)

        return await self.start(port)
