"""Configuration loading from environment variables and contexthub.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

DEFAULT_PORT = 4242
STATE_DIRNAME = ".contexthub"
_CONFIG_FILENAME = "contexthub.toml"

PID_FILENAME = "context-hub.pid"
TOKEN_FILENAME = "context-hub.token"
LOCK_FILENAME = "context-hub.lock"
LOG_FILENAME = "context-hub.log"

PORT_MIN = 4200
PORT_MAX = 4999


@dataclass
class SourceConfig:
    """Per-source item caps and document truncation."""

    log_limit: int = 20
    document_limit: int = 20
    code_limit: int = 30
    document_max_chars: int = 2000


@dataclass
class SupervisorConfig:
    """Bounded waits used by the daemon supervisor (seconds)."""

    probe_delay: float = 0.5
    ready_grace: float = 0.3
    stop_timeout: float = 3.0
    poll_interval: float = 0.5
    kill_wait: float = 0.1
    restart_pause: float = 0.5
    health_timeout: float = 2.0
    orphan_wait: float = 0.5
    lock_timeout: float = 10.0


@dataclass
class HubConfig:
    """Top-level contexthub configuration for one project root."""

    root: Path = field(default_factory=Path.cwd)
    port: int = DEFAULT_PORT
    host: str = "127.0.0.1"
    log_level: str = "INFO"
    heartbeat_interval: float = 300
    sources: SourceConfig = field(default_factory=SourceConfig)
    supervisor: SupervisorConfig = field(default_factory=SupervisorConfig)

    @property
    def state_dir(self) -> Path:
        return self.root / STATE_DIRNAME

    @property
    def pid_file(self) -> Path:
        return self.state_dir / PID_FILENAME

    @property
    def token_file(self) -> Path:
        return self.state_dir / TOKEN_FILENAME

    @property
    def lock_file(self) -> Path:
        return self.state_dir / LOCK_FILENAME

    @property
    def log_file(self) -> Path:
        return self.state_dir / "logs" / LOG_FILENAME

    @property
    def token_file_display(self) -> str:
        """Token file path relative to the project root, for client hints."""
        return f"{STATE_DIRNAME}/{TOKEN_FILENAME}"


def port_for_project(root: Path) -> int:
    """Deterministic per-project port in PORT_MIN..PORT_MAX (djb2 of the resolved path)."""
    h = 5381
    for ch in str(root.resolve()):
        h = ((h << 5) + h + ord(ch)) & 0xFFFFFFFF
    return PORT_MIN + h % (PORT_MAX - PORT_MIN + 1)


def _resolve_port(value, root: Path) -> int:
    if isinstance(value, str) and value.strip().lower() == "auto":
        return port_for_project(root)
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid port: {value!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range: {port}")
    return port


def _find_config_file(root: Path) -> Path | None:
    for candidate in [root / STATE_DIRNAME / "config.toml", root / _CONFIG_FILENAME]:
        if candidate.exists():
            return candidate
    return None


def load_config(
    root: Path | None = None,
    config_path: Path | None = None,
    port: int | None = None,
) -> HubConfig:
    """Load configuration for a project root.

    Priority: explicit arguments > environment variables > contexthub.toml > defaults.
    """
    root = (root or Path.cwd()).resolve()

    file_data: dict = {}
    path = config_path if config_path and config_path.exists() else _find_config_file(root)
    if path is not None:
        file_data = tomllib.loads(path.read_text(encoding="utf-8"))

    sources_data = file_data.get("sources", {})
    supervisor_data = file_data.get("supervisor", {})

    if port is None:
        port = _resolve_port(
            os.getenv("CONTEXT_HUB_PORT") or file_data.get("port", DEFAULT_PORT), root
        )

    defaults = SupervisorConfig()
    supervisor = SupervisorConfig(
        **{
            name: float(supervisor_data.get(name, getattr(defaults, name)))
            for name in defaults.__dataclass_fields__
        }
    )

    return HubConfig(
        root=root,
        port=port,
        host=os.getenv("CONTEXT_HUB_HOST", file_data.get("host", "127.0.0.1")),
        log_level=os.getenv("CONTEXT_HUB_LOG_LEVEL", file_data.get("log_level", "INFO")),
        heartbeat_interval=float(file_data.get("heartbeat_interval", 300)),
        sources=SourceConfig(
            log_limit=int(sources_data.get("log_limit", 20)),
            document_limit=int(sources_data.get("document_limit", 20)),
            code_limit=int(sources_data.get("code_limit", 30)),
            document_max_chars=int(sources_data.get("document_max_chars", 2000)),
        ),
        supervisor=supervisor,
    )
