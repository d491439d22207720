"""Peer service discovery from .contexthub/services.json registries."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from contexthub.config import STATE_DIRNAME

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "services.json"


def _search_paths(root: Path) -> list[Path]:
    """Root, parent, grandparent, then sibling directories with 'gtm' in the name."""
    paths = [root, root.parent, root.parent.parent]
    try:
        siblings = sorted(p for p in root.parent.iterdir() if p.is_dir())
    except OSError:
        siblings = []
    paths.extend(p for p in siblings if "gtm" in p.name.lower() and p != root)
    return list(dict.fromkeys(paths))


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _mcp_info(service_path: str | None) -> dict | None:
    if not service_path:
        return None
    service_json = Path(service_path) / "service.json"
    if not service_json.is_file():
        return None
    try:
        data = _read_json(service_json)
    except (OSError, json.JSONDecodeError):
        return None
    mcp = data.get("mcp") if isinstance(data, dict) else None
    if not mcp:
        return None
    return {"enabled": bool(mcp.get("enabled", False)), "transport": mcp.get("transport", "stdio")}


def _normalize(name: str, data: dict) -> dict[str, Any]:
    return {
        "name": name,
        "type": data.get("type", "unknown"),
        "description": data.get("description", ""),
        "path": data.get("path"),
        "status": "stopped" if data.get("port") else "unknown",
        "mcp": _mcp_info(data.get("path")),
        "commands": data.get("commands"),
        "healthcheck": data.get("healthcheck"),
        "port": data.get("port"),
        "dependencies": data.get("dependencies"),
    }


def discover_services(root: Path) -> dict[str, dict[str, Any]]:
    """Merge every reachable registry; later registries override earlier names."""
    services: dict[str, dict[str, Any]] = {}
    for search_path in _search_paths(root):
        registry = search_path / STATE_DIRNAME / REGISTRY_FILENAME
        if not registry.is_file():
            continue
        try:
            data = _read_json(registry)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to read services from %s: %s", registry, e)
            continue
        if not isinstance(data, dict):
            logger.warning("Ignoring %s: expected an object", registry)
            continue
        for name, entry in data.items():
            if isinstance(entry, dict):
                services[name] = _normalize(name, entry)
    return services
