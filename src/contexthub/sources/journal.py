"""Work-log reader: newest-first entries from .contexthub/journal/*.jsonl."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from contexthub.config import STATE_DIRNAME
from contexthub.models import ContextItem, SourceKind

logger = logging.getLogger(__name__)


class LogReader:
    """Reads timestamped journal entries, one JSON object per line."""

    def __init__(self, subdir: str = f"{STATE_DIRNAME}/journal") -> None:
        self.subdir = subdir

    @property
    def kind(self) -> SourceKind:
        return SourceKind.LOG

    def read(self, root: Path, limit: int) -> list[ContextItem]:
        journal_dir = root / self.subdir
        items: list[ContextItem] = []
        if not journal_dir.is_dir() or limit <= 0:
            return items

        for jsonl_file in sorted(journal_dir.glob("*.jsonl"), reverse=True):
            try:
                lines = jsonl_file.read_text(encoding="utf-8").splitlines()
            except OSError as e:
                logger.warning("Failed to read %s: %s", jsonl_file, e)
                continue

            for line in reversed(lines):
                if len(items) >= limit:
                    return items
                if not line.strip():
                    continue
                item = self._parse_line(line, jsonl_file)
                if item is not None:
                    items.append(item)

        return items

    def _parse_line(self, line: str, path: Path) -> ContextItem | None:
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed journal line in %s", path.name)
            return None
        if not isinstance(entry, dict):
            return None

        return ContextItem(
            source=SourceKind.LOG,
            type=_as_text(entry.get("type")) or "entry",
            title=_as_text(entry.get("title")) or "Untitled",
            content=_as_text(entry.get("summary")) or _as_text(entry.get("detail")),
            timestamp=_as_timestamp(entry.get("ts")),
            path=str(path),
        )


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _as_timestamp(value) -> str | None:
    """ISO-8601 string for ``ts``; numbers are epoch milliseconds."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return None
