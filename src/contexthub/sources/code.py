"""Source-annotation scanner: files that declare an ``@purpose`` line."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from contexthub.models import ContextItem, SourceKind

logger = logging.getLogger(__name__)

SEARCH_DIRS = ["src", "app", "lib", "components", "product/src", "product/packages"]
EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".py")
SKIP_DIRS = {"node_modules", "__pycache__"}
MAX_DEPTH = 4

_PURPOSE_RE = re.compile(r"@purpose\s+(.+?)(?:\n|\*)", re.IGNORECASE)


def extract_purpose(content: str) -> str | None:
    match = _PURPOSE_RE.search(content)
    return match.group(1).strip() if match else None


class CodeReader:
    """Walks the usual source directories collecting ``@purpose`` annotations."""

    def __init__(self, search_dirs: list[str] | None = None) -> None:
        self.search_dirs = search_dirs or SEARCH_DIRS

    @property
    def kind(self) -> SourceKind:
        return SourceKind.CODE

    def read(self, root: Path, limit: int) -> list[ContextItem]:
        items: list[ContextItem] = []
        for rel in self.search_dirs:
            if len(items) >= limit:
                break
            self._scan(root / rel, items, limit, depth=0)
        return items

    def _scan(self, directory: Path, items: list[ContextItem], limit: int, depth: int) -> None:
        if depth > MAX_DEPTH or len(items) >= limit or not directory.is_dir():
            return
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", directory, e)
            return

        for entry in entries:
            if len(items) >= limit:
                return
            if entry.name.startswith(".") or entry.name in SKIP_DIRS:
                continue
            if entry.is_dir():
                self._scan(entry, items, limit, depth + 1)
            elif entry.name.endswith(EXTENSIONS):
                item = self._load(entry)
                if item is not None:
                    items.append(item)

    def _load(self, path: Path) -> ContextItem | None:
        try:
            purpose = extract_purpose(path.read_text(encoding="utf-8", errors="replace"))
        except OSError:
            return None
        if not purpose:
            return None
        return ContextItem(
            source=SourceKind.CODE,
            type="file",
            title=path.name,
            content=purpose,
            path=str(path),
        )
