"""Reference document reader for knowledge/*.md.

Priority documents come first in a fixed order, then any other markdown
files by name. YAML frontmatter is honoured for the title and stripped
from the content.
"""

from __future__ import annotations

import logging
from pathlib import Path

import frontmatter

from contexthub.models import ContextItem, SourceKind

logger = logging.getLogger(__name__)

PRIORITY_FILES = [
    "VISION.md",
    "ROADMAP.md",
    "NARRATIVE.md",
    "THESIS.md",
    "BRAND_DECISIONS.md",
    "TASKS.md",
]


class DocumentReader:
    """Reads markdown reference documents, truncated to ``max_chars``."""

    def __init__(self, subdir: str = "knowledge", max_chars: int = 2000) -> None:
        self.subdir = subdir
        self.max_chars = max_chars

    @property
    def kind(self) -> SourceKind:
        return SourceKind.DOCUMENT

    def read(self, root: Path, limit: int) -> list[ContextItem]:
        knowledge_dir = root / self.subdir
        items: list[ContextItem] = []
        if not knowledge_dir.is_dir():
            return items

        for md_file in self._ordered_files(knowledge_dir):
            if len(items) >= limit:
                break
            item = self._load(md_file)
            if item is not None:
                items.append(item)
        return items

    def _ordered_files(self, knowledge_dir: Path) -> list[Path]:
        priority = [knowledge_dir / name for name in PRIORITY_FILES]
        priority = [p for p in priority if p.is_file()]
        rest = sorted(
            p for p in knowledge_dir.glob("*.md") if p.is_file() and p.name not in PRIORITY_FILES
        )
        return priority + rest

    def _load(self, md_file: Path) -> ContextItem | None:
        try:
            raw = md_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read document %s: %s", md_file, e)
            return None

        metadata, body = self._split_frontmatter(raw, md_file)
        title = metadata.get("title") or md_file.stem.replace("_", " ")
        return ContextItem(
            source=SourceKind.DOCUMENT,
            type="doc",
            title=str(title),
            content=body[: self.max_chars],
            path=str(md_file),
        )

    def _split_frontmatter(self, raw: str, md_file: Path) -> tuple[dict, str]:
        """Parse YAML frontmatter; malformed headers fall back to the raw text."""
        try:
            post = frontmatter.loads(raw)
            return dict(post.metadata), post.content
        except Exception:
            logger.debug("Unparsable frontmatter in %s, using raw text", md_file.name)
            return {}, raw
