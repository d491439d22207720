"""Context aggregation: every reader, one corpus, optionally ranked."""

from __future__ import annotations

import logging
from pathlib import Path

from contexthub.config import SourceConfig
from contexthub.models import ContextItem, UnifiedContext, empty_sources
from contexthub.ranking import RelevanceRanker
from contexthub.sources import SourceReader, default_readers

logger = logging.getLogger(__name__)


class ContextAggregator:
    """Builds a UnifiedContext for one project root, re-reading sources on every call."""

    def __init__(
        self,
        root: Path,
        config: SourceConfig | None = None,
        readers: list[tuple[SourceReader, int]] | None = None,
        ranker: RelevanceRanker | None = None,
    ) -> None:
        self.root = root
        self.readers = readers if readers is not None else default_readers(config or SourceConfig())
        self.ranker = ranker or RelevanceRanker()

    def collect(self) -> tuple[list[ContextItem], dict[str, bool]]:
        """Concatenate reader output in reader order and note which sources produced items."""
        items: list[ContextItem] = []
        sources = empty_sources()
        for reader, limit in self.readers:
            found = self._read(reader, limit)
            if found:
                sources[reader.kind.value] = True
            items.extend(found)
        return items, sources

    def _read(self, reader: SourceReader, limit: int) -> list[ContextItem]:
        try:
            return reader.read(self.root, limit)[:limit]
        except Exception:
            logger.exception("Source reader %s failed", reader.kind.value)
            return []

    def gather(self, query: str | None = None, task_type: str | None = None) -> UnifiedContext:
        items, sources = self.collect()
        if query:
            items = self.ranker.rank(items, query)
        return UnifiedContext(items=items, sources=sources, query=query, task_type=task_type)
