"""Source readers that turn project files into context items."""

from __future__ import annotations

from contexthub.config import SourceConfig
from contexthub.sources.base import SourceReader
from contexthub.sources.code import CodeReader
from contexthub.sources.journal import LogReader
from contexthub.sources.knowledge import DocumentReader

__all__ = ["CodeReader", "DocumentReader", "LogReader", "SourceReader", "default_readers"]


def default_readers(config: SourceConfig) -> list[tuple[SourceReader, int]]:
    """Readers in aggregation order (log, document, code), each with its item cap."""
    return [
        (LogReader(), config.log_limit),
        (DocumentReader(max_chars=config.document_max_chars), config.document_limit),
        (CodeReader(), config.code_limit),
    ]
