"""Shared types: context items and the per-request response envelope."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SourceKind(str, Enum):
    """Where a ContextItem originated."""

    LOG = "log"
    DOCUMENT = "document"
    CODE = "code"
    MEMORY = "memory"


@dataclass
class ContextItem:
    """One discoverable fact about the project."""

    source: SourceKind
    type: str
    title: str
    content: str
    path: str | None = None
    timestamp: str | None = None
    relevance: float | None = None  # set by the ranker, never persisted

    @property
    def text(self) -> str:
        """Text the ranker scores: title followed by content."""
        return f"{self.title} {self.content}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "source": self.source.value,
            "type": self.type,
            "title": self.title,
            "content": self.content,
        }
        for key in ("path", "timestamp", "relevance"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


def empty_sources() -> dict[str, bool]:
    return {kind.value: False for kind in SourceKind}


@dataclass
class UnifiedContext:
    """Response envelope, built fresh for every request."""

    items: list[ContextItem] = field(default_factory=list)
    sources: dict[str, bool] = field(default_factory=empty_sources)
    query: str | None = None
    task_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "items": [item.to_dict() for item in self.items],
            "sources": dict(self.sources),
        }
        if self.query is not None:
            data["query"] = self.query
        if self.task_type is not None:
            data["taskType"] = self.task_type
        return data
