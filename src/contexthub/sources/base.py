"""SourceReader protocol."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from contexthub.models import ContextItem, SourceKind


@runtime_checkable
class SourceReader(Protocol):
    """Turns one kind of project content into context items.

    Implementations must return an empty list for missing directories and
    never more than ``limit`` items.
    """

    @property
    def kind(self) -> SourceKind: ...

    def read(self, root: Path, limit: int) -> list[ContextItem]: ...
