"""Bounded linear undo/redo history of document snapshots."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Tuple

from .document import StructuredContent, clone_content
from .tracing import log_event

DEFAULT_MAX_HISTORY = 50

_LOGGER = logging.getLogger("pageeditor.history")


@dataclass(slots=True)
class HistoryItem:
    content: StructuredContent
    timestamp: float


class HistoryManager:
    """Snapshot stack with a cursor marking the entry equal to the live document.

    Every stored item is a deep copy and every returned item is a deep copy,
    so nothing handed out by the manager can alias what it keeps.
    A checkpoint equal to the entry under the cursor is not stored twice,
    which lets the mutation engine checkpoint both the state before and the
    state after a change: undo then lands on the former and redo on the latter.
    """

    def __init__(self, max_length: int = DEFAULT_MAX_HISTORY) -> None:
        if max_length < 1:
            raise ValueError("max_length must be at least 1")
        self._max_length = max_length
        self._items: List[HistoryItem] = []
        self._cursor = -1

    @property
    def max_length(self) -> int:
        return self._max_length

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def items(self) -> Tuple[HistoryItem, ...]:
        return tuple(self._items)

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._items) - 1

    def checkpoint(self, content: StructuredContent) -> None:
        """Record ``content`` at the cursor, discarding any redo branch."""

        del self._items[self._cursor + 1 :]
        if self._items and self._items[self._cursor].content == content:
            return

        self._items.append(HistoryItem(content=clone_content(content), timestamp=time.time()))
        self._cursor = len(self._items) - 1

        if len(self._items) > self._max_length:
            evicted = len(self._items) - self._max_length
            del self._items[:evicted]
            self._cursor -= evicted
            log_event(_LOGGER, logging.DEBUG, "history.evict", evicted=evicted, size=len(self._items))

    def undo(self) -> StructuredContent | None:
        if self._cursor <= 0:
            return None
        self._cursor -= 1
        return clone_content(self._items[self._cursor].content)

    def redo(self) -> StructuredContent | None:
        if self._cursor >= len(self._items) - 1:
            return None
        self._cursor += 1
        return clone_content(self._items[self._cursor].content)

    def reset(self, content: StructuredContent) -> None:
        """Drop all history and start over from a single snapshot of ``content``."""

        self._items = [HistoryItem(content=clone_content(content), timestamp=time.time())]
        self._cursor = 0

    def clear(self) -> None:
        self._items = []
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._items)


__all__ = ["DEFAULT_MAX_HISTORY", "HistoryItem", "HistoryManager"]
