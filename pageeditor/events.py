"""Observable editor events and a small synchronous emitter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List

from .tracing import log_event

_LOGGER = logging.getLogger("pageeditor.events")


@dataclass(slots=True, frozen=True)
class EditorEvent:
    document_id: str | None


@dataclass(slots=True, frozen=True)
class ContentLoaded(EditorEvent):
    version: int


@dataclass(slots=True, frozen=True)
class LoadFailed(EditorEvent):
    error: str


@dataclass(slots=True, frozen=True)
class ContentSaved(EditorEvent):
    version: int
    forced: bool = False


@dataclass(slots=True, frozen=True)
class SaveFailed(EditorEvent):
    error: str
    conflict_version: int | None = None


@dataclass(slots=True, frozen=True)
class RemoteConflictWarning(EditorEvent):
    """A newer remote version exists while local edits are unsaved."""

    local_version: int
    remote_version: int


@dataclass(slots=True, frozen=True)
class BlockUpdateRejected(EditorEvent):
    block_id: str
    reason: str


@dataclass(slots=True, frozen=True)
class PreviewUpdated(EditorEvent):
    html: str


@dataclass(slots=True, frozen=True)
class PreviewFailed(EditorEvent):
    error: str


Listener = Callable[[EditorEvent], None]


class EventEmitter:
    """Fan events out to subscribed listeners in subscription order."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unsubscribes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, event: EditorEvent) -> None:
        log_event(_LOGGER, logging.DEBUG, "events.emit", kind=type(event).__name__, document_id=event.document_id)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A faulty listener must not abort the edit or save that emitted the event.
                log_event(
                    _LOGGER,
                    logging.ERROR,
                    "events.listener_failed",
                    exc_info=True,
                    kind=type(event).__name__,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                )

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)


__all__ = [
    "BlockUpdateRejected",
    "ContentLoaded",
    "ContentSaved",
    "EditorEvent",
    "EventEmitter",
    "Listener",
    "LoadFailed",
    "PreviewFailed",
    "PreviewUpdated",
    "RemoteConflictWarning",
    "SaveFailed",
]
