"""Editing session: one document, its history, persistence and preview."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any, Callable, List, Literal, Mapping

from .blocks import BaseBlock
from .config import EditorConfig
from .document import Document, StructuredContent
from .events import BlockUpdateRejected, EventEmitter, Listener
from .history import HistoryManager
from .mutations import MutationEngine
from .persistence import Autosaver, PersistenceCoordinator
from .preview import DEVICE_PRESETS, DevicePreset, DeviceType, PreviewSync, PreviewUpdate
from .store import ContentStore
from .tracing import log_event

_LOGGER = logging.getLogger("pageeditor.session")

EditorMode = Literal["view", "edit"]


class EditorSession:
    """Owns every piece of mutable editor state for a single open document.

    Sessions are independent: two sessions over the same store share nothing
    but the store. Timers and the remote-update watcher started by
    :meth:`open` are torn down by :meth:`close`.
    """

    def __init__(
        self,
        store: ContentStore,
        config: EditorConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._config = config or EditorConfig()
        self._events = EventEmitter()
        self._document = Document()
        self._history = HistoryManager(self._config.max_history_length)
        self._mutations = MutationEngine(
            self._document,
            self._history,
            on_change=self._after_edit,
            on_rejected=self._on_rejected,
        )
        self._persistence = PersistenceCoordinator(
            store,
            self._document,
            self._history,
            emitter=self._events,
            on_loaded=self._after_load,
            clock=clock,
        )
        self._preview = PreviewSync(
            store,
            self._preview_source,
            debounce=self._config.preview_debounce,
            emitter=self._events,
            enabled=self._config.live_preview_enabled,
        )
        self._autosaver = Autosaver(
            self._persistence,
            interval=self._config.autosave_interval,
            min_gap=self._config.autosave_min_gap,
            idle_delay=self._config.autosave_idle_delay,
        )
        self._watch_task: asyncio.Task[None] | None = None
        self._mode: EditorMode = "edit"
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def open(self, document_id: str) -> bool:
        """Load ``document_id``, render its preview and start background work."""

        if self._closed:
            raise RuntimeError("EditorSession is closed")
        if not await self._persistence.load_content(document_id):
            return False
        await self._stop_watching()
        self._watch_task = asyncio.get_running_loop().create_task(
            self._persistence.watch_remote_updates(self._store.remote_updates(document_id))
        )
        self._watch_task.add_done_callback(self._on_watch_done)
        if self._config.autosave_enabled:
            self._autosaver.start()
        if self._preview.enabled:
            await self._preview.refresh_preview()
        log_event(_LOGGER, logging.INFO, "session.open", document_id=document_id)
        return True

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._persistence.is_dirty:
            log_event(_LOGGER, logging.WARNING, "session.close.dirty", document_id=self.document_id)
        await self._autosaver.stop()
        await self._stop_watching()
        await self._persistence.close()
        await self._preview.close()
        log_event(_LOGGER, logging.INFO, "session.close", document_id=self.document_id)

    async def __aenter__(self) -> "EditorSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _stop_watching(self) -> None:
        task, self._watch_task = self._watch_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def _on_watch_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_event(_LOGGER, logging.ERROR, "session.watch.failed", error=repr(exc), document_id=self.document_id)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def config(self) -> EditorConfig:
        return self._config

    @property
    def document_id(self) -> str | None:
        return self._persistence.document_id

    @property
    def content(self) -> StructuredContent | None:
        return self._document.content

    @property
    def blocks(self) -> List[BaseBlock]:
        return self._document.blocks()

    @property
    def block_count(self) -> int:
        return len(self._document.blocks())

    @property
    def history(self) -> HistoryManager:
        return self._history

    @property
    def persistence(self) -> PersistenceCoordinator:
        return self._persistence

    @property
    def preview(self) -> PreviewSync:
        return self._preview

    @property
    def autosaver(self) -> Autosaver:
        return self._autosaver

    @property
    def selected_block_id(self) -> str | None:
        return self._mutations.selected_block_id

    @property
    def selected_block(self) -> BaseBlock | None:
        return self._mutations.selected_block

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def is_dirty(self) -> bool:
        return self._persistence.is_dirty

    @property
    def is_loading(self) -> bool:
        return self._persistence.is_loading

    @property
    def is_saving(self) -> bool:
        return self._persistence.is_saving

    @property
    def content_version(self) -> int:
        return self._persistence.content_version

    @property
    def error(self) -> str | None:
        return self._persistence.error or self._preview.error

    @property
    def preview_html(self) -> str | None:
        return self._preview.html

    @property
    def mode(self) -> EditorMode:
        return self._mode

    def set_mode(self, mode: EditorMode) -> None:
        if mode not in ("view", "edit"):
            raise ValueError(f"Unknown editor mode: {mode}")
        self._mode = mode

    @property
    def preview_device(self) -> str:
        return self._preview.device

    @property
    def preview_device_preset(self) -> DevicePreset:
        return DEVICE_PRESETS[self._preview.device]

    def set_preview_device(self, device: DeviceType) -> None:
        self._preview.set_device(device)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._events.subscribe(listener)

    def clear_error(self) -> None:
        self._persistence.clear_error()

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    def add_block(self, block_type: str, after_id: str | None = None) -> str | None:
        return self._mutations.add_block(block_type, after_id)

    def delete_block(self, block_id: str) -> bool:
        return self._mutations.delete_block(block_id)

    def move_block(self, from_index: int, to_index: int) -> bool:
        return self._mutations.move_block(from_index, to_index)

    def duplicate_block(self, block_id: str) -> str | None:
        return self._mutations.duplicate_block(block_id)

    def update_block(self, block_id: str, fields: Mapping[str, Any]) -> bool:
        return self._mutations.update_block(block_id, fields)

    def update_block_json(self, block_id: str, text: str) -> bool:
        return self._mutations.update_block_json(block_id, text)

    def block_json(self, block_id: str) -> str | None:
        return self._mutations.block_json(block_id)

    def select_block(self, block_id: str | None) -> None:
        self._mutations.select_block(block_id)

    def undo(self) -> bool:
        content = self._history.undo()
        if content is None:
            return False
        self._restore(content, "undo")
        return True

    def redo(self) -> bool:
        content = self._history.redo()
        if content is None:
            return False
        self._restore(content, "redo")
        return True

    def reset_content(self) -> bool:
        """Return to the last loaded or saved content; the revert itself can be undone."""

        original = self._persistence.original_content
        current = self._document.content
        if original is None or current is None or current == original:
            return False
        self._history.checkpoint(current)
        self._document.replace_content(original)
        self._history.checkpoint(self._document.content)
        self._mutations.select_block(None)
        self._after_edit()
        log_event(_LOGGER, logging.INFO, "session.reset", document_id=self.document_id)
        return True

    # ------------------------------------------------------------------
    # Persistence and preview
    # ------------------------------------------------------------------
    async def save(self) -> bool:
        return await self._persistence.save_content()

    async def force_save(self) -> bool:
        return await self._persistence.force_save()

    async def reload(self) -> bool:
        if self.document_id is None:
            return False
        return await self._persistence.load_content(self.document_id)

    def request_preview(self) -> None:
        self._preview.request_preview()

    async def refresh_preview(self) -> str | None:
        return await self._preview.refresh_preview()

    async def apply_preview_update(self, update: PreviewUpdate) -> str | None:
        return await self._preview.apply_update(update)

    # ------------------------------------------------------------------
    def _restore(self, content: StructuredContent, action: str) -> None:
        self._document.replace_content(content)
        self._mutations.prune_selection()
        self._persistence.mark_changed()
        self._preview.request_preview()
        self._autosaver.notify_edit()
        log_event(_LOGGER, logging.DEBUG, f"session.{action}", cursor=self._history.cursor)

    def _after_edit(self) -> None:
        self._persistence.mark_changed()
        self._preview.request_preview()
        self._autosaver.notify_edit()

    def _after_load(self) -> None:
        self._mutations.select_block(None)
        self._preview.request_preview()

    def _on_rejected(self, block_id: str, reason: str) -> None:
        self._events.emit(BlockUpdateRejected(document_id=self.document_id, block_id=block_id, reason=reason))

    def _preview_source(self) -> tuple[str | None, StructuredContent | None]:
        return self._persistence.document_id, self._document.content


__all__ = ["EditorMode", "EditorSession"]
