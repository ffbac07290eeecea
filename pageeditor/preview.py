"""Debounced preview regeneration for the document being edited."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Literal, Tuple

from pydantic import BaseModel, Field, model_validator

from .document import StructuredContent, clone_content
from .errors import EditorError
from .events import EventEmitter, PreviewFailed, PreviewUpdated
from .store import ContentStore
from .timers import Debouncer
from .tracing import log_event, trace

_LOGGER = logging.getLogger("pageeditor.preview")

DEFAULT_PREVIEW_DEBOUNCE = 0.5

DeviceType = Literal["desktop", "tablet", "mobile"]


@dataclass(slots=True, frozen=True)
class DevicePreset:
    label: str
    width: str
    height: str


DEVICE_PRESETS: Dict[str, DevicePreset] = {
    "desktop": DevicePreset(label="Desktop", width="100%", height="100%"),
    "tablet": DevicePreset(label="Tablet", width="768px", height="1024px"),
    "mobile": DevicePreset(label="Mobile", width="375px", height="667px"),
}


class PreviewUpdate(BaseModel):
    """Preview event pushed by a rendering backend."""

    item_id: str
    update_type: Literal["full", "block"]
    full_html: str | None = None
    html_fragment: str | None = None
    block_index: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_payload(self) -> "PreviewUpdate":
        if self.update_type == "full" and self.full_html is None:
            raise ValueError("full preview updates require full_html")
        return self


DocumentSource = Callable[[], Tuple[str | None, StructuredContent | None]]


class PreviewSync:
    """Keeps preview HTML in step with the document.

    ``request_preview`` is debounced; ``refresh_preview`` renders right away.
    Only one render is in flight at a time and requests arriving meanwhile
    collapse into a single follow-up render of the latest content.
    """

    def __init__(
        self,
        store: ContentStore,
        source: DocumentSource,
        *,
        debounce: float = DEFAULT_PREVIEW_DEBOUNCE,
        emitter: EventEmitter | None = None,
        enabled: bool = True,
    ) -> None:
        self._store = store
        self._source = source
        self._emitter = emitter or EventEmitter()
        self.enabled = enabled
        self._debouncer = Debouncer(debounce, self._on_debounce, name="preview")
        self._html: str | None = None
        self._error: str | None = None
        self._render_task: asyncio.Task[str | None] | None = None
        self._rerender_requested = False
        self._device: str = "desktop"
        self._closed = False
        self.render_count = 0

    @property
    def html(self) -> str | None:
        return self._html

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    @property
    def is_rendering(self) -> bool:
        return self._render_task is not None

    @property
    def device(self) -> str:
        return self._device

    @property
    def device_preset(self) -> DevicePreset:
        return DEVICE_PRESETS[self._device]

    def set_device(self, device: DeviceType) -> None:
        if device not in DEVICE_PRESETS:
            raise ValueError(f"Unknown preview device: {device}")
        self._device = device

    def request_preview(self) -> None:
        if self._closed or not self.enabled or self._source()[1] is None:
            return
        self._debouncer.trigger()

    async def refresh_preview(self) -> str | None:
        """Render now, cancelling any pending debounced request. No-op once closed."""

        self._debouncer.cancel()
        if self._closed:
            return self._html
        if self._render_task is not None:
            self._rerender_requested = True
            return await asyncio.shield(self._render_task)
        self._render_task = asyncio.get_running_loop().create_task(self._render_loop())
        return await asyncio.shield(self._render_task)

    async def apply_update(self, update: PreviewUpdate) -> str | None:
        """Adopt a pushed preview; block fragments trigger a full refresh instead."""

        document_id, _ = self._source()
        if update.item_id != document_id:
            log_event(_LOGGER, logging.DEBUG, "preview.update.ignored", item_id=update.item_id)
            return self._html
        if update.update_type == "full":
            self._html = update.full_html
            self._error = None
            self._emitter.emit(PreviewUpdated(document_id=document_id, html=self._html or ""))
            return self._html
        log_event(_LOGGER, logging.DEBUG, "preview.update.fragment", block_index=update.block_index)
        return await self.refresh_preview()

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        self._closed = True
        await self._debouncer.close()
        task, self._render_task = self._render_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _on_debounce(self) -> None:
        await self.refresh_preview()

    async def _render_loop(self) -> str | None:
        try:
            html = await self._render_once()
            while self._rerender_requested:
                self._rerender_requested = False
                html = await self._render_once()
        finally:
            self._rerender_requested = False
            self._render_task = None
        return html

    async def _render_once(self) -> str | None:
        document_id, content = self._source()
        if document_id is None or content is None:
            return self._html
        snapshot = clone_content(content)
        try:
            with trace("preview.render", logger=_LOGGER, document_id=document_id, block_count=len(snapshot.blocks)):
                html = await self._store.render_preview(document_id, snapshot)
        except EditorError as exc:
            self._error = str(exc)
            self._emitter.emit(PreviewFailed(document_id=document_id, error=self._error))
            return self._html
        self._html = html
        self._error = None
        self.render_count += 1
        self._emitter.emit(PreviewUpdated(document_id=document_id, html=html))
        return html


__all__ = [
    "DEFAULT_PREVIEW_DEBOUNCE",
    "DEVICE_PRESETS",
    "DevicePreset",
    "DeviceType",
    "PreviewSync",
    "PreviewUpdate",
]
