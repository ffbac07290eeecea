"""Content store interface consumed by the editor, plus an in-memory implementation.

A store is an opaque, versioned blob keyed by document id. Saves are
compare-and-swap on the version number; ``expected_version=None`` is an
explicit overwrite.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Tuple

from .document import StructuredContent
from .errors import DocumentNotFoundError, EditorError, VersionConflictError
from .rendering import PreviewRenderer
from .tracing import log_event

_LOGGER = logging.getLogger("pageeditor.store")


@dataclass(slots=True)
class LoadedDocument:
    content: StructuredContent
    version: int


@dataclass(slots=True, frozen=True)
class RemoteUpdate:
    """Notification that ``document_id`` now exists at ``version`` remotely."""

    document_id: str
    version: int


class ContentStore(abc.ABC):
    """Interface for the remote copy of the documents being edited."""

    @abc.abstractmethod
    async def load_document(self, document_id: str) -> LoadedDocument:
        """Return the content and version, or raise ``DocumentNotFoundError``/``TransportError``."""

    @abc.abstractmethod
    async def save_document(
        self,
        document_id: str,
        content: StructuredContent,
        expected_version: int | None,
    ) -> int:
        """Store ``content`` and return the new version.

        Raises ``VersionConflictError`` when ``expected_version`` is stale.
        """

    @abc.abstractmethod
    async def render_preview(self, document_id: str, content: StructuredContent) -> str:
        """Return preview HTML for ``content``."""

    @abc.abstractmethod
    def remote_updates(self, document_id: str) -> AsyncIterator[RemoteUpdate]:
        """Yield version notifications; duplicates and reordering are allowed."""

    async def current_version(self, document_id: str) -> int:
        """Return the stored version of ``document_id``."""

        loaded = await self.load_document(document_id)
        return loaded.version

    async def aclose(self) -> None:
        return None


async def poll_remote_updates(
    fetch_version: Callable[[str], Awaitable[int]],
    document_id: str,
    interval: float,
) -> AsyncIterator[RemoteUpdate]:
    """Turn periodic version lookups into a notification feed."""

    last_seen: int | None = None
    while True:
        try:
            version = await fetch_version(document_id)
        except EditorError as exc:
            log_event(_LOGGER, logging.WARNING, "store.poll.failed", document_id=document_id, error=str(exc))
        else:
            if version != last_seen:
                last_seen = version
                yield RemoteUpdate(document_id=document_id, version=version)
        await asyncio.sleep(interval)


class InMemoryContentStore(ContentStore):
    """Process-local versioned store that pushes a notification on every save.

    Content is kept as JSON-ready dictionaries so nothing handed to or from a
    session shares objects with the store.
    """

    def __init__(self, *, renderer: PreviewRenderer | None = None, latency: float = 0.0) -> None:
        self._documents: Dict[str, Tuple[Dict[str, Any], int]] = {}
        self._subscribers: Dict[str, List[asyncio.Queue[RemoteUpdate]]] = {}
        self._renderer = renderer or PreviewRenderer()
        self.latency = latency
        self.load_calls = 0
        self.save_calls = 0
        self.render_calls = 0

    # ------------------------------------------------------------------
    # Test and seeding helpers
    # ------------------------------------------------------------------
    def seed(
        self,
        document_id: str,
        content: StructuredContent | Mapping[str, Any],
        *,
        version: int = 1,
    ) -> None:
        payload = content.to_dict() if isinstance(content, StructuredContent) else dict(content)
        self._documents[document_id] = (payload, version)

    def version_of(self, document_id: str) -> int:
        if document_id not in self._documents:
            raise DocumentNotFoundError(document_id)
        return self._documents[document_id][1]

    def stored_content(self, document_id: str) -> StructuredContent:
        if document_id not in self._documents:
            raise DocumentNotFoundError(document_id)
        return StructuredContent.from_dict(self._documents[document_id][0])

    def put(self, document_id: str, content: StructuredContent) -> int:
        """Write as another client would: unconditional, with a notification."""

        return self._write(document_id, content, expected_version=None)

    # ------------------------------------------------------------------
    # ContentStore API
    # ------------------------------------------------------------------
    async def load_document(self, document_id: str) -> LoadedDocument:
        self.load_calls += 1
        await self._simulate_latency()
        if document_id not in self._documents:
            raise DocumentNotFoundError(document_id)
        payload, version = self._documents[document_id]
        return LoadedDocument(content=StructuredContent.from_dict(payload), version=version)

    async def current_version(self, document_id: str) -> int:
        await self._simulate_latency()
        return self.version_of(document_id)

    async def save_document(
        self,
        document_id: str,
        content: StructuredContent,
        expected_version: int | None,
    ) -> int:
        self.save_calls += 1
        await self._simulate_latency()
        return self._write(document_id, content, expected_version=expected_version)

    async def render_preview(self, document_id: str, content: StructuredContent) -> str:
        self.render_calls += 1
        await self._simulate_latency()
        return self._renderer.render(content)

    def remote_updates(self, document_id: str) -> AsyncIterator[RemoteUpdate]:
        """Subscribe immediately; saves before the first read are still delivered."""

        queue: asyncio.Queue[RemoteUpdate] = asyncio.Queue()
        self._subscribers.setdefault(document_id, []).append(queue)
        return self._drain(document_id, queue)

    async def _drain(self, document_id: str, queue: asyncio.Queue[RemoteUpdate]) -> AsyncIterator[RemoteUpdate]:
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers[document_id].remove(queue)

    def publish(self, document_id: str, version: int) -> None:
        update = RemoteUpdate(document_id=document_id, version=version)
        for queue in self._subscribers.get(document_id, []):
            queue.put_nowait(update)

    # ------------------------------------------------------------------
    def _write(
        self,
        document_id: str,
        content: StructuredContent,
        *,
        expected_version: int | None,
    ) -> int:
        if document_id in self._documents:
            current = self._documents[document_id][1]
        elif expected_version is None:
            current = 0
        else:
            raise DocumentNotFoundError(document_id)

        if expected_version is not None and expected_version != current:
            log_event(
                _LOGGER,
                logging.INFO,
                "store.save.conflict",
                document_id=document_id,
                expected_version=expected_version,
                current_version=current,
            )
            raise VersionConflictError(document_id, current, expected_version)

        new_version = current + 1
        self._documents[document_id] = (content.to_dict(), new_version)
        self.publish(document_id, new_version)
        return new_version

    async def _simulate_latency(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)
        else:
            await asyncio.sleep(0)


__all__ = [
    "ContentStore",
    "InMemoryContentStore",
    "LoadedDocument",
    "RemoteUpdate",
    "poll_remote_updates",
]
