"""SQLite backed content store with compare-and-swap saves."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Iterator, List

from .document import StructuredContent
from .errors import DocumentNotFoundError, TransportError, VersionConflictError
from .rendering import PreviewRenderer
from .store import ContentStore, LoadedDocument, RemoteUpdate, poll_remote_updates
from .tracing import log_event

_LOGGER = logging.getLogger("pageeditor.state")


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(slots=True)
class RevisionRecord:
    """A saved version of a document as recorded in the database."""

    document_id: str
    version: int
    created_at: str


class SqliteContentStore(ContentStore):
    """Durable store keeping the latest content plus one row per saved version."""

    def __init__(
        self,
        db_path: Path,
        *,
        renderer: PreviewRenderer | None = None,
        poll_interval: float = 5.0,
    ) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._renderer = renderer or PreviewRenderer()
        self._poll_interval = poll_interval
        self._ensure_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise TransportError(f"SQLite store failure: {exc}") from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    content_json TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    updated_at TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS revisions (
                    document_id TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    content_json TEXT NOT NULL,
                    created_at TEXT,
                    PRIMARY KEY (document_id, version)
                )
                """
            )

    # ------------------------------------------------------------------
    # Synchronous primitives
    # ------------------------------------------------------------------
    def _load(self, document_id: str) -> LoadedDocument:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT content_json, version FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
        if row is None:
            raise DocumentNotFoundError(document_id)
        content = StructuredContent.from_dict(json.loads(row["content_json"]))
        return LoadedDocument(content=content, version=int(row["version"]))

    def _version(self, document_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT version FROM documents WHERE id = ?", (document_id,)).fetchone()
        if row is None:
            raise DocumentNotFoundError(document_id)
        return int(row["version"])

    def _save(self, document_id: str, payload: str, expected_version: int | None) -> int:
        now = _iso_now()
        with self._connect() as conn:
            row = conn.execute("SELECT version FROM documents WHERE id = ?", (document_id,)).fetchone()
            if row is None:
                if expected_version is not None:
                    raise DocumentNotFoundError(document_id)
                conn.execute(
                    "INSERT INTO documents(id, content_json, version, updated_at) VALUES(?,?,?,?)",
                    (document_id, payload, 1, now),
                )
                new_version = 1
            else:
                if expected_version is None:
                    cursor = conn.execute(
                        "UPDATE documents SET content_json = ?, version = version + 1, updated_at = ?"
                        " WHERE id = ?",
                        (payload, now, document_id),
                    )
                else:
                    cursor = conn.execute(
                        "UPDATE documents SET content_json = ?, version = version + 1, updated_at = ?"
                        " WHERE id = ? AND version = ?",
                        (payload, now, document_id, expected_version),
                    )
                if cursor.rowcount == 0:
                    raise VersionConflictError(document_id, int(row["version"]), expected_version)
                new_version = int(
                    conn.execute("SELECT version FROM documents WHERE id = ?", (document_id,)).fetchone()[0]
                )
            conn.execute(
                "INSERT INTO revisions(document_id, version, content_json, created_at) VALUES(?,?,?,?)",
                (document_id, new_version, payload, now),
            )
        return new_version

    def list_revisions(self, document_id: str) -> List[RevisionRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT document_id, version, created_at FROM revisions WHERE document_id = ?"
                " ORDER BY version DESC",
                (document_id,),
            ).fetchall()
        return [
            RevisionRecord(document_id=row["document_id"], version=int(row["version"]), created_at=row["created_at"])
            for row in rows
        ]

    # ------------------------------------------------------------------
    # ContentStore API
    # ------------------------------------------------------------------
    async def load_document(self, document_id: str) -> LoadedDocument:
        return await asyncio.to_thread(self._load, document_id)

    async def current_version(self, document_id: str) -> int:
        return await asyncio.to_thread(self._version, document_id)

    async def save_document(
        self,
        document_id: str,
        content: StructuredContent,
        expected_version: int | None,
    ) -> int:
        payload = json.dumps(content.to_dict(), ensure_ascii=False)
        new_version = await asyncio.to_thread(self._save, document_id, payload, expected_version)
        log_event(_LOGGER, logging.INFO, "state.save", document_id=document_id, version=new_version)
        return new_version

    async def render_preview(self, document_id: str, content: StructuredContent) -> str:
        return self._renderer.render(content)

    def remote_updates(self, document_id: str) -> AsyncIterator[RemoteUpdate]:
        return poll_remote_updates(self.current_version, document_id, self._poll_interval)


__all__ = ["RevisionRecord", "SqliteContentStore"]
