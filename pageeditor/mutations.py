"""Structural edits on the live document.

Every operation is synchronous and never raises for a missing block or an
out of range index: those calls return without touching the document or the
history. An applied edit checkpoints the state before and after the change
and then notifies the owner through ``on_change``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, List, Mapping

from .blocks import BaseBlock, block_payload, new_block_id, parse_block, utc_now
from .document import Document
from .errors import EditorError, MalformedBlockPayloadError
from .history import HistoryManager
from .registry import create_default
from .tracing import log_event

_LOGGER = logging.getLogger("pageeditor.mutations")

ChangeCallback = Callable[[], None]
RejectCallback = Callable[[str, str], None]


class MutationEngine:
    """The only writer of the document's block list."""

    def __init__(
        self,
        document: Document,
        history: HistoryManager,
        *,
        on_change: ChangeCallback | None = None,
        on_rejected: RejectCallback | None = None,
    ) -> None:
        self._document = document
        self._history = history
        self._on_change = on_change
        self._on_rejected = on_rejected
        self._selected_block_id: str | None = None

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    @property
    def selected_block_id(self) -> str | None:
        return self._selected_block_id

    @property
    def selected_block(self) -> BaseBlock | None:
        if self._selected_block_id is None:
            return None
        found = self._document.find(self._selected_block_id)
        return found[1] if found else None

    def select_block(self, block_id: str | None) -> None:
        """Select ``block_id``; ``None`` or an unknown id clears the selection."""

        if block_id is not None and self._document.find(block_id) is None:
            block_id = None
        self._selected_block_id = block_id

    def prune_selection(self) -> None:
        """Drop the selection if its block no longer exists (after undo, redo or load)."""

        if self._selected_block_id is not None and self._document.find(self._selected_block_id) is None:
            self._selected_block_id = None

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------
    def add_block(self, block_type: str, after_id: str | None = None) -> str | None:
        """Insert a default block of ``block_type`` and select it.

        The block goes right after ``after_id`` when that id exists, at the
        end of the list otherwise. Returns the new block id.
        """

        if not self._document.is_loaded:
            return None
        blocks = self._document.blocks()
        position = len(blocks)
        if after_id is not None:
            found = self._document.find(after_id)
            if found is not None:
                position = found[0] + 1

        block = create_default(block_type, position)
        blocks.insert(position, block)
        if not self._commit(blocks, "add", block_id=block.meta.id, block_type=block.meta.type):
            return None
        self._selected_block_id = block.meta.id
        return block.meta.id

    def delete_block(self, block_id: str) -> bool:
        found = self._document.find(block_id)
        if found is None:
            return False
        index, _ = found
        blocks = self._document.blocks()
        del blocks[index]
        if not self._commit(blocks, "delete", block_id=block_id):
            return False
        if self._selected_block_id == block_id:
            self._selected_block_id = None
        return True

    def move_block(self, from_index: int, to_index: int) -> bool:
        blocks = self._document.blocks()
        size = len(blocks)
        if from_index == to_index:
            return False
        if not (0 <= from_index < size and 0 <= to_index < size):
            return False
        block = blocks.pop(from_index)
        blocks.insert(to_index, block)
        return self._commit(blocks, "move", block_id=block.meta.id, from_index=from_index, to_index=to_index)

    def duplicate_block(self, block_id: str) -> str | None:
        """Copy ``block_id`` under a fresh id right after the original and select it."""

        found = self._document.find(block_id)
        if found is None:
            return None
        index, original = found
        clone = original.model_copy(deep=True)
        clone.meta.id = new_block_id()
        clone.meta.last_edited_at = utc_now()

        blocks = self._document.blocks()
        blocks.insert(index + 1, clone)
        if not self._commit(blocks, "duplicate", block_id=block_id, copy_id=clone.meta.id):
            return None
        self._selected_block_id = clone.meta.id
        return clone.meta.id

    # ------------------------------------------------------------------
    # Field edits
    # ------------------------------------------------------------------
    def update_block(self, block_id: str, fields: Mapping[str, Any]) -> bool:
        """Shallow-merge ``fields`` into a block.

        A ``meta`` entry is merged into the block metadata on its own. It may
        repeat the current type and id but not change them; ``order`` is
        ignored because it follows list position. Returns ``True`` when the
        update was applied.
        """

        found = self._document.find(block_id)
        if found is None:
            return False
        index, block = found

        patch = dict(fields)
        meta_patch = patch.pop("meta", None)
        meta = block.meta.model_dump()
        if meta_patch is not None:
            if not isinstance(meta_patch, Mapping):
                return self._reject(block_id, "meta must be an object")
            if "type" in meta_patch and meta_patch["type"] != block.meta.type:
                return self._reject(
                    block_id, f"cannot change block type from '{block.meta.type}' to '{meta_patch['type']}'"
                )
            if "id" in meta_patch and meta_patch["id"] != block.meta.id:
                return self._reject(block_id, "block id is immutable")
            meta.update({key: value for key, value in meta_patch.items() if key != "order"})
        meta["last_edited_at"] = utc_now()

        data = block.model_dump(exclude={"meta"})
        data.update(patch)
        data["meta"] = meta
        return self._replace_one(index, block_id, data, "update")

    def update_block_json(self, block_id: str, text: str) -> bool:
        """Replace a block's data fields with a hand-edited JSON object.

        The block keeps its metadata. A ``meta`` key in the object is
        discarded unless it names another type, which is refused.
        """

        found = self._document.find(block_id)
        if found is None:
            return False
        index, block = found

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            return self._reject(block_id, f"invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})")
        if not isinstance(payload, dict):
            return self._reject(block_id, "block JSON must be an object")

        meta_patch = payload.pop("meta", None)
        if isinstance(meta_patch, Mapping) and meta_patch.get("type", block.meta.type) != block.meta.type:
            return self._reject(block_id, "changing the block type from the JSON editor is not allowed")

        meta = block.meta.model_dump()
        meta["last_edited_at"] = utc_now()
        payload["meta"] = meta
        return self._replace_one(index, block_id, payload, "update_json")

    def block_json(self, block_id: str) -> str | None:
        """Return the JSON-editor text for ``block_id``."""

        found = self._document.find(block_id)
        if found is None:
            return None
        return json.dumps(block_payload(found[1]), indent=2, ensure_ascii=False)

    # ------------------------------------------------------------------
    def _replace_one(self, index: int, block_id: str, data: Mapping[str, Any], action: str) -> bool:
        try:
            updated = parse_block(data)
        except MalformedBlockPayloadError as exc:
            return self._reject(block_id, str(exc))
        blocks = self._document.blocks()
        blocks[index] = updated
        return self._commit(blocks, action, block_id=block_id)

    def _commit(self, blocks: List[BaseBlock], action: str, **fields: Any) -> bool:
        content = self._document.content
        if content is None:
            return False
        self._history.checkpoint(content)
        try:
            self._document.replace_blocks(blocks)
        except EditorError as exc:
            log_event(_LOGGER, logging.ERROR, "mutation.failed", action=action, error=str(exc), **fields)
            return False
        self._history.checkpoint(self._document.content)
        log_event(_LOGGER, logging.DEBUG, "mutation.apply", action=action, block_count=len(blocks), **fields)
        if self._on_change is not None:
            self._on_change()
        return True

    def _reject(self, block_id: str, reason: str) -> bool:
        log_event(_LOGGER, logging.WARNING, "mutation.rejected", block_id=block_id, reason=reason)
        if self._on_rejected is not None:
            self._on_rejected(block_id, reason)
        return False


__all__ = ["ChangeCallback", "MutationEngine", "RejectCallback"]
