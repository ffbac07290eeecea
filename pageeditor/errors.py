"""Exception types raised by the editing engine and its content stores."""

from __future__ import annotations


class EditorError(RuntimeError):
    """Base class for all errors raised by :mod:`pageeditor`."""


class DocumentNotFoundError(EditorError):
    """Raised when the content store has no document for the requested id."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class TransportError(EditorError):
    """Raised when the content store cannot be reached or answers garbage."""


class VersionConflictError(EditorError):
    """Raised when a compare-and-swap save carries a stale expected version."""

    def __init__(
        self,
        document_id: str,
        current_version: int,
        expected_version: int | None = None,
    ) -> None:
        self.document_id = document_id
        self.current_version = current_version
        self.expected_version = expected_version
        super().__init__(
            f"Version conflict for {document_id}: expected {expected_version}, "
            f"store is at {current_version}"
        )


class DuplicateBlockIdError(EditorError, ValueError):
    """Raised when a block list contains the same id more than once."""

    def __init__(self, block_id: str) -> None:
        self.block_id = block_id
        super().__init__(f"Duplicate block id: {block_id}")


class MalformedBlockPayloadError(EditorError, ValueError):
    """Raised when block data cannot be validated into a content block."""


class BlockTypeMismatchError(MalformedBlockPayloadError):
    """Raised when ``meta.type`` disagrees with the block variant."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Block type mismatch: variant is '{expected}' but meta.type is '{actual}'")


__all__ = [
    "BlockTypeMismatchError",
    "DocumentNotFoundError",
    "DuplicateBlockIdError",
    "EditorError",
    "MalformedBlockPayloadError",
    "TransportError",
    "VersionConflictError",
]
