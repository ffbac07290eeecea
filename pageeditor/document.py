"""In-memory document model: page metadata, global settings and ordered blocks."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Mapping, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .blocks import BaseBlock, ContentBlock, ensure_tag_agreement
from .errors import DuplicateBlockIdError, EditorError, MalformedBlockPayloadError

PageType = Literal["listicle", "comparison", "guide", "landing", "blog"]


class PageMeta(BaseModel):
    """Page level metadata (title and SEO fields)."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    seo_title: str | None = None
    seo_description: str | None = None
    slug: str | None = None
    target_keyword: str | None = None
    secondary_keywords: List[str] = Field(default_factory=list)
    author: str | None = None
    published_date: str | None = None


class GlobalSettings(BaseModel):
    """Presentation settings applied to the whole page."""

    model_config = ConfigDict(extra="allow")

    show_toc: bool | None = None
    show_share_buttons: bool | None = None
    theme: str | None = None
    layout: Literal["default", "wide", "narrow"] | None = None


class StructuredContent(BaseModel):
    """A page: its type, metadata, settings and the ordered list of blocks."""

    model_config = ConfigDict(extra="allow")

    page_type: PageType = "blog"
    meta: PageMeta = Field(default_factory=PageMeta)
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings)
    blocks: List[ContentBlock] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StructuredContent":
        """Validate a wire payload, raising :class:`MalformedBlockPayloadError` on failure."""

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise MalformedBlockPayloadError(f"Invalid structured content: {exc}") from exc


def clone_content(content: StructuredContent) -> StructuredContent:
    """Return a structurally independent copy of ``content``."""

    return content.model_copy(deep=True)


def _normalise_blocks(blocks: Sequence[BaseBlock]) -> List[BaseBlock]:
    seen: set[str] = set()
    for block in blocks:
        ensure_tag_agreement(block)
        if block.meta.id in seen:
            raise DuplicateBlockIdError(block.meta.id)
        seen.add(block.meta.id)

    normalised = list(blocks)
    for index, block in enumerate(normalised):
        block.meta.order = index
    return normalised


class Document:
    """Owns the live :class:`StructuredContent` and its ordering invariant.

    ``replace_blocks`` is the single place where ``meta.order`` is assigned:
    every structural edit computes a new list and hands it over here.
    """

    def __init__(self, content: StructuredContent | None = None) -> None:
        self._content: StructuredContent | None = None
        if content is not None:
            self.replace_content(content)

    @property
    def content(self) -> StructuredContent | None:
        return self._content

    @property
    def is_loaded(self) -> bool:
        return self._content is not None

    def blocks(self) -> List[BaseBlock]:
        if self._content is None:
            return []
        return sorted(self._content.blocks, key=lambda block: block.meta.order)

    def find(self, block_id: str) -> Tuple[int, BaseBlock] | None:
        for index, block in enumerate(self.blocks()):
            if block.meta.id == block_id:
                return index, block
        return None

    def replace_blocks(self, new_blocks: Sequence[BaseBlock]) -> None:
        """Install ``new_blocks`` as the block list, renumbering ``order`` by position.

        The list is checked before anything is changed: a duplicate id or a
        block whose tag disagrees with its variant leaves the document as it was.
        """

        if self._content is None:
            raise EditorError("No document loaded")
        self._content.blocks = _normalise_blocks(new_blocks)

    def replace_content(self, content: StructuredContent) -> None:
        """Adopt ``content`` wholesale, sorting blocks by their incoming order."""

        ordered = sorted(content.blocks, key=lambda block: block.meta.order)
        content.blocks = _normalise_blocks(ordered)
        self._content = content

    def clear(self) -> None:
        self._content = None


__all__ = [
    "Document",
    "GlobalSettings",
    "PageMeta",
    "PageType",
    "StructuredContent",
    "clone_content",
]
