"""Render structured content to standalone preview HTML with Jinja2."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .blocks import BaseBlock, display_title
from .document import StructuredContent

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


class PreviewRenderer:
    """Local preview renderer used by stores that do not render remotely."""

    def __init__(self, template_dir: Path | None = None) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(template_dir or _TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml", "html.jinja"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._env.globals["display_title"] = display_title

    def render(self, content: StructuredContent) -> str:
        template = self._env.get_template("preview.html.jinja")
        return template.render(
            content=content,
            page_title=content.meta.title or "Preview",
            blocks=sorted(content.blocks, key=lambda block: block.meta.order),
        )

    def render_block(self, block: BaseBlock) -> str:
        """Render the HTML fragment for a single block."""

        template = self._env.get_template("block.html.jinja")
        return template.render(block=block)


__all__ = ["PreviewRenderer"]
