"""Block type registry: default values for freshly inserted blocks."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from .blocks import BLOCK_LABELS, BLOCK_MODELS, BLOCK_TYPES, BaseBlock, BlockMeta, new_block_id, utc_now

_FALLBACK_TYPE = "text_section"


@dataclass(slots=True)
class BlockConfig:
    """Menu metadata and default field values for a block type."""

    type: str
    label: str
    description: str
    defaults: Callable[[int], Dict[str, Any]] = field(repr=False)


def _static(values: Dict[str, Any]) -> Callable[[int], Dict[str, Any]]:
    def _factory(order: int) -> Dict[str, Any]:
        return copy.deepcopy(values)

    return _factory


BLOCK_CONFIGS: List[BlockConfig] = [
    BlockConfig(
        type="intro",
        label=BLOCK_LABELS["intro"],
        description="Introduction section with headline and content",
        defaults=_static({"headline": "New Section", "content": "Enter your content here..."}),
    ),
    BlockConfig(
        type="product_card",
        label=BLOCK_LABELS["product_card"],
        description="Product showcase with pros, cons, and rating",
        defaults=_static(
            {
                "name": "Product Name",
                "description": "Product description...",
                "pros": [],
                "cons": [],
                "cta_url": "#",
            }
        ),
    ),
    BlockConfig(
        type="step",
        label=BLOCK_LABELS["step"],
        description="Tutorial step with instructions",
        defaults=lambda order: {
            "step_number": order + 1,
            "title": "Step Title",
            "instructions": "Enter instructions...",
        },
    ),
    BlockConfig(
        type="feature",
        label=BLOCK_LABELS["feature"],
        description="Feature highlight with icon",
        defaults=_static({"title": "Feature Title", "description": "Feature description..."}),
    ),
    BlockConfig(
        type="text_section",
        label=BLOCK_LABELS["text_section"],
        description="Rich text content section",
        defaults=_static({"content": "Enter your text content here..."}),
    ),
    BlockConfig(
        type="blog_section",
        label=BLOCK_LABELS["blog_section"],
        description="Blog section with heading and key points",
        defaults=_static({"heading": "Section Heading", "content": "Enter section content...", "key_points": []}),
    ),
    BlockConfig(
        type="conclusion",
        label=BLOCK_LABELS["conclusion"],
        description="Conclusion with summary",
        defaults=_static({"summary": "Enter conclusion..."}),
    ),
    BlockConfig(
        type="hero",
        label=BLOCK_LABELS["hero"],
        description="Hero section with headline",
        defaults=_static({"headline": "Hero Headline", "subheadline": "Subheadline text"}),
    ),
    BlockConfig(
        type="quote",
        label=BLOCK_LABELS["quote"],
        description="Testimonial or quote",
        defaults=_static({"quote": "Enter quote..."}),
    ),
    BlockConfig(
        type="image",
        label=BLOCK_LABELS["image"],
        description="Image with caption",
        defaults=_static({"url": "", "alt": "Image description"}),
    ),
    BlockConfig(
        type="video",
        label=BLOCK_LABELS["video"],
        description="Embedded video",
        defaults=_static({"url": "", "title": "Video title"}),
    ),
    BlockConfig(
        type="call_to_action",
        label=BLOCK_LABELS["call_to_action"],
        description="CTA button with headline",
        defaults=_static(
            {"headline": "Ready to get started?", "button_text": "Get Started", "button_url": "#"}
        ),
    ),
    BlockConfig(
        type="testimonial",
        label=BLOCK_LABELS["testimonial"],
        description="Customer testimonial with attribution",
        defaults=_static({"quote": "Enter testimonial...", "author": "Customer Name"}),
    ),
    BlockConfig(
        type="pricing",
        label=BLOCK_LABELS["pricing"],
        description="Pricing plan with feature list",
        defaults=_static({"plan_name": "Plan Name", "price": "$0", "features": []}),
    ),
    BlockConfig(
        type="faq",
        label=BLOCK_LABELS["faq"],
        description="Question and answer pair",
        defaults=_static({"question": "Enter question?", "answer": "Enter answer..."}),
    ),
    BlockConfig(
        type="comparison_row",
        label=BLOCK_LABELS["comparison_row"],
        description="Feature row of a comparison table",
        defaults=_static({"feature": "Feature", "values": {}}),
    ),
]

_CONFIGS_BY_TYPE: Dict[str, BlockConfig] = {config.type: config for config in BLOCK_CONFIGS}

if set(_CONFIGS_BY_TYPE) != set(BLOCK_TYPES):  # pragma: no cover - import-time guard
    raise RuntimeError("Block registry does not cover every block type")


def block_config(block_type: str) -> BlockConfig:
    """Return the registry entry for ``block_type`` (text section when unknown)."""

    return _CONFIGS_BY_TYPE.get(block_type) or _CONFIGS_BY_TYPE[_FALLBACK_TYPE]


def create_default(block_type: str, order: int) -> BaseBlock:
    """Return a new block of ``block_type`` populated with default values.

    Unknown types produce an empty text section instead of failing. The block
    always gets a fresh id and the given ``order``.
    """

    meta_fields = {
        "id": new_block_id(),
        "order": max(order, 0),
        "is_ai_generated": False,
        "last_edited_at": utc_now(),
    }
    if block_type not in _CONFIGS_BY_TYPE:
        return BLOCK_MODELS[_FALLBACK_TYPE](
            meta=BlockMeta(type=_FALLBACK_TYPE, **meta_fields), content=""
        )

    config = _CONFIGS_BY_TYPE[block_type]
    model = BLOCK_MODELS[block_type]
    return model(meta=BlockMeta(type=block_type, **meta_fields), **config.defaults(order))


__all__ = ["BLOCK_CONFIGS", "BlockConfig", "block_config", "create_default"]
