"""Content block models: block metadata and the sixteen block variants.

Every block carries a :class:`BlockMeta` whose ``type`` field is the union
discriminant. Each variant pins its own tag in ``block_type`` and refuses to
validate when ``meta.type`` disagrees, so a block can never claim to be
something it is not.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Mapping, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from .errors import BlockTypeMismatchError, MalformedBlockPayloadError

BlockType = Literal[
    "intro",
    "product_card",
    "step",
    "feature",
    "text_section",
    "blog_section",
    "conclusion",
    "hero",
    "quote",
    "image",
    "video",
    "call_to_action",
    "testimonial",
    "pricing",
    "faq",
    "comparison_row",
]

BLOCK_TYPES: tuple[str, ...] = BlockType.__args__  # type: ignore[attr-defined]

BLOCK_LABELS: Dict[str, str] = {
    "intro": "Intro",
    "product_card": "Product Card",
    "step": "Step",
    "feature": "Feature",
    "text_section": "Text Section",
    "blog_section": "Blog Section",
    "conclusion": "Conclusion",
    "hero": "Hero",
    "quote": "Quote",
    "image": "Image",
    "video": "Video",
    "call_to_action": "Call to Action",
    "testimonial": "Testimonial",
    "pricing": "Pricing",
    "faq": "FAQ",
    "comparison_row": "Comparison Row",
}

_TITLE_LIMIT = 60


def new_block_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BlockMeta(BaseModel):
    """Identity and bookkeeping shared by every block."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_block_id, min_length=1)
    type: BlockType
    order: int = Field(default=0, ge=0)
    is_ai_generated: bool = False
    last_edited_at: datetime | None = None


class BaseBlock(BaseModel):
    """Common base for the block variants."""

    model_config = ConfigDict(extra="allow")

    block_type: ClassVar[str] = ""

    meta: BlockMeta

    @model_validator(mode="after")
    def _check_tag(self) -> "BaseBlock":
        if self.meta.type != self.block_type:
            raise BlockTypeMismatchError(self.block_type, self.meta.type)
        return self

    @property
    def id(self) -> str:
        return self.meta.id


class IntroBlock(BaseBlock):
    block_type: ClassVar[str] = "intro"

    content: str
    headline: str | None = None
    hook: str | None = None
    image_url: str | None = None


class ProductCardBlock(BaseBlock):
    block_type: ClassVar[str] = "product_card"

    name: str
    description: str
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    cta_url: str
    tagline: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    price: str | None = None
    best_for: str | None = None
    image_url: str | None = None
    cta_text: str | None = None
    award_badge: str | None = None


class StepBlock(BaseBlock):
    block_type: ClassVar[str] = "step"

    step_number: int
    title: str
    instructions: str
    estimated_time: str | None = None
    checklist: List[str] | None = None
    pro_tip: str | None = None
    warning: str | None = None
    image_url: str | None = None


class FeatureBlock(BaseBlock):
    block_type: ClassVar[str] = "feature"

    title: str
    description: str
    icon: str | None = None
    image_url: str | None = None


class TextSectionBlock(BaseBlock):
    block_type: ClassVar[str] = "text_section"

    content: str
    heading: str | None = None
    image_url: str | None = None
    image_position: Literal["left", "right", "top", "bottom"] | None = None


class BlogSectionBlock(BaseBlock):
    block_type: ClassVar[str] = "blog_section"

    heading: str
    content: str
    key_points: List[str] | None = None


class ConclusionBlock(BaseBlock):
    block_type: ClassVar[str] = "conclusion"

    summary: str
    final_recommendation: str | None = None
    cta_text: str | None = None
    cta_url: str | None = None


class HeroBlock(BaseBlock):
    block_type: ClassVar[str] = "hero"

    headline: str
    subheadline: str | None = None
    cta_text: str | None = None
    cta_url: str | None = None
    background_image: str | None = None
    video_url: str | None = None


class QuoteBlock(BaseBlock):
    block_type: ClassVar[str] = "quote"

    quote: str
    author: str | None = None
    title: str | None = None
    company: str | None = None
    avatar_url: str | None = None


class ImageBlock(BaseBlock):
    block_type: ClassVar[str] = "image"

    url: str
    alt: str
    caption: str | None = None
    width: int | None = None
    height: int | None = None


class VideoBlock(BaseBlock):
    block_type: ClassVar[str] = "video"

    url: str
    title: str | None = None
    thumbnail_url: str | None = None
    provider: Literal["youtube", "vimeo", "custom"] | None = None


class CallToActionBlock(BaseBlock):
    block_type: ClassVar[str] = "call_to_action"

    headline: str
    button_text: str
    button_url: str
    description: str | None = None
    style: Literal["primary", "secondary", "minimal"] | None = None


class TestimonialBlock(BaseBlock):
    block_type: ClassVar[str] = "testimonial"

    quote: str
    author: str
    title: str | None = None
    company: str | None = None
    avatar_url: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)


class PricingBlock(BaseBlock):
    block_type: ClassVar[str] = "pricing"

    plan_name: str
    price: str
    features: List[str] = Field(default_factory=list)
    billing_period: str | None = None
    cta_text: str | None = None
    cta_url: str | None = None
    is_popular: bool = False


class FAQBlock(BaseBlock):
    block_type: ClassVar[str] = "faq"

    question: str
    answer: str
    category: str | None = None


class ComparisonRowBlock(BaseBlock):
    block_type: ClassVar[str] = "comparison_row"

    feature: str
    values: Dict[str, str | bool | int | float] = Field(default_factory=dict)


BLOCK_MODELS: Dict[str, type[BaseBlock]] = {
    model.block_type: model
    for model in (
        IntroBlock,
        ProductCardBlock,
        StepBlock,
        FeatureBlock,
        TextSectionBlock,
        BlogSectionBlock,
        ConclusionBlock,
        HeroBlock,
        QuoteBlock,
        ImageBlock,
        VideoBlock,
        CallToActionBlock,
        TestimonialBlock,
        PricingBlock,
        FAQBlock,
        ComparisonRowBlock,
    )
}


def _block_tag(value: Any) -> str | None:
    if isinstance(value, BaseBlock):
        return value.meta.type
    if isinstance(value, Mapping):
        meta = value.get("meta")
        if isinstance(meta, BlockMeta):
            return meta.type
        if isinstance(meta, Mapping):
            tag = meta.get("type")
            return tag if isinstance(tag, str) else None
    return None


ContentBlock = Annotated[
    Union[
        Annotated[IntroBlock, Tag("intro")],
        Annotated[ProductCardBlock, Tag("product_card")],
        Annotated[StepBlock, Tag("step")],
        Annotated[FeatureBlock, Tag("feature")],
        Annotated[TextSectionBlock, Tag("text_section")],
        Annotated[BlogSectionBlock, Tag("blog_section")],
        Annotated[ConclusionBlock, Tag("conclusion")],
        Annotated[HeroBlock, Tag("hero")],
        Annotated[QuoteBlock, Tag("quote")],
        Annotated[ImageBlock, Tag("image")],
        Annotated[VideoBlock, Tag("video")],
        Annotated[CallToActionBlock, Tag("call_to_action")],
        Annotated[TestimonialBlock, Tag("testimonial")],
        Annotated[PricingBlock, Tag("pricing")],
        Annotated[FAQBlock, Tag("faq")],
        Annotated[ComparisonRowBlock, Tag("comparison_row")],
    ],
    Discriminator(_block_tag),
]

_BLOCK_ADAPTER: TypeAdapter[Any] = TypeAdapter(ContentBlock)


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "block"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_block(data: Mapping[str, Any] | BaseBlock) -> BaseBlock:
    """Validate ``data`` into the variant named by its ``meta.type``."""

    try:
        return _BLOCK_ADAPTER.validate_python(data)
    except ValidationError as exc:
        raise MalformedBlockPayloadError(_describe_validation_error(exc)) from exc


def ensure_tag_agreement(block: BaseBlock) -> None:
    """Raise :class:`BlockTypeMismatchError` if ``block`` was mutated out of shape."""

    if block.meta.type != block.block_type:
        raise BlockTypeMismatchError(block.block_type, block.meta.type)


def dump_block(block: BaseBlock) -> Dict[str, Any]:
    return block.model_dump(mode="json")


def block_payload(block: BaseBlock) -> Dict[str, Any]:
    """Return the variant data of ``block`` without its metadata."""

    return block.model_dump(mode="json", exclude={"meta"}, exclude_none=True)


def _shorten(text: str | None) -> str:
    value = " ".join((text or "").split())
    if len(value) <= _TITLE_LIMIT:
        return value
    return value[: _TITLE_LIMIT - 1] + "…"


def display_title(block: BaseBlock) -> str:
    """Return a human readable title for any block variant."""

    if isinstance(block, IntroBlock):
        title = block.headline or block.content
    elif isinstance(block, ProductCardBlock):
        title = block.name
    elif isinstance(block, StepBlock):
        title = f"Step {block.step_number}: {block.title}"
    elif isinstance(block, FeatureBlock):
        title = block.title
    elif isinstance(block, TextSectionBlock):
        title = block.heading or block.content
    elif isinstance(block, BlogSectionBlock):
        title = block.heading
    elif isinstance(block, ConclusionBlock):
        title = block.summary
    elif isinstance(block, HeroBlock):
        title = block.headline
    elif isinstance(block, QuoteBlock):
        title = block.quote
    elif isinstance(block, ImageBlock):
        title = block.caption or block.alt
    elif isinstance(block, VideoBlock):
        title = block.title or block.url
    elif isinstance(block, CallToActionBlock):
        title = block.headline
    elif isinstance(block, TestimonialBlock):
        title = block.author
    elif isinstance(block, PricingBlock):
        title = f"{block.plan_name} ({block.price})"
    elif isinstance(block, FAQBlock):
        title = block.question
    elif isinstance(block, ComparisonRowBlock):
        title = block.feature
    else:
        raise TypeError(f"Unsupported block variant: {type(block).__name__}")

    return _shorten(title) or BLOCK_LABELS[block.block_type]


__all__ = [
    "BLOCK_LABELS",
    "BLOCK_MODELS",
    "BLOCK_TYPES",
    "BaseBlock",
    "BlockMeta",
    "BlockType",
    "BlogSectionBlock",
    "CallToActionBlock",
    "ComparisonRowBlock",
    "ConclusionBlock",
    "ContentBlock",
    "FAQBlock",
    "FeatureBlock",
    "HeroBlock",
    "ImageBlock",
    "IntroBlock",
    "PricingBlock",
    "ProductCardBlock",
    "QuoteBlock",
    "StepBlock",
    "TestimonialBlock",
    "TextSectionBlock",
    "VideoBlock",
    "block_payload",
    "display_title",
    "dump_block",
    "ensure_tag_agreement",
    "new_block_id",
    "parse_block",
    "utc_now",
]
