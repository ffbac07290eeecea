"""Tests for :mod:`pageeditor.registry`."""

from __future__ import annotations

import pytest

from pageeditor.blocks import BLOCK_TYPES, StepBlock, TextSectionBlock
from pageeditor.registry import BLOCK_CONFIGS, block_config, create_default


@pytest.mark.parametrize("block_type", BLOCK_TYPES)
def test_create_default_builds_valid_block_for_every_type(block_type: str) -> None:
    """Given a known block type When create_default runs Then the block carries that tag and the order."""

    block = create_default(block_type, 4)

    assert block.meta.type == block_type
    assert block.meta.order == 4
    assert block.meta.last_edited_at is not None
    assert block.meta.is_ai_generated is False


def test_create_default_falls_back_to_empty_text_section() -> None:
    """Given an unknown type When create_default runs Then an empty text section is returned."""

    block = create_default("carousel", 0)

    assert isinstance(block, TextSectionBlock)
    assert block.content == ""


def test_create_default_generates_fresh_ids() -> None:
    first = create_default("intro", 0)
    second = create_default("intro", 0)

    assert first.meta.id != second.meta.id


def test_step_defaults_number_from_order() -> None:
    """Given a step inserted at order 2 When defaults are applied Then the step is numbered 3."""

    block = create_default("step", 2)

    assert isinstance(block, StepBlock)
    assert block.step_number == 3


def test_defaults_are_not_shared_between_blocks() -> None:
    """Given two pricing blocks When one feature list is mutated Then the other stays empty."""

    first = create_default("pricing", 0)
    second = create_default("pricing", 1)
    first.features.append("Unlimited seats")

    assert second.features == []


def test_block_config_exposes_labels_and_falls_back() -> None:
    assert len(BLOCK_CONFIGS) == len(BLOCK_TYPES)
    assert block_config("faq").label == "FAQ"
    assert block_config("nope").type == "text_section"
