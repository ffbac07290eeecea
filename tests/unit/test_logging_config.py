"""Tests for :mod:`pageeditor.logging_config`."""

from __future__ import annotations

import logging
from io import StringIO

from pageeditor.logging_config import configure_logging, resolve_level


def test_configure_logging_sets_handler() -> None:
    """Given a custom stream When configure_logging is called Then logs are formatted and directed there."""

    stream = StringIO()
    handler = logging.StreamHandler(stream)

    configure_logging(level="DEBUG", stream=handler)

    logger = logging.getLogger("demo")
    logger.debug("hello")

    contents = stream.getvalue()
    assert "hello" in contents
    assert "demo" in contents
    assert " | DEBUG | " in contents


def test_resolve_level_accepts_names_and_numbers() -> None:
    assert resolve_level("warning") == logging.WARNING
    assert resolve_level(logging.ERROR) == logging.ERROR
    assert resolve_level("nonsense") == logging.INFO
