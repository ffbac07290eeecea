"""Logging utilities for the page editor."""

from __future__ import annotations

import logging
import sys
from typing import Optional


_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)


def resolve_level(level: int | str) -> int:
    """Translate ``"DEBUG"``-style names into numeric logging levels."""

    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: int | str = logging.INFO, stream: Optional[logging.Handler] = None) -> None:
    """Configure the root logger for editor sessions and the content service.

    Parameters
    ----------
    level:
        Numeric level or level name applied to the root logger.
    stream:
        Optional handler. When omitted a handler pointing to ``sys.stdout``
        is used.
    """

    root_logger = logging.getLogger()
    if stream is None:
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    else:
        handler = stream

    handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    # Repeated calls (tests, service reloads) must not stack handlers.
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    root_logger.setLevel(resolve_level(level))
    root_logger.addHandler(handler)


__all__ = ["configure_logging", "resolve_level"]
