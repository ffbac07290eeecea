"""Structured logging helpers for the editing engine."""

from __future__ import annotations

import dataclasses
import json
import logging
import math
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from pydantic import BaseModel

__all__ = ["TraceSpan", "trace", "log_event", "safe_json"]


def safe_json(value: Any) -> Any:
    """Return ``value`` converted into a JSON-serialisable structure."""

    if value is None or isinstance(value, (str, int, float, bool)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return repr(value)
        return value

    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")

    if isinstance(value, (datetime, Path)):
        return str(value)

    if isinstance(value, (list, tuple, set)):
        return [safe_json(item) for item in value]

    if isinstance(value, dict):
        return {str(key): safe_json(val) for key, val in value.items()}

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {field.name: safe_json(getattr(value, field.name)) for field in dataclasses.fields(value)}

    return repr(value)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc_info: bool | BaseException | tuple[Any, Any, Any] | None = None,
    **fields: Any,
) -> None:
    """Emit a structured log line encoded as JSON."""

    payload: Dict[str, Any] = {"event": event}
    if fields:
        payload.update({key: safe_json(value) for key, value in fields.items() if value is not None})

    message = json.dumps(payload, ensure_ascii=False, sort_keys=True)
    logger.log(level, message, exc_info=exc_info)


@dataclass
class TraceSpan:
    """Represents an active trace span."""

    name: str
    fields: Dict[str, Any]
    start_time: float


@contextmanager
def trace(name: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[TraceSpan]:
    """Context manager that logs start/end events with duration and exceptions."""

    logger = logger or logging.getLogger("pageeditor.trace")
    start_time = time.perf_counter()
    base_fields = {"trace": name}
    base_fields.update(fields)
    log_event(logger, logging.DEBUG, "trace.start", **base_fields)
    span = TraceSpan(name=name, fields=dict(fields), start_time=start_time)
    try:
        yield span
    except Exception as exc:
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        error_fields = dict(base_fields)
        error_fields["duration_ms"] = duration_ms
        error_fields["error"] = repr(exc)
        log_event(logger, logging.WARNING, "trace.error", **error_fields)
        raise
    else:
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        end_fields = dict(base_fields)
        end_fields["duration_ms"] = duration_ms
        log_event(logger, logging.INFO, "trace.end", **end_fields)
