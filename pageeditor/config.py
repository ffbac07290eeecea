"""Configuration for editor sessions and the content service."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, Field, ValidationError, field_validator

_LOGGER = logging.getLogger(__name__)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DEFAULT_CONFIG_PATH = _PROJECT_ROOT / "configs" / "editor.json"
_ENV_PREFIX = "PAGEEDITOR_"


class EditorConfig(BaseModel):
    """Tunables shared by :class:`~pageeditor.session.EditorSession` and the API."""

    max_history_length: int = Field(default=50, ge=1, description="Undo stack bound")
    preview_debounce_ms: int = Field(default=500, ge=0, description="Live preview debounce window")
    live_preview_enabled: bool = Field(default=True, description="Re-render the preview after edits")
    autosave_enabled: bool = Field(default=True, description="Flush dirty edits on an interval")
    autosave_interval_ms: int = Field(default=30_000, gt=0, description="Autosave tick interval")
    autosave_min_gap_ms: int = Field(default=10_000, ge=0, description="Minimum gap between autosave attempts")
    autosave_idle_ms: int | None = Field(default=2_000, ge=0, description="Save this long after the last edit; None turns it off")
    remote_poll_interval_ms: int = Field(default=5_000, gt=0, description="Version polling interval for remote stores")
    api_base_url: str = Field(default="http://localhost:8000/api", description="Content API root")
    api_token: str | None = Field(default=None, description="Bearer token for the content API")
    request_timeout: float = Field(default=20.0, gt=0, description="HTTP timeout in seconds")
    database_path: str = Field(default="sandbox/content.db", description="SQLite file used by the content service")
    log_level: str = Field(default="INFO", description="Desired logging verbosity")

    @field_validator("api_base_url", mode="before")
    @classmethod
    def _strip_base_url(cls, value: str | None) -> str:
        text = str(value or "").strip().rstrip("/")
        if not text:
            raise ValueError("api_base_url must be a non-empty string")
        return text

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: str | None) -> str:
        candidate = (value or "INFO").strip().upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if candidate not in allowed:
            raise ValueError(
                f"Unsupported log_level '{value}'. Expected one of: {', '.join(sorted(allowed))}."
            )
        return candidate

    @property
    def preview_debounce(self) -> float:
        return self.preview_debounce_ms / 1000

    @property
    def autosave_interval(self) -> float:
        return self.autosave_interval_ms / 1000

    @property
    def autosave_min_gap(self) -> float:
        return self.autosave_min_gap_ms / 1000

    @property
    def autosave_idle_delay(self) -> float | None:
        return None if self.autosave_idle_ms is None else self.autosave_idle_ms / 1000

    @property
    def remote_poll_interval(self) -> float:
        return self.remote_poll_interval_ms / 1000

    @classmethod
    def load(cls, path: Path | None = None) -> "EditorConfig":
        """Load configuration from disk, then apply ``PAGEEDITOR_*`` environment overrides."""

        config_path = path or _DEFAULT_CONFIG_PATH
        data: Dict[str, Any] = {}

        if config_path.exists():
            try:
                data = json.loads(config_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                _LOGGER.warning("Unable to decode editor config at %s: %s", config_path, exc)

        for name in cls.model_fields:
            env_value = os.environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if env_value is not None:
                data[name] = env_value

        filtered = {key: value for key, value in data.items() if key in cls.model_fields}
        try:
            return cls(**filtered)
        except ValidationError:
            _LOGGER.error("Invalid editor configuration loaded from %s", config_path)
            raise


def load_editor_config(path: Path | None = None) -> EditorConfig:
    """Helper to load the editor configuration."""

    return EditorConfig.load(path)


__all__ = ["EditorConfig", "load_editor_config"]
