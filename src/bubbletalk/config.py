"""Configuration loading and validation for the bubbletalk TUI."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
import re
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigValidationError

import tomllib  # stdlib since Python 3.11 (project requires >=3.11)

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "bubbletalk"
CONFIG_PATH = CONFIG_DIR / "config.toml"

HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")
VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _non_empty_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "bubbletalk"

    @field_validator("title", mode="before")
    @classmethod
    def _validate_title(cls, value: Any) -> str:
        return _non_empty_string(value)


class OllamaConfig(BaseModel):
    """Ollama endpoint and default model."""

    host: str = "http://localhost:11434"
    model: str = "llama3.2"
    timeout: int | None = Field(default=None, ge=1, le=86_400)

    @field_validator("host", "model", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _non_empty_string(value)

    @model_validator(mode="after")
    def _validate_host(self) -> OllamaConfig:
        parsed = urlparse(self.host)
        if parsed.scheme.lower() not in {"http", "https"}:
            raise ValueError("ollama.host must use http or https scheme.")
        if not (parsed.hostname or "").strip():
            raise ValueError("ollama.host must include a hostname.")
        return self


class UIConfig(BaseModel):
    """Visual settings for bubble and overlay rendering."""

    border_color: str = "#8839ef"
    selected_border_color: str = "#00baba"
    user_label_color: str = "#8839ef"
    assistant_label_color: str = "#8839ef"
    system_label_color: str = "#565f89"
    text_color: str = "#FFFDF5"
    muted_color: str = "#aaaaaa"
    notification_color: str = "#ff9900"
    code_theme: str = "monokai"
    wide_threshold: int = Field(default=80, ge=20, le=1000)
    narrow_margin: int = Field(default=6, ge=0, le=40)
    cell_aspect: float = Field(default=1.15, gt=0.1, le=10.0)
    image_mode: Literal["color", "glyph"] = "color"

    @field_validator(
        "border_color",
        "selected_border_color",
        "user_label_color",
        "assistant_label_color",
        "system_label_color",
        "text_color",
        "muted_color",
        "notification_color",
        mode="before",
    )
    @classmethod
    def _validate_hex_color(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not HEX_COLOR_PATTERN.match(normalized):
            raise ValueError("Color must use #RGB or #RRGGBB format.")
        return normalized

    @field_validator("code_theme", mode="before")
    @classmethod
    def _validate_code_theme(cls, value: Any) -> str:
        return _non_empty_string(value)


class KeybindsConfig(BaseModel):
    """Keyboard action mapping; each action accepts one or more keys."""

    line_up: list[str] = ["ctrl+up"]
    line_down: list[str] = ["ctrl+down"]
    half_page_up: list[str] = ["ctrl+u"]
    half_page_down: list[str] = ["ctrl+d"]
    highlight_previous: list[str] = ["ctrl+p"]
    highlight_next: list[str] = ["ctrl+n"]
    copy_highlighted: list[str] = ["alt+y"]
    copy_last_response: list[str] = ["ctrl+y"]
    toggle_image_picker: list[str] = ["ctrl+o"]
    remove_attachment: list[str] = ["ctrl+x"]
    toggle_help: list[str] = ["ctrl+h"]
    quit: list[str] = ["ctrl+c", "escape"]

    @field_validator("*", mode="before")
    @classmethod
    def _validate_keybind(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            raise ValueError("Keybind must be a string or a list of strings.")
        keys: list[str] = []
        for item in value:
            if not isinstance(item, str) or not item.strip():
                raise ValueError("Keybind entries must be non-empty strings.")
            candidate = item.strip().lower()
            if candidate not in keys:
                keys.append(candidate)
        if not keys:
            raise ValueError("Keybind must not be empty.")
        return keys


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/bubbletalk/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _non_empty_string(value)


class PersistenceConfig(BaseModel):
    """Where chat histories and the session index live."""

    data_dir: str = ""

    @field_validator("data_dir", mode="before")
    @classmethod
    def _normalize_data_dir(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("data_dir must be a string.")
        return value.strip()


class BehaviorConfig(BaseModel):
    """Interaction policy knobs."""

    notification_seconds: float = Field(default=3.0, gt=0, le=120)
    notify_clipboard_errors: bool = False
    notify_picker_cancel: bool = False


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    ollama: OllamaConfig = OllamaConfig()
    ui: UIConfig = UIConfig()
    keybinds: KeybindsConfig = KeybindsConfig()
    logging: LoggingConfig = LoggingConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    behavior: BehaviorConfig = BehaviorConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump()


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fall back to safe defaults when possible."""
    try:
        return Config.model_validate(raw).model_dump()
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return deepcopy(DEFAULT_CONFIG)
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = _deep_merge(DEFAULT_CONFIG, raw_data)
    return _validate_config(merged)
