"""Session configuration persistence and settings loading."""

from __future__ import annotations

from copy import deepcopy
import json
import logging
import os
from pathlib import Path
import tomllib
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .exceptions import ConfigValidationError, PersistenceError
from .models import DEFAULT_MODEL, ModelId


LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "llm_tui"
CONFIG_PATH = CONFIG_DIR / "config.json"
SETTINGS_PATH = CONFIG_DIR / "settings.toml"

DEFAULT_API_URL = "https://qianfan.baidubce.com/v2/chat/completions"
VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

ModalPolicy = Literal["allow", "block", "cancel"]


class SessionConfig(BaseModel):
    """Credential and selected model; the only durable state of a session."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    credential: str | None = Field(
        default=None, validation_alias=AliasChoices("credential", "auth_token")
    )
    model: ModelId = DEFAULT_MODEL

    @field_validator("credential", mode="before")
    @classmethod
    def _normalize_credential(cls, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("credential must be a string or null.")
        normalized = value.strip()
        return normalized or None

    @property
    def has_credential(self) -> bool:
        return self.credential is not None

    def to_record(self) -> dict[str, Any]:
        """Return the on-disk JSON record."""
        return {"credential": self.credential, "model": self.model.value}


class ApiSettings(BaseModel):
    """Completion endpoint and request policy."""

    url: str = DEFAULT_API_URL
    timeout_seconds: float = Field(default=30.0, gt=0, le=3600)
    retries: int = Field(default=1, ge=0, le=10)
    retry_backoff_seconds: float = Field(default=0.5, ge=0, le=60)
    max_context_messages: int = Field(default=20, ge=1, le=10_000)

    @field_validator("url", mode="before")
    @classmethod
    def _validate_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("api.url must use http or https scheme.")
        return normalized


class UISettings(BaseModel):
    """Presentation and interaction preferences."""

    title: str = "LLM TUI"
    show_timestamps: bool = True
    modal_while_loading: ModalPolicy = "allow"

    @field_validator("title", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("String value must not be empty.")
        return normalized


class LoggingSettings(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/llm_tui/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized


class Settings(BaseModel):
    """Root settings model for all sections."""

    api: ApiSettings = ApiSettings()
    ui: UISettings = UISettings()
    logging: LoggingSettings = LoggingSettings()


DEFAULT_SETTINGS: dict[str, dict[str, Any]] = Settings().model_dump()


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


def _validate_settings(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged settings and fall back to safe defaults when invalid."""
    try:
        return Settings.model_validate(raw).model_dump()
    except ValidationError as exc:
        LOGGER.warning("Settings validation failed, using safe defaults: %s", exc)
        return deepcopy(DEFAULT_SETTINGS)
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate settings: {exc}") from exc


def load_settings(settings_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """Load TOML settings, merge them onto defaults, and validate.

    A missing file is not an error; the defaults are returned.
    """
    target_path = settings_path or SETTINGS_PATH
    raw_data: dict[str, Any] = {}
    if target_path.exists():
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            LOGGER.warning("Failed to parse settings at %s: %s", target_path, exc)
            raw_data = {}
    return _validate_settings(_deep_merge(DEFAULT_SETTINGS, raw_data))


class ConfigStore:
    """Load and save :class:`SessionConfig` as a JSON record at a fixed path."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path or CONFIG_PATH).expanduser()

    def load(self) -> SessionConfig:
        """Return the stored config, or defaults when missing or unreadable."""
        if not self.path.exists():
            return SessionConfig()
        _enforce_private_permissions(self.path)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning(
                "config.load_failed",
                extra={
                    "event": "config.load_failed",
                    "path": str(self.path),
                    "reason": str(exc),
                },
            )
            return SessionConfig()
        if not isinstance(raw, dict):
            LOGGER.warning(
                "config.load_failed",
                extra={
                    "event": "config.load_failed",
                    "path": str(self.path),
                    "reason": "record is not an object",
                },
            )
            return SessionConfig()

        try:
            return SessionConfig.model_validate(raw)
        except ValidationError as exc:
            LOGGER.warning(
                "config.invalid",
                extra={
                    "event": "config.invalid",
                    "path": str(self.path),
                    "reason": str(exc),
                },
            )
        # Keep the credential when only the model is unusable.
        salvaged = {key: value for key, value in raw.items() if key != "model"}
        try:
            return SessionConfig.model_validate(salvaged)
        except ValidationError:
            return SessionConfig()

    def save(self, config: SessionConfig) -> None:
        """Overwrite the stored record with ``config``."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(config.to_record(), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as exc:
            raise PersistenceError(f"Unable to save config to {self.path}: {exc}") from exc
        _enforce_private_permissions(self.path)
        LOGGER.info(
            "config.saved",
            extra={
                "event": "config.saved",
                "path": str(self.path),
                "model": config.model.value,
            },
        )
