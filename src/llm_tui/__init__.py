"""Top-level package for llm-tui."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import LlmTuiApp
    from .client import CompletionClient
    from .config import ConfigStore, SessionConfig, ensure_config_dir, load_settings
    from .controller import SessionController
    from .exceptions import (
        CompletionError,
        ConfigValidationError,
        LlmTuiError,
        PersistenceError,
    )
    from .history import MessageHistory
    from .models import Message, ModelId

__all__ = [
    "CompletionClient",
    "CompletionError",
    "ConfigStore",
    "ConfigValidationError",
    "LlmTuiApp",
    "LlmTuiError",
    "Message",
    "MessageHistory",
    "ModelId",
    "PersistenceError",
    "SessionConfig",
    "SessionController",
    "ensure_config_dir",
    "load_settings",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols to keep the Textual UI optional at import time."""
    if name == "LlmTuiApp":
        from .app import LlmTuiApp

        return LlmTuiApp
    if name == "CompletionClient":
        from .client import CompletionClient

        return CompletionClient
    if name in {"ConfigStore", "SessionConfig", "ensure_config_dir", "load_settings"}:
        from .config import ConfigStore, SessionConfig, ensure_config_dir, load_settings

        return {
            "ConfigStore": ConfigStore,
            "SessionConfig": SessionConfig,
            "ensure_config_dir": ensure_config_dir,
            "load_settings": load_settings,
        }[name]
    if name == "SessionController":
        from .controller import SessionController

        return SessionController
    if name in {
        "CompletionError",
        "ConfigValidationError",
        "LlmTuiError",
        "PersistenceError",
    }:
        from .exceptions import (
            CompletionError,
            ConfigValidationError,
            LlmTuiError,
            PersistenceError,
        )

        return {
            "CompletionError": CompletionError,
            "ConfigValidationError": ConfigValidationError,
            "LlmTuiError": LlmTuiError,
            "PersistenceError": PersistenceError,
        }[name]
    if name == "MessageHistory":
        from .history import MessageHistory

        return MessageHistory
    if name in {"Message", "ModelId"}:
        from .models import Message, ModelId

        return {"Message": Message, "ModelId": ModelId}[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
