"""Immutable domain values shared by the controller, history and renderer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"


class ModelId(str, Enum):
    """Models served by the completion endpoint."""

    ERNIE_4_0_8K_LATEST = "ernie-4.0-8k-latest"
    ERNIE_4_0_8K_PREVIEW = "ernie-4.0-8k-preview"
    ERNIE_4_0_8K = "ernie-4.0-8k"
    ERNIE_4_0_TURBO_8K_LATEST = "ernie-4.0-turbo-8k-latest"
    ERNIE_4_0_TURBO_8K_PREVIEW = "ernie-4.0-turbo-8k-preview"
    ERNIE_4_0_TURBO_8K = "ernie-4.0-turbo-8k"
    ERNIE_4_0_TURBO_128K = "ernie-4.0-turbo-128k"
    ERNIE_3_5_8K_PREVIEW = "ernie-3.5-8k-preview"
    ERNIE_3_5_8K = "ernie-3.5-8k"
    ERNIE_3_5_128K = "ernie-3.5-128k"
    ERNIE_SPEED_8K = "ernie-speed-8k"
    ERNIE_SPEED_128K = "ernie-speed-128k"
    ERNIE_SPEED_PRO_128K = "ernie-speed-pro-128k"
    ERNIE_LITE_8K = "ernie-lite-8k"
    ERNIE_LITE_PRO_128K = "ernie-lite-pro-128k"
    ERNIE_TINY_8K = "ernie-tiny-8k"
    ERNIE_CHAR_8K = "ernie-char-8k"
    ERNIE_CHAR_FICTION_8K = "ernie-char-fiction-8k"
    ERNIE_NOVEL_8K = "ernie-novel-8k"
    DEEPSEEK_V3 = "deepseek-v3"
    DEEPSEEK_R1 = "deepseek-r1"


AVAILABLE_MODELS: tuple[ModelId, ...] = tuple(ModelId)
DEFAULT_MODEL = ModelId.DEEPSEEK_R1


class ErrorKind(str, Enum):
    """Diagnostic category of a failed completion."""

    TIMEOUT = "timeout"
    AUTH_FAILURE = "auth_failure"
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"
    NETWORK = "network"


ERROR_SUMMARIES: dict[ErrorKind, str] = {
    ErrorKind.TIMEOUT: "Request timed out",
    ErrorKind.AUTH_FAILURE: "Authentication failed",
    ErrorKind.RATE_LIMITED: "Rate limited by the API",
    ErrorKind.MALFORMED: "Malformed response",
    ErrorKind.NETWORK: "Network error",
}


@dataclass(frozen=True)
class Message:
    """A single exchanged turn. Error-tagged messages are never model output."""

    role: Role
    text: str
    timestamp: datetime
    is_error: bool = False


@dataclass(frozen=True)
class CompletionSuccess:
    text: str


@dataclass(frozen=True)
class CompletionFailure:
    kind: ErrorKind
    detail: str = ""

    @property
    def summary(self) -> str:
        """Return a one-line description suitable for the history pane."""
        label = ERROR_SUMMARIES[self.kind]
        return f"{label}: {self.detail}" if self.detail else label


CompletionResult = CompletionSuccess | CompletionFailure
