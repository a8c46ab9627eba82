"""UI modes of the session state machine.

Exactly one mode is active at a time. Modes are immutable values; the
session controller replaces the current mode rather than mutating it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Focus(str, Enum):
    """Pane that receives keys in normal mode."""

    INPUT = "input"
    HISTORY = "history"


@dataclass(frozen=True)
class NormalMode:
    focus: Focus = Focus.INPUT


@dataclass(frozen=True)
class LoadingMode:
    """A request is in flight; typing, scrolling and quitting still work."""


@dataclass(frozen=True)
class ConfigModal:
    draft_credential: str = ""


@dataclass(frozen=True)
class ModelSelectModal:
    highlighted_index: int = 0


@dataclass(frozen=True)
class HelpModal:
    pass


UIMode = NormalMode | LoadingMode | ConfigModal | ModelSelectModal | HelpModal

INITIAL_MODE: UIMode = NormalMode(Focus.INPUT)


def is_modal(mode: UIMode) -> bool:
    """Return True when ``mode`` captures all input until confirmed or cancelled."""
    return isinstance(mode, (ConfigModal, ModelSelectModal, HelpModal))
