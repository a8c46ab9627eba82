"""Pure mapping from raw key presses to semantic commands, per UI mode."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .state import (
    ConfigModal,
    Focus,
    HelpModal,
    LoadingMode,
    ModelSelectModal,
    NormalMode,
    UIMode,
)


class CommandKind(str, Enum):
    SUBMIT = "submit"
    TOGGLE_FOCUS = "toggle_focus"
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    SCROLL_TOP = "scroll_top"
    SCROLL_BOTTOM = "scroll_bottom"
    HISTORY_PREV = "history_prev"
    HISTORY_NEXT = "history_next"
    INSERT_CHAR = "insert_char"
    DELETE_CHAR = "delete_char"
    OPEN_HELP = "open_help"
    OPEN_CONFIG = "open_config"
    OPEN_MODEL_SELECT = "open_model_select"
    COPY_LAST_REPLY = "copy_last_reply"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    QUIT = "quit"


@dataclass(frozen=True)
class RawKey:
    """A key press as reported by the terminal driver.

    ``key`` uses Textual's key names (``"enter"``, ``"alt+h"``, ``"pageup"``);
    ``character`` is the printable character, if the key produced one.
    """

    key: str
    character: str | None = None


@dataclass(frozen=True)
class KeyCommand:
    kind: CommandKind
    char: str = ""


# Function keys double the Alt chords for terminals that do not report Alt.
GLOBAL_KEYS: dict[str, CommandKind] = {
    "ctrl+c": CommandKind.QUIT,
    "ctrl+q": CommandKind.QUIT,
    "alt+y": CommandKind.COPY_LAST_REPLY,
    "f4": CommandKind.COPY_LAST_REPLY,
}

OPEN_KEYS: dict[str, CommandKind] = {
    "alt+h": CommandKind.OPEN_HELP,
    "f1": CommandKind.OPEN_HELP,
    "alt+c": CommandKind.OPEN_CONFIG,
    "f2": CommandKind.OPEN_CONFIG,
    "alt+m": CommandKind.OPEN_MODEL_SELECT,
    "f3": CommandKind.OPEN_MODEL_SELECT,
}

SCROLL_KEYS: dict[str, CommandKind] = {
    "up": CommandKind.SCROLL_UP,
    "down": CommandKind.SCROLL_DOWN,
    "pageup": CommandKind.PAGE_UP,
    "pagedown": CommandKind.PAGE_DOWN,
    "home": CommandKind.SCROLL_TOP,
    "end": CommandKind.SCROLL_BOTTOM,
}

NORMAL_INPUT_KEYS: dict[str, CommandKind] = {
    **GLOBAL_KEYS,
    **OPEN_KEYS,
    "enter": CommandKind.SUBMIT,
    "tab": CommandKind.TOGGLE_FOCUS,
    "up": CommandKind.HISTORY_PREV,
    "down": CommandKind.HISTORY_NEXT,
    "backspace": CommandKind.DELETE_CHAR,
    "escape": CommandKind.QUIT,
}

NORMAL_HISTORY_KEYS: dict[str, CommandKind] = {
    **GLOBAL_KEYS,
    **OPEN_KEYS,
    **SCROLL_KEYS,
    "tab": CommandKind.TOGGLE_FOCUS,
    "escape": CommandKind.QUIT,
}

LOADING_KEYS: dict[str, CommandKind] = {
    **GLOBAL_KEYS,
    **OPEN_KEYS,
    **SCROLL_KEYS,
    "backspace": CommandKind.DELETE_CHAR,
    "escape": CommandKind.QUIT,
}

CONFIG_KEYS: dict[str, CommandKind] = {
    **GLOBAL_KEYS,
    "enter": CommandKind.CONFIRM,
    "backspace": CommandKind.DELETE_CHAR,
    "escape": CommandKind.CANCEL,
}

MODEL_SELECT_KEYS: dict[str, CommandKind] = {
    **GLOBAL_KEYS,
    **SCROLL_KEYS,
    "enter": CommandKind.CONFIRM,
    "escape": CommandKind.CANCEL,
}

HELP_KEYS: dict[str, CommandKind] = {
    **GLOBAL_KEYS,
    "enter": CommandKind.CONFIRM,
    "escape": CommandKind.CANCEL,
    "h": CommandKind.CANCEL,
    "q": CommandKind.CANCEL,
}


def _keymap(mode: UIMode) -> tuple[dict[str, CommandKind], bool]:
    """Return the key table for ``mode`` and whether printable text is accepted."""
    if isinstance(mode, NormalMode):
        if mode.focus == Focus.INPUT:
            return NORMAL_INPUT_KEYS, True
        return NORMAL_HISTORY_KEYS, False
    if isinstance(mode, LoadingMode):
        return LOADING_KEYS, True
    if isinstance(mode, ConfigModal):
        return CONFIG_KEYS, True
    if isinstance(mode, ModelSelectModal):
        return MODEL_SELECT_KEYS, False
    if isinstance(mode, HelpModal):
        return HELP_KEYS, False
    raise TypeError(f"Unknown UI mode: {mode!r}")


def dispatch(raw_key: RawKey, mode: UIMode) -> KeyCommand | None:
    """Translate ``raw_key`` into a command for ``mode``; unmapped keys yield None."""
    keymap, accepts_text = _keymap(mode)
    kind = keymap.get(raw_key.key)
    if kind is not None:
        return KeyCommand(kind)
    character = raw_key.character
    if accepts_text and character and character.isprintable() and len(character) == 1:
        return KeyCommand(CommandKind.INSERT_CHAR, char=character)
    return None
