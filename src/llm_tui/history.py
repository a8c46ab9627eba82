"""Append-only conversation history with rendered-line scroll bookkeeping."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from rich.text import Text

from .formatting import format_markdown, wrap_plain
from .models import Message, Role

BODY_INDENT = "    "
TIMESTAMP_FORMAT = "%H:%M:%S"

HEADER_STYLES: dict[str, str] = {
    "user": "bold green",
    "assistant": "bold cyan",
    "error": "bold red",
}
ERROR_BODY_STYLE = "red"

MarkdownFormatter = Callable[[str, int], list[Text]]


@dataclass(frozen=True)
class HistoryWindow:
    """The visible slice of rendered history lines."""

    lines: tuple[Text, ...]
    offset: int
    total: int


class MessageHistory:
    """Own the ordered message log and the scroll offset derived from it.

    Rendered lines depend on the viewport width, so the line count (and with it
    the valid scroll range) is recomputed whenever messages or width change.
    """

    def __init__(
        self,
        formatter: MarkdownFormatter = format_markdown,
        *,
        show_timestamps: bool = True,
        width: int = 80,
        height: int = 20,
    ) -> None:
        self._formatter = formatter
        self.show_timestamps = show_timestamps
        self._messages: list[Message] = []
        self._width = max(1, width)
        self._height = max(1, height)
        self._offset = 0
        self._cache_key: tuple[int, int] | None = None
        self._cache_lines: list[Text] = []

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def viewport_height(self) -> int:
        return self._height

    @property
    def viewport_width(self) -> int:
        return self._width

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> None:
        """Append a message and follow the conversation to its newest line."""
        self._messages.append(message)
        self.scroll_to_bottom()

    def last_assistant_reply(self) -> str | None:
        """Return the newest assistant text that is genuine model output."""
        for message in reversed(self._messages):
            if message.role == Role.ASSISTANT and not message.is_error:
                return message.text
        return None

    def conversation(self) -> list[Message]:
        """Return the turns that are sent as context, skipping error notices."""
        return [message for message in self._messages if not message.is_error]

    def set_viewport(self, width: int, height: int) -> None:
        """Update the pane geometry and re-clamp the offset against it."""
        self._width = max(1, int(width))
        self._height = max(1, int(height))
        self._offset = self._clamp(self._offset)

    def max_offset(self) -> int:
        return max(0, len(self.rendered_lines()) - self._height)

    def _clamp(self, offset: int) -> int:
        return min(max(0, offset), self.max_offset())

    def scroll(self, delta: int) -> int:
        """Move the view by ``delta`` lines and return the clamped offset."""
        self._offset = self._clamp(self._offset + delta)
        return self._offset

    def scroll_to_top(self) -> None:
        self._offset = 0

    def scroll_to_bottom(self) -> None:
        self._offset = self.max_offset()

    def rendered_lines(self) -> list[Text]:
        """Render every message at the current width (cached until it changes)."""
        key = (len(self._messages), self._width)
        if key != self._cache_key:
            lines: list[Text] = []
            for message in self._messages:
                lines.extend(self._render_message(message))
            self._cache_lines = lines
            self._cache_key = key
        return self._cache_lines

    def rendered_window(self, viewport_height: int | None = None) -> HistoryWindow:
        """Return the lines in ``[offset, offset + viewport_height)``."""
        if viewport_height is not None and viewport_height != self._height:
            self.set_viewport(self._width, viewport_height)
        lines = self.rendered_lines()
        self._offset = self._clamp(self._offset)
        visible = lines[self._offset : self._offset + self._height]
        return HistoryWindow(lines=tuple(visible), offset=self._offset, total=len(lines))

    def _render_message(self, message: Message) -> list[Text]:
        if message.is_error:
            label, header_style = "Error:", HEADER_STYLES["error"]
        elif message.role == Role.USER:
            label, header_style = "You:", HEADER_STYLES["user"]
        else:
            label, header_style = "AI:", HEADER_STYLES["assistant"]

        header = Text()
        if self.show_timestamps:
            header.append(f"[{message.timestamp.strftime(TIMESTAMP_FORMAT)}] ", style="dim")
        header.append(label, style=header_style)

        body_width = max(1, self._width - len(BODY_INDENT))
        if message.is_error:
            body = wrap_plain(message.text, body_width, style=ERROR_BODY_STYLE)
        elif message.role == Role.ASSISTANT:
            body = self._formatter(message.text, body_width)
        else:
            body = wrap_plain(message.text, body_width)

        rendered = [header]
        for line in body:
            rendered.append(Text(BODY_INDENT) + line)
        rendered.append(Text(""))
        return rendered
