"""Markdown and plain-text line formatting for the history pane."""

from __future__ import annotations

from functools import lru_cache
import io

from rich.console import Console
from rich.markdown import Markdown
from rich.text import Text

MIN_WIDTH = 8


@lru_cache(maxsize=8)
def _console(width: int) -> Console:
    """Return an off-screen console that renders at a fixed width."""
    return Console(
        file=io.StringIO(),
        width=width,
        force_terminal=True,
        color_system="truecolor",
        legacy_windows=False,
        highlight=False,
    )


def _clamp_width(width: int) -> int:
    return max(MIN_WIDTH, int(width))


def format_markdown(text: str, width: int) -> list[Text]:
    """Render Markdown source into styled display lines of at most ``width`` cells."""
    width = _clamp_width(width)
    if not text.strip():
        return []
    console = _console(width)
    rendered = console.render_lines(
        Markdown(text), console.options.update_width(width), pad=False
    )
    lines: list[Text] = []
    for segments in rendered:
        line = Text.assemble(
            *((segment.text, segment.style) for segment in segments if not segment.control)
        )
        line.rstrip()
        lines.append(line)
    # Markdown blocks end with a margin line; drop trailing blanks.
    while lines and not lines[-1].plain:
        lines.pop()
    return lines


def wrap_plain(text: str, width: int, style: str = "") -> list[Text]:
    """Word-wrap plain text, folding words longer than ``width``."""
    width = _clamp_width(width)
    lines: list[Text] = []
    for raw_line in text.splitlines() or [""]:
        if not raw_line.strip():
            lines.append(Text("", style=style))
            continue
        wrapped = Text(raw_line, style=style).wrap(
            _console(width), width, overflow="fold"
        )
        for line in wrapped:
            line.rstrip()
            lines.append(line)
    while lines and not lines[-1].plain:
        lines.pop()
    return lines
