"""Pure composition of a drawable frame from session state.

``render_frame`` has no state and no side effects: identical inputs yield an
identical :class:`Frame`, which is what lets the session controller be tested
without a terminal.
"""

from __future__ import annotations

from dataclasses import dataclass

from rich.align import Align
from rich.console import Group, RenderableType
from rich.layout import Layout
from rich.panel import Panel
from rich.text import Text

from .config import SessionConfig
from .history import HistoryWindow
from .models import AVAILABLE_MODELS
from .state import (
    ConfigModal,
    Focus,
    HelpModal,
    LoadingMode,
    ModelSelectModal,
    NormalMode,
    UIMode,
)

ACTIVE_BORDER = "green"
INACTIVE_BORDER = "bright_black"
CURSOR = "▏"

HELP_LINES: tuple[str, ...] = (
    "Alt+H / F1      Show this help",
    "Alt+C / F2      Configure API credential",
    "Alt+M / F3      Select model",
    "Alt+Y / F4      Copy last AI reply",
    "Tab             Switch between input and history",
    "↑/↓             Scroll history / recall previous prompts",
    "PgUp/PgDn       Scroll history by a page",
    "Enter           Send prompt",
    "Ctrl+C          Quit",
    "Esc             Quit, or close a dialog",
)


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int


@dataclass(frozen=True)
class PaneLayout:
    """Row allocation: input pane, history pane, one status row."""

    input_height: int
    history_height: int
    status_height: int
    inner_width: int

    @property
    def history_inner_height(self) -> int:
        return max(1, self.history_height - 2)


def compute_layout(viewport: Viewport) -> PaneLayout:
    """Split the screen 30/70 between input and history above the status row."""
    status_height = 1
    body = max(6, viewport.height - status_height)
    input_height = max(3, body * 30 // 100)
    history_height = max(3, body - input_height)
    # Borders plus one column of padding on each side.
    inner_width = max(1, viewport.width - 4)
    return PaneLayout(
        input_height=input_height,
        history_height=history_height,
        status_height=status_height,
        inner_width=inner_width,
    )


@dataclass(frozen=True)
class ModalView:
    title: str
    lines: tuple[Text, ...]
    subtitle: str = ""


@dataclass(frozen=True)
class Frame:
    """Everything needed to draw one screen."""

    viewport: Viewport
    layout: PaneLayout
    input_title: str
    input_text: str
    input_active: bool
    history_title: str
    history_lines: tuple[Text, ...]
    history_active: bool
    status: Text
    modal: ModalView | None = None

    def to_renderable(self) -> RenderableType:
        """Build the rich layout drawn by the terminal driver."""
        input_body = Text(self.input_text)
        if self.input_active:
            input_body.append(CURSOR, style="blink")
        input_panel = Panel(
            input_body,
            title=self.input_title,
            title_align="left",
            border_style=ACTIVE_BORDER if self.input_active else INACTIVE_BORDER,
            padding=(0, 1),
        )

        if self.modal is not None:
            modal_width = min(self.viewport.width - 2, max(40, self.viewport.width * 6 // 10))
            lower: RenderableType = Align.center(
                Panel(
                    Group(*self.modal.lines),
                    title=self.modal.title,
                    subtitle=self.modal.subtitle or None,
                    border_style="yellow",
                    padding=(0, 1),
                    width=max(10, modal_width),
                ),
                vertical="middle",
            )
        else:
            lower = Panel(
                Group(*self.history_lines),
                title=self.history_title,
                title_align="left",
                border_style=ACTIVE_BORDER if self.history_active else INACTIVE_BORDER,
                padding=(0, 1),
            )

        root = Layout(name="root")
        root.split_column(
            Layout(input_panel, name="input", size=self.layout.input_height),
            Layout(lower, name="history", size=self.layout.history_height),
            Layout(self.status, name="status", size=self.layout.status_height),
        )
        return root


def _mask(credential: str) -> str:
    if len(credential) <= 4:
        return credential
    return "•" * (len(credential) - 4) + credential[-4:]


def _model_window(highlighted: int, rows: int) -> range:
    """Return the slice of model indexes that keeps ``highlighted`` visible."""
    total = len(AVAILABLE_MODELS)
    rows = max(1, min(rows, total))
    start = min(max(0, highlighted - rows // 2), total - rows)
    return range(start, start + rows)


def _modal_view(mode: UIMode, config: SessionConfig, layout: PaneLayout) -> ModalView | None:
    if isinstance(mode, HelpModal):
        return ModalView(
            title="Help",
            lines=tuple(Text(line) for line in HELP_LINES),
            subtitle="Esc to close",
        )
    if isinstance(mode, ConfigModal):
        state = "saved" if config.has_credential else "not set"
        return ModalView(
            title=f"API credential (current: {state})",
            lines=(
                Text.assemble(_mask(mode.draft_credential), (CURSOR, "blink")),
                Text("Leave empty to clear the stored credential.", style="dim"),
            ),
            subtitle="Enter to save · Esc to cancel",
        )
    if isinstance(mode, ModelSelectModal):
        lines: list[Text] = []
        for index in _model_window(mode.highlighted_index, layout.history_inner_height - 2):
            model = AVAILABLE_MODELS[index]
            if index == mode.highlighted_index:
                lines.append(Text(f"> {model.value}", style="bold reverse"))
            else:
                lines.append(Text(f"  {model.value}"))
        return ModalView(
            title=f"Select model (current: {config.model.value})",
            lines=tuple(lines),
            subtitle="Enter to select · Esc to cancel",
        )
    return None


def _status_line(config: SessionConfig, notice: str) -> Text:
    status = Text(" ")
    status.append(config.model.value, style="bold")
    status.append("  │  ")
    if config.has_credential:
        status.append("credential set", style="green")
    else:
        status.append("no credential (Alt+C)", style="red")
    if notice:
        status.append("  │  ")
        status.append(notice, style="italic")
    return status


def render_frame(
    mode: UIMode,
    window: HistoryWindow,
    config: SessionConfig,
    viewport: Viewport,
    *,
    input_text: str = "",
    notice: str = "",
) -> Frame:
    """Compose the frame for the current mode, history window and config."""
    layout = compute_layout(viewport)
    loading = isinstance(mode, LoadingMode)
    focus = mode.focus if isinstance(mode, NormalMode) else None

    if loading:
        input_title = "Input (waiting for response...)"
    else:
        input_title = "Input (Enter send · Alt+C config · Alt+H help)"

    history_title = "History (↑/↓ scroll)"
    if window.total > len(window.lines):
        last = window.offset + len(window.lines)
        history_title = f"History (↑/↓ scroll) {window.offset + 1}-{last}/{window.total}"

    return Frame(
        viewport=viewport,
        layout=layout,
        input_title=input_title,
        input_text=input_text,
        input_active=focus == Focus.INPUT or loading,
        history_title=history_title,
        history_lines=window.lines,
        history_active=focus == Focus.HISTORY,
        status=_status_line(config, notice),
        modal=_modal_view(mode, config, layout),
    )
