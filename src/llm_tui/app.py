"""Textual driver: feeds keys and completions to the session controller."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging
from pathlib import Path
import sys

from rich.console import RenderableType
from textual import events
from textual.app import App, ComposeResult
from textual.message import Message
from textual.widget import Widget

from .client import CompletionClient
from .commands import RawKey, dispatch
from .config import ConfigStore, load_settings
from .controller import (
    CancelRequest,
    CopyToClipboard,
    Effect,
    Outcome,
    PersistConfig,
    SessionController,
    StartRequest,
    Terminate,
)
from .exceptions import PersistenceError
from .history import MessageHistory
from .logging_utils import configure_logging
from .render import Frame
from .request_lifecycle import (
    CompletionBackend,
    RequestCompleted,
    RequestLifecycleManager,
)
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)


class CompletionArrived(Message):
    """A finished request, delivered through the app's message queue."""

    def __init__(self, completed: RequestCompleted) -> None:
        super().__init__()
        self.completed = completed


class FrameView(Widget, can_focus=True):
    """Full-screen widget that draws the latest frame and captures every key."""

    def __init__(self, on_raw_key: Callable[[RawKey], None], **kwargs) -> None:
        super().__init__(**kwargs)
        self._on_raw_key = on_raw_key
        self._frame: Frame | None = None

    @property
    def frame(self) -> Frame | None:
        return self._frame

    def show(self, frame: Frame) -> None:
        self._frame = frame
        self.refresh()

    def render(self) -> RenderableType:
        if self._frame is None:
            return ""
        return self._frame.to_renderable()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self._on_raw_key(RawKey(event.key, event.character))


class LlmTuiApp(App[None]):
    """Terminal chat client for a hosted chat-completion API."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #frame {
        width: 100%;
        height: 100%;
    }
    """

    ENABLE_COMMAND_PALETTE = False
    # Every key is routed through the controller, including ctrl+c and tab.
    inherit_bindings = False
    BINDINGS = []

    def __init__(
        self,
        *,
        config_path: Path | None = None,
        settings_path: Path | None = None,
        client: CompletionBackend | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__()
        self.settings = load_settings(settings_path)
        configure_logging(self.settings["logging"])
        LOGGER.info(
            "app.python",
            extra={
                "event": "app.python",
                "executable": sys.executable,
                "version": sys.version.split()[0],
            },
        )
        api = self.settings["api"]
        ui = self.settings["ui"]
        self.title = str(ui["title"])

        self.store = ConfigStore(config_path)
        self.controller = SessionController(
            self.store.load(),
            MessageHistory(show_timestamps=bool(ui["show_timestamps"])),
            clock=clock,
            modal_policy=ui["modal_while_loading"],
            max_context_messages=int(api["max_context_messages"]),
        )
        self.client = client or CompletionClient(
            str(api["url"]),
            timeout=float(api["timeout_seconds"]),
            retries=int(api["retries"]),
            retry_backoff_seconds=float(api["retry_backoff_seconds"]),
        )
        self._task_manager = TaskManager()
        self.requests = RequestLifecycleManager(
            self.client, self._post_completion, self._task_manager
        )
        self._view: FrameView | None = None

    def compose(self) -> ComposeResult:
        yield FrameView(self.handle_raw_key, id="frame")

    def on_mount(self) -> None:
        self._view = self.query_one(FrameView)
        self._view.focus()
        self.controller.resize(self.size.width, self.size.height)
        LOGGER.info(
            "app.state.transition",
            extra={
                "event": "app.state.transition",
                "to_state": type(self.controller.mode).__name__,
                "model": self.controller.config.model.value,
            },
        )
        self._redraw()

    def on_resize(self, event: events.Resize) -> None:
        self.controller.resize(event.size.width, event.size.height)
        self._redraw()

    async def on_unmount(self) -> None:
        """Cancel and await the outstanding request during shutdown."""
        await self.requests.shutdown()

    def handle_raw_key(self, raw_key: RawKey) -> None:
        command = dispatch(raw_key, self.controller.mode)
        if command is None:
            return
        self._apply(self.controller.handle_event(command))

    def on_completion_arrived(self, message: CompletionArrived) -> None:
        self._apply(self.controller.handle_event(message.completed))

    def _post_completion(self, completed: RequestCompleted) -> None:
        self.post_message(CompletionArrived(completed))

    def _apply(self, outcome: Outcome) -> None:
        for effect in outcome.effects:
            self._execute(effect)
        self._redraw()

    def _execute(self, effect: Effect) -> None:
        if isinstance(effect, StartRequest):
            self.requests.start(effect.handle, effect.credential)
        elif isinstance(effect, CancelRequest):
            self.requests.cancel(effect.request_id)
        elif isinstance(effect, PersistConfig):
            try:
                self.store.save(effect.config)
            except PersistenceError as exc:
                LOGGER.error(
                    "config.save_failed",
                    extra={"event": "config.save_failed", "reason": str(exc)},
                )
                self.controller.report(f"Could not save config: {exc}")
        elif isinstance(effect, CopyToClipboard):
            self.copy_to_clipboard(effect.text)
        elif isinstance(effect, Terminate):
            self.exit()

    def _redraw(self) -> None:
        if self._view is not None:
            self._view.show(self.controller.render())
