"""Session controller: the state machine behind the terminal client.

The controller consumes one event at a time (a :class:`KeyCommand` from the
keyboard or a :class:`RequestCompleted` from the request manager), updates
the mode, history and session config, and returns declarative effects for the
driver to execute. It performs no I/O itself.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import NamedTuple

from .commands import CommandKind, KeyCommand
from .config import ModalPolicy, SessionConfig
from .history import MessageHistory
from .models import (
    AVAILABLE_MODELS,
    CompletionFailure,
    CompletionSuccess,
    ErrorKind,
    Message,
    Role,
)
from .render import Frame, PaneLayout, Viewport, compute_layout, render_frame
from .request_lifecycle import RequestCompleted, RequestHandle, RequestSlot
from .state import (
    INITIAL_MODE,
    ConfigModal,
    Focus,
    HelpModal,
    LoadingMode,
    ModelSelectModal,
    NormalMode,
    UIMode,
    is_modal,
)

LOGGER = logging.getLogger(__name__)

SCROLL_COMMANDS = frozenset(
    {
        CommandKind.SCROLL_UP,
        CommandKind.SCROLL_DOWN,
        CommandKind.PAGE_UP,
        CommandKind.PAGE_DOWN,
        CommandKind.SCROLL_TOP,
        CommandKind.SCROLL_BOTTOM,
    }
)
OPEN_COMMANDS = frozenset(
    {CommandKind.OPEN_HELP, CommandKind.OPEN_CONFIG, CommandKind.OPEN_MODEL_SELECT}
)


@dataclass(frozen=True)
class StartRequest:
    handle: RequestHandle
    credential: str


@dataclass(frozen=True)
class CancelRequest:
    request_id: int


@dataclass(frozen=True)
class PersistConfig:
    config: SessionConfig


@dataclass(frozen=True)
class CopyToClipboard:
    text: str


@dataclass(frozen=True)
class Terminate:
    pass


Effect = StartRequest | CancelRequest | PersistConfig | CopyToClipboard | Terminate
Event = KeyCommand | RequestCompleted


class Outcome(NamedTuple):
    mode: UIMode
    effects: tuple[Effect, ...]


class SessionController:
    """Single authority over the UI mode and everything that follows from it."""

    def __init__(
        self,
        config: SessionConfig,
        history: MessageHistory | None = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        modal_policy: ModalPolicy = "allow",
        max_context_messages: int = 20,
        viewport: Viewport = Viewport(80, 24),
    ) -> None:
        self._config = config
        self.history = history if history is not None else MessageHistory()
        self._clock = clock
        self._modal_policy = modal_policy
        self._max_context_messages = max(1, max_context_messages)
        self._mode: UIMode = INITIAL_MODE
        self._requests = RequestSlot()
        self._input = ""
        self._input_history: list[str] = []
        self._recall_index: int | None = None
        self._stashed_input = ""
        self._notice = ""
        self._viewport = viewport
        self.resize(viewport.width, viewport.height)

    @property
    def mode(self) -> UIMode:
        return self._mode

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def input_text(self) -> str:
        return self._input

    @property
    def notice(self) -> str:
        return self._notice

    @property
    def current_request(self) -> RequestHandle | None:
        return self._requests.current

    @property
    def layout(self) -> PaneLayout:
        return self._layout

    def resize(self, width: int, height: int) -> PaneLayout:
        """Adopt new terminal dimensions and resize the history viewport."""
        self._viewport = Viewport(max(1, width), max(1, height))
        self._layout = compute_layout(self._viewport)
        self.history.set_viewport(
            self._layout.inner_width, self._layout.history_inner_height
        )
        return self._layout

    def report(self, notice: str) -> None:
        """Show a driver-side outcome (such as a failed save) in the status line."""
        self._notice = notice

    def render(self) -> Frame:
        return render_frame(
            self._mode,
            self.history.rendered_window(),
            self._config,
            self._viewport,
            input_text=self._input,
            notice=self._notice,
        )

    def handle_event(self, event: Event) -> Outcome:
        """Apply one event and return the resulting mode and effects."""
        if isinstance(event, RequestCompleted):
            effects = self._on_completed(event)
        elif isinstance(event, KeyCommand):
            effects = self._on_command(event)
        else:
            raise TypeError(f"Unsupported event: {event!r}")
        return Outcome(self._mode, tuple(effects))

    def _set_mode(self, mode: UIMode) -> None:
        if mode == self._mode:
            return
        LOGGER.info(
            "controller.transition",
            extra={
                "event": "controller.transition",
                "from_mode": type(self._mode).__name__,
                "to_mode": type(mode).__name__,
            },
        )
        self._mode = mode

    def _resume_mode(self) -> UIMode:
        """Mode to return to when a modal closes."""
        return LoadingMode() if self._requests.is_live else NormalMode(Focus.INPUT)

    def _cancel_live(self) -> list[Effect]:
        handle = self._requests.invalidate()
        if handle is None:
            return []
        return [CancelRequest(handle.id)]

    # Completion events ---------------------------------------------------

    def _on_completed(self, event: RequestCompleted) -> list[Effect]:
        if not self._requests.accepts(event.request_id):
            LOGGER.info(
                "request.discarded",
                extra={"event": "request.discarded", "request_id": event.request_id},
            )
            return []
        self._requests.clear(event.request_id)

        result = event.result
        if isinstance(result, CompletionSuccess):
            self.history.append(Message(Role.ASSISTANT, result.text, self._clock()))
            self._notice = ""
        else:
            self.history.append(
                Message(Role.ASSISTANT, result.summary, self._clock(), is_error=True)
            )
            self._notice = result.summary

        auth_failed = (
            isinstance(result, CompletionFailure)
            and result.kind == ErrorKind.AUTH_FAILURE
        )
        if auth_failed:
            self._notice = "Authentication failed: enter a valid API credential."
        if auth_failed and not is_modal(self._mode):
            self._set_mode(ConfigModal(self._config.credential or ""))
        elif isinstance(self._mode, LoadingMode):
            self._set_mode(NormalMode(Focus.INPUT))
        return []

    # Key commands ----------------------------------------------------------

    def _on_command(self, command: KeyCommand) -> list[Effect]:
        kind = command.kind
        if kind == CommandKind.QUIT:
            return self._quit()
        if kind == CommandKind.COPY_LAST_REPLY:
            return self._copy_last_reply()
        if kind in OPEN_COMMANDS:
            return self._open_modal(kind)

        mode = self._mode
        if isinstance(mode, NormalMode):
            return self._on_normal(command, mode.focus)
        if isinstance(mode, LoadingMode):
            self._edit_or_scroll(command)
            return []
        if isinstance(mode, ConfigModal):
            return self._on_config_modal(command, mode)
        if isinstance(mode, ModelSelectModal):
            return self._on_model_select(command, mode)
        if isinstance(mode, HelpModal):
            if kind in (CommandKind.CONFIRM, CommandKind.CANCEL):
                self._set_mode(self._resume_mode())
            return []
        return []

    def _quit(self) -> list[Effect]:
        LOGGER.info("controller.quit", extra={"event": "controller.quit"})
        return [*self._cancel_live(), Terminate()]

    def _copy_last_reply(self) -> list[Effect]:
        reply = self.history.last_assistant_reply()
        if reply is None:
            self._notice = "No AI reply to copy."
            return []
        self._notice = "Copied last reply to clipboard."
        return [CopyToClipboard(reply)]

    def _open_modal(self, kind: CommandKind) -> list[Effect]:
        effects: list[Effect] = []
        changes_settings = kind != CommandKind.OPEN_HELP
        if changes_settings and self._requests.is_live:
            if self._modal_policy == "block":
                self._notice = "Wait for the response before changing settings."
                return []
            if self._modal_policy == "cancel":
                effects.extend(self._cancel_live())
                self._notice = "Pending request cancelled."

        if kind == CommandKind.OPEN_HELP:
            self._set_mode(HelpModal())
        elif kind == CommandKind.OPEN_CONFIG:
            self._set_mode(ConfigModal(self._config.credential or ""))
        else:
            self._set_mode(ModelSelectModal(AVAILABLE_MODELS.index(self._config.model)))
        return effects

    def _on_normal(self, command: KeyCommand, focus: Focus) -> list[Effect]:
        kind = command.kind
        if kind == CommandKind.TOGGLE_FOCUS:
            other = Focus.HISTORY if focus == Focus.INPUT else Focus.INPUT
            self._set_mode(NormalMode(other))
            return []
        if focus == Focus.HISTORY:
            if kind in SCROLL_COMMANDS:
                self._scroll(kind)
            return []
        if kind == CommandKind.SUBMIT:
            return self._submit()
        if kind == CommandKind.HISTORY_PREV:
            self._recall(older=True)
        elif kind == CommandKind.HISTORY_NEXT:
            self._recall(older=False)
        else:
            self._edit_or_scroll(command)
        return []

    def _edit_or_scroll(self, command: KeyCommand) -> None:
        kind = command.kind
        if kind == CommandKind.INSERT_CHAR:
            self._input += command.char
        elif kind == CommandKind.DELETE_CHAR:
            self._input = self._input[:-1]
        elif kind in SCROLL_COMMANDS and isinstance(self._mode, LoadingMode):
            self._scroll(kind)

    def _scroll(self, kind: CommandKind) -> None:
        page = self.history.viewport_height
        if kind == CommandKind.SCROLL_UP:
            self.history.scroll(-1)
        elif kind == CommandKind.SCROLL_DOWN:
            self.history.scroll(1)
        elif kind == CommandKind.PAGE_UP:
            self.history.scroll(-page)
        elif kind == CommandKind.PAGE_DOWN:
            self.history.scroll(page)
        elif kind == CommandKind.SCROLL_TOP:
            self.history.scroll_to_top()
        elif kind == CommandKind.SCROLL_BOTTOM:
            self.history.scroll_to_bottom()

    def _submit(self) -> list[Effect]:
        text = self._input.strip()
        if not text:
            return []
        if not self._config.has_credential:
            self._notice = "Set an API credential before sending."
            self._set_mode(ConfigModal(""))
            return []

        self._remember_input(text)
        user_message = Message(Role.USER, text, self._clock())
        context = self._build_context(user_message)
        self.history.append(user_message)
        self._input = ""
        handle = self._requests.issue(self._config.model, context)
        self._notice = ""
        self._set_mode(LoadingMode())
        return [StartRequest(handle, self._config.credential or "")]

    def _build_context(self, user_message: Message) -> list[Message]:
        """Snapshot the conversation tail that accompanies ``user_message``.

        Prompts left unanswered (failed or superseded) are dropped so that the
        context alternates between user and assistant turns.
        """
        turns: list[Message] = []
        for message in [*self.history.conversation(), user_message]:
            if turns and turns[-1].role == Role.USER and message.role == Role.USER:
                turns.pop()
            turns.append(message)
        turns = turns[-self._max_context_messages :]
        while turns and turns[0].role != Role.USER:
            turns.pop(0)
        return turns

    def _remember_input(self, text: str) -> None:
        if not self._input_history or self._input_history[-1] != text:
            self._input_history.append(text)
        self._recall_index = None
        self._stashed_input = ""

    def _recall(self, *, older: bool) -> None:
        """Walk previously submitted prompts, restoring the draft past the newest."""
        if not self._input_history:
            return
        newest = len(self._input_history) - 1
        if self._recall_index is None:
            if not older:
                return
            self._stashed_input = self._input
            self._recall_index = newest
        elif older:
            self._recall_index = max(0, self._recall_index - 1)
        elif self._recall_index >= newest:
            self._recall_index = None
            self._input, self._stashed_input = self._stashed_input, ""
            return
        else:
            self._recall_index += 1
        self._input = self._input_history[self._recall_index]

    # Modals ----------------------------------------------------------------

    def _on_config_modal(self, command: KeyCommand, mode: ConfigModal) -> list[Effect]:
        kind = command.kind
        if kind == CommandKind.INSERT_CHAR:
            self._set_mode(ConfigModal(mode.draft_credential + command.char))
        elif kind == CommandKind.DELETE_CHAR:
            self._set_mode(ConfigModal(mode.draft_credential[:-1]))
        elif kind == CommandKind.CANCEL:
            self._set_mode(self._resume_mode())
        elif kind == CommandKind.CONFIRM:
            updated = SessionConfig(
                credential=mode.draft_credential, model=self._config.model
            )
            self._config = updated
            self._notice = (
                "Credential saved." if updated.has_credential else "Credential cleared."
            )
            self._set_mode(self._resume_mode())
            return [PersistConfig(updated)]
        return []

    def _on_model_select(
        self, command: KeyCommand, mode: ModelSelectModal
    ) -> list[Effect]:
        kind = command.kind
        last = len(AVAILABLE_MODELS) - 1
        page = max(1, self._layout.history_inner_height - 2)
        steps = {
            CommandKind.SCROLL_UP: -1,
            CommandKind.SCROLL_DOWN: 1,
            CommandKind.PAGE_UP: -page,
            CommandKind.PAGE_DOWN: page,
        }
        if kind in steps:
            index = min(max(0, mode.highlighted_index + steps[kind]), last)
            self._set_mode(ModelSelectModal(index))
        elif kind == CommandKind.SCROLL_TOP:
            self._set_mode(ModelSelectModal(0))
        elif kind == CommandKind.SCROLL_BOTTOM:
            self._set_mode(ModelSelectModal(last))
        elif kind == CommandKind.CANCEL:
            self._set_mode(self._resume_mode())
        elif kind == CommandKind.CONFIRM:
            return self._select_model(mode.highlighted_index)
        return []

    def _select_model(self, index: int) -> list[Effect]:
        model = AVAILABLE_MODELS[min(max(0, index), len(AVAILABLE_MODELS) - 1)]
        effects: list[Effect] = []
        if model != self._config.model:
            # A reply produced by the previous model must not land afterwards.
            effects.extend(self._cancel_live())
        updated = SessionConfig(credential=self._config.credential, model=model)
        self._config = updated
        self._notice = f"Switched to model: {model.value}"
        self._set_mode(self._resume_mode())
        effects.append(PersistConfig(updated))
        return effects


def replay(
    controller: SessionController, events: Sequence[Event]
) -> list[Outcome]:
    """Feed ``events`` through ``controller`` in order and collect the outcomes."""
    return [controller.handle_event(event) for event in events]
