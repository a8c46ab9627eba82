"""Single-flight bookkeeping and async execution of completion requests.

Two halves cooperate here. :class:`RequestSlot` is pure state owned by the
session controller: it allocates monotonically increasing request ids and
remembers which one is current, so superseded completions can be recognised
and dropped. :class:`RequestLifecycleManager` runs on the event loop: it turns
a handle into a network call and posts exactly one :class:`RequestCompleted`
back to the UI once the call settles.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
import logging
import time
from typing import Protocol

from .exceptions import CompletionError
from .models import (
    CompletionFailure,
    CompletionResult,
    CompletionSuccess,
    ErrorKind,
    Message,
    ModelId,
)
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestHandle:
    """Identity and payload of one request attempt."""

    id: int
    model: ModelId
    messages: tuple[Message, ...]


@dataclass(frozen=True)
class RequestCompleted:
    """Outcome of a request, delivered once through the UI event queue."""

    request_id: int
    result: CompletionResult


class CompletionBackend(Protocol):
    async def complete(
        self, model: ModelId, messages: Sequence[Message], credential: str
    ) -> str: ...


class RequestSlot:
    """Hold at most one current request handle."""

    def __init__(self) -> None:
        self._last_id = 0
        self._current: RequestHandle | None = None

    @property
    def current(self) -> RequestHandle | None:
        return self._current

    @property
    def is_live(self) -> bool:
        return self._current is not None

    def issue(self, model: ModelId, messages: Sequence[Message]) -> RequestHandle:
        """Allocate the next id and make it current, superseding any previous one."""
        self._last_id += 1
        self._current = RequestHandle(
            id=self._last_id, model=model, messages=tuple(messages)
        )
        return self._current

    def invalidate(self) -> RequestHandle | None:
        """Forget the current handle and return it."""
        handle, self._current = self._current, None
        return handle

    def accepts(self, request_id: int) -> bool:
        return self._current is not None and self._current.id == request_id

    def clear(self, request_id: int) -> bool:
        """Clear the current handle when ``request_id`` matches it."""
        if not self.accepts(request_id):
            return False
        self._current = None
        return True


class RequestLifecycleManager:
    """Run completion requests in the background, one live request at a time."""

    def __init__(
        self,
        client: CompletionBackend,
        post: Callable[[RequestCompleted], object],
        task_manager: TaskManager | None = None,
    ) -> None:
        self._client = client
        self._post = post
        self._tasks = task_manager or TaskManager()
        self._current: RequestHandle | None = None
        self._last_id = 0

    @property
    def current_id(self) -> int | None:
        return self._current.id if self._current is not None else None

    def start(self, handle: RequestHandle, credential: str) -> asyncio.Task[None]:
        """Spawn ``handle``'s network call, replacing whatever was running."""
        if handle.id <= self._last_id:
            raise ValueError(
                f"Request id {handle.id} does not advance past {self._last_id}."
            )
        if self._current is not None:
            self.cancel(self._current.id)
        self._last_id = handle.id
        self._current = handle
        task = asyncio.create_task(
            self._run(handle, credential), name=f"completion-{handle.id}"
        )
        self._tasks.add(handle.id, task)
        LOGGER.info(
            "request.started",
            extra={
                "event": "request.started",
                "request_id": handle.id,
                "model": handle.model.value,
                "message_count": len(handle.messages),
            },
        )
        return task

    def cancel(self, request_id: int) -> bool:
        """Best-effort abort; a result that still arrives is discarded by id."""
        if self._current is not None and self._current.id == request_id:
            self._current = None
        cancelled = self._tasks.cancel(request_id)
        if cancelled:
            LOGGER.info(
                "request.cancel_requested",
                extra={"event": "request.cancel_requested", "request_id": request_id},
            )
        return cancelled

    async def shutdown(self) -> None:
        """Cancel every outstanding request and wait for the tasks to unwind."""
        self._current = None
        await self._tasks.cancel_all()

    async def _run(self, handle: RequestHandle, credential: str) -> None:
        started = time.monotonic()
        result: CompletionResult
        try:
            text = await self._client.complete(handle.model, handle.messages, credential)
            result = CompletionSuccess(text)
        except asyncio.CancelledError:
            LOGGER.info(
                "request.cancelled",
                extra={"event": "request.cancelled", "request_id": handle.id},
            )
            raise
        except CompletionError as exc:
            result = CompletionFailure(exc.kind, str(exc))
        except Exception as exc:  # noqa: BLE001 - every outcome must reach the UI.
            LOGGER.warning(
                "request.unexpected_error",
                extra={"event": "request.unexpected_error", "request_id": handle.id},
                exc_info=True,
            )
            result = CompletionFailure(ErrorKind.NETWORK, str(exc) or type(exc).__name__)

        if self._current is handle:
            self._current = None
        LOGGER.info(
            "request.completed",
            extra={
                "event": "request.completed",
                "request_id": handle.id,
                "ok": isinstance(result, CompletionSuccess),
                "elapsed_ms": int((time.monotonic() - started) * 1000),
            },
        )
        self._post(RequestCompleted(request_id=handle.id, result=result))
