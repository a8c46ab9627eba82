"""Lifecycle tracking for background asyncio tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Hashable
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Track keyed background tasks so they can be cancelled or awaited later."""

    def __init__(self) -> None:
        self._tasks: dict[Hashable, asyncio.Task[Any]] = {}

    def __len__(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    def add(self, key: Hashable, task: asyncio.Task[Any]) -> None:
        """Register ``task`` under ``key``; it untracks itself once done.

        A task already registered under ``key`` is replaced, not cancelled.
        """
        self._tasks[key] = task
        task.add_done_callback(lambda done, k=key: self._forget(k, done))

    def _forget(self, key: Hashable, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def cancel(self, key: Hashable) -> bool:
        """Request cancellation without waiting; return whether a task was live."""
        task = self._tasks.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def cancel_all(self) -> None:
        """Cancel every tracked task and wait for them to unwind."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # noqa: BLE001 - shutdown must not raise.
                LOGGER.warning(
                    "tasks.shutdown_error",
                    extra={"event": "tasks.shutdown_error"},
                    exc_info=True,
                )
