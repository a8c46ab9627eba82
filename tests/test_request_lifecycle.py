"""Tests for request id allocation and background request execution."""

from __future__ import annotations

import asyncio
from datetime import datetime
import unittest

from llm_tui.exceptions import AuthenticationError, CompletionTimeoutError
from llm_tui.models import (
    CompletionFailure,
    CompletionSuccess,
    ErrorKind,
    Message,
    ModelId,
    Role,
)
from llm_tui.request_lifecycle import (
    RequestCompleted,
    RequestHandle,
    RequestLifecycleManager,
    RequestSlot,
)

MESSAGES = (Message(Role.USER, "hi", datetime(2024, 1, 1)),)


def _handle(request_id: int) -> RequestHandle:
    return RequestHandle(id=request_id, model=ModelId.DEEPSEEK_R1, messages=MESSAGES)


class GatedBackend:
    """Completion backend that waits for a gate before answering."""

    def __init__(self, outcome: str | Exception = "ok") -> None:
        self.outcome = outcome
        self.gate = asyncio.Event()
        self.calls: list[tuple[ModelId, int, str]] = []

    async def complete(self, model, messages, credential) -> str:
        self.calls.append((model, len(messages), credential))
        await self.gate.wait()
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class RequestSlotTests(unittest.TestCase):
    def test_ids_are_monotonic_and_supersede(self) -> None:
        slot = RequestSlot()
        first = slot.issue(ModelId.DEEPSEEK_R1, MESSAGES)
        second = slot.issue(ModelId.DEEPSEEK_V3, [])

        self.assertEqual((first.id, second.id), (1, 2))
        self.assertIs(slot.current, second)
        self.assertFalse(slot.accepts(1))
        self.assertTrue(slot.accepts(2))
        self.assertEqual(second.messages, ())

    def test_invalidate_and_clear(self) -> None:
        slot = RequestSlot()
        handle = slot.issue(ModelId.DEEPSEEK_R1, MESSAGES)

        self.assertIs(slot.invalidate(), handle)
        self.assertFalse(slot.is_live)
        self.assertIsNone(slot.invalidate())
        self.assertFalse(slot.clear(handle.id))

        again = slot.issue(ModelId.DEEPSEEK_R1, MESSAGES)
        self.assertEqual(again.id, 2)
        self.assertTrue(slot.clear(2))
        self.assertIsNone(slot.current)


class RequestLifecycleManagerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.posted: list[RequestCompleted] = []

    def _manager(self, backend: GatedBackend) -> RequestLifecycleManager:
        return RequestLifecycleManager(backend, self.posted.append)

    async def test_success_posts_exactly_one_completion(self) -> None:
        backend = GatedBackend("Hello!")
        manager = self._manager(backend)
        task = manager.start(_handle(1), "tok")
        self.assertEqual(manager.current_id, 1)

        backend.gate.set()
        await task

        self.assertEqual(self.posted, [RequestCompleted(1, CompletionSuccess("Hello!"))])
        self.assertEqual(backend.calls, [(ModelId.DEEPSEEK_R1, 1, "tok")])
        self.assertIsNone(manager.current_id)

    async def test_typed_failure_becomes_data(self) -> None:
        backend = GatedBackend(AuthenticationError("HTTP 401"))
        manager = self._manager(backend)
        backend.gate.set()
        await manager.start(_handle(1), "tok")

        self.assertEqual(
            self.posted,
            [RequestCompleted(1, CompletionFailure(ErrorKind.AUTH_FAILURE, "HTTP 401"))],
        )

    async def test_timeout_is_delivered(self) -> None:
        backend = GatedBackend(CompletionTimeoutError("no answer"))
        manager = self._manager(backend)
        backend.gate.set()
        await manager.start(_handle(1), "tok")
        self.assertEqual(self.posted[0].result.kind, ErrorKind.TIMEOUT)

    async def test_unexpected_exception_is_reported_as_network_failure(self) -> None:
        backend = GatedBackend(ValueError("boom"))
        manager = self._manager(backend)
        backend.gate.set()
        with self.assertLogs("llm_tui.request_lifecycle", level="WARNING"):
            await manager.start(_handle(1), "tok")
        self.assertEqual(
            self.posted, [RequestCompleted(1, CompletionFailure(ErrorKind.NETWORK, "boom"))]
        )

    async def test_new_request_cancels_previous(self) -> None:
        backend = GatedBackend("ok")
        manager = self._manager(backend)
        first = manager.start(_handle(1), "tok")
        await asyncio.sleep(0)
        second = manager.start(_handle(2), "tok")

        with self.assertRaises(asyncio.CancelledError):
            await first
        backend.gate.set()
        await second

        self.assertEqual(self.posted, [RequestCompleted(2, CompletionSuccess("ok"))])

    async def test_ids_must_advance(self) -> None:
        backend = GatedBackend("ok")
        manager = self._manager(backend)
        manager.start(_handle(2), "tok")
        with self.assertRaises(ValueError):
            manager.start(_handle(2), "tok")
        with self.assertRaises(ValueError):
            manager.start(_handle(1), "tok")
        await manager.shutdown()

    async def test_cancel_is_advisory_and_posts_nothing(self) -> None:
        backend = GatedBackend("ok")
        manager = self._manager(backend)
        task = manager.start(_handle(1), "tok")
        await asyncio.sleep(0)

        self.assertTrue(manager.cancel(1))
        self.assertFalse(manager.cancel(1))
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertEqual(self.posted, [])
        self.assertIsNone(manager.current_id)

    async def test_shutdown_cancels_outstanding_request(self) -> None:
        backend = GatedBackend("ok")
        manager = self._manager(backend)
        task = manager.start(_handle(1), "tok")
        await asyncio.sleep(0)

        await manager.shutdown()

        self.assertTrue(task.cancelled())
        self.assertEqual(self.posted, [])


if __name__ == "__main__":
    unittest.main()
