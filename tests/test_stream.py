"""Tests for the stream aggregator and background task bookkeeping."""

from __future__ import annotations

import asyncio
import unittest

from bubbletalk.events import StreamChunk, StreamFailed, StreamFinished
from bubbletalk.exceptions import ModelConnectionError
from bubbletalk.models import Message, Role
from bubbletalk.stream import StreamAggregator
from bubbletalk.task_manager import TaskManager


class _FakeClient:
    def __init__(self, deltas: list[str], error: Exception | None = None) -> None:
        self.deltas = deltas
        self.error = error
        self.calls: list[tuple[list[Message], str | None]] = []

    async def stream_chat(self, history, system_message=None):  # noqa: ANN001, ANN201
        self.calls.append((history, system_message))
        for delta in self.deltas:
            await asyncio.sleep(0)
            yield delta
        if self.error is not None:
            raise self.error


class StreamAggregatorTests(unittest.IsolatedAsyncioTestCase):
    """Validate the event sequence posted for one streamed reply."""

    async def test_chunks_then_finished(self) -> None:
        client = _FakeClient(["Hi", " there", "!"])
        posted: list[object] = []
        history = [Message(role=Role.USER, text="Hello")]

        await StreamAggregator(client).run(history, posted.append, system_message="Be kind.")

        self.assertEqual(
            posted,
            [StreamChunk("Hi"), StreamChunk(" there"), StreamChunk("!"), StreamFinished()],
        )
        self.assertEqual(client.calls[0][1], "Be kind.")
        self.assertEqual([m.text for m in client.calls[0][0]], ["Hello"])

    async def test_empty_system_message_is_not_sent(self) -> None:
        client = _FakeClient([])
        posted: list[object] = []
        await StreamAggregator(client).run([], posted.append)
        self.assertIsNone(client.calls[0][1])
        self.assertEqual(posted, [StreamFinished()])

    async def test_failure_after_partial_output(self) -> None:
        client = _FakeClient(["Hal"], error=ModelConnectionError("connection reset"))
        posted: list[object] = []
        await StreamAggregator(client).run([], posted.append)
        self.assertEqual(posted, [StreamChunk("Hal"), StreamFailed("connection reset")])


class TaskManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate named task lifecycle management."""

    async def test_spawn_tracks_until_done(self) -> None:
        tm = TaskManager()
        gate = asyncio.Event()

        async def _worker() -> str:
            await gate.wait()
            return "ok"

        task = tm.spawn(_worker(), "stream")
        self.assertTrue(tm.running("stream"))
        gate.set()
        self.assertEqual(await task, "ok")
        await asyncio.sleep(0)
        self.assertFalse(tm.running("stream"))
        gate.clear()
        again = tm.spawn(_worker(), "stream")
        self.assertIsNot(again, task)
        await tm.cancel_all()

    async def test_spawn_refuses_duplicate_running_name(self) -> None:
        tm = TaskManager()

        async def _worker() -> None:
            await asyncio.sleep(9999)

        tm.spawn(_worker(), "stream")
        with self.assertRaises(RuntimeError):
            tm.spawn(_worker(), "stream")
        await tm.cancel_all()

    async def test_cancel_all(self) -> None:
        tm = TaskManager()
        cancelled: list[bool] = []

        async def _worker() -> None:
            try:
                await asyncio.sleep(9999)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        task = tm.spawn(_worker(), "stream")
        await asyncio.sleep(0)  # Let the task start.
        await tm.cancel_all()
        self.assertTrue(task.done())
        self.assertTrue(cancelled)
        self.assertFalse(tm.running("stream"))

    async def test_failed_task_is_logged(self) -> None:
        tm = TaskManager()

        async def _worker() -> None:
            raise ValueError("boom")

        with self.assertLogs("bubbletalk.task_manager", level="WARNING") as captured:
            task = tm.spawn(_worker(), "stream")
            with self.assertRaises(ValueError):
                await task
            await asyncio.sleep(0)
        self.assertTrue(any("task.exception" in line for line in captured.output))


if __name__ == "__main__":
    unittest.main()
