"""Tests for ChatClient request building, streaming, and error mapping."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path
import tempfile
import threading
import unittest
from unittest import mock

import httpx
from ollama import ResponseError

from bubbletalk.chat import ChatClient, read_image_bytes
from bubbletalk.exceptions import ModelConnectionError, ModelNotFoundError, StreamingError
from bubbletalk.models import Message, Role


async def _chunk_stream(chunks: list[dict]) -> AsyncGenerator[dict, None]:
    for chunk in chunks:
        yield chunk


class FakeClient:
    """Simple fake Ollama client for deterministic tests."""

    def __init__(
        self,
        chunks: list[dict] | None = None,
        error: Exception | None = None,
        capabilities: list[str] | None = None,
    ) -> None:
        self.chunks = chunks or []
        self.error = error
        self.capabilities = capabilities
        self.chat_calls: list[dict] = []
        self.generate_calls: list[dict] = []

    async def chat(self, model: str, messages: list[dict], stream: bool, **kwargs) -> AsyncGenerator[dict, None]:
        self.chat_calls.append({"model": model, "messages": list(messages), "stream": stream})
        if self.error is not None:
            raise self.error
        return _chunk_stream(self.chunks)

    async def generate(self, **kwargs) -> AsyncGenerator[dict, None]:
        self.generate_calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return _chunk_stream(self.chunks)

    async def show(self, model: str) -> dict:
        if self.error is not None:
            raise self.error
        return {"capabilities": self.capabilities}


def _client(fake: FakeClient) -> ChatClient:
    return ChatClient(host="http://localhost:11434", model="llava", client=fake)


class ChatClientTests(unittest.IsolatedAsyncioTestCase):
    """Validate streaming and request translation against a fake client."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

    async def _collect(self, stream) -> list[str]:  # noqa: ANN001
        return [chunk async for chunk in stream]

    async def test_stream_yields_content_deltas_in_order(self) -> None:
        fake = FakeClient(
            chunks=[
                {"message": {"content": "Hi"}},
                {"message": {"content": ""}},
                {"message": {"content": " there"}},
                {"message": {"content": None}, "done": True},
            ]
        )
        history = [Message(role=Role.USER, text="Hello")]
        chunks = await self._collect(_client(fake).stream_chat(history))
        self.assertEqual(chunks, ["Hi", " there"])
        self.assertTrue(fake.chat_calls[0]["stream"])
        self.assertEqual(fake.chat_calls[0]["model"], "llava")

    async def test_system_message_is_sent_first(self) -> None:
        fake = FakeClient()
        history = [Message(role=Role.USER, text="q"), Message(role=Role.ASSISTANT, text="a")]
        await self._collect(_client(fake).stream_chat(history, "Be kind."))
        sent = fake.chat_calls[0]["messages"]
        self.assertEqual(
            [(m["role"], m["content"]) for m in sent],
            [("system", "Be kind."), ("user", "q"), ("assistant", "a")],
        )

    async def test_blank_system_message_is_omitted(self) -> None:
        fake = FakeClient()
        await self._collect(_client(fake).stream_chat([Message(role=Role.USER, text="q")], "  "))
        self.assertEqual(fake.chat_calls[0]["messages"][0]["role"], "user")

    async def test_image_bytes_are_attached(self) -> None:
        image = Path(self._tmp.name) / "pic.png"
        image.write_bytes(b"\x89PNG fake")
        request = _client(FakeClient()).build_request(
            [
                Message(role=Role.USER, text="see", images=[str(image), str(image.with_name("gone.png"))]),
                Message(role=Role.USER, text="plain"),
            ]
        )
        self.assertEqual(request[0]["images"], [b"\x89PNG fake"])
        self.assertNotIn("images", request[1])

    async def test_image_files_are_read_off_the_event_loop_thread(self) -> None:
        image = Path(self._tmp.name) / "pic.png"
        image.write_bytes(b"\x89PNG fake")
        loop_thread = threading.get_ident()
        reader_threads: list[int] = []

        def _recording_reader(paths: list[str]) -> list[bytes]:
            reader_threads.append(threading.get_ident())
            return read_image_bytes(paths)

        fake = FakeClient()
        with mock.patch("bubbletalk.chat.read_image_bytes", side_effect=_recording_reader):
            history = [Message(role=Role.USER, text="see", images=[str(image)])]
            await self._collect(_client(fake).stream_chat(history))
            await self._collect(_client(fake).generate("see", [str(image)]))
        self.assertEqual(len(reader_threads), 2)
        self.assertNotIn(loop_thread, reader_threads)
        self.assertEqual(fake.chat_calls[0]["messages"][0]["images"], [b"\x89PNG fake"])
        self.assertEqual(fake.generate_calls[0]["images"], [b"\x89PNG fake"])

    async def test_connection_errors_are_mapped(self) -> None:
        fake = FakeClient(error=httpx.ConnectError("refused"))
        with self.assertRaises(ModelConnectionError):
            await self._collect(_client(fake).stream_chat([]))

    async def test_missing_model_is_mapped(self) -> None:
        fake = FakeClient(error=ResponseError("model 'llava' not found", 404))
        with self.assertRaises(ModelNotFoundError):
            await self._collect(_client(fake).stream_chat([]))

    async def test_other_errors_become_streaming_errors(self) -> None:
        fake = FakeClient(error=RuntimeError("boom"))
        with self.assertLogs("bubbletalk.chat", level="WARNING") as logs:
            with self.assertRaises(StreamingError):
                await self._collect(_client(fake).stream_chat([]))
        self.assertTrue(any("chat.request.failed" in line for line in logs.output))

    async def test_generate_streams_response_field(self) -> None:
        fake = FakeClient(chunks=[{"response": "4"}, {"response": "2"}, {"response": "", "done": True}])
        chunks = await self._collect(_client(fake).generate("  what is 6*7?  "))
        self.assertEqual(chunks, ["4", "2"])
        self.assertEqual(fake.generate_calls[0]["prompt"], "what is 6*7?")
        self.assertNotIn("images", fake.generate_calls[0])

    async def test_supports_vision(self) -> None:
        self.assertTrue(await _client(FakeClient(capabilities=["completion", "vision"])).supports_vision())
        self.assertFalse(await _client(FakeClient(capabilities=["completion"])).supports_vision())
        self.assertTrue(await _client(FakeClient(capabilities=None)).supports_vision())

    async def test_supports_vision_maps_errors(self) -> None:
        with self.assertRaises(ModelConnectionError):
            await _client(FakeClient(error=httpx.ConnectError("refused"))).supports_vision()


if __name__ == "__main__":
    unittest.main()
