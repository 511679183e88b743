"""Background task that turns a model stream into session events."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Sequence
import logging
from typing import Protocol

from .events import Event, StreamChunk, StreamFailed, StreamFinished
from .exceptions import BubbleTalkError
from .models import Message

LOGGER = logging.getLogger(__name__)


class StreamingClient(Protocol):
    def stream_chat(
        self, history: list[Message], system_message: str | None = None
    ) -> AsyncIterator[str]: ...


class StreamAggregator:
    """Relay deltas from ``stream_chat`` to ``post`` in arrival order.

    The aggregator never touches session state; it only posts events, ending
    every run with exactly one ``StreamFinished`` or ``StreamFailed``.
    """

    def __init__(self, client: StreamingClient) -> None:
        self.client = client

    async def run(
        self,
        history: Sequence[Message],
        post: Callable[[Event], object],
        system_message: str = "",
    ) -> None:
        chunks = 0
        try:
            async for delta in self.client.stream_chat(list(history), system_message or None):
                chunks += 1
                post(StreamChunk(delta))
        except BubbleTalkError as exc:
            LOGGER.warning(
                "stream.failed",
                extra={"event": "stream.failed", "chunks": chunks, "error_type": type(exc).__name__},
            )
            post(StreamFailed(str(exc)))
            return
        LOGGER.info("stream.finished", extra={"event": "stream.finished", "chunks": chunks})
        post(StreamFinished())
