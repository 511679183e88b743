"""Async Ollama client wrapper that streams chat and generate responses."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
import logging
from pathlib import Path
from typing import Any

import httpx
from ollama import AsyncClient, ResponseError

from .exceptions import (
    BubbleTalkError,
    ModelConnectionError,
    ModelNotFoundError,
    StreamingError,
)
from .models import Message, Role

LOGGER = logging.getLogger(__name__)


def read_image_bytes(paths: list[str]) -> list[bytes]:
    """Read attachment bytes after tilde expansion; unreadable files are skipped."""
    payload: list[bytes] = []
    for raw_path in paths:
        try:
            payload.append(Path(raw_path).expanduser().read_bytes())
        except OSError as exc:
            LOGGER.warning(
                "chat.image.unreadable",
                extra={"event": "chat.image.unreadable", "path": raw_path, "reason": str(exc)},
            )
    return payload


class ChatClient:
    """Thin stateless wrapper around ``ollama.AsyncClient`` for one model."""

    def __init__(
        self,
        host: str,
        model: str,
        timeout: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.host = host
        self.model = model
        self._client = client if client is not None else AsyncClient(host=host, timeout=timeout)

    @staticmethod
    def _extract_from_chunk(chunk: Any, field: str) -> Any:
        """Extract ``message.<field>`` (chat) or ``<field>`` (generate) from a chunk."""
        message_obj = getattr(chunk, "message", None)
        if message_obj is not None and not isinstance(chunk, dict):
            value = getattr(message_obj, field, None)
            if value is not None:
                return value
        if hasattr(chunk, "model_dump"):
            chunk = chunk.model_dump()
        if isinstance(chunk, dict):
            message = chunk.get("message")
            if isinstance(message, dict) and message.get(field) is not None:
                return message.get(field)
            return chunk.get(field)
        return getattr(chunk, field, None)

    def _map_exception(self, exc: Exception) -> BubbleTalkError:
        if isinstance(exc, BubbleTalkError):
            return exc
        if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError, ConnectionError)):
            return ModelConnectionError(f"Unable to connect to Ollama host {self.host}.")
        lower_message = str(exc).lower()
        status = getattr(exc, "status_code", None)
        if isinstance(exc, ResponseError) and status == 404:
            return ModelNotFoundError(f"Model {self.model!r} was not found on {self.host}.")
        if "model" in lower_message and "not found" in lower_message:
            return ModelNotFoundError(f"Model {self.model!r} was not found on {self.host}.")
        return StreamingError(f"Failed to stream response from Ollama at {self.host}: {exc}")

    def build_request(
        self, history: list[Message], system_message: str | None = None
    ) -> list[dict[str, Any]]:
        """Translate session history into Ollama chat messages."""
        request: list[dict[str, Any]] = []
        if system_message and system_message.strip():
            request.append({"role": Role.SYSTEM.value, "content": system_message})
        for message in history:
            entry: dict[str, Any] = {"role": message.role.value, "content": message.text}
            images = read_image_bytes(message.images)
            if images:
                entry["images"] = images
            request.append(entry)
        return request

    async def stream_chat(
        self, history: list[Message], system_message: str | None = None
    ) -> AsyncIterator[str]:
        """Yield assistant content deltas, in arrival order, for ``history``."""
        request = await asyncio.to_thread(self.build_request, history, system_message)
        LOGGER.info(
            "chat.request.start",
            extra={"event": "chat.request.start", "model": self.model, "messages": len(request)},
        )
        try:
            stream = await self._client.chat(model=self.model, messages=request, stream=True)
            async for chunk in stream:
                content = self._extract_from_chunk(chunk, "content")
                if isinstance(content, str) and content:
                    yield content
        except Exception as exc:
            mapped = self._map_exception(exc)
            LOGGER.warning(
                "chat.request.failed",
                extra={
                    "event": "chat.request.failed",
                    "model": self.model,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            raise mapped from exc
        LOGGER.info("chat.request.complete", extra={"event": "chat.request.complete"})

    async def generate(self, prompt: str, images: list[str] | None = None) -> AsyncIterator[str]:
        """Yield response deltas for a one-shot, history-free prompt."""
        kwargs: dict[str, Any] = {"model": self.model, "prompt": prompt.strip(), "stream": True}
        image_bytes = await asyncio.to_thread(read_image_bytes, images or [])
        if image_bytes:
            kwargs["images"] = image_bytes
        try:
            stream = await self._client.generate(**kwargs)
            async for chunk in stream:
                text = self._extract_from_chunk(chunk, "response")
                if isinstance(text, str) and text:
                    yield text
        except Exception as exc:
            raise self._map_exception(exc) from exc

    async def supports_vision(self) -> bool:
        """Return whether ``/api/show`` lists ``vision``; unknown counts as supported."""
        try:
            response = await self._client.show(self.model)
        except Exception as exc:
            raise self._map_exception(exc) from exc
        caps: Any = getattr(response, "capabilities", None)
        if caps is None and isinstance(response, dict):
            caps = response.get("capabilities")
        if not caps:
            LOGGER.info(
                "chat.model.capabilities.unknown",
                extra={"event": "chat.model.capabilities.unknown", "model": self.model},
            )
            return True
        return "vision" in {str(item).strip().lower() for item in caps}
