"""Chat message and session data types."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any
from uuid import uuid4

LOGGER = logging.getLogger(__name__)


class Role(str, Enum):
    """Message roles as understood by the Ollama chat API."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """One entry of a chat transcript."""

    role: Role
    text: str = ""
    images: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)

    def to_record(self) -> dict[str, Any]:
        """Return a plain record suitable for serialization."""
        return {
            "role": self.role.value,
            "text": self.text,
            "images": list(self.images),
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Message:
        created_at = record.get("created_at")
        if not isinstance(created_at, datetime):
            raise ValueError("created_at must be a datetime.")
        images = record.get("images") or []
        if not isinstance(images, list) or not all(isinstance(i, str) for i in images):
            raise ValueError("images must be a list of paths.")
        text = record.get("text", "")
        if not isinstance(text, str):
            raise ValueError("text must be a string.")
        return cls(
            role=Role(record.get("role")),
            text=text,
            images=list(images),
            created_at=created_at,
        )


def generate_session_id(exists: Callable[[str], bool]) -> str:
    """Return a fresh uuid4 string that ``exists`` does not already know."""
    while True:
        candidate = str(uuid4())
        if not exists(candidate):
            return candidate
        LOGGER.warning(
            "session.id.collision",
            extra={"event": "session.id.collision", "session_id": candidate},
        )


@dataclass
class Session:
    """A conversation descriptor plus its in-memory history."""

    id: str
    title: str
    model_name: str
    system_message: str = ""
    is_multimodal: bool = False
    is_anonymous: bool = False
    updated_at: datetime = field(default_factory=utc_now)
    history: list[Message] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        *,
        title: str,
        model_name: str,
        system_message: str = "",
        is_multimodal: bool = False,
        is_anonymous: bool = False,
        exists: Callable[[str], bool] = lambda _id: False,
    ) -> Session:
        """Build a fresh session, regenerating the id on index collisions."""
        normalized_title = title.strip()
        if not normalized_title:
            raise ValueError("Chat title cannot be empty.")
        return cls(
            id=generate_session_id(exists),
            title=normalized_title,
            model_name=model_name,
            system_message=system_message.strip(),
            is_multimodal=is_multimodal,
            is_anonymous=is_anonymous,
        )

    def descriptor(self) -> dict[str, Any]:
        """Return the index row for this session (history excluded)."""
        return {
            "id": self.id,
            "title": self.title,
            "model_name": self.model_name,
            "system_message": self.system_message,
            "is_multimodal": self.is_multimodal,
            "is_anonymous": self.is_anonymous,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_descriptor(cls, row: dict[str, Any]) -> Session:
        return cls(
            id=str(row["id"]),
            title=str(row["title"]),
            model_name=str(row["model_name"]),
            system_message=str(row.get("system_message", "")),
            is_multimodal=bool(row.get("is_multimodal", False)),
            is_anonymous=bool(row.get("is_anonymous", False)),
            updated_at=datetime.fromisoformat(str(row["updated_at"])),
        )
