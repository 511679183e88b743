"""Closed sets of events consumed and commands emitted by ``ChatSession.update``.

Every input the session reacts to (keys, resize, mouse, prompt submission,
stream progress, timers, picker results) is one of the ``Event`` variants. The
session answers with ``Command`` values that the UI shell executes; blocking
work never happens inside ``update``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from .models import Message


# --- events -----------------------------------------------------------------


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class Resized:
    """Terminal size, plus the prompt area height once it has been measured."""

    width: int
    height: int
    input_height: int | None = None


@dataclass(frozen=True)
class MouseClicked:
    """A mouse release inside the transcript, in transcript-relative cells."""

    x: int
    y: int
    button: int = 1


@dataclass(frozen=True)
class MouseScrolled:
    lines: int


@dataclass(frozen=True)
class Submitted:
    text: str


@dataclass(frozen=True)
class StreamChunk:
    delta: str


@dataclass(frozen=True)
class StreamFinished:
    pass


@dataclass(frozen=True)
class StreamFailed:
    error: str


@dataclass(frozen=True)
class NotificationExpired:
    token: int


@dataclass(frozen=True)
class ImageSelected:
    path: str


@dataclass(frozen=True)
class ImagePickerCancelled:
    pass


@dataclass(frozen=True)
class ClipboardFailed:
    error: str


Event = Union[
    KeyPressed,
    Resized,
    MouseClicked,
    MouseScrolled,
    Submitted,
    StreamChunk,
    StreamFinished,
    StreamFailed,
    NotificationExpired,
    ImageSelected,
    ImagePickerCancelled,
    ClipboardFailed,
]


# --- commands ---------------------------------------------------------------


@dataclass(frozen=True)
class StartStream:
    """Spawn the background request for everything before the open reply."""

    history: tuple[Message, ...]
    system_message: str = ""


@dataclass(frozen=True)
class ScheduleTimer:
    delay: float
    event: Event


@dataclass(frozen=True)
class CopyToClipboard:
    text: str


@dataclass(frozen=True)
class SetInputEnabled:
    enabled: bool
    placeholder: str = ""


@dataclass(frozen=True)
class ClearInput:
    pass


@dataclass(frozen=True)
class ShowImagePicker:
    extensions: tuple[str, ...] = field(default=(".png", ".jpg", ".jpeg"))


@dataclass(frozen=True)
class HideImagePicker:
    pass


@dataclass(frozen=True)
class ShowHelp:
    pass


@dataclass(frozen=True)
class HideHelp:
    pass


@dataclass(frozen=True)
class Quit:
    pass


Command = Union[
    StartStream,
    ScheduleTimer,
    CopyToClipboard,
    SetInputEnabled,
    ClearInput,
    ShowImagePicker,
    HideImagePicker,
    ShowHelp,
    HideHelp,
    Quit,
]
