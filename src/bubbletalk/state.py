"""Chat session modes and the view flags they are derived from."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Mode(str, Enum):
    """What the session is doing right now."""

    COMPOSING = "COMPOSING"
    STREAMING = "STREAMING"
    PICKING_IMAGE = "PICKING_IMAGE"
    HELP_OVERLAY = "HELP_OVERLAY"
    TERMINAL = "TERMINAL"


@dataclass
class Notification:
    text: str
    token: int


@dataclass
class ViewState:
    """Flags behind the current mode.

    Overlays stack on top of the streaming flag instead of replacing it, so
    closing help lands back in whatever mode was active when it opened.
    """

    width: int = 80
    height: int = 24
    streaming: bool = False
    picking_image: bool = False
    help_visible: bool = False
    quit_requested: bool = False
    attached_image_path: str = ""
    notification: Notification | None = None

    @property
    def mode(self) -> Mode:
        if self.quit_requested:
            return Mode.TERMINAL
        if self.help_visible:
            return Mode.HELP_OVERLAY
        if self.picking_image:
            return Mode.PICKING_IMAGE
        if self.streaming:
            return Mode.STREAMING
        return Mode.COMPOSING
