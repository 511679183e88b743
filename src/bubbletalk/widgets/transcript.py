"""Transcript widget that paints the visible viewport lines."""

from __future__ import annotations

from rich.console import Group
from rich.text import Text
from textual import events
from textual.message import Message
from textual.widgets import Static

WHEEL_LINES = 3


class TranscriptView(Static):
    """Show pre-rendered transcript lines and report clicks and wheel scrolls.

    Scrolling is owned by the chat session, so this widget never scrolls
    itself; it only redraws the slice it is handed.
    """

    DEFAULT_CSS = """
    TranscriptView {
        height: 1fr;
        border: round $primary;
        padding: 0;
    }
    """

    class Clicked(Message):
        """Posted on a mouse click, in content cells relative to the transcript."""

        def __init__(self, x: int, y: int, button: int) -> None:
            self.x = x
            self.y = y
            self.button = button
            super().__init__()

    class Scrolled(Message):
        def __init__(self, lines: int) -> None:
            self.lines = lines
            super().__init__()

    def show_lines(self, lines: list[Text]) -> None:
        self.update(Group(*lines))

    def on_click(self, event: events.Click) -> None:
        event.stop()
        offset = event.get_content_offset(self)
        if offset is None:
            return  # on the border
        self.post_message(self.Clicked(offset.x, offset.y, event.button))

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        event.stop()
        self.post_message(self.Scrolled(-WHEEL_LINES))

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        event.stop()
        self.post_message(self.Scrolled(WHEEL_LINES))
