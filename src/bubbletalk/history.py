"""Ordered message log kept in step with its cache of rendered bubbles."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
import logging

from rich.text import Text

from .models import Message, Role
from .rendering.bubble import Bubble, BubbleRenderer
from .viewport import Region

LOGGER = logging.getLogger(__name__)


class MessageHistory:
    """Own the messages, the highlight and one cached bubble per visible message.

    System messages stay in ``messages`` but never get a bubble, so the cache
    is indexed by slot while highlight and hit-test ids use message indexes.
    At most one assistant message is open for streaming at a time.
    """

    def __init__(
        self,
        renderer: BubbleRenderer,
        model_name: str,
        messages: Iterable[Message] | None = None,
        width: int = 80,
        image_height: int = 20,
    ) -> None:
        self.renderer = renderer
        self.model_name = model_name
        self.messages: list[Message] = list(messages or [])
        self.width = max(1, width)
        self.image_height = max(1, image_height)
        self.highlighted = self._last_visible_index()
        self.open_index: int | None = None
        self.cache: list[Bubble] = []
        self._indices: list[int] = []
        self._slots: dict[int, int] = {}
        self.rerender_all()

    def __len__(self) -> int:
        return len(self.messages)

    def _last_visible_index(self) -> int:
        for index in range(len(self.messages) - 1, -1, -1):
            if self.messages[index].role is not Role.SYSTEM:
                return index
        return 0

    @property
    def streaming(self) -> bool:
        return self.open_index is not None

    def _render(self, index: int) -> Bubble:
        return self.renderer.render(
            self.messages[index],
            width=self.width,
            selected=index == self.highlighted,
            zone_id=index,
            model_name=self.model_name,
            streaming=index == self.open_index,
            image_height=self.image_height,
        )

    def _refresh(self, index: int) -> None:
        slot = self._slots.get(index)
        if slot is not None:
            self.cache[slot] = self._render(index)

    def _add_slot(self, index: int) -> None:
        self._slots[index] = len(self.cache)
        self._indices.append(index)
        self.cache.append(self._render(index))

    def rerender_all(self, width: int | None = None, image_height: int | None = None) -> None:
        """Rebuild every bubble, optionally at a new size."""
        if width is not None:
            self.width = max(1, width)
        if image_height is not None:
            self.image_height = max(1, image_height)
        self.cache = []
        self._indices = []
        self._slots = {}
        for index, message in enumerate(self.messages):
            if message.role is not Role.SYSTEM:
                self._add_slot(index)

    def append_message(
        self,
        role: Role,
        text: str = "",
        images: Iterable[str] | None = None,
        *,
        open_stream: bool = False,
    ) -> Message:
        """Append a message, highlight it, and render its bubble."""
        if open_stream and self.open_index is not None:
            self.close_stream()
        message = Message(role=role, text=text, images=list(images or []))
        previous = self.highlighted if self.messages else None
        self.messages.append(message)
        index = len(self.messages) - 1
        if open_stream:
            self.open_index = index
        if role is not Role.SYSTEM:
            self.highlighted = index
            if previous is not None:
                self._refresh(previous)
            self._add_slot(index)
        return message

    def stream_append(self, delta: str) -> bool:
        """Append ``delta`` to the open message and re-render only its bubble."""
        if self.open_index is None:
            LOGGER.debug("history.stream.no_open_message", extra={"event": "history.stream.no_open_message"})
            return False
        self.messages[self.open_index].text += delta
        self._refresh(self.open_index)
        return True

    def close_stream(self) -> Message | None:
        index = self.open_index
        if index is None:
            return None
        self.open_index = None
        self._refresh(index)
        return self.messages[index]

    def select(self, index: int) -> bool:
        if not 0 <= index < len(self.messages) or index == self.highlighted:
            return False
        if self.messages[index].role is Role.SYSTEM:
            return False
        previous = self.highlighted
        self.highlighted = index
        self._refresh(previous)
        self._refresh(index)
        return True

    def navigate(self, direction: int) -> bool:
        """Move the highlight one message back or forward; stops at either end."""
        if not self.messages or direction == 0:
            return False
        step = 1 if direction > 0 else -1
        target = self.highlighted + step
        while 0 <= target < len(self.messages) and self.messages[target].role is Role.SYSTEM:
            target += step
        if not 0 <= target < len(self.messages):
            return False
        return self.select(target)

    def highlighted_message(self) -> Message | None:
        if not self.messages:
            return None
        return self.messages[self.highlighted]

    def last_response(self) -> Message | None:
        for message in reversed(self.messages):
            if message.role is Role.ASSISTANT and message.text:
                return message
        return None

    def offset_of(self, index: int) -> int:
        """Transcript line where the bubble of message ``index`` starts."""
        offset = 0
        for slot, message_index in enumerate(self._indices):
            if message_index >= index:
                break
            offset += self.cache[slot].height
            if self.messages[message_index].role is Role.ASSISTANT:
                offset += 1
        return offset

    def compose(self, now: datetime | None = None) -> tuple[list[Text], list[Region]]:
        """Stack every bubble, with reply ages under assistant bubbles."""
        lines: list[Text] = []
        regions: list[Region] = []
        for slot, bubble in enumerate(self.cache):
            index = self._indices[slot]
            left = bubble.left_offset(self.width)
            top = len(lines)
            for line in bubble.lines:
                if left:
                    padded = Text(" " * left, no_wrap=True, overflow="crop")
                    padded.append_text(line)
                    line = padded
                lines.append(line)
            regions.append(Region(top, len(lines), left, left + bubble.width, index))
            message = self.messages[index]
            if message.role is Role.ASSISTANT:
                lines.append(self.renderer.timestamp_line(message, now))
        return lines, regions
