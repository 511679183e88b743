"""Scrollable window over the rendered transcript plus bubble hit regions."""

from __future__ import annotations

from dataclasses import dataclass

from rich.text import Text


@dataclass(frozen=True)
class Region:
    """Cells occupied by one bubble in transcript coordinates (end-exclusive)."""

    top: int
    bottom: int
    left: int
    right: int
    index: int

    def contains(self, x: int, y: int) -> bool:
        return self.top <= y < self.bottom and self.left <= x < self.right


class Viewport:
    """Track the visible slice of the transcript and the scroll offset."""

    def __init__(self, width: int = 80, height: int = 20) -> None:
        self.width = max(1, width)
        self.height = max(1, height)
        self.y_offset = 0
        self.lines: list[Text] = []
        self.regions: list[Region] = []

    @property
    def max_offset(self) -> int:
        return max(0, len(self.lines) - self.height)

    @property
    def at_bottom(self) -> bool:
        return self.y_offset >= self.max_offset

    def set_size(self, width: int, height: int) -> None:
        self.width = max(1, width)
        self.height = max(1, height)
        self.set_y_offset(self.y_offset)

    def set_content(self, lines: list[Text], regions: list[Region] | None = None) -> None:
        """Replace the content; the hit map is rebuilt with it on every pass."""
        self.lines = lines
        self.regions = list(regions or [])
        self.set_y_offset(self.y_offset)

    def set_y_offset(self, offset: int) -> None:
        self.y_offset = min(max(0, offset), self.max_offset)

    def goto_bottom(self) -> None:
        self.y_offset = self.max_offset

    def line_up(self, count: int = 1) -> None:
        self.set_y_offset(self.y_offset - count)

    def line_down(self, count: int = 1) -> None:
        self.set_y_offset(self.y_offset + count)

    def half_view_up(self) -> None:
        self.line_up(max(1, self.height // 2))

    def half_view_down(self) -> None:
        self.line_down(max(1, self.height // 2))

    def visible_lines(self) -> list[Text]:
        return self.lines[self.y_offset : self.y_offset + self.height]

    def hit_test(self, x: int, y: int) -> int | None:
        """Map a click at viewport cell ``(x, y)`` to a message index."""
        if not 0 <= y < self.height:
            return None
        content_y = y + self.y_offset
        for region in self.regions:
            if region.contains(x, content_y):
                return region.index
        return None
