"""Lay out one chat message as a bordered, labelled bubble."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import io
import logging
from typing import Literal

from rich import box
from rich.cells import cell_len
from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.segment import Segment
from rich.style import Style
from rich.text import Text

from ..models import Message, Role
from .image import ImageRenderer

LOGGER = logging.getLogger(__name__)

FENCE = "```"
LEFT_HALF_CIRCLE = ""
RIGHT_HALF_CIRCLE = ""
BLACK = "#000000"

TEXT_PADDING = (0, 2, 0, 0)
IMAGE_PADDING = (1, 2, 0, 2)
MIN_BUBBLE_WIDTH = 8


@dataclass(frozen=True)
class BubbleTheme:
    border_color: str = "#8839ef"
    selected_border_color: str = "#00baba"
    user_label_color: str = "#8839ef"
    assistant_label_color: str = "#8839ef"
    system_label_color: str = "#565f89"
    text_color: str = "#FFFDF5"
    muted_color: str = "#aaaaaa"
    code_theme: str = "monokai"
    wide_threshold: int = 80
    narrow_margin: int = 6

    @classmethod
    def from_config(cls, ui: dict[str, object]) -> BubbleTheme:
        fields = cls.__dataclass_fields__
        return cls(**{key: value for key, value in ui.items() if key in fields})  # type: ignore[arg-type]

    def label_color(self, role: Role) -> str:
        if role is Role.USER:
            return self.user_label_color
        if role is Role.ASSISTANT:
            return self.assistant_label_color
        return self.system_label_color


@dataclass
class Bubble:
    """A rendered message: styled lines of equal cell width plus placement."""

    lines: list[Text]
    width: int
    zone_id: int
    align: Literal["left", "right"]

    @property
    def height(self) -> int:
        return len(self.lines)

    def left_offset(self, content_width: int) -> int:
        if self.align == "right":
            return max(0, content_width - self.width)
        return 0


def fix_markdown(text: str) -> str:
    """Drop the last dangling code fence of a partially streamed reply."""
    if text.count(FENCE) % 2 == 0:
        return text
    lines = text.split("\n")
    for index in range(len(lines) - 1, -1, -1):
        if lines[index].startswith(FENCE):
            del lines[index]
            break
    return "\n".join(lines)


def relative_time(then: datetime, now: datetime | None = None) -> str:
    """Humanized distance between ``then`` and ``now``, e.g. ``3 minutes ago``."""
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    seconds = int((current - then).total_seconds())
    suffix = "ago" if seconds >= 0 else "from now"
    seconds = abs(seconds)
    if seconds < 1:
        return "now"
    for unit, size in (
        ("year", 365 * 86400),
        ("month", 30 * 86400),
        ("week", 7 * 86400),
        ("day", 86400),
        ("hour", 3600),
        ("minute", 60),
        ("second", 1),
    ):
        if seconds >= size:
            count = seconds // size
            plural = "" if count == 1 else "s"
            return f"{count} {unit}{plural} {suffix}"
    return "now"


def segments_to_text(line: list[Segment]) -> Text:
    text = Text(no_wrap=True, overflow="crop")
    for segment in line:
        if segment.control:
            continue
        text.append(segment.text, segment.style)
    return text


class BubbleRenderer:
    """Turn messages into bubbles for a given terminal width."""

    def __init__(
        self,
        theme: BubbleTheme | None = None,
        image_renderer: ImageRenderer | None = None,
    ) -> None:
        self.theme = theme or BubbleTheme()
        self.image_renderer = image_renderer or ImageRenderer()
        self._console = Console(
            file=io.StringIO(),
            width=80,
            force_terminal=True,
            color_system="truecolor",
            legacy_windows=False,
        )

    def target_width(self, width: int) -> int:
        if width >= self.theme.wide_threshold:
            return max(1, width // 2)
        return max(1, width - self.theme.narrow_margin)

    def _render_lines(self, renderable: RenderableType, width: int) -> list[Text]:
        options = self._console.options.update(width=max(1, width))
        return [
            segments_to_text(line)
            for line in self._console.render_lines(renderable, options, pad=False)
        ]

    def render_body(self, text: str, width: int) -> list[Text]:
        """Render markdown at ``width``; plain wrapped text when that fails."""
        try:
            lines = self._render_lines(Markdown(text, code_theme=self.theme.code_theme), width)
        except Exception as exc:  # noqa: BLE001 - formatting must never break the feed.
            LOGGER.warning(
                "bubble.markdown_failed",
                extra={"event": "bubble.markdown_failed", "reason": str(exc)},
            )
            lines = self._render_lines(Text(text), width)
        for line in lines:
            line.rstrip()
        while lines and not lines[-1].plain.strip():
            lines.pop()
        return lines

    def label(self, title: str, role: Role, selected: bool) -> Text:
        if selected:
            background = self.theme.selected_border_color
            label_style = Style(color=BLACK, bgcolor=background, bold=True)
        else:
            background = self.theme.label_color(role)
            label_style = Style(bgcolor=background, bold=True)
        edge = Style(color=background)
        return Text.assemble(
            (LEFT_HALF_CIRCLE, edge),
            (f" {title} ", label_style),
            (RIGHT_HALF_CIRCLE, edge),
        )

    def render(
        self,
        message: Message,
        *,
        width: int,
        selected: bool = False,
        zone_id: int = 0,
        model_name: str = "assistant",
        streaming: bool = False,
        image_height: int = 20,
    ) -> Bubble:
        """Render ``message`` as a bubble no wider than ``width`` cells."""
        width = max(1, width)
        align: Literal["left", "right"] = "right"
        title = message.role.value
        body = message.text
        if message.role is Role.ASSISTANT:
            align = "left"
            title = model_name
            if not body:
                body = f"_Waiting for {model_name}..._"
            if streaming:
                body = fix_markdown(body)
        elif message.role is Role.SYSTEM:
            align = "left"

        target = self.target_width(width)
        natural = max((cell_len(line) for line in body.split("\n")), default=0)
        content = self.render_body(body, min(target, natural + 4))

        padding = TEXT_PADDING
        if message.images:
            padding = IMAGE_PADDING
            stacked: list[Text] = []
            for path in message.images:
                stacked.extend(
                    self.image_renderer.render(
                        path,
                        max_width=target,
                        max_height=max(1, image_height - len(content) - 2),
                    )
                )
                stacked.append(Text(""))
            content = stacked + content

        content_width = max((line.cell_len for line in content), default=0)
        if message.role is Role.USER and (
            content_width < cell_len(title) + 4 or len(content) <= 1
        ):
            for line in content:
                line.justify = "center"

        horizontal = padding[1] + padding[3] + 2
        label = self.label(title, message.role, selected)
        upper = min(target + horizontal, width)
        bubble_width = max(label.cell_len + 4, content_width + horizontal)
        bubble_width = max(1, min(bubble_width, upper))

        if bubble_width < MIN_BUBBLE_WIDTH:
            # Too narrow for a border; show the bare body.
            lines = [line.copy() for line in content] or [Text("")]
            for line in lines:
                line.no_wrap = True
                line.truncate(bubble_width, overflow="crop")
            return Bubble(lines=lines, width=bubble_width, zone_id=zone_id, align=align)

        border = self.theme.selected_border_color if selected else self.theme.border_color
        panel = Panel(
            Group(*content) if content else Text(""),
            box=box.ROUNDED,
            title=label,
            title_align="center",
            border_style=Style(color=border),
            style=Style(color=self.theme.text_color),
            padding=padding,
            width=bubble_width,
        )
        lines = self._render_lines(panel, bubble_width)
        for line in lines:
            line.truncate(width, overflow="crop")
        return Bubble(
            lines=lines,
            width=min(bubble_width, width),
            zone_id=zone_id,
            align=align,
        )

    def timestamp_line(self, message: Message, now: datetime | None = None) -> Text:
        return Text(
            f" {relative_time(message.created_at, now)}",
            style=Style(color=self.theme.muted_color),
            no_wrap=True,
            overflow="crop",
        )
