"""Render image attachments as terminal cells.

Each pixel of the resized image becomes a two-column cell, which is close to
square on most terminals; ``cell_aspect`` corrects what is left of the
difference. Rows are independent, so they are painted on a thread pool, but
``render`` only returns once the whole picture is assembled.
"""

from __future__ import annotations

from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
import logging
import os
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from rich.color import Color
from rich.style import Style
from rich.text import Text

LOGGER = logging.getLogger(__name__)

FAILED_TO_LOAD = "Failed to load image"
BLANK_CELL = "  "

# Approximate ink coverage of each glyph, spanning block, braille and
# geometric shapes. The glyph whose coverage is closest to a pixel's tonal
# density is drawn in that pixel's colour.
GLYPH_WEIGHTS: dict[str, float] = {
    "⠁": 0.08,
    "⠃": 0.16,
    "⠇": 0.24,
    "⠏": 0.32,
    "⠟": 0.4,
    "⠿": 0.48,
    "⣿": 0.62,
    "▁": 0.12,
    "▂": 0.25,
    "▃": 0.37,
    "▄": 0.5,
    "▅": 0.62,
    "▆": 0.75,
    "▇": 0.87,
    "█": 1.0,
    "░": 0.28,
    "▒": 0.55,
    "▓": 0.8,
    "○": 0.2,
    "◔": 0.35,
    "◑": 0.5,
    "◕": 0.7,
    "◉": 0.78,
    "●": 0.85,
}

_GLYPH_RAMP: tuple[tuple[float, str], ...] = tuple(
    sorted((weight, glyph) for glyph, weight in GLYPH_WEIGHTS.items())
)


def expand_path(path: str) -> Path:
    return Path(path).expanduser()


def pick_glyph(density: float) -> str:
    """Return the glyph whose coverage is nearest to ``density`` (0..1)."""
    best_weight, best_glyph = _GLYPH_RAMP[0]
    for weight, glyph in _GLYPH_RAMP:
        if abs(weight - density) < abs(best_weight - density):
            best_weight, best_glyph = weight, glyph
    return best_glyph


def fit_cells(
    image_width: int,
    image_height: int,
    max_width: int,
    max_height: int,
    cell_aspect: float = 1.15,
) -> tuple[int, int]:
    """Return ``(columns, rows)`` in pixels, each pixel two terminal columns wide.

    Fits to the available height first and falls back to fitting the width
    when the height fit would overflow it.
    """
    if image_width <= 0 or image_height <= 0:
        return 0, 0
    aspect = image_width * cell_aspect / image_height
    max_columns = max(1, max_width // 2)
    rows = max(1, max_height)
    columns = max(1, round(rows * aspect))
    if columns > max_columns:
        columns = max_columns
        rows = max(1, round(columns / aspect))
    return columns, rows


class ImageRenderer:
    """Decode, resize and paint image files into lines of styled cells."""

    def __init__(
        self,
        cell_aspect: float = 1.15,
        mode: str = "color",
        max_workers: int | None = None,
        cache_size: int = 32,
    ) -> None:
        self.cell_aspect = cell_aspect
        self.mode = mode
        self.max_workers = max_workers or os.cpu_count() or 1
        self._cache: OrderedDict[tuple[object, ...], list[Text]] = OrderedDict()
        self._cache_size = cache_size

    def render(self, path: str, max_width: int, max_height: int) -> list[Text]:
        """Return the image as lines fitting ``max_width`` x ``max_height`` cells."""
        target = expand_path(path)
        try:
            stamp = target.stat().st_mtime_ns
        except OSError:
            stamp = None
        key = (str(target), stamp, max_width, max_height, self.mode, self.cell_aspect)
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return [line.copy() for line in cached]

        try:
            with Image.open(target) as source:
                source.load()
                image = source.convert("RGBA")
        except (OSError, UnidentifiedImageError, Image.DecompressionBombError) as exc:
            LOGGER.warning(
                "image.load_failed",
                extra={"event": "image.load_failed", "path": str(target), "reason": str(exc)},
            )
            return [Text(FAILED_TO_LOAD)]

        columns, rows = fit_cells(
            image.width, image.height, max_width, max_height, self.cell_aspect
        )
        if columns == 0:
            return [Text(FAILED_TO_LOAD)]
        resized = image.resize((columns, rows), Image.Resampling.NEAREST)
        access = resized.load()
        pixels = [access[x, y] for y in range(rows) for x in range(columns)]

        def paint_row(y: int) -> Text:
            row = pixels[y * columns : (y + 1) * columns]
            return self._paint(row)

        if rows > 1 and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                lines = list(pool.map(paint_row, range(rows)))
        else:
            lines = [paint_row(y) for y in range(rows)]

        self._cache[key] = lines
        if len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)
        return [line.copy() for line in lines]

    def _paint(self, row: list[tuple[int, int, int, int]]) -> Text:
        line = Text(no_wrap=True, overflow="crop")
        for r, g, b, a in row:
            if a == 0:
                line.append(BLANK_CELL)
                continue
            color = Color.from_rgb(r, g, b)
            if self.mode == "glyph":
                density = (0.2126 * r + 0.7152 * g + 0.0722 * b) / 255 * (a / 255)
                line.append(pick_glyph(density) * 2, Style(color=color))
            else:
                line.append(BLANK_CELL, Style(bgcolor=color))
        return line
