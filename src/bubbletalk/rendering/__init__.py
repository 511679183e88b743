"""Message bubble and image attachment rendering."""

from .bubble import Bubble, BubbleRenderer, BubbleTheme, fix_markdown, relative_time
from .image import ImageRenderer, fit_cells, pick_glyph

__all__ = [
    "Bubble",
    "BubbleRenderer",
    "BubbleTheme",
    "ImageRenderer",
    "fix_markdown",
    "fit_cells",
    "pick_glyph",
    "relative_time",
]
