"""Write text to the system clipboard."""

from __future__ import annotations

from collections.abc import Callable
import logging

import pyperclip

LOGGER = logging.getLogger(__name__)


def copy_text(text: str, fallback: Callable[[str], None] | None = None) -> str | None:
    """Copy ``text`` and return an error description when the OS clipboard failed.

    ``fallback`` (typically the terminal's OSC 52 copy) still receives the
    text when the OS clipboard is unavailable.
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as exc:
        LOGGER.warning(
            "clipboard.write.failed",
            extra={"event": "clipboard.write.failed", "error": str(exc)},
        )
        if fallback is not None:
            fallback(text)
        return str(exc) or type(exc).__name__
    return None
