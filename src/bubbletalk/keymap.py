"""Key-to-action mapping for the chat session."""

from __future__ import annotations

from enum import Enum
from typing import Any


class KeyAction(str, Enum):
    LINE_UP = "line_up"
    LINE_DOWN = "line_down"
    HALF_PAGE_UP = "half_page_up"
    HALF_PAGE_DOWN = "half_page_down"
    HIGHLIGHT_PREVIOUS = "highlight_previous"
    HIGHLIGHT_NEXT = "highlight_next"
    COPY_HIGHLIGHTED = "copy_highlighted"
    COPY_LAST_RESPONSE = "copy_last_response"
    TOGGLE_IMAGE_PICKER = "toggle_image_picker"
    REMOVE_ATTACHMENT = "remove_attachment"
    TOGGLE_HELP = "toggle_help"
    QUIT = "quit"


DEFAULT_KEYS: dict[KeyAction, tuple[str, ...]] = {
    KeyAction.LINE_UP: ("ctrl+up",),
    KeyAction.LINE_DOWN: ("ctrl+down",),
    KeyAction.HALF_PAGE_UP: ("ctrl+u",),
    KeyAction.HALF_PAGE_DOWN: ("ctrl+d",),
    KeyAction.HIGHLIGHT_PREVIOUS: ("ctrl+p",),
    KeyAction.HIGHLIGHT_NEXT: ("ctrl+n",),
    KeyAction.COPY_HIGHLIGHTED: ("alt+y",),
    KeyAction.COPY_LAST_RESPONSE: ("ctrl+y",),
    KeyAction.TOGGLE_IMAGE_PICKER: ("ctrl+o",),
    KeyAction.REMOVE_ATTACHMENT: ("ctrl+x",),
    KeyAction.TOGGLE_HELP: ("ctrl+h",),
    KeyAction.QUIT: ("ctrl+c", "escape"),
}

DESCRIPTIONS: dict[KeyAction, str] = {
    KeyAction.LINE_UP: "Move view up",
    KeyAction.LINE_DOWN: "Move view down",
    KeyAction.HALF_PAGE_UP: "Half page up",
    KeyAction.HALF_PAGE_DOWN: "Half page down",
    KeyAction.HIGHLIGHT_PREVIOUS: "Previous message",
    KeyAction.HIGHLIGHT_NEXT: "Next message",
    KeyAction.COPY_HIGHLIGHTED: "Copy highlighted message",
    KeyAction.COPY_LAST_RESPONSE: "Copy last response",
    KeyAction.TOGGLE_IMAGE_PICKER: "Toggle image picker",
    KeyAction.REMOVE_ATTACHMENT: "Remove attachment",
    KeyAction.TOGGLE_HELP: "Toggle help",
    KeyAction.QUIT: "Exit chat",
}

# Actions still honoured while a reply is streaming.
STREAMING_ACTIONS = frozenset(
    {
        KeyAction.LINE_UP,
        KeyAction.LINE_DOWN,
        KeyAction.HALF_PAGE_UP,
        KeyAction.HALF_PAGE_DOWN,
        KeyAction.HIGHLIGHT_PREVIOUS,
        KeyAction.HIGHLIGHT_NEXT,
        KeyAction.COPY_HIGHLIGHTED,
        KeyAction.COPY_LAST_RESPONSE,
        KeyAction.TOGGLE_HELP,
        KeyAction.QUIT,
    }
)

_HELP_COLUMNS: tuple[tuple[KeyAction, ...], tuple[KeyAction, ...]] = (
    (
        KeyAction.LINE_UP,
        KeyAction.LINE_DOWN,
        KeyAction.HALF_PAGE_UP,
        KeyAction.HALF_PAGE_DOWN,
        KeyAction.COPY_LAST_RESPONSE,
        KeyAction.TOGGLE_HELP,
    ),
    (
        KeyAction.HIGHLIGHT_PREVIOUS,
        KeyAction.HIGHLIGHT_NEXT,
        KeyAction.COPY_HIGHLIGHTED,
        KeyAction.TOGGLE_IMAGE_PICKER,
        KeyAction.REMOVE_ATTACHMENT,
        KeyAction.QUIT,
    ),
)


def display_key(key: str) -> str:
    return key.replace("up", "↑").replace("down", "↓") if key.startswith("ctrl+") else key


class KeyMap:
    """Resolve key names to actions; later bindings never shadow earlier ones."""

    def __init__(self, bindings: dict[KeyAction, tuple[str, ...]] | None = None) -> None:
        self.bindings = dict(DEFAULT_KEYS if bindings is None else bindings)
        self._lookup: dict[str, KeyAction] = {}
        for action, keys in self.bindings.items():
            for key in keys:
                self._lookup.setdefault(key.lower(), action)

    @classmethod
    def from_config(cls, keybinds: dict[str, Any]) -> KeyMap:
        bindings = dict(DEFAULT_KEYS)
        for action in KeyAction:
            keys = keybinds.get(action.value)
            if isinstance(keys, str):
                keys = [keys]
            if isinstance(keys, list) and keys:
                bindings[action] = tuple(str(key).strip().lower() for key in keys)
        return cls(bindings)

    def resolve(self, key: str) -> KeyAction | None:
        return self._lookup.get(key.lower())

    def help_rows(self, multimodal: bool) -> list[list[tuple[str, str]]]:
        """Two columns of ``(keys, description)`` for the help overlay."""
        columns: list[list[tuple[str, str]]] = []
        for column in _HELP_COLUMNS:
            rows: list[tuple[str, str]] = []
            for action in column:
                if action is KeyAction.TOGGLE_IMAGE_PICKER and not multimodal:
                    continue
                keys = " / ".join(display_key(key) for key in self.bindings[action])
                rows.append((keys, DESCRIPTIONS[action]))
            columns.append(rows)
        return columns

    def first_key(self, action: KeyAction) -> str:
        return self.bindings[action][0]
