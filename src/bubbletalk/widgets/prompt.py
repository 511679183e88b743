"""Prompt area: attachment chip, input field, help hint and notification."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from textual import events
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.message import Message
from textual.widgets import Input, Label, Static


class PromptBox(Vertical):
    """Input field titled with the model name plus the status lines around it."""

    DEFAULT_CSS = """
    PromptBox {
        height: auto;
    }
    PromptBox #attachment_chip {
        height: auto;
        padding: 0 1;
        color: $accent;
    }
    PromptBox #attachment_chip.hidden {
        display: none;
    }
    PromptBox #prompt_input {
        width: 1fr;
        border: round $primary;
    }
    PromptBox #help_hint {
        height: 1;
        padding: 0 1;
    }
    """

    class HeightChanged(Message):
        """Posted when the rendered height of the prompt area changes."""

        def __init__(self, height: int) -> None:
            self.height = height
            super().__init__()

    def __init__(
        self,
        model_name: str,
        help_key: str = "ctrl+h",
        notification_color: str = "#ff9900",
        muted_color: str = "#aaaaaa",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self._model_name = model_name
        self._help_key = help_key
        self._notification_color = notification_color
        self._muted_color = muted_color
        self._last_height: int | None = None

    def compose(self) -> ComposeResult:
        yield Label("", id="attachment_chip", classes="hidden")
        prompt = Input(placeholder="Send a message...", id="prompt_input")
        prompt.border_title = f"Chat with {self._model_name}"
        yield prompt
        yield Static(f"{self._help_key} help", id="help_hint")

    def on_mount(self) -> None:
        self.query_one("#help_hint", Static).styles.color = self._muted_color

    def on_resize(self, event: events.Resize) -> None:
        height = self.outer_size.height
        if height != self._last_height:
            self._last_height = height
            self.post_message(self.HeightChanged(height))

    @property
    def input(self) -> Input:
        return self.query_one("#prompt_input", Input)

    def set_enabled(self, enabled: bool, placeholder: str = "") -> None:
        prompt = self.input
        prompt.disabled = not enabled
        if placeholder:
            prompt.placeholder = placeholder
        if enabled:
            prompt.focus()

    def clear(self) -> None:
        self.input.value = ""

    def show_attachment(self, path: str) -> None:
        chip = self.query_one("#attachment_chip", Label)
        if path:
            chip.update(f"Image: {Path(path).name}")
            chip.remove_class("hidden")
        else:
            chip.update("")
            chip.add_class("hidden")

    def show_notification(self, text: str | None) -> None:
        hint = self.query_one("#help_hint", Static)
        if text:
            hint.update(text)
            hint.styles.color = self._notification_color
        else:
            hint.update(f"{self._help_key} help")
            hint.styles.color = self._muted_color
