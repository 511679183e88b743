"""Textual application shell around a ``ChatSession``."""

from __future__ import annotations

import logging
from typing import Any

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.message import Message as TextualMessage
from textual.timer import Timer
from textual.widgets import Input

from .chat import ChatClient
from .clipboard import copy_text
from .config import load_config
from .events import (
    ClearInput,
    ClipboardFailed,
    Command,
    CopyToClipboard,
    Event,
    HideHelp,
    HideImagePicker,
    ImagePickerCancelled,
    ImageSelected,
    KeyPressed,
    MouseClicked,
    MouseScrolled,
    Quit,
    Resized,
    ScheduleTimer,
    SetInputEnabled,
    ShowHelp,
    ShowImagePicker,
    StartStream,
    Submitted,
)
from .keymap import DEFAULT_KEYS, DESCRIPTIONS, KeyAction, KeyMap
from .models import Message, Session
from .rendering import BubbleRenderer, BubbleTheme, ImageRenderer
from .screens import HelpScreen, ImagePickerScreen
from .session import ChatSession
from .stream import StreamAggregator
from .task_manager import TaskManager
from .widgets import PromptBox, TranscriptView

LOGGER = logging.getLogger(__name__)

STREAM_TASK = "active_stream"


class SessionEvent(TextualMessage):
    """Carries a session event through Textual's message queue."""

    def __init__(self, event: Event) -> None:
        self.event = event
        super().__init__()


class BubbleTalkApp(App[list[Message]]):
    """Chat with one Ollama model in a scrolling feed of message bubbles."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #transcript {
        height: 1fr;
    }

    PromptBox {
        padding: 0 1;
    }
    """

    # Priority bindings so chat keys win over the focused prompt's own keys.
    BINDINGS = [
        Binding(
            ",".join(keys),
            f"session_key('{action.value}')",
            DESCRIPTIONS[action],
            show=False,
            priority=True,
            id=action.value,
        )
        for action, keys in DEFAULT_KEYS.items()
    ]

    def __init__(
        self,
        session: Session,
        config: dict[str, dict[str, Any]] | None = None,
        client: ChatClient | None = None,
    ) -> None:
        super().__init__()
        self.config = config or load_config()
        ui = self.config["ui"]
        self.chat_session_model = session
        self.keymap = KeyMap.from_config(self.config["keybinds"])
        renderer = BubbleRenderer(
            BubbleTheme.from_config(ui),
            ImageRenderer(cell_aspect=float(ui["cell_aspect"]), mode=str(ui["image_mode"])),
        )
        self.chat_session = ChatSession(
            session,
            keymap=self.keymap,
            renderer=renderer,
            behavior=self.config["behavior"],
        )
        ollama_cfg = self.config["ollama"]
        self.client = client or ChatClient(
            host=str(ollama_cfg["host"]),
            model=session.model_name,
            timeout=ollama_cfg.get("timeout"),
        )
        self.aggregator = StreamAggregator(self.client)
        self._task_manager = TaskManager()
        self._notification_timer: Timer | None = None
        self._help_screen: HelpScreen | None = None
        self._picker_screen: ImagePickerScreen | None = None
        self._w_transcript: TranscriptView | None = None
        self._w_prompt: PromptBox | None = None

    def compose(self) -> ComposeResult:
        ui = self.config["ui"]
        yield TranscriptView(id="transcript")
        yield PromptBox(
            self.chat_session_model.model_name,
            help_key=self.keymap.first_key(KeyAction.TOGGLE_HELP),
            notification_color=str(ui["notification_color"]),
            muted_color=str(ui["muted_color"]),
            id="prompt_box",
        )

    def on_mount(self) -> None:
        self.title = str(self.config["app"]["title"])
        self.sub_title = self.chat_session_model.title
        self.set_keymap(
            {action.value: ",".join(keys) for action, keys in self.keymap.bindings.items()}
        )
        self._w_transcript = self.query_one("#transcript", TranscriptView)
        self._w_prompt = self.query_one("#prompt_box", PromptBox)
        measured = self._w_prompt.outer_size.height or None
        self.dispatch_session_event(Resized(self.size.width, self.size.height, measured))
        self._w_prompt.set_enabled(True, self.chat_session.input_placeholder)
        LOGGER.info(
            "app.mounted",
            extra={
                "event": "app.mounted",
                "session_id": self.chat_session_model.id,
                "messages": len(self.chat_session.messages),
            },
        )

    async def on_unmount(self) -> None:
        await self._task_manager.cancel_all()

    # --- event intake -------------------------------------------------------

    def dispatch_session_event(self, event: Event) -> None:
        """Feed one event to the session, run its commands, then redraw."""
        for command in self.chat_session.update(event):
            self._execute(command)
        self._refresh_view()

    def post_session_event(self, event: Event) -> None:
        self.post_message(SessionEvent(event))

    def on_session_event(self, message: SessionEvent) -> None:
        self.dispatch_session_event(message.event)

    def action_session_key(self, action_name: str) -> None:
        self.dispatch_session_event(KeyPressed(self.keymap.first_key(KeyAction(action_name))))

    def on_resize(self, event: events.Resize) -> None:
        if self._w_transcript is None:
            return
        self.dispatch_session_event(Resized(event.size.width, event.size.height))

    def on_prompt_box_height_changed(self, event: PromptBox.HeightChanged) -> None:
        if self._w_transcript is None:
            return
        self.dispatch_session_event(Resized(self.size.width, self.size.height, event.height))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dispatch_session_event(Submitted(event.value))

    def on_transcript_view_clicked(self, event: TranscriptView.Clicked) -> None:
        self.dispatch_session_event(MouseClicked(event.x, event.y, event.button))

    def on_transcript_view_scrolled(self, event: TranscriptView.Scrolled) -> None:
        self.dispatch_session_event(MouseScrolled(event.lines))

    # --- command execution --------------------------------------------------

    def _execute(self, command: Command) -> None:
        if isinstance(command, StartStream):
            self._task_manager.spawn(
                self.aggregator.run(command.history, self.post_session_event, command.system_message),
                name=STREAM_TASK,
            )
        elif isinstance(command, ScheduleTimer):
            self._schedule(command.delay, command.event)
        elif isinstance(command, CopyToClipboard):
            error = copy_text(command.text, self.copy_to_clipboard)
            if error is not None:
                self.post_session_event(ClipboardFailed(error))
        elif isinstance(command, SetInputEnabled) and self._w_prompt is not None:
            self._w_prompt.set_enabled(command.enabled, command.placeholder)
        elif isinstance(command, ClearInput) and self._w_prompt is not None:
            self._w_prompt.clear()
        elif isinstance(command, ShowImagePicker):
            self._picker_screen = ImagePickerScreen(command.extensions)
            self.push_screen(self._picker_screen, self._on_picker_closed)
        elif isinstance(command, HideImagePicker):
            self._close_screen(self._picker_screen)
        elif isinstance(command, ShowHelp):
            self._help_screen = HelpScreen(self.chat_session.help_rows())
            self.push_screen(self._help_screen)
        elif isinstance(command, HideHelp):
            self._close_screen(self._help_screen)
            self._help_screen = None
        elif isinstance(command, Quit):
            self.exit(self.chat_session.messages)

    def _schedule(self, delay: float, event: Event) -> None:
        if self._notification_timer is not None:
            self._notification_timer.stop()
        self._notification_timer = self.set_timer(delay, lambda: self.dispatch_session_event(event))

    def _close_screen(self, screen: HelpScreen | ImagePickerScreen | None) -> None:
        if screen is not None and self.screen is screen:
            screen.dismiss(None)

    def _on_picker_closed(self, result: str | None) -> None:
        self._picker_screen = None
        if self.chat_session.state.quit_requested:
            return
        self.dispatch_session_event(ImageSelected(result) if result else ImagePickerCancelled())

    def _refresh_view(self) -> None:
        if self._w_transcript is None or self._w_prompt is None:
            return
        state = self.chat_session.state
        self._w_transcript.show_lines(self.chat_session.viewport.visible_lines())
        self._w_prompt.show_attachment(state.attached_image_path)
        self._w_prompt.show_notification(state.notification.text if state.notification else None)
