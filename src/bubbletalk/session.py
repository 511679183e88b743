"""Message-driven chat session: one ``update`` call per event, commands out."""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import Any

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
    NotificationExpired,
    Quit,
    Resized,
    ScheduleTimer,
    SetInputEnabled,
    ShowHelp,
    ShowImagePicker,
    StartStream,
    StreamChunk,
    StreamFailed,
    StreamFinished,
    Submitted,
)
from .history import MessageHistory
from .keymap import STREAMING_ACTIONS, KeyAction, KeyMap
from .models import Message, Role, Session
from .rendering.bubble import BubbleRenderer
from .state import Mode, Notification, ViewState
from .viewport import Viewport

LOGGER = logging.getLogger(__name__)

# Rounded border drawn around the transcript.
CHROME_HEIGHT = 2
SIDE_MARGIN = 2
# Input field with its border, plus the help line.
DEFAULT_INPUT_HEIGHT = 4
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")

COPIED_HIGHLIGHTED = "Copied highlighted message to clipboard"
COPIED_LAST_RESPONSE = "Copied last response to clipboard"

# Keys an open image picker still lets through to the session.
_PICKER_ACTIONS = frozenset({KeyAction.TOGGLE_IMAGE_PICKER, KeyAction.TOGGLE_HELP, KeyAction.QUIT})
_HELP_ACTIONS = frozenset({KeyAction.TOGGLE_HELP, KeyAction.QUIT})


class ChatSession:
    """Own history, render cache, viewport and overlays for one chat run.

    ``update`` never blocks and never performs I/O: anything slow is returned
    as a command for the UI shell to run, whose results come back as events.
    """

    def __init__(
        self,
        session: Session,
        *,
        keymap: KeyMap | None = None,
        renderer: BubbleRenderer | None = None,
        behavior: dict[str, Any] | None = None,
        width: int = 80,
        height: int = 24,
        input_height: int = DEFAULT_INPUT_HEIGHT,
    ) -> None:
        behavior = behavior or {}
        self.session = session
        self.keymap = keymap or KeyMap()
        self.renderer = renderer or BubbleRenderer()
        self.notification_seconds = float(behavior.get("notification_seconds", 3))
        self.notify_clipboard_errors = bool(behavior.get("notify_clipboard_errors", False))
        self.notify_picker_cancel = bool(behavior.get("notify_picker_cancel", False))
        self.input_height = input_height
        self.state = ViewState(width=width, height=height)
        self.viewport = Viewport(self.content_width, self.viewport_height)
        self.history = MessageHistory(
            self.renderer,
            session.model_name,
            session.history,
            width=self.content_width,
            image_height=self.viewport_height,
        )
        self.session.history = self.history.messages
        self._notification_token = 0
        self._handlers: dict[type, Callable[[Any], list[Command]]] = {
            KeyPressed: self._on_key,
            Resized: self._on_resize,
            MouseClicked: self._on_click,
            MouseScrolled: self._on_scroll,
            Submitted: self._on_submit,
            StreamChunk: self._on_chunk,
            StreamFinished: self._on_finished,
            StreamFailed: self._on_failed,
            NotificationExpired: self._on_notification_expired,
            ImageSelected: self._on_image_selected,
            ImagePickerCancelled: self._on_picker_cancelled,
            ClipboardFailed: self._on_clipboard_failed,
        }
        self._redraw()
        self.viewport.goto_bottom()

    # --- derived layout -----------------------------------------------------

    @property
    def mode(self) -> Mode:
        return self.state.mode

    @property
    def content_width(self) -> int:
        return max(1, self.state.width - SIDE_MARGIN)

    @property
    def viewport_height(self) -> int:
        return max(1, self.state.height - self.input_height - CHROME_HEIGHT)

    @property
    def messages(self) -> list[Message]:
        return self.history.messages

    @property
    def input_placeholder(self) -> str:
        if self.state.streaming:
            return f"Waiting for {self.session.model_name}..."
        return "Send a message..."

    def help_rows(self) -> list[list[tuple[str, str]]]:
        return self.keymap.help_rows(self.session.is_multimodal)

    # --- update loop --------------------------------------------------------

    def update(self, event: Event) -> list[Command]:
        """Apply one event and return the commands the shell must run."""
        if self.state.quit_requested:
            return []
        handler = self._handlers.get(type(event))
        if handler is None:
            LOGGER.debug("session.event.unhandled", extra={"event": "session.event.unhandled", "kind": type(event).__name__})
            return []
        before = self.mode
        commands = handler(event)
        after = self.mode
        if after is not before:
            LOGGER.info(
                "session.mode.changed",
                extra={"event": "session.mode.changed", "from": before.value, "to": after.value},
            )
        return commands

    def _redraw(self) -> None:
        lines, regions = self.history.compose()
        self.viewport.set_content(lines, regions)

    def _notify(self, text: str) -> list[Command]:
        self._notification_token += 1
        self.state.notification = Notification(text=text, token=self._notification_token)
        return [ScheduleTimer(self.notification_seconds, NotificationExpired(self._notification_token))]

    # --- handlers -----------------------------------------------------------

    def _on_key(self, event: KeyPressed) -> list[Command]:
        action = self.keymap.resolve(event.key)
        if action is None:
            return []
        if self.state.help_visible and action not in _HELP_ACTIONS:
            return []
        if self.state.picking_image and action not in _PICKER_ACTIONS:
            return []
        if self.state.streaming and action not in STREAMING_ACTIONS:
            return []
        return self._run_action(action)

    def _run_action(self, action: KeyAction) -> list[Command]:
        if action is KeyAction.LINE_UP:
            self.viewport.line_up()
        elif action is KeyAction.LINE_DOWN:
            self.viewport.line_down()
        elif action is KeyAction.HALF_PAGE_UP:
            self.viewport.half_view_up()
        elif action is KeyAction.HALF_PAGE_DOWN:
            self.viewport.half_view_down()
        elif action is KeyAction.HIGHLIGHT_PREVIOUS:
            self._navigate(-1)
        elif action is KeyAction.HIGHLIGHT_NEXT:
            self._navigate(1)
        elif action is KeyAction.COPY_HIGHLIGHTED:
            return self._copy(self.history.highlighted_message(), COPIED_HIGHLIGHTED)
        elif action is KeyAction.COPY_LAST_RESPONSE:
            return self._copy(self.history.last_response(), COPIED_LAST_RESPONSE)
        elif action is KeyAction.TOGGLE_IMAGE_PICKER:
            return self._toggle_picker()
        elif action is KeyAction.REMOVE_ATTACHMENT:
            self.state.attached_image_path = ""
        elif action is KeyAction.TOGGLE_HELP:
            self.state.help_visible = not self.state.help_visible
            return [ShowHelp()] if self.state.help_visible else [HideHelp()]
        elif action is KeyAction.QUIT:
            self.state.quit_requested = True
            LOGGER.info("session.quit", extra={"event": "session.quit", "streaming": self.state.streaming})
            return [Quit()]
        return []

    def _navigate(self, direction: int) -> None:
        if not self.history.messages:
            return
        if self.history.navigate(direction):
            self._redraw()
        self.viewport.set_y_offset(self.history.offset_of(self.history.highlighted))

    def _copy(self, message: Message | None, notice: str) -> list[Command]:
        if message is None or not message.text:
            return []
        return [CopyToClipboard(message.text), *self._notify(notice)]

    def _toggle_picker(self) -> list[Command]:
        if self.state.picking_image:
            self.state.picking_image = False
            return [HideImagePicker()]
        if not self.session.is_multimodal:
            return []
        self.state.picking_image = True
        return [ShowImagePicker(IMAGE_EXTENSIONS)]

    def _on_resize(self, event: Resized) -> list[Command]:
        was_at_bottom = self.viewport.at_bottom
        self.state.width = max(1, event.width)
        self.state.height = max(1, event.height)
        if event.input_height is not None:
            self.input_height = max(0, event.input_height)
        self.viewport.set_size(self.content_width, self.viewport_height)
        self.history.rerender_all(self.content_width, self.viewport_height)
        self._redraw()
        if was_at_bottom:
            self.viewport.goto_bottom()
        return []

    def _on_click(self, event: MouseClicked) -> list[Command]:
        if self.state.help_visible or self.state.picking_image:
            return []
        if event.button == 3:
            return self._copy(self.history.highlighted_message(), COPIED_HIGHLIGHTED)
        index = self.viewport.hit_test(event.x, event.y)
        if index is not None and self.history.select(index):
            self._redraw()
        return []

    def _on_scroll(self, event: MouseScrolled) -> list[Command]:
        if event.lines < 0:
            self.viewport.line_up(-event.lines)
        else:
            self.viewport.line_down(event.lines)
        return []

    def _on_submit(self, event: Submitted) -> list[Command]:
        text = event.text.strip()
        if self.mode is not Mode.COMPOSING or not text:
            return []
        images = [self.state.attached_image_path] if self.state.attached_image_path else []
        self.history.append_message(Role.USER, text, images)
        self.state.attached_image_path = ""
        self.history.append_message(Role.ASSISTANT, "", open_stream=True)
        self.state.streaming = True
        self._redraw()
        self.viewport.goto_bottom()
        request = tuple(self.history.messages[:-1])
        LOGGER.info(
            "session.submit",
            extra={"event": "session.submit", "messages": len(request), "images": len(images)},
        )
        return [
            ClearInput(),
            SetInputEnabled(False, self.input_placeholder),
            StartStream(request, self.session.system_message),
        ]

    def _on_chunk(self, event: StreamChunk) -> list[Command]:
        if self.history.stream_append(event.delta):
            self._redraw()
            self.viewport.goto_bottom()
        return []

    def _end_stream(self) -> None:
        self.history.close_stream()
        self.state.streaming = False
        self.state.attached_image_path = ""
        self._redraw()
        self.viewport.goto_bottom()

    def _on_finished(self, event: StreamFinished) -> list[Command]:
        if not self.state.streaming:
            return []
        self._end_stream()
        return [SetInputEnabled(True, self.input_placeholder)]

    def _on_failed(self, event: StreamFailed) -> list[Command]:
        if not self.state.streaming:
            return []
        LOGGER.warning("session.stream.failed", extra={"event": "session.stream.failed", "error": event.error})
        self._end_stream()
        return [SetInputEnabled(True, self.input_placeholder), *self._notify(f"Response failed: {event.error}")]

    def _on_notification_expired(self, event: NotificationExpired) -> list[Command]:
        current = self.state.notification
        if current is not None and current.token == event.token:
            self.state.notification = None
        return []

    def _on_image_selected(self, event: ImageSelected) -> list[Command]:
        self.state.picking_image = False
        self.state.attached_image_path = event.path
        LOGGER.info("session.image.attached", extra={"event": "session.image.attached", "path": event.path})
        return []

    def _on_picker_cancelled(self, event: ImagePickerCancelled) -> list[Command]:
        self.state.picking_image = False
        if self.notify_picker_cancel:
            return self._notify("No image selected")
        return []

    def _on_clipboard_failed(self, event: ClipboardFailed) -> list[Command]:
        if self.notify_clipboard_errors:
            return self._notify(f"Clipboard unavailable: {event.error}")
        return []
