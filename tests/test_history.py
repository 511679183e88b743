"""Tests for the message history and its bubble cache."""

from __future__ import annotations

import unittest

from bubbletalk.history import MessageHistory
from bubbletalk.models import Message, Role
from bubbletalk.rendering.bubble import BubbleRenderer


def _visible_count(history: MessageHistory) -> int:
    return sum(1 for message in history.messages if message.role is not Role.SYSTEM)


class MessageHistoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.renderer = BubbleRenderer()

    def _history(self, messages: list[Message] | None = None) -> MessageHistory:
        return MessageHistory(self.renderer, "llama3.2", messages, width=78, image_height=20)

    def test_cache_tracks_non_system_messages(self) -> None:
        history = self._history([Message(role=Role.SYSTEM, text="be brief")])
        self.assertEqual(len(history.cache), _visible_count(history))
        history.append_message(Role.USER, "Hello")
        history.append_message(Role.ASSISTANT, "", open_stream=True)
        history.stream_append("Hi")
        history.append_message(Role.SYSTEM, "note")
        self.assertEqual(len(history.cache), _visible_count(history))
        history.rerender_all(width=50)
        self.assertEqual(len(history.cache), _visible_count(history))

    def test_append_highlights_newest(self) -> None:
        history = self._history()
        history.append_message(Role.USER, "one")
        history.append_message(Role.ASSISTANT, "two")
        self.assertEqual(history.highlighted, 1)

    def test_loaded_history_highlights_last_visible_message(self) -> None:
        history = self._history(
            [
                Message(role=Role.USER, text="hello"),
                Message(role=Role.ASSISTANT, text="hi there"),
                Message(role=Role.SYSTEM, text="be brief"),
            ]
        )
        self.assertEqual(history.highlighted, 1)
        self.assertEqual(history.highlighted_message().text, "hi there")

    def test_only_system_messages_highlight_first(self) -> None:
        history = self._history([Message(role=Role.SYSTEM, text="a"), Message(role=Role.SYSTEM, text="b")])
        self.assertEqual(history.highlighted, 0)
        history.append_message(Role.USER, "hello")
        self.assertEqual(history.highlighted, 2)

    def test_appended_system_message_keeps_highlight(self) -> None:
        history = self._history()
        history.append_message(Role.USER, "one")
        history.append_message(Role.SYSTEM, "note")
        self.assertEqual(history.highlighted, 0)
        self.assertEqual(history.highlighted_message().text, "one")

    def test_stream_append_concatenates_in_order(self) -> None:
        history = self._history()
        history.append_message(Role.USER, "Hello")
        history.append_message(Role.ASSISTANT, "", open_stream=True)
        deltas = ["Hi", " there", "!", "", " ```py", "\nx = 1"]
        for delta in deltas:
            self.assertTrue(history.stream_append(delta))
        self.assertEqual(history.messages[-1].text, "".join(deltas))
        self.assertEqual(history.highlighted, 1)

    def test_stream_append_without_open_message_is_ignored(self) -> None:
        history = self._history([Message(role=Role.ASSISTANT, text="done")])
        self.assertFalse(history.stream_append("late"))
        self.assertEqual(history.messages[0].text, "done")

    def test_close_stream_freezes_message(self) -> None:
        history = self._history()
        history.append_message(Role.ASSISTANT, "", open_stream=True)
        history.stream_append("partial")
        closed = history.close_stream()
        self.assertIsNotNone(closed)
        self.assertFalse(history.streaming)
        self.assertFalse(history.stream_append("more"))
        self.assertEqual(history.messages[0].text, "partial")

    def test_navigate_is_clamped(self) -> None:
        history = self._history(
            [Message(role=Role.USER, text="a"), Message(role=Role.ASSISTANT, text="b"), Message(role=Role.USER, text="c")]
        )
        self.assertEqual(history.highlighted, 2)
        self.assertFalse(history.navigate(1))
        self.assertEqual(history.highlighted, 2)
        for _ in range(5):
            history.navigate(-1)
            self.assertGreaterEqual(history.highlighted, 0)
        self.assertEqual(history.highlighted, 0)
        self.assertFalse(history.navigate(-1))
        self.assertTrue(history.navigate(1))
        self.assertEqual(history.highlighted, 1)

    def test_navigate_on_empty_history(self) -> None:
        history = self._history()
        self.assertFalse(history.navigate(1))
        self.assertEqual(history.highlighted, 0)

    def test_offset_is_height_of_everything_above(self) -> None:
        history = self._history(
            [Message(role=Role.USER, text="a"), Message(role=Role.ASSISTANT, text="b"), Message(role=Role.USER, text="c")]
        )
        self.assertEqual(history.offset_of(0), 0)
        first, second = history.cache[0].height, history.cache[1].height
        self.assertEqual(history.offset_of(1), first)
        # The reply age sits under the assistant bubble.
        self.assertEqual(history.offset_of(2), first + second + 1)

    def test_compose_places_bubbles_and_regions(self) -> None:
        history = self._history([Message(role=Role.USER, text="hey"), Message(role=Role.ASSISTANT, text="yo")])
        lines, regions = history.compose()
        self.assertEqual([region.index for region in regions], [0, 1])
        user_region, reply_region = regions
        self.assertEqual(user_region.right, 78)
        self.assertEqual(reply_region.left, 0)
        self.assertEqual(reply_region.top, user_region.bottom)
        self.assertEqual(len(lines), reply_region.bottom + 1)
        self.assertTrue(all(line.cell_len <= 78 for line in lines))

    def test_selection_changes_rerender_only_affected_bubbles(self) -> None:
        history = self._history(
            [Message(role=Role.USER, text="a"), Message(role=Role.ASSISTANT, text="b"), Message(role=Role.USER, text="c")]
        )
        untouched = history.cache[0]
        history.navigate(-1)
        self.assertIs(history.cache[0], untouched)
        self.assertEqual(history.highlighted, 1)

    def test_resize_keeps_content_and_highlight(self) -> None:
        history = self._history([Message(role=Role.USER, text="x " * 200), Message(role=Role.ASSISTANT, text="y")])
        history.navigate(-1)
        texts = [message.text for message in history.messages]
        before = history.cache[0].width
        history.rerender_all(width=40)
        self.assertEqual([message.text for message in history.messages], texts)
        self.assertEqual(history.highlighted, 0)
        self.assertLess(history.cache[0].width, before)


if __name__ == "__main__":
    unittest.main()
