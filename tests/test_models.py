"""Tests for message and session data types."""

from __future__ import annotations

from datetime import datetime, timezone
import unittest

from bubbletalk.models import Message, Role, Session, generate_session_id


class SessionTests(unittest.TestCase):
    def test_create_strips_title_and_system_message(self) -> None:
        session = Session.create(title="  Ideas ", model_name="llama3.2", system_message=" Be terse. ")
        self.assertEqual(session.title, "Ideas")
        self.assertEqual(session.system_message, "Be terse.")
        self.assertEqual(session.history, [])

    def test_empty_title_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Session.create(title="   ", model_name="llama3.2")

    def test_id_collision_is_regenerated(self) -> None:
        seen: list[str] = []

        def exists(candidate: str) -> bool:
            seen.append(candidate)
            return len(seen) == 1

        with self.assertLogs("bubbletalk.models", level="WARNING"):
            session_id = generate_session_id(exists)
        self.assertEqual(len(seen), 2)
        self.assertEqual(session_id, seen[1])
        self.assertNotEqual(seen[0], seen[1])

    def test_descriptor_round_trip(self) -> None:
        session = Session.create(title="t", model_name="llava", is_multimodal=True, is_anonymous=True)
        restored = Session.from_descriptor(session.descriptor())
        self.assertEqual(restored.id, session.id)
        self.assertTrue(restored.is_multimodal)
        self.assertTrue(restored.is_anonymous)
        self.assertEqual(restored.updated_at, session.updated_at)
        self.assertNotIn("history", session.descriptor())


class MessageTests(unittest.TestCase):
    def test_record_requires_datetime(self) -> None:
        with self.assertRaises(ValueError):
            Message.from_record({"role": "user", "text": "x", "created_at": "yesterday"})

    def test_unknown_role_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Message.from_record(
                {"role": "tool", "text": "x", "created_at": datetime.now(timezone.utc)}
            )

    def test_record_keeps_image_paths(self) -> None:
        message = Message(role=Role.USER, text="see", images=["a.png"])
        self.assertEqual(Message.from_record(message.to_record()), message)


if __name__ == "__main__":
    unittest.main()
