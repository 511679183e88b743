"""Tests for clipboard writes and their fallback."""

from __future__ import annotations

import unittest
from unittest.mock import patch

import pyperclip

from bubbletalk.clipboard import copy_text


class CopyTextTests(unittest.TestCase):
    def test_success_returns_none(self) -> None:
        with patch("bubbletalk.clipboard.pyperclip.copy") as copy_mock:
            self.assertIsNone(copy_text("hello"))
        copy_mock.assert_called_once_with("hello")

    def test_failure_uses_fallback_and_reports(self) -> None:
        fallback: list[str] = []
        error = pyperclip.PyperclipException("no copy mechanism")
        with patch("bubbletalk.clipboard.pyperclip.copy", side_effect=error):
            with self.assertLogs("bubbletalk.clipboard", level="WARNING"):
                result = copy_text("hello", fallback.append)
        self.assertEqual(result, "no copy mechanism")
        self.assertEqual(fallback, ["hello"])


if __name__ == "__main__":
    unittest.main()
