"""Tests for mode derivation from view flags."""

from __future__ import annotations

import unittest

from bubbletalk.state import Mode, ViewState


class ViewStateTests(unittest.TestCase):
    """Validate the precedence of overlay and stream flags."""

    def test_default_is_composing(self) -> None:
        self.assertIs(ViewState().mode, Mode.COMPOSING)

    def test_streaming(self) -> None:
        self.assertIs(ViewState(streaming=True).mode, Mode.STREAMING)

    def test_overlays_sit_above_streaming(self) -> None:
        state = ViewState(streaming=True, help_visible=True)
        self.assertIs(state.mode, Mode.HELP_OVERLAY)
        state.help_visible = False
        self.assertIs(state.mode, Mode.STREAMING)
        self.assertIs(ViewState(picking_image=True).mode, Mode.PICKING_IMAGE)
        self.assertIs(ViewState(picking_image=True, help_visible=True).mode, Mode.HELP_OVERLAY)

    def test_quit_wins(self) -> None:
        state = ViewState(streaming=True, help_visible=True, quit_requested=True)
        self.assertIs(state.mode, Mode.TERMINAL)


if __name__ == "__main__":
    unittest.main()
