"""Tests for the visibility filter."""
from __future__ import annotations

from unittest.mock import Mock

from board_export.visibility import is_interactable, is_rendered

VISIBLE = {"width": 240, "height": 80, "display": "block", "visibility": "visible", "connected": True}


class TestIsRendered:

    def test_visible_box(self):
        assert is_rendered(VISIBLE) is True

    def test_zero_area_is_hidden(self):
        assert is_rendered({**VISIBLE, "width": 0}) is False
        assert is_rendered({**VISIBLE, "height": 0}) is False

    def test_display_none_and_visibility_hidden(self):
        assert is_rendered({**VISIBLE, "display": "none"}) is False
        assert is_rendered({**VISIBLE, "visibility": "hidden"}) is False

    def test_detached_or_missing_state(self):
        assert is_rendered({**VISIBLE, "connected": False}) is False
        assert is_rendered(None) is False
        assert is_rendered({}) is False


class TestIsInteractable:

    def test_reads_state_from_handle(self):
        handle = Mock()
        handle.evaluate.return_value = VISIBLE
        assert is_interactable(handle) is True
        handle.evaluate.assert_called_once()

    def test_detached_handle_is_not_visible(self):
        handle = Mock()
        handle.evaluate.side_effect = Exception("Element is not attached to the DOM")
        assert is_interactable(handle) is False

    def test_none_handle(self):
        assert is_interactable(None) is False
