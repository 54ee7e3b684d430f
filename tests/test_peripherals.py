"""Tests for the collaborator interfaces and headless devices."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm.peripherals import (
    QUIT,
    HeadlessDisplay,
    KeyEvent,
    NullKeypad,
    ScriptedKeypad,
    render_text,
)


class TestKeyEvent:
    """Test KeyEvent construction."""

    def test_press(self):
        event = KeyEvent.press(0xA)
        assert event.key == 0xA
        assert event.is_quit is False

    def test_quit(self):
        assert KeyEvent.quit().is_quit is True
        assert QUIT == KeyEvent.quit()

    @pytest.mark.parametrize("code", [-1, 16, 0xFF])
    def test_invalid_code(self, code):
        with pytest.raises(ValueError):
            KeyEvent.press(code)


class TestScriptedKeypad:
    """Test scripted input replay."""

    def test_poll_sequence(self):
        keypad = ScriptedKeypad.from_keys([None, 5, None])
        assert keypad.poll() is None
        assert keypad.poll() == KeyEvent.press(5)
        assert keypad.poll() is None
        assert keypad.poll() is None
        assert keypad.remaining == 0

    def test_wait_skips_empty_cycles(self):
        keypad = ScriptedKeypad.from_keys([None, None, 0xC, 3])
        assert keypad.wait() == KeyEvent.press(0xC)
        assert keypad.poll() == KeyEvent.press(3)

    def test_wait_exhausted_is_quit(self):
        keypad = ScriptedKeypad.from_keys([None])
        assert keypad.wait().is_quit

    def test_quit_at_end(self):
        keypad = ScriptedKeypad.from_keys([1], quit_at_end=True)
        assert keypad.poll() == KeyEvent.press(1)
        assert keypad.poll().is_quit


class TestNullKeypad:
    def test_never_pressed(self):
        keypad = NullKeypad()
        assert keypad.poll() is None
        assert keypad.wait().is_quit


class TestHeadlessDisplay:
    """Test in-memory display."""

    def test_lifecycle(self):
        display = HeadlessDisplay()
        display.enter_exclusive_mode()
        assert display.exclusive is True
        display.leave_exclusive_mode()
        assert display.exclusive is False
        assert display.enter_count == display.leave_count == 1

    def test_render_copies_frame(self):
        display = HeadlessDisplay()
        frame = [[0, 1], [1, 0]]
        display.render(frame)
        frame[0][0] = 1
        assert display.last_frame == [[0, 1], [1, 0]]
        assert display.frame_count == 1

    def test_as_text(self):
        display = HeadlessDisplay()
        assert display.as_text() == ""
        display.render([[1, 0]])
        assert display.as_text() == "██  "


class TestRenderText:
    def test_custom_characters(self):
        assert render_text([[1, 0], [0, 1]], on="#", off=".") == "#.\n.#"
