"""Curses-backed display and keypad.

The display takes over the terminal (raw mode, hidden cursor) while the
machine runs and paints each lit pixel as two block characters, centered.
The keypad reads from the same curses screen using the conventional
QWERTY layout:

    1 2 3 4        1 2 3 C
    q w e r   ->   4 5 6 D
    a s d f        7 8 9 E
    z x c v        A 0 B F

Esc or Ctrl-C quits.
"""

import curses
import logging
from typing import Dict, Optional

from .errors import CollaboratorError
from .peripherals import QUIT, Framebuffer, KeyEvent

logger = logging.getLogger(__name__)


PIXEL_CHAR = "██"
PIXEL_WIDTH = 2

KEY_ESCAPE = 27
KEY_CTRL_C = 3

_LAYOUT = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}
_SHIFTED_DIGITS = {"!": "1", "@": "2", "#": "3", "$": "4"}

KEY_MAP: Dict[int, int] = {}
for _char, _key in _LAYOUT.items():
    KEY_MAP[ord(_char)] = _key
    KEY_MAP[ord(_char.upper())] = _key
for _char, _digit in _SHIFTED_DIGITS.items():
    KEY_MAP[ord(_char)] = _LAYOUT[_digit]


def map_key(code: int) -> Optional[KeyEvent]:
    """Translate a curses key code to a KeyEvent, None if unmapped."""
    if code in (KEY_ESCAPE, KEY_CTRL_C):
        return QUIT
    key = KEY_MAP.get(code)
    if key is None:
        return None
    return KeyEvent.press(key)


class TerminalDisplay:
    """Renders the framebuffer to the terminal with curses.

    Attributes:
        screen: The curses window while in exclusive mode, else None
    """

    def __init__(self):
        self.screen = None

    def enter_exclusive_mode(self) -> None:
        try:
            self.screen = curses.initscr()
        except curses.error as e:
            raise CollaboratorError(f"cannot initialize terminal: {e}") from e
        try:
            curses.noecho()
            curses.raw()
            self.screen.keypad(True)
        except curses.error as e:
            # undo initscr
            curses.endwin()
            self.screen = None
            raise CollaboratorError(f"cannot initialize terminal: {e}") from e
        try:
            curses.curs_set(0)
        except curses.error:
            logger.debug("Terminal does not support hiding the cursor")

    def render(self, framebuffer: Framebuffer) -> None:
        if self.screen is None:
            raise CollaboratorError("render called outside exclusive mode")

        height, width = self.screen.getmaxyx()
        frame_width = len(framebuffer[0]) * PIXEL_WIDTH
        frame_height = len(framebuffer)
        x_offset = max(0, (width - frame_width) // 2)
        y_offset = max(0, (height - frame_height) // 2)

        try:
            self.screen.erase()
            for y, row in enumerate(framebuffer):
                for x, pixel in enumerate(row):
                    if pixel:
                        self.screen.addstr(y_offset + y, x_offset + x * PIXEL_WIDTH, PIXEL_CHAR)
            self.screen.move(0, 0)
            self.screen.refresh()
        except curses.error as e:
            raise CollaboratorError(
                f"terminal is {width}x{height}, need at least {frame_width}x{frame_height}"
            ) from e

    def leave_exclusive_mode(self) -> None:
        if self.screen is None:
            return
        self.screen.keypad(False)
        curses.noraw()
        curses.echo()
        try:
            curses.curs_set(1)
        except curses.error:
            logger.debug("Terminal does not support showing the cursor")
        curses.endwin()
        self.screen = None


class TerminalKeypad:
    """Reads hex key presses from the display's curses screen."""

    def __init__(self, display: TerminalDisplay):
        self.display = display

    def _screen(self):
        if self.display.screen is None:
            raise CollaboratorError("keypad used outside exclusive mode")
        return self.display.screen

    def poll(self) -> Optional[KeyEvent]:
        screen = self._screen()
        screen.nodelay(True)
        code = screen.getch()
        if code == -1:
            return None
        return map_key(code)

    def wait(self) -> KeyEvent:
        screen = self._screen()
        screen.nodelay(False)
        while True:
            event = map_key(screen.getch())
            if event is not None:
                return event
