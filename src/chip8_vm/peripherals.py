"""Collaborator interfaces as seen by the processor.

The processor talks to exactly two devices:

    Display: enter_exclusive_mode() / render(framebuffer) / leave_exclusive_mode()
    Keypad:  poll() -> Optional[KeyEvent] (non-blocking) / wait() -> KeyEvent

Both receive transient values per call and keep no reference to machine
state. Headless and scripted implementations live here; the curses-backed
ones are in ``chip8_vm.terminal``.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence

from .state import NUM_KEYS


Framebuffer = List[List[int]]


@dataclass(frozen=True)
class KeyEvent:
    """A hex key press (0x0-0xF) or a request to quit.

    Attributes:
        key: Hex key code, None for quit
    """
    key: Optional[int] = None

    def __post_init__(self):
        if self.key is not None and not 0 <= self.key < NUM_KEYS:
            raise ValueError(f"Invalid key code: {self.key}")

    @classmethod
    def press(cls, key: int) -> "KeyEvent":
        return cls(key)

    @classmethod
    def quit(cls) -> "KeyEvent":
        return cls(None)

    @property
    def is_quit(self) -> bool:
        return self.key is None


QUIT = KeyEvent.quit()


class Display(Protocol):
    def enter_exclusive_mode(self) -> None: ...

    def render(self, framebuffer: Framebuffer) -> None: ...

    def leave_exclusive_mode(self) -> None: ...


class Keypad(Protocol):
    def poll(self) -> Optional[KeyEvent]: ...

    def wait(self) -> KeyEvent: ...


def render_text(framebuffer: Framebuffer, on: str = "██", off: str = "  ") -> str:
    """Render a framebuffer as text, two characters per pixel by default."""
    return "\n".join("".join(on if pixel else off for pixel in row) for row in framebuffer)


class HeadlessDisplay:
    """Display that keeps the most recent frame in memory.

    Attributes:
        last_frame: Last framebuffer rendered, None before the first
        frame_count: Number of render calls
        exclusive: Whether exclusive mode is currently entered
    """

    def __init__(self):
        self.last_frame: Optional[Framebuffer] = None
        self.frame_count = 0
        self.exclusive = False
        self.enter_count = 0
        self.leave_count = 0

    def enter_exclusive_mode(self) -> None:
        self.exclusive = True
        self.enter_count += 1

    def render(self, framebuffer: Framebuffer) -> None:
        self.last_frame = [list(row) for row in framebuffer]
        self.frame_count += 1

    def leave_exclusive_mode(self) -> None:
        self.exclusive = False
        self.leave_count += 1

    def as_text(self) -> str:
        if self.last_frame is None:
            return ""
        return render_text(self.last_frame)


class NullKeypad:
    """Keypad with no keys: polls report nothing and a wait means quit."""

    def poll(self) -> Optional[KeyEvent]:
        return None

    def wait(self) -> KeyEvent:
        return QUIT


class ScriptedKeypad:
    """Keypad replaying a fixed sequence of events.

    Each ``poll()`` consumes one entry (None meaning no key this cycle).
    ``wait()`` consumes entries until it finds an event. Once the script is
    exhausted, polls report nothing and waits report quit.
    """

    def __init__(self, events: Iterable[Optional[KeyEvent]] = ()):
        self._events = list(events)
        self._position = 0

    @classmethod
    def from_keys(cls, keys: Sequence[Optional[int]], quit_at_end: bool = False) -> "ScriptedKeypad":
        events: List[Optional[KeyEvent]] = [None if key is None else KeyEvent.press(key) for key in keys]
        if quit_at_end:
            events.append(QUIT)
        return cls(events)

    @property
    def remaining(self) -> int:
        return len(self._events) - self._position

    def poll(self) -> Optional[KeyEvent]:
        if self._position >= len(self._events):
            return None
        event = self._events[self._position]
        self._position += 1
        return event

    def wait(self) -> KeyEvent:
        while self._position < len(self._events):
            event = self._events[self._position]
            self._position += 1
            if event is not None:
                return event
        return QUIT
