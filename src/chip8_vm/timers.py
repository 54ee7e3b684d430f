"""Delay and sound timers, decoupled from instruction speed.

Both timers count down at a fixed 60 Hz no matter how many instructions run
in between. The processor samples a monotonic clock once per cycle and ticks
at most once per elapsed interval.
"""

import time
from typing import Callable

from .state import MachineState


TIMER_FREQUENCY = 60
TIMER_INTERVAL = 1.0 / TIMER_FREQUENCY


class TimerClock:
    """Gate that opens once per timer interval of wall-clock time.

    Attributes:
        interval: Seconds between ticks
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, interval: float = TIMER_INTERVAL):
        self._clock = clock
        self.interval = interval
        self._last_tick = clock()

    def due(self) -> bool:
        """Sample the clock; True (and re-arm) if a tick is due."""
        now = self._clock()
        if now - self._last_tick >= self.interval:
            self._last_tick = now
            return True
        return False

    def reset(self) -> None:
        self._last_tick = self._clock()


def tick_timers(state: MachineState) -> None:
    """Decrement both timers by one, never below zero."""
    if state.delay_timer > 0:
        state.delay_timer -= 1
    if state.sound_timer > 0:
        state.sound_timer -= 1
