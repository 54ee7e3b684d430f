"""Tests for the 60 Hz timer gate."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm.state import MachineState
from chip8_vm.timers import TIMER_INTERVAL, TimerClock, tick_timers


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestTimerClock:
    """Test tick gating."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    def test_not_due_before_interval(self, clock):
        gate = TimerClock(clock)
        clock.advance(TIMER_INTERVAL / 2)
        assert gate.due() is False

    def test_due_after_interval(self, clock):
        gate = TimerClock(clock)
        clock.advance(TIMER_INTERVAL * 1.01)
        assert gate.due() is True
        assert gate.due() is False

    def test_one_tick_per_sample(self, clock):
        """A long gap yields a single tick, never a burst."""
        gate = TimerClock(clock)
        clock.advance(TIMER_INTERVAL * 10)
        assert gate.due() is True
        assert gate.due() is False

    def test_clock_going_backwards(self, clock):
        gate = TimerClock(clock)
        clock.advance(-5.0)
        assert gate.due() is False

    def test_reset(self, clock):
        gate = TimerClock(clock)
        clock.advance(TIMER_INTERVAL * 2)
        gate.reset()
        assert gate.due() is False

    def test_interval_is_60hz(self):
        assert TIMER_INTERVAL == pytest.approx(0.01667, abs=1e-4)


class TestTickTimers:
    """Test countdown floor."""

    def test_decrement(self):
        state = MachineState(delay_timer=3, sound_timer=1)
        tick_timers(state)
        assert state.delay_timer == 2
        assert state.sound_timer == 0

    def test_floor_at_zero(self):
        state = MachineState()
        tick_timers(state)
        assert state.delay_timer == 0
        assert state.sound_timer == 0
