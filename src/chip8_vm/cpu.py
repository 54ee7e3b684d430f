"""Chip8CPU: the processor and its run loop.

This module implements the full CHIP-8 execution pipeline:
    MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> OUTCOME -> PC

One cycle is: fetch, decode, execute one instruction, apply the control
transfer it reports, then render if the framebuffer is dirty, poll the
keypad once, and tick the timers if a 60 Hz interval has elapsed.

The key-wait instruction (FX0A) does not block inside the handler. It puts
the processor into WAITING_FOR_KEY mode; the next step() performs the
blocking wait and finishes the suspended cycle.
"""

import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .decode import decode, disassemble
from .errors import Chip8Error, DecodeError, LoadError, MemoryAccessError
from .peripherals import Display, Framebuffer, HeadlessDisplay, Keypad, NullKeypad
from .registry import Flow, InstructionRegistry, Outcome
from .state import MEMORY_SIZE, MachineState, create_initial_state
from .timers import TIMER_INTERVAL, TimerClock, tick_timers

logger = logging.getLogger(__name__)


class RunMode(Enum):
    RUNNING = "running"
    WAITING_FOR_KEY = "waiting_for_key"
    HALTED = "halted"


class ExitReason(Enum):
    QUIT = "quit"                # Keypad reported quit
    FAULT = "fault"              # Fatal machine error
    CYCLE_LIMIT = "cycle_limit"  # run() stopped at max_cycles


@dataclass
class RunResult:
    """How a run() ended.

    Attributes:
        reason: Why the loop stopped
        cycles: Instructions executed in total
        fault: The fatal error when reason is FAULT
    """
    reason: ExitReason
    cycles: int
    fault: Optional[Chip8Error] = None

    @property
    def ok(self) -> bool:
        return self.reason is not ExitReason.FAULT

    def raise_for_fault(self) -> None:
        if self.fault is not None:
            raise self.fault


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        pc: Address the opcode was fetched from
        opcode: Raw 16-bit opcode (None if the fetch itself failed)
        key: Registry key from the decoder
        mnemonic: Disassembled instruction
        pre_state: State snapshot before execution
        post_state: State snapshot after execution
        error: Error message if execution failed
    """
    cycle: int
    pc: int
    opcode: Optional[int]
    key: str
    mnemonic: str
    pre_state: dict
    post_state: dict
    error: Optional[str] = None


class Chip8CPU:
    """CHIP-8 processor owning all architectural state.

    Attributes:
        state: Machine state
        display: Display collaborator
        keypad: Keypad collaborator
        registry: InstructionRegistry with the instruction primitives
        timer_clock: 60 Hz gate for the delay and sound timers
        mode: RUNNING, WAITING_FOR_KEY or HALTED
        fault: Fatal error that halted the machine, if any
        trace: List of execution trace entries (only when tracing)
    """

    def __init__(
        self,
        display: Optional[Display] = None,
        keypad: Optional[Keypad] = None,
        clock: Callable[[], float] = time.monotonic,
        seed: Optional[int] = None,
        trace: bool = False,
        timer_interval: float = TIMER_INTERVAL,
    ):
        """Initialize the processor.

        Args:
            display: Display collaborator (HeadlessDisplay if None)
            keypad: Keypad collaborator (NullKeypad if None)
            clock: Monotonic clock in seconds, sampled once per cycle
            seed: Seed for the random number instruction
            trace: Record an ExecutionTraceEntry per cycle
            timer_interval: Seconds per timer tick
        """
        self.display = display if display is not None else HeadlessDisplay()
        self.keypad = keypad if keypad is not None else NullKeypad()
        self.registry = InstructionRegistry(rng=random.Random(seed))
        self.timer_clock = TimerClock(clock, timer_interval)
        self.tracing = trace
        self.state: MachineState = create_initial_state()
        self.mode = RunMode.RUNNING
        self.fault: Optional[Chip8Error] = None
        self.exit_reason: Optional[ExitReason] = None
        self.trace: List[ExecutionTraceEntry] = []
        self._wait_register: Optional[int] = None
        self._wait_pc: Optional[int] = None

    # =========================================================================
    # Program loading
    # =========================================================================

    def load(self, data: bytes) -> None:
        """Load a raw program image at 0x200 into a fresh machine.

        Raises:
            LoadError: If the image is larger than program memory
        """
        state = create_initial_state(bytes(data))
        self.state = state
        self.mode = RunMode.RUNNING
        self.fault = None
        self.exit_reason = None
        self.trace = []
        self._wait_register = None
        self._wait_pc = None
        self.timer_clock.reset()
        logger.debug("Loaded %d byte program", len(data))

    def load_rom(self, path: Union[str, Path]) -> None:
        """Load a ROM file.

        Raises:
            LoadError: If the file is larger than program memory
            OSError: If the file cannot be read
        """
        data = Path(path).read_bytes()
        try:
            self.load(data)
        except LoadError as e:
            raise LoadError(e.size, e.capacity, str(path)) from None
        logger.info("Loaded ROM %s (%d bytes)", path, len(data))

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> Optional[ExecutionTraceEntry]:
        """Execute one cycle.

        Returns:
            The trace entry for this cycle when tracing, else None

        Raises:
            RuntimeError: If the CPU is halted
            CollaboratorError: If the display or keypad fails
        """
        if self.mode is RunMode.HALTED:
            raise RuntimeError("CPU is halted")

        if self.mode is RunMode.WAITING_FOR_KEY:
            return self._resume_key_wait()

        state = self.state
        pc = state.pc
        pre_state = state.snapshot() if self.tracing else {}
        opcode = None
        key = "OP_INVALID"
        error = None

        try:
            if not 0 <= pc <= MEMORY_SIZE - 2:
                raise MemoryAccessError(pc, pc)
            opcode = state.read_word(pc)
            result = decode(opcode)
            key = result.key
            if not result.valid:
                raise DecodeError(pc, opcode)
            outcome = self.registry.execute(state, result.key, result.operands)
        except Chip8Error as e:
            error = str(e)
            self._halt_on_fault(e)
        else:
            state.cycle_count += 1
            self._apply_outcome(outcome)

        entry = None
        if self.tracing:
            entry = ExecutionTraceEntry(
                cycle=state.cycle_count,
                pc=pc,
                opcode=opcode,
                key=key,
                mnemonic=disassemble(opcode) if opcode is not None else "",
                pre_state=pre_state,
                post_state=state.snapshot(),
                error=error,
            )
            self.trace.append(entry)

        if self.mode is RunMode.RUNNING:
            self._finish_cycle()
        return entry

    def run(self, max_cycles: Optional[int] = None) -> RunResult:
        """Run until the machine halts or max_cycles instructions have run.

        The display is in exclusive mode for the duration of the run and is
        always restored, including when a collaborator raises.

        Args:
            max_cycles: Stop after this many executed instructions (no limit if None)

        Returns:
            RunResult telling quit, fault and cycle limit apart
        """
        self.display.enter_exclusive_mode()
        try:
            while self.mode is not RunMode.HALTED:
                if max_cycles is not None and self.state.cycle_count >= max_cycles:
                    self.exit_reason = ExitReason.CYCLE_LIMIT
                    break
                self.step()
        finally:
            self.display.leave_exclusive_mode()

        return RunResult(self.exit_reason, self.state.cycle_count, self.fault)

    def _apply_outcome(self, outcome: Outcome) -> None:
        state = self.state
        if outcome.flow is Flow.NEXT:
            state.pc += 2
        elif outcome.flow is Flow.SKIP:
            state.pc += 4
        elif outcome.flow is Flow.JUMP:
            state.pc = outcome.target
        elif outcome.flow is Flow.WAIT_KEY:
            self._wait_pc = state.pc
            state.pc += 2
            self.mode = RunMode.WAITING_FOR_KEY
            self._wait_register = outcome.register
            logger.debug("Waiting for key press into V%X", outcome.register)

    def _resume_key_wait(self) -> Optional[ExecutionTraceEntry]:
        """Finish a suspended FX0A cycle.

        When tracing, the cycle gets a second trace entry under the FX0A
        address showing the register write (or the halt on quit).
        """
        state = self.state
        pre_state = state.snapshot() if self.tracing else {}

        event = self.keypad.wait()
        if event.is_quit:
            self._halt(ExitReason.QUIT)
        else:
            state.set_register(self._wait_register, event.key)
            logger.debug("Key %X stored in V%X", event.key, self._wait_register)
            self._wait_register = None
            self.mode = RunMode.RUNNING

        entry = None
        if self.tracing:
            opcode = state.read_word(self._wait_pc)
            entry = ExecutionTraceEntry(
                cycle=state.cycle_count,
                pc=self._wait_pc,
                opcode=opcode,
                key="OP_LD_KEY",
                mnemonic=disassemble(opcode),
                pre_state=pre_state,
                post_state=state.snapshot(),
            )
            self.trace.append(entry)

        if self.mode is RunMode.RUNNING:
            self._finish_cycle()
        return entry

    def _finish_cycle(self) -> None:
        """Render, poll the keypad and tick the timers."""
        state = self.state

        if state.framebuffer_dirty:
            state.framebuffer_dirty = False
            self.display.render(state.framebuffer_rows())

        state.reset_keypad()
        event = self.keypad.poll()
        if event is not None:
            if event.is_quit:
                self._halt(ExitReason.QUIT)
            else:
                state.press_key(event.key)

        if self.timer_clock.due():
            tick_timers(state)

    def _halt(self, reason: ExitReason) -> None:
        self.mode = RunMode.HALTED
        self.state.halted = True
        self.exit_reason = reason
        logger.info("Halted (%s) after %d cycles", reason.value, self.state.cycle_count)

    def _halt_on_fault(self, error: Chip8Error) -> None:
        self.fault = error
        logger.error("Fatal: %s", error)
        self._halt(ExitReason.FAULT)

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_register(self, x: int) -> int:
        return self.state.get_register(x)

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    def get_pc(self) -> int:
        return self.state.pc

    def get_index(self) -> int:
        return self.state.index

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_halted(self) -> bool:
        return self.mode is RunMode.HALTED

    def is_waiting_for_key(self) -> bool:
        return self.mode is RunMode.WAITING_FOR_KEY

    def get_framebuffer(self) -> Framebuffer:
        return self.state.framebuffer_rows()

    def memory_dump(self, start: int = 0, end: int = MEMORY_SIZE) -> str:
        return self.state.format_memory_dump(start, end)

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("CHIP-8 EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            opcode = f"{entry.opcode:04X}" if entry.opcode is not None else "----"
            print(f"\n[Cycle {entry.cycle}] 0x{entry.pc:03X}  {opcode}  {entry.mnemonic:<18} {status}")

            pre_regs = entry.pre_state.get("registers", [])
            post_regs = entry.post_state.get("registers", [])
            changes = [
                f"V{x:X}: {before} → {after}"
                for x, (before, after) in enumerate(zip(pre_regs, post_regs))
                if before != after
            ]
            if entry.pre_state.get("index") != entry.post_state.get("index"):
                changes.append(f"I: {entry.pre_state['index']} → {entry.post_state['index']}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        summary = self.get_summary()
        print(f"  Registers: {summary['registers']}")
        print(f"  Cycles: {summary['cycles']}")
        print(f"  Halted: {summary['halted']}")
        if summary["fault"]:
            print(f"  Fault: {summary['fault']}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "exit_reason": self.exit_reason.value if self.exit_reason else None,
            "registers": self.dump_registers(),
            "pc": self.get_pc(),
            "stack_depth": self.state.sp,
            "delay_timer": self.state.delay_timer,
            "sound_timer": self.state.sound_timer,
            "trace_length": len(self.trace),
            "fault": str(self.fault) if self.fault else None,
        }
