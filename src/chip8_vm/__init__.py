"""chip8-vm: CHIP-8 virtual machine core.

This package implements a fetch-decode-execute interpreter for the CHIP-8
base instruction set: 4KB of memory, sixteen 8-bit registers, a 16-level
call stack, 60 Hz delay and sound timers, a 64x32 monochrome framebuffer
and a 16-key hex keypad.

Architecture:
    MEMORY -> FETCH -> DECODE -> KEY -> REGISTRY -> EXECUTE -> OUTCOME
               |         |        |        |           |          |
           [PC-based] [mask    [OP_*]  [handlers]  [state]   [next/skip/
                       table]                                 jump/wait]

    After each instruction: render (if dirty) -> poll keypad -> tick timers

Modules:
    state: MachineState, the single owner of architectural state
    decode: Opcode table, decoder and disassembler
    registry: Instruction primitives keyed by OP_* names
    timers: 60 Hz timer gate
    peripherals: Display/Keypad interfaces plus headless implementations
    terminal: Curses display and keypad
    cpu: Chip8CPU processor and run loop
    errors: Fatal error taxonomy
"""

__version__ = "0.1.0"

from .errors import (
    Chip8Error,
    CollaboratorError,
    DecodeError,
    LoadError,
    MemoryAccessError,
    StackError,
    StackOverflowError,
    StackUnderflowError,
)
from .state import MachineState, create_initial_state
from .decode import DecodeResult, decode, disassemble, disassemble_program
from .registry import InstructionRegistry, Outcome, Flow
from .peripherals import KeyEvent, QUIT, HeadlessDisplay, NullKeypad, ScriptedKeypad
from .cpu import Chip8CPU, ExitReason, RunMode, RunResult

__all__ = [
    "Chip8CPU",
    "Chip8Error",
    "CollaboratorError",
    "DecodeError",
    "DecodeResult",
    "ExitReason",
    "Flow",
    "HeadlessDisplay",
    "InstructionRegistry",
    "KeyEvent",
    "LoadError",
    "MachineState",
    "MemoryAccessError",
    "NullKeypad",
    "Outcome",
    "QUIT",
    "RunMode",
    "RunResult",
    "ScriptedKeypad",
    "StackError",
    "StackOverflowError",
    "StackUnderflowError",
    "create_initial_state",
    "decode",
    "disassemble",
    "disassemble_program",
]
