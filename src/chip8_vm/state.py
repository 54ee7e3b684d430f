"""MachineState: architectural state of the CHIP-8 virtual machine.

This module defines the single aggregate that owns everything the
interpreter mutates. The processor passes it by reference to the
instruction handlers; nothing else holds on to it.

State Components:
    - Memory: 4096 bytes, hex font glyphs preloaded at 0x050, programs at 0x200
    - Registers: V0-VF (16 x 8-bit), VF doubling as the flag register
    - Index: I, a pointer into memory
    - PC: Program counter, always the start of a 2-byte instruction
    - Stack: 16 return addresses plus a stack pointer
    - Timers: delay and sound, 8-bit countdowns
    - Framebuffer: 64x32 monochrome pixels plus a dirty flag
    - Keypad: 16-key pressed snapshot for the current cycle
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .errors import LoadError, MemoryAccessError, StackOverflowError, StackUnderflowError


MEMORY_SIZE = 4096
PROGRAM_START = 0x200
FONT_START = 0x050
MAX_PROGRAM_SIZE = MEMORY_SIZE - PROGRAM_START

NUM_REGISTERS = 16
FLAG_REGISTER = 0xF
STACK_SIZE = 16
NUM_KEYS = 16

SCREEN_WIDTH = 64
SCREEN_HEIGHT = 32

GLYPH_HEIGHT = 5

# Hex digit sprites 0-F, 4x5 pixels each
FONT_SET = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])


def _fresh_memory() -> bytearray:
    memory = bytearray(MEMORY_SIZE)
    memory[FONT_START:FONT_START + len(FONT_SET)] = FONT_SET
    return memory


@dataclass
class MachineState:
    """Mutable CHIP-8 machine state.

    Attributes:
        memory: 4096-byte address space
        registers: V0-VF, 8-bit each
        index: Index register I
        pc: Program counter
        stack: Return address slots (STACK_SIZE of them)
        sp: Stack pointer, number of occupied slots (0-16)
        delay_timer: Delay countdown
        sound_timer: Sound countdown
        framebuffer: 64*32 pixels, row-major, one byte (0 or 1) each
        framebuffer_dirty: Framebuffer changed since it was last rendered
        keypad: Pressed state (0 or 1) of keys 0x0-0xF this cycle
        halted: Execution has stopped
        cycle_count: Number of instructions executed
    """
    memory: bytearray = field(default_factory=_fresh_memory)
    registers: bytearray = field(default_factory=lambda: bytearray(NUM_REGISTERS))
    index: int = 0
    pc: int = PROGRAM_START
    stack: List[int] = field(default_factory=lambda: [0] * STACK_SIZE)
    sp: int = 0
    delay_timer: int = 0
    sound_timer: int = 0
    framebuffer: bytearray = field(default_factory=lambda: bytearray(SCREEN_WIDTH * SCREEN_HEIGHT))
    framebuffer_dirty: bool = False
    keypad: List[int] = field(default_factory=lambda: [0] * NUM_KEYS)
    halted: bool = False
    cycle_count: int = 0

    # =========================================================================
    # Memory
    # =========================================================================

    def load_program(self, data: bytes) -> None:
        """Copy a raw program image into memory at PROGRAM_START.

        Args:
            data: Raw machine code, no header

        Raises:
            LoadError: If the image is larger than program memory
        """
        if len(data) > MAX_PROGRAM_SIZE:
            raise LoadError(len(data), MAX_PROGRAM_SIZE)
        self.memory[PROGRAM_START:PROGRAM_START + len(data)] = data

    def read_byte(self, address: int) -> int:
        if not 0 <= address < MEMORY_SIZE:
            raise MemoryAccessError(self.pc, address)
        return self.memory[address]

    def write_byte(self, address: int, value: int) -> None:
        if not 0 <= address < MEMORY_SIZE:
            raise MemoryAccessError(self.pc, address)
        self.memory[address] = value & 0xFF

    def read_word(self, address: int) -> int:
        """Read a big-endian 16-bit word (an opcode)."""
        return (self.read_byte(address) << 8) | self.read_byte(address + 1)

    # =========================================================================
    # Registers
    # =========================================================================

    def get_register(self, x: int) -> int:
        """Get value of register Vx.

        Raises:
            KeyError: If x is not a register index
        """
        if not 0 <= x < NUM_REGISTERS:
            raise KeyError(f"Invalid register: {x}")
        return self.registers[x]

    def set_register(self, x: int, value: int) -> None:
        """Set register Vx, wrapping the value to 8 bits.

        Raises:
            KeyError: If x is not a register index
        """
        if not 0 <= x < NUM_REGISTERS:
            raise KeyError(f"Invalid register: {x}")
        self.registers[x] = value & 0xFF

    def set_flag(self, value: int) -> None:
        """Write VF as a flag, normalized to 0 or 1."""
        self.registers[FLAG_REGISTER] = 1 if value else 0

    # =========================================================================
    # Call stack
    # =========================================================================

    def push(self, address: int) -> None:
        if self.sp >= STACK_SIZE:
            raise StackOverflowError(self.pc, self.sp)
        self.stack[self.sp] = address
        self.sp += 1

    def pop(self) -> int:
        if self.sp == 0:
            raise StackUnderflowError(self.pc, self.sp)
        self.sp -= 1
        return self.stack[self.sp]

    # =========================================================================
    # Framebuffer
    # =========================================================================

    def clear_framebuffer(self) -> None:
        self.framebuffer = bytearray(SCREEN_WIDTH * SCREEN_HEIGHT)
        self.framebuffer_dirty = True

    def get_pixel(self, x: int, y: int) -> int:
        return self.framebuffer[(y % SCREEN_HEIGHT) * SCREEN_WIDTH + (x % SCREEN_WIDTH)]

    def toggle_pixel(self, x: int, y: int) -> bool:
        """XOR a set pixel onto the framebuffer, wrapping coordinates.

        Returns:
            True if a lit pixel was switched off (collision)
        """
        pos = (y % SCREEN_HEIGHT) * SCREEN_WIDTH + (x % SCREEN_WIDTH)
        collision = self.framebuffer[pos] == 1
        self.framebuffer[pos] ^= 1
        return collision

    def framebuffer_rows(self) -> List[List[int]]:
        """Copy of the framebuffer as SCREEN_HEIGHT rows of SCREEN_WIDTH pixels."""
        return [
            list(self.framebuffer[y * SCREEN_WIDTH:(y + 1) * SCREEN_WIDTH])
            for y in range(SCREEN_HEIGHT)
        ]

    # =========================================================================
    # Keypad
    # =========================================================================

    def reset_keypad(self) -> None:
        self.keypad = [0] * NUM_KEYS

    def press_key(self, key: int) -> None:
        self.keypad[key & 0xF] = 1

    def is_key_pressed(self, key: int) -> bool:
        return self.keypad[key & 0xF] == 1

    # =========================================================================
    # Inspection
    # =========================================================================

    def snapshot(self) -> dict:
        """Create a copy of the current state for tracing.

        Returns:
            Dictionary with copies of registers, stack and scalar state
        """
        return {
            "registers": list(self.registers),
            "index": self.index,
            "pc": self.pc,
            "sp": self.sp,
            "stack": list(self.stack[:self.sp]),
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
            "halted": self.halted,
            "cycle_count": self.cycle_count,
            # Note: memory and framebuffer excluded from snapshot for efficiency
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Memory, register, framebuffer and keypad sizes
            - Register, timer and pixel values in range
            - PC and stack pointer within bounds

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.memory) != MEMORY_SIZE:
            return False
        if len(self.registers) != NUM_REGISTERS:
            return False
        if len(self.framebuffer) != SCREEN_WIDTH * SCREEN_HEIGHT:
            return False
        if len(self.keypad) != NUM_KEYS or len(self.stack) != STACK_SIZE:
            return False

        if any(pixel not in (0, 1) for pixel in self.framebuffer):
            return False
        if any(key not in (0, 1) for key in self.keypad):
            return False

        for timer in (self.delay_timer, self.sound_timer):
            if not 0 <= timer <= 0xFF:
                return False

        if not 0 <= self.pc < MEMORY_SIZE:
            return False
        if not 0 <= self.sp <= STACK_SIZE:
            return False
        if not 0 <= self.index <= 0xFFFF:
            return False

        if self.cycle_count < 0:
            return False

        return True

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values.

        Returns:
            Dictionary of V0-VF plus I and PC
        """
        regs = {f"V{x:X}": value for x, value in enumerate(self.registers)}
        regs["I"] = self.index
        regs["PC"] = self.pc
        return regs

    def format_memory_dump(self, start: int = 0, end: int = MEMORY_SIZE, width: int = 32) -> str:
        """Hex dump of memory[start:end], one row per ``width`` bytes."""
        lines = []
        for row_start in range(start, end, width):
            row = self.memory[row_start:min(row_start + width, end)]
            cells = "  ".join(f"{byte:02X}" for byte in row)
            lines.append(f"0x{row_start:03X}  |  {cells}")
        return "\n".join(lines)

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"V{x:X}={value:02X}" for x, value in enumerate(self.registers))
        return (
            f"[Cycle {self.cycle_count}] PC=0x{self.pc:03X} I=0x{self.index:03X} "
            f"SP={self.sp} DT={self.delay_timer} ST={self.sound_timer} {regs}"
            f"{' HALTED' if self.halted else ''}"
        )


def create_initial_state(program: bytes = b"") -> MachineState:
    """Create a fresh machine state, optionally with a program loaded.

    Args:
        program: Raw program image to place at PROGRAM_START

    Returns:
        MachineState with fonts preloaded and PC at PROGRAM_START

    Raises:
        LoadError: If the program does not fit
    """
    state = MachineState()
    if program:
        state.load_program(program)
    return state
