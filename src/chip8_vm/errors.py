"""Error taxonomy for the CHIP-8 virtual machine.

Every fatal condition the interpreter can hit is a ``Chip8Error`` subclass
carrying the program counter (and whatever else identifies the fault), so the
run loop can halt, restore the display and hand the error back to the caller.
"""

from typing import Optional


class Chip8Error(Exception):
    """Base class for all machine errors."""


class DecodeError(Chip8Error):
    """Opcode matches no instruction of the base set."""

    def __init__(self, pc: int, opcode: int):
        self.pc = pc
        self.opcode = opcode
        super().__init__(f"unsupported opcode at 0x{pc:03X}: 0x{opcode:04X}")


class StackError(Chip8Error):
    """Call stack discipline violated."""

    operation = "stack"

    def __init__(self, pc: int, depth: int):
        self.pc = pc
        self.depth = depth
        super().__init__(f"{self.operation} at 0x{pc:03X} (stack depth {depth})")


class StackOverflowError(StackError):
    operation = "stack overflow on call"


class StackUnderflowError(StackError):
    operation = "stack underflow on return"


class MemoryAccessError(Chip8Error):
    """Address outside the 4KB address space."""

    def __init__(self, pc: int, address: int):
        self.pc = pc
        self.address = address
        super().__init__(f"memory access out of range at 0x{pc:03X}: address 0x{address:X}")


class LoadError(Chip8Error):
    """ROM image does not fit in program memory."""

    def __init__(self, size: int, capacity: int, path: Optional[str] = None):
        self.size = size
        self.capacity = capacity
        self.path = path
        source = f"ROM {path}" if path else "ROM"
        super().__init__(f"{source} is {size} bytes, program memory holds {capacity}")


class CollaboratorError(Chip8Error):
    """Display or input device failed."""
