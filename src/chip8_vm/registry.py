"""InstructionRegistry: verified CHIP-8 instruction primitives.

This module implements the registry pattern for CHIP-8 operations: each
decoded registry key maps to one handler that mutates the machine state
and reports how control should continue.

Registry Keys:
    OP_CLS, OP_RET, OP_JP, OP_CALL, OP_JP_V0: Display clear and control flow
    OP_SE_IMM, OP_SNE_IMM, OP_SE_REG, OP_SNE_REG: Conditional skips
    OP_LD_IMM, OP_ADD_IMM, OP_LD_REG: Register loads
    OP_OR, OP_AND, OP_XOR, OP_ADD_REG, OP_SUB, OP_SHR, OP_SUBN, OP_SHL: ALU
    OP_LD_I, OP_ADD_I, OP_LD_FONT, OP_BCD, OP_STORE_REGS, OP_LOAD_REGS: Memory
    OP_RND: Random byte
    OP_DRW: Sprite draw
    OP_SKP, OP_SKNP, OP_LD_KEY: Keypad
    OP_LD_VX_DT, OP_LD_DT_VX, OP_LD_ST_VX: Timers

Each primitive has the signature (MachineState, Operands) -> Outcome.
Handlers never touch the program counter directly: the Outcome tells the
processor whether to fall through, skip, jump or suspend for a key press.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .decode import Operands
from .state import FLAG_REGISTER, FONT_START, GLYPH_HEIGHT, MachineState


class Flow(Enum):
    NEXT = "next"          # Advance to the following instruction
    SKIP = "skip"          # Skip the following instruction
    JUMP = "jump"          # Continue at an exact address
    WAIT_KEY = "wait_key"  # Suspend until a key press is stored in a register


@dataclass(frozen=True)
class Outcome:
    """Control transfer reported by an instruction handler."""
    flow: Flow
    target: Optional[int] = None
    register: Optional[int] = None


NEXT = Outcome(Flow.NEXT)
SKIP = Outcome(Flow.SKIP)


def jump(address: int) -> Outcome:
    return Outcome(Flow.JUMP, target=address)


def wait_for_key(register: int) -> Outcome:
    return Outcome(Flow.WAIT_KEY, register=register)


def skip_if(condition: bool) -> Outcome:
    return SKIP if condition else NEXT


Handler = Callable[[MachineState, Operands], Outcome]


class InstructionRegistry:
    """Verified registry of CHIP-8 primitives.

    The registry is frozen after initialization to ensure
    no runtime modifications can occur.

    Attributes:
        rng: Random source for OP_RND
        _primitives: Dictionary mapping operation keys to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self, rng: Optional[random.Random] = None):
        """Initialize registry with all instruction primitives.

        Args:
            rng: Random source for OP_RND (a fresh unseeded Random if None)
        """
        self.rng = rng if rng is not None else random.Random()
        self._primitives: Dict[str, Handler] = {}
        self._frozen = False
        self._register_all_primitives()
        self.freeze()

    def _register_all_primitives(self) -> None:
        """Register all instruction primitives."""
        # Display and control flow
        self.register("OP_CLS", self._op_cls)
        self.register("OP_RET", self._op_ret)
        self.register("OP_JP", self._op_jp)
        self.register("OP_CALL", self._op_call)
        self.register("OP_JP_V0", self._op_jp_v0)

        # Conditional skips
        self.register("OP_SE_IMM", self._op_se_imm)
        self.register("OP_SNE_IMM", self._op_sne_imm)
        self.register("OP_SE_REG", self._op_se_reg)
        self.register("OP_SNE_REG", self._op_sne_reg)

        # Register loads
        self.register("OP_LD_IMM", self._op_ld_imm)
        self.register("OP_ADD_IMM", self._op_add_imm)
        self.register("OP_LD_REG", self._op_ld_reg)

        # ALU
        self.register("OP_OR", self._op_or)
        self.register("OP_AND", self._op_and)
        self.register("OP_XOR", self._op_xor)
        self.register("OP_ADD_REG", self._op_add_reg)
        self.register("OP_SUB", self._op_sub)
        self.register("OP_SHR", self._op_shr)
        self.register("OP_SUBN", self._op_subn)
        self.register("OP_SHL", self._op_shl)

        # Index register and memory
        self.register("OP_LD_I", self._op_ld_i)
        self.register("OP_ADD_I", self._op_add_i)
        self.register("OP_LD_FONT", self._op_ld_font)
        self.register("OP_BCD", self._op_bcd)
        self.register("OP_STORE_REGS", self._op_store_regs)
        self.register("OP_LOAD_REGS", self._op_load_regs)

        # Random, display, keypad, timers
        self.register("OP_RND", self._op_rnd)
        self.register("OP_DRW", self._op_drw)
        self.register("OP_SKP", self._op_skp)
        self.register("OP_SKNP", self._op_sknp)
        self.register("OP_LD_KEY", self._op_ld_key)
        self.register("OP_LD_VX_DT", self._op_ld_vx_dt)
        self.register("OP_LD_DT_VX", self._op_ld_dt_vx)
        self.register("OP_LD_ST_VX", self._op_ld_st_vx)

    def register(self, key: str, handler: Handler) -> None:
        """Register a primitive operation.

        Args:
            key: Operation key (e.g., "OP_ADD_REG")
            handler: Function that takes (state, operands) and returns an Outcome

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register primitives: registry is frozen")
        if key in self._primitives:
            raise ValueError(f"Primitive already registered: {key}")
        self._primitives[key] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if registry is frozen."""
        return self._frozen

    def get_valid_keys(self) -> set:
        """Get set of all valid operation keys."""
        return set(self._primitives.keys())

    def execute(self, state: MachineState, key: str, operands: Operands) -> Outcome:
        """Execute a registered primitive.

        Args:
            state: Machine state, mutated in place
            key: Operation key
            operands: Decoded operands

        Returns:
            Control transfer for the processor to apply

        Raises:
            KeyError: If key not in registry
            Chip8Error: On stack or memory faults raised by the primitive
        """
        if key not in self._primitives:
            raise KeyError(f"Unknown operation key: {key}")
        return self._primitives[key](state, operands)

    # =========================================================================
    # Display and Control Flow Primitives
    # =========================================================================

    def _op_cls(self, state: MachineState, ops: Operands) -> Outcome:
        """00E0 CLS - Clear the framebuffer."""
        state.clear_framebuffer()
        return NEXT

    def _op_ret(self, state: MachineState, ops: Operands) -> Outcome:
        """00EE RET - Return to the address on top of the stack."""
        return jump(state.pop())

    def _op_jp(self, state: MachineState, ops: Operands) -> Outcome:
        """1NNN JP addr - Jump to NNN."""
        return jump(ops.nnn)

    def _op_call(self, state: MachineState, ops: Operands) -> Outcome:
        """2NNN CALL addr - Push the next instruction's address, jump to NNN."""
        state.push(state.pc + 2)
        return jump(ops.nnn)

    def _op_jp_v0(self, state: MachineState, ops: Operands) -> Outcome:
        """BNNN JP V0, addr - Jump to NNN + V0."""
        return jump(ops.nnn + state.registers[0])

    # =========================================================================
    # Conditional Skip Primitives
    # =========================================================================

    def _op_se_imm(self, state: MachineState, ops: Operands) -> Outcome:
        """3XNN - Skip next if VX == NN."""
        return skip_if(state.registers[ops.x] == ops.nn)

    def _op_sne_imm(self, state: MachineState, ops: Operands) -> Outcome:
        """4XNN - Skip next if VX != NN."""
        return skip_if(state.registers[ops.x] != ops.nn)

    def _op_se_reg(self, state: MachineState, ops: Operands) -> Outcome:
        """5XY0 - Skip next if VX == VY."""
        return skip_if(state.registers[ops.x] == state.registers[ops.y])

    def _op_sne_reg(self, state: MachineState, ops: Operands) -> Outcome:
        """9XY0 - Skip next if VX != VY."""
        return skip_if(state.registers[ops.x] != state.registers[ops.y])

    # =========================================================================
    # Register Load Primitives
    # =========================================================================

    def _op_ld_imm(self, state: MachineState, ops: Operands) -> Outcome:
        """6XNN - VX = NN."""
        state.set_register(ops.x, ops.nn)
        return NEXT

    def _op_add_imm(self, state: MachineState, ops: Operands) -> Outcome:
        """7XNN - VX += NN, wrapping, VF untouched."""
        state.set_register(ops.x, state.registers[ops.x] + ops.nn)
        return NEXT

    def _op_ld_reg(self, state: MachineState, ops: Operands) -> Outcome:
        """8XY0 - VX = VY."""
        state.set_register(ops.x, state.registers[ops.y])
        return NEXT

    # =========================================================================
    # ALU Primitives
    #
    # The flag is written after the result so that VF as a destination
    # ends up holding the flag.
    # =========================================================================

    def _op_or(self, state: MachineState, ops: Operands) -> Outcome:
        state.set_register(ops.x, state.registers[ops.x] | state.registers[ops.y])
        return NEXT

    def _op_and(self, state: MachineState, ops: Operands) -> Outcome:
        state.set_register(ops.x, state.registers[ops.x] & state.registers[ops.y])
        return NEXT

    def _op_xor(self, state: MachineState, ops: Operands) -> Outcome:
        state.set_register(ops.x, state.registers[ops.x] ^ state.registers[ops.y])
        return NEXT

    def _op_add_reg(self, state: MachineState, ops: Operands) -> Outcome:
        """8XY4 - VX += VY, VF = carry."""
        total = state.registers[ops.x] + state.registers[ops.y]
        state.set_register(ops.x, total)
        state.set_flag(total > 0xFF)
        return NEXT

    def _op_sub(self, state: MachineState, ops: Operands) -> Outcome:
        """8XY5 - VX -= VY, VF = 1 when there is no borrow."""
        vx, vy = state.registers[ops.x], state.registers[ops.y]
        state.set_register(ops.x, vx - vy)
        state.set_flag(vx >= vy)
        return NEXT

    def _op_shr(self, state: MachineState, ops: Operands) -> Outcome:
        """8XY6 - VX >>= 1, VF = bit shifted out."""
        vx = state.registers[ops.x]
        state.set_register(ops.x, vx >> 1)
        state.set_flag(vx & 0x01)
        return NEXT

    def _op_subn(self, state: MachineState, ops: Operands) -> Outcome:
        """8XY7 - VX = VY - VX, VF = 1 when there is no borrow."""
        vx, vy = state.registers[ops.x], state.registers[ops.y]
        state.set_register(ops.x, vy - vx)
        state.set_flag(vy >= vx)
        return NEXT

    def _op_shl(self, state: MachineState, ops: Operands) -> Outcome:
        """8XYE - VX <<= 1, VF = bit shifted out."""
        vx = state.registers[ops.x]
        state.set_register(ops.x, vx << 1)
        state.set_flag(vx & 0x80)
        return NEXT

    # =========================================================================
    # Index Register and Memory Primitives
    # =========================================================================

    def _op_ld_i(self, state: MachineState, ops: Operands) -> Outcome:
        """ANNN - I = NNN."""
        state.index = ops.nnn
        return NEXT

    def _op_add_i(self, state: MachineState, ops: Operands) -> Outcome:
        """FX1E - I += VX, VF untouched."""
        state.index = (state.index + state.registers[ops.x]) & 0xFFFF
        return NEXT

    def _op_ld_font(self, state: MachineState, ops: Operands) -> Outcome:
        """FX29 - I = address of the glyph for the low nibble of VX."""
        state.index = FONT_START + (state.registers[ops.x] & 0xF) * GLYPH_HEIGHT
        return NEXT

    def _op_bcd(self, state: MachineState, ops: Operands) -> Outcome:
        """FX33 - Store hundreds, tens and units of VX at I, I+1, I+2."""
        value = state.registers[ops.x]
        state.write_byte(state.index, value // 100)
        state.write_byte(state.index + 1, (value % 100) // 10)
        state.write_byte(state.index + 2, value % 10)
        return NEXT

    def _op_store_regs(self, state: MachineState, ops: Operands) -> Outcome:
        """FX55 - Store V0..VX at I..I+X. I is left unchanged."""
        for reg in range(ops.x + 1):
            state.write_byte(state.index + reg, state.registers[reg])
        return NEXT

    def _op_load_regs(self, state: MachineState, ops: Operands) -> Outcome:
        """FX65 - Load V0..VX from I..I+X. I is left unchanged."""
        for reg in range(ops.x + 1):
            state.registers[reg] = state.read_byte(state.index + reg)
        return NEXT

    # =========================================================================
    # Random, Display, Keypad and Timer Primitives
    # =========================================================================

    def _op_rnd(self, state: MachineState, ops: Operands) -> Outcome:
        """CXNN - VX = random byte & NN."""
        state.set_register(ops.x, self.rng.randint(0, 0xFF) & ops.nn)
        return NEXT

    def _op_drw(self, state: MachineState, ops: Operands) -> Outcome:
        """DXYN DRW - XOR an 8xN sprite from memory at I onto (VX, VY).

        Every pixel coordinate wraps around the screen edges. VF is cleared,
        then set to 1 if any lit pixel is switched off.
        """
        vx, vy = state.registers[ops.x], state.registers[ops.y]
        state.registers[FLAG_REGISTER] = 0

        collision = False
        for row in range(ops.n):
            sprite_row = state.read_byte(state.index + row)
            for col in range(8):
                if sprite_row & (0x80 >> col):
                    if state.toggle_pixel(vx + col, vy + row):
                        collision = True

        state.set_flag(collision)
        state.framebuffer_dirty = True
        return NEXT

    def _op_skp(self, state: MachineState, ops: Operands) -> Outcome:
        """EX9E - Skip next if key VX is pressed."""
        return skip_if(state.is_key_pressed(state.registers[ops.x]))

    def _op_sknp(self, state: MachineState, ops: Operands) -> Outcome:
        """EXA1 - Skip next if key VX is not pressed."""
        return skip_if(not state.is_key_pressed(state.registers[ops.x]))

    def _op_ld_key(self, state: MachineState, ops: Operands) -> Outcome:
        """FX0A - Suspend until a key is pressed, then store it in VX."""
        return wait_for_key(ops.x)

    def _op_ld_vx_dt(self, state: MachineState, ops: Operands) -> Outcome:
        state.set_register(ops.x, state.delay_timer)
        return NEXT

    def _op_ld_dt_vx(self, state: MachineState, ops: Operands) -> Outcome:
        state.delay_timer = state.registers[ops.x]
        return NEXT

    def _op_ld_st_vx(self, state: MachineState, ops: Operands) -> Outcome:
        state.sound_timer = state.registers[ops.x]
        return NEXT


# Singleton registry instance
_registry: Optional[InstructionRegistry] = None


def get_registry() -> InstructionRegistry:
    """Get the shared instruction registry instance.

    Returns:
        The frozen InstructionRegistry instance
    """
    global _registry
    if _registry is None:
        _registry = InstructionRegistry()
    return _registry
