"""Instruction decoding for the CHIP-8 base instruction set.

Architecture:
    Raw opcode -> decode() -> (operation_key, operands) -> Registry -> Execute

An opcode is matched against OPCODE_TABLE, an ordered list of
(mask, pattern) rows in the style of a hardware decode ROM. The first row
with ``opcode & mask == pattern`` names the registry key that executes it.
Opcodes matching no row decode to OP_INVALID; the processor turns that into
a DecodeError carrying the faulting address.
"""

from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Tuple


class Operands(NamedTuple):
    """Fields extracted from a 16-bit opcode."""
    family: int  # Top nibble
    x: int       # Register index, bits 8-11
    y: int       # Register index, bits 4-7
    n: int       # 4-bit immediate
    nn: int      # 8-bit immediate
    nnn: int     # 12-bit address


class OpcodeRow(NamedTuple):
    mask: int
    pattern: int
    key: str
    mnemonic: str


# mask, expected result, registry key, mnemonic template
OPCODE_TABLE: List[OpcodeRow] = [
    OpcodeRow(0xFFFF, 0x00E0, "OP_CLS", "CLS"),
    OpcodeRow(0xFFFF, 0x00EE, "OP_RET", "RET"),
    OpcodeRow(0xF000, 0x1000, "OP_JP", "JP 0x{nnn:03X}"),
    OpcodeRow(0xF000, 0x2000, "OP_CALL", "CALL 0x{nnn:03X}"),
    OpcodeRow(0xF000, 0x3000, "OP_SE_IMM", "SE V{x:X}, 0x{nn:02X}"),
    OpcodeRow(0xF000, 0x4000, "OP_SNE_IMM", "SNE V{x:X}, 0x{nn:02X}"),
    OpcodeRow(0xF00F, 0x5000, "OP_SE_REG", "SE V{x:X}, V{y:X}"),
    OpcodeRow(0xF000, 0x6000, "OP_LD_IMM", "LD V{x:X}, 0x{nn:02X}"),
    OpcodeRow(0xF000, 0x7000, "OP_ADD_IMM", "ADD V{x:X}, 0x{nn:02X}"),
    OpcodeRow(0xF00F, 0x8000, "OP_LD_REG", "LD V{x:X}, V{y:X}"),
    OpcodeRow(0xF00F, 0x8001, "OP_OR", "OR V{x:X}, V{y:X}"),
    OpcodeRow(0xF00F, 0x8002, "OP_AND", "AND V{x:X}, V{y:X}"),
    OpcodeRow(0xF00F, 0x8003, "OP_XOR", "XOR V{x:X}, V{y:X}"),
    OpcodeRow(0xF00F, 0x8004, "OP_ADD_REG", "ADD V{x:X}, V{y:X}"),
    OpcodeRow(0xF00F, 0x8005, "OP_SUB", "SUB V{x:X}, V{y:X}"),
    OpcodeRow(0xF00F, 0x8006, "OP_SHR", "SHR V{x:X}"),
    OpcodeRow(0xF00F, 0x8007, "OP_SUBN", "SUBN V{x:X}, V{y:X}"),
    OpcodeRow(0xF00F, 0x800E, "OP_SHL", "SHL V{x:X}"),
    OpcodeRow(0xF00F, 0x9000, "OP_SNE_REG", "SNE V{x:X}, V{y:X}"),
    OpcodeRow(0xF000, 0xA000, "OP_LD_I", "LD I, 0x{nnn:03X}"),
    OpcodeRow(0xF000, 0xB000, "OP_JP_V0", "JP V0, 0x{nnn:03X}"),
    OpcodeRow(0xF000, 0xC000, "OP_RND", "RND V{x:X}, 0x{nn:02X}"),
    OpcodeRow(0xF000, 0xD000, "OP_DRW", "DRW V{x:X}, V{y:X}, {n}"),
    OpcodeRow(0xF0FF, 0xE09E, "OP_SKP", "SKP V{x:X}"),
    OpcodeRow(0xF0FF, 0xE0A1, "OP_SKNP", "SKNP V{x:X}"),
    OpcodeRow(0xF0FF, 0xF007, "OP_LD_VX_DT", "LD V{x:X}, DT"),
    OpcodeRow(0xF0FF, 0xF00A, "OP_LD_KEY", "LD V{x:X}, K"),
    OpcodeRow(0xF0FF, 0xF015, "OP_LD_DT_VX", "LD DT, V{x:X}"),
    OpcodeRow(0xF0FF, 0xF018, "OP_LD_ST_VX", "LD ST, V{x:X}"),
    OpcodeRow(0xF0FF, 0xF01E, "OP_ADD_I", "ADD I, V{x:X}"),
    OpcodeRow(0xF0FF, 0xF029, "OP_LD_FONT", "LD F, V{x:X}"),
    OpcodeRow(0xF0FF, 0xF033, "OP_BCD", "LD B, V{x:X}"),
    OpcodeRow(0xF0FF, 0xF055, "OP_STORE_REGS", "LD [I], V{x:X}"),
    OpcodeRow(0xF0FF, 0xF065, "OP_LOAD_REGS", "LD V{x:X}, [I]"),
]

VALID_KEYS = frozenset(row.key for row in OPCODE_TABLE)


@dataclass(frozen=True)
class DecodeResult:
    """Result of instruction decode operation.

    Attributes:
        key: Operation key (e.g., "OP_ADD_REG")
        operands: Fields extracted from the opcode
        valid: Whether decode succeeded
        error: Error message if decode failed
        opcode: Raw 16-bit opcode
    """
    key: str
    operands: Operands
    valid: bool
    error: Optional[str] = None
    opcode: int = 0


def extract_operands(opcode: int) -> Operands:
    return Operands(
        family=(opcode & 0xF000) >> 12,
        x=(opcode & 0x0F00) >> 8,
        y=(opcode & 0x00F0) >> 4,
        n=opcode & 0x000F,
        nn=opcode & 0x00FF,
        nnn=opcode & 0x0FFF,
    )


def _match(opcode: int) -> Optional[OpcodeRow]:
    for row in OPCODE_TABLE:
        if opcode & row.mask == row.pattern:
            return row
    return None


def decode(opcode: int) -> DecodeResult:
    """Decode an opcode to operation key and operands.

    Args:
        opcode: 16-bit instruction word

    Returns:
        DecodeResult; ``valid`` is False and ``key`` is OP_INVALID when the
        opcode is not part of the instruction set
    """
    opcode &= 0xFFFF
    operands = extract_operands(opcode)
    row = _match(opcode)
    if row is None:
        return DecodeResult(
            key="OP_INVALID",
            operands=operands,
            valid=False,
            error=f"Unsupported opcode: 0x{opcode:04X}",
            opcode=opcode,
        )
    return DecodeResult(row.key, operands, True, opcode=opcode)


def disassemble(opcode: int) -> str:
    """Render an opcode as assembly text, e.g. ``"DRW V0, V1, 5"``.

    Opcodes outside the instruction set render as a data word.
    """
    opcode &= 0xFFFF
    row = _match(opcode)
    if row is None:
        return f"DW 0x{opcode:04X}"
    return row.mnemonic.format(**extract_operands(opcode)._asdict())


def disassemble_program(data: bytes, base: int = 0x200) -> List[Tuple[int, int, str]]:
    """Disassemble a ROM image two bytes at a time.

    Args:
        data: Raw program bytes
        base: Load address of the first byte

    Returns:
        List of (address, opcode, text); a trailing odd byte is listed as
        ``DB`` data with its byte value as the opcode
    """
    listing = []
    for offset in range(0, len(data) - 1, 2):
        opcode = (data[offset] << 8) | data[offset + 1]
        listing.append((base + offset, opcode, disassemble(opcode)))
    if len(data) % 2:
        last = data[-1]
        listing.append((base + len(data) - 1, last, f"DB 0x{last:02X}"))
    return listing
