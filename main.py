#!/usr/bin/env python3
"""chip8-vm Command Line Interface.

Run CHIP-8 ROMs in the terminal.

Usage:
    python main.py --rom roms/PONG
    python main.py --rom roms/IBM --headless --max-cycles 200
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from chip8_vm import Chip8CPU, ExitReason, HeadlessDisplay, LoadError, ScriptedKeypad
from chip8_vm.decode import disassemble_program
from chip8_vm.state import PROGRAM_START

EXIT_OK = 0
EXIT_FAULT = 1
EXIT_USAGE = 2


def parse_keys(script: str) -> ScriptedKeypad:
    """Build a keypad from a comma separated script such as ``"5,.,5,q"``.

    Hex digits press a key for one cycle, ``.`` is a cycle without a key and
    ``q`` quits.
    """
    keys = []
    quit_at_end = False
    for token in (t.strip().lower() for t in script.split(",") if t.strip()):
        if token == "q":
            quit_at_end = True
            break
        keys.append(None if token == "." else int(token, 16))
    return ScriptedKeypad.from_keys(keys, quit_at_end=quit_at_end)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="chip8-vm: CHIP-8 virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Play a ROM in the terminal (Esc quits)
    python main.py --rom roms/PONG

    # Run headless for 500 instructions and print the final screen
    python main.py --rom roms/IBM --headless --max-cycles 500

    # Show the disassembly of a ROM
    python main.py --rom roms/IBM --disassemble

Keypad:
    1 2 3 4        1 2 3 C
    q w e r   ->   4 5 6 D
    a s d f        7 8 9 E
    z x c v        A 0 B F
        """
    )

    parser.add_argument(
        "--rom", "-r",
        type=str,
        required=True,
        help="Path to a raw CHIP-8 program image"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Stop after this many instructions. Default: no limit"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the random number instruction"
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without the terminal display; print the last frame at exit"
    )
    parser.add_argument(
        "--keys",
        type=str,
        default="",
        help="Scripted keypad for headless runs, e.g. '5,.,5,q' (hex key, '.' none, 'q' quit)"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Record and print the full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (non-zero registers only)"
    )
    parser.add_argument(
        "--disassemble", "-d",
        action="store_true",
        help="Print the ROM disassembly and exit"
    )
    parser.add_argument(
        "--dump-memory",
        action="store_true",
        help="Print a hex dump of memory after the run"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level. Default: WARNING"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Write log records to this file instead of stderr"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        filename=args.log_file,
        format="[%(levelname)s] %(name)s: %(message)s",
    )

    rom_path = Path(args.rom)
    if not rom_path.exists():
        print(f"Error: ROM file not found: {args.rom}")
        return EXIT_USAGE

    if args.disassemble:
        for address, opcode, text in disassemble_program(rom_path.read_bytes(), PROGRAM_START):
            print(f"0x{address:03X}  {opcode:04X}  {text}")
        return EXIT_OK

    if args.keys and not args.headless:
        parser.error("--keys requires --headless")

    # Initialize CPU
    if args.headless:
        try:
            keypad = parse_keys(args.keys)
        except ValueError as e:
            parser.error(f"invalid --keys script: {e}")
        display = HeadlessDisplay()
    else:
        from chip8_vm.terminal import TerminalDisplay, TerminalKeypad
        display = TerminalDisplay()
        keypad = TerminalKeypad(display)

    cpu = Chip8CPU(display=display, keypad=keypad, seed=args.seed, trace=args.trace)

    try:
        cpu.load_rom(rom_path)
    except LoadError as e:
        print(f"Load error: {e}")
        return EXIT_USAGE

    result = cpu.run(max_cycles=args.max_cycles)

    # Output
    if args.headless and not args.quiet and display.last_frame is not None:
        print(display.as_text())

    if args.trace:
        cpu.print_trace()
    elif not args.quiet:
        print()
        summary = cpu.get_summary()
        print(f"Cycles: {summary['cycles']}")
        print(f"Exit: {summary['exit_reason']}")
        print(f"Registers: {summary['registers']}")
        if summary['fault']:
            print(f"Fault: {summary['fault']}")
    else:
        # Quiet mode - just print non-zero registers
        regs = cpu.dump_registers()
        for reg in sorted(regs.keys()):
            if regs[reg] != 0:
                print(f"{reg}={regs[reg]}")

    if args.dump_memory:
        print(cpu.memory_dump())

    return EXIT_FAULT if result.reason is ExitReason.FAULT else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
