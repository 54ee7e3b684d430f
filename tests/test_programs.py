"""Integration tests for small CHIP-8 programs."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm import Chip8CPU, ExitReason, HeadlessDisplay, KeyEvent, ScriptedKeypad
from chip8_vm.timers import TIMER_INTERVAL


class SteppingClock:
    """Clock that moves forward a little over one timer interval per sample."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        self.now += TIMER_INTERVAL * 1.01
        return self.now


def assemble(*opcodes):
    data = bytearray()
    for opcode in opcodes:
        data += bytes([opcode >> 8, opcode & 0xFF])
    return bytes(data)


SUM_1_TO_10 = assemble(
    0x6000,  # 200: LD V0, 0x00     ; sum = 0
    0x6101,  # 202: LD V1, 0x01     ; counter = 1
    0x8014,  # 204: ADD V0, V1      ; sum += counter
    0x7101,  # 206: ADD V1, 0x01    ; counter++
    0x310B,  # 208: SE V1, 0x0B     ; done at 11
    0x1204,  # 20A: JP 0x204
    0x120C,  # 20C: JP 0x20C        ; spin
)

FIBONACCI = assemble(
    0x6000,  # 200: LD V0, 0x00     ; fib(0)
    0x6101,  # 202: LD V1, 0x01     ; fib(1)
    0x620A,  # 204: LD V2, 0x0A     ; iterations
    0x8310,  # 206: LD V3, V1       ; temp = curr
    0x8104,  # 208: ADD V1, V0      ; curr += prev
    0x8030,  # 20A: LD V0, V3       ; prev = temp
    0x72FF,  # 20C: ADD V2, 0xFF    ; iterations--
    0x3200,  # 20E: SE V2, 0x00
    0x1206,  # 210: JP 0x206
    0x1212,  # 212: JP 0x212
)

MULTIPLY = assemble(
    0x6000,  # 200: LD V0, 0x00
    0x6107,  # 202: LD V1, 0x07
    0x6206,  # 204: LD V2, 0x06
    0x8014,  # 206: ADD V0, V1
    0x72FF,  # 208: ADD V2, 0xFF
    0x3200,  # 20A: SE V2, 0x00
    0x1206,  # 20C: JP 0x206
    0x120E,  # 20E: JP 0x20E
)


@pytest.fixture
def cpu():
    return Chip8CPU(seed=0)


class TestArithmeticPrograms:
    """Loops computing known values."""

    def test_sum_1_to_10(self, cpu):
        """Sum of 1 to 10 should be 55."""
        cpu.load(SUM_1_TO_10)
        result = cpu.run(max_cycles=500)

        assert result.reason is ExitReason.CYCLE_LIMIT
        assert cpu.get_register(0) == 55
        assert cpu.get_register(1) == 11
        assert cpu.get_pc() == 0x20C

    def test_sum_cycle_count(self, cpu):
        """2 init + 9 full iterations of 4 + a final iteration of 3."""
        cpu.load(SUM_1_TO_10)
        cpu.run(max_cycles=41)
        assert cpu.get_pc() == 0x20C
        assert cpu.get_register(0) == 55

    def test_fibonacci(self, cpu):
        """After 10 iterations: F(10) = 55, F(11) = 89."""
        cpu.load(FIBONACCI)
        cpu.run(max_cycles=200)

        assert cpu.get_register(0) == 55
        assert cpu.get_register(1) == 89
        assert cpu.get_register(2) == 0
        assert cpu.get_register(0xF) == 0
        assert cpu.get_pc() == 0x212

    def test_multiply(self, cpu):
        """7 * 6 by repeated addition."""
        cpu.load(MULTIPLY)
        cpu.run(max_cycles=200)
        assert cpu.get_register(0) == 42

    def test_carry_out(self, cpu):
        cpu.load(assemble(0x60FF, 0x6101, 0x8014))
        cpu.run(max_cycles=3)
        assert cpu.get_register(0) == 0x00
        assert cpu.get_register(0xF) == 1

    def test_borrow_flag(self, cpu):
        cpu.load(assemble(0x6003, 0x6105, 0x8015))
        cpu.run(max_cycles=3)
        assert cpu.get_register(0) == 0xFE
        assert cpu.get_register(0xF) == 0


class TestSubroutines:
    """Call and return within programs."""

    def test_repeated_call(self, cpu):
        cpu.load(assemble(
            0x2208,  # 200: CALL 0x208
            0x2208,  # 202: CALL 0x208
            0x2208,  # 204: CALL 0x208
            0x1206,  # 206: JP 0x206
            0x7005,  # 208: ADD V0, 0x05
            0x00EE,  # 20A: RET
        ))
        cpu.run(max_cycles=50)

        assert cpu.get_register(0) == 15
        assert cpu.state.sp == 0
        assert cpu.get_pc() == 0x206

    def test_nested_call(self, cpu):
        cpu.load(assemble(
            0x2206,  # 200: CALL 0x206
            0x1202,  # 202: JP 0x202
            0x0000,  # 204: (unused)
            0x220C,  # 206: CALL 0x20C
            0x7001,  # 208: ADD V0, 0x01
            0x00EE,  # 20A: RET
            0x7110,  # 20C: ADD V1, 0x10
            0x00EE,  # 20E: RET
        ))
        cpu.run(max_cycles=20)

        assert cpu.get_register(0) == 1
        assert cpu.get_register(1) == 0x10
        assert cpu.state.sp == 0
        assert cpu.get_pc() == 0x202

    def test_computed_jump(self, cpu):
        cpu.load(assemble(
            0x6004,  # 200: LD V0, 0x04
            0xB204,  # 202: JP V0, 0x204  -> 0x208
            0x6101,  # 204: LD V1, 0x01
            0x6202,  # 206: LD V2, 0x02
            0x6303,  # 208: LD V3, 0x03
        ))
        cpu.run(max_cycles=3)

        assert cpu.get_register(1) == 0
        assert cpu.get_register(2) == 0
        assert cpu.get_register(3) == 3


class TestMemoryPrograms:
    """Programs going through the index register."""

    def test_bcd_then_load(self, cpu):
        cpu.load(assemble(
            0x6089,  # LD V0, 0x89   ; 137
            0xA300,  # LD I, 0x300
            0xF033,  # LD B, V0
            0xF265,  # LD V2, [I]
        ))
        cpu.run(max_cycles=4)

        assert [cpu.get_register(x) for x in range(3)] == [1, 3, 7]
        assert cpu.get_index() == 0x300

    def test_store_clear_reload(self, cpu):
        cpu.load(assemble(
            0x6011,  # LD V0, 0x11
            0x6122,  # LD V1, 0x22
            0x6233,  # LD V2, 0x33
            0xA400,  # LD I, 0x400
            0xF255,  # LD [I], V2
            0x6000,  # LD V0, 0x00
            0x6100,  # LD V1, 0x00
            0x6200,  # LD V2, 0x00
            0xF165,  # LD V1, [I]
        ))
        cpu.run(max_cycles=9)

        assert cpu.get_register(0) == 0x11
        assert cpu.get_register(1) == 0x22
        assert cpu.get_register(2) == 0x00
        assert bytes(cpu.state.memory[0x400:0x403]) == bytes([0x11, 0x22, 0x33])

    def test_self_modifying_code(self, cpu):
        """A program can overwrite an instruction ahead of the counter."""
        cpu.load(assemble(
            0x6070,  # 200: LD V0, 0x70
            0x6107,  # 202: LD V1, 0x07
            0xA208,  # 204: LD I, 0x208
            0xF155,  # 206: LD [I], V1   ; 208 becomes ADD V0, 0x07
        ))
        assert cpu.state.read_word(0x208) == 0x0000
        cpu.run(max_cycles=5)
        assert cpu.state.read_word(0x208) == 0x7007
        assert cpu.get_register(0) == 0x77


class TestDrawingPrograms:
    """Programs drawing font glyphs."""

    def test_draw_and_erase(self):
        display = HeadlessDisplay()
        cpu = Chip8CPU(display=display)
        cpu.load(assemble(
            0x6000,  # LD V0, 0x00
            0xF029,  # LD F, V0
            0xD005,  # DRW V0, V0, 5
            0xD005,  # DRW V0, V0, 5
        ))
        cpu.run(max_cycles=3)
        assert cpu.get_register(0xF) == 0
        assert display.last_frame[0][:5] == [1, 1, 1, 1, 0]
        assert display.last_frame[1][:5] == [1, 0, 0, 1, 0]

        cpu.step()
        assert cpu.get_register(0xF) == 1
        assert all(pixel == 0 for row in display.last_frame for pixel in row)
        assert display.frame_count == 2

    def test_sprite_wraps_around_corner(self):
        display = HeadlessDisplay()
        cpu = Chip8CPU(display=display)
        cpu.load(assemble(
            0x603E,  # LD V0, 0x3E   ; x = 62
            0x611E,  # LD V1, 0x1E   ; y = 30
            0x6208,  # LD V2, 0x08
            0xF229,  # LD F, V2      ; glyph 8: F0 90 F0 90 F0
            0xD015,  # DRW V0, V1, 5
        ))
        cpu.run(max_cycles=5)

        frame = display.last_frame
        assert frame[30][62:] == [1, 1]
        assert frame[30][:2] == [1, 1]
        assert frame[31][62:] == [1, 0]
        assert frame[0][:2] == [1, 1]

    def test_show_pressed_key(self):
        """Wait for a key, then draw its hex digit."""
        display = HeadlessDisplay()
        keypad = ScriptedKeypad([KeyEvent.press(0xA)])
        cpu = Chip8CPU(display=display, keypad=keypad)
        cpu.load(assemble(
            0xF00A,  # LD V0, K
            0xF029,  # LD F, V0
            0x6100,  # LD V1, 0x00
            0xD115,  # DRW V1, V1, 5
            0x1208,  # JP 0x208
        ))
        result = cpu.run(max_cycles=20)

        assert result.reason is ExitReason.CYCLE_LIMIT
        assert cpu.get_register(0) == 0xA
        rows = [display.last_frame[y][:4] for y in range(5)]
        assert rows == [
            [1, 1, 1, 1],
            [1, 0, 0, 1],
            [1, 1, 1, 1],
            [1, 0, 0, 1],
            [1, 0, 0, 1],
        ]


class TestTimerPrograms:
    """Programs polling the delay timer."""

    def test_delay_loop_finishes(self):
        cpu = Chip8CPU(clock=SteppingClock())
        cpu.load(assemble(
            0x6A03,  # 200: LD VA, 0x03
            0xFA15,  # 202: LD DT, VA
            0xFB07,  # 204: LD VB, DT
            0x3B00,  # 206: SE VB, 0x00
            0x1204,  # 208: JP 0x204
            0x120A,  # 20A: JP 0x20A
        ))
        cpu.run(max_cycles=100)

        assert cpu.get_pc() == 0x20A
        assert cpu.state.delay_timer == 0
        assert cpu.get_register(0xB) == 0


class TestProgramFromFile:
    """Test loading ROM images from disk."""

    def test_load_sum_file(self, cpu, tmp_path):
        rom = tmp_path / "sum.ch8"
        rom.write_bytes(SUM_1_TO_10)
        cpu.load_rom(rom)
        cpu.run(max_cycles=500)
        assert cpu.get_register(0) == 55

    def test_load_fibonacci_file(self, cpu, tmp_path):
        rom = tmp_path / "fib.ch8"
        rom.write_bytes(FIBONACCI)
        cpu.load_rom(str(rom))
        cpu.run(max_cycles=200)
        assert cpu.get_register(1) == 89
