"""chip8-vm Interactive Demo.

A Gradio web interface for running CHIP-8 programs headlessly and
inspecting the result.

Usage:
    cd /path/to/chip8-vm
    python demo/gradio_app.py

Features:
    - Upload a ROM or pick a built-in sample program
    - Script key presses for the keypad
    - See the final framebuffer, registers and a disassembled trace
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from chip8_vm import Chip8CPU, HeadlessDisplay, LoadError, ScriptedKeypad
from chip8_vm.decode import disassemble_program
from chip8_vm.peripherals import render_text


# =============================================================================
# Sample Programs
# =============================================================================

SAMPLE_PROGRAMS = {
    # Draws the font glyphs 0-9 across the top of the screen
    "Digits 0-9": bytes([
        0x60, 0x00,  # LD V0, 0x00
        0x61, 0x01,  # LD V1, 0x01
        0x62, 0x01,  # LD V2, 0x01
        0xF0, 0x29,  # LD F, V0
        0xD1, 0x25,  # DRW V1, V2, 5
        0x70, 0x01,  # ADD V0, 0x01
        0x71, 0x06,  # ADD V1, 0x06
        0x30, 0x0A,  # SE V0, 0x0A
        0x12, 0x06,  # JP 0x206
        0x12, 0x12,  # JP 0x212
    ]),

    # Splits 137 into decimal digits with FX33 and draws them
    "BCD 137": bytes([
        0x60, 0x89,  # LD V0, 0x89
        0xA3, 0x00,  # LD I, 0x300
        0xF0, 0x33,  # LD B, V0
        0xF2, 0x65,  # LD V2, [I]
        0x63, 0x00,  # LD V3, 0x00
        0x64, 0x05,  # LD V4, 0x05
        0xF0, 0x29,  # LD F, V0
        0xD3, 0x45,  # DRW V3, V4, 5
        0x73, 0x05,  # ADD V3, 0x05
        0xF1, 0x29,  # LD F, V1
        0xD3, 0x45,  # DRW V3, V4, 5
        0x73, 0x05,  # ADD V3, 0x05
        0xF2, 0x29,  # LD F, V2
        0xD3, 0x45,  # DRW V3, V4, 5
        0x12, 0x1C,  # JP 0x21C
    ]),

    # Scatters single-pixel dots at random positions
    "Random dots": bytes([
        0xC0, 0x3F,  # RND V0, 0x3F
        0xC1, 0x1F,  # RND V1, 0x1F
        0xA2, 0x0A,  # LD I, 0x20A
        0xD0, 0x11,  # DRW V0, V1, 1
        0x12, 0x00,  # JP 0x200
        0x80,        # sprite: one pixel
    ]),

    # Waits for a key and shows its hex digit
    "Show key": bytes([
        0xF0, 0x0A,  # LD V0, K
        0x00, 0xE0,  # CLS
        0xF0, 0x29,  # LD F, V0
        0x61, 0x1C,  # LD V1, 0x1C
        0x62, 0x0D,  # LD V2, 0x0D
        0xD1, 0x25,  # DRW V1, V2, 5
        0x12, 0x00,  # JP 0x200
    ]),
}


# =============================================================================
# Execution Functions
# =============================================================================

def parse_key_script(script: str) -> ScriptedKeypad:
    """Comma separated hex keys; '.' is a cycle with no key."""
    keys = []
    for token in (t.strip() for t in script.split(",") if t.strip()):
        keys.append(None if token == "." else int(token, 16))
    return ScriptedKeypad.from_keys(keys)


def run_program(sample: str, rom_file, max_cycles: int, seed: int, key_script: str) -> tuple:
    """Execute a program and return results.

    Args:
        sample: Name of a built-in sample (used when no ROM is uploaded)
        rom_file: Uploaded ROM path, or None
        max_cycles: Maximum execution cycles
        seed: Seed for the random number instruction
        key_script: Scripted key presses

    Returns:
        Tuple of (summary_text, screen_text, registers_text, trace_text)
    """
    if rom_file is not None:
        rom_path = rom_file if isinstance(rom_file, str) else rom_file.name
        data = Path(rom_path).read_bytes()
    else:
        data = SAMPLE_PROGRAMS.get(sample, b"")

    if not data:
        return "Error: No program provided", "", "", ""

    try:
        keypad = parse_key_script(key_script)
    except ValueError as e:
        return f"Error: invalid key script ({e})", "", "", ""

    display = HeadlessDisplay()
    cpu = Chip8CPU(display=display, keypad=keypad, seed=int(seed), trace=True)

    try:
        cpu.load(data)
    except LoadError as e:
        return f"Error: {e}", "", "", ""

    result = cpu.run(max_cycles=int(max_cycles))

    # Format summary
    summary = cpu.get_summary()
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Program size: {len(data)} bytes",
        f"Cycles: {summary['cycles']}",
        f"Exit: {result.reason.value}",
        f"Frames rendered: {display.frame_count}",
        f"Stack depth: {summary['stack_depth']}",
        f"Timers: DT={summary['delay_timer']} ST={summary['sound_timer']}",
    ]
    if result.fault:
        summary_lines.append(f"\nFault: {result.fault}")
    summary_text = "\n".join(summary_lines)

    screen_text = render_text(cpu.get_framebuffer(), on="█", off="·")

    # Format registers
    regs = cpu.dump_registers()
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
    ]
    for name, value in regs.items():
        marker = " *" if value != 0 else ""
        width = 3 if name in ("I", "PC") else 2
        reg_lines.append(f"  {name:>2}: 0x{value:0{width}X} ({value}){marker}")
    registers_text = "\n".join(reg_lines)

    # Format trace
    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in cpu.trace[:200]:  # Limit to 200 entries
        opcode = f"{entry.opcode:04X}" if entry.opcode is not None else "----"
        line = f"{entry.cycle:>6}  0x{entry.pc:03X}  {opcode}  {entry.mnemonic}"
        if entry.error:
            line += f"   <- {entry.error}"
        trace_lines.append(line)
    if len(cpu.trace) > 200:
        trace_lines.append(f"\n... ({len(cpu.trace) - 200} more entries)")
    trace_text = "\n".join(trace_lines)

    return summary_text, screen_text, registers_text, trace_text


def show_listing(sample: str) -> str:
    """Disassemble a sample program."""
    data = SAMPLE_PROGRAMS.get(sample, b"")
    return "\n".join(
        f"0x{address:03X}  {opcode:04X}  {text}"
        for address, opcode, text in disassemble_program(data)
    )


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="chip8-vm Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # chip8-vm: CHIP-8 Virtual Machine

        Runs a CHIP-8 program headlessly for a fixed number of instructions
        and shows the machine state it ends in.

        **Pipeline**: `fetch -> decode -> key -> registry -> outcome -> render / poll / timers`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                sample_dropdown = gr.Dropdown(
                    choices=list(SAMPLE_PROGRAMS.keys()),
                    value="Digits 0-9",
                    label="Sample Program"
                )

                listing = gr.Textbox(
                    value=show_listing("Digits 0-9"),
                    label="Disassembly",
                    lines=15,
                    interactive=False
                )

                rom_upload = gr.File(label="Or upload a ROM", type="filepath")

                gr.Markdown("### Settings")

                with gr.Row():
                    max_cycles = gr.Slider(
                        minimum=10,
                        maximum=100000,
                        value=1000,
                        step=10,
                        label="Max Cycles"
                    )
                    seed = gr.Number(value=0, label="Random Seed", precision=0)

                key_script = gr.Textbox(
                    value="",
                    label="Key Script",
                    placeholder="e.g. .,.,5,.,A (one entry per cycle)"
                )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                screen_output = gr.Textbox(
                    label="Screen (64x32)",
                    lines=32,
                    interactive=False
                )
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=10,
                        interactive=False
                    )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("Keypad Layout", open=False):
            gr.Markdown("""
            | | | | |
            |---|---|---|---|
            | `1` | `2` | `3` | `C` |
            | `4` | `5` | `6` | `D` |
            | `7` | `8` | `9` | `E` |
            | `A` | `0` | `B` | `F` |

            Key scripts list one entry per cycle: a hex digit presses that key
            for the cycle, `.` presses nothing. A key-wait instruction consumes
            entries until it finds a key.
            """)

        # Event handlers
        sample_dropdown.change(
            fn=show_listing,
            inputs=[sample_dropdown],
            outputs=[listing]
        )

        run_button.click(
            fn=run_program,
            inputs=[sample_dropdown, rom_upload, max_cycles, seed, key_script],
            outputs=[summary_output, screen_output, registers_output, trace_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
