"""chip8-vm Interactive Demo.

A Gradio web interface for running and inspecting CHIP-8 programs.

Usage:
    cd /path/to/chip8-vm
    python demo/gradio_app.py

Features:
    - Paste hex programs or pick an example, or upload a ROM image
    - Run for a number of 60 Hz frames on a simulated clock
    - Hold keys to feed the keypad and the blocking key read
    - See the display (with phosphor decay), registers and disassembly
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
import numpy as np

from chip8_vm import (
    Chip8Error,
    Chip8VM,
    ClockScheduler,
    VMConfig,
    disassemble,
    parse_program,
)
from chip8_vm.render import PhosphorDecay


# =============================================================================
# Example Programs
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Add and clear": """6005    ; V0 = 5
6105    ; V1 = 5
8014    ; V0 += V1 -> 10, VF = 0
00E0    ; clear screen""",

    "BCD of 157": """6A9D    ; VA = 157
A300    ; I = 0x300
FA33    ; digits of VA at I..I+2
F265    ; V0..V2 = 1, 5, 7
6300    ; x = 0
6400    ; y = 0
F029    ; I = glyph(V0)
D345    ; draw
7305    ; x += 5
F129    ; I = glyph(V1)
D345
7305
F229    ; I = glyph(V2)
D345
121C    ; spin""",

    "Wait for key": """00E0    ; clear screen
F00A    ; V0 = next key pressed
F029    ; I = glyph(V0)
6300    ; x = 0
6400    ; y = 0
D345    ; draw the key's digit
1200    ; start over""",

    "Custom": ""
}

SCALE = 8


# =============================================================================
# Execution Functions
# =============================================================================

def render_image(decay: PhosphorDecay) -> np.ndarray:
    """Convert decay intensities to an upscaled RGB image."""
    grid = np.array(decay.rows(), dtype=np.float32)
    grid = np.kron(grid, np.ones((SCALE, SCALE), dtype=np.float32))
    image = np.zeros(grid.shape + (3,), dtype=np.uint8)
    image[..., 1] = (grid * 255).astype(np.uint8)
    image[..., 0] = (grid * 64).astype(np.uint8)
    return image


def run_program(program: str, rom_file, frames: int, held_keys: list, seed: float) -> tuple:
    """Execute a program for ``frames`` frames and return results.

    Args:
        program: Hex program text (ignored when a ROM is uploaded)
        rom_file: Uploaded ROM path, or None
        frames: Number of 60 Hz frames to simulate
        held_keys: Key labels ("0".."F") held for the whole run
        seed: RND seed

    Returns:
        Tuple of (image, summary_text, registers_text, listing_text)
    """
    blank = np.zeros((32 * SCALE, 64 * SCALE, 3), dtype=np.uint8)
    if not rom_file and not program.strip():
        return blank, "Error: No program provided", "", ""

    try:
        vm = Chip8VM(VMConfig(seed=int(seed or 0)))
        if rom_file:
            image = Path(rom_file).read_bytes()
        else:
            image = parse_program(program)
        vm.load_program(image)

        mask = 0
        for label in held_keys or []:
            mask |= 1 << int(label, 16)
        vm.set_keyboard(mask)

        decay = PhosphorDecay()
        clock = ClockScheduler(vm, listeners=[decay], clock=lambda: 0)

        error_msg = None
        try:
            for _ in range(int(frames)):
                if vm.awaiting_key and held_keys:
                    vm.deliver_key(int(held_keys[0], 16))
                clock.advance(clock.frame_period)
        except Chip8Error as e:
            error_msg = str(e)

        summary = vm.get_summary()
        summary_lines = [
            "EXECUTION SUMMARY",
            "=" * 40,
            f"Frames: {clock.frame_count}",
            f"Cycles: {summary['cycles']}",
            f"Halted: {'Yes' if summary['halted'] else 'No'}",
            f"Waiting for key: {'Yes' if summary['awaiting_key'] else 'No'}",
            f"Lit pixels: {summary['lit_pixels']}",
        ]
        if error_msg:
            summary_lines.append(f"\nFault: {error_msg}")
        summary_text = "\n".join(summary_lines)

        reg_lines = ["REGISTERS", "=" * 30]
        for reg, value in summary["registers"].items():
            marker = " *" if value != 0 else ""
            reg_lines.append(f"  {reg}: {value:>3} ({value:02X}){marker}")
        reg_lines.append("")
        reg_lines.append(f"  I:  {summary['index']:03X}")
        reg_lines.append(f"  PC: {summary['pc']:03X}")
        reg_lines.append(f"  DT: {summary['delay_timer']}  ST: {summary['sound_timer']}")
        reg_lines.append(f"  Stack depth: {summary['stack_depth']}")
        registers_text = "\n".join(reg_lines)

        listing = disassemble(image[:512])
        listing_lines = ["DISASSEMBLY", "=" * 40]
        listing_lines.extend(f"{addr:03X}: {ins}" for addr, ins in listing)
        listing_text = "\n".join(listing_lines)

        return render_image(decay), summary_text, registers_text, listing_text

    except (ValueError, Chip8Error) as e:
        return blank, f"Error: {str(e)}", "", ""


def load_example(example_name: str) -> str:
    """Load an example program."""
    return EXAMPLE_PROGRAMS.get(example_name, "")


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="chip8-vm Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # chip8-vm: CHIP-8 Virtual Machine

        Runs CHIP-8 programs on a simulated dual-rate clock: instructions at
        700 Hz, timers and display frames at 60 Hz.

        **Pipeline**: `fetch -> decode -> Instruction -> registry -> execute -> state`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="BCD of 157",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=EXAMPLE_PROGRAMS["BCD of 157"],
                    label="Hex Words",
                    lines=15,
                    placeholder="6005 6105 8014 ..."
                )

                rom_input = gr.File(label="Or upload a ROM image", type="filepath")

                gr.Markdown("### Settings")

                with gr.Row():
                    frames = gr.Slider(
                        minimum=1,
                        maximum=600,
                        value=60,
                        step=1,
                        label="Frames (60 per second)"
                    )
                    seed = gr.Number(value=0, label="RND Seed", precision=0)

                held_keys = gr.CheckboxGroup(
                    choices=[f"{k:X}" for k in range(16)],
                    label="Held Keys"
                )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                screen_output = gr.Image(label="Display", type="numpy")
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Registers",
                        lines=10,
                        interactive=False
                    )

                listing_output = gr.Textbox(
                    label="Disassembly",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("Opcode Reference", open=False):
            gr.Markdown("""
            | Opcode | Meaning | Opcode | Meaning |
            |--------|---------|--------|---------|
            | `00E0` | clear screen | `8XY4` | Vx += Vy, VF = carry |
            | `00EE` | return | `8XY5` | Vx -= Vy, VF = no borrow |
            | `1NNN` | jump | `8XY6` | Vx >>= 1, VF = old bit 0 |
            | `2NNN` | call | `8XY7` | Vx = Vy - Vx, VF = no borrow |
            | `3XNN` | skip if Vx == NN | `8XYE` | Vx <<= 1, VF = old bit 7 |
            | `4XNN` | skip if Vx != NN | `9XY0` | skip if Vx != Vy |
            | `5XY0` | skip if Vx == Vy | `ANNN` | I = NNN |
            | `6XNN` | Vx = NN | `BNNN` | jump NNN + V0 |
            | `7XNN` | Vx += NN | `CXNN` | Vx = rand & NN |
            | `8XY0-3` | copy / or / and / xor | `DXYN` | draw N rows at Vx, Vy |
            | `EX9E` | skip if key Vx held | `EXA1` | skip if key Vx not held |
            | `FX07` | Vx = DT | `FX0A` | wait for key into Vx |
            | `FX15` | DT = Vx | `FX18` | ST = Vx |
            | `FX1E` | I += Vx | `FX29` | I = glyph(Vx) |
            | `FX33` | BCD of Vx at I | `FX55/65` | store / load V0..Vx |
            """)

        # Event handlers
        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, rom_input, frames, held_keys, seed],
            outputs=[screen_output, summary_output, registers_output, listing_output]
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
