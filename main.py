#!/usr/bin/env python3
"""chip8-vm Command Line Interface.

Run CHIP-8 programs with the chip8_vm engine.

Usage:
    python main.py --rom roms/IBM.ch8 --cycles 200 --screen
    python main.py --rom roms/BRIX --realtime 10
    python main.py --inline "6005 6105 8014 00E0" --trace
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from chip8_vm import Chip8Error, Chip8VM, ClockScheduler, VMConfig
from chip8_vm.render import TerminalRenderer


def main():
    parser = argparse.ArgumentParser(
        description="chip8-vm: CHIP-8 virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a ROM headless for 500 instructions and show the display
    python main.py --rom roms/IBM.ch8 --cycles 500 --screen

    # Run a ROM in real time for 10 seconds, drawing to the terminal
    python main.py --rom roms/BRIX --realtime 10

    # Run inline hex words with full trace output
    python main.py --inline "6005 6105 8014 00E0" --trace
        """
    )

    parser.add_argument(
        "--rom", "-r",
        type=str,
        help="Path to a raw CHIP-8 program image"
    )
    parser.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline program as hex words (separate with spaces or ;)"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to a JSON VMConfig file"
    )
    parser.add_argument(
        "--cycles",
        type=int,
        help="Execute this many instructions without a clock"
    )
    parser.add_argument(
        "--realtime",
        type=float,
        metavar="SECONDS",
        help="Run under the real-time clock and render frames to the terminal"
    )
    parser.add_argument(
        "--cpu-hz",
        type=int,
        help="Instruction rate for --realtime. Default: 700"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the RND opcode"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--screen", "-s",
        action="store_true",
        help="Print the display after a headless run"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (non-zero registers only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log every executed instruction"
    )

    args = parser.parse_args()

    # Validate arguments
    if not args.rom and not args.inline:
        parser.error("Either --rom or --inline is required")
    if args.cycles is None and args.realtime is None:
        args.cycles = 1000

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = VMConfig.load(args.config) if args.config else VMConfig()
    if args.cpu_hz:
        config.cpu_hz = args.cpu_hz
    if args.seed is not None:
        config.seed = args.seed
    if args.trace:
        config.trace = True

    vm = Chip8VM(config)

    # Load program
    try:
        if args.rom:
            rom_path = Path(args.rom)
            if not rom_path.exists():
                print(f"Error: ROM file not found: {args.rom}")
                return 1
            vm.load_program(rom_path.read_bytes())
            if not args.quiet:
                print(f"Loading ROM: {args.rom}")
        else:
            vm.load_source(args.inline.replace(";", "\n"))
            if not args.quiet:
                print("Running inline program")
    except (ValueError, Chip8Error) as e:
        print(f"Error: {e}")
        return 1

    # Run
    failed = False
    try:
        if args.realtime is not None:
            clock = ClockScheduler(vm, listeners=[TerminalRenderer()])
            clock.run_for(args.realtime)
        else:
            vm.run(args.cycles)
    except Chip8Error as e:
        print(f"Execution error: {e}")
        failed = True
    except KeyboardInterrupt:
        print("Interrupted")

    # Output
    if args.trace:
        vm.print_trace()
    elif not args.quiet:
        print()
        summary = vm.get_summary()
        print(f"Cycles: {summary['cycles']}")
        print(f"Halted: {summary['halted']}")
        print(f"Waiting for key: {summary['awaiting_key']}")
        print(f"PC: {summary['pc']:#05x}  I: {summary['index']:#05x}")
        print(f"Registers: {summary['registers']}")
    else:
        regs = vm.dump_registers()
        for reg in sorted(regs.keys()):
            if regs[reg] != 0:
                print(f"{reg}={regs[reg]}")

    if args.screen and args.realtime is None:
        print(vm.display)

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
