"""chip8_vm: CHIP-8 virtual machine execution engine.

This package interprets programs for the CHIP-8 virtual machine: 4 KB of
memory, sixteen 8-bit registers, a call stack, two 60 Hz countdown timers,
a 64x32 monochrome display and a 16-key hex keypad.

Architecture:
    MEMORY -> FETCH -> DECODE -> Instruction -> REGISTRY -> EXECUTE -> STATE
                                                                 |
    ClockScheduler --(700 Hz)--> Chip8VM.step()                  v
                   --(60 Hz)---> timers + FrameReady -> renderer listeners

Modules:
    state: Chip8State, the memory model and register file
    decode: Instruction decoding into enumerated operation keys
    registry: Frozen opcode registry with one handler per key
    cpu: Chip8VM orchestrator
    clock: ClockScheduler, the dual-rate accumulator clock
    display, keypad, timers: Frame buffer, input and countdown devices
    events, render: Collaborator events and reference renderers
    config: VMConfig
    errors: Fault taxonomy
"""

__version__ = "0.1.0"
__author__ = "chip8-vm contributors"

from .clock import ClockScheduler, TickResult
from .config import VMConfig
from .cpu import Chip8VM, ExecutionTraceEntry
from .decode import Instruction, Op, decode, disassemble, parse_program
from .display import DisplayBuffer, DisplaySnapshot
from .errors import (
    Chip8Error,
    MachineHalted,
    OutOfBoundsAccess,
    OutOfBoundsFetch,
    ProgramTooLarge,
    StackOverflow,
    StackUnderflow,
    UnsupportedOpcode,
)
from .events import FrameReady, RedrawRequested
from .keypad import Keypad, key_for_char
from .registry import OpcodeRegistry
from .state import Chip8State, create_initial_state
from .timers import Timers

__all__ = [
    "Chip8State",
    "Chip8VM",
    "ClockScheduler",
    "DisplayBuffer",
    "DisplaySnapshot",
    "ExecutionTraceEntry",
    "FrameReady",
    "Instruction",
    "Keypad",
    "Op",
    "OpcodeRegistry",
    "RedrawRequested",
    "TickResult",
    "Timers",
    "VMConfig",
    "create_initial_state",
    "decode",
    "disassemble",
    "key_for_char",
    "parse_program",
    "Chip8Error",
    "MachineHalted",
    "OutOfBoundsAccess",
    "OutOfBoundsFetch",
    "ProgramTooLarge",
    "StackOverflow",
    "StackUnderflow",
    "UnsupportedOpcode",
]
