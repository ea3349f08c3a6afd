"""Exception taxonomy for the CHIP-8 execution engine.

Every fault raised by the engine is fatal to the current run: the VM halts
and the exception propagates to the host, which decides whether to reset
and reload.
"""

from typing import Optional


class Chip8Error(Exception):
    """Base class for all engine faults."""


class UnsupportedOpcode(Chip8Error):
    """Raised when a fetched word matches no entry in the opcode table.

    Attributes:
        opcode: Raw 16-bit instruction word
        pc: Address the word was fetched from
    """

    def __init__(self, opcode: int, pc: int):
        self.opcode = opcode
        self.pc = pc
        super().__init__(f"Unsupported opcode {opcode:04X} at {pc:#05x}")


class StackUnderflow(Chip8Error):
    """Raised by RET when the call stack is empty."""

    def __init__(self, pc: int):
        self.pc = pc
        super().__init__(f"Return with empty call stack at {pc:#05x}")


class StackOverflow(Chip8Error):
    """Raised by CALL when a configured stack capacity is exceeded."""

    def __init__(self, pc: int, depth: int):
        self.pc = pc
        self.depth = depth
        super().__init__(f"Call stack overflow (depth {depth}) at {pc:#05x}")


class OutOfBoundsFetch(Chip8Error):
    """Raised when the program counter points outside memory."""

    def __init__(self, pc: int):
        self.pc = pc
        super().__init__(f"Instruction fetch outside memory at {pc:#06x}")


class OutOfBoundsAccess(Chip8Error):
    """Raised when an I-relative read or write leaves memory."""

    def __init__(self, address: int, pc: Optional[int] = None):
        self.address = address
        self.pc = pc
        where = f" at {pc:#05x}" if pc is not None else ""
        super().__init__(f"Memory access outside memory ({address:#06x}){where}")


class ProgramTooLarge(Chip8Error):
    """Raised when a program image does not fit above the reserved area."""

    def __init__(self, size: int, capacity: int):
        self.size = size
        self.capacity = capacity
        super().__init__(f"Program is {size} bytes, only {capacity} bytes available")


class MachineHalted(Chip8Error):
    """Raised when stepping a VM that has halted after a fault."""
