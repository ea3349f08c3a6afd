"""Chip8State: the memory model and register file of the CHIP-8 VM.

This module defines the single mutable aggregate owned by a Chip8VM.
Every opcode handler receives it by reference and mutates it in place.

State Components:
    - Memory: 4096 bytes; 0x000-0x1FF reserved for interpreter and font data
    - Registers: V0-VF (16 unsigned 8-bit values, VF doubles as a flag)
    - Index: I, 16-bit address register
    - PC: Program counter, starts at 0x200
    - Stack: Return addresses pushed by CALL
    - Timers: delay and sound (8-bit, counted down at 60 Hz)
    - Awaiting key: blocking-read flag plus destination register
    - Halted / cycle count: bookkeeping for the orchestrator
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import OutOfBoundsAccess, OutOfBoundsFetch, ProgramTooLarge
from .fonts import install_font


MEMORY_SIZE = 4096
PROGRAM_START = 0x200
NUM_REGISTERS = 16
FLAG_REGISTER = 0xF

BYTE_MASK = 0xFF
WORD_MASK = 0xFFFF

PROGRAM_CAPACITY = MEMORY_SIZE - PROGRAM_START


@dataclass
class Chip8State:
    """Mutable VM state.

    Attributes:
        memory: 4096-byte address space
        registers: V0-VF, each 0-255
        index: I register (0-0xFFFF)
        pc: Program counter
        stack: Return addresses, most recent last
        delay_timer: 60 Hz delay counter
        sound_timer: 60 Hz sound counter (tone plays while non-zero)
        awaiting_key: Whether FX0A is blocking for a key
        key_register: Destination register of the pending FX0A
        resume_pc: Address execution continues at once the FX0A read completes
        halted: Whether a fatal fault stopped the VM
        cycle_count: Number of instructions executed
    """
    memory: bytearray = field(default_factory=lambda: bytearray(MEMORY_SIZE))
    registers: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    index: int = 0
    pc: int = PROGRAM_START
    stack: List[int] = field(default_factory=list)
    delay_timer: int = 0
    sound_timer: int = 0
    awaiting_key: bool = False
    key_register: int = 0
    resume_pc: int = PROGRAM_START
    halted: bool = False
    cycle_count: int = 0

    def snapshot(self) -> dict:
        """Create a copy of the registers and control state for tracing.

        Memory is left out; it is too large to copy every cycle.
        """
        return {
            "registers": list(self.registers),
            "index": self.index,
            "pc": self.pc,
            "stack": list(self.stack),
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
            "awaiting_key": self.awaiting_key,
            "resume_pc": self.resume_pc,
            "halted": self.halted,
            "cycle_count": self.cycle_count,
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Memory is exactly MEMORY_SIZE bytes
            - 16 registers, each an 8-bit value
            - I, PC and stack entries fit in 16 bits (PC may be odd; jumps
              to odd addresses are legal)
            - Timers are 8-bit values

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.memory) != MEMORY_SIZE:
            return False

        if len(self.registers) != NUM_REGISTERS:
            return False
        for value in self.registers:
            if not isinstance(value, int) or not 0 <= value <= BYTE_MASK:
                return False

        if not 0 <= self.index <= WORD_MASK:
            return False
        if not 0 <= self.pc <= WORD_MASK or not 0 <= self.resume_pc <= WORD_MASK:
            return False
        if any(not 0 <= addr <= WORD_MASK for addr in self.stack):
            return False

        for timer in (self.delay_timer, self.sound_timer):
            if not 0 <= timer <= BYTE_MASK:
                return False

        if not 0 <= self.key_register < NUM_REGISTERS:
            return False

        return self.cycle_count >= 0

    def get_register(self, reg: int) -> int:
        """Get the value of register ``reg`` (0-15)."""
        return self.registers[reg]

    def set_register(self, reg: int, value: int) -> None:
        """Set register ``reg``, truncating ``value`` to 8 bits."""
        self.registers[reg] = value & BYTE_MASK

    def set_flag(self, value: bool) -> None:
        self.registers[FLAG_REGISTER] = 1 if value else 0

    def fetch_word(self) -> int:
        """Read the big-endian opcode at PC without advancing it.

        Raises:
            OutOfBoundsFetch: If PC or PC+1 lies outside memory
        """
        if self.pc + 1 >= MEMORY_SIZE:
            raise OutOfBoundsFetch(self.pc)
        return (self.memory[self.pc] << 8) | self.memory[self.pc + 1]

    def read_block(self, address: int, length: int) -> bytes:
        """Read ``length`` bytes starting at ``address``.

        Raises:
            OutOfBoundsAccess: If any byte lies outside memory
        """
        self._check_range(address, length)
        return bytes(self.memory[address:address + length])

    def write_block(self, address: int, data: bytes) -> None:
        """Write ``data`` starting at ``address``.

        Raises:
            OutOfBoundsAccess: If any byte lies outside memory
        """
        self._check_range(address, len(data))
        self.memory[address:address + len(data)] = data

    def _check_range(self, address: int, length: int) -> None:
        if address < 0 or address + length > MEMORY_SIZE:
            raise OutOfBoundsAccess(address + length - 1, self.pc)

    def load_image(self, program: bytes) -> None:
        """Clear memory, install the font and copy ``program`` to 0x200.

        Memory, PC and the fault flag are touched; see ``reset`` for the rest.
        A pending FX0A read stays pending but resumes at 0x200, the start of
        the new program.

        Raises:
            ProgramTooLarge: If the image does not fit above 0x200
        """
        if len(program) > PROGRAM_CAPACITY:
            raise ProgramTooLarge(len(program), PROGRAM_CAPACITY)
        self.memory = bytearray(MEMORY_SIZE)
        install_font(self.memory)
        self.memory[PROGRAM_START:PROGRAM_START + len(program)] = program
        self.pc = PROGRAM_START
        self.resume_pc = PROGRAM_START
        self.halted = False

    def reset(self) -> None:
        """Zero registers, I, stack, timers and the blocking-read state."""
        self.registers = [0] * NUM_REGISTERS
        self.index = 0
        self.stack = []
        self.delay_timer = 0
        self.sound_timer = 0
        self.awaiting_key = False
        self.key_register = 0
        self.resume_pc = PROGRAM_START
        self.halted = False
        self.cycle_count = 0

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed V0..VF."""
        return {f"V{i:X}": value for i, value in enumerate(self.registers)}

    def __str__(self) -> str:
        regs = " ".join(f"V{i:X}={v:02X}" for i, v in enumerate(self.registers))
        status = " HALTED" if self.halted else (" WAIT-KEY" if self.awaiting_key else "")
        return (
            f"[Cycle {self.cycle_count}] PC={self.pc:03X} I={self.index:03X} "
            f"{regs} DT={self.delay_timer} ST={self.sound_timer}{status}"
        )


def create_initial_state(program: Optional[bytes] = None) -> Chip8State:
    """Create a fresh state with the font installed and ``program`` loaded.

    Args:
        program: Raw program image, placed at 0x200

    Returns:
        New Chip8State with PC at 0x200
    """
    state = Chip8State()
    state.load_image(program or b"")
    return state
