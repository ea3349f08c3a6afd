"""Chip8VM: orchestrator for the CHIP-8 execution engine.

This module implements the fetch-decode-execute pipeline:
    MEMORY -> FETCH -> DECODE -> Instruction -> REGISTRY -> EXECUTE -> STATE

The VM owns its state, display buffer, keypad and timers. Collaborators
(renderers, audio, input) talk to it through the keyboard setters, the
``awaiting_key`` query, the timer values and the events it emits. Nothing
here blocks: the FX0A key wait is a flag that each ``step`` call polls.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .config import VMConfig
from .decode import Instruction, decode, parse_program
from .display import DisplayBuffer
from .errors import Chip8Error, MachineHalted
from .events import Event, EventListener, RedrawRequested
from .keypad import Keypad
from .registry import OpcodeRegistry, get_registry
from .state import Chip8State, create_initial_state
from .timers import Timers


logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number after the instruction
        pc: Fetch address
        opcode: Raw instruction word (None if the fetch itself failed)
        instruction: Decoded instruction (None if the fetch itself failed)
        pre_state: State before execution
        post_state: State after execution
        error: Error message if execution faulted
    """
    cycle: int
    pc: int
    opcode: Optional[int]
    instruction: Optional[Instruction]
    pre_state: dict
    post_state: dict
    error: Optional[str] = None


class Chip8VM:
    """CHIP-8 virtual machine.

    Attributes:
        config: Engine configuration
        state: Memory, registers and control state
        display: 64x32 frame buffer
        keypad: Thread-safe key bitmask
        timers: Delay/sound countdown operations
        registry: Frozen opcode dispatch table
        trace: Execution trace (only filled when config.trace is set)
    """

    def __init__(
        self,
        config: Optional[VMConfig] = None,
        listeners: Sequence[EventListener] = (),
        rng: Optional[random.Random] = None,
    ):
        """Initialize the VM with an empty program.

        Args:
            config: Engine configuration (defaults to VMConfig())
            listeners: Callables receiving RedrawRequested events
            rng: Random source for RND (defaults to one seeded from config)
        """
        self.config = config or VMConfig()
        self.state: Chip8State = create_initial_state()
        self.display = DisplayBuffer()
        self.keypad = Keypad()
        self.timers = Timers(self.state)
        self.registry: OpcodeRegistry = get_registry()
        self.trace: List[ExecutionTraceEntry] = []
        self._listeners: List[EventListener] = list(listeners)
        self._rng = rng or random.Random(self.config.seed)

    # =========================================================================
    # Program lifecycle
    # =========================================================================

    def load_program(self, image: bytes) -> None:
        """Load a raw program image at 0x200.

        Memory is cleared, PC set to 0x200 and a halted VM may run again.
        Registers, stack, timers, keypad, display and a pending FX0A read
        carry over unless config.reset_on_load is set; a pending read resumes
        at 0x200 once a key arrives.

        Args:
            image: ROM bytes, big-endian opcodes packed contiguously
        """
        if self.config.reset_on_load:
            self.reset()
        self.state.load_image(bytes(image))
        self.trace = []
        logger.info(f"Loaded program of {len(image)} bytes.")

    def load_source(self, source: str) -> None:
        """Load a program written as hexadecimal words ("6005 6105 ...")."""
        self.load_program(parse_program(source))

    def reset(self) -> None:
        """Return every part of the VM except memory to power-on state."""
        self.state.reset()
        self.display.clear()
        self.keypad.reset()
        self.trace = []
        logger.debug("VM reset.")

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> Optional[Instruction]:
        """Execute a single instruction cycle.

        While a FX0A read is pending, no instruction is decoded: the call
        either completes the read with a delivered key (storing it and moving
        PC past the FX0A) or returns without touching PC.

        Returns:
            The executed instruction, or None if the VM was waiting for a key

        Raises:
            MachineHalted: If a previous fault halted the VM
            Chip8Error: On any fault; the VM is halted first
        """
        state = self.state
        if state.halted:
            raise MachineHalted("VM is halted")

        if state.awaiting_key:
            self._poll_key()
            return None

        pc = state.pc
        pre_state = state.snapshot() if self.config.trace else {}
        word: Optional[int] = None
        instruction: Optional[Instruction] = None

        try:
            word = state.fetch_word()
            instruction = decode(word)
            state.pc += 2
            self.registry.execute(self, instruction)
        except Chip8Error as e:
            state.halted = True
            logger.error(f"Fault at {pc:#05x}: {e}")
            self._record(pc, word, instruction, pre_state, error=str(e))
            raise

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"{pc:03X}: {instruction}")
        self._record(pc, word, instruction, pre_state)
        return instruction

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Step without a clock until the cycle limit or a key wait.

        Meant for headless runs and tests; real-time hosts drive the VM
        through ClockScheduler instead.

        Args:
            max_cycles: Instructions to execute (uses config.max_cycles if None)

        Returns:
            Execution trace (empty unless tracing is enabled)
        """
        limit = max_cycles if max_cycles is not None else self.config.max_cycles
        if limit is None:
            raise ValueError("run() needs a cycle limit")

        target = self.state.cycle_count + limit
        while self.state.cycle_count < target and not self.state.awaiting_key:
            self.step()
        return self.trace

    def _poll_key(self) -> None:
        key = self.keypad.take_pending()
        if key is None:
            return
        state = self.state
        state.set_register(state.key_register, key)
        state.awaiting_key = False
        state.pc = state.resume_pc
        logger.debug(f"Stored key {key:X} in V{state.key_register:X}, resuming.")

    def _record(
        self,
        pc: int,
        word: Optional[int],
        instruction: Optional[Instruction],
        pre_state: dict,
        error: Optional[str] = None,
    ) -> None:
        if not self.config.trace:
            return
        self.trace.append(ExecutionTraceEntry(
            cycle=self.state.cycle_count,
            pc=pc,
            opcode=word,
            instruction=instruction,
            pre_state=pre_state,
            post_state=self.state.snapshot(),
            error=error,
        ))
        overflow = len(self.trace) - self.config.max_trace
        if overflow > 0:
            del self.trace[:overflow]

    # =========================================================================
    # Collaborator seams
    # =========================================================================

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def emit(self, event: Event) -> None:
        for listener in self._listeners:
            listener(event)

    def request_redraw(self) -> None:
        """Notify listeners that the display changed."""
        self.emit(RedrawRequested(self.state.cycle_count + 1, self.display.snapshot()))

    def random_byte(self) -> int:
        return self._rng.randrange(256)

    @property
    def max_stack_depth(self) -> Optional[int]:
        return self.config.max_stack_depth

    @property
    def awaiting_key(self) -> bool:
        """Whether the program is blocked on FX0A."""
        return self.state.awaiting_key

    @property
    def keyboard(self) -> int:
        return self.keypad.state

    def set_keyboard(self, mask: int) -> None:
        """Replace the held-keys bitmask (bit n set = key n held)."""
        self.keypad.set_state(mask)

    def press_key(self, key: int) -> None:
        """Mark ``key`` held; completes a pending FX0A read.

        A press seen before FX0A executes only updates the held keys; the
        read waits for the next press.
        """
        self.keypad.press(key)
        if self.state.awaiting_key:
            self.keypad.deliver(key)

    def release_key(self, key: int) -> None:
        self.keypad.release(key)

    def deliver_key(self, key: int) -> None:
        """Hand ``key`` to a pending FX0A read without changing held keys."""
        self.keypad.deliver(key)

    @property
    def delay_timer(self) -> int:
        return self.state.delay_timer

    @property
    def sound_timer(self) -> int:
        return self.state.sound_timer

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_register(self, reg: int) -> int:
        return self.state.get_register(reg)

    def dump_registers(self) -> Dict[str, int]:
        return self.state.dump_registers()

    def get_pc(self) -> int:
        return self.state.pc

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    def is_halted(self) -> bool:
        return self.state.halted

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("CHIP-8 EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            print(f"\n[Cycle {entry.cycle}] {status}")
            if entry.instruction is not None:
                print(f"  {entry.pc:03X}: {entry.instruction}")

            pre_regs = entry.pre_state.get("registers", [])
            post_regs = entry.post_state.get("registers", [])
            changes = [
                f"V{i:X}: {before} -> {after}"
                for i, (before, after) in enumerate(zip(pre_regs, post_regs))
                if before != after
            ]
            if changes:
                print(f"  Changes: {', '.join(changes)}")

            pre_index = entry.pre_state.get("index")
            post_index = entry.post_state.get("index")
            if pre_index != post_index:
                print(f"  I: {pre_index:03X} -> {post_index:03X}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        print(f"  {self.state}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "awaiting_key": self.awaiting_key,
            "registers": self.dump_registers(),
            "index": self.state.index,
            "pc": self.get_pc(),
            "stack_depth": len(self.state.stack),
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
            "lit_pixels": self.display.snapshot().lit_count,
            "trace_length": len(self.trace),
            "errors": [e.error for e in self.trace if e.error],
        }
