"""ClockScheduler: dual-rate clock for the CHIP-8 VM.

Instruction execution (about 700 Hz) and the display/timer frame (60 Hz)
are independent clocks on the original hardware. The scheduler converts
irregular host polling into both fixed cadences with two accumulators of
unspent elapsed time:

    elapsed -> CPU accumulator   -> one vm.step() per whole CPU period
            -> frame accumulator -> timers tick + FrameReady per whole frame

Both accumulators drain every whole period they hold, so a host stall is
caught up on the next tick instead of being lost. All bookkeeping is in
integer nanoseconds, which keeps catch-up counts exact.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .cpu import Chip8VM
from .events import EventListener, FrameReady


logger = logging.getLogger(__name__)

NANOS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True)
class TickResult:
    """What one tick did.

    Attributes:
        steps: vm.step() calls made
        frames: Frames emitted
    """
    steps: int
    frames: int


class ClockScheduler:
    """Accumulator-driven scheduler for a Chip8VM.

    Attributes:
        vm: The machine being driven
        cpu_period: Nanoseconds per instruction
        frame_period: Nanoseconds per frame
        frame_count: Frames emitted so far
    """

    def __init__(
        self,
        vm: Chip8VM,
        listeners: Sequence[EventListener] = (),
        cpu_hz: Optional[int] = None,
        frame_hz: Optional[int] = None,
        clock: Callable[[], int] = time.perf_counter_ns,
        max_steps_per_tick: Optional[int] = None,
    ):
        """Initialize the scheduler and start its clock.

        Args:
            vm: Machine to drive
            listeners: Callables receiving FrameReady events
            cpu_hz: Instruction rate (defaults to vm.config.cpu_hz)
            frame_hz: Frame rate (defaults to vm.config.frame_hz)
            clock: Monotonic time source in nanoseconds
            max_steps_per_tick: Cap on catch-up steps per tick; any backlog
                beyond it is discarded. None drains everything.
        """
        cpu_hz = cpu_hz or vm.config.cpu_hz
        frame_hz = frame_hz or vm.config.frame_hz
        if cpu_hz <= 0 or frame_hz <= 0:
            raise ValueError("Clock rates must be positive")

        self.vm = vm
        self.cpu_period = NANOS_PER_SECOND // cpu_hz
        self.frame_period = NANOS_PER_SECOND // frame_hz
        self.max_steps_per_tick = max_steps_per_tick
        self.frame_count = 0
        self._listeners: List[EventListener] = list(listeners)
        self._clock = clock
        self._last = clock()
        self._cpu_accumulator = 0
        self._frame_accumulator = 0

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def restart(self) -> None:
        """Forget accumulated time, e.g. after the host was paused."""
        self._last = self._clock()
        self._cpu_accumulator = 0
        self._frame_accumulator = 0

    def tick(self) -> TickResult:
        """Advance by the wall time elapsed since the previous tick."""
        now = self._clock()
        elapsed = now - self._last
        self._last = now
        return self.advance(elapsed)

    def advance(self, elapsed_ns: int) -> TickResult:
        """Advance both clocks by ``elapsed_ns`` nanoseconds.

        CPU steps run first, then due frames. ``vm.step()`` is called even
        while the VM waits for a key, so the wait is polled at CPU cadence.

        Raises:
            ValueError: If ``elapsed_ns`` is negative
            Chip8Error: Propagated from vm.step()
        """
        if elapsed_ns < 0:
            raise ValueError("Elapsed time cannot be negative")

        steps = self._run_cpu(elapsed_ns)
        frames = self._run_frames(elapsed_ns)
        return TickResult(steps, frames)

    def _run_cpu(self, elapsed_ns: int) -> int:
        self._cpu_accumulator += elapsed_ns
        steps = 0
        while self._cpu_accumulator >= self.cpu_period:
            if self.max_steps_per_tick is not None and steps >= self.max_steps_per_tick:
                dropped = self._cpu_accumulator // self.cpu_period
                self._cpu_accumulator %= self.cpu_period
                logger.debug(f"Dropped {dropped} CPU steps of backlog.")
                break
            self.vm.step()
            self._cpu_accumulator -= self.cpu_period
            steps += 1
        return steps

    def _run_frames(self, elapsed_ns: int) -> int:
        self._frame_accumulator += elapsed_ns
        frames = 0
        while self._frame_accumulator >= self.frame_period:
            self.vm.timers.tick_delay()
            self.vm.timers.tick_sound()
            self.frame_count += 1
            event = FrameReady(
                frame=self.frame_count,
                display=self.vm.display.snapshot(),
                sound_active=self.vm.timers.sound_active,
            )
            for listener in self._listeners:
                listener(event)
            self._frame_accumulator -= self.frame_period
            frames += 1
        return frames

    def run(
        self,
        should_continue: Callable[[], bool],
        idle: float = 0.0005,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Tick until ``should_continue()`` returns False.

        Args:
            should_continue: Polled before every tick
            idle: Seconds to sleep between ticks
            sleep: Sleep function
        """
        self.restart()
        while should_continue():
            self.tick()
            if idle > 0:
                sleep(idle)

    def run_for(self, seconds: float, idle: float = 0.0005) -> None:
        """Tick in real time for ``seconds`` of wall time."""
        deadline = self._clock() + int(seconds * NANOS_PER_SECOND)
        self.run(lambda: self._clock() < deadline, idle=idle)
