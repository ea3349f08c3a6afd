"""Timer subsystem: the 60 Hz delay and sound countdowns.

The counters live in Chip8State so that FX07/FX15/FX18 can read and write
them directly; this class owns the decrement policy. It must be driven at
frame cadence by the ClockScheduler, never once per instruction.
"""

import logging

from .state import Chip8State


logger = logging.getLogger(__name__)


class Timers:
    """Countdown operations over a Chip8State's delay and sound timers."""

    def __init__(self, state: Chip8State):
        self.state = state

    def tick_delay(self) -> None:
        """Decrement the delay timer, stopping at zero."""
        if self.state.delay_timer > 0:
            self.state.delay_timer -= 1

    def tick_sound(self) -> None:
        """Decrement the sound timer, stopping at zero."""
        if self.state.sound_timer > 0:
            self.state.sound_timer -= 1
            if self.state.sound_timer == 0:
                logger.debug("Sound timer expired, tone off.")

    def tick(self) -> None:
        self.tick_delay()
        self.tick_sound()

    @property
    def sound_active(self) -> bool:
        """Whether an audio collaborator should be emitting tone."""
        return self.state.sound_timer > 0
