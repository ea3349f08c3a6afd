"""Events emitted by the engine to its render collaborators.

Listeners are plain callables injected at construction time. They receive
immutable event objects and never hold a reference to live VM state.
"""

from dataclasses import dataclass
from typing import Callable, Union

from .display import DisplaySnapshot


@dataclass(frozen=True)
class RedrawRequested:
    """Emitted by the VM after CLS or DRW changed the display.

    Attributes:
        cycle: Cycle count when the opcode completed
        display: Display contents after the opcode
    """
    cycle: int
    display: DisplaySnapshot


@dataclass(frozen=True)
class FrameReady:
    """Emitted by the scheduler once per 60 Hz frame.

    Attributes:
        frame: Frame number, starting at 1
        display: Display contents at the frame boundary
        sound_active: Whether the sound timer is running
    """
    frame: int
    display: DisplaySnapshot
    sound_active: bool


Event = Union[RedrawRequested, FrameReady]
EventListener = Callable[[Event], None]
