"""Reference render collaborators.

Renderers subscribe to FrameReady events; they own every presentation
decision (characters, colours, persistence) and never touch VM state.
"""

import sys
from typing import List, Optional, TextIO

from .display import DisplaySnapshot
from .events import Event, FrameReady


class TerminalRenderer:
    """Draws each frame to a text stream, one character per pixel.

    Only frames whose contents changed are written.
    """

    CLEAR = "\x1b[H\x1b[2J"

    def __init__(self, stream: Optional[TextIO] = None, on: str = "*", off: str = " ",
                 clear: bool = True):
        self.stream = stream or sys.stdout
        self.on = on
        self.off = off
        self.clear = clear
        self.frames_drawn = 0
        self._last: Optional[bytes] = None

    def __call__(self, event: Event) -> None:
        if not isinstance(event, FrameReady):
            return
        if event.display.pixels == self._last:
            return
        self._last = event.display.pixels
        text = event.display.to_text(self.on, self.off)
        if self.clear:
            self.stream.write(self.CLEAR)
        self.stream.write(text + "\n")
        self.stream.flush()
        self.frames_drawn += 1


class PhosphorDecay:
    """Per-pixel intensity buffer emulating CRT phosphor persistence.

    Many programs erase and redraw sprites every frame, which flickers on a
    modern display. Lit pixels jump to full intensity; unlit pixels fade by
    ``rate`` each frame.
    """

    def __init__(self, width: int = 64, height: int = 32, rate: float = 0.9,
                 floor: float = 0.01):
        if not 0.0 <= rate < 1.0:
            raise ValueError("Decay rate must be in [0, 1)")
        self.width = width
        self.height = height
        self.rate = rate
        self.floor = floor
        self.intensity: List[float] = [0.0] * (width * height)

    def update(self, display: DisplaySnapshot) -> List[float]:
        """Fold one frame into the buffer and return the intensities."""
        for i, lit in enumerate(display.pixels):
            if lit:
                self.intensity[i] = 1.0
            else:
                value = self.intensity[i] * self.rate
                self.intensity[i] = value if value >= self.floor else 0.0
        return self.intensity

    def __call__(self, event: Event) -> None:
        if isinstance(event, FrameReady):
            self.update(event.display)

    def rows(self) -> List[List[float]]:
        return [
            self.intensity[y * self.width:(y + 1) * self.width]
            for y in range(self.height)
        ]
