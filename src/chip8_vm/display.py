"""DisplayBuffer: the 64x32 monochrome frame buffer.

The buffer is only mutated by the CLS and DRW opcodes. Renderers never see
the live buffer; they receive an immutable DisplaySnapshot.
"""

from dataclasses import dataclass
from typing import Iterator, Tuple


DISPLAY_WIDTH = 64
DISPLAY_HEIGHT = 32
SPRITE_WIDTH = 8


@dataclass(frozen=True)
class DisplaySnapshot:
    """Read-only copy of the display.

    Attributes:
        width: Columns in the grid
        height: Rows in the grid
        pixels: Row-major cells, 1 = lit, 0 = unlit
    """
    width: int
    height: int
    pixels: bytes

    def lit(self, x: int, y: int) -> bool:
        return bool(self.pixels[y * self.width + x])

    def rows(self) -> Iterator[Tuple[bool, ...]]:
        for y in range(self.height):
            start = y * self.width
            yield tuple(bool(p) for p in self.pixels[start:start + self.width])

    @property
    def lit_count(self) -> int:
        return sum(self.pixels)

    def to_text(self, on: str = "*", off: str = " ") -> str:
        """Render as text, one line per row."""
        return "\n".join(
            "".join(on if p else off for p in row) for row in self.rows()
        )


class DisplayBuffer:
    """Mutable monochrome pixel grid."""

    def __init__(self, width: int = DISPLAY_WIDTH, height: int = DISPLAY_HEIGHT):
        self.width = width
        self.height = height
        self._pixels = bytearray(width * height)

    def clear(self) -> None:
        self._pixels = bytearray(self.width * self.height)

    def lit(self, x: int, y: int) -> bool:
        return bool(self._pixels[y * self.width + x])

    def draw_sprite(self, x: int, y: int, sprite: bytes) -> bool:
        """XOR-blit an 8-pixel-wide sprite with its top-left corner at (x, y).

        Each byte of ``sprite`` is one row, most significant bit leftmost.
        Pixels falling right of the last column or below the last row are
        dropped; the start coordinate is not wrapped.

        Returns:
            True if any lit pixel was turned off (collision)
        """
        collision = False
        for row, bits in enumerate(sprite):
            py = y + row
            if py >= self.height:
                break
            for col in range(SPRITE_WIDTH):
                px = x + col
                if px >= self.width:
                    break
                if not (bits >> (7 - col)) & 1:
                    continue
                offset = py * self.width + px
                if self._pixels[offset]:
                    collision = True
                self._pixels[offset] ^= 1
        return collision

    def snapshot(self) -> DisplaySnapshot:
        return DisplaySnapshot(self.width, self.height, bytes(self._pixels))

    def __str__(self) -> str:
        return self.snapshot().to_text()
