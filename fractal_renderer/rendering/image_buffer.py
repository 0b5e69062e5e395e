"""
In-memory RGB image buffer shared by the renderers.
"""

import numpy as np
from typing import Iterator, Optional

from .coloring import Color, BLACK, to_channels


class ImageBuffer:
    """Flat row-major grid of 8-bit RGB pixels, addressed ``y * width + x``."""

    def __init__(self, width: int, height: int, fill: Color = BLACK):
        if width <= 0 or height <= 0:
            raise ValueError("Width and height must be positive")
        self.width = width
        self.height = height
        self.contents = np.empty((width * height, 3), dtype=np.uint8)
        self.contents[:] = fill.to_tuple()

    @classmethod
    def from_array(cls, array: np.ndarray) -> 'ImageBuffer':
        """Wrap a ``(height, width, 3)`` uint8 array."""
        height, width = array.shape[:2]
        buffer = cls(width, height)
        buffer.contents[:] = np.asarray(array, dtype=np.uint8).reshape(width * height, 3)
        return buffer

    def _index(self, x: int, y: int) -> Optional[int]:
        if x < 0 or y < 0 or x >= self.width:
            return None
        index = y * self.width + x
        if index >= len(self.contents):
            return None
        return index

    def pixel_at(self, x: int, y: int) -> Optional[Color]:
        """Read a pixel, or ``None`` when (x, y) is outside the buffer."""
        index = self._index(x, y)
        if index is None:
            return None
        r, g, b = self.contents[index]
        return Color(int(r), int(g), int(b))

    def set_pixel(self, x: int, y: int, color: Color) -> bool:
        index = self._index(x, y)
        if index is None:
            return False
        self.contents[index] = color.to_tuple()
        return True

    def blend_write(self, x: int, y: int, color: Color, amount: float) -> None:
        """
        Darken a pixel toward ``color`` with strength ``amount``.

        Per channel ``new = old * 1 / ((1 / (c / 255) - 1) * amount + 1)``.
        Targets outside the buffer are ignored.
        """
        index = self._index(x, y)
        if index is None:
            return

        old = self.contents[index].astype(np.float64)
        value = np.array(color.to_float_tuple(), dtype=np.float64)
        with np.errstate(divide='ignore', invalid='ignore'):
            new = old * 1.0 / ((((1.0 / (value / 255.0)) - 1.0) * amount) + 1.0)
        self.contents[index] = to_channels(new)

    def fill(self, color: Color) -> None:
        self.contents[:] = color.to_tuple()

    def to_array(self) -> np.ndarray:
        """``(height, width, 3)`` view of the pixels."""
        return self.contents.reshape(self.height, self.width, 3)

    def copy(self) -> 'ImageBuffer':
        return ImageBuffer.from_array(self.to_array().copy())

    def __len__(self) -> int:
        return len(self.contents)

    def __iter__(self) -> Iterator[Color]:
        for r, g, b in self.contents:
            yield Color(int(r), int(g), int(b))

    def __eq__(self, other) -> bool:
        if not isinstance(other, ImageBuffer):
            return NotImplemented
        return (self.width, self.height) == (other.width, other.height) and \
            np.array_equal(self.contents, other.contents)

    def __repr__(self) -> str:
        return f"ImageBuffer(width={self.width}, height={self.height})"
