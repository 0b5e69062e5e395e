"""
Core mathematical functions for fractal iteration.

This module provides the complex-plane primitives shared by every fractal
family, the mapping from pixel coordinates to the complex plane and the
escape-time recurrence used for the Mandelbrot and Julia sets.
"""

import numpy as np
from typing import Tuple, NamedTuple
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComplexPoint:
    """A point in the complex plane stored as two floats."""

    re: float
    im: float

    def square(self) -> 'ComplexPoint':
        """Return the complex square of this point."""
        re = (self.re * self.re) - (self.im * self.im)
        im = 2.0 * self.re * self.im
        return ComplexPoint(re, im)

    def squared_magnitude(self) -> float:
        """Squared distance from the origin."""
        return self.re * self.re + self.im * self.im

    def scale(self, k: float) -> 'ComplexPoint':
        """Multiply both components by a real factor."""
        return ComplexPoint(self.re * k, self.im * k)

    def __add__(self, other: 'ComplexPoint') -> 'ComplexPoint':
        return ComplexPoint(self.re + other.re, self.im + other.im)

    def __mul__(self, k: float) -> 'ComplexPoint':
        return self.scale(k)

    def to_complex(self) -> complex:
        return complex(self.re, self.im)

    @classmethod
    def from_complex(cls, value: complex) -> 'ComplexPoint':
        return cls(float(value.real), float(value.imag))


ComplexPoint.ZERO = ComplexPoint(0.0, 0.0)
ComplexPoint.ONE = ComplexPoint(1.0, 1.0)


def square(p: ComplexPoint) -> ComplexPoint:
    return p.square()


def add(p: ComplexPoint, q: ComplexPoint) -> ComplexPoint:
    return p + q


def scale(p: ComplexPoint, k: float) -> ComplexPoint:
    return p.scale(k)


def squared_magnitude(p: ComplexPoint) -> float:
    return p.squared_magnitude()


def coord_to_space(coord: float, axis_max: float, centering_offset: float,
                   pos: float, scale: float) -> float:
    """Map one pixel coordinate onto its complex-plane axis."""
    return ((coord / axis_max) - centering_offset) / scale + pos


def xy_to_complex(x: float, y: float, width: float, height: float,
                  pos: ComplexPoint, scale: ComplexPoint) -> ComplexPoint:
    """
    Convert a pixel coordinate into a point of the complex plane.

    Both axes are normalised against the image height so the scale is
    isotropic; the aspect ratio only enters through the horizontal
    centering term.

    Args:
        x, y: Pixel coordinates
        width, height: Image resolution in pixels
        pos: Pan offset
        scale: Zoom factor per axis (components must be non-zero)

    Returns:
        Corresponding complex point
    """
    re = coord_to_space(x, height, (width / height) / 2.0, pos.re, scale.re)
    im = coord_to_space(y, height, 0.5, pos.im, scale.im)
    return ComplexPoint(re, im)


class ComplexPlane:
    """Vectorised viewport mapping for a whole image."""

    def __init__(self, width: int, height: int, pos: ComplexPoint, scale: ComplexPoint):
        """
        Initialize viewport.

        Args:
            width, height: Image resolution in pixels
            pos: Pan offset
            scale: Zoom factor per axis
        """
        if width <= 0 or height <= 0:
            raise ValueError("Width and height must be positive")
        if scale.re == 0 or scale.im == 0:
            raise ValueError("Scale components must be non-zero")

        self.width = width
        self.height = height
        self.pos = pos
        self.scale = scale

    def pixel_to_complex(self, px: int, py: int) -> ComplexPoint:
        """Convert pixel coordinates to a complex point."""
        return xy_to_complex(float(px), float(py), float(self.width), float(self.height),
                             self.pos, self.scale)

    def create_coordinate_arrays(self, rows: Tuple[int, int] = None) -> Tuple[np.ndarray, np.ndarray]:
        """
        Create the real and imaginary coordinate grids.

        Args:
            rows: Optional (start, end) row range to restrict the grid to

        Returns:
            Tuple of (re, im) float64 arrays of shape (rows, width)
        """
        y_start, y_end = rows if rows is not None else (0, self.height)
        width = np.float64(self.width)
        height = np.float64(self.height)

        x = np.arange(self.width, dtype=np.float64)
        y = np.arange(y_start, y_end, dtype=np.float64)

        re = ((x / height) - (width / height) / 2.0) / self.scale.re + self.pos.re
        im = ((y / height) - 0.5) / self.scale.im + self.pos.im
        return np.meshgrid(re, im)


class EscapeResult(NamedTuple):
    """Final point of an orbit and the iteration count reached."""

    point: ComplexPoint
    iterations: int


def recursive(iterations: int, start: ComplexPoint, c: ComplexPoint,
              limit: float) -> EscapeResult:
    """
    Iterate z -> z^2 + c until the orbit escapes or the cap is reached.

    With ``c == start`` this is the Mandelbrot recurrence, with a constant
    ``c`` it is a Julia set.

    Args:
        iterations: Iteration cap N
        start: Initial orbit point
        c: Additive constant
        limit: Escape distance, compared squared against |z|^2

    Returns:
        ``(next, i)`` for the 0-based step that escaped, else ``(previous, N)``
    """
    squared = limit * limit
    previous = start
    for i in range(iterations):
        next_point = previous.square() + c
        if next_point.squared_magnitude() > squared:
            return EscapeResult(next_point, i)
        previous = next_point
    return EscapeResult(previous, iterations)
