"""
Barnsley fern iterated function system.

Unlike the escape-time fractals this is a single sequential walk: every
step depends on the previous point and on the next random draw, so it runs
on one thread and its output differs between renders unless a seed is
given.
"""

import numpy as np
from typing import NamedTuple, Optional, Tuple
import logging

from .math_functions import ComplexPoint

logger = logging.getLogger(__name__)

# Empirical factors bringing the fern to the framing of the other algorithms.
FERN_SCALE_X = 65.0
FERN_SCALE_Y = 37.0
FERN_SCALE_FACTOR = 0.006
FERN_Y_OFFSET = 5.0

DRAW_CHUNK = 1 << 16


class AffineMap(NamedTuple):
    """``x' = a*x + b*y``, ``y' = c*x + d*y + e``."""

    a: float
    b: float
    c: float
    d: float
    e: float

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return self.a * x + self.b * y, self.c * x + self.d * y + self.e


# (cumulative probability threshold, map)
BARNSLEY_MAPS = (
    (0.01, AffineMap(0.00, 0.00, 0.00, 0.16, 0.00)),
    (0.86, AffineMap(0.85, 0.04, -0.04, 0.85, 1.60)),
    (0.93, AffineMap(0.20, -0.26, 0.23, 0.22, 1.60)),
    (1.00, AffineMap(-0.15, 0.28, 0.26, 0.24, 0.44)),
)


def select_map(r: float) -> AffineMap:
    """Pick the affine map for a uniform draw ``r`` in [0, 1)."""
    for threshold, affine in BARNSLEY_MAPS[:-1]:
        if r < threshold:
            return affine
    return BARNSLEY_MAPS[-1][1]


def effective_scale(scale: ComplexPoint, height: int) -> Tuple[float, float]:
    return (FERN_SCALE_X * scale.re * height * FERN_SCALE_FACTOR,
            FERN_SCALE_Y * scale.im * height * FERN_SCALE_FACTOR)


MAX_PIXEL_INDEX = float(2 ** 53)


def to_pixel_index(value: float) -> int:
    """Truncate a pixel coordinate toward zero; -1 when it cannot land in any buffer."""
    if not -1.0 < value < MAX_PIXEL_INDEX:
        return -1
    return int(value)


class FernAccumulator:
    """Accumulate the Barnsley fern into an image buffer."""

    def __init__(self, config, rng: Optional[np.random.Generator] = None):
        """
        Initialize accumulator.

        Args:
            config: Render configuration
            rng: Random generator; a fresh entropy-seeded one when omitted
        """
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng()

    def start_point(self) -> Tuple[float, float]:
        pos = self.config.pos
        return pos.re * self.config.width, pos.im * self.config.height

    def to_pixel(self, x: float, y: float) -> Tuple[float, float]:
        """Map a fern-space point to (fractional) pixel coordinates, y growing downward."""
        config = self.config
        width = float(config.width)
        height = float(config.height)
        scale_x, scale_y = effective_scale(config.scale, config.height)

        px = ((x - config.pos.re) * scale_x) + width / 2.0
        py = height - ((y + (config.pos.im - FERN_Y_OFFSET) - 0.5) * scale_y + height / 2.0)
        return px, py

    def accumulate(self, buffer) -> None:
        """
        Run the walk, blending the primary color into ``buffer``.

        Args:
            buffer: ImageBuffer already filled with the background color
        """
        config = self.config
        color = config.primary_color
        amount = config.color_weight
        x, y = self.start_point()

        remaining = config.iterations
        while remaining > 0:
            draws = self.rng.random(min(remaining, DRAW_CHUNK))
            remaining -= len(draws)
            for r in draws:
                px, py = self.to_pixel(x, y)
                ix, iy = to_pixel_index(px), to_pixel_index(py)
                if ix >= 0 and iy >= 0:
                    buffer.blend_write(ix, iy, color, amount)

                x, y = select_map(r).apply(x, y)
