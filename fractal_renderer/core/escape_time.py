"""
Reference per-pixel escape-time renderer.

Every pixel is computed independently from the read-only configuration, so
any partition of the rows can be rendered separately and assembled later.
"""

import numpy as np
from typing import Tuple

from .math_functions import ComplexPoint, EscapeResult, recursive, xy_to_complex
from .fractal_types import Mandelbrot, Julia
from ..rendering.coloring import Color, colorize


def escape_constant(config, start: ComplexPoint) -> ComplexPoint:
    """The additive constant of the recurrence for ``start``."""
    algo = config.algorithm
    if isinstance(algo, Mandelbrot):
        return start
    if isinstance(algo, Julia):
        return algo.seed
    raise ValueError(f"{algo.name} is not an escape-time algorithm")


def evaluate_pixel(config, x: int, y: int) -> EscapeResult:
    start = xy_to_complex(float(x), float(y), float(config.width), float(config.height),
                          config.pos, config.scale)
    return recursive(config.iterations, start, escape_constant(config, start), config.limit)


def get_recursive_pixel(config, x: int, y: int) -> Color:
    """Color of pixel (x, y) for a Mandelbrot or Julia configuration."""
    return colorize(evaluate_pixel(config, x, y), config)


def render_rows(config, rows: Tuple[int, int]) -> np.ndarray:
    """
    Render a band of rows.

    Args:
        config: Render configuration
        rows: (start, end) row range

    Returns:
        uint8 array of shape (end - start, width, 3)
    """
    y_start, y_end = rows
    band = np.zeros((y_end - y_start, config.width, 3), dtype=np.uint8)
    for y in range(y_start, y_end):
        for x in range(config.width):
            band[y - y_start, x] = get_recursive_pixel(config, x, y).to_tuple()
    return band
