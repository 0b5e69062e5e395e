"""
Pixel coloring for escape-time fractals.

This module converts escape results into 8-bit colors using the exposure,
continuous (smooth) coloring and inside/outside rules of a render
configuration. A scalar path colors one pixel at a time; a vectorised path
colors whole arrays for the accelerated backends with identical arithmetic.
"""

import math
import numpy as np
from typing import Tuple, Union
from dataclasses import dataclass
import logging

from ..core.math_functions import EscapeResult

logger = logging.getLogger(__name__)


def to_channel(value: float) -> int:
    """
    Convert a float intensity to an 8-bit channel.

    Truncates toward zero and saturates to [0, 255]; NaN becomes 0.
    """
    if math.isnan(value):
        return 0
    if value <= 0:
        return 0
    if value >= 255:
        return 255
    return int(value)


def to_channels(values: np.ndarray) -> np.ndarray:
    """Vectorised :func:`to_channel`."""
    values = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(values, 0.0, 255.0).astype(np.uint8)


@dataclass(frozen=True)
class Color:
    """RGB color with 8-bit channels."""
    r: int
    g: int
    b: int

    def __post_init__(self):
        """Validate channel values."""
        for component in (self.r, self.g, self.b):
            if not 0 <= component <= 255:
                raise ValueError("RGB components must be between 0 and 255")

    def to_tuple(self) -> Tuple[int, int, int]:
        """Convert to RGB tuple."""
        return (self.r, self.g, self.b)

    def to_float_tuple(self) -> Tuple[float, float, float]:
        """Channels as floats in the 0..256 range."""
        return (float(self.r), float(self.g), float(self.b))

    def to_hex(self) -> str:
        return f"{self.r:02x}{self.g:02x}{self.b:02x}"

    def __mul__(self, scalar: float) -> 'Color':
        """Scale every channel, truncating the result."""
        return Color(
            to_channel(self.r * scalar),
            to_channel(self.g * scalar),
            to_channel(self.b * scalar),
        )

    @classmethod
    def from_hex(cls, value: str) -> 'Color':
        """
        Parse a ``rrggbb`` hex string (a leading ``#`` is accepted).

        Args:
            value: Hex color string

        Returns:
            Parsed color
        """
        text = value.strip().lstrip('#')
        if len(text) != 6:
            raise ValueError(f"Invalid hex color '{value}': expected 6 hex digits")
        try:
            return cls(int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
        except ValueError:
            raise ValueError(f"Invalid hex color '{value}'") from None


BLACK = Color(0, 0, 0)


def smoothed_iterations(iterations: Union[int, float], dist):
    """
    Continuous iteration count for a point at squared distance ``dist``.

    Uses numpy so that a logarithm of a non-positive argument yields NaN or
    -inf instead of raising.
    """
    with np.errstate(divide='ignore', invalid='ignore'):
        log_zn = np.log2(np.sqrt(np.asarray(dist, dtype=np.float64))) / 2.0
        nu = np.log2(log_zn)
    return iterations + (1.0 - nu)


def colorize(result: EscapeResult, config) -> Color:
    """
    Color a single pixel from its escape result.

    Args:
        result: Escape result of the pixel's orbit
        config: Render configuration

    Returns:
        Pixel color
    """
    dist = result.point.squared_magnitude()

    if dist > config.stable_limit:
        iters = float(result.iterations)
        if config.smooth:
            iters = smoothed_iterations(iters, dist)

        with np.errstate(invalid='ignore'):
            mult = iters / config.iterations * config.exposure
        return config.primary_color * mult
    elif config.inside:
        return config.secondary_color * dist
    else:
        return BLACK


def colorize_arrays(final_re: np.ndarray, final_im: np.ndarray,
                    iterations: np.ndarray, config) -> np.ndarray:
    """
    Color whole arrays of escape results.

    Args:
        final_re, final_im: Final orbit points
        iterations: Iteration counts reached
        config: Render configuration

    Returns:
        uint8 array with a trailing RGB axis
    """
    final_re = np.asarray(final_re, dtype=np.float64)
    final_im = np.asarray(final_im, dtype=np.float64)
    dist = final_re * final_re + final_im * final_im
    iters = np.asarray(iterations, dtype=np.float64)

    with np.errstate(all='ignore'):
        if config.smooth:
            iters = smoothed_iterations(iters, dist)
        mult = iters / config.iterations * config.exposure

        primary = np.array(config.primary_color.to_float_tuple(), dtype=np.float64)
        outside_rgb = primary * mult[..., np.newaxis]

        if config.inside:
            secondary = np.array(config.secondary_color.to_float_tuple(), dtype=np.float64)
            inside_rgb = secondary * dist[..., np.newaxis]
        else:
            inside_rgb = np.zeros(dist.shape + (3,), dtype=np.float64)

    outside = (dist > config.stable_limit)[..., np.newaxis]
    return to_channels(np.where(outside, outside_rgb, inside_rgb))
