"""
Render configuration.

A :class:`RenderConfig` is built once per render request (from command-line
flags, a JSON file, an interactive front-end or the defaults) and is read
only while the render runs. Defaults depend on the selected algorithm.
"""

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Union
import logging

from .math_functions import ComplexPoint
from .fractal_types import (
    Algorithm, Mandelbrot, BarnsleyFern, is_different, algorithm_to_dict, algorithm_from_dict,
)
from ..rendering.coloring import Color

logger = logging.getLogger(__name__)

ESCAPE_TIME_ITERATIONS = 50
FERN_ITERATIONS = 10_000_000

ESCAPE_TIME_PRIMARY = Color(40, 40, 255)
ESCAPE_TIME_SECONDARY = Color(240, 170, 0)
FERN_PRIMARY = Color(4, 100, 3)
FERN_SECONDARY = Color(240, 240, 240)

BACKEND_ENV_VAR = "FRACTAL_RENDERER_BACKEND"


def parse_hex_color(value: str) -> Color:
    """Parse a ``rrggbb`` hex color."""
    return Color.from_hex(value)


def default_backend() -> str:
    """Backend requested through the environment, ``auto`` otherwise."""
    return os.environ.get(BACKEND_ENV_VAR, "auto").strip().lower() or "auto"


@dataclass(frozen=True)
class RenderConfig:
    """Configuration for a single render pass."""

    algorithm: Algorithm = field(default_factory=Mandelbrot)

    # Image parameters
    width: int = 2000
    height: int = 1000

    # Iteration parameters
    iterations: int = ESCAPE_TIME_ITERATIONS
    limit: float = 2.0 ** 16
    stable_limit: float = 2.0

    # Viewport
    pos: ComplexPoint = ComplexPoint.ZERO
    scale: ComplexPoint = ComplexPoint(0.4, 0.4)

    # Coloring
    exposure: float = 2.0
    inside: bool = True
    smooth: bool = True
    primary_color: Color = ESCAPE_TIME_PRIMARY
    secondary_color: Color = ESCAPE_TIME_SECONDARY
    color_weight: float = 0.01

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Validate configuration parameters."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Width and height must be positive")

        if self.iterations < 0:
            raise ValueError("iterations must not be negative")

        if self.algorithm.is_escape_time() and self.iterations == 0:
            raise ValueError("iterations must be positive for escape-time fractals")

        if self.limit <= 0:
            raise ValueError("limit must be positive")

        if self.stable_limit <= 0:
            raise ValueError("stable_limit must be positive")

        if self.scale.re == 0 or self.scale.im == 0:
            raise ValueError("scale components must be non-zero")

        if self.exposure <= 0:
            raise ValueError("exposure must be positive")

        if self.color_weight <= 0:
            raise ValueError("color_weight must be positive")

    @classmethod
    def for_algorithm(cls, algorithm: Algorithm, **overrides) -> 'RenderConfig':
        """
        Create a configuration holding the defaults of ``algorithm``.

        Args:
            algorithm: Algorithm variant
            **overrides: Fields to set instead of the defaults

        Returns:
            New configuration
        """
        if isinstance(algorithm, BarnsleyFern):
            defaults = dict(
                iterations=FERN_ITERATIONS,
                primary_color=FERN_PRIMARY,
                secondary_color=FERN_SECONDARY,
            )
        else:
            defaults = dict(
                iterations=ESCAPE_TIME_ITERATIONS,
                primary_color=ESCAPE_TIME_PRIMARY,
                secondary_color=ESCAPE_TIME_SECONDARY,
            )
        defaults.update(overrides)
        return cls(algorithm=algorithm, **defaults)

    @property
    def julia_seed(self) -> ComplexPoint:
        return getattr(self.algorithm, "seed", ComplexPoint.ZERO)

    def update(self, **kwargs) -> 'RenderConfig':
        """Return a copy with some fields replaced."""
        return replace(self, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a JSON-compatible dictionary."""
        return {
            'algorithm': algorithm_to_dict(self.algorithm),
            'width': self.width,
            'height': self.height,
            'iterations': self.iterations,
            'limit': self.limit,
            'stable_limit': self.stable_limit,
            'pos': [self.pos.re, self.pos.im],
            'scale': [self.scale.re, self.scale.im],
            'exposure': self.exposure,
            'inside': self.inside,
            'smooth': self.smooth,
            'primary_color': self.primary_color.to_hex(),
            'secondary_color': self.secondary_color.to_hex(),
            'color_weight': self.color_weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderConfig':
        """
        Create a configuration from a dictionary.

        Missing keys take the defaults of the configured algorithm.
        """
        data = dict(data)
        algorithm = data.pop('algorithm', None)
        if isinstance(algorithm, str):
            algorithm = algorithm_from_dict({'name': algorithm})
        elif isinstance(algorithm, dict):
            algorithm = algorithm_from_dict(algorithm)
        else:
            algorithm = Mandelbrot()

        overrides = {}
        for key, value in data.items():
            if key in ('pos', 'scale'):
                value = ComplexPoint(float(value[0]), float(value[1]))
            elif key in ('primary_color', 'secondary_color'):
                value = parse_hex_color(value) if isinstance(value, str) else Color(*value)
            elif key not in _FIELD_NAMES:
                raise ValueError(f"Unknown configuration key '{key}'")
            overrides[key] = value
        return cls.for_algorithm(algorithm, **overrides)


_FIELD_NAMES = frozenset(RenderConfig.__dataclass_fields__)


def set_algorithm(config: RenderConfig, algorithm: Algorithm) -> RenderConfig:
    """
    Switch a configuration to another algorithm.

    Changing the algorithm kind resets every other field to the new
    algorithm's defaults. Moving between Julia seeds keeps the rest.
    """
    if not is_different(config.algorithm, algorithm):
        return replace(config, algorithm=algorithm)
    logger.debug(f"Algorithm changed to {algorithm.name}, resetting configuration")
    return RenderConfig.for_algorithm(algorithm)


def load_config(path: Union[str, Path]) -> RenderConfig:
    """Load a configuration from a JSON file."""
    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    logger.info(f"Loaded configuration from {path}")
    return RenderConfig.from_dict(data)


def save_config(config: RenderConfig, path: Union[str, Path]) -> None:
    """Write a configuration to a JSON file."""
    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)
    logger.info(f"Saved configuration to {path}")
