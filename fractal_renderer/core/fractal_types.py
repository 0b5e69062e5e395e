"""
Fractal algorithm definitions.

Each algorithm is a small immutable variant: Mandelbrot and the Barnsley
fern carry no payload, a Julia set carries its seed point. Call sites
dispatch on the variant type instead of inspecting strings.
"""

from typing import Dict, Optional, Union
from dataclasses import dataclass
import logging

from .math_functions import ComplexPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Mandelbrot:
    """Mandelbrot set: z_{n+1} = z_n^2 + c, c is the pixel's coordinate."""

    name = "mandelbrot"

    def is_escape_time(self) -> bool:
        return True


@dataclass(frozen=True)
class Julia:
    """Julia set: z_{n+1} = z_n^2 + seed, z_0 is the pixel's coordinate."""

    seed: ComplexPoint = ComplexPoint.ZERO

    name = "julia"

    def is_escape_time(self) -> bool:
        return True


@dataclass(frozen=True)
class BarnsleyFern:
    """Barnsley fern iterated function system."""

    name = "fern"

    def is_escape_time(self) -> bool:
        return False


Algorithm = Union[Mandelbrot, Julia, BarnsleyFern]

ALGORITHM_NAMES = ("mandelbrot", "julia", "fern")


def is_different(current: Algorithm, other: Algorithm) -> bool:
    """
    Whether switching from ``current`` to ``other`` changes the algorithm kind.

    Two Julia sets with different seeds are the same kind.
    """
    if isinstance(current, Julia) and isinstance(other, Julia):
        return False
    return current != other


def parse_algorithm(name: str, seed: Optional[ComplexPoint] = None) -> Algorithm:
    """
    Create an algorithm from its name.

    Args:
        name: ``mandelbrot``, ``julia``, ``fern`` or ``barnsleyfern`` (any case)
        seed: Julia seed, defaults to the origin

    Returns:
        Algorithm variant
    """
    key = name.strip().lower()
    if key == "mandelbrot":
        return Mandelbrot()
    if key in ("fern", "barnsleyfern"):
        return BarnsleyFern()
    if key == "julia":
        return Julia(seed if seed is not None else ComplexPoint.ZERO)
    raise ValueError(f"Unknown algorithm '{name}'. Available: {', '.join(ALGORITHM_NAMES)}")


def algorithm_to_dict(algo: Algorithm) -> Dict[str, object]:
    data = {"name": algo.name}
    if isinstance(algo, Julia):
        data["seed"] = [algo.seed.re, algo.seed.im]
    return data


def algorithm_from_dict(data: Dict[str, object]) -> Algorithm:
    seed = data.get("seed")
    if seed is not None:
        seed = ComplexPoint(float(seed[0]), float(seed[1]))
    return parse_algorithm(str(data["name"]), seed)


# Predefined interesting Julia set seeds
JULIA_PRESETS = {
    'dragon': Julia(ComplexPoint(-0.75, 0.1)),
    'spiral': Julia(ComplexPoint(-0.4, 0.6)),
    'dendrite': Julia(ComplexPoint(-0.235125, 0.827215)),
    'lightning': Julia(ComplexPoint(-0.8, 0.156)),
    'rabbit': Julia(ComplexPoint(-0.123, 0.745)),
    'airplane': Julia(ComplexPoint(-1.25, 0.0)),
    'san_marco': Julia(ComplexPoint(-0.75, 0.0)),
    'siegel_disk': Julia(ComplexPoint(-0.391, -0.587)),
}
