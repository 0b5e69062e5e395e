"""
Fractal rendering library.

Renders the Mandelbrot set, Julia sets and the Barnsley fern into RGB image
buffers, on the CPU (pure Python, numba or worker processes) or on a CUDA
GPU through CuPy.

Example usage:
    >>> from fractal_renderer import RenderConfig, Julia, ComplexPoint, render_escape_time
    >>> config = RenderConfig.for_algorithm(Julia(ComplexPoint(-0.4, 0.6)), width=800, height=600)
    >>> image = render_escape_time(config)
"""

__version__ = "0.2.0"
__author__ = "Fractal Renderer Team"

from fractal_renderer.core.math_functions import ComplexPoint
from fractal_renderer.core.fractal_types import Mandelbrot, Julia, BarnsleyFern, parse_algorithm
from fractal_renderer.core.config import RenderConfig, set_algorithm, load_config, save_config
from fractal_renderer.rendering.coloring import Color
from fractal_renderer.rendering.image_buffer import ImageBuffer
from fractal_renderer.rendering.image_output import ImageExporter, RenderMetadata

# Main API
from fractal_renderer.api import (
    FractalRenderer, RenderQueue, render, render_escape_time, render_fern,
)

__all__ = [
    "ComplexPoint",
    "Mandelbrot",
    "Julia",
    "BarnsleyFern",
    "parse_algorithm",
    "RenderConfig",
    "set_algorithm",
    "load_config",
    "save_config",
    "Color",
    "ImageBuffer",
    "ImageExporter",
    "RenderMetadata",
    "FractalRenderer",
    "RenderQueue",
    "render",
    "render_escape_time",
    "render_fern",
]
