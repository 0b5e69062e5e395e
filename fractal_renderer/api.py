"""
Main API for fractal rendering.

This module provides the high-level interface: the two render entry points,
a :class:`FractalRenderer` that selects a backend, times the render and
saves the result, and a :class:`RenderQueue` for interactive front-ends
that only care about the most recent request.
"""

import numpy as np
from typing import Any, Callable, Dict, Optional
from pathlib import Path
import logging
import threading
import time

from .core.config import RenderConfig, default_backend
from .core.escape_time import render_rows
from .core.fern import FernAccumulator
from .rendering.image_buffer import ImageBuffer
from .rendering.image_output import ImageExporter, RenderMetadata
from .acceleration.numba_backend import get_numba_accelerator
from .acceleration.gpu_backend import get_gpu_accelerator, is_gpu_available
from .acceleration.multiprocessing import get_multiprocessing_accelerator

logger = logging.getLogger(__name__)

BACKENDS = ("auto", "python", "numba", "multiprocessing", "gpu")
FERN_BACKENDS = ("auto", "python", "numba")


def new_seed() -> int:
    """Draw a fern seed from system entropy."""
    return int(np.random.SeedSequence().generate_state(1)[0])


def _resolve_backend(backend: Optional[str], allowed) -> str:
    backend = (backend or default_backend()).lower()
    if backend not in allowed:
        raise ValueError(f"Unknown or unsupported backend '{backend}'. Available: {', '.join(allowed)}")
    if backend == "auto":
        return "numba"
    return backend


def render_escape_time(config: RenderConfig, backend: Optional[str] = None) -> ImageBuffer:
    """
    Render a Mandelbrot or Julia configuration.

    Args:
        config: Render configuration with an escape-time algorithm
        backend: One of ``BACKENDS``; ``None`` reads the environment default

    Returns:
        Image buffer of ``config.width`` x ``config.height`` pixels
    """
    if not config.algorithm.is_escape_time():
        raise ValueError(f"{config.algorithm.name} is not an escape-time algorithm")

    backend = _resolve_backend(backend, BACKENDS)

    if backend == "numba":
        return get_numba_accelerator().render_escape_time(config)
    if backend == "multiprocessing":
        return get_multiprocessing_accelerator().render_escape_time(config)
    if backend == "gpu":
        if not is_gpu_available():
            raise RuntimeError("GPU backend requested but CuPy is not available")
        return get_gpu_accelerator().render_escape_time(config)

    return ImageBuffer.from_array(render_rows(config, (0, config.height)))


def render_fern(config: RenderConfig, seed: Optional[int] = None,
                backend: Optional[str] = None) -> ImageBuffer:
    """
    Render a Barnsley fern configuration.

    Args:
        config: Render configuration with the fern algorithm
        seed: Random seed; drawn from system entropy when omitted
        backend: ``python``, ``numba`` or ``auto``

    Returns:
        Image buffer pre-filled with the secondary color
    """
    if config.algorithm.is_escape_time():
        raise ValueError(f"{config.algorithm.name} is not the fern algorithm")

    backend = _resolve_backend(backend, FERN_BACKENDS)
    if seed is None:
        seed = new_seed()

    if backend == "numba":
        # numba's generator takes a 32-bit seed
        numba_seed = int(np.random.SeedSequence(seed).generate_state(1)[0])
        return get_numba_accelerator().render_fern(config, numba_seed)

    buffer = ImageBuffer(config.width, config.height, config.secondary_color)
    FernAccumulator(config, np.random.default_rng(seed)).accumulate(buffer)
    return buffer


def render(config: RenderConfig, backend: Optional[str] = None,
           seed: Optional[int] = None) -> ImageBuffer:
    """Render ``config`` with the entry point matching its algorithm."""
    if config.algorithm.is_escape_time():
        return render_escape_time(config, backend)
    return render_fern(config, seed, backend)


class FractalRenderer:
    """Main fractal rendering engine."""

    def __init__(self, backend: Optional[str] = None):
        """
        Initialize fractal renderer.

        Args:
            backend: Backend name (``None`` reads ``FRACTAL_RENDERER_BACKEND``)
        """
        self.backend = (backend or default_backend()).lower()
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend '{self.backend}'. Available: {', '.join(BACKENDS)}")

        self.image_exporter = ImageExporter()
        self.last_metadata: Optional[RenderMetadata] = None

        logger.info(f"FractalRenderer initialized: backend={self.backend}")

    def backend_for(self, config: RenderConfig) -> str:
        """The concrete backend used to render ``config``."""
        allowed = BACKENDS if config.algorithm.is_escape_time() else FERN_BACKENDS
        return _resolve_backend(self.backend, allowed)

    def render(self, config: RenderConfig, output_path: Optional[Path] = None,
               seed: Optional[int] = None) -> ImageBuffer:
        """
        Render a configuration.

        Args:
            config: Render configuration
            output_path: Optional output file path
            seed: Fern seed (ignored by escape-time algorithms)

        Returns:
            Rendered image buffer
        """
        backend = self.backend_for(config)
        if not config.algorithm.is_escape_time() and seed is None:
            seed = new_seed()

        logger.info(f"Starting render: {config.algorithm.name} {config.width}x{config.height}, "
                    f"{config.iterations} iterations, backend={backend}")

        start_time = time.time()
        if config.algorithm.is_escape_time():
            buffer = render_escape_time(config, backend)
            seed = None
        else:
            buffer = render_fern(config, seed, backend)
        render_time = time.time() - start_time

        logger.info(f"Render complete: {render_time:.2f}s")

        self.last_metadata = RenderMetadata.from_config(config, backend, render_time, seed)
        if output_path is not None:
            self.image_exporter.save_image(buffer, Path(output_path), self.last_metadata)

        return buffer

    def benchmark_performance(self, config: RenderConfig) -> Dict[str, Any]:
        """
        Benchmark the escape-time backends on ``config``.

        Returns:
            Timing per backend, with the speedup over the python path
        """
        if not config.algorithm.is_escape_time():
            raise ValueError("Benchmarks run on escape-time configurations")

        logger.info("Starting performance benchmark")
        results = {
            'config': {
                'algorithm': config.algorithm.name,
                'resolution': f"{config.width}x{config.height}",
                'iterations': config.iterations,
            },
            'benchmarks': {},
        }

        start_time = time.time()
        render_escape_time(config, "python")
        cpu_time = time.time() - start_time
        results['benchmarks']['python'] = {
            'time': cpu_time,
            'pixels_per_second': (config.width * config.height) / cpu_time,
        }

        numba_benchmark = get_numba_accelerator().benchmark_performance(config)
        numba_benchmark['speedup'] = cpu_time / numba_benchmark['numba_time']
        results['benchmarks']['numba'] = numba_benchmark

        if is_gpu_available():
            gpu_benchmark = get_gpu_accelerator().benchmark_performance(config)
            if 'gpu_time' in gpu_benchmark:
                gpu_benchmark['speedup'] = cpu_time / gpu_benchmark['gpu_time']
            results['benchmarks']['gpu'] = gpu_benchmark

        return results


class RenderQueue:
    """
    Coalescing render queue for interactive front-ends.

    A single worker thread renders one request at a time. While it is busy,
    at most one request waits; submitting again replaces the waiting
    request, so the front-end always gets the most recent configuration
    rendered next and stale requests are dropped.
    """

    def __init__(self, on_result: Callable[[RenderConfig, ImageBuffer], None],
                 renderer: Optional[FractalRenderer] = None,
                 on_error: Optional[Callable[[RenderConfig, Exception], None]] = None):
        """
        Initialize and start the worker.

        Args:
            on_result: Called from the worker thread with each finished render
            renderer: Renderer to use (a default one when omitted)
            on_error: Called from the worker thread when a render fails
        """
        self.renderer = renderer or FractalRenderer()
        self.on_result = on_result
        self.on_error = on_error

        self.last_error: Optional[Exception] = None
        self.renders_completed = 0
        self.requests_dropped = 0

        self._condition = threading.Condition()
        self._pending: Optional[RenderConfig] = None
        self._busy = False
        self._closed = False

        self._worker = threading.Thread(target=self._run, name="render-queue", daemon=True)
        self._worker.start()

    def submit(self, config: RenderConfig) -> None:
        """Queue ``config``, replacing any request that has not started yet."""
        with self._condition:
            if self._closed:
                raise RuntimeError("RenderQueue is closed")
            if self._pending is not None:
                self.requests_dropped += 1
                logger.debug("Replacing pending render request")
            self._pending = config
            self._condition.notify_all()

    @property
    def busy(self) -> bool:
        with self._condition:
            return self._busy or self._pending is not None

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no render is running or waiting.

        Returns:
            False if ``timeout`` expired first
        """
        with self._condition:
            return self._condition.wait_for(
                lambda: self._pending is None and not self._busy, timeout)

    def close(self) -> None:
        """Stop accepting requests, finish the waiting one and join the worker."""
        with self._condition:
            self._closed = True
            self._condition.notify_all()
        self._worker.join()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _run(self) -> None:
        while True:
            with self._condition:
                self._condition.wait_for(lambda: self._pending is not None or self._closed)
                if self._pending is None:
                    return
                config = self._pending
                self._pending = None
                self._busy = True

            completed = False
            try:
                image = self.renderer.render(config)
                self.on_result(config, image)
                completed = True
            except Exception as e:
                logger.exception(f"Render of {config.algorithm.name} failed")
                self.last_error = e
                if self.on_error is not None:
                    self.on_error(config, e)
            finally:
                with self._condition:
                    if completed:
                        self.renders_completed += 1
                    self._busy = False
                    self._condition.notify_all()
