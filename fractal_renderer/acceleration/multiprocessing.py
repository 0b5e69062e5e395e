"""
Multiprocessing backend for parallel fractal computation.

This module provides band-based parallel rendering using Python's
multiprocessing library for CPU-based acceleration across multiple cores.
Each worker owns a disjoint range of rows, so no locking is needed when the
bands are assembled.
"""

import numpy as np
from typing import List, Optional
import multiprocessing as mp
import logging
import time
from dataclasses import dataclass
from concurrent.futures import ProcessPoolExecutor, as_completed

from ..core.escape_time import render_rows
from ..rendering.image_buffer import ImageBuffer

logger = logging.getLogger(__name__)


@dataclass
class BandSpec:
    """Specification for a single band of rows."""
    band_id: int
    y_start: int
    y_end: int

    @property
    def height(self) -> int:
        return self.y_end - self.y_start


@dataclass
class BandResult:
    """Result from processing a single band."""
    band_id: int
    y_start: int
    pixels: np.ndarray
    processing_time: float


def create_row_bands(height: int, band_height: int = 16) -> List[BandSpec]:
    """
    Split an image into bands of rows for parallel processing.

    Args:
        height: Total image height
        band_height: Target number of rows per band

    Returns:
        List of BandSpec objects covering every row exactly once
    """
    if band_height <= 0:
        raise ValueError("band_height must be positive")

    bands = []
    for band_id, y in enumerate(range(0, height, band_height)):
        bands.append(BandSpec(band_id=band_id, y_start=y, y_end=min(y + band_height, height)))

    logger.debug(f"Created {len(bands)} bands of up to {band_height} rows")
    return bands


def process_band(args) -> BandResult:
    """
    Process a single band in a worker process.

    Args:
        args: Tuple of (config, band_spec)

    Returns:
        BandResult object
    """
    config, band = args
    start_time = time.time()
    pixels = render_rows(config, (band.y_start, band.y_end))
    return BandResult(
        band_id=band.band_id,
        y_start=band.y_start,
        pixels=pixels,
        processing_time=time.time() - start_time,
    )


def assemble_bands(band_results: List[BandResult], width: int, height: int) -> ImageBuffer:
    """
    Assemble band results into a complete image.

    Args:
        band_results: List of BandResult objects
        width: Total image width
        height: Total image height

    Returns:
        Complete image buffer
    """
    image = np.zeros((height, width, 3), dtype=np.uint8)
    for band_result in band_results:
        y_start = band_result.y_start
        image[y_start:y_start + band_result.pixels.shape[0]] = band_result.pixels
    return ImageBuffer.from_array(image)


class MultiprocessingAccelerator:
    """Multiprocessing-based parallel escape-time computation."""

    def __init__(self, num_processes: Optional[int] = None, band_height: int = 16):
        """
        Initialize multiprocessing accelerator.

        Args:
            num_processes: Number of worker processes (None for CPU count)
            band_height: Rows per band
        """
        if num_processes is None:
            self.num_processes = mp.cpu_count()
        else:
            self.num_processes = max(1, num_processes)

        self.band_height = band_height
        logger.info(f"Multiprocessing accelerator: {self.num_processes} processes, "
                    f"{band_height}-row bands")

    def render_escape_time(self, config) -> ImageBuffer:
        """
        Render a Mandelbrot or Julia configuration band by band.

        Args:
            config: Render configuration

        Returns:
            Colored image buffer
        """
        start_time = time.time()
        bands = create_row_bands(config.height, self.band_height)

        logger.info(f"Processing {len(bands)} bands with {self.num_processes} processes")

        with ProcessPoolExecutor(max_workers=self.num_processes) as executor:
            futures = [executor.submit(process_band, (config, band)) for band in bands]

            band_results = []
            for future in as_completed(futures):
                band_results.append(future.result())

                completed = len(band_results)
                if completed % max(1, len(bands) // 10) == 0:
                    progress = (completed / len(bands)) * 100
                    logger.debug(f"Completed {completed}/{len(bands)} bands ({progress:.1f}%)")

        buffer = assemble_bands(band_results, config.width, config.height)

        total_time = time.time() - start_time
        total_processing_time = sum(br.processing_time for br in band_results)
        logger.info(f"Parallel rendering complete: {total_time:.2f}s total, "
                    f"{total_processing_time:.2f}s processing time")
        return buffer


# Global accelerator instance
_mp_accelerator = None


def get_multiprocessing_accelerator(num_processes=None, band_height=16):
    """Get the global multiprocessing accelerator instance."""
    global _mp_accelerator
    if _mp_accelerator is None or _mp_accelerator.num_processes != (num_processes or mp.cpu_count()) \
            or _mp_accelerator.band_height != band_height:
        _mp_accelerator = MultiprocessingAccelerator(num_processes, band_height)
    return _mp_accelerator


def get_optimal_process_count():
    """Get optimal number of processes for fractal computation."""
    # Leave one core for system
    return max(1, mp.cpu_count() - 1)
