"""
Multiprocessing backend for parallel frame rendering.

The frame is split into horizontal bands of rows. Every band is rendered in a
worker process and copied into its own disjoint slice of the output buffer,
so no locking is needed.
"""

import numpy as np
from typing import List, Optional
import multiprocessing as mp
import logging
import time
from dataclasses import dataclass
from concurrent.futures import ProcessPoolExecutor, as_completed

from ..core.math_functions import CanvasDimensions, ViewportState, create_coordinate_arrays
from ..core.fractal_types import FractalRegistry, FractalVariant, JuliaParameters
from ..rendering.coloring import ColoringEngine, ColorScheme

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BandSpec:
    """A contiguous range of rows [row_start, row_stop)."""
    band_id: int
    row_start: int
    row_stop: int

    @property
    def height(self) -> int:
        return self.row_stop - self.row_start


@dataclass
class BandResult:
    """Rendered RGBA rows of one band."""
    band_id: int
    row_start: int
    pixels: np.ndarray
    processing_time: float


def create_band_grid(height: int, band_count: int) -> List[BandSpec]:
    """
    Split the rows of a frame into at most band_count near-equal bands.

    Args:
        height: Total image height
        band_count: Desired number of bands

    Returns:
        List of BandSpec objects covering every row exactly once
    """
    band_count = max(1, min(band_count, height))
    base, extra = divmod(height, band_count)

    bands = []
    row = 0
    for band_id in range(band_count):
        rows = base + (1 if band_id < extra else 0)
        bands.append(BandSpec(band_id, row, row + rows))
        row += rows

    logger.debug(f"Created {len(bands)} bands for {height} rows")
    return bands


def render_band(variant: FractalVariant, julia_parameters: Optional[JuliaParameters],
                cap: int, scheme: ColorScheme, dims: CanvasDimensions,
                viewport: ViewportState, band: BandSpec) -> BandResult:
    """
    Render one band of a frame; runs inside a worker process.

    Returns:
        BandResult holding a (band.height, width, 4) uint8 array
    """
    start_time = time.time()

    fractal = FractalRegistry.create_fractal(variant, julia_parameters)
    re, im = create_coordinate_arrays(dims, viewport, rows=(band.row_start, band.row_stop))
    iterations = fractal.iterate_array(re, im, cap)
    pixels = ColoringEngine(scheme).colorize(iterations, cap)

    return BandResult(band.band_id, band.row_start, pixels, time.time() - start_time)


class MultiprocessingAccelerator:
    """Process-pool frame renderer."""

    def __init__(self, num_processes: Optional[int] = None, bands_per_process: int = 4):
        """
        Initialize multiprocessing accelerator.

        Args:
            num_processes: Number of worker processes (None for CPU count)
            bands_per_process: Bands queued per worker, for load balancing
        """
        if num_processes is None:
            self.num_processes = get_optimal_process_count()
        else:
            self.num_processes = max(1, num_processes)

        self.bands_per_process = max(1, bands_per_process)
        logger.info(f"Multiprocessing accelerator: {self.num_processes} processes")

    def render_frame(self, variant: FractalVariant, julia_parameters: Optional[JuliaParameters],
                     cap: int, scheme: ColorScheme, dims: CanvasDimensions,
                     viewport: ViewportState, out: np.ndarray) -> None:
        """
        Render a full frame into out, an (height, width, 4) uint8 array.

        Each band is written to out[row_start:row_stop] only.
        """
        start_time = time.time()
        bands = create_band_grid(dims.height, self.num_processes * self.bands_per_process)

        logger.info(f"Processing {len(bands)} bands with {self.num_processes} processes")

        with ProcessPoolExecutor(max_workers=self.num_processes) as executor:
            futures = [
                executor.submit(render_band, variant, julia_parameters, cap, scheme,
                                dims, viewport, band)
                for band in bands
            ]
            for future in as_completed(futures):
                result = future.result()
                rows = result.pixels.shape[0]
                out[result.row_start:result.row_start + rows] = result.pixels
                logger.debug(f"Band {result.band_id} done in {result.processing_time:.3f}s")

        logger.info(f"Parallel render complete: {time.time() - start_time:.2f}s")


def get_multiprocessing_accelerator(num_processes: Optional[int] = None) -> MultiprocessingAccelerator:
    """Get a multiprocessing accelerator instance."""
    return MultiprocessingAccelerator(num_processes)


def get_optimal_process_count() -> int:
    """Get the number of worker processes to use."""
    return max(1, mp.cpu_count())
