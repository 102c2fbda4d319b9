"""
Pixel buffer and the single-process frame sweeps.

A frame is a row-major RGBA raster with its origin at the top-left corner;
pixel (x, y) lives at byte offset (y * width + x) * 4.
"""

import numpy as np
from typing import Optional, Tuple
import logging

from PIL import Image

from ..core.math_functions import (CanvasDimensions, ViewportState,
                                   map_pixel_to_complex, create_coordinate_arrays)
from ..core.fractal_types import FractalType
from .coloring import ColoringEngine, RGBA

logger = logging.getLogger(__name__)

CHANNELS = 4


class PixelBuffer:
    """
    A completed RGBA frame.

    The underlying array has shape (height, width, 4), dtype uint8, and is
    read-only: a buffer is only handed out once every pixel has been written.
    """

    def __init__(self, data: np.ndarray):
        if data.ndim != 3 or data.shape[2] != CHANNELS or data.dtype != np.uint8:
            raise ValueError(f"Expected uint8 array of shape (H, W, 4), got {data.dtype} {data.shape}")
        self._data = np.ascontiguousarray(data)
        self._data.setflags(write=False)

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def width(self) -> int:
        return self._data.shape[1]

    @property
    def height(self) -> int:
        return self._data.shape[0]

    @property
    def dimensions(self) -> CanvasDimensions:
        return CanvasDimensions(self.width, self.height)

    def __len__(self) -> int:
        return self._data.size

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self._data.shape == other._data.shape and bool(np.array_equal(self._data, other._data))

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height})"

    def pixel(self, x: int, y: int) -> RGBA:
        """Get the RGBA color at pixel (x, y)."""
        r, g, b, a = self._data[y, x]
        return (int(r), int(g), int(b), int(a))

    def tobytes(self) -> bytes:
        """Raw row-major RGBA bytes."""
        return self._data.tobytes()

    def to_image(self) -> Image.Image:
        """Convert to a Pillow RGBA image."""
        return Image.fromarray(self._data.copy())


def allocate_frame(dims: CanvasDimensions) -> np.ndarray:
    """Allocate a zeroed, writable (height, width, 4) frame."""
    return np.zeros((dims.height, dims.width, CHANNELS), dtype=np.uint8)


def render_scalar(fractal: FractalType, cap: int, coloring: ColoringEngine,
                  dims: CanvasDimensions, viewport: ViewportState, out: np.ndarray) -> None:
    """Reference sweep: map, iterate and color one pixel at a time."""
    flat = out.reshape(-1)
    for y in range(dims.height):
        for x in range(dims.width):
            point = map_pixel_to_complex(x, y, dims, viewport)
            offset = (y * dims.width + x) * CHANNELS
            flat[offset:offset + CHANNELS] = coloring.color(fractal.iterate(point, cap), cap)


def render_vectorized(fractal: FractalType, cap: int, coloring: ColoringEngine,
                      dims: CanvasDimensions, viewport: ViewportState, out: np.ndarray,
                      rows: Optional[Tuple[int, int]] = None) -> None:
    """Vectorised sweep over a band of rows (the whole frame by default)."""
    row_start, row_stop = rows if rows is not None else (0, dims.height)
    re, im = create_coordinate_arrays(dims, viewport, rows=(row_start, row_stop))
    iterations = fractal.iterate_array(re, im, cap)
    out[row_start:row_stop] = coloring.colorize(iterations, cap)
