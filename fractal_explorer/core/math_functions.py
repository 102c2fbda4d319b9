"""
Viewport geometry and pixel-to-plane coordinate mapping.

The visible region of the complex plane is described by a zoom factor and a
center point. At zoom 1 the canvas spans 4 plane units vertically; the
horizontal pixel pitch is the vertical pitch multiplied by the canvas aspect
ratio.
"""

import math
import numpy as np
from typing import NamedTuple, Optional, Tuple
from dataclasses import dataclass
import logging

from ..exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)

# Height of the visible plane, in plane units, at zoom factor 1
PLANE_HEIGHT = 4.0


def _require_finite(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigurationError(f"{name} must be a real number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidConfigurationError(f"{name} must be finite, got {value!r}")


class ComplexPoint(NamedTuple):
    """A point of the complex plane."""
    re: float
    im: float

    def to_complex(self) -> complex:
        return complex(self.re, self.im)


@dataclass(frozen=True)
class CanvasDimensions:
    """Pixel size of the target raster."""

    width: int
    height: int

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate that both dimensions are positive integers."""
        for name in ('width', 'height'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")
            if value <= 0:
                raise InvalidConfigurationError(f"{name} must be positive, got {value}")

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class ViewportState:
    """Zoom and center of the visible region of the plane."""

    zoom_factor: float = 1.0
    center_real: float = 0.0
    center_imag: float = 0.0

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate viewport values."""
        _require_finite('zoom_factor', self.zoom_factor)
        _require_finite('center_real', self.center_real)
        _require_finite('center_imag', self.center_imag)
        if self.zoom_factor <= 0:
            raise InvalidConfigurationError(
                f"zoom_factor must be positive, got {self.zoom_factor}")
        # A subnormal zoom overflows the plane height to infinity
        if not math.isfinite(PLANE_HEIGHT / self.zoom_factor):
            raise InvalidConfigurationError(
                f"zoom_factor {self.zoom_factor} is too small to map the plane")

    def pixel_scale(self, dims: CanvasDimensions) -> float:
        """Plane units per vertical pixel."""
        return PLANE_HEIGHT / dims.height / self.zoom_factor

    def get_bounds(self, dims: CanvasDimensions) -> Tuple[float, float, float, float]:
        """Get the plane region covered by the canvas as (xmin, xmax, ymin, ymax)."""
        scale = self.pixel_scale(dims)
        half_width = dims.width / 2 * scale * dims.aspect_ratio
        half_height = dims.height / 2 * scale
        return (self.center_real - half_width, self.center_real + half_width,
                self.center_imag - half_height, self.center_imag + half_height)


def map_pixel_to_complex(x: int, y: int, dims: CanvasDimensions,
                         viewport: ViewportState) -> ComplexPoint:
    """
    Map a pixel position to its complex-plane coordinate.

    Args:
        x, y: Pixel coordinates, origin at the top-left corner
        dims: Canvas dimensions
        viewport: Zoom and center of the view

    Returns:
        ComplexPoint for the pixel
    """
    if not (0 <= x < dims.width and 0 <= y < dims.height):
        raise InvalidConfigurationError(
            f"Pixel ({x}, {y}) outside canvas {dims.width}x{dims.height}")

    aspect = dims.width / dims.height
    scale = PLANE_HEIGHT / dims.height / viewport.zoom_factor
    re = (x - dims.width / 2) * scale * aspect + viewport.center_real
    im = (y - dims.height / 2) * scale + viewport.center_imag
    return ComplexPoint(re, im)


def complex_to_pixel(point: ComplexPoint, dims: CanvasDimensions,
                     viewport: ViewportState) -> Tuple[float, float]:
    """Convert a complex-plane point back to (fractional) pixel coordinates."""
    aspect = dims.width / dims.height
    scale = PLANE_HEIGHT / dims.height / viewport.zoom_factor
    x = (point.re - viewport.center_real) / (scale * aspect) + dims.width / 2
    y = (point.im - viewport.center_imag) / scale + dims.height / 2
    return x, y


def create_coordinate_arrays(dims: CanvasDimensions, viewport: ViewportState,
                             rows: Optional[Tuple[int, int]] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Create coordinate arrays for every pixel of the canvas.

    Element [j, i] equals map_pixel_to_complex(i, row_start + j) bit for bit:
    the arithmetic is applied in the same order on float64 values.

    Args:
        dims: Canvas dimensions
        viewport: Zoom and center of the view
        rows: Optional (start, stop) row range; defaults to the full height

    Returns:
        Tuple of (real_coords, imag_coords), each of shape (rows, width)
    """
    row_start, row_stop = rows if rows is not None else (0, dims.height)
    if not 0 <= row_start <= row_stop <= dims.height:
        raise InvalidConfigurationError(
            f"Row range {row_start}:{row_stop} outside canvas height {dims.height}")

    aspect = dims.width / dims.height
    scale = PLANE_HEIGHT / dims.height / viewport.zoom_factor

    xs = np.arange(dims.width, dtype=np.float64)
    ys = np.arange(row_start, row_stop, dtype=np.float64)
    re_row = (xs - dims.width / 2) * scale * aspect + viewport.center_real
    im_col = (ys - dims.height / 2) * scale + viewport.center_imag

    re, im = np.meshgrid(re_row, im_col)
    return re, im
