"""
Main API classes for fractal rendering.

This module ties the coordinate mapper, the iteration kernels and the color
mapper together. A render is a pure function of an immutable RenderConfig
and the canvas dimensions; the FractalExplorer controller produces new
configurations as the view is zoomed, panned or reset.
"""

import numpy as np
from typing import Optional, Union, Dict, Any, Tuple, List
from dataclasses import dataclass, field, replace
import logging
import time
from pathlib import Path

from .core.math_functions import (CanvasDimensions, ComplexPoint, ViewportState,
                                  map_pixel_to_complex, complex_to_pixel,
                                  create_coordinate_arrays)
from .core.fractal_types import (FractalVariant, FractalRegistry, FractalType,
                                 JuliaParameters)
from .rendering.coloring import ColoringEngine, ColorScheme
from .rendering.frame import PixelBuffer, allocate_frame, render_scalar, render_vectorized
from .rendering.image_output import ImageExporter, RenderMetadata, default_filename
from .acceleration.numba_backend import get_numba_accelerator, is_numba_available
from .acceleration.multiprocessing import get_multiprocessing_accelerator
from .exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 1000
DEFAULT_ITERATIONS = 100

# Detail slider range of the interactive explorer
MIN_DETAIL = 10
DETAIL_STEP = 10

JULIA_PARAMETER_RANGE = (-2.0, 2.0)

ZOOM_STEP = 1.5
RECENTER_ZOOM = 2.0

BACKENDS = ('auto', 'scalar', 'numpy', 'multiprocessing', 'numba')

# Frames at least this large go to the process pool when backend='auto'
MULTIPROCESSING_MIN_PIXELS = 1_000_000

# Smaller frames stay on numpy when backend='auto'
NUMBA_MIN_PIXELS = 65_536


@dataclass(frozen=True)
class RenderConfig:
    """Everything that determines one frame, apart from its pixel size."""

    variant: FractalVariant = FractalVariant.MANDELBROT
    iteration_cap: int = DEFAULT_ITERATIONS
    color_scheme: ColorScheme = ColorScheme.DEFAULT
    viewport: ViewportState = field(default_factory=ViewportState)
    julia_parameters: JuliaParameters = field(default_factory=JuliaParameters)

    def __post_init__(self):
        # Accept names for the enumerations
        object.__setattr__(self, 'variant', FractalVariant.parse(self.variant))
        object.__setattr__(self, 'color_scheme', ColorScheme.parse(self.color_scheme))
        self.validate()

    def validate(self) -> None:
        """Validate configuration parameters."""
        cap = self.iteration_cap
        if isinstance(cap, bool) or not isinstance(cap, (int, np.integer)):
            raise InvalidConfigurationError(f"iteration_cap must be an integer, got {cap!r}")
        if not 1 <= cap <= MAX_ITERATIONS:
            raise InvalidConfigurationError(
                f"iteration_cap must be between 1 and {MAX_ITERATIONS}, got {cap}")

        if not isinstance(self.viewport, ViewportState):
            raise InvalidConfigurationError("viewport must be a ViewportState")
        if not isinstance(self.julia_parameters, JuliaParameters):
            raise InvalidConfigurationError("julia_parameters must be JuliaParameters")

    def replace(self, **changes) -> 'RenderConfig':
        """Return a copy with some fields changed."""
        return replace(self, **changes)

    def create_fractal(self) -> FractalType:
        return FractalRegistry.create_fractal(self.variant, self.julia_parameters)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary."""
        return {
            'variant': self.variant.value,
            'iteration_cap': self.iteration_cap,
            'color_scheme': self.color_scheme.value,
            'viewport': {
                'zoom_factor': self.viewport.zoom_factor,
                'center_real': self.viewport.center_real,
                'center_imag': self.viewport.center_imag,
            },
            'julia_parameters': self.julia_parameters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderConfig':
        """Create a configuration from a dictionary as produced by to_dict."""
        data = dict(data)
        unknown = set(data) - {'variant', 'iteration_cap', 'color_scheme',
                               'viewport', 'julia_parameters'}
        if unknown:
            raise InvalidConfigurationError(f"Unknown render settings: {', '.join(sorted(unknown))}")
        try:
            if isinstance(data.get('viewport'), dict):
                data['viewport'] = ViewportState(**data['viewport'])
            if isinstance(data.get('julia_parameters'), dict):
                data['julia_parameters'] = JuliaParameters(**data['julia_parameters'])
        except TypeError as e:
            raise InvalidConfigurationError(str(e)) from e
        return cls(**data)


def _as_dimensions(dims: Union[CanvasDimensions, Tuple[int, int]]) -> CanvasDimensions:
    if isinstance(dims, CanvasDimensions):
        return dims
    try:
        width, height = dims
    except (TypeError, ValueError):
        raise InvalidConfigurationError(
            f"Expected CanvasDimensions or (width, height), got {dims!r}") from None
    return CanvasDimensions(width, height)


class FractalRenderer:
    """Frame renderer: sweeps every pixel of a canvas for one configuration."""

    def __init__(self, config: Optional[RenderConfig] = None, backend: str = 'auto',
                 num_processes: Optional[int] = None):
        """
        Initialize fractal renderer.

        Args:
            config: Rendering configuration (uses defaults if None)
            backend: One of BACKENDS
            num_processes: Worker count for the multiprocessing backend
        """
        self.config = config or RenderConfig()
        if not isinstance(self.config, RenderConfig):
            raise InvalidConfigurationError("config must be a RenderConfig")
        self.config.validate()

        if backend not in BACKENDS:
            raise InvalidConfigurationError(
                f"Unknown backend '{backend}'. Available: {', '.join(BACKENDS)}")
        self.backend = backend
        self.num_processes = num_processes
        self.last_render_time = 0.0
        self.last_backend = None

    def _choose_backend(self, dims: CanvasDimensions) -> str:
        if self.backend != 'auto':
            return self.backend
        if dims.pixel_count >= MULTIPROCESSING_MIN_PIXELS:
            return 'multiprocessing'
        if dims.pixel_count >= NUMBA_MIN_PIXELS and is_numba_available():
            return 'numba'
        return 'numpy'

    def render(self, dims: Union[CanvasDimensions, Tuple[int, int]]) -> PixelBuffer:
        """
        Render a complete frame.

        Args:
            dims: Canvas dimensions

        Returns:
            Completed, read-only PixelBuffer
        """
        dims = _as_dimensions(dims)
        config = self.config
        backend = self._choose_backend(dims)
        start_time = time.time()

        logger.info(f"Starting render: {config.variant.value} {dims.width}x{dims.height}, "
                    f"cap={config.iteration_cap}, backend={backend}")

        fractal = config.create_fractal()
        coloring = ColoringEngine(config.color_scheme)
        out = allocate_frame(dims)

        if backend == 'scalar':
            render_scalar(fractal, config.iteration_cap, coloring, dims, config.viewport, out)
        elif backend == 'numpy':
            render_vectorized(fractal, config.iteration_cap, coloring, dims, config.viewport, out)
        elif backend == 'numba':
            accelerator = get_numba_accelerator()
            re, im = create_coordinate_arrays(dims, config.viewport)
            iterations = accelerator.iterate_frame(fractal, re, im, config.iteration_cap)
            out[:] = coloring.colorize(iterations, config.iteration_cap)
        else:
            accelerator = get_multiprocessing_accelerator(self.num_processes)
            accelerator.render_frame(config.variant, config.julia_parameters,
                                     config.iteration_cap, config.color_scheme,
                                     dims, config.viewport, out)

        self.last_render_time = time.time() - start_time
        self.last_backend = backend
        logger.info(f"Render complete: {self.last_render_time:.2f}s")
        return PixelBuffer(out)

    def metadata(self, dims: Union[CanvasDimensions, Tuple[int, int]]) -> RenderMetadata:
        """Describe the last render of this configuration at the given size."""
        dims = _as_dimensions(dims)
        config = self.config
        parameters = {}
        if config.variant is FractalVariant.JULIA:
            parameters = config.julia_parameters.to_dict()
        return RenderMetadata(
            variant=config.variant.value,
            resolution=(dims.width, dims.height),
            iteration_cap=config.iteration_cap,
            color_scheme=config.color_scheme.value,
            zoom_factor=config.viewport.zoom_factor,
            center=(config.viewport.center_real, config.viewport.center_imag),
            render_time_seconds=self.last_render_time,
            backend=self.last_backend or self.backend,
            fractal_parameters=parameters,
        )


def render(config: RenderConfig, dims: Union[CanvasDimensions, Tuple[int, int]],
           backend: str = 'auto', num_processes: Optional[int] = None) -> PixelBuffer:
    """
    Render one frame.

    Args:
        config: Render configuration
        dims: Canvas dimensions
        backend: One of BACKENDS; all produce byte-identical frames
        num_processes: Worker count for the multiprocessing backend

    Returns:
        Completed, read-only PixelBuffer
    """
    return FractalRenderer(config, backend, num_processes).render(dims)


class FractalExplorer:
    """
    View controller for interactive exploration.

    Holds the current RenderConfig and canvas size and replaces them with new
    immutable snapshots on every zoom, pan or parameter change. Rendering only
    happens when render_current() is called.
    """

    def __init__(self, dims: Union[CanvasDimensions, Tuple[int, int]] = (800, 600),
                 initial_config: Optional[RenderConfig] = None, backend: str = 'auto'):
        self.dims = _as_dimensions(dims)
        self.config = initial_config or RenderConfig()
        self.backend = backend
        self.history: List[ViewportState] = []
        self.current_image: Optional[PixelBuffer] = None

    @property
    def viewport(self) -> ViewportState:
        return self.config.viewport

    def _set_viewport(self, viewport: ViewportState) -> None:
        self.history.append(self.config.viewport)
        self.config = self.config.replace(viewport=viewport)

    def render_current(self) -> PixelBuffer:
        """Render the current configuration."""
        self.current_image = render(self.config, self.dims, self.backend)
        return self.current_image

    def resize(self, width: int, height: int) -> None:
        self.dims = CanvasDimensions(width, height)

    def zoom_in(self, factor: float = ZOOM_STEP) -> ViewportState:
        """Zoom in about the current center."""
        viewport = self.viewport
        self._set_viewport(replace(viewport, zoom_factor=viewport.zoom_factor * factor))
        logger.debug(f"Zoomed in to {self.viewport.zoom_factor}")
        return self.viewport

    def zoom_out(self, factor: float = ZOOM_STEP) -> ViewportState:
        """Zoom out about the current center."""
        viewport = self.viewport
        self._set_viewport(replace(viewport, zoom_factor=viewport.zoom_factor / factor))
        logger.debug(f"Zoomed out to {self.viewport.zoom_factor}")
        return self.viewport

    def recenter(self, x: int, y: int, factor: float = RECENTER_ZOOM) -> ViewportState:
        """
        Center the view on a pixel and zoom in.

        Args:
            x, y: Pixel that becomes the new center
            factor: Zoom multiplication factor
        """
        point = map_pixel_to_complex(x, y, self.dims, self.viewport)
        self._set_viewport(ViewportState(self.viewport.zoom_factor * factor, point.re, point.im))
        logger.info(f"Recentered on {point.to_complex()} at zoom {self.viewport.zoom_factor}")
        return self.viewport

    def pan(self, dx: float, dy: float) -> ViewportState:
        """
        Drag the view by a screen-space offset.

        The image follows the pointer at half the pixel pitch of the plane,
        which keeps drags smooth at high zoom.

        Args:
            dx, dy: Pointer movement in pixels
        """
        viewport = self.viewport
        step = 2 / self.dims.height / viewport.zoom_factor
        self._set_viewport(replace(viewport,
                                   center_real=viewport.center_real - dx * step,
                                   center_imag=viewport.center_imag - dy * step))
        return self.viewport

    def go_back(self) -> ViewportState:
        """Return to the previous view from history."""
        if not self.history:
            logger.warning("No history available")
            return self.viewport
        self.config = self.config.replace(viewport=self.history.pop())
        return self.viewport

    def reset(self) -> RenderConfig:
        """Reset the view and the Julia constant to their defaults."""
        self.config = self.config.replace(viewport=ViewportState(),
                                          julia_parameters=JuliaParameters())
        self.history = []
        logger.info("Reset to default view")
        return self.config

    def set_variant(self, variant) -> RenderConfig:
        self.config = self.config.replace(variant=FractalVariant.parse(variant))
        return self.config

    def set_color_scheme(self, scheme) -> RenderConfig:
        self.config = self.config.replace(color_scheme=ColorScheme.parse(scheme))
        return self.config

    def set_iterations(self, iterations: int) -> RenderConfig:
        """Set the iteration cap, snapped to the detail slider's range and step."""
        snapped = int(round(iterations / DETAIL_STEP)) * DETAIL_STEP
        snapped = min(MAX_ITERATIONS, max(MIN_DETAIL, snapped))
        self.config = self.config.replace(iteration_cap=snapped)
        return self.config

    def set_julia(self, c_real: float, c_imag: float) -> RenderConfig:
        """Set the Julia constant, clamping both parts to [-2, 2]."""
        low, high = JULIA_PARAMETER_RANGE
        parameters = JuliaParameters(min(high, max(low, c_real)), min(high, max(low, c_imag)))
        self.config = self.config.replace(julia_parameters=parameters)
        return self.config

    def export(self, filepath=None, exporter: Optional[ImageExporter] = None) -> Path:
        """
        Render the current configuration and save it as an image.

        Args:
            filepath: Output path; defaults to fractal-<variant>-<millis>.png
            exporter: ImageExporter to use

        Returns:
            The path written
        """
        if filepath is None:
            filepath = default_filename(self.config.variant.value)
        renderer = FractalRenderer(self.config, self.backend)
        self.current_image = renderer.render(self.dims)
        metadata = renderer.metadata(self.dims)
        return (exporter or ImageExporter()).save_image(self.current_image, filepath, metadata)

    def get_exploration_info(self) -> Dict[str, Any]:
        """
        Get current exploration state information.

        origin_pixel is the fractional pixel position of the plane origin; it
        may lie outside the canvas.
        """
        viewport = self.viewport
        return {
            'fractal': self.config.variant.value,
            'bounds': viewport.get_bounds(self.dims),
            'origin_pixel': complex_to_pixel(ComplexPoint(0.0, 0.0), self.dims, viewport),
            'center': (viewport.center_real, viewport.center_imag),
            'zoom_factor': viewport.zoom_factor,
            'iteration_cap': self.config.iteration_cap,
            'color_scheme': self.config.color_scheme.value,
            'history_depth': len(self.history),
        }
