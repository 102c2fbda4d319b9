"""
Escape-time fractal rendering library.

Renders the Mandelbrot set, Julia sets, the Burning Ship and the Mandelbox to
RGBA pixel buffers. A frame is a pure function of an immutable RenderConfig
and the canvas size; identical inputs always give byte-identical frames.

Example usage:
    >>> from fractal_explorer import RenderConfig, CanvasDimensions, render
    >>> config = RenderConfig(variant='julia', iteration_cap=200, color_scheme='fire')
    >>> frame = render(config, CanvasDimensions(800, 600))
    >>> frame.to_image().save('julia.png')
"""

__version__ = "1.0.0"
__author__ = "Fractal Explorer Team"

from fractal_explorer.core.math_functions import (CanvasDimensions, ComplexPoint, ViewportState,
                                                  map_pixel_to_complex)
from fractal_explorer.core.fractal_types import (FractalVariant, FractalRegistry, JuliaParameters,
                                                 JULIA_PRESETS, box_fold, iterate)
from fractal_explorer.rendering.coloring import ColorScheme, ColoringEngine, color_for
from fractal_explorer.rendering.frame import PixelBuffer
from fractal_explorer.rendering.image_output import ImageExporter, RenderMetadata
from fractal_explorer.exceptions import (FractalError, InvalidConfigurationError,
                                         BackendUnavailableError)

# Main API classes
from fractal_explorer.api import FractalRenderer, FractalExplorer, RenderConfig, render

__all__ = [
    "render",
    "FractalRenderer",
    "FractalExplorer",
    "RenderConfig",
    "CanvasDimensions",
    "ViewportState",
    "ComplexPoint",
    "JuliaParameters",
    "FractalVariant",
    "FractalRegistry",
    "ColorScheme",
    "ColoringEngine",
    "PixelBuffer",
    "ImageExporter",
    "RenderMetadata",
    "FractalError",
    "InvalidConfigurationError",
    "BackendUnavailableError",
    "JULIA_PRESETS",
    "map_pixel_to_complex",
    "iterate",
    "box_fold",
    "color_for",
]
