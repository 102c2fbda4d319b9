"""
Escape-time coloring schemes.

An iteration count is turned into an 8-bit RGBA color. Points that never
escaped (count == cap) are always opaque black; escaped points are colored by
one of four closed-form schemes.
"""

import math
import numpy as np
from typing import Dict, Tuple
from enum import Enum
from functools import lru_cache
import logging

from ..core.fractal_types import normalize_name
from ..exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]

INSIDE_COLOR: RGBA = (0, 0, 0, 255)
OPAQUE = 255


class ColorScheme(Enum):
    """Available coloring schemes."""

    DEFAULT = 'default'
    RAINBOW = 'rainbow'
    FIRE = 'fire'
    ELECTRIC = 'electric'

    @classmethod
    def parse(cls, value) -> 'ColorScheme':
        if isinstance(value, cls):
            return value
        try:
            return cls(normalize_name(value))
        except ValueError:
            available = ', '.join(s.value for s in cls)
            raise InvalidConfigurationError(
                f"Unknown color scheme '{value}'. Available: {available}") from None


def to_channel(value: float) -> int:
    """Round to the nearest integer (ties to even) and clamp to [0, 255]."""
    return min(255, max(0, int(round(value))))


def _default(i: int) -> Tuple[float, float, float]:
    return (i % 16 * 16, i % 8 * 32, i % 4 * 64)


def _rainbow(i: int) -> Tuple[float, float, float]:
    # Phase-shifted sines sweep the hue circle
    return (math.sin(0.3 * i) * 127 + 128,
            math.sin(0.3 * i + 2) * 127 + 128,
            math.sin(0.3 * i + 4) * 127 + 128)


def _fire(i: int) -> Tuple[float, float, float]:
    return (min(255, i * 8), min(255, i * 4), 0)


def _electric(i: int) -> Tuple[float, float, float]:
    return (min(255, i * 4), min(255, i * 8), min(255, i * 16))


_SCHEMES = {
    ColorScheme.DEFAULT: _default,
    ColorScheme.RAINBOW: _rainbow,
    ColorScheme.FIRE: _fire,
    ColorScheme.ELECTRIC: _electric,
}


def color_for(iteration: int, cap: int, scheme=ColorScheme.DEFAULT) -> RGBA:
    """
    Convert an iteration count to an RGBA color.

    Args:
        iteration: Escape step in [0, cap]
        cap: Iteration cap used for the render
        scheme: ColorScheme or its name

    Returns:
        (r, g, b, a) tuple of ints in [0, 255]
    """
    if iteration == cap:
        return INSIDE_COLOR

    r, g, b = _SCHEMES[ColorScheme.parse(scheme)](iteration)
    return (to_channel(r), to_channel(g), to_channel(b), OPAQUE)


@lru_cache(maxsize=32)
def build_lookup_table(cap: int, scheme: ColorScheme) -> np.ndarray:
    """
    Build a (cap + 1, 4) uint8 table whose row i is color_for(i, cap, scheme).

    The table is read-only and cached; indexing it with an iteration array
    colors a whole frame at once.
    """
    scheme = ColorScheme.parse(scheme)
    table = np.array([color_for(i, cap, scheme) for i in range(cap + 1)], dtype=np.uint8)
    table.setflags(write=False)
    logger.debug(f"Built {scheme.value} lookup table for cap {cap}")
    return table


class ColoringEngine:
    """Colors iteration arrays with a scheme."""

    def __init__(self, scheme=ColorScheme.DEFAULT):
        self.scheme = ColorScheme.parse(scheme)

    def colorize(self, iterations: np.ndarray, cap: int) -> np.ndarray:
        """
        Color an array of iteration counts.

        Args:
            iterations: Integer array of escape steps in [0, cap]
            cap: Iteration cap used for the render

        Returns:
            uint8 array of shape iterations.shape + (4,)
        """
        table = build_lookup_table(cap, self.scheme)
        return table[iterations]

    def color(self, iteration: int, cap: int) -> RGBA:
        return color_for(iteration, cap, self.scheme)

    @staticmethod
    def list_schemes() -> Dict[str, str]:
        """Get available schemes with a short description."""
        return {
            ColorScheme.DEFAULT.value: "Banded RGB from the low bits of the iteration count",
            ColorScheme.RAINBOW.value: "Cyclic hue sweep of phase-shifted sine waves",
            ColorScheme.FIRE.value: "Black through red and orange to yellow",
            ColorScheme.ELECTRIC.value: "Black through blue to white",
        }
