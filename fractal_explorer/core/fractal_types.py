"""
Fractal variants and their escape-time iteration kernels.

Each variant provides a scalar kernel, iterating a single complex point, and a
vectorised kernel that iterates whole NumPy coordinate arrays. Both apply the
same float64 operations in the same order, so they agree element by element.
"""

import numpy as np
from typing import Dict, Optional, Tuple
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from enum import Enum
import logging
import math

from .math_functions import ComplexPoint
from ..exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)

# Squared escape radius for the quadratic maps (|z| > 2)
ESCAPE_RADIUS_SQ = 4.0

# Squared escape radius for the Mandelbox (|v| > 4)
MANDELBOX_ESCAPE_RADIUS_SQ = 16.0
MANDELBOX_SCALE = 2.0


def normalize_name(value) -> str:
    """Turn 'burningShip', 'Burning Ship' or 'burning-ship' into 'burning_ship'."""
    text = str(value).strip()
    chars = []
    for prev, ch in zip(' ' + text, text):
        if ch.isupper() and prev.islower():
            chars.append('_')
        chars.append(ch)
    return ''.join(chars).replace('-', '_').replace(' ', '_').lower()


class FractalVariant(Enum):
    """The closed set of supported fractal variants."""

    MANDELBROT = 'mandelbrot'
    JULIA = 'julia'
    BURNING_SHIP = 'burning_ship'
    MANDELBOX = 'mandelbox'

    @classmethod
    def parse(cls, value) -> 'FractalVariant':
        """Parse a variant from its name ('burning_ship', 'burning-ship', 'burningShip')."""
        if isinstance(value, cls):
            return value
        try:
            return cls(normalize_name(value))
        except ValueError:
            available = ', '.join(v.value for v in cls)
            raise InvalidConfigurationError(
                f"Unknown fractal variant '{value}'. Available: {available}") from None


@dataclass(frozen=True)
class JuliaParameters:
    """Constant c of the Julia recurrence z -> z^2 + c."""

    c_real: float = -0.7
    c_imag: float = 0.27015

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Validate Julia parameters."""
        for name in ('c_real', 'c_imag'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConfigurationError(f"{name} must be numeric")
            if not math.isfinite(value):
                raise InvalidConfigurationError(f"{name} must be finite")

    @property
    def c(self) -> complex:
        """Get the Julia constant as a complex number."""
        return complex(self.c_real, self.c_imag)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def box_fold(v: float) -> float:
    """Reflect v back into [-1, 1] across the planes x = 1 and x = -1."""
    if v > 1:
        return 2 - v
    if v < -1:
        return -2 - v
    return v


def mandelbrot_iterations(re: float, im: float, cap: int) -> int:
    """Escape step of z -> z^2 + c with z0 = 0 and c = re + i*im."""
    x = 0.0
    y = 0.0
    for i in range(cap):
        x2 = x * x
        y2 = y * y
        if x2 + y2 > ESCAPE_RADIUS_SQ:
            return i
        y = 2 * x * y + im
        x = x2 - y2 + re
    return cap


def julia_iterations(re: float, im: float, cap: int,
                     c_real: float, c_imag: float) -> int:
    """Escape step of z -> z^2 + c with z0 = re + i*im and a fixed c."""
    x = re
    y = im
    for i in range(cap):
        x2 = x * x
        y2 = y * y
        if x2 + y2 > ESCAPE_RADIUS_SQ:
            return i
        y = 2 * x * y + c_imag
        x = x2 - y2 + c_real
    return cap


def burning_ship_iterations(re: float, im: float, cap: int) -> int:
    """Escape step of the Burning Ship map, which folds 2xy to its absolute value."""
    x = 0.0
    y = 0.0
    for i in range(cap):
        x2 = x * x
        y2 = y * y
        if x2 + y2 > ESCAPE_RADIUS_SQ:
            return i
        y = abs(2 * x * y) + im
        x = x2 - y2 + re
    return cap


def mandelbox_iterations(re: float, im: float, cap: int) -> int:
    """
    Escape step of the planar slice of the Mandelbox.

    Each step box-folds the three coordinates, scales them by 2 and adds the
    starting point (z gets no offset); the escape test runs on the updated
    state of the same step.
    """
    x = re
    y = im
    z = 0.0
    for i in range(cap):
        x = box_fold(x) * MANDELBOX_SCALE + re
        y = box_fold(y) * MANDELBOX_SCALE + im
        z = box_fold(z) * MANDELBOX_SCALE
        if x * x + y * y + z * z > MANDELBOX_ESCAPE_RADIUS_SQ:
            return i
    return cap


def box_fold_array(v: np.ndarray) -> np.ndarray:
    """Vectorised box_fold."""
    return np.where(v > 1, 2 - v, np.where(v < -1, -2 - v, v))


def _quadratic_escape(x: np.ndarray, y: np.ndarray, add_re, add_im,
                      cap: int, fold_abs: bool) -> np.ndarray:
    """
    Iterate z -> z^2 + (add_re + i*add_im) over flat arrays.

    Escaped points are dropped from the working set after every step, so only
    live orbits are updated and nothing overflows.
    """
    counts = np.full(x.shape, cap, dtype=np.int32)
    idx = np.arange(x.size)
    add_is_array = isinstance(add_re, np.ndarray)

    for i in range(cap):
        x2 = x * x
        y2 = y * y
        out = x2 + y2 > ESCAPE_RADIUS_SQ
        if out.any():
            counts[idx[out]] = i
            keep = ~out
            idx = idx[keep]
            if idx.size == 0:
                break
            x, y, x2, y2 = x[keep], y[keep], x2[keep], y2[keep]
            if add_is_array:
                add_re, add_im = add_re[keep], add_im[keep]

        if fold_abs:
            y = np.abs(2 * x * y) + add_im
        else:
            y = 2 * x * y + add_im
        x = x2 - y2 + add_re

    return counts


def mandelbrot_array(re: np.ndarray, im: np.ndarray, cap: int) -> np.ndarray:
    """Vectorised mandelbrot_iterations."""
    c_re = np.ascontiguousarray(re, dtype=np.float64).ravel()
    c_im = np.ascontiguousarray(im, dtype=np.float64).ravel()
    counts = _quadratic_escape(np.zeros_like(c_re), np.zeros_like(c_im),
                               c_re, c_im, cap, fold_abs=False)
    return counts.reshape(np.shape(re))


def julia_array(re: np.ndarray, im: np.ndarray, cap: int,
                c_real: float, c_imag: float) -> np.ndarray:
    """Vectorised julia_iterations."""
    x = np.array(re, dtype=np.float64).ravel()
    y = np.array(im, dtype=np.float64).ravel()
    counts = _quadratic_escape(x, y, float(c_real), float(c_imag), cap, fold_abs=False)
    return counts.reshape(np.shape(re))


def burning_ship_array(re: np.ndarray, im: np.ndarray, cap: int) -> np.ndarray:
    """Vectorised burning_ship_iterations."""
    c_re = np.ascontiguousarray(re, dtype=np.float64).ravel()
    c_im = np.ascontiguousarray(im, dtype=np.float64).ravel()
    counts = _quadratic_escape(np.zeros_like(c_re), np.zeros_like(c_im),
                               c_re, c_im, cap, fold_abs=True)
    return counts.reshape(np.shape(re))


def mandelbox_array(re: np.ndarray, im: np.ndarray, cap: int) -> np.ndarray:
    """Vectorised mandelbox_iterations."""
    c_re = np.array(re, dtype=np.float64).ravel()
    c_im = np.array(im, dtype=np.float64).ravel()
    counts = np.full(c_re.shape, cap, dtype=np.int32)
    idx = np.arange(c_re.size)
    x = c_re.copy()
    y = c_im.copy()
    z = np.zeros_like(c_re)

    for i in range(cap):
        if idx.size == 0:
            break
        x = box_fold_array(x) * MANDELBOX_SCALE + c_re
        y = box_fold_array(y) * MANDELBOX_SCALE + c_im
        z = box_fold_array(z) * MANDELBOX_SCALE
        out = x * x + y * y + z * z > MANDELBOX_ESCAPE_RADIUS_SQ
        if out.any():
            counts[idx[out]] = i
            keep = ~out
            idx = idx[keep]
            x, y, z = x[keep], y[keep], z[keep]
            c_re, c_im = c_re[keep], c_im[keep]

    return counts.reshape(np.shape(re))


class FractalType(ABC):
    """Strategy object binding a variant to its kernels."""

    variant: FractalVariant

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def iterate(self, point: ComplexPoint, cap: int) -> int:
        """Escape step of a single point, or cap if it never escapes."""

    @abstractmethod
    def iterate_array(self, re: np.ndarray, im: np.ndarray, cap: int) -> np.ndarray:
        """Escape steps for coordinate arrays, as an int32 array of the same shape."""

    @abstractmethod
    def get_description(self) -> str:
        pass

    def kernel_constants(self) -> Tuple[float, float]:
        """Constants passed to compiled kernels; only the Julia set uses them."""
        return (0.0, 0.0)


class MandelbrotSet(FractalType):
    """Mandelbrot set."""

    variant = FractalVariant.MANDELBROT

    def __init__(self):
        super().__init__("Mandelbrot")

    def iterate(self, point: ComplexPoint, cap: int) -> int:
        return mandelbrot_iterations(point.re, point.im, cap)

    def iterate_array(self, re: np.ndarray, im: np.ndarray, cap: int) -> np.ndarray:
        return mandelbrot_array(re, im, cap)

    def get_description(self) -> str:
        return "Mandelbrot set: z_{n+1} = z_n^2 + c, z_0 = 0, c is the point"


class JuliaSet(FractalType):
    """Julia set for a fixed constant c."""

    variant = FractalVariant.JULIA

    def __init__(self, parameters: Optional[JuliaParameters] = None):
        super().__init__("Julia")
        self.parameters = parameters or JuliaParameters()

    def iterate(self, point: ComplexPoint, cap: int) -> int:
        return julia_iterations(point.re, point.im, cap,
                                self.parameters.c_real, self.parameters.c_imag)

    def iterate_array(self, re: np.ndarray, im: np.ndarray, cap: int) -> np.ndarray:
        return julia_array(re, im, cap, self.parameters.c_real, self.parameters.c_imag)

    def get_description(self) -> str:
        return (f"Julia set: z_{{n+1}} = z_n^2 + c, where c = {self.parameters.c} "
                "and z_0 is the point")

    def kernel_constants(self) -> Tuple[float, float]:
        return (float(self.parameters.c_real), float(self.parameters.c_imag))


class BurningShip(FractalType):
    """Burning Ship fractal."""

    variant = FractalVariant.BURNING_SHIP

    def __init__(self):
        super().__init__("Burning Ship")

    def iterate(self, point: ComplexPoint, cap: int) -> int:
        return burning_ship_iterations(point.re, point.im, cap)

    def iterate_array(self, re: np.ndarray, im: np.ndarray, cap: int) -> np.ndarray:
        return burning_ship_array(re, im, cap)

    def get_description(self) -> str:
        return "Burning Ship: x' = x^2 - y^2 + Re(c), y' = |2xy| + Im(c)"


class Mandelbox(FractalType):
    """Planar slice of the Mandelbox with scale 2."""

    variant = FractalVariant.MANDELBOX

    def __init__(self):
        super().__init__("Mandelbox")

    def iterate(self, point: ComplexPoint, cap: int) -> int:
        return mandelbox_iterations(point.re, point.im, cap)

    def iterate_array(self, re: np.ndarray, im: np.ndarray, cap: int) -> np.ndarray:
        return mandelbox_array(re, im, cap)

    def get_description(self) -> str:
        return "Mandelbox: v' = 2 * boxfold(v) + c, escape when |v|^2 > 16"


class FractalRegistry:
    """Registry mapping every variant to its implementation."""

    _fractals: Dict[FractalVariant, type] = {
        FractalVariant.MANDELBROT: MandelbrotSet,
        FractalVariant.JULIA: JuliaSet,
        FractalVariant.BURNING_SHIP: BurningShip,
        FractalVariant.MANDELBOX: Mandelbox,
    }

    @classmethod
    def get(cls, variant) -> type:
        """
        Get the fractal class for a variant.

        Args:
            variant: FractalVariant or its name

        Returns:
            FractalType subclass
        """
        variant = FractalVariant.parse(variant)
        fractal_class = cls._fractals.get(variant)
        if fractal_class is None:
            raise InvalidConfigurationError(f"No kernel registered for {variant.value}")
        return fractal_class

    @classmethod
    def create_fractal(cls, variant, julia_parameters: Optional[JuliaParameters] = None) -> FractalType:
        """Create the strategy object for a variant."""
        fractal_class = cls.get(variant)
        if fractal_class is JuliaSet:
            return JuliaSet(julia_parameters)
        return fractal_class()

    @classmethod
    def list_fractals(cls) -> Dict[str, str]:
        """Get a dictionary of available fractals and their descriptions."""
        return {variant.value: cls.create_fractal(variant).get_description()
                for variant in FractalVariant}


def iterate(variant, point: ComplexPoint, cap: int,
            julia_parameters: Optional[JuliaParameters] = None) -> int:
    """
    Run the kernel of a variant on a single point.

    Args:
        variant: Fractal variant
        point: Starting point
        cap: Maximum number of steps
        julia_parameters: Julia constant, ignored by the other variants

    Returns:
        Escape step in [0, cap]; cap means the point never escaped
    """
    return FractalRegistry.create_fractal(variant, julia_parameters).iterate(point, cap)


# Julia constants worth looking at; 'classic' is the explorer's default
JULIA_PRESETS = {
    'classic': JuliaParameters(c_real=-0.7, c_imag=0.27015),
    'dragon': JuliaParameters(c_real=-0.75, c_imag=0.1),
    'spiral': JuliaParameters(c_real=-0.4, c_imag=0.6),
    'dendrite': JuliaParameters(c_real=-0.235125, c_imag=0.827215),
    'lightning': JuliaParameters(c_real=-0.8, c_imag=0.156),
    'rabbit': JuliaParameters(c_real=-0.123, c_imag=0.745),
    'airplane': JuliaParameters(c_real=-1.25, c_imag=0.0),
    'san_marco': JuliaParameters(c_real=-0.75, c_imag=0.0),
    'siegel_disk': JuliaParameters(c_real=-0.391, c_imag=-0.587),
}
