"""
Numba JIT compilation backend for frame rendering.

The sweep functions below are plain Python; they are compiled with
numba.njit(parallel=True, cache=True) the first time a variant is rendered,
and the compiled code is cached on disk for later processes. They repeat
the scalar kernels' arithmetic step for step so compiled frames match the
other backends exactly.
"""

import numpy as np
from typing import Callable, Dict
import logging

from ..core.fractal_types import (FractalType, FractalVariant, ESCAPE_RADIUS_SQ,
                                  MANDELBOX_ESCAPE_RADIUS_SQ, MANDELBOX_SCALE)
from ..exceptions import BackendUnavailableError

logger = logging.getLogger(__name__)

try:
    import numba
    NUMBA_AVAILABLE = True
except ImportError:
    numba = None
    NUMBA_AVAILABLE = False


def _mandelbrot_sweep(c_re, c_im, cap, c_real, c_imag, out):
    height, width = c_re.shape
    for row in numba.prange(height):
        for col in range(width):
            re = c_re[row, col]
            im = c_im[row, col]
            x = 0.0
            y = 0.0
            n = cap
            for i in range(cap):
                x2 = x * x
                y2 = y * y
                if x2 + y2 > ESCAPE_RADIUS_SQ:
                    n = i
                    break
                y = 2 * x * y + im
                x = x2 - y2 + re
            out[row, col] = n


def _julia_sweep(c_re, c_im, cap, c_real, c_imag, out):
    height, width = c_re.shape
    for row in numba.prange(height):
        for col in range(width):
            x = c_re[row, col]
            y = c_im[row, col]
            n = cap
            for i in range(cap):
                x2 = x * x
                y2 = y * y
                if x2 + y2 > ESCAPE_RADIUS_SQ:
                    n = i
                    break
                y = 2 * x * y + c_imag
                x = x2 - y2 + c_real
            out[row, col] = n


def _burning_ship_sweep(c_re, c_im, cap, c_real, c_imag, out):
    height, width = c_re.shape
    for row in numba.prange(height):
        for col in range(width):
            re = c_re[row, col]
            im = c_im[row, col]
            x = 0.0
            y = 0.0
            n = cap
            for i in range(cap):
                x2 = x * x
                y2 = y * y
                if x2 + y2 > ESCAPE_RADIUS_SQ:
                    n = i
                    break
                y = abs(2 * x * y) + im
                x = x2 - y2 + re
            out[row, col] = n


def _mandelbox_sweep(c_re, c_im, cap, c_real, c_imag, out):
    height, width = c_re.shape
    for row in numba.prange(height):
        for col in range(width):
            re = c_re[row, col]
            im = c_im[row, col]
            x = re
            y = im
            z = 0.0
            n = cap
            for i in range(cap):
                # box fold, inlined
                if x > 1:
                    x = 2 - x
                elif x < -1:
                    x = -2 - x
                if y > 1:
                    y = 2 - y
                elif y < -1:
                    y = -2 - y
                if z > 1:
                    z = 2 - z
                elif z < -1:
                    z = -2 - z
                x = x * MANDELBOX_SCALE + re
                y = y * MANDELBOX_SCALE + im
                z = z * MANDELBOX_SCALE
                if x * x + y * y + z * z > MANDELBOX_ESCAPE_RADIUS_SQ:
                    n = i
                    break
            out[row, col] = n


_SWEEPS: Dict[FractalVariant, Callable] = {
    FractalVariant.MANDELBROT: _mandelbrot_sweep,
    FractalVariant.JULIA: _julia_sweep,
    FractalVariant.BURNING_SHIP: _burning_ship_sweep,
    FractalVariant.MANDELBOX: _mandelbox_sweep,
}


class NumbaAccelerator:
    """JIT-compiled escape-time sweeps."""

    def __init__(self):
        if not NUMBA_AVAILABLE:
            raise BackendUnavailableError(
                "numba is not installed; install the 'jit' extra to use this backend")
        self._compiled: Dict[FractalVariant, Callable] = {}

    def _get_sweep(self, variant: FractalVariant) -> Callable:
        sweep = self._compiled.get(variant)
        if sweep is None:
            logger.info(f"Compiling {variant.value} sweep with numba {numba.__version__}")
            sweep = numba.njit(parallel=True, cache=True)(_SWEEPS[variant])
            self._compiled[variant] = sweep
        return sweep

    def iterate_frame(self, fractal: FractalType, re: np.ndarray, im: np.ndarray,
                      cap: int) -> np.ndarray:
        """
        Compute escape steps for coordinate arrays.

        Args:
            fractal: Fractal strategy selecting the kernel
            re, im: 2-D float64 coordinate arrays
            cap: Iteration cap

        Returns:
            int32 array of escape steps, same shape as re
        """
        out = np.empty(re.shape, dtype=np.int32)
        c_real, c_imag = fractal.kernel_constants()
        sweep = self._get_sweep(fractal.variant)
        sweep(np.ascontiguousarray(re, dtype=np.float64),
              np.ascontiguousarray(im, dtype=np.float64),
              cap, c_real, c_imag, out)
        return out


_accelerator = None


def get_numba_accelerator() -> NumbaAccelerator:
    """Get the shared Numba accelerator instance."""
    global _accelerator
    if _accelerator is None:
        _accelerator = NumbaAccelerator()
    return _accelerator


def is_numba_available() -> bool:
    """Check if Numba acceleration is available."""
    return NUMBA_AVAILABLE
