import os

import pytest

from fractal_explorer.core.math_functions import CanvasDimensions, ViewportState
from fractal_explorer.core.fractal_types import FractalVariant
from fractal_explorer.rendering.coloring import ColorScheme


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep FRACTAL_* variables of the calling shell out of the tests."""
    for name in list(os.environ):
        if name.startswith('FRACTAL_'):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def small_dims():
    return CanvasDimensions(24, 16)


@pytest.fixture
def zoomed_viewport():
    return ViewportState(zoom_factor=2.5, center_real=-0.6, center_imag=0.1)


@pytest.fixture(params=list(FractalVariant), ids=lambda v: v.value)
def variant(request):
    return request.param


@pytest.fixture(params=list(ColorScheme), ids=lambda s: s.value)
def scheme(request):
    return request.param
