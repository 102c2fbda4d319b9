import numpy as np
import pytest

from fractal_explorer.api import RenderConfig, render
from fractal_explorer.acceleration.multiprocessing import (
    BandSpec, MultiprocessingAccelerator, create_band_grid, render_band,
)
from fractal_explorer.core.math_functions import CanvasDimensions, ViewportState
from fractal_explorer.core.fractal_types import FractalVariant, JuliaParameters
from fractal_explorer.rendering.coloring import ColorScheme


class TestBandGrid:

    def test_remainder_goes_to_first_bands(self):
        bands = create_band_grid(10, 3)
        assert [(b.row_start, b.row_stop) for b in bands] == [(0, 4), (4, 7), (7, 10)]
        assert [b.band_id for b in bands] == [0, 1, 2]

    @pytest.mark.parametrize('height,count', [(1, 1), (7, 7), (100, 16), (33, 4), (5, 64)])
    def test_bands_cover_every_row_once(self, height, count):
        bands = create_band_grid(height, count)
        rows = [row for band in bands for row in range(band.row_start, band.row_stop)]
        assert rows == list(range(height))
        assert all(band.height > 0 for band in bands)

    def test_band_count_clamped(self):
        assert len(create_band_grid(5, 64)) == 5
        assert len(create_band_grid(5, 0)) == 1


def test_render_band_matches_frame_rows(small_dims, zoomed_viewport):
    config = RenderConfig(variant='julia', iteration_cap=50, color_scheme='rainbow',
                          viewport=zoomed_viewport)
    full = render(config, small_dims, backend='numpy')
    band = BandSpec(band_id=0, row_start=5, row_stop=9)

    result = render_band(FractalVariant.JULIA, JuliaParameters(), 50, ColorScheme.RAINBOW,
                         small_dims, zoomed_viewport, band)
    assert result.row_start == 5
    assert result.pixels.shape == (4, small_dims.width, 4)
    np.testing.assert_array_equal(result.pixels, full.data[5:9])


def test_accelerator_writes_whole_frame():
    dims = CanvasDimensions(30, 21)
    viewport = ViewportState(1.5, -0.5, 0.0)
    out = np.zeros((dims.height, dims.width, 4), dtype=np.uint8)

    accelerator = MultiprocessingAccelerator(num_processes=2, bands_per_process=2)
    accelerator.render_frame(FractalVariant.MANDELBROT, None, 60, ColorScheme.FIRE,
                             dims, viewport, out)

    expected = render(RenderConfig(iteration_cap=60, color_scheme='fire', viewport=viewport),
                      dims, backend='numpy')
    np.testing.assert_array_equal(out, expected.data)


def test_multiprocessing_backend_matches_numpy(variant):
    dims = CanvasDimensions(40, 17)
    config = RenderConfig(variant=variant, iteration_cap=45, color_scheme='electric',
                          viewport=ViewportState(1.2, -0.3, 0.05))
    parallel = render(config, dims, backend='multiprocessing', num_processes=2)
    assert parallel == render(config, dims, backend='numpy')


def test_process_count_floor():
    assert MultiprocessingAccelerator(num_processes=0).num_processes == 1
    assert MultiprocessingAccelerator().num_processes >= 1
