import numpy as np
import pytest

import fractal_explorer.api as api
from fractal_explorer.api import FractalRenderer, RenderConfig, render
from fractal_explorer.acceleration import numba_backend
from fractal_explorer.core.math_functions import CanvasDimensions, ViewportState, map_pixel_to_complex
from fractal_explorer.core.fractal_types import FractalVariant, JuliaParameters, iterate
from fractal_explorer.rendering.coloring import ColorScheme, color_for
from fractal_explorer.rendering.frame import PixelBuffer
from fractal_explorer.exceptions import BackendUnavailableError, InvalidConfigurationError


class TestEndToEnd:

    def test_mandelbrot_center_is_black(self):
        frame = render(RenderConfig(variant='mandelbrot', iteration_cap=50),
                       CanvasDimensions(100, 100), backend='numpy')
        assert frame.pixel(50, 50) == (0, 0, 0, 255)

    def test_julia_corner_escapes(self):
        config = RenderConfig(variant='julia', iteration_cap=100, color_scheme='rainbow')
        dims = CanvasDimensions(100, 100)
        frame = render(config, dims, backend='numpy')

        point = map_pixel_to_complex(0, 0, dims, config.viewport)
        count = iterate('julia', point, 100, config.julia_parameters)
        assert count < 100
        assert frame.pixel(0, 0) == color_for(count, 100, ColorScheme.RAINBOW)

    def test_every_pixel_matches_kernel_and_color(self, small_dims, zoomed_viewport):
        config = RenderConfig(variant='burning_ship', iteration_cap=40,
                              color_scheme='electric', viewport=zoomed_viewport)
        frame = render(config, small_dims, backend='numpy')
        for y in range(small_dims.height):
            for x in range(small_dims.width):
                point = map_pixel_to_complex(x, y, small_dims, zoomed_viewport)
                count = iterate(config.variant, point, 40)
                assert frame.pixel(x, y) == color_for(count, 40, 'electric')

    def test_buffer_layout(self, small_dims):
        frame = render(RenderConfig(color_scheme='fire'), small_dims, backend='scalar')
        raw = frame.tobytes()
        assert len(raw) == small_dims.width * small_dims.height * 4
        assert len(frame) == len(raw)
        x, y = 7, 11
        offset = (y * small_dims.width + x) * 4
        assert tuple(raw[offset:offset + 4]) == frame.pixel(x, y)
        assert all(raw[offset + 3] == 255 for offset in range(0, len(raw), 4))

    def test_tuple_dimensions_accepted(self):
        frame = render(RenderConfig(), (12, 9), backend='numpy')
        assert (frame.width, frame.height) == (12, 9)
        assert frame.dimensions == CanvasDimensions(12, 9)

    def test_rendering_is_idempotent(self, small_dims):
        config = RenderConfig(variant='mandelbox', color_scheme='rainbow')
        assert render(config, small_dims, backend='numpy') == render(config, small_dims, backend='numpy')

    def test_frame_is_read_only(self, small_dims):
        frame = render(RenderConfig(), small_dims, backend='numpy')
        with pytest.raises(ValueError):
            frame.data[0, 0, 0] = 1

    def test_cap_one_uses_two_colors(self, small_dims, variant, scheme):
        config = RenderConfig(variant=variant, iteration_cap=1, color_scheme=scheme)
        frame = render(config, small_dims, backend='numpy')
        allowed = {color_for(0, 1, scheme), color_for(1, 1, scheme)}
        pixels = {tuple(int(c) for c in p) for p in frame.data.reshape(-1, 4)}
        assert pixels <= allowed


class TestBackendParity:

    def test_scalar_and_numpy_are_byte_identical(self, small_dims, zoomed_viewport, variant, scheme):
        config = RenderConfig(variant=variant, iteration_cap=64, color_scheme=scheme,
                              viewport=zoomed_viewport,
                              julia_parameters=JuliaParameters(-0.4, 0.6))
        scalar = render(config, small_dims, backend='scalar')
        vectorized = render(config, small_dims, backend='numpy')
        assert scalar.tobytes() == vectorized.tobytes()


class TestRenderer:

    def test_unknown_backend(self):
        with pytest.raises(InvalidConfigurationError):
            FractalRenderer(RenderConfig(), backend='opencl')

    def test_config_type_checked(self):
        with pytest.raises(InvalidConfigurationError):
            FractalRenderer({'variant': 'julia'})

    def test_records_backend_and_time(self, small_dims):
        renderer = FractalRenderer(RenderConfig(), backend='numpy')
        renderer.render(small_dims)
        assert renderer.last_backend == 'numpy'
        assert renderer.last_render_time >= 0.0

    def test_auto_prefers_numba_for_mid_sized_frames(self, monkeypatch):
        monkeypatch.setattr(api, 'is_numba_available', lambda: True)
        renderer = FractalRenderer(RenderConfig())
        assert renderer._choose_backend(CanvasDimensions(800, 600)) == 'numba'
        assert renderer._choose_backend(CanvasDimensions(1000, 1000)) == 'multiprocessing'

    def test_auto_keeps_tiny_frames_on_numpy(self, monkeypatch):
        monkeypatch.setattr(api, 'is_numba_available', lambda: True)
        renderer = FractalRenderer(RenderConfig())
        assert renderer._choose_backend(CanvasDimensions(8, 6)) == 'numpy'
        assert renderer._choose_backend(CanvasDimensions(255, 256)) == 'numpy'
        assert renderer._choose_backend(CanvasDimensions(256, 256)) == 'numba'

    def test_auto_falls_back_to_numpy(self, monkeypatch):
        monkeypatch.setattr(api, 'is_numba_available', lambda: False)
        renderer = FractalRenderer(RenderConfig())
        assert renderer._choose_backend(CanvasDimensions(800, 600)) == 'numpy'

    def test_explicit_backend_is_kept(self):
        renderer = FractalRenderer(RenderConfig(), backend='scalar')
        assert renderer._choose_backend(CanvasDimensions(2000, 2000)) == 'scalar'

    def test_numba_backend_unavailable(self, monkeypatch, small_dims):
        monkeypatch.setattr(numba_backend, 'NUMBA_AVAILABLE', False)
        monkeypatch.setattr(numba_backend, '_accelerator', None)
        with pytest.raises(BackendUnavailableError):
            render(RenderConfig(), small_dims, backend='numba')

    def test_numba_sweeps_request_disk_cache(self, monkeypatch):
        calls = []

        class RecordingNumba:
            __version__ = 'recording'

            @staticmethod
            def njit(**options):
                calls.append(options)
                return lambda func: func

        monkeypatch.setattr(numba_backend, 'numba', RecordingNumba)
        monkeypatch.setattr(numba_backend, 'NUMBA_AVAILABLE', True)
        accelerator = numba_backend.NumbaAccelerator()
        accelerator._get_sweep(FractalVariant.JULIA)
        accelerator._get_sweep(FractalVariant.JULIA)
        assert calls == [{'parallel': True, 'cache': True}]

    def test_metadata(self, small_dims):
        config = RenderConfig(variant='julia', iteration_cap=80, color_scheme='fire',
                              viewport=ViewportState(3.0, -0.5, 0.25))
        renderer = FractalRenderer(config, backend='numpy')
        renderer.render(small_dims)
        metadata = renderer.metadata(small_dims)
        assert metadata.variant == 'julia'
        assert metadata.resolution == (small_dims.width, small_dims.height)
        assert metadata.iteration_cap == 80
        assert metadata.color_scheme == 'fire'
        assert metadata.zoom_factor == 3.0
        assert metadata.center == (-0.5, 0.25)
        assert metadata.backend == 'numpy'
        assert metadata.fractal_parameters == {'c_real': -0.7, 'c_imag': 0.27015}


class TestRenderConfig:

    def test_defaults(self):
        config = RenderConfig()
        assert config.variant is FractalVariant.MANDELBROT
        assert config.iteration_cap == 100
        assert config.color_scheme is ColorScheme.DEFAULT
        assert config.viewport == ViewportState(1.0, 0.0, 0.0)
        assert config.julia_parameters == JuliaParameters(-0.7, 0.27015)

    def test_names_are_parsed(self):
        config = RenderConfig(variant='burningShip', color_scheme='Fire')
        assert config.variant is FractalVariant.BURNING_SHIP
        assert config.color_scheme is ColorScheme.FIRE

    @pytest.mark.parametrize('cap', [0, -5, 1001, 2.5, '100', True])
    def test_invalid_iteration_cap(self, cap):
        with pytest.raises(InvalidConfigurationError):
            RenderConfig(iteration_cap=cap)

    @pytest.mark.parametrize('cap', [1, 1000])
    def test_iteration_cap_bounds(self, cap):
        assert RenderConfig(iteration_cap=cap).iteration_cap == cap

    def test_unknown_variant(self):
        with pytest.raises(InvalidConfigurationError):
            RenderConfig(variant='sierpinski')

    def test_immutable(self):
        config = RenderConfig()
        with pytest.raises(AttributeError):
            config.iteration_cap = 200
        changed = config.replace(iteration_cap=200)
        assert config.iteration_cap == 100
        assert changed.iteration_cap == 200

    def test_dict_round_trip(self):
        config = RenderConfig(variant='julia', iteration_cap=321, color_scheme='electric',
                              viewport=ViewportState(8.0, 0.1, -0.2),
                              julia_parameters=JuliaParameters(0.285, 0.01))
        assert RenderConfig.from_dict(config.to_dict()) == config

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(InvalidConfigurationError, match='palette'):
            RenderConfig.from_dict({'palette': 'fire'})

    def test_from_dict_rejects_unknown_viewport_keys(self):
        with pytest.raises(InvalidConfigurationError):
            RenderConfig.from_dict({'viewport': {'zoom': 2.0}})


class TestPixelBuffer:

    @pytest.mark.parametrize('array', [
        np.zeros((4, 4, 3), dtype=np.uint8),
        np.zeros((4, 4, 4), dtype=np.float32),
        np.zeros((16, 4), dtype=np.uint8),
    ])
    def test_rejects_bad_arrays(self, array):
        with pytest.raises(ValueError):
            PixelBuffer(array)

    def test_to_image(self):
        data = np.zeros((3, 5, 4), dtype=np.uint8)
        data[1, 2] = (10, 20, 30, 255)
        image = PixelBuffer(data).to_image()
        assert image.mode == 'RGBA'
        assert image.size == (5, 3)
        assert image.getpixel((2, 1)) == (10, 20, 30, 255)
