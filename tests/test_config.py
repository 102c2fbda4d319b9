import json

import pytest
import yaml

from fractal_explorer.api import RenderConfig
from fractal_explorer.core.math_functions import CanvasDimensions, ViewportState
from fractal_explorer.core.fractal_types import FractalVariant, JuliaParameters
from fractal_explorer.rendering.coloring import ColorScheme
from fractal_explorer.io.config import ConfigManager, EnvironmentConfig, load_config_from_args
from fractal_explorer.exceptions import InvalidConfigurationError


@pytest.fixture
def manager():
    return ConfigManager(EnvironmentConfig({}))


def test_load_json(tmp_path, manager):
    path = tmp_path / 'view.json'
    path.write_text(json.dumps({'render': {'variant': 'julia', 'iteration_cap': 250}}))
    data = manager.load_config(path)
    config = manager.create_render_config(data)
    assert config.variant is FractalVariant.JULIA
    assert config.iteration_cap == 250
    assert manager.create_dimensions(data) == CanvasDimensions(800, 600)


def test_load_yaml(tmp_path, manager):
    path = tmp_path / 'view.yaml'
    path.write_text(
        "render:\n"
        "  variant: burning_ship\n"
        "  color_scheme: fire\n"
        "  viewport:\n"
        "    zoom_factor: 4.0\n"
        "    center_real: -1.75\n"
        "    center_imag: -0.03\n"
        "canvas:\n"
        "  width: 320\n"
        "  height: 200\n"
    )
    config, dims, options = load_config_from_args(path, manager)
    assert config.variant is FractalVariant.BURNING_SHIP
    assert config.color_scheme is ColorScheme.FIRE
    assert config.viewport == ViewportState(4.0, -1.75, -0.03)
    assert dims == CanvasDimensions(320, 200)
    assert options == {}


def test_empty_yaml_uses_defaults(tmp_path, manager):
    path = tmp_path / 'empty.yml'
    path.write_text('')
    config, dims, _ = load_config_from_args(path, manager)
    assert config == RenderConfig()
    assert dims == CanvasDimensions(800, 600)


def test_no_file_uses_defaults(manager):
    config, dims, options = load_config_from_args(None, manager)
    assert config == RenderConfig()
    assert dims == CanvasDimensions(800, 600)


def test_environment_overrides_file(tmp_path):
    environment = EnvironmentConfig({
        'FRACTAL_VARIANT': 'mandelbox',
        'FRACTAL_ITERATIONS': '400',
        'FRACTAL_WIDTH': '640',
        'FRACTAL_BACKEND': 'numpy',
        'FRACTAL_SCHEME': '',
    })
    path = tmp_path / 'view.json'
    path.write_text(json.dumps({'render': {'variant': 'julia', 'color_scheme': 'electric'},
                                'canvas': {'width': 100, 'height': 50}}))
    config, dims, options = load_config_from_args(path, ConfigManager(environment))
    assert config.variant is FractalVariant.MANDELBOX
    assert config.iteration_cap == 400
    assert config.color_scheme is ColorScheme.ELECTRIC
    assert dims == CanvasDimensions(640, 50)
    assert options == {'backend': 'numpy'}


def test_environment_read_from_os(monkeypatch):
    monkeypatch.setenv('FRACTAL_HEIGHT', '240')
    assert EnvironmentConfig().overrides() == {'canvas': {'height': 240}}


def test_bad_environment_integer():
    with pytest.raises(InvalidConfigurationError, match='FRACTAL_ITERATIONS'):
        EnvironmentConfig({'FRACTAL_ITERATIONS': 'many'}).overrides()


def test_environment_value_still_validated():
    environment = EnvironmentConfig({'FRACTAL_ITERATIONS': '5000'})
    with pytest.raises(InvalidConfigurationError):
        ConfigManager(environment).create_render_config({})


def test_unsupported_suffix(tmp_path, manager):
    path = tmp_path / 'view.toml'
    path.write_text('variant = "julia"')
    with pytest.raises(InvalidConfigurationError, match='toml'):
        manager.load_config(path)


def test_invalid_json(tmp_path, manager):
    path = tmp_path / 'broken.json'
    path.write_text('{"render": ')
    with pytest.raises(InvalidConfigurationError):
        manager.load_config(path)


def test_non_mapping(tmp_path, manager):
    path = tmp_path / 'list.yaml'
    path.write_text('- julia\n- mandelbrot\n')
    with pytest.raises(InvalidConfigurationError, match='mapping'):
        manager.load_config(path)


def test_unknown_render_key(tmp_path, manager):
    path = tmp_path / 'view.json'
    path.write_text(json.dumps({'render': {'palette': 'fire'}}))
    with pytest.raises(InvalidConfigurationError, match='palette'):
        load_config_from_args(path, manager)


@pytest.mark.parametrize('name', ['saved.json', 'saved.yaml'])
def test_save_and_reload(tmp_path, manager, name):
    config = RenderConfig(variant='julia', iteration_cap=640, color_scheme='rainbow',
                          viewport=ViewportState(16.0, -0.1, 0.65),
                          julia_parameters=JuliaParameters(-0.123, 0.745))
    dims = CanvasDimensions(1024, 768)
    path = manager.save_config(config, dims, tmp_path / name)

    loaded, loaded_dims, _ = load_config_from_args(path, manager)
    assert loaded == config
    assert loaded_dims == dims


def test_saved_yaml_is_readable(tmp_path, manager):
    path = manager.save_config(RenderConfig(), CanvasDimensions(10, 10), tmp_path / 'c.yml')
    with open(path) as f:
        data = yaml.safe_load(f)
    assert data['render']['variant'] == 'mandelbrot'
    assert data['canvas'] == {'width': 10, 'height': 10}
