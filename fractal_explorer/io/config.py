"""
Configuration file and environment handling.

A configuration file (JSON or YAML) has an optional ``render`` section, as
produced by RenderConfig.to_dict, and an optional ``canvas`` section with
``width`` and ``height``. FRACTAL_* environment variables override file values.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
import logging

import yaml

from ..api import RenderConfig
from ..core.math_functions import CanvasDimensions
from ..exceptions import InvalidConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CANVAS = {'width': 800, 'height': 600}


class EnvironmentConfig:
    """Reads FRACTAL_* overrides from the environment."""

    PREFIX = 'FRACTAL_'

    # variable suffix -> (section, key, converter)
    VARIABLES = {
        'VARIANT': ('render', 'variant', str),
        'ITERATIONS': ('render', 'iteration_cap', int),
        'SCHEME': ('render', 'color_scheme', str),
        'WIDTH': ('canvas', 'width', int),
        'HEIGHT': ('canvas', 'height', int),
        'BACKEND': ('options', 'backend', str),
    }

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def overrides(self) -> Dict[str, Dict[str, Any]]:
        """Collect overrides grouped by section."""
        result: Dict[str, Dict[str, Any]] = {}
        for suffix, (section, key, convert) in self.VARIABLES.items():
            name = self.PREFIX + suffix
            raw = self.environ.get(name)
            if raw is None or raw == '':
                continue
            try:
                value = convert(raw)
            except ValueError:
                raise InvalidConfigurationError(f"Invalid value for {name}: {raw!r}") from None
            result.setdefault(section, {})[key] = value
            logger.debug(f"Environment override {name}={raw}")
        return result


class ConfigManager:
    """Loads and saves render configurations."""

    def __init__(self, environment: Optional[EnvironmentConfig] = None):
        self.environment = environment or EnvironmentConfig()

    def load_config(self, filepath) -> Dict[str, Any]:
        """
        Load a JSON or YAML configuration file.

        Args:
            filepath: Path ending in .json, .yaml or .yml

        Returns:
            Parsed configuration dictionary
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        with open(filepath, 'r', encoding='utf-8') as f:
            if suffix == '.json':
                try:
                    data = json.load(f)
                except json.JSONDecodeError as e:
                    raise InvalidConfigurationError(f"Invalid JSON in {filepath}: {e}") from e
            elif suffix in ('.yaml', '.yml'):
                try:
                    data = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise InvalidConfigurationError(f"Invalid YAML in {filepath}: {e}") from e
            else:
                raise InvalidConfigurationError(
                    f"Unsupported config format '{suffix}'. Use .json, .yaml or .yml")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidConfigurationError(f"Config file {filepath} must contain a mapping")

        logger.info(f"Loaded configuration: {filepath}")
        return data

    def save_config(self, config: RenderConfig, dims: CanvasDimensions, filepath) -> Path:
        """Save a configuration as JSON or YAML, chosen by file suffix."""
        filepath = Path(filepath)
        data = {
            'render': config.to_dict(),
            'canvas': {'width': dims.width, 'height': dims.height},
        }
        suffix = filepath.suffix.lower()
        if suffix not in ('.json', '.yaml', '.yml'):
            raise InvalidConfigurationError(
                f"Unsupported config format '{suffix}'. Use .json, .yaml or .yml")

        with open(filepath, 'w', encoding='utf-8') as f:
            if suffix == '.json':
                json.dump(data, f, indent=2)
            else:
                yaml.safe_dump(data, f, sort_keys=False)

        logger.info(f"Saved configuration: {filepath}")
        return filepath

    def merge(self, data: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Apply environment overrides on top of file data."""
        merged = {
            'render': dict(data.get('render') or {}),
            'canvas': {**DEFAULT_CANVAS, **(data.get('canvas') or {})},
            'options': dict(data.get('options') or {}),
        }
        for section, values in self.environment.overrides().items():
            merged[section].update(values)
        return merged

    def create_render_config(self, data: Mapping[str, Any]) -> RenderConfig:
        return RenderConfig.from_dict(self.merge(data)['render'])

    def create_dimensions(self, data: Mapping[str, Any]) -> CanvasDimensions:
        canvas = self.merge(data)['canvas']
        return CanvasDimensions(canvas['width'], canvas['height'])


def load_config_from_args(config_file=None,
                          manager: Optional[ConfigManager] = None) -> Tuple[RenderConfig, CanvasDimensions, Dict[str, Any]]:
    """
    Build the render configuration the CLI starts from.

    Args:
        config_file: Optional configuration file path
        manager: ConfigManager to use

    Returns:
        Tuple of (render_config, canvas_dimensions, options)
    """
    manager = manager or ConfigManager()
    data = manager.load_config(config_file) if config_file else {}
    merged = manager.merge(data)
    config = RenderConfig.from_dict(merged['render'])
    canvas = merged['canvas']
    return config, CanvasDimensions(canvas['width'], canvas['height']), merged['options']
