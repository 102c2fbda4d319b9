"""
Command-line interface for fractal rendering.
"""

import click
import sys
from pathlib import Path
import logging
import time

from .. import __version__
from ..api import FractalRenderer, BACKENDS, MAX_ITERATIONS
from ..core.fractal_types import FractalRegistry, FractalVariant, JuliaParameters, JULIA_PRESETS
from ..core.math_functions import CanvasDimensions, ViewportState
from ..rendering.coloring import ColoringEngine, ColorScheme
from ..rendering.image_output import ImageExporter, default_filename
from ..io.config import ConfigManager, load_config_from_args
from ..acceleration.numba_backend import is_numba_available
from ..exceptions import FractalError

logger = logging.getLogger(__name__)


def _parse_pair(value: str, what: str):
    try:
        parts = [float(x.strip()) for x in value.split(',')]
    except ValueError:
        raise click.BadParameter(f"Invalid {what}. Use 'real,imag'") from None
    if len(parts) != 2:
        raise click.BadParameter(f"Invalid {what}. Use 'real,imag'")
    return parts


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--config', type=click.Path(exists=True, dir_okay=False), help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, config, verbose, quiet):
    """
    Fractal Explorer - escape-time fractal rendering.

    Render Mandelbrot, Julia, Burning Ship and Mandelbox images.
    """
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"fractal-explorer v{__version__}")
        click.echo(f"Python: {sys.version}")
        click.echo(f"Numba acceleration: {'Available' if is_numba_available() else 'Not available'}")
        if ctx.invoked_subcommand is None:
            ctx.exit(0)

    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['verbose'] = verbose

    if ctx.invoked_subcommand is None and not version:
        click.echo(ctx.get_help())


@main.command()
@click.argument('variant', type=click.Choice([v.value for v in FractalVariant]), required=False)
@click.argument('output', type=click.Path(dir_okay=False), required=False)
@click.option('--width', '-w', type=click.IntRange(min=1), help='Image width in pixels')
@click.option('--height', '-h', type=click.IntRange(min=1), help='Image height in pixels')
@click.option('--iterations', '-i', type=click.IntRange(1, MAX_ITERATIONS), help='Iteration cap')
@click.option('--scheme', type=click.Choice([s.value for s in ColorScheme]), help='Color scheme')
@click.option('--zoom', type=float, help='Zoom factor (1 shows 4 plane units vertically)')
@click.option('--center', type=str, help='View center "real,imag"')
@click.option('--julia-c', type=str, help="Julia constant 'real,imag' or preset name")
@click.option('--backend', type=click.Choice(BACKENDS), help='Rendering backend')
@click.option('--processes', type=click.IntRange(min=1), help='Worker processes for the multiprocessing backend')
@click.option('--raw', is_flag=True, help='Also save the raw RGBA array as .npy')
@click.pass_context
def render(ctx, variant, output, width, height, iterations, scheme, zoom, center,
           julia_c, backend, processes, raw):
    """
    Render a single fractal image.

    VARIANT: mandelbrot, julia, burning_ship or mandelbox (default from config)
    OUTPUT: Output image path, .png or .tiff (default fractal-<variant>-<ms>.png)
    """
    try:
        config, dims, options = load_config_from_args(ctx.obj.get('config_file'))

        changes = {}
        if variant:
            changes['variant'] = variant
        if iterations:
            changes['iteration_cap'] = iterations
        if scheme:
            changes['color_scheme'] = scheme

        viewport = config.viewport
        if zoom is not None:
            viewport = ViewportState(zoom, viewport.center_real, viewport.center_imag)
        if center:
            real, imag = _parse_pair(center, 'center')
            viewport = ViewportState(viewport.zoom_factor, real, imag)
        changes['viewport'] = viewport

        if julia_c:
            if julia_c in JULIA_PRESETS:
                changes['julia_parameters'] = JULIA_PRESETS[julia_c]
                click.echo(f"Using Julia preset: {julia_c}")
            else:
                changes['julia_parameters'] = JuliaParameters(*_parse_pair(julia_c, 'Julia constant'))

        config = config.replace(**changes)
        dims = CanvasDimensions(width or dims.width, height or dims.height)
        backend = backend or options.get('backend', 'auto')
        output = Path(output or default_filename(config.variant.value))
        exporter = ImageExporter()
        exporter.check_format(output)

        renderer = FractalRenderer(config, backend, processes)
        click.echo(f"Rendering {config.variant.value} {dims.width}x{dims.height} "
                   f"({config.iteration_cap} iterations)...")
        start_time = time.time()
        frame = renderer.render(dims)
        click.echo(f"Render complete: {time.time() - start_time:.2f}s ({renderer.last_backend})")

        metadata = renderer.metadata(dims)
        exporter.save_image(frame, output, metadata)
        click.echo(f"Saved: {output}")

        if raw:
            raw_path = exporter.save_raw_data(frame, output.with_suffix('.npy'), metadata)
            click.echo(f"Saved raw data: {raw_path}")

    except (FractalError, ValueError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        if ctx.obj.get('verbose'):
            import traceback
            traceback.print_exc()
        sys.exit(1)


@main.command()
@click.option('--output', '-o', type=click.Path(dir_okay=False), default='fractal.yaml',
              help='Output file path (.yaml, .yml or .json)')
@click.pass_context
def init_config(ctx, output):
    """
    Write the current settings to a configuration file.

    Starts from --config and FRACTAL_* overrides, or the defaults.
    """
    try:
        config, dims, _ = load_config_from_args(ctx.obj.get('config_file'))
        path = ConfigManager().save_config(config, dims, output)
        click.echo(f"Configuration written: {path}")
    except (FractalError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@main.command()
def variants():
    """List available fractal variants."""
    for name, description in FractalRegistry.list_fractals().items():
        click.echo(f"{name:14s} {description}")


@main.command()
def schemes():
    """List available color schemes."""
    for name, description in ColoringEngine.list_schemes().items():
        click.echo(f"{name:10s} {description}")


@main.command()
def presets():
    """List named Julia constants."""
    for name, parameters in JULIA_PRESETS.items():
        click.echo(f"{name:12s} {parameters.c_real:+.6f} {parameters.c_imag:+.6f}i")


if __name__ == '__main__':
    main()
