"""
Command-line interface for fractal rendering.

This module exposes the renderer through a click command group: ``render``
draws one image, the other commands report presets, system capabilities and
backend performance.
"""

import click
import os
import sys
from pathlib import Path
from typing import Optional
import logging

import numba

from .. import __version__
from ..api import BACKENDS, FractalRenderer
from ..core.config import (
    RenderConfig, BACKEND_ENV_VAR, default_backend, load_config, save_config,
    parse_hex_color, set_algorithm,
)
from ..core.fractal_types import Julia, Mandelbrot, JULIA_PRESETS, parse_algorithm
from ..core.math_functions import ComplexPoint
from ..acceleration.gpu_backend import get_gpu_accelerator, is_gpu_available
from ..acceleration.multiprocessing import get_optimal_process_count

logger = logging.getLogger(__name__)

CLI_WIDTH = 750
CLI_HEIGHT = 500
CLI_EXPOSURE = 5.0
DEFAULT_PAN_X = -0.6


def _hex_color(ctx, param, value):
    if value is None:
        return None
    try:
        return parse_hex_color(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, verbose, quiet):
    """
    Fractal Renderer - Mandelbrot, Julia and Barnsley fern images.
    """
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    if version:
        click.echo(f"Fractal Renderer v{__version__}")
        click.echo(f"Python: {sys.version}")
        click.echo(f"Numba: {numba.__version__}")
        click.echo(f"GPU acceleration: {'Available' if is_gpu_available() else 'Not available'}")
        if ctx.invoked_subcommand is None:
            ctx.exit(0)
    elif ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command()
@click.argument('width', type=int, required=False)
@click.argument('height', type=int, required=False)
@click.option('--config', 'config_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON configuration file; flags override its values')
@click.option('--algorithm', '-a', type=click.Choice(['mandelbrot', 'julia', 'fern', 'barnsleyfern'],
                                                     case_sensitive=False),
              help='Fractal algorithm [default: mandelbrot]')
@click.option('--julia-real', type=float, help='Real part of the Julia seed')
@click.option('--julia-imaginary', type=float, help='Imaginary part of the Julia seed')
@click.option('--julia-preset', type=click.Choice(sorted(JULIA_PRESETS)), help='Named Julia seed')
@click.option('--iterations', '-i', type=int, help='Iterations per pixel (fern: total points)')
@click.option('--limit', '-l', type=float, help='Escape distance [default: 65536]')
@click.option('--stable-limit', type=float, help='Squared distance treated as stable [default: 2]')
@click.option('-x', 'pos_x', type=float, help='Horizontal pan [default: 0 for julia, else -0.6]')
@click.option('-y', 'pos_y', type=float, help='Vertical pan [default: 0]')
@click.option('--scale', '-s', type=float, help='Zoom factor for both axes [default: 0.4]')
@click.option('--scale-x', type=float, help='Horizontal zoom factor')
@click.option('--scale-y', type=float, help='Vertical zoom factor')
@click.option('--exposure', '-e', type=float, help='Brightness of escaping points [default: 5]')
@click.option('--primary-color', callback=_hex_color, help='Hex color, e.g. 2828ff')
@click.option('--secondary-color', callback=_hex_color, help='Hex color, e.g. f0aa00')
@click.option('--disable-inside', '-d', is_flag=True, help='Draw stable points black')
@click.option('--unsmooth', '-u', is_flag=True, help='Disable continuous coloring')
@click.option('--color-weight', '-w', type=float, help='Fern blending strength [default: 0.01]')
@click.option('--output', '-o', type=click.Path(dir_okay=False), default='output', show_default=True,
              help='Output file; .png is appended when there is no suffix')
@click.option('--open', 'open_image', is_flag=True, help='Open the image when done')
@click.option('--backend', type=click.Choice(BACKENDS), help=f'Render backend [default: ${BACKEND_ENV_VAR} or auto]')
@click.option('--seed', type=int, help='Fern random seed')
@click.option('--save-config', 'config_out', type=click.Path(dir_okay=False), help='Write the final configuration as JSON')
@click.pass_context
def render(ctx, width, height, config_file, algorithm, julia_real, julia_imaginary, julia_preset,
           pos_x, pos_y, scale, scale_x, scale_y, disable_inside, unsmooth, output, open_image,
           backend, seed, config_out, **overrides):
    """
    Render a single fractal image.

    WIDTH and HEIGHT default to 750x500.
    """
    try:
        config = build_config(
            width, height, config_file, algorithm, julia_real, julia_imaginary, julia_preset,
            pos_x, pos_y, scale, scale_x, scale_y, disable_inside, unsmooth, overrides,
        )
        logger.debug(f"Render configuration: {config.to_dict()}")

        output_path = Path(output)
        if not output_path.suffix:
            output_path = output_path.with_suffix('.png')

        renderer = FractalRenderer(backend)
        click.echo(f"Rendering {config.algorithm.name} fractal ({config.width}x{config.height})...")
        renderer.render(config, output_path, seed)

        metadata = renderer.last_metadata
        click.echo(f"Render complete: {metadata.render_time_seconds:.2f}s")
        click.echo(f"Saved: {output_path}")

        if config_out:
            save_config(config, config_out)
            click.echo(f"Configuration saved: {config_out}")

        if open_image:
            click.launch(str(output_path))

    except click.ClickException:
        raise
    except ValueError as e:
        raise click.ClickException(str(e))
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        if ctx.obj.get('verbose'):
            import traceback
            traceback.print_exc()
        sys.exit(1)


def build_config(width: Optional[int], height: Optional[int], config_file: Optional[str],
                 algorithm: Optional[str], julia_real: Optional[float],
                 julia_imaginary: Optional[float], julia_preset: Optional[str],
                 pos_x: Optional[float], pos_y: Optional[float], scale: Optional[float],
                 scale_x: Optional[float], scale_y: Optional[float],
                 disable_inside: bool, unsmooth: bool, overrides: dict) -> RenderConfig:
    """
    Combine a configuration file, the command-line defaults and the flags.

    Without a file the command-line defaults apply (750x500, exposure 5 and
    x = -0.6 for everything but Julia). With a file only flags that were
    given change it.
    """
    if julia_preset is not None and algorithm is None:
        algorithm = 'julia'

    if algorithm is not None and algorithm.lower() == 'julia':
        if julia_preset is not None:
            algo = JULIA_PRESETS[julia_preset]
        elif julia_real is not None and julia_imaginary is not None:
            algo = Julia(ComplexPoint(julia_real, julia_imaginary))
        else:
            algo = None
    elif algorithm is not None:
        algo = parse_algorithm(algorithm)
    else:
        algo = None

    if config_file:
        config = load_config(config_file)
        if algo is None and algorithm is not None and not isinstance(config.algorithm, Julia):
            raise click.UsageError("--julia-real and --julia-imaginary are required for julia")
        if algo is not None:
            config = set_algorithm(config, algo)
    else:
        if algo is None and algorithm is not None:
            raise click.UsageError("--julia-real and --julia-imaginary are required for julia")
        algo = algo if algo is not None else Mandelbrot()
        config = RenderConfig.for_algorithm(
            algo,
            width=CLI_WIDTH,
            height=CLI_HEIGHT,
            exposure=CLI_EXPOSURE,
            pos=ComplexPoint(0.0 if isinstance(algo, Julia) else DEFAULT_PAN_X, 0.0),
        )

    changes = {key: value for key, value in overrides.items() if value is not None}
    if width is not None:
        changes['width'] = width
    if height is not None:
        changes['height'] = height

    if pos_x is not None or pos_y is not None:
        changes['pos'] = ComplexPoint(
            pos_x if pos_x is not None else config.pos.re,
            pos_y if pos_y is not None else config.pos.im,
        )

    if scale is not None or scale_x is not None or scale_y is not None:
        base_x = scale if scale is not None else config.scale.re
        base_y = scale if scale is not None else config.scale.im
        changes['scale'] = ComplexPoint(
            scale_x if scale_x is not None else base_x,
            scale_y if scale_y is not None else base_y,
        )

    if disable_inside:
        changes['inside'] = False
    if unsmooth:
        changes['smooth'] = False

    return config.update(**changes)


@main.command()
def list_presets():
    """List the named Julia seeds."""
    click.echo("Julia set presets:")
    for name, julia in sorted(JULIA_PRESETS.items()):
        click.echo(f"  {name}: seed = {julia.seed.re} {julia.seed.im:+}i")


@main.command()
@click.option('--size', type=str, default='400x300', show_default=True, help='Benchmark resolution WxH')
@click.option('--iterations', '-i', type=int, default=200, show_default=True, help='Iterations per pixel')
@click.pass_context
def benchmark(ctx, size, iterations):
    """Compare escape-time backend performance."""
    try:
        width, height = (int(part) for part in size.lower().split('x'))
    except ValueError:
        raise click.BadParameter("Use WIDTHxHEIGHT, e.g. 400x300", param_hint='--size')

    try:
        config = RenderConfig(width=width, height=height, iterations=iterations,
                              pos=ComplexPoint(DEFAULT_PAN_X, 0.0))
    except ValueError as e:
        raise click.ClickException(str(e))

    click.echo("Fractal Renderer Performance Benchmark")
    click.echo(f"Image size: {width}x{height} ({width * height:,} pixels)")
    click.echo(f"Iterations: {iterations}")

    results = FractalRenderer().benchmark_performance(config)
    for method, result in results['benchmarks'].items():
        if 'error' in result:
            click.echo(f"  {method.upper()}: {result['error']}")
            continue
        time_val = result.get('time', result.get('numba_time', result.get('gpu_time')))
        click.echo(f"  {method.upper()}: {time_val:.3f}s ({result['pixels_per_second']:,.0f} pixels/sec)")
        if 'speedup' in result:
            click.echo(f"    Speedup: {result['speedup']:.2f}x")


@main.command()
def system_info():
    """Display available backends and their configuration."""
    click.echo("System capabilities:")
    click.echo(f"  CPU cores: {os.cpu_count()}")
    click.echo(f"  Suggested worker processes: {get_optimal_process_count()}")
    click.echo(f"  Numba: {numba.__version__} ({numba.config.NUMBA_NUM_THREADS} threads)")

    if is_gpu_available():
        info = get_gpu_accelerator().get_device_info()
        click.echo(f"  GPU: {info['backend']} device {info.get('device_id', '?')}")
    else:
        click.echo("  GPU: Not available")

    click.echo(f"  Default backend: {default_backend()} (set ${BACKEND_ENV_VAR} to change)")


if __name__ == '__main__':
    main()
