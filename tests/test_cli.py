# -*- coding: utf-8 -*-
import json
import unittest

from click.testing import CliRunner
from PIL import Image

from fractal_renderer import __version__
from fractal_renderer.cli.main import build_config, main
from fractal_renderer.core.fractal_types import BarnsleyFern, JULIA_PRESETS, Julia, Mandelbrot
from fractal_renderer.core.math_functions import ComplexPoint
from fractal_renderer.rendering.coloring import Color


def options(**overrides):
    params = dict(
        width=None, height=None, config_file=None, algorithm=None, julia_real=None,
        julia_imaginary=None, julia_preset=None, pos_x=None, pos_y=None, scale=None,
        scale_x=None, scale_y=None, disable_inside=False, unsmooth=False, overrides={},
    )
    params.update(overrides)
    return params


class Test_build_config(unittest.TestCase):

    def test_command_line_defaults(self):
        config = build_config(**options())
        self.assertEqual(config.algorithm, Mandelbrot())
        self.assertEqual((config.width, config.height), (750, 500))
        self.assertEqual(config.exposure, 5.0)
        self.assertEqual(config.pos, ComplexPoint(-0.6, 0.0))
        self.assertEqual(config.iterations, 50)

    def test_fern_defaults(self):
        config = build_config(**options(algorithm='fern'))
        self.assertEqual(config.algorithm, BarnsleyFern())
        self.assertEqual(config.pos, ComplexPoint(-0.6, 0.0))
        self.assertEqual(config.primary_color, Color(4, 100, 3))

    def test_flags(self):
        config = build_config(**options(
            width=100, height=80, scale=0.8, scale_y=0.2, pos_y=0.3, disable_inside=True,
            unsmooth=True, overrides={'iterations': 12, 'exposure': None, 'color_weight': 0.5},
        ))
        self.assertEqual((config.width, config.height), (100, 80))
        self.assertEqual(config.scale, ComplexPoint(0.8, 0.2))
        self.assertEqual(config.pos, ComplexPoint(-0.6, 0.3))
        self.assertFalse(config.inside)
        self.assertFalse(config.smooth)
        self.assertEqual(config.iterations, 12)
        self.assertEqual(config.exposure, 5.0)
        self.assertEqual(config.color_weight, 0.5)

    def test_julia_seed_and_preset(self):
        config = build_config(**options(algorithm='julia', julia_real=-0.4, julia_imaginary=0.6))
        self.assertEqual(config.algorithm, Julia(ComplexPoint(-0.4, 0.6)))
        self.assertEqual(config.pos, ComplexPoint(0.0, 0.0))

        preset = build_config(**options(julia_preset='rabbit'))
        self.assertEqual(preset.algorithm, JULIA_PRESETS['rabbit'])


class Test_cli(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    def test_version(self):
        result = self.runner.invoke(main, ['--version'])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)

    def test_render_appends_png(self):
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(main, ['render', '12', '8', '-i', '20', '-o', 'small',
                                               '--backend', 'python'])
            self.assertEqual(result.exit_code, 0, result.output)
            with Image.open('small.png') as img:
                self.assertEqual(img.size, (12, 8))

    def test_render_fern_and_reuse_config(self):
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(main, [
                'render', '20', '20', '-a', 'fern', '-i', '300', '--seed', '3',
                '--backend', 'python', '-o', 'fern.png', '--save-config', 'fern.json',
            ])
            self.assertEqual(result.exit_code, 0, result.output)
            with open('fern.json') as f:
                saved = json.load(f)
            self.assertEqual(saved['algorithm'], {'name': 'fern'})
            self.assertEqual(saved['iterations'], 300)

            result = self.runner.invoke(main, ['render', '--config', 'fern.json', '-w', '0.5',
                                               '--seed', '3', '--backend', 'python', '-o', 'again.png'])
            self.assertEqual(result.exit_code, 0, result.output)
            with Image.open('again.png') as img:
                self.assertEqual(img.size, (20, 20))

    def test_julia_requires_seed(self):
        result = self.runner.invoke(main, ['render', '8', '8', '-a', 'julia'])
        self.assertEqual(result.exit_code, 2)
        self.assertIn('--julia-real', result.output)

    def test_bad_color(self):
        result = self.runner.invoke(main, ['render', '8', '8', '--primary-color', 'zz'])
        self.assertEqual(result.exit_code, 2)

    def test_invalid_configuration(self):
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(main, ['render', '0', '8', '--backend', 'python'])
        self.assertEqual(result.exit_code, 1)
        self.assertIn('Width and height must be positive', result.output)

    def test_list_presets(self):
        result = self.runner.invoke(main, ['list-presets'])
        self.assertEqual(result.exit_code, 0)
        for name in JULIA_PRESETS:
            self.assertIn(name, result.output)

    def test_benchmark(self):
        result = self.runner.invoke(main, ['benchmark', '--size', '32x24', '-i', '20'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('PYTHON', result.output)
        self.assertIn('NUMBA', result.output)

    def test_benchmark_bad_size(self):
        result = self.runner.invoke(main, ['benchmark', '--size', 'large'])
        self.assertEqual(result.exit_code, 2)

    def test_system_info(self):
        result = self.runner.invoke(main, ['system-info'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('Default backend', result.output)


if __name__ == "__main__":
    unittest.main(verbosity=2)
