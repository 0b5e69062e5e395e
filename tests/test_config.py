# -*- coding: utf-8 -*-
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fractal_renderer.core.config import (
    BACKEND_ENV_VAR, FERN_ITERATIONS, RenderConfig, default_backend, load_config,
    parse_hex_color, save_config, set_algorithm,
)
from fractal_renderer.core.fractal_types import (
    BarnsleyFern, JULIA_PRESETS, Julia, Mandelbrot, is_different, parse_algorithm,
)
from fractal_renderer.core.math_functions import ComplexPoint
from fractal_renderer.rendering.coloring import Color


class Test_algorithms(unittest.TestCase):

    def test_parse(self):
        self.assertEqual(parse_algorithm("mandelbrot"), Mandelbrot())
        self.assertEqual(parse_algorithm("Fern"), BarnsleyFern())
        self.assertEqual(parse_algorithm("BarnsleyFern"), BarnsleyFern())
        self.assertEqual(parse_algorithm("julia"), Julia(ComplexPoint.ZERO))
        seed = ComplexPoint(-0.8, 0.156)
        self.assertEqual(parse_algorithm("JULIA", seed), Julia(seed))

    def test_parse_unknown(self):
        with self.assertRaises(ValueError) as cm:
            parse_algorithm("burning_ship")
        self.assertIn("mandelbrot", str(cm.exception))

    def test_is_different(self):
        a = Julia(ComplexPoint(0.1, 0.2))
        b = Julia(ComplexPoint(-0.4, 0.6))
        self.assertFalse(is_different(a, b))
        self.assertFalse(is_different(Mandelbrot(), Mandelbrot()))
        self.assertTrue(is_different(Mandelbrot(), BarnsleyFern()))
        self.assertTrue(is_different(a, Mandelbrot()))

    def test_escape_time_flags(self):
        self.assertTrue(Mandelbrot().is_escape_time())
        self.assertTrue(Julia().is_escape_time())
        self.assertFalse(BarnsleyFern().is_escape_time())

    def test_presets(self):
        self.assertIn("dragon", JULIA_PRESETS)
        for name, algo in JULIA_PRESETS.items():
            with self.subTest(name=name):
                self.assertIsInstance(algo, Julia)


class Test_RenderConfig(unittest.TestCase):

    def test_escape_time_defaults(self):
        config = RenderConfig()
        self.assertEqual(config.algorithm, Mandelbrot())
        self.assertEqual((config.width, config.height), (2000, 1000))
        self.assertEqual(config.iterations, 50)
        self.assertEqual(config.limit, 65536.0)
        self.assertEqual(config.stable_limit, 2.0)
        self.assertEqual(config.pos, ComplexPoint(0.0, 0.0))
        self.assertEqual(config.scale, ComplexPoint(0.4, 0.4))
        self.assertEqual(config.exposure, 2.0)
        self.assertTrue(config.inside)
        self.assertTrue(config.smooth)
        self.assertEqual(config.primary_color, Color(40, 40, 255))
        self.assertEqual(config.secondary_color, Color(240, 170, 0))
        self.assertEqual(config.color_weight, 0.01)

    def test_fern_defaults(self):
        config = RenderConfig.for_algorithm(BarnsleyFern())
        self.assertEqual(config.iterations, FERN_ITERATIONS)
        self.assertEqual(config.iterations, 10_000_000)
        self.assertEqual(config.primary_color, Color(4, 100, 3))
        self.assertEqual(config.secondary_color, Color(240, 240, 240))

    def test_for_algorithm_overrides(self):
        config = RenderConfig.for_algorithm(BarnsleyFern(), width=10, iterations=7)
        self.assertEqual((config.width, config.iterations), (10, 7))
        self.assertEqual(config.primary_color, Color(4, 100, 3))

    def test_julia_seed(self):
        seed = ComplexPoint(-0.4, 0.6)
        self.assertEqual(RenderConfig.for_algorithm(Julia(seed)).julia_seed, seed)
        self.assertEqual(RenderConfig().julia_seed, ComplexPoint.ZERO)

    def test_validation(self):
        invalid = [
            dict(width=0),
            dict(height=-5),
            dict(iterations=0),
            dict(iterations=-1),
            dict(limit=0.0),
            dict(stable_limit=0.0),
            dict(scale=ComplexPoint(0.0, 0.4)),
            dict(scale=ComplexPoint(0.4, 0.0)),
            dict(exposure=0.0),
            dict(color_weight=0.0),
        ]
        for params in invalid:
            with self.subTest(**{k: str(v) for k, v in params.items()}):
                with self.assertRaises(ValueError):
                    RenderConfig(**params)

    def test_fern_allows_zero_iterations(self):
        config = RenderConfig.for_algorithm(BarnsleyFern(), iterations=0)
        self.assertEqual(config.iterations, 0)
        with self.assertRaises(ValueError):
            RenderConfig.for_algorithm(BarnsleyFern(), iterations=-1)

    def test_update_validates(self):
        config = RenderConfig(width=10, height=10)
        self.assertEqual(config.update(exposure=3.0).exposure, 3.0)
        self.assertEqual(config.exposure, 2.0)
        with self.assertRaises(ValueError):
            config.update(width=0)

    def test_hex_colors(self):
        self.assertEqual(parse_hex_color("046403"), Color(4, 100, 3))
        with self.assertRaises(ValueError):
            parse_hex_color("green")


class Test_set_algorithm(unittest.TestCase):

    def test_kind_change_resets_everything(self):
        config = RenderConfig(width=300, height=200, exposure=4.0, pos=ComplexPoint(-0.6, 0.0))
        fern = set_algorithm(config, BarnsleyFern())
        self.assertEqual(fern, RenderConfig.for_algorithm(BarnsleyFern()))
        self.assertEqual((fern.width, fern.height), (2000, 1000))
        self.assertEqual(fern.iterations, 10_000_000)

        back = set_algorithm(fern, Mandelbrot())
        self.assertEqual(back, RenderConfig())

    def test_julia_to_julia_keeps_settings(self):
        config = RenderConfig.for_algorithm(Julia(ComplexPoint(0.1, 0.1)), width=300, exposure=4.0)
        target = Julia(ComplexPoint(-0.8, 0.156))
        moved = set_algorithm(config, target)
        self.assertEqual(moved.algorithm, target)
        self.assertEqual((moved.width, moved.exposure), (300, 4.0))

    def test_same_algorithm_is_unchanged(self):
        config = RenderConfig(width=300, iterations=80)
        self.assertEqual(set_algorithm(config, Mandelbrot()), config)

    def test_mandelbrot_to_julia_resets(self):
        config = RenderConfig(width=300, iterations=80)
        julia = set_algorithm(config, Julia(ComplexPoint(0.3, 0.5)))
        self.assertEqual(julia.width, 2000)
        self.assertEqual(julia.iterations, 50)


class Test_serialization(unittest.TestCase):

    def test_dict_round_trip(self):
        configs = [
            RenderConfig(width=33, height=21, smooth=False, primary_color=Color(1, 2, 3)),
            RenderConfig.for_algorithm(Julia(ComplexPoint(-0.75, 0.1)), scale=ComplexPoint(1.5, 0.7)),
            RenderConfig.for_algorithm(BarnsleyFern(), iterations=1234, color_weight=0.2),
        ]
        for config in configs:
            with self.subTest(algorithm=config.algorithm.name):
                data = json.loads(json.dumps(config.to_dict()))
                self.assertEqual(RenderConfig.from_dict(data), config)

    def test_dict_format(self):
        data = RenderConfig.for_algorithm(Julia(ComplexPoint(-0.75, 0.1))).to_dict()
        self.assertEqual(data['algorithm'], {'name': 'julia', 'seed': [-0.75, 0.1]})
        self.assertEqual(data['primary_color'], '2828ff')
        self.assertEqual(data['scale'], [0.4, 0.4])

    def test_missing_keys_take_algorithm_defaults(self):
        config = RenderConfig.from_dict({'algorithm': 'fern', 'width': 50})
        self.assertEqual(config.width, 50)
        self.assertEqual(config.iterations, 10_000_000)
        self.assertEqual(RenderConfig.from_dict({}), RenderConfig())

    def test_unknown_key(self):
        with self.assertRaises(ValueError):
            RenderConfig.from_dict({'bounds': [0, 1, 0, 1]})

    def test_file_round_trip(self):
        config = RenderConfig.for_algorithm(Julia(ComplexPoint(-0.4, 0.6)), width=64, height=48)
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "config.json"
            save_config(config, path)
            self.assertEqual(load_config(path), config)
            with open(path, 'r', encoding='utf-8') as f:
                self.assertEqual(json.load(f)['width'], 64)


class Test_default_backend(unittest.TestCase):

    def test_environment(self):
        with mock.patch.dict(os.environ, {BACKEND_ENV_VAR: " Python "}):
            self.assertEqual(default_backend(), "python")
        with mock.patch.dict(os.environ, {BACKEND_ENV_VAR: ""}):
            self.assertEqual(default_backend(), "auto")

    def test_unset(self):
        env = {k: v for k, v in os.environ.items() if k != BACKEND_ENV_VAR}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertEqual(default_backend(), "auto")


if __name__ == "__main__":
    unittest.main(verbosity=2)
