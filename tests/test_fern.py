# -*- coding: utf-8 -*-
import numpy as np
import unittest

from fractal_renderer.api import render_fern
from fractal_renderer.core.config import RenderConfig
from fractal_renderer.core.fern import (
    BARNSLEY_MAPS, FernAccumulator, effective_scale, select_map, to_pixel_index,
)
from fractal_renderer.core.fractal_types import BarnsleyFern, Mandelbrot
from fractal_renderer.core.math_functions import ComplexPoint
from fractal_renderer.rendering.image_buffer import ImageBuffer


def fern_config(**overrides):
    params = dict(width=60, height=60, iterations=5000)
    params.update(overrides)
    return RenderConfig.for_algorithm(BarnsleyFern(), **params)


class Test_fern_helpers(unittest.TestCase):

    def test_select_map(self):
        maps = [affine for _, affine in BARNSLEY_MAPS]
        self.assertIs(select_map(0.0), maps[0])
        self.assertIs(select_map(0.005), maps[0])
        self.assertIs(select_map(0.01), maps[1])
        self.assertIs(select_map(0.5), maps[1])
        self.assertIs(select_map(0.9), maps[2])
        self.assertIs(select_map(0.99), maps[3])

    def test_maps(self):
        stem = BARNSLEY_MAPS[0][1]
        self.assertEqual(stem.apply(3.0, 2.0), (0.0, 0.32))
        leaf = BARNSLEY_MAPS[1][1]
        np.testing.assert_allclose(leaf.apply(1.0, 1.0), (0.89, 2.41))

    def test_effective_scale(self):
        np.testing.assert_allclose(effective_scale(ComplexPoint(0.4, 0.4), 1000), (156.0, 88.8))

    def test_to_pixel_index(self):
        self.assertEqual(to_pixel_index(3.7), 3)
        self.assertEqual(to_pixel_index(-0.5), 0)
        self.assertEqual(to_pixel_index(-1.0), -1)
        self.assertEqual(to_pixel_index(-20.0), -1)
        self.assertEqual(to_pixel_index(float("nan")), -1)
        self.assertEqual(to_pixel_index(float("inf")), -1)

    def test_start_and_projection(self):
        config = fern_config(width=80, height=40)
        accumulator = FernAccumulator(config)
        self.assertEqual(accumulator.start_point(), (0.0, 0.0))

        _, scale_y = effective_scale(config.scale, config.height)
        px, py = accumulator.to_pixel(0.0, 0.0)
        self.assertEqual(px, 40.0)
        self.assertAlmostEqual(py, 40.0 - ((-5.5) * scale_y + 20.0))

    def test_start_follows_pan(self):
        config = fern_config(width=80, height=40, pos=ComplexPoint(0.5, 0.25))
        self.assertEqual(FernAccumulator(config).start_point(), (40.0, 10.0))


class Test_render_fern(unittest.TestCase):

    def test_zero_iterations_is_background(self):
        config = fern_config(iterations=0, width=20, height=10)
        expected = ImageBuffer(20, 10, config.secondary_color)
        for backend in ("python", "numba"):
            with self.subTest(backend=backend):
                self.assertEqual(render_fern(config, seed=1, backend=backend), expected)

    def test_seeded_reproducibility(self):
        config = fern_config()
        for backend in ("python", "numba"):
            with self.subTest(backend=backend):
                first = render_fern(config, seed=42, backend=backend)
                second = render_fern(config, seed=42, backend=backend)
                self.assertEqual(first, second)

    def test_different_seeds_differ(self):
        config = fern_config(iterations=20000)
        self.assertNotEqual(render_fern(config, seed=1, backend="python"),
                            render_fern(config, seed=2, backend="python"))

    def test_pixels_only_darken(self):
        config = fern_config()
        for backend in ("python", "numba"):
            with self.subTest(backend=backend):
                pixels = render_fern(config, seed=7, backend=backend).to_array()
                background = np.array(config.secondary_color.to_tuple())
                self.assertTrue(np.all(pixels <= background))
                # the fern is visible at the default framing
                self.assertTrue(np.any(pixels < background))

    def test_points_outside_the_image_are_skipped(self):
        """ Panned far away, nothing is drawn and nothing raises """
        config = fern_config(pos=ComplexPoint(1000.0, 1000.0))
        for backend in ("python", "numba"):
            with self.subTest(backend=backend):
                buffer = render_fern(config, seed=3, backend=backend)
                self.assertEqual(buffer, ImageBuffer(60, 60, config.secondary_color))

    def test_rows_far_below_the_image_are_skipped(self):
        # row indices near 2**53 must not wrap around when flattened
        config = RenderConfig.for_algorithm(
            BarnsleyFern(), width=2000, height=10, iterations=2000,
            pos=ComplexPoint(0.0, -6e15))
        for backend in ("python", "numba"):
            with self.subTest(backend=backend):
                buffer = render_fern(config, seed=11, backend=backend)
                self.assertEqual(buffer, ImageBuffer(2000, 10, config.secondary_color))

    def test_accumulate_into_given_buffer(self):
        config = fern_config(iterations=2000)
        buffer = ImageBuffer(60, 60, config.secondary_color)
        FernAccumulator(config, np.random.default_rng(5)).accumulate(buffer)
        self.assertEqual(buffer, render_fern(config, seed=5, backend="python"))

    def test_rejects_escape_time(self):
        with self.assertRaises(ValueError):
            render_fern(RenderConfig(width=4, height=4), seed=1)
        with self.assertRaises(ValueError):
            render_fern(RenderConfig.for_algorithm(Mandelbrot(), width=4, height=4))

    def test_rejects_gpu_backend(self):
        with self.assertRaises(ValueError):
            render_fern(fern_config(iterations=10), seed=1, backend="gpu")


if __name__ == "__main__":
    unittest.main(verbosity=2)
