"""Unit tests for density providers."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

import numpy as np
from numpy.random import default_rng

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contagion_engine.density import (
    DensityProvider,
    LookupDensityProvider,
    SyntheticDensityProvider,
    density_vector,
    lognormal_density_generator,
)


class TestLookupProvider(unittest.TestCase):

    def setUp(self):
        self.meta = {
            "a": {"base_density": 3.0, "venue": "market"},
            "b": {"baseDensity": 2.0},
            "c": {},
        }
        self.table = {0: {"a": 10.0, "c": 0.0}, 1: {"b": 7.0}}
        self.provider = LookupDensityProvider(self.meta, self.table)

    def test_regions_follow_meta_order(self):
        self.assertEqual(self.provider.list_regions(), ["a", "b", "c"])

    def test_table_value_wins(self):
        self.assertEqual(self.provider.get_density("a", 0), 10.0)
        self.assertEqual(self.provider.get_density("b", 1), 7.0)

    def test_explicit_zero_is_kept(self):
        self.assertEqual(self.provider.get_density("c", 0), 0.0)

    def test_base_density_fallback(self):
        self.assertEqual(self.provider.get_density("b", 0), 2.0)
        self.assertEqual(self.provider.get_density("a", 5), 3.0)

    def test_missing_everything_gives_zero(self):
        self.assertEqual(self.provider.get_density("c", 1), 0.0)
        self.assertEqual(self.provider.get_density("zzz", 0), 0.0)

    def test_attributes(self):
        self.assertEqual(self.provider.get_region_attributes("a")["venue"], "market")
        self.assertEqual(self.provider.get_region_attributes("zzz"), {})

    def test_without_table(self):
        p = LookupDensityProvider({"x": {"base_density": 4}})
        self.assertEqual(p.get_density("x", 0), 4.0)


class TestSyntheticProvider(unittest.TestCase):

    def test_generator_fn_called_with_region_and_time(self):
        calls = []

        def gen(region_id, t):
            calls.append((region_id, t))
            return 2.0 * t + (1.0 if region_id == "p" else 0.0)

        p = SyntheticDensityProvider(["p", "q"], gen)
        self.assertEqual(p.list_regions(), ["p", "q"])
        self.assertEqual(p.get_density("p", 3), 7.0)
        self.assertEqual(calls, [("p", 3)])
        self.assertEqual(p.get_region_attributes("p"), {})

    def test_attr_provider(self):
        p = SyntheticDensityProvider(["p"], lambda r, t: 0.0, lambda r: {"id": r})
        self.assertEqual(p.get_region_attributes("p"), {"id": "p"})

    def test_is_a_density_provider(self):
        p = SyntheticDensityProvider([], lambda r, t: 0.0)
        self.assertIsInstance(p, DensityProvider)


class TestLognormalGenerator(unittest.TestCase):

    def test_deterministic_and_time_invariant(self):
        regions = ["a", "b", "c"]
        g1 = lognormal_density_generator(regions, 0.0, 1.0, default_rng(3))
        g2 = lognormal_density_generator(regions, 0.0, 1.0, default_rng(3))
        for r in regions:
            self.assertEqual(g1(r, 0), g2(r, 0))
            self.assertEqual(g1(r, 0), g1(r, 10))
            self.assertGreater(g1(r, 0), 0.0)

    def test_zero_sigma_is_constant(self):
        g = lognormal_density_generator(["a", "b"], 1.0, 0.0, default_rng(0))
        self.assertAlmostEqual(g("a", 0), np.e)
        self.assertAlmostEqual(g("b", 0), np.e)

    def test_unknown_region_zero(self):
        g = lognormal_density_generator(["a"], 0.0, 1.0, default_rng(0))
        self.assertEqual(g("nope", 0), 0.0)

    def test_negative_sigma_rejected(self):
        with self.assertRaises(ValueError):
            lognormal_density_generator(["a"], 0.0, -1.0, default_rng(0))


class TestDensityVector(unittest.TestCase):

    def test_region_order(self):
        p = LookupDensityProvider({"a": {"base_density": 1}, "b": {"base_density": 2}})
        np.testing.assert_array_equal(density_vector(p, ["b", "a"]), [2.0, 1.0])


if __name__ == "__main__":
    unittest.main()
