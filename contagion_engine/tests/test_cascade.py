"""
Unit tests for the adoption / fear cascade simulator.
Compatible with both pytest and unittest.
"""

from __future__ import annotations

import math
import sys
import unittest
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contagion_engine.cascade import (
    run_cascade_simulation,
    initialize_adoption,
    initialize_fear,
    compute_exposure,
    adoption_increment,
    fear_increment,
)
from contagion_engine.config import AdoptionParams, FearParams, SimConfig, Theta
from contagion_engine.density import LookupDensityProvider, SyntheticDensityProvider
from contagion_engine.focus import SpatialFocus
from contagion_engine.graph import in_weight_matrix


class _HalfRng:
    """Stand-in generator whose draws are all 0.5, i.e. zero jitter."""

    def random(self, size):
        return np.full(size, 0.5)


def _half_rng_factory(seed):
    return _HalfRng()


def _ring_scenario(n=6):
    regions = [f"r{i}" for i in range(n)]
    provider = LookupDensityProvider({r: {"base_density": float(i)} for i, r in enumerate(regions)})
    graph = {
        r: [{"to": regions[(i + 1) % n], "weight": 0.5}]
        for i, r in enumerate(regions)
    }
    pops = {r: float(i + 1) for i, r in enumerate(regions)}
    return regions, provider, graph, pops


class TestStateBounds(unittest.TestCase):

    def test_adoption_in_unit_interval_fear_non_negative(self):
        regions, provider, graph, pops = _ring_scenario()
        cfg = SimConfig(
            pop_by_region=pops,
            adoption_params=AdoptionParams(base_contact=0.5, max_rate=0.5),
            fear_params=FearParams(decay=0.5),
        )
        for seed in range(5):
            theta = Theta(0.3, 5.0, SpatialFocus.kernel(["r2"]), time_horizon=40, dt=1, random_seed=seed)
            h = run_cascade_simulation(theta, provider, graph, cfg).history
            self.assertTrue(np.all(h.adoption >= 0.0))
            self.assertTrue(np.all(h.adoption <= 1.0))
            self.assertTrue(np.all(h.fear >= 0.0))

    def test_fear_may_exceed_one(self):
        regions, provider, graph, pops = _ring_scenario()
        cfg = SimConfig(
            pop_by_region=pops,
            adoption_params=AdoptionParams(base_contact=1.0),
            fear_params=FearParams(k_exposure=1.0, decay=0.0),
        )
        theta = Theta(0.5, 2.0, None, time_horizon=30, dt=1)
        h = run_cascade_simulation(theta, provider, graph, cfg).history
        self.assertGreater(h.fear.max(), 1.0)


class TestDeterminism(unittest.TestCase):

    def test_identical_inputs_identical_outputs(self):
        regions, provider, graph, pops = _ring_scenario()
        cfg = SimConfig(pop_by_region=pops)
        theta = Theta(0.1, 0.7, SpatialFocus.explicit({"r0": 1, "r3": 2}), time_horizon=25, dt=1, random_seed=7)
        r1 = run_cascade_simulation(theta, provider, graph, cfg)
        r2 = run_cascade_simulation(theta, provider, graph, cfg)
        np.testing.assert_array_equal(r1.history.adoption, r2.history.adoption)
        np.testing.assert_array_equal(r1.history.fear, r2.history.fear)
        self.assertEqual(r1.metrics, r2.metrics)

    def test_seed_changes_initial_state(self):
        regions, provider, graph, pops = _ring_scenario()
        cfg = SimConfig(pop_by_region=pops)
        h0 = run_cascade_simulation(Theta(0.1, 0.7, random_seed=0), provider, graph, cfg).history
        h1 = run_cascade_simulation(Theta(0.1, 0.7, random_seed=1), provider, graph, cfg).history
        self.assertFalse(np.array_equal(h0.adoption[0], h1.adoption[0]))


class TestHistoryLayout(unittest.TestCase):

    def test_snapshot_count_is_floor_plus_one(self):
        regions, provider, graph, pops = _ring_scenario()
        cfg = SimConfig(pop_by_region=pops)
        h = run_cascade_simulation(Theta(0.1, 0.5, time_horizon=5.5, dt=2.0), provider, graph, cfg).history
        self.assertEqual(len(h), 3)
        np.testing.assert_array_equal(h.times, [0.0, 2.0, 4.0])
        self.assertEqual(h.adoption.shape, (3, len(regions)))

    def test_zero_horizon_single_snapshot(self):
        regions, provider, graph, pops = _ring_scenario()
        cfg = SimConfig(pop_by_region=pops)
        h = run_cascade_simulation(Theta(0.1, 0.5, time_horizon=0, dt=1), provider, graph, cfg).history
        self.assertEqual(len(h), 1)

    def test_snapshot_then_update_ordering(self):
        """Zero signal: fear only decays, so snapshot k equals F0 * (1 - decay)^k."""
        provider = LookupDensityProvider({"a": {}})
        cfg = SimConfig(
            pop_by_region={"a": 10.0},
            initial_fear_by_region={"a": 1.0},
            fear_params=FearParams(decay=0.05),
        )
        h = run_cascade_simulation(Theta(0.2, 0.0, time_horizon=4, dt=1), provider, {}, cfg).history
        for k in range(5):
            self.assertAlmostEqual(h.fear[k, 0], 0.95 ** k, places=12)
        # no exposure, so adoption never moves
        self.assertTrue(np.all(h.adoption == h.adoption[0]))

    def test_snapshots_view(self):
        provider = LookupDensityProvider({"a": {}, "b": {}})
        cfg = SimConfig(pop_by_region={"a": 1.0, "b": 1.0})
        h = run_cascade_simulation(Theta(0.1, 0.5, time_horizon=2, dt=1), provider, {}, cfg).history
        snaps = h.snapshots("A")
        self.assertEqual(len(snaps), 3)
        self.assertEqual(snaps[1]["t"], 1.0)
        self.assertEqual(set(snaps[1]["values"]), {"a", "b"})
        with self.assertRaises(ValueError):
            h.snapshots("X")


class TestSingleStep(unittest.TestCase):

    def _run_one_step(self, graph, signal=1.0):
        provider = LookupDensityProvider({"a": {}, "b": {}})
        cfg = SimConfig(
            pop_by_region={"a": 1.0, "b": 1.0},
            adoption_params=AdoptionParams(base_contact=0.0),
            rng_factory=_half_rng_factory,
        )
        theta = Theta(0.2, signal, SpatialFocus.uniform(), time_horizon=1, dt=1)
        return run_cascade_simulation(theta, provider, graph, cfg).history

    def test_initial_adoption_without_jitter(self):
        h = self._run_one_step({})
        np.testing.assert_allclose(h.adoption[0], [0.2, 0.2])

    def test_one_step_matches_hand_computation(self):
        h = self._run_one_step({"a": [{"to": "b", "weight": 1.0}]})
        # b imports 1.0 * A_a = 0.2; dA_b = min(0.2, 0.2 * 1 * (1 - 0.2)) = 0.16
        np.testing.assert_allclose(h.adoption[1], [0.2, 0.36])
        # driver_b = 0.1 * 0.2 + 0.5 * 0.16 = 0.1 (below spike threshold)
        np.testing.assert_allclose(h.fear[1], [0.0, 0.1])

    def test_symmetric_graph_updates_simultaneously(self):
        graph = {
            "a": [{"to": "b", "weight": 1.0}],
            "b": [{"to": "a", "weight": 1.0}],
        }
        h = self._run_one_step(graph)
        self.assertEqual(h.adoption[1, 0], h.adoption[1, 1])
        self.assertEqual(h.fear[1, 0], h.fear[1, 1])

    def test_isolated_region_gets_no_imported_exposure(self):
        h = self._run_one_step({"a": [{"to": "zz", "weight": 5.0}]})
        np.testing.assert_allclose(h.adoption[1], [0.2, 0.2])


class TestInitialisation(unittest.TestCase):

    def test_zero_population_region_is_finite(self):
        rng = np.random.default_rng(0)
        A = initialize_adoption(["a", "b"], 0.5, None, {"a": 0.0, "b": 100.0}, rng)
        self.assertTrue(np.all(np.isfinite(A)))
        self.assertTrue(np.all((A >= 0) & (A <= 1)))

    def test_zero_population_simulation_runs(self):
        provider = LookupDensityProvider({"a": {}, "b": {}})
        cfg = SimConfig(pop_by_region={"a": 0.0, "b": 0.0})
        result = run_cascade_simulation(Theta(0.5, 1.0, time_horizon=3, dt=1), provider, {}, cfg)
        self.assertTrue(np.all(np.isfinite(result.history.adoption)))
        self.assertEqual(result.metrics.global_peak_adoption, 0.0)

    def test_jitter_amplitude(self):
        rng = np.random.default_rng(3)
        A = initialize_adoption([f"r{i}" for i in range(200)], 0.0, None, {}, rng)
        # expected seeding is 0, so only the clipped positive jitter remains
        self.assertLessEqual(A.max(), 0.05)
        self.assertGreaterEqual(A.min(), 0.0)

    def test_initial_fear_defaults_to_zero(self):
        F = initialize_fear(["a", "b"], {"b": 0.4})
        np.testing.assert_array_equal(F, [0.0, 0.4])


class TestEmptyRegions(unittest.TestCase):

    def test_empty_region_list_degrades_without_error(self):
        provider = SyntheticDensityProvider([], lambda r, t: 1.0)
        cfg = SimConfig(pop_by_region={})
        result = run_cascade_simulation(Theta(0.2, 0.5, time_horizon=3, dt=1), provider, {}, cfg)
        self.assertEqual(result.history.adoption.shape, (4, 0))
        self.assertEqual(result.metrics.global_peak_adoption, 0.0)
        self.assertIsNone(result.metrics.peak_adoption_time)
        self.assertFalse(result.metrics.harmful_cascade_occurred)


class TestDensitySampling(unittest.TestCase):

    def test_density_read_at_time_zero_only(self):
        calls = []

        def density(region_id, t):
            calls.append(t)
            return 4.0

        provider = SyntheticDensityProvider(["a"], density)
        cfg = SimConfig(pop_by_region={"a": 1.0})
        run_cascade_simulation(Theta(0.1, 0.5, time_horizon=5, dt=1), provider, {}, cfg)
        self.assertTrue(calls)
        self.assertEqual(set(calls), {0})

    def test_provider_errors_propagate(self):
        def broken(region_id, t):
            raise IOError("density backend unavailable")

        provider = SyntheticDensityProvider(["a"], broken)
        cfg = SimConfig(pop_by_region={"a": 1.0})
        with self.assertRaises(IOError):
            run_cascade_simulation(Theta(0.1, 0.5), provider, {}, cfg)


class TestIncrements(unittest.TestCase):

    def test_exposure_local_and_imported(self):
        A = np.array([0.5, 0.0])
        density = np.array([3.0, 0.0])
        W = in_weight_matrix({"a": [{"to": "b", "weight": 2.0}]}, ["a", "b"])
        params = AdoptionParams(base_contact=0.1, density_exponent=0.5, imported_weight=0.5)
        E = compute_exposure(A, density, W, 2.0, params)
        # a: 2 * (0.1 * sqrt(4) * 0.5) = 0.2 ; b: 2 * (0 + 0.5 * 2.0 * 0.5) = 1.0
        np.testing.assert_allclose(E, [0.2, 1.0])

    def test_adoption_increment_capped(self):
        dA = adoption_increment(np.array([0.0]), np.array([0.0]), np.array([10.0]), AdoptionParams())
        self.assertEqual(dA[0], 0.2)

    def test_adoption_increment_fear_damping(self):
        params = AdoptionParams(max_rate=1.0)
        dA = adoption_increment(np.array([0.5]), np.array([1.0]), np.array([0.4]), params)
        self.assertAlmostEqual(dA[0], 0.4 * 0.5 * 0.5)

    def test_fear_spike(self):
        fp = FearParams(k_exposure=1.0, k_growth=0.0, decay=0.0)
        dF = fear_increment(np.array([0.0, 0.0]), np.array([0.3, 0.1]), np.zeros(2), np.zeros(2), fp)
        np.testing.assert_allclose(dF, [0.6, 0.1])

    def test_fear_spike_disabled(self):
        fp = FearParams(k_exposure=1.0, k_growth=0.0, decay=0.0, non_linear_spike=False)
        dF = fear_increment(np.array([0.0]), np.array([0.3]), np.zeros(1), np.zeros(1), fp)
        self.assertAlmostEqual(dF[0], 0.3)

    def test_negative_growth_does_not_drive_fear(self):
        fp = FearParams(k_exposure=0.0, k_growth=1.0, decay=0.1)
        dF = fear_increment(np.array([1.0]), np.zeros(1), np.array([-0.5]), np.zeros(1), fp)
        self.assertAlmostEqual(dF[0], -0.1)


if __name__ == "__main__":
    unittest.main()
