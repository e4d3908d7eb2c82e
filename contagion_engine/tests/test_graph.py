"""Unit tests for mobility graph utilities."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from contagion_engine.graph import (
    generate_barabasi_albert,
    generate_custom,
    generate_erdos_renyi,
    generate_watts_strogatz,
    in_weight_matrix,
    incoming_edges,
    mobility_graph_from_config,
)

REGIONS = [f"r{i}" for i in range(12)]


class TestInWeightMatrix(unittest.TestCase):

    def test_orientation(self):
        graph = {"a": [{"to": "b", "weight": 0.5}]}
        W = in_weight_matrix(graph, ["a", "b"])
        self.assertEqual(W[0, 1], 0.5)
        self.assertEqual(W[1, 0], 0.0)
        # imported exposure of b is W.T @ A
        np.testing.assert_allclose(W.T @ np.array([1.0, 0.0]), [0.0, 0.5])

    def test_parallel_edges_accumulate(self):
        graph = {"a": [{"to": "b", "weight": 0.5}, {"to": "b", "weight": 0.25}]}
        W = in_weight_matrix(graph, ["a", "b"])
        self.assertEqual(W[0, 1], 0.75)

    def test_unknown_regions_ignored(self):
        graph = {
            "a": [{"to": "ghost", "weight": 1.0}],
            "ghost": [{"to": "a", "weight": 1.0}],
        }
        W = in_weight_matrix(graph, ["a", "b"])
        self.assertEqual(W.sum(), 0.0)

    def test_empty(self):
        self.assertEqual(in_weight_matrix({}, []).shape, (0, 0))

    def test_incoming_edges(self):
        graph = {"a": [{"to": "c", "weight": 0.1}], "b": [{"to": "c", "weight": 0.2}]}
        self.assertEqual(
            incoming_edges(graph, "c"),
            [{"from": "a", "weight": 0.1}, {"from": "b", "weight": 0.2}],
        )


class TestGenerators(unittest.TestCase):

    def _check(self, graph):
        self.assertEqual(list(graph), REGIONS)
        for src, edges in graph.items():
            for e in edges:
                self.assertIn(e["to"], REGIONS)
                self.assertNotEqual(e["to"], src)
                self.assertGreaterEqual(e["weight"], 0.0)
                self.assertLessEqual(e["weight"], 1.0)

    def test_erdos_renyi(self):
        g = generate_erdos_renyi(REGIONS, 0.3, seed=1)
        self._check(g)
        self.assertEqual(g, generate_erdos_renyi(REGIONS, 0.3, seed=1))

    def test_erdos_renyi_p_zero_isolated(self):
        g = generate_erdos_renyi(REGIONS, 0.0, seed=1)
        self.assertTrue(all(edges == [] for edges in g.values()))

    def test_barabasi_albert_is_bidirectional(self):
        g = generate_barabasi_albert(REGIONS, 2, seed=4)
        self._check(g)
        pairs = {(s, e["to"]) for s, edges in g.items() for e in edges}
        self.assertTrue(all((v, u) in pairs for u, v in pairs))

    def test_watts_strogatz(self):
        g = generate_watts_strogatz(REGIONS, 4, 0.1, seed=2)
        self._check(g)
        self.assertGreater(sum(len(e) for e in g.values()), 0)

    def test_weight_range(self):
        g = generate_erdos_renyi(REGIONS, 0.5, seed=1, weight_low=2.0, weight_high=3.0)
        ws = [e["weight"] for edges in g.values() for e in edges]
        self.assertTrue(all(2.0 <= w <= 3.0 for w in ws))

    def test_bad_weight_range(self):
        with self.assertRaises(ValueError):
            generate_erdos_renyi(REGIONS, 0.5, seed=1, weight_low=-1.0)


class TestCustom(unittest.TestCase):

    def test_edges(self):
        g = generate_custom(["a", "b", "c"], [("a", "b", 0.4), ("b", "a", 0.1)])
        self.assertEqual(g["a"], [{"to": "b", "weight": 0.4}])
        self.assertEqual(g["c"], [])

    def test_unknown_region(self):
        with self.assertRaises(ValueError):
            generate_custom(["a"], [("a", "z", 1.0)])

    def test_negative_weight(self):
        with self.assertRaises(ValueError):
            generate_custom(["a", "b"], [("a", "b", -0.1)])

    def test_malformed_edge(self):
        with self.assertRaises(ValueError):
            generate_custom(["a", "b"], [("a", "b")])


class TestFromConfig(unittest.TestCase):

    def test_dispatch(self):
        g = mobility_graph_from_config({"type": "erdos_renyi", "p": 0.2, "seed": 5}, REGIONS)
        self.assertEqual(g, generate_erdos_renyi(REGIONS, 0.2, seed=5))

    def test_custom(self):
        g = mobility_graph_from_config(
            {"type": "custom", "edges": [["a", "b", 1.0]]}, ["a", "b"]
        )
        self.assertEqual(g["a"], [{"to": "b", "weight": 1.0}])

    def test_unknown_type(self):
        with self.assertRaises(ValueError):
            mobility_graph_from_config({"type": "lattice"}, REGIONS)


if __name__ == "__main__":
    unittest.main()
