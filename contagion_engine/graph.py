"""
Mobility graph utilities for the contagion engine.

A mobility graph is a plain mapping ``{from_region: [{"to": str, "weight": float}, ...]}``.
Weights are relative flow intensities: they need not sum to one, edges may be
asymmetric and regions may be isolated.

Uses NetworkX only for random graph construction; the simulator consumes the
incoming-weight matrix ``W`` built by ``in_weight_matrix``.  Convention:
W[j, i] is the total weight of edges j → i, so column i of W holds the
in-neighbours of region i.
"""

from __future__ import annotations

from typing import Any, Sequence

import networkx as nx
import numpy as np
from numpy.random import Generator, default_rng


MobilityGraph = dict[str, list[dict[str, Any]]]

GRAPH_TYPES = {"erdos_renyi", "barabasi_albert", "watts_strogatz", "custom"}


# ---------------------------------------------------------------------------
# Simulator-facing conversion
# ---------------------------------------------------------------------------


def in_weight_matrix(mobility_graph: MobilityGraph, regions: Sequence[str]) -> np.ndarray:
    """Build the incoming-weight matrix for a fixed region order.

    Parameters
    ----------
    mobility_graph : MobilityGraph
        Directed weighted edges keyed by source region.
    regions : sequence of str
        Authoritative region order.  Edges whose source or target is not in
        this list are ignored.

    Returns
    -------
    np.ndarray, shape (n, n), dtype float64
        W[j, i] = sum of weights of edges regions[j] → regions[i].  Parallel
        edges accumulate.
    """
    index = {r: k for k, r in enumerate(regions)}
    n = len(regions)
    W = np.zeros((n, n), dtype=np.float64)
    for source, edges in mobility_graph.items():
        j = index.get(source)
        if j is None:
            continue
        for edge in edges:
            i = index.get(edge["to"])
            if i is None:
                continue
            W[j, i] += float(edge["weight"])
    return W


def incoming_edges(mobility_graph: MobilityGraph, target: str) -> list[dict[str, Any]]:
    """All edges pointing at *target*, as ``{"from", "weight"}`` records."""
    return [
        {"from": source, "weight": edge["weight"]}
        for source, edges in mobility_graph.items()
        for edge in edges
        if edge["to"] == target
    ]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _weighted_edges(
    G: nx.DiGraph,
    region_ids: Sequence[str],
    rng: Generator,
    weight_low: float,
    weight_high: float,
) -> MobilityGraph:
    """Label nodes with region ids and draw a uniform weight per edge.

    Every region appears as a key (possibly with no edges) so isolated regions
    stay visible to callers.  Edges are emitted in sorted (u, v) order so the
    weight draw is reproducible.
    """
    graph: MobilityGraph = {r: [] for r in region_ids}
    edges = sorted((u, v) for u, v in G.edges() if u != v)
    weights = rng.uniform(weight_low, weight_high, size=len(edges))
    for (u, v), w in zip(edges, weights):
        graph[region_ids[u]].append({"to": region_ids[v], "weight": float(w)})
    return graph


def _check_weight_range(weight_low: float, weight_high: float) -> None:
    if weight_low < 0 or weight_high < weight_low:
        raise ValueError(
            f"Need 0 <= weight_low <= weight_high; got ({weight_low}, {weight_high})."
        )


# ---------------------------------------------------------------------------
# Public generators
# ---------------------------------------------------------------------------


def generate_erdos_renyi(
    region_ids: Sequence[str],
    p: float,
    seed: int,
    weight_low: float = 0.0,
    weight_high: float = 1.0,
) -> MobilityGraph:
    """Erdős–Rényi directed mobility graph G(n, p) with uniform edge weights.

    Parameters
    ----------
    region_ids : sequence of str
        Region labels; node k of the random graph becomes ``region_ids[k]``.
    p : float
        Edge probability in [0, 1].
    seed : int
        Seed for both topology and weights.
    weight_low, weight_high : float
        Uniform weight range.

    Returns
    -------
    MobilityGraph
    """
    _check_weight_range(weight_low, weight_high)
    n = len(region_ids)
    G: nx.DiGraph = nx.gnp_random_graph(n, p, seed=seed, directed=True)
    return _weighted_edges(G, region_ids, default_rng(seed), weight_low, weight_high)


def generate_barabasi_albert(
    region_ids: Sequence[str],
    m: int,
    seed: int,
    weight_low: float = 0.0,
    weight_high: float = 1.0,
) -> MobilityGraph:
    """Barabási–Albert preferential attachment mobility graph.

    NetworkX produces an undirected BA graph; each undirected edge becomes two
    directed edges with independently drawn weights, so flows are asymmetric.
    """
    _check_weight_range(weight_low, weight_high)
    G: nx.Graph = nx.barabasi_albert_graph(len(region_ids), m, seed=seed)
    return _weighted_edges(
        G.to_directed(), region_ids, default_rng(seed), weight_low, weight_high
    )


def generate_watts_strogatz(
    region_ids: Sequence[str],
    k: int,
    p: float,
    seed: int,
    weight_low: float = 0.0,
    weight_high: float = 1.0,
) -> MobilityGraph:
    """Watts–Strogatz small-world mobility graph (symmetrised topology)."""
    _check_weight_range(weight_low, weight_high)
    G: nx.Graph = nx.watts_strogatz_graph(len(region_ids), k, p, seed=seed)
    return _weighted_edges(
        G.to_directed(), region_ids, default_rng(seed), weight_low, weight_high
    )


def generate_custom(
    region_ids: Sequence[str],
    edge_list: Sequence[Sequence[Any]],
) -> MobilityGraph:
    """Mobility graph from an explicit ``(from, to, weight)`` edge list.

    Raises
    ------
    ValueError
        If an edge names an unknown region or carries a negative weight.
    """
    known = set(region_ids)
    graph: MobilityGraph = {r: [] for r in region_ids}
    for edge in edge_list:
        if len(edge) != 3:
            raise ValueError(f"Edge {edge!r} must be (from, to, weight).")
        u, v, w = edge
        if u not in known or v not in known:
            raise ValueError(f"Edge ({u}, {v}) references an unknown region.")
        if float(w) < 0:
            raise ValueError(f"Edge ({u}, {v}) has negative weight {w}.")
        graph[u].append({"to": v, "weight": float(w)})
    return graph


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def mobility_graph_from_config(
    graph_cfg: dict,
    region_ids: Sequence[str],
) -> MobilityGraph:
    """Build a mobility graph from a ``mobility`` config sub-dict.

    Parameters
    ----------
    graph_cfg : dict
        Must contain ``type`` and the parameters required by the chosen
        generator.  Supported types: ``erdos_renyi``, ``barabasi_albert``,
        ``watts_strogatz``, ``custom``.
    region_ids : sequence of str
        Region labels in simulation order.

    Raises
    ------
    ValueError
        For unsupported graph types or missing parameters.
    """
    gtype = graph_cfg["type"]
    seed: int = int(graph_cfg.get("seed", 0))
    low = float(graph_cfg.get("weight_low", 0.0))
    high = float(graph_cfg.get("weight_high", 1.0))

    if gtype == "erdos_renyi":
        return generate_erdos_renyi(region_ids, float(graph_cfg["p"]), seed, low, high)
    if gtype == "barabasi_albert":
        return generate_barabasi_albert(region_ids, int(graph_cfg["m"]), seed, low, high)
    if gtype == "watts_strogatz":
        return generate_watts_strogatz(
            region_ids, int(graph_cfg["k"]), float(graph_cfg["p"]), seed, low, high
        )
    if gtype == "custom":
        return generate_custom(region_ids, graph_cfg["edges"])

    raise ValueError(f"Unsupported mobility graph type: {gtype!r}")
