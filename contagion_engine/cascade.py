"""
Core adoption / fear cascade simulator.

Implements a vectorised, synchronous, discrete-time model over a weighted
directed mobility graph.  Each region r carries two state variables:

    A[r] in [0, 1]   adoption fraction
    F[r] >= 0        fear level (floored at 0, never capped)

Update rule (applied simultaneously for all regions)
----------------------------------------------------
    contact_i  = base_contact * (density_i + 1) ** density_exponent
    E_i        = signal * (local_weight * contact_i * A_i
                           + imported_weight * sum_j W[j, i] * A_j)
    dA_i       = min(max_rate, E_i * exposure_scale / (1 + fear_sensitivity * F_i) * (1 - A_i))
    H_i        = w_A * A_i + w_F * F_i + w_E * E_i
    driver_i   = k_exposure * E_i + k_growth * max(0, dA_i) + k_harm * H_i
                 (times spike_gain when non_linear_spike and driver_i > spike_threshold)
    A_i'       = clip(A_i + dA_i, 0, 1)
    F_i'       = max(0, F_i + driver_i - decay * F_i)

New values are computed from the old state into fresh arrays and committed
together, so no region sees another region's updated value within a step.
Density is sampled once, at t = 0, and held fixed for the run.

All functions are pure (no global mutable state).  A run is deterministic
given the RNG factory and ``theta.random_seed``; randomness is consumed only
by the initial adoption jitter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

import numpy as np
from numpy.random import Generator

from .config import AdoptionParams, FearParams, HarmWeights, SimConfig, Theta
from .density import DensityProvider, density_vector
from .focus import SpatialFocus, compute_spatial_focus_weights
from .graph import MobilityGraph, in_weight_matrix
from .metrics import History, SimulationMetrics, compute_simulation_metrics, population_vector
from .utils import clamp01


# Amplitude of the symmetric uniform jitter applied to initial adoption.
SEED_JITTER = 0.1


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CascadeResult:
    """Full trace and summary metrics of one run."""
    history: History
    metrics: SimulationMetrics

    def to_dict(self) -> dict:
        return {"history": self.history.to_dict(), "metrics": self.metrics.to_dict()}


# ---------------------------------------------------------------------------
# Initialisation
# ---------------------------------------------------------------------------


def initialize_adoption(
    regions: Sequence[str],
    seed_fraction: float,
    spatial_focus: Optional[SpatialFocus],
    pop_by_region: Mapping[str, float],
    rng: Generator,
) -> np.ndarray:
    """Initial adoption fractions.

    Parameters
    ----------
    regions : sequence of str
        Region ids in simulation order.
    seed_fraction : float
        Share of the total population to seed.
    spatial_focus : SpatialFocus or None
        How the seeded population is spread over regions.
    pop_by_region : mapping
        Region id -> population.
    rng : Generator
        One uniform draw per region, in region order.

    Returns
    -------
    np.ndarray, shape (n,)
        Values in [0, 1].

    Notes
    -----
    For region r with weight w_r and population p_r (0 replaced by 1):

        expected_r = w_r * seed_fraction * pop_total / p_r
        A_r        = clip(min(1, expected_r / p_r) + (u_r - 0.5) * 0.1, 0, 1)

    The population enters twice.  Zero-population regions stay finite.
    """
    pops = population_vector(regions, pop_by_region)
    target_seed_pop = float(pops.sum()) * seed_fraction

    weights = compute_spatial_focus_weights(regions, spatial_focus, pop_by_region)
    w = np.array([weights.get(r, 0.0) for r in regions], dtype=np.float64)

    safe_pops = np.where(pops > 0, pops, 1.0)
    expected_seeds = w * target_seed_pop / safe_pops
    frac = np.minimum(1.0, expected_seeds / safe_pops)

    jitter = (rng.random(len(regions)) - 0.5) * SEED_JITTER
    return clamp01(frac + jitter)


def initialize_fear(
    regions: Sequence[str],
    initial_fear_by_region: Mapping[str, float],
) -> np.ndarray:
    """Initial fear per region; regions without an entry start at 0."""
    return np.array(
        [initial_fear_by_region.get(r) or 0.0 for r in regions], dtype=np.float64
    )


# ---------------------------------------------------------------------------
# Dynamics
# ---------------------------------------------------------------------------


def compute_exposure(
    A: np.ndarray,
    density: np.ndarray,
    W: np.ndarray,
    signal_strength: float,
    params: AdoptionParams,
) -> np.ndarray:
    """Per-region exposure from local contact and mobility imports.

    Parameters
    ----------
    A : np.ndarray, shape (n,)
        Current adoption.
    density : np.ndarray, shape (n,)
        Local density per region.
    W : np.ndarray, shape (n, n)
        Incoming-weight matrix, W[j, i] = weight of j → i.
    signal_strength : float
    params : AdoptionParams

    Returns
    -------
    np.ndarray, shape (n,)
    """
    contact_rate = params.base_contact * np.power(density + 1.0, params.density_exponent)
    local_exposure = params.local_weight * contact_rate * A
    # imported[i] = sum_j W[j, i] * A[j]; regions with no in-edges get 0
    imported_exposure = W.T @ A
    return signal_strength * (local_exposure + params.imported_weight * imported_exposure)


def adoption_increment(
    A: np.ndarray,
    F: np.ndarray,
    exposure: np.ndarray,
    params: AdoptionParams,
) -> np.ndarray:
    """Adoption growth, damped by fear and capped at ``max_rate``."""
    effective_exposure = exposure * params.exposure_scale
    fear_factor = 1.0 / (1.0 + params.fear_sensitivity * F)
    raw_growth = effective_exposure * fear_factor * (1.0 - A)
    return np.minimum(params.max_rate, raw_growth)


def compute_harm_signal(
    A: np.ndarray,
    F: np.ndarray,
    exposure: np.ndarray,
    weights: HarmWeights,
) -> np.ndarray:
    """Linear harm signal; identically 0 with default weights."""
    return weights.adoption * A + weights.fear * F + weights.exposure * exposure


def fear_increment(
    F: np.ndarray,
    exposure: np.ndarray,
    dA: np.ndarray,
    harm_signal: np.ndarray,
    params: FearParams,
) -> np.ndarray:
    """Fear change: driver (with optional non-linear spike) minus decay."""
    driver = (
        params.k_exposure * exposure
        + params.k_growth * np.maximum(0.0, dA)
        + params.k_harm * harm_signal
    )
    if params.non_linear_spike:
        driver = np.where(driver > params.spike_threshold, driver * params.spike_gain, driver)
    return driver - params.decay * F


# ---------------------------------------------------------------------------
# Full run
# ---------------------------------------------------------------------------


def run_cascade_simulation(
    theta: Theta,
    density_provider: DensityProvider,
    mobility_graph: MobilityGraph,
    sim_config: SimConfig,
) -> CascadeResult:
    """Run one seeded simulation and summarise it.

    Parameters
    ----------
    theta : Theta
        Seed fraction, signal strength, spatial focus, horizon, step length
        and random seed for this run.
    density_provider : DensityProvider
        Authoritative region list and densities.
    mobility_graph : MobilityGraph
        Weighted directed edges; edges touching unknown regions are ignored.
    sim_config : SimConfig
        Shared parameters (read-only).

    Returns
    -------
    CascadeResult
        ``history`` holds ``floor(time_horizon / dt) + 1`` snapshots; snapshot
        k is the state after k committed updates.

    Notes
    -----
    An empty region list or a zero total population does not raise: every
    population division substitutes 1 and the run degrades to zeros.
    Exceptions raised by the density provider propagate unchanged.
    """
    regions = list(density_provider.list_regions())
    n = len(regions)
    T = theta.n_steps

    rng = sim_config.rng_factory(theta.random_seed)
    A = initialize_adoption(
        regions, theta.seed_fraction, theta.spatial_focus, sim_config.pop_by_region, rng
    )
    F = initialize_fear(regions, sim_config.initial_fear_by_region)

    density = density_vector(density_provider, regions, 0)
    W = in_weight_matrix(mobility_graph, regions)

    times = np.arange(T + 1, dtype=np.float64) * theta.dt
    adoption_history = np.empty((T + 1, n), dtype=np.float64)
    fear_history = np.empty((T + 1, n), dtype=np.float64)

    ap = sim_config.adoption_params
    fp = sim_config.fear_params
    hw = sim_config.harm_weights

    for step in range(T + 1):
        # Snapshot first, then update
        adoption_history[step] = A
        fear_history[step] = F
        if step == T:
            break

        exposure = compute_exposure(A, density, W, theta.signal_strength, ap)
        dA = adoption_increment(A, F, exposure, ap)
        harm_signal = compute_harm_signal(A, F, exposure, hw)
        dF = fear_increment(F, exposure, dA, harm_signal, fp)

        A_next = clamp01(A + dA)
        F_next = np.maximum(0.0, F + dF)
        A, F = A_next, F_next

    history = History(
        region_ids=regions,
        times=times,
        adoption=adoption_history,
        fear=fear_history,
    )
    metrics = compute_simulation_metrics(history, sim_config.pop_by_region, fp)
    return CascadeResult(history=history, metrics=metrics)
