"""
Shared utilities for the contagion engine.

Centralises helpers that would otherwise be duplicated across modules.
Currently provides:
  - confidence_interval() : t-distribution CI for a sample mean
  - spawn_generators()    : SeedSequence-based independent RNG streams
  - clamp01()             : scalar / element-wise clamp to [0, 1]

All functions are pure (no global state).
"""

from __future__ import annotations

import numpy as np
from numpy.random import Generator, SeedSequence, default_rng
import scipy.stats as stats


# ---------------------------------------------------------------------------
# Confidence interval
# ---------------------------------------------------------------------------


def confidence_interval(
    samples: np.ndarray,
    confidence: float = 0.95,
) -> tuple[float, float]:
    """Compute a confidence interval for the population mean via t-distribution.

    Parameters
    ----------
    samples : np.ndarray, shape (m,)
        Sample array with m >= 2.
    confidence : float, optional
        Confidence level in (0, 1).  Default 0.95.

    Returns
    -------
    (ci_low, ci_high) : tuple of float
        Lower and upper bounds.

    Raises
    ------
    ValueError
        If m < 2 or confidence is not in (0, 1).
    """
    m = len(samples)
    if m < 2:
        raise ValueError("Need at least 2 samples for CI computation.")
    if not (0 < confidence < 1):
        raise ValueError(f"confidence must be in (0, 1); got {confidence}.")
    mean = float(np.mean(samples))
    se = float(stats.sem(samples))
    # Guard: zero-variance sample has a degenerate but well-defined CI.
    if se == 0.0:
        return mean, mean
    interval = stats.t.interval(confidence, df=m - 1, loc=mean, scale=se)
    return float(interval[0]), float(interval[1])


# ---------------------------------------------------------------------------
# SeedSequence-based RNG spawning
# ---------------------------------------------------------------------------


def spawn_generators(master_seed: int, n_streams: int) -> list[Generator]:
    """Spawn *n_streams* statistically-independent Generators from a master seed.

    Used when one scenario seed must drive several unrelated random draws
    (graph topology, edge weights, synthetic densities) without the streams
    overlapping.

    Parameters
    ----------
    master_seed : int
        The top-level seed.  The same master_seed always produces the same
        sequence of Generators.
    n_streams : int
        How many independent Generator instances to create.

    Returns
    -------
    list of Generator
    """
    ss = SeedSequence(master_seed)
    return [default_rng(child) for child in ss.spawn(n_streams)]


# ---------------------------------------------------------------------------
# Clamping
# ---------------------------------------------------------------------------


def clamp01(x):
    """Clamp a scalar or array to the closed unit interval."""
    return np.clip(x, 0.0, 1.0)
