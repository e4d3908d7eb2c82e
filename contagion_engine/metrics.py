"""
Metrics module for the contagion engine.

Turns a full simulation history into read-only summary metrics: global
(population-weighted) and per-region peaks of adoption and fear with their
times, and the harmful-cascade flag.  All metrics are pure functions with no
global state.

Peak semantics
--------------
Peaks start at 0 with time ``None`` and are replaced only on a strict
increase, so ties keep the earliest snapshot and a series that never rises
above 0 reports ``(0.0, None)``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

import numpy as np

from .config import FearParams


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@dataclass
class History:
    """Complete simulation trace, one row per snapshot.

    Attributes
    ----------
    region_ids : list of str
        Column order of ``adoption`` and ``fear``.
    times : np.ndarray, shape (T+1,)
        Simulation time of each snapshot (``step * dt``).
    adoption : np.ndarray, shape (T+1, n)
        Adoption fraction per snapshot and region.
    fear : np.ndarray, shape (T+1, n)
        Fear level per snapshot and region.
    """
    region_ids: list[str]
    times: np.ndarray
    adoption: np.ndarray
    fear: np.ndarray

    def __len__(self) -> int:
        return int(self.times.shape[0])

    def snapshots(self, kind: str = "A") -> list[dict]:
        """Snapshot sequence ``[{"t": t, "values": {region_id: value}}, ...]``.

        Parameters
        ----------
        kind : {"A", "F"}
            Adoption or fear.
        """
        if kind == "A":
            data = self.adoption
        elif kind == "F":
            data = self.fear
        else:
            raise ValueError(f"kind must be 'A' or 'F'; got {kind!r}.")
        return [
            {
                "t": float(t),
                "values": {r: float(v) for r, v in zip(self.region_ids, row)},
            }
            for t, row in zip(self.times, data)
        ]

    def to_dict(self) -> dict:
        return {"A": self.snapshots("A"), "F": self.snapshots("F")}


# ---------------------------------------------------------------------------
# Metrics containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegionPeak:
    peak_adoption: float = 0.0
    peak_fear: float = 0.0
    peak_adoption_time: Optional[float] = None
    peak_fear_time: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "peak_adoption": self.peak_adoption,
            "peak_fear": self.peak_fear,
            "peak_adoption_time": self.peak_adoption_time,
            "peak_fear_time": self.peak_fear_time,
        }


@dataclass(frozen=True)
class SimulationMetrics:
    """Summary of one simulation run.

    ``harmful_cascade_time`` is the time of the first snapshot that met the
    harmful-cascade condition, or ``None``.
    """
    global_peak_adoption: float
    global_peak_fear: float
    peak_adoption_time: Optional[float]
    peak_fear_time: Optional[float]
    per_region: dict[str, RegionPeak] = field(default_factory=dict)
    harmful_cascade_occurred: bool = False
    harmful_cascade_time: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "global_peak_adoption": self.global_peak_adoption,
            "global_peak_fear": self.global_peak_fear,
            "peak_adoption_time": self.peak_adoption_time,
            "peak_fear_time": self.peak_fear_time,
            "per_region": {r: p.to_dict() for r, p in self.per_region.items()},
            "harmful_cascade_occurred": self.harmful_cascade_occurred,
            "harmful_cascade_time": self.harmful_cascade_time,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def population_vector(
    regions: Sequence[str],
    pop_by_region: Mapping[str, float],
) -> np.ndarray:
    """Population per region in region order; missing regions count as 0."""
    return np.array([pop_by_region.get(r, 0.0) for r in regions], dtype=np.float64)


def _first_strict_peak(series: np.ndarray, times: np.ndarray) -> tuple[float, Optional[float]]:
    """Running-maximum peak starting from (0, None) with strict ``>``."""
    if series.size == 0:
        return 0.0, None
    idx = int(np.argmax(series))  # argmax returns the first maximal index
    peak = float(series[idx])
    if not peak > 0.0:
        return 0.0, None
    return peak, float(times[idx])


# ---------------------------------------------------------------------------
# Simulation metrics
# ---------------------------------------------------------------------------


def compute_simulation_metrics(
    history: History,
    pop_by_region: Mapping[str, float],
    fear_params: Optional[FearParams] = None,
) -> SimulationMetrics:
    """Summarise a simulation history.

    Parameters
    ----------
    history : History
        Full trace as produced by ``run_cascade_simulation``.
    pop_by_region : mapping
        Region id -> population.
    fear_params : FearParams, optional
        Supplies ``critical_fear``, ``material_adoption`` and
        ``critical_pop_share`` for the harmful-cascade test.

    Returns
    -------
    SimulationMetrics

    Notes
    -----
    Global averages are population-weighted:

        avg_X(t) = sum_r X_r(t) * pop_r / pop_total

    with ``pop_total`` replaced by 1 when it is 0.  A harmful cascade occurs
    at the first snapshot where

        sum_r pop_r * [A_r >= material_adoption and F_r >= critical_fear] / pop_total
            >= critical_pop_share
    """
    fp = fear_params or FearParams()
    regions = history.region_ids
    pops = population_vector(regions, pop_by_region)
    pop_total = float(pops.sum()) or 1.0

    avg_adoption = history.adoption @ pops / pop_total
    avg_fear = history.fear @ pops / pop_total

    global_peak_adoption, peak_adoption_time = _first_strict_peak(avg_adoption, history.times)
    global_peak_fear, peak_fear_time = _first_strict_peak(avg_fear, history.times)

    per_region: dict[str, RegionPeak] = {}
    for k, r in enumerate(regions):
        pa, pa_t = _first_strict_peak(history.adoption[:, k], history.times)
        pf, pf_t = _first_strict_peak(history.fear[:, k], history.times)
        per_region[r] = RegionPeak(pa, pf, pa_t, pf_t)

    at_risk = (history.adoption >= fp.material_adoption) & (history.fear >= fp.critical_fear)
    share_at_risk = at_risk.astype(np.float64) @ pops / pop_total
    qualifying = np.flatnonzero(share_at_risk >= fp.critical_pop_share)
    harmful = qualifying.size > 0

    return SimulationMetrics(
        global_peak_adoption=global_peak_adoption,
        global_peak_fear=global_peak_fear,
        peak_adoption_time=peak_adoption_time,
        peak_fear_time=peak_fear_time,
        per_region=per_region,
        harmful_cascade_occurred=bool(harmful),
        harmful_cascade_time=float(history.times[qualifying[0]]) if harmful else None,
    )
