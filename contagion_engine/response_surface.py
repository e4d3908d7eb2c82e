"""
Response surface builder for the contagion engine.

Sweeps the Cartesian grid ``seed_fractions x signal_strengths x
spatial_focus_options`` and runs ``runs_per_point`` simulations per grid
point, varying only the random seed (0, 1, ..., runs_per_point - 1).  Each
cell aggregates the per-run metrics into mean peaks and the probability of a
harmful cascade.

Design principles
-----------------
* Output order is the nested iteration order (seed fraction outermost, then
  signal strength, then spatial focus), whether or not runs execute in
  parallel.
* Runs are independent: each owns its state and RNG and shares only the
  read-only provider, graph and config.
* A cell is aggregated only once all of its runs have finished.
* Confidence intervals use scipy.stats.t (t-distribution, two-tailed).
"""

from __future__ import annotations

import asyncio
import itertools
import math
import time
import warnings
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .cascade import run_cascade_simulation
from .config import SimConfig, Theta
from .density import DensityProvider
from .focus import SpatialFocus, spatial_focus_key
from .graph import MobilityGraph
from .metrics import SimulationMetrics
from .utils import confidence_interval


FocusLike = Union[SpatialFocus, Mapping[str, Any], None]
GridPoint = tuple[float, float, SpatialFocus]


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParamGrid:
    """Axes of the parameter sweep.

    Spatial focus options may be ``SpatialFocus`` objects, JSON-style dicts or
    ``None``; they are normalised on construction.
    """
    seed_fractions: Sequence[float]
    signal_strengths: Sequence[float]
    spatial_focus_options: Sequence[FocusLike] = field(
        default_factory=lambda: [SpatialFocus.uniform()]
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "seed_fractions", tuple(self.seed_fractions))
        object.__setattr__(self, "signal_strengths", tuple(self.signal_strengths))
        object.__setattr__(
            self,
            "spatial_focus_options",
            tuple(
                opt if isinstance(opt, SpatialFocus) else SpatialFocus.from_dict(opt)
                for opt in self.spatial_focus_options
            ),
        )

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ParamGrid":
        return cls(
            seed_fractions=[float(x) for x in d["seed_fractions"]],
            signal_strengths=[float(x) for x in d["signal_strengths"]],
            spatial_focus_options=d.get("spatial_focus_options", [{"type": "uniform"}]),
        )

    def points(self) -> Iterator[GridPoint]:
        """Grid points in output order."""
        return itertools.product(
            self.seed_fractions, self.signal_strengths, self.spatial_focus_options
        )

    def __len__(self) -> int:
        return (
            len(self.seed_fractions)
            * len(self.signal_strengths)
            * len(self.spatial_focus_options)
        )


@dataclass(frozen=True)
class SurfaceConfig:
    """Everything a sweep shares across cells.

    ``base_sim_config.time_horizon`` and ``base_sim_config.dt`` set the horizon
    of every run.
    """
    density_provider: DensityProvider
    mobility_graph: MobilityGraph
    base_sim_config: SimConfig
    runs_per_point: int

    def thetas(self, point: GridPoint) -> list[Theta]:
        """One theta per run of a grid point, seeded 0..runs_per_point-1."""
        seed_fraction, signal_strength, focus = point
        return [
            Theta(
                seed_fraction=seed_fraction,
                signal_strength=signal_strength,
                spatial_focus=focus,
                time_horizon=self.base_sim_config.time_horizon,
                dt=self.base_sim_config.dt,
                random_seed=k,
            )
            for k in range(max(0, int(self.runs_per_point)))
        ]


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CellStats:
    """Aggregated statistics of one grid cell.

    Attributes
    ----------
    mean_global_peak_adoption : float
    mean_global_peak_fear : float
    probability_harmful : float
        Harmful runs / runs (runs replaced by 1 when there are none).
    raw : tuple of SimulationMetrics
        Per-run metrics, in seed order.
    peak_adoption_ci, peak_fear_ci : (float, float)
        95% t-interval of the mean peaks; ``nan`` bounds with fewer than two
        runs.
    """
    mean_global_peak_adoption: float
    mean_global_peak_fear: float
    probability_harmful: float
    raw: tuple[SimulationMetrics, ...] = ()
    peak_adoption_ci: tuple[float, float] = (math.nan, math.nan)
    peak_fear_ci: tuple[float, float] = (math.nan, math.nan)

    @property
    def n_runs(self) -> int:
        return len(self.raw)

    def to_dict(self, include_raw: bool = True) -> dict:
        out = {
            "mean_global_peak_adoption": self.mean_global_peak_adoption,
            "mean_global_peak_fear": self.mean_global_peak_fear,
            "probability_harmful": self.probability_harmful,
            "n_runs": self.n_runs,
            "peak_adoption_ci_95": list(self.peak_adoption_ci),
            "peak_fear_ci_95": list(self.peak_fear_ci),
        }
        if include_raw:
            out["raw"] = [m.to_dict() for m in self.raw]
        return out


@dataclass(frozen=True)
class ResponseSurfaceCell:
    """One grid point of the response surface."""
    seed_fraction: float
    signal_strength: float
    spatial_focus: SpatialFocus
    stats: CellStats

    @property
    def spatial_focus_key(self) -> str:
        return spatial_focus_key(self.spatial_focus)

    def to_dict(self, include_raw: bool = True) -> dict:
        return {
            "seed_fraction": self.seed_fraction,
            "signal_strength": self.signal_strength,
            "spatial_focus": self.spatial_focus.to_dict(),
            "stats": self.stats.to_dict(include_raw=include_raw),
        }


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _ci_or_nan(samples: np.ndarray) -> tuple[float, float]:
    if samples.size < 2:
        return math.nan, math.nan
    return confidence_interval(samples)


def aggregate_metrics(metrics: Sequence[SimulationMetrics]) -> CellStats:
    """Aggregate the per-run metrics of one cell.

    The divisor is the number of runs, or 1 when there are none, so an empty
    cell aggregates to zeros instead of raising.
    """
    n = len(metrics) or 1
    peak_adoption = np.array([m.global_peak_adoption for m in metrics], dtype=np.float64)
    peak_fear = np.array([m.global_peak_fear for m in metrics], dtype=np.float64)
    n_harmful = sum(1 for m in metrics if m.harmful_cascade_occurred)

    return CellStats(
        mean_global_peak_adoption=float(peak_adoption.sum()) / n,
        mean_global_peak_fear=float(peak_fear.sum()) / n,
        probability_harmful=n_harmful / n,
        raw=tuple(metrics),
        peak_adoption_ci=_ci_or_nan(peak_adoption),
        peak_fear_ci=_ci_or_nan(peak_fear),
    )


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------


def _run_metrics(theta: Theta, config: SurfaceConfig) -> SimulationMetrics:
    result = run_cascade_simulation(
        theta, config.density_provider, config.mobility_graph, config.base_sim_config
    )
    return result.metrics


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def _make_cell(point: GridPoint, metrics: Sequence[SimulationMetrics]) -> ResponseSurfaceCell:
    seed_fraction, signal_strength, focus = point
    return ResponseSurfaceCell(
        seed_fraction=seed_fraction,
        signal_strength=signal_strength,
        spatial_focus=focus,
        stats=aggregate_metrics(metrics),
    )


def _sweep_serial(
    points: Sequence[GridPoint],
    config: SurfaceConfig,
    deadline: Optional[float],
) -> list[ResponseSurfaceCell]:
    surface: list[ResponseSurfaceCell] = []
    for point in points:
        metrics = []
        for theta in config.thetas(point):
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(
                    f"build_response_surface: timeout reached after {len(surface)} "
                    f"of {len(points)} cells."
                )
            metrics.append(_run_metrics(theta, config))
        surface.append(_make_cell(point, metrics))
    return surface


def _sweep_parallel(
    points: Sequence[GridPoint],
    config: SurfaceConfig,
    max_workers: int,
    deadline: Optional[float],
) -> list[ResponseSurfaceCell]:
    pool = ThreadPoolExecutor(max_workers=max_workers)
    try:
        # Submit everything up front; cells are still assembled in grid order.
        cell_futures: list[list[Future]] = [
            [pool.submit(_run_metrics, theta, config) for theta in config.thetas(point)]
            for point in points
        ]
        surface: list[ResponseSurfaceCell] = []
        for point, futures in zip(points, cell_futures):
            try:
                # Join: every run of the cell must finish before aggregation.
                metrics = [f.result(timeout=_remaining(deadline)) for f in futures]
            except FuturesTimeoutError as exc:
                raise TimeoutError(
                    f"build_response_surface: timeout reached after {len(surface)} "
                    f"of {len(points)} cells."
                ) from exc
            surface.append(_make_cell(point, metrics))
        return surface
    finally:
        pool.shutdown(wait=True, cancel_futures=True)


def build_response_surface(
    param_grid: ParamGrid,
    config: SurfaceConfig,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> list[ResponseSurfaceCell]:
    """Sweep the parameter grid and aggregate repeated runs per cell.

    Parameters
    ----------
    param_grid : ParamGrid
        Seed fractions, signal strengths and spatial focus options.
    config : SurfaceConfig
        Provider, mobility graph, base simulation config and runs per point.
    max_workers : int or None, optional
        Run simulations on a thread pool of this size.  ``None`` or 1 runs
        serially.  The result is identical either way.
    timeout : float or None, optional
        Wall-clock bound in seconds on the whole sweep.

    Returns
    -------
    list of ResponseSurfaceCell
        One cell per grid point in nested iteration order.  An empty grid
        yields an empty list.

    Raises
    ------
    TimeoutError
        If ``timeout`` elapses before the sweep completes.
    """
    if config.runs_per_point <= 0:
        warnings.warn(
            f"build_response_surface: runs_per_point={config.runs_per_point}; "
            "every cell will aggregate zero runs and report zero means and "
            "probability_harmful=0.",
            RuntimeWarning,
            stacklevel=2,
        )

    points = list(param_grid.points())
    deadline = None if timeout is None else time.monotonic() + timeout

    if max_workers is None or max_workers <= 1:
        return _sweep_serial(points, config, deadline)
    return _sweep_parallel(points, config, max_workers, deadline)


async def build_response_surface_async(
    param_grid: ParamGrid,
    config: SurfaceConfig,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> list[ResponseSurfaceCell]:
    """Awaitable ``build_response_surface``; the sweep runs in a worker thread."""
    return await asyncio.to_thread(
        build_response_surface, param_grid, config, max_workers, timeout
    )


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def surface_to_frame(surface: Sequence[ResponseSurfaceCell]) -> pd.DataFrame:
    """Flatten a surface into one DataFrame row per cell (raw runs omitted)."""
    columns = [
        "seed_fraction", "signal_strength", "spatial_focus_key",
        "mean_global_peak_adoption", "mean_global_peak_fear",
        "probability_harmful", "n_runs",
        "peak_adoption_ci_low", "peak_adoption_ci_high",
        "peak_fear_ci_low", "peak_fear_ci_high",
    ]
    rows = [
        {
            "seed_fraction": cell.seed_fraction,
            "signal_strength": cell.signal_strength,
            "spatial_focus_key": cell.spatial_focus_key,
            "mean_global_peak_adoption": cell.stats.mean_global_peak_adoption,
            "mean_global_peak_fear": cell.stats.mean_global_peak_fear,
            "probability_harmful": cell.stats.probability_harmful,
            "n_runs": cell.stats.n_runs,
            "peak_adoption_ci_low": cell.stats.peak_adoption_ci[0],
            "peak_adoption_ci_high": cell.stats.peak_adoption_ci[1],
            "peak_fear_ci_low": cell.stats.peak_fear_ci[0],
            "peak_fear_ci_high": cell.stats.peak_fear_ci[1],
        }
        for cell in surface
    ]
    return pd.DataFrame(rows, columns=columns)
