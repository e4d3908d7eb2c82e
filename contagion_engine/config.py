"""
Configuration for the contagion engine.

Holds the typed parameter records shared by every simulation run
(``AdoptionParams``, ``FearParams``, ``HarmWeights``, ``SimConfig``), the
per-run parameter vector ``Theta``, and the JSON scenario loader used by the
runner.  Every record enumerates its options with their defaults and is
validated once, at construction.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from numpy.random import Generator, default_rng

from .density import (
    DensityProvider,
    LookupDensityProvider,
    SyntheticDensityProvider,
    lognormal_density_generator,
)
from .focus import SpatialFocus
from .utils import spawn_generators


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

ConfigDict = dict[str, Any]
RngFactory = Callable[[int], Generator]


# ---------------------------------------------------------------------------
# Schema constants
# ---------------------------------------------------------------------------

DENSITY_TYPES = {"lookup", "synthetic"}
MOBILITY_TYPES = {"erdos_renyi", "barabasi_albert", "watts_strogatz", "custom"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_finite(owner: str, **values: float) -> None:
    for name, value in values.items():
        if not math.isfinite(value):
            raise ValueError(f"{owner}.{name} must be finite; got {value!r}.")


def _require_non_negative(owner: str, **values: float) -> None:
    for name, value in values.items():
        if value < 0:
            raise ValueError(f"{owner}.{name} must be >= 0; got {value!r}.")


def _from_mapping(cls, d: Optional[Mapping[str, Any]]):
    """Instantiate a parameter dataclass from a dict, rejecting unknown keys."""
    if d is None:
        return cls()
    known = {f.name for f in fields(cls)}
    unknown = set(d) - known
    if unknown:
        raise ValueError(
            f"{cls.__name__} got unknown parameter(s): {sorted(unknown)}. "
            f"Known parameters: {sorted(known)}"
        )
    return cls(**d)


# ---------------------------------------------------------------------------
# Parameter records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdoptionParams:
    """Exposure and adoption-growth parameters.

    Attributes
    ----------
    local_weight : float
        Weight of within-region exposure.
    imported_weight : float
        Weight of mobility-imported exposure.
    base_contact : float
        Contact rate at zero density.
    density_exponent : float
        Contact rate scales as ``(density + 1) ** density_exponent``.
    exposure_scale : float
        Multiplier turning exposure into adoption pressure.
    fear_sensitivity : float
        Fear damping: growth is divided by ``1 + fear_sensitivity * F``.
    max_rate : float
        Upper bound on the per-step adoption increment.
    """
    local_weight: float = 1.0
    imported_weight: float = 1.0
    base_contact: float = 0.01
    density_exponent: float = 0.5
    exposure_scale: float = 1.0
    fear_sensitivity: float = 1.0
    max_rate: float = 0.2

    def __post_init__(self) -> None:
        _require_finite("adoption_params", **self.to_dict())
        _require_non_negative(
            "adoption_params",
            base_contact=self.base_contact,
            fear_sensitivity=self.fear_sensitivity,
            max_rate=self.max_rate,
        )

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "AdoptionParams":
        return _from_mapping(cls, d)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class FearParams:
    """Fear dynamics and harmful-cascade detection parameters.

    The fear driver is ``k_exposure * E + k_growth * max(0, dA) + k_harm * H``,
    multiplied by ``spike_gain`` when ``non_linear_spike`` is on and the driver
    exceeds ``spike_threshold``; fear then decays at rate ``decay``.

    A harmful cascade occurs when the population share with adoption
    ``>= material_adoption`` and fear ``>= critical_fear`` reaches
    ``critical_pop_share`` at any snapshot.
    """
    k_exposure: float = 0.1
    k_growth: float = 0.5
    k_harm: float = 1.0
    decay: float = 0.05
    non_linear_spike: bool = True
    spike_threshold: float = 0.2
    spike_gain: float = 2.0
    critical_fear: float = 0.7
    material_adoption: float = 0.3
    critical_pop_share: float = 0.1

    def __post_init__(self) -> None:
        numeric = {k: v for k, v in self.to_dict().items() if k != "non_linear_spike"}
        _require_finite("fear_params", **numeric)
        _require_non_negative(
            "fear_params",
            decay=self.decay,
            critical_fear=self.critical_fear,
            material_adoption=self.material_adoption,
            critical_pop_share=self.critical_pop_share,
        )

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "FearParams":
        return _from_mapping(cls, d)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class HarmWeights:
    """Weights of the per-region harm signal.  All zero unless configured."""
    adoption: float = 0.0
    fear: float = 0.0
    exposure: float = 0.0

    def __post_init__(self) -> None:
        _require_finite("harm_weights", **self.to_dict())

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "HarmWeights":
        return _from_mapping(cls, d)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class SimConfig:
    """Non-theta simulation inputs, shared read-only across runs.

    Attributes
    ----------
    pop_by_region : mapping
        Region id -> population (non-negative).  Regions missing from the
        mapping count as population 0.
    adoption_params, fear_params, harm_weights
        Dynamics parameters; defaults apply when omitted.
    initial_fear_by_region : mapping
        Region id -> starting fear; missing regions start at 0.
    rng_factory : callable
        ``seed -> numpy Generator``.  Each run draws its initial jitter from
        ``rng_factory(theta.random_seed)``.
    time_horizon, dt : float
        Default horizon and step length used when a sweep builds thetas.
    """
    pop_by_region: Mapping[str, float]
    adoption_params: AdoptionParams = field(default_factory=AdoptionParams)
    fear_params: FearParams = field(default_factory=FearParams)
    harm_weights: HarmWeights = field(default_factory=HarmWeights)
    initial_fear_by_region: Mapping[str, float] = field(default_factory=dict)
    rng_factory: RngFactory = default_rng
    time_horizon: float = 50.0
    dt: float = 1.0

    def __post_init__(self) -> None:
        negative = {r: p for r, p in self.pop_by_region.items() if p < 0}
        if negative:
            raise ValueError(f"pop_by_region has negative population(s): {negative}")
        _validate_horizon("sim_config", self.time_horizon, self.dt)


def _validate_horizon(owner: str, time_horizon: float, dt: float) -> None:
    _require_finite(owner, time_horizon=time_horizon, dt=dt)
    if dt <= 0:
        raise ValueError(f"{owner}.dt must be > 0; got {dt}.")
    if time_horizon < 0:
        raise ValueError(f"{owner}.time_horizon must be >= 0; got {time_horizon}.")


# ---------------------------------------------------------------------------
# Theta
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Theta:
    """Parameter vector driving exactly one simulation run.

    ``spatial_focus`` may be given as a ``SpatialFocus``, a JSON-style dict or
    ``None`` (uniform); it is normalised to a ``SpatialFocus`` on construction.
    """
    seed_fraction: float
    signal_strength: float
    spatial_focus: Union[SpatialFocus, Mapping[str, Any], None] = None
    time_horizon: float = 50.0
    dt: float = 1.0
    random_seed: int = 0

    def __post_init__(self) -> None:
        _require_finite(
            "theta",
            seed_fraction=self.seed_fraction,
            signal_strength=self.signal_strength,
        )
        _validate_horizon("theta", self.time_horizon, self.dt)
        if not isinstance(self.spatial_focus, SpatialFocus):
            object.__setattr__(
                self, "spatial_focus", SpatialFocus.from_dict(self.spatial_focus)
            )
        object.__setattr__(self, "random_seed", int(self.random_seed or 0))

    @property
    def n_steps(self) -> int:
        """Number of updates T; the run records T + 1 snapshots."""
        return int(math.floor(self.time_horizon / self.dt))

    def to_dict(self) -> dict:
        return {
            "seed_fraction": self.seed_fraction,
            "signal_strength": self.signal_strength,
            "spatial_focus": self.spatial_focus.to_dict(),
            "time_horizon": self.time_horizon,
            "dt": self.dt,
            "random_seed": self.random_seed,
        }


# ---------------------------------------------------------------------------
# Scenario loader
# ---------------------------------------------------------------------------


def load_scenario(path: str | Path) -> ConfigDict:
    """Load and validate a JSON scenario file.

    Parameters
    ----------
    path : str or Path
        Path to the JSON scenario file.

    Returns
    -------
    ConfigDict
        Validated scenario dictionary.

    Raises
    ------
    ValueError
        If required fields are missing or values are invalid.
    FileNotFoundError
        If the scenario file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")

    with path.open("r") as fh:
        cfg: ConfigDict = json.load(fh)

    _validate_scenario(cfg)
    return cfg


def _validate_scenario(cfg: ConfigDict) -> None:
    """Validate top-level scenario fields.

    Raises
    ------
    ValueError
        On any validation failure.
    """
    required_top = {"seed", "regions", "mobility", "grid", "runs_per_point", "risk"}
    missing = required_top - cfg.keys()
    if missing:
        raise ValueError(f"Scenario missing required fields: {missing}")

    regions = cfg["regions"]
    if not isinstance(regions, dict):
        raise ValueError("regions must be an object keyed by region id")
    for region_id, meta in regions.items():
        if "population" not in meta:
            raise ValueError(f"regions.{region_id}.population is required")

    density_cfg = cfg.get("density", {"type": "lookup"})
    if density_cfg.get("type") not in DENSITY_TYPES:
        raise ValueError(
            f"density.type must be one of {DENSITY_TYPES}, got {density_cfg.get('type')!r}"
        )

    mobility_cfg = cfg["mobility"]
    if "type" not in mobility_cfg:
        raise ValueError("mobility.type is required")
    if mobility_cfg["type"] not in MOBILITY_TYPES:
        raise ValueError(
            f"mobility.type must be one of {MOBILITY_TYPES}, got {mobility_cfg['type']!r}"
        )

    # Type-specific required parameters
    _MOBILITY_REQUIRED_PARAMS: dict[str, list[str]] = {
        "erdos_renyi":      ["p"],
        "barabasi_albert":  ["m"],
        "watts_strogatz":   ["k", "p"],
        "custom":           ["edges"],
    }
    mtype = mobility_cfg["type"]
    missing_params = [p for p in _MOBILITY_REQUIRED_PARAMS[mtype] if p not in mobility_cfg]
    if missing_params:
        raise ValueError(
            f"mobility config for type {mtype!r} is missing required "
            f"parameter(s): {missing_params}"
        )

    grid = cfg["grid"]
    for key in ("seed_fractions", "signal_strengths"):
        if key not in grid:
            raise ValueError(f"grid.{key} is required")

    if "max_harm_probability" not in cfg["risk"]:
        raise ValueError("risk.max_harm_probability is required")

    if int(cfg["runs_per_point"]) < 0:
        raise ValueError(f"runs_per_point must be >= 0, got {cfg['runs_per_point']!r}")


def build_rng(seed: int) -> Generator:
    """Build a seeded numpy Generator."""
    return default_rng(int(seed))


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def density_provider_from_config(cfg: ConfigDict) -> DensityProvider:
    """Build the density provider described by a validated scenario.

    ``lookup`` uses the region metadata plus the optional ``density.by_time``
    table (JSON object keys are parsed back to numbers).  ``synthetic`` draws
    one static log-normal density per region from a stream derived from the
    scenario seed.
    """
    regions: dict[str, dict] = cfg["regions"]
    density_cfg = cfg.get("density", {"type": "lookup"})

    if density_cfg["type"] == "lookup":
        by_time = {
            float(t): slice_ for t, slice_ in density_cfg.get("by_time", {}).items()
        }
        return LookupDensityProvider(regions, by_time)

    region_ids = list(regions)
    # A SeedSequence child, so densities never share a stream with the
    # mobility generator seeded by the same integer.
    rng = spawn_generators(int(cfg["seed"]), 1)[0]
    generator = lognormal_density_generator(
        region_ids,
        float(density_cfg.get("mean", 0.0)),
        float(density_cfg.get("sigma", 1.0)),
        rng,
    )
    return SyntheticDensityProvider(
        region_ids,
        generator,
        attr_provider_fn=lambda region_id: dict(regions.get(region_id, {})),
    )


def sim_config_from_config(cfg: ConfigDict) -> SimConfig:
    """Build the shared ``SimConfig`` from a validated scenario."""
    sim_cfg = cfg.get("simulation", {})
    return SimConfig(
        pop_by_region={r: float(meta["population"]) for r, meta in cfg["regions"].items()},
        adoption_params=AdoptionParams.from_dict(sim_cfg.get("adoption_params")),
        fear_params=FearParams.from_dict(sim_cfg.get("fear_params")),
        harm_weights=HarmWeights.from_dict(sim_cfg.get("harm_weights")),
        initial_fear_by_region=dict(sim_cfg.get("initial_fear_by_region", {})),
        time_horizon=float(sim_cfg.get("time_horizon", 50.0)),
        dt=float(sim_cfg.get("dt", 1.0)),
    )
