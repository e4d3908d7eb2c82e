"""
contagion_engine: Regional Adoption / Fear Cascade Simulator
============================================================

Simulates the spread of an adopted concept and an accompanying fear level
over a weighted mobility graph of regions, sweeps a parameter grid into a
response surface of multi-run statistics, and derives regulatory thresholds
from that surface.

  Cascade simulation
      Discrete-time, double-buffered update of adoption A[r] in [0, 1] and
      fear F[r] >= 0.  Deterministic given the RNG factory and seed.

  Response surface
      Cartesian sweep of seed fraction x signal strength x spatial focus,
      with repeated runs per cell (seeds 0..runs-1) and aggregated statistics.

  Regulatory thresholds
      Per spatial-focus maximum safe seed fraction and signal strength under
      harm-probability and fear ceilings.

Quick start
-----------
>>> from contagion_engine import (
...     LookupDensityProvider, SimConfig, SpatialFocus, Theta, run_cascade_simulation,
... )
>>> provider = LookupDensityProvider({"a": {"base_density": 2.0}, "b": {"base_density": 1.0}})
>>> graph = {"a": [{"to": "b", "weight": 0.5}]}
>>> cfg = SimConfig(pop_by_region={"a": 1000, "b": 500})
>>> theta = Theta(seed_fraction=0.05, signal_strength=0.5,
...               spatial_focus=SpatialFocus.kernel(["a"]), time_horizon=20, dt=1)
>>> result = run_cascade_simulation(theta, provider, graph, cfg)
>>> len(result.history)
21
"""

from .cascade import (
    run_cascade_simulation,
    CascadeResult,
    initialize_adoption,
    initialize_fear,
    compute_exposure,
    adoption_increment,
    fear_increment,
    compute_harm_signal,
)
from .config import (
    AdoptionParams,
    FearParams,
    HarmWeights,
    SimConfig,
    Theta,
    load_scenario,
    build_rng,
)
from .density import (
    DensityProvider,
    LookupDensityProvider,
    SyntheticDensityProvider,
    lognormal_density_generator,
)
from .focus import SpatialFocus, compute_spatial_focus_weights, spatial_focus_key
from .graph import (
    MobilityGraph,
    in_weight_matrix,
    generate_erdos_renyi,
    generate_barabasi_albert,
    generate_watts_strogatz,
    generate_custom,
)
from .metrics import History, SimulationMetrics, RegionPeak, compute_simulation_metrics
from .response_surface import (
    ParamGrid,
    SurfaceConfig,
    CellStats,
    ResponseSurfaceCell,
    aggregate_metrics,
    build_response_surface,
    build_response_surface_async,
    surface_to_frame,
)
from .thresholds import (
    RiskConstraints,
    ThresholdRecord,
    ThresholdDerivation,
    derive_regulatory_thresholds,
    jointly_safe_points,
)
from .policy import PolicyPlan, PolicyEvaluation, evaluate_policy_plan, scenario_from_config
from .utils import confidence_interval, spawn_generators, clamp01

__all__ = [
    # cascade
    "run_cascade_simulation", "CascadeResult", "initialize_adoption",
    "initialize_fear", "compute_exposure", "adoption_increment",
    "fear_increment", "compute_harm_signal",
    # config
    "AdoptionParams", "FearParams", "HarmWeights", "SimConfig", "Theta",
    "load_scenario", "build_rng",
    # density
    "DensityProvider", "LookupDensityProvider", "SyntheticDensityProvider",
    "lognormal_density_generator",
    # focus
    "SpatialFocus", "compute_spatial_focus_weights", "spatial_focus_key",
    # graph
    "MobilityGraph", "in_weight_matrix", "generate_erdos_renyi",
    "generate_barabasi_albert", "generate_watts_strogatz", "generate_custom",
    # metrics
    "History", "SimulationMetrics", "RegionPeak", "compute_simulation_metrics",
    # response surface
    "ParamGrid", "SurfaceConfig", "CellStats", "ResponseSurfaceCell",
    "aggregate_metrics", "build_response_surface", "build_response_surface_async",
    "surface_to_frame",
    # thresholds
    "RiskConstraints", "ThresholdRecord", "ThresholdDerivation",
    "derive_regulatory_thresholds", "jointly_safe_points",
    # policy
    "PolicyPlan", "PolicyEvaluation", "evaluate_policy_plan", "scenario_from_config",
    # utils
    "confidence_interval", "spawn_generators", "clamp01",
]
