"""
Policy plan evaluation.

Glues the sweep and the derivation together: a ``PolicyPlan`` names the
parameter grid, the shared simulation config, the number of runs per grid
point and the risk constraints; ``evaluate_policy_plan`` builds the response
surface and derives the thresholds in one call.  ``scenario_from_config``
assembles every input from a validated JSON scenario.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from .config import (
    ConfigDict,
    SimConfig,
    density_provider_from_config,
    sim_config_from_config,
)
from .density import DensityProvider
from .graph import MobilityGraph, mobility_graph_from_config
from .response_surface import (
    ParamGrid,
    ResponseSurfaceCell,
    SurfaceConfig,
    build_response_surface,
)
from .thresholds import RiskConstraints, ThresholdDerivation, derive_regulatory_thresholds


@dataclass(frozen=True)
class PolicyPlan:
    param_grid: ParamGrid
    base_sim_config: SimConfig
    runs_per_point: int
    risk_constraints: RiskConstraints


@dataclass(frozen=True)
class PolicyEvaluation:
    surface: list[ResponseSurfaceCell]
    thresholds: ThresholdDerivation

    def to_dict(self, include_raw: bool = False) -> dict:
        return {
            "surface": [cell.to_dict(include_raw=include_raw) for cell in self.surface],
            "thresholds": self.thresholds.to_dict(),
        }


@dataclass(frozen=True)
class Scenario:
    """Fully assembled inputs of one scenario file."""
    density_provider: DensityProvider
    mobility_graph: MobilityGraph
    plan: PolicyPlan


def evaluate_policy_plan(
    density_provider: DensityProvider,
    mobility_graph: MobilityGraph,
    plan: PolicyPlan,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> PolicyEvaluation:
    """Build the response surface for *plan* and derive its thresholds.

    ``max_workers`` and ``timeout`` are passed to ``build_response_surface``.
    """
    surface = build_response_surface(
        plan.param_grid,
        SurfaceConfig(
            density_provider=density_provider,
            mobility_graph=mobility_graph,
            base_sim_config=plan.base_sim_config,
            runs_per_point=plan.runs_per_point,
        ),
        max_workers=max_workers,
        timeout=timeout,
    )
    thresholds = derive_regulatory_thresholds(surface, plan.risk_constraints)
    return PolicyEvaluation(surface=surface, thresholds=thresholds)


async def evaluate_policy_plan_async(
    density_provider: DensityProvider,
    mobility_graph: MobilityGraph,
    plan: PolicyPlan,
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> PolicyEvaluation:
    return await asyncio.to_thread(
        evaluate_policy_plan, density_provider, mobility_graph, plan, max_workers, timeout
    )


def scenario_from_config(cfg: ConfigDict) -> Scenario:
    """Assemble provider, mobility graph and plan from a validated scenario.

    The mobility generator inherits the scenario ``seed`` unless its own
    ``seed`` is given.
    """
    density_provider = density_provider_from_config(cfg)

    mobility_cfg = dict(cfg["mobility"])
    if "seed" not in mobility_cfg:
        mobility_cfg["seed"] = int(cfg["seed"])
    mobility_graph = mobility_graph_from_config(mobility_cfg, density_provider.list_regions())

    plan = PolicyPlan(
        param_grid=ParamGrid.from_dict(cfg["grid"]),
        base_sim_config=sim_config_from_config(cfg),
        runs_per_point=int(cfg["runs_per_point"]),
        risk_constraints=RiskConstraints.from_dict(cfg["risk"]),
    )
    return Scenario(density_provider=density_provider, mobility_graph=mobility_graph, plan=plan)
