"""
Regulatory threshold derivation.

Reads a response surface and a set of risk constraints and reports, for each
spatial-focus configuration, the largest seed fraction and the largest signal
strength observed among cells that stay within the constraints.

The two maxima are taken independently within a group, so the pair
``(max_safe_seed_fraction, max_safe_signal_strength)`` need not correspond to
a simulated cell.  ``jointly_safe_points`` lists the pairs that were actually
simulated and found safe, for callers who need to check a combined point.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from .response_surface import ResponseSurfaceCell


NO_SAFE_REGION_MESSAGE = "No parameter region satisfies risk constraints."


@dataclass(frozen=True)
class RiskConstraints:
    """Risk ceilings a safe cell must respect.

    Attributes
    ----------
    max_harm_probability : float
        Upper bound on ``probability_harmful`` (inclusive).
    max_mean_global_fear : float
        Upper bound on ``mean_global_peak_fear`` (inclusive, default 1.0).
    """
    max_harm_probability: float
    max_mean_global_fear: float = 1.0

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "RiskConstraints":
        fear = d.get("max_mean_global_fear")
        return cls(
            max_harm_probability=float(d["max_harm_probability"]),
            max_mean_global_fear=1.0 if fear is None else float(fear),
        )

    def to_dict(self) -> dict:
        return {
            "max_harm_probability": self.max_harm_probability,
            "max_mean_global_fear": self.max_mean_global_fear,
        }


@dataclass(frozen=True)
class ThresholdRecord:
    spatial_focus_key: str
    max_safe_seed_fraction: float
    max_safe_signal_strength: float
    risk_constraints: RiskConstraints

    def to_dict(self) -> dict:
        return {
            "spatial_focus_key": self.spatial_focus_key,
            "max_safe_seed_fraction": self.max_safe_seed_fraction,
            "max_safe_signal_strength": self.max_safe_signal_strength,
            "risk_constraints": self.risk_constraints.to_dict(),
        }


@dataclass(frozen=True)
class ThresholdDerivation:
    """Outcome of a derivation.

    ``safe`` is False, with ``thresholds`` None and an explanatory
    ``message``, when no cell satisfies the constraints.  This is a normal
    result for the caller to branch on, not an error.
    """
    safe: bool
    thresholds: Optional[list[ThresholdRecord]]
    message: Optional[str] = None

    def to_dict(self) -> dict:
        if not self.safe:
            return {"safe": False, "message": self.message, "thresholds": None}
        return {
            "safe": True,
            "thresholds": [t.to_dict() for t in self.thresholds or []],
        }


def is_safe(cell: ResponseSurfaceCell, risk_constraints: RiskConstraints) -> bool:
    return (
        cell.stats.probability_harmful <= risk_constraints.max_harm_probability
        and cell.stats.mean_global_peak_fear <= risk_constraints.max_mean_global_fear
    )


def _group_safe_cells(
    surface: Sequence[ResponseSurfaceCell],
    risk_constraints: RiskConstraints,
) -> dict[str, list[ResponseSurfaceCell]]:
    # dict preserves first-appearance order of each focus key
    groups: dict[str, list[ResponseSurfaceCell]] = {}
    for cell in surface:
        if is_safe(cell, risk_constraints):
            groups.setdefault(cell.spatial_focus_key, []).append(cell)
    return groups


def derive_regulatory_thresholds(
    surface: Sequence[ResponseSurfaceCell],
    risk_constraints: RiskConstraints,
) -> ThresholdDerivation:
    """Maximum safe seed fraction and signal strength per spatial focus.

    Parameters
    ----------
    surface : sequence of ResponseSurfaceCell
        Output of ``build_response_surface``.
    risk_constraints : RiskConstraints

    Returns
    -------
    ThresholdDerivation
        One ``ThresholdRecord`` per spatial-focus key with at least one safe
        cell, in order of first appearance, each echoing the constraints.
    """
    groups = _group_safe_cells(surface, risk_constraints)
    if not groups:
        return ThresholdDerivation(safe=False, thresholds=None, message=NO_SAFE_REGION_MESSAGE)

    thresholds = [
        ThresholdRecord(
            spatial_focus_key=key,
            max_safe_seed_fraction=max(c.seed_fraction for c in cells),
            max_safe_signal_strength=max(c.signal_strength for c in cells),
            risk_constraints=risk_constraints,
        )
        for key, cells in groups.items()
    ]
    return ThresholdDerivation(safe=True, thresholds=thresholds)


def jointly_safe_points(
    surface: Sequence[ResponseSurfaceCell],
    risk_constraints: RiskConstraints,
) -> dict[str, list[tuple[float, float]]]:
    """Simulated ``(seed_fraction, signal_strength)`` pairs that are safe, per focus key."""
    return {
        key: [(c.seed_fraction, c.signal_strength) for c in cells]
        for key, cells in _group_safe_cells(surface, risk_constraints).items()
    }
