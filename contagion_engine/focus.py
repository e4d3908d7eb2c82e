"""
Spatial focus policies for initial seeding.

A spatial focus decides how the seeded share of the population is spread
across regions before the first step:

    uniform   every region gets 1 / n
    explicit  caller-supplied weights, normalised by their total
    kernel    population share inside a set of center regions, plus a small
              residual mass (0.001 * population share) everywhere else

Anything else falls back to uniform.  Kernel weights deliberately do not sum
to one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence


FOCUS_UNIFORM = "uniform"
FOCUS_EXPLICIT = "explicit"
FOCUS_KERNEL = "kernel"

KERNEL_RESIDUAL = 0.001


@dataclass(frozen=True)
class SpatialFocus:
    """Tagged spatial-focus variant.

    Attributes
    ----------
    type : str
        ``"uniform"``, ``"explicit"``, ``"kernel"`` or any other tag (treated
        as uniform when seeding).
    weights : mapping or None
        Region id -> raw weight, used by ``explicit``.
    center_ids : tuple of str
        Center regions, used by ``kernel``.
    """
    type: str = FOCUS_UNIFORM
    weights: Optional[Mapping[str, float]] = None
    center_ids: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def uniform(cls) -> "SpatialFocus":
        return cls(FOCUS_UNIFORM)

    @classmethod
    def explicit(cls, weights: Mapping[str, float]) -> "SpatialFocus":
        return cls(FOCUS_EXPLICIT, weights=dict(weights))

    @classmethod
    def kernel(cls, center_ids: Sequence[str]) -> "SpatialFocus":
        return cls(FOCUS_KERNEL, center_ids=tuple(center_ids))

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> "SpatialFocus":
        """Build from a JSON-style dict (``type``, ``weights``, ``center_ids``).

        ``centerIds`` is accepted as an alias of ``center_ids``.  ``None``
        yields the uniform focus.
        """
        if d is None:
            return cls.uniform()
        centers = d.get("center_ids", d.get("centerIds")) or ()
        weights = d.get("weights")
        return cls(
            str(d.get("type", FOCUS_UNIFORM)),
            weights=dict(weights) if weights is not None else None,
            center_ids=tuple(centers),
        )

    @property
    def key(self) -> str:
        return spatial_focus_key(self)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"type": self.type}
        if self.weights is not None:
            out["weights"] = dict(self.weights)
        if self.center_ids:
            out["center_ids"] = list(self.center_ids)
        return out


def spatial_focus_key(spatial_focus: Optional[SpatialFocus]) -> str:
    """Canonical grouping key for a spatial focus.

    Kernel center ids are sorted before joining so that the same set of
    centers always maps to the same key.
    """
    if spatial_focus is None:
        return FOCUS_UNIFORM
    if spatial_focus.type == FOCUS_KERNEL:
        return f"kernel:{','.join(sorted(spatial_focus.center_ids))}"
    if spatial_focus.type == FOCUS_EXPLICIT:
        return FOCUS_EXPLICIT
    return spatial_focus.type or "other"


def _uniform(regions: Sequence[str]) -> dict[str, float]:
    n = len(regions)
    return {r: 1.0 / n for r in regions}


def compute_spatial_focus_weights(
    regions: Sequence[str],
    spatial_focus: Optional[SpatialFocus],
    pop_by_region: Mapping[str, float],
) -> dict[str, float]:
    """Per-region seeding weight for a spatial focus.

    Parameters
    ----------
    regions : sequence of str
        Region ids in simulation order.
    spatial_focus : SpatialFocus or None
        ``None`` is treated as uniform.
    pop_by_region : mapping
        Region id -> population; missing regions count as 0.

    Returns
    -------
    dict
        Region id -> weight, one entry per region.

    Notes
    -----
    ``explicit`` divides by the total of *every* value in the supplied map
    (regions outside ``regions`` included), or by 1 if that total is 0.
    ``kernel`` gives center regions their share of the total center
    population (0 when the centers are unpopulated) and every other region
    ``0.001 * population / total_population``.
    """
    if spatial_focus is None or spatial_focus.type == FOCUS_UNIFORM:
        return _uniform(regions)

    if spatial_focus.type == FOCUS_EXPLICIT and spatial_focus.weights is not None:
        raw = spatial_focus.weights
        total = sum(raw.values()) or 1.0
        return {r: raw.get(r, 0.0) / total for r in regions}

    if spatial_focus.type == FOCUS_KERNEL and spatial_focus.center_ids:
        centers = set(spatial_focus.center_ids)
        center_pop = sum(pop_by_region.get(r, 0.0) for r in regions if r in centers)
        total_pop = sum(pop_by_region.get(r, 0.0) for r in regions) or 1.0

        weights: dict[str, float] = {}
        for r in regions:
            pop = pop_by_region.get(r, 0.0)
            if r in centers:
                weights[r] = pop / center_pop if center_pop > 0 else 0.0
            else:
                weights[r] = KERNEL_RESIDUAL * (pop / total_pop)
        return weights

    return _uniform(regions)
