"""
Density providers.

A density provider is the read-only source of the region universe and of
per-region population density.  Two backends share the same capability set:

* ``LookupDensityProvider``    precomputed table ``{t: {region_id: density}}``
  with a per-region ``base_density`` fallback.
* ``SyntheticDensityProvider`` any ``(region_id, t) -> density`` callable.

``list_regions()`` is authoritative: the simulator treats any region not in
that list as non-existent.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional, Sequence

import numpy as np
from numpy.random import Generator


RegionAttributes = dict[str, Any]
DensityFn = Callable[[str, float], float]


class DensityProvider(ABC):
    """Capability contract shared by every density backend."""

    @abstractmethod
    def get_density(self, region_id: str, t: float) -> float:
        """People per area unit in *region_id* at simulation time *t*."""

    def get_region_attributes(self, region_id: str) -> RegionAttributes:
        """Static attributes (venue mix, vulnerability, ...).  Empty by default."""
        return {}

    @abstractmethod
    def list_regions(self) -> list[str]:
        """All region ids managed by this provider, in a stable order."""


class LookupDensityProvider(DensityProvider):
    """Density backed by a preprocessed time-indexed lookup table.

    Parameters
    ----------
    region_meta : mapping
        Region id -> attribute dict.  The key order defines ``list_regions()``.
        ``base_density`` (or ``baseDensity``) is the fallback density when the
        table has no entry for a region at a given time.
    density_by_time : mapping
        Time -> {region id -> density}.
    """

    def __init__(
        self,
        region_meta: Mapping[str, Mapping[str, Any]],
        density_by_time: Optional[Mapping[float, Mapping[str, float]]] = None,
    ) -> None:
        self.region_meta = {r: dict(attrs) for r, attrs in region_meta.items()}
        self.density_by_time = {
            t: dict(slice_) for t, slice_ in (density_by_time or {}).items()
        }

    def _base_density(self, region_id: str) -> float:
        meta = self.region_meta.get(region_id)
        if meta is None:
            return 0.0
        base = meta.get("base_density", meta.get("baseDensity"))
        return 0.0 if base is None else float(base)

    def get_density(self, region_id: str, t: float) -> float:
        time_slice = self.density_by_time.get(t)
        if time_slice is None:
            return self._base_density(region_id)
        value = time_slice.get(region_id)
        if value is None:
            return self._base_density(region_id)
        return float(value)

    def get_region_attributes(self, region_id: str) -> RegionAttributes:
        return dict(self.region_meta.get(region_id, {}))

    def list_regions(self) -> list[str]:
        return list(self.region_meta)


class SyntheticDensityProvider(DensityProvider):
    """Density produced by an arbitrary generator function.

    Parameters
    ----------
    region_ids : sequence of str
        Synthetic region ids, in simulation order.
    generator_fn : callable
        ``(region_id, t) -> density``.
    attr_provider_fn : callable, optional
        ``region_id -> attributes``; defaults to empty attributes.
    """

    def __init__(
        self,
        region_ids: Sequence[str],
        generator_fn: DensityFn,
        attr_provider_fn: Optional[Callable[[str], RegionAttributes]] = None,
    ) -> None:
        self.region_ids = list(region_ids)
        self.generator_fn = generator_fn
        self.attr_provider_fn = attr_provider_fn or (lambda _region_id: {})

    def get_density(self, region_id: str, t: float) -> float:
        return float(self.generator_fn(region_id, t))

    def get_region_attributes(self, region_id: str) -> RegionAttributes:
        return self.attr_provider_fn(region_id)

    def list_regions(self) -> list[str]:
        return list(self.region_ids)


# ---------------------------------------------------------------------------
# Synthetic generators
# ---------------------------------------------------------------------------


def lognormal_density_generator(
    region_ids: Sequence[str],
    mean: float,
    sigma: float,
    rng: Generator,
) -> DensityFn:
    """Static log-normal densities, drawn once per region.

    The draw happens here, not at lookup time, so the returned function is
    deterministic and safe to share across simulation runs.

    Parameters
    ----------
    region_ids : sequence of str
    mean, sigma : float
        Parameters of the underlying normal distribution.
    rng : Generator
        Seeded numpy Generator.

    Returns
    -------
    callable
        ``(region_id, t) -> density``; unknown regions get 0.
    """
    if sigma < 0:
        raise ValueError(f"sigma must be >= 0; got {sigma}.")
    draws = rng.lognormal(mean, sigma, size=len(region_ids))
    table = {r: float(d) for r, d in zip(region_ids, draws)}

    def _density(region_id: str, t: float) -> float:
        return table.get(region_id, 0.0)

    return _density


def density_vector(
    provider: DensityProvider,
    regions: Sequence[str],
    t: float = 0,
) -> np.ndarray:
    """Sample the provider for every region at time *t*, in region order."""
    return np.array([provider.get_density(r, t) for r in regions], dtype=np.float64)
