"""Per-cell statistical moments of the particle size spectrum.

A moment is computed as a map followed by a segmented reduction over the
particles in cell order: every particle contributes ``n / dv * r**power``
when its radius lies in ``[r_min, r_max)`` and zero otherwise, and the
contributions are summed over each run of equal cell index.  Cells holding
particles all outside the range still get an entry (with value zero).

Sorted order is a precondition and is asserted, never re-established here.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..backend import Backend
from .sorting import require_sorted, sorted_view
from .store import ParticleStore


@dataclass
class MomentResult:
    """Output of a moment reduction.

    Attributes
    ----------
    count : int
        Number of occupied cells.
    cells : numpy.ndarray
        Flattened index of every occupied cell, ascending.
    values : numpy.ndarray
        Moment value per occupied cell [m^power m^-3].
    """

    count: int
    cells: np.ndarray
    values: np.ndarray

    def to_grid(self, n_cell: int) -> np.ndarray:
        """Scatter into a dense per-cell array; empty cells are zero."""

        out = np.zeros(n_cell, dtype=np.float64)
        out[self.cells] = self.values
        return out


def moment(
    store: ParticleStore,
    backend: Backend,
    radius: np.ndarray,
    dv: float,
    r_min: float,
    r_max: float,
    power: float,
) -> MomentResult:
    """Return the per-cell moment of ``radius`` over ``[r_min, r_max)``.

    ``radius`` holds one value per active particle in storage order.
    """

    require_sorted(store, "moment")
    sorted_id, sorted_ijk = sorted_view(store)
    r = radius[sorted_id]
    n = store["n"][sorted_id]
    in_range = (r >= r_min) & (r < r_max)
    weights = np.where(in_range, n / dv * r ** power, 0.0)
    cells, values = backend.reduce_by_key(sorted_ijk, weights)
    return MomentResult(count=int(cells.size), cells=cells, values=values)


def wet_moment(store: ParticleStore, backend: Backend, dv: float, r_min: float, r_max: float, power: float) -> MomentResult:
    return moment(store, backend, np.sqrt(store["rw2"]), dv, r_min, r_max, power)


def dry_moment(store: ParticleStore, backend: Backend, dv: float, r_min: float, r_max: float, power: float) -> MomentResult:
    return moment(store, backend, np.cbrt(store["rd3"]), dv, r_min, r_max, power)


def attribute_moment(
    store: ParticleStore,
    backend: Backend,
    values: np.ndarray,
    dv: float,
    r_min: float,
    r_max: float,
) -> MomentResult:
    """Return the per-cell density of an extensive attribute over a wet-radius range.

    Every particle with wet radius in ``[r_min, r_max)`` contributes
    ``n / dv * values``.
    """

    require_sorted(store, "attribute_moment")
    sorted_id, sorted_ijk = sorted_view(store)
    r = np.sqrt(store["rw2"][sorted_id])
    in_range = (r >= r_min) & (r < r_max)
    weights = np.where(in_range, store["n"][sorted_id] / dv * values[sorted_id], 0.0)
    cells, sums = backend.reduce_by_key(sorted_ijk, weights)
    return MomentResult(count=int(cells.size), cells=cells, values=sums)


def sd_conc(store: ParticleStore, backend: Backend) -> MomentResult:
    """Return the number of superdroplets in every occupied cell."""

    require_sorted(store, "sd_conc")
    _, sorted_ijk = sorted_view(store)
    cells, values = backend.reduce_by_key(sorted_ijk, np.ones(sorted_ijk.size))
    return MomentResult(count=int(cells.size), cells=cells, values=values)


__all__ = ["MomentResult", "attribute_moment", "dry_moment", "moment", "sd_conc", "wet_moment"]
