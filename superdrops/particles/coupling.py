"""Exchange between particle-level changes and per-cell Eulerian state.

Particle processes produce per-particle increments that have to reach the
cell-level fields (vapour, heat, trace gases), and cell-level values have to
be visible again on the particles.  All three operations walk the particles
in cell order and therefore require the store to be sorted.
"""
from __future__ import annotations

import logging

import numpy as np

from ..backend import Backend
from ..errors import PreconditionError
from ..physics import thermo
from .sorting import require_sorted, sorted_view
from .store import ParticleStore

logger = logging.getLogger(__name__)


def update_th_rv(
    store: ParticleStore,
    backend: Backend,
    th: np.ndarray,
    rv: np.ndarray,
    rhod: np.ndarray,
    drv: np.ndarray,
) -> None:
    """Apply per-particle vapour changes to the cell fields ``rv`` and ``th``.

    ``drv`` holds the contribution of every active particle to its cell's
    vapour mixing ratio [kg/kg].  The cell sums are added to ``rv`` and the
    accompanying latent heating to ``th``, both in place.
    """

    require_sorted(store, "update_th_rv")
    sorted_id, sorted_ijk = sorted_view(store)
    cells, drv_cell = backend.reduce_by_key(sorted_ijk, drv[sorted_id])
    if np.any(rv[cells] < 0.0):
        raise PreconditionError("negative vapour mixing ratio before update")
    T_cell = thermo.T(th[cells], rhod[cells])
    rv[cells] += drv_cell
    if np.any(rv[cells] < 0.0):
        raise PreconditionError(
            f"negative vapour mixing ratio after update (min {float(rv[cells].min()):.3e})"
        )
    th[cells] += thermo.d_th(drv_cell, th[cells], T_cell)


def update_pstate(
    store: ParticleStore,
    backend: Backend,
    cell_state: np.ndarray,
    delta: np.ndarray,
) -> None:
    """Add the per-cell sums of particle increments ``delta`` to ``cell_state``."""

    require_sorted(store, "update_pstate")
    sorted_id, sorted_ijk = sorted_view(store)
    cells, sums = backend.reduce_by_key(sorted_ijk, delta[sorted_id])
    cell_state[cells] += sums


def update_state(store: ParticleStore, particle_state: np.ndarray, cell_value: np.ndarray) -> None:
    """Copy the value of every particle's cell onto ``particle_state``."""

    require_sorted(store, "update_state")
    sorted_id, sorted_ijk = sorted_view(store)
    particle_state[sorted_id] = cell_value[sorted_ijk]


__all__ = ["update_pstate", "update_state", "update_th_rv"]
