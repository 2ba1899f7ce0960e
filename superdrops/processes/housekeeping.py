"""Per-step bookkeeping shared by all particle processes."""
from __future__ import annotations

import logging

import numpy as np

from ..particles import coupling, sorting
from ..physics import terminal_velocity, thermo
from ..state import EngineState

logger = logging.getLogger(__name__)


def update_cells(state: EngineState) -> None:
    """Recompute cell indices from positions; clears sorted order."""

    store = state.store
    i, j, k, ijk = state.grid.cell_indices(store["x"], store["y"], store["z"])
    store["i"][:] = i
    store["j"][:] = j
    store["k"][:] = k
    store["ijk"][:] = ijk
    store.invalidate_order()


def ensure_sorted(state: EngineState) -> None:
    if not state.store.sorted:
        sorting.sort(state.store, state.backend)


def refresh_ambient(state: EngineState) -> None:
    """Broadcast cell temperature, pressure, RH and air density onto particles."""

    ensure_sorted(state)
    store = state.store
    T_cell = thermo.T(state.th, state.rhod)
    coupling.update_state(store, store["T"], T_cell)
    coupling.update_state(store, store["p"], thermo.p(state.rhod, state.rv, T_cell))
    coupling.update_state(store, store["RH"], thermo.RH(state.rhod, state.rv, T_cell))
    coupling.update_state(store, store["rhod"], state.rhod)


def relocate(state: EngineState) -> None:
    """Re-derive cell indices after particles moved and refresh their ambient values."""

    update_cells(state)
    refresh_ambient(state)


def invalidate_vt(state: EngineState, mask: np.ndarray | None = None) -> None:
    vt = state.store["vt"]
    if mask is None:
        vt[:] = np.nan
    else:
        vt[mask] = np.nan


def update_vt(state: EngineState) -> int:
    """Recompute terminal velocities flagged invalid (NaN); return how many."""

    store = state.store
    vt = store["vt"]
    stale = np.flatnonzero(np.isnan(vt))
    if stale.size:
        r = np.sqrt(store["rw2"][stale])
        vt[stale] = terminal_velocity.vt(r, store["rhod"][stale], state.opts.terminal_velocity)
    return int(stale.size)


__all__ = ["ensure_sorted", "invalidate_vt", "refresh_ambient", "relocate", "update_cells", "update_vt"]
