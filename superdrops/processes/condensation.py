"""Condensational growth towards the kappa-Köhler equilibrium.

Every sub-step moves each particle to its equilibrium wet radius at the
current ambient humidity (capped below saturation) and hands the resulting
vapour change to the cell fields, so that water only moves between phases.
"""
from __future__ import annotations

import logging
import warnings

import numpy as np

from .. import constants
from ..particles import coupling
from ..state import EngineState
from ..warnings import PhysicsWarning
from .housekeeping import refresh_ambient

logger = logging.getLogger(__name__)


def equilibrium_rw2(state: EngineState, RH_max: float, sel: slice | np.ndarray = slice(None)) -> np.ndarray:
    """Return equilibrium ``rw2`` for the selected particles at ``min(RH, RH_max)``."""

    store = state.store
    vap_ratio = np.minimum(store["RH"][sel], RH_max)
    sol = state.backend.rw3_eq(store["rd3"][sel], store["kpa"][sel], vap_ratio, store["T"][sel])
    return sol.rw3 ** (2.0 / 3.0)


def substep(state: EngineState, RH_max: float) -> float:
    """Run one condensation sub-step; return the domain liquid-volume change [m^3]."""

    refresh_ambient(state)
    store = state.store
    rw3_old = store["rw2"] ** 1.5
    supersat = store["RH"] > 1.0
    if supersat.any():
        warnings.warn(
            f"{int(supersat.sum())} particles in supersaturated air (max RH {float(store['RH'].max()):.4f}); "
            f"equilibrium growth is capped at RH_max={RH_max}",
            PhysicsWarning,
            stacklevel=2,
        )
    vap_ratio = np.minimum(store["RH"], RH_max)
    sol = state.backend.rw3_eq(store["rd3"], store["kpa"], vap_ratio, store["T"])
    drw3 = sol.rw3 - rw3_old
    drv = -constants.FOUR_THIRDS_PI * constants.RHO_W * store["n"] * drw3 / (store["rhod"] * state.grid.dv)
    coupling.update_th_rv(store, state.backend, state.th, state.rv, state.rhod, drv)
    store["rw2"][:] = sol.rw3 ** (2.0 / 3.0)
    dvol = float(constants.FOUR_THIRDS_PI * np.sum(store["n"] * drw3))
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "condensation: n_part=%d dvol=%.3e max_width=%.3e",
            store.n_part,
            dvol,
            float(sol.width.max()) if sol.width.size else 0.0,
        )
    return dvol


__all__ = ["equilibrium_rw2", "substep"]
