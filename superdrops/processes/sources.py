"""Creation of superdroplets, at init and by the aerosol source."""
from __future__ import annotations

import logging
import math
from typing import Callable, Mapping

import numpy as np

from ..physics import distributions, thermo
from ..state import EngineState
from .condensation import equilibrium_rw2

logger = logging.getLogger(__name__)


def populate(
    state: EngineState,
    dry_distros: Mapping[float, Callable],
    cells: np.ndarray,
    per_cell: int,
    RH_max: float,
) -> int:
    """Add ``per_cell`` superdroplets per kappa to every cell in ``cells``.

    Dry radii are sampled from each distribution, positions uniformly inside
    the cell, and wet radii start at equilibrium with the cell humidity.
    Returns the number of particles added (zero-multiplicity draws dropped).
    """

    if cells.size == 0 or per_cell == 0:
        return 0
    grid = state.grid
    opts = state.opts
    i, j, k = np.unravel_index(cells, grid.shape)
    T_cell = thermo.T(state.th[cells], state.rhod[cells])
    RH_cell = thermo.RH(state.rhod[cells], state.rv[cells], T_cell)
    added = 0
    for kappa, distro in dry_distros.items():
        rd3, n_per_kg = distributions.sample(distro, cells.size, per_cell, opts.rd_min, opts.rd_max, state.rng)
        air_mass = np.repeat(state.rhod[cells] * grid.dv, per_cell)
        n = np.round(n_per_kg * air_mass).astype(np.int64)
        keep = n > 0
        if not keep.any():
            continue
        count = rd3.size
        x = grid.x0 + (np.repeat(i, per_cell) + state.rng.random(count)) * grid.dx
        y = (np.repeat(j, per_cell) + state.rng.random(count)) * grid.dy
        z = (np.repeat(k, per_cell) + state.rng.random(count)) * grid.dz
        new = state.store.append(
            n=n[keep],
            rd3=rd3[keep],
            kpa=np.full(int(keep.sum()), float(kappa)),
            x=x[keep],
            y=y[keep],
            z=z[keep],
            T=np.repeat(T_cell, per_cell)[keep],
            RH=np.repeat(RH_cell, per_cell)[keep],
            rhod=np.repeat(state.rhod[cells], per_cell)[keep],
            i=np.repeat(i, per_cell)[keep],
            j=np.repeat(j, per_cell)[keep],
            k=np.repeat(k, per_cell)[keep],
            ijk=np.repeat(cells, per_cell)[keep],
        )
        state.store["rw2"][new] = equilibrium_rw2(state, RH_max, new)
        added += new.stop - new.start
    return added


def source_cells(state: EngineState) -> np.ndarray:
    """Flattened indices of the cells whose bottom lies below ``src_z1``."""

    grid = state.grid
    n_layers = max(1, min(grid.nz, math.ceil(state.opts.src_z1 / grid.dz)))
    i, j, k = np.meshgrid(np.arange(grid.nx), np.arange(grid.ny), np.arange(n_layers), indexing="ij")
    return np.sort(grid.flatten(i, j, k).ravel())


def inject(state: EngineState, RH_max: float) -> int:
    """Add the configured number of superdroplets per source cell."""

    added = populate(state, state.dry_distros, source_cells(state), state.opts.src_sd_conc, RH_max)
    logger.debug("source: injected %d superdroplets", added)
    return added


__all__ = ["inject", "populate", "source_cells"]
