"""Dry-size distributions and their sampling into superdroplets.

A distribution is any callable returning ``dN/d(ln rd)`` [kg^-1], the number
of particles per unit mass of dry air per unit logarithmic dry radius,
evaluated at ``ln rd`` (``rd`` in metres).
"""
from __future__ import annotations

import math
from typing import Callable, Sequence

import numpy as np

from ..errors import PhysicsError

DryDistribution = Callable[[np.ndarray], np.ndarray]


def lognormal(mean_r: float, gstdev: float, n_tot: float) -> DryDistribution:
    """Return a single-mode lognormal ``dN/dln(rd)``.

    Parameters
    ----------
    mean_r:
        Geometric mean radius [m].
    gstdev:
        Geometric standard deviation (> 1).
    n_tot:
        Total number per kg of dry air.
    """

    if mean_r <= 0.0 or gstdev <= 1.0 or n_tot < 0.0:
        raise PhysicsError("lognormal requires mean_r > 0, gstdev > 1 and n_tot >= 0")
    log_sd = math.log(gstdev)
    norm = n_tot / (math.sqrt(2.0 * math.pi) * log_sd)

    def dN_dlnr(lnrd):
        lnrd = np.asarray(lnrd, dtype=np.float64)
        return norm * np.exp(-((lnrd - math.log(mean_r)) ** 2) / (2.0 * log_sd * log_sd))

    return dN_dlnr


def multimode(modes: Sequence[DryDistribution]) -> DryDistribution:
    """Return the sum of several distributions."""

    def dN_dlnr(lnrd):
        return sum(np.asarray(mode(lnrd), dtype=np.float64) for mode in modes)

    return dN_dlnr


def sample(
    distro: DryDistribution,
    n_cells: int,
    per_cell: int,
    rd_min: float,
    rd_max: float,
    rng: np.random.Generator,
):
    """Draw ``per_cell`` dry radii in each of ``n_cells`` cells.

    The interval ``[ln rd_min, ln rd_max)`` is split into ``per_cell`` equal
    strata and one radius is drawn uniformly in each, per cell.  Returns
    ``(rd3, n_per_kg)`` with shape ``(n_cells * per_cell,)``: the dry volume
    (radius cubed) and the multiplicity per kg of dry air, to be scaled by
    the air mass of the cell.
    """

    if rd_min <= 0.0 or rd_max <= rd_min:
        raise PhysicsError(f"invalid sampling range [{rd_min}, {rd_max})")
    ln_lo, ln_hi = math.log(rd_min), math.log(rd_max)
    dln = (ln_hi - ln_lo) / per_cell
    strata = ln_lo + dln * np.arange(per_cell)
    lnrd = strata[None, :] + dln * rng.random((n_cells, per_cell))
    lnrd = lnrd.ravel()
    n_per_kg = np.asarray(distro(lnrd), dtype=np.float64) * dln
    if np.any(n_per_kg < 0.0) or not np.all(np.isfinite(n_per_kg)):
        raise PhysicsError("dry distribution returned negative or non-finite values")
    return np.exp(3.0 * lnrd), n_per_kg


__all__ = ["DryDistribution", "lognormal", "multimode", "sample"]
