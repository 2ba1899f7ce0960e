"""Collisional growth with the super-droplet method of Shima et al. (2009).

Within every cell the particles are put in random order and consecutive
ones form ``floor(c/2)`` candidate pairs out of ``c(c-1)/2`` possible ones.
Each pair collides ``gamma`` times with probability scaled accordingly;
the particle with the smaller multiplicity absorbs ``gamma`` droplets of
the other.  Extensive attributes (wet and dry volume, solute-weighted
kappa, chemistry masses) are conserved by every merge.
"""
from __future__ import annotations

import logging

import numpy as np

from .. import constants
from ..errors import PreconditionError
from ..particles import sorting
from ..particles.store import CHEM_ATTRS
from ..state import EngineState

logger = logging.getLogger(__name__)

GOLOVIN_B = 1.5e3  # s^-1


def kernel_geometric(r_a, r_b, vt_a, vt_b, efficiency: float = 1.0):
    """Gravitational collection kernel ``E π (r_a + r_b)^2 |vt_a - vt_b|`` [m^3/s]."""

    return efficiency * np.pi * (r_a + r_b) ** 2 * np.abs(vt_a - vt_b)


def kernel_golovin(r_a, r_b, vt_a=None, vt_b=None):
    """Golovin kernel ``b (V_a + V_b)`` [m^3/s]."""

    return GOLOVIN_B * constants.FOUR_THIRDS_PI * (r_a ** 3 + r_b ** 3)


KERNELS = {
    "geometric": kernel_geometric,
    "golovin": kernel_golovin,
}


def candidate_pairs(sorted_id: np.ndarray, sorted_ijk: np.ndarray):
    """Return ``(a, b, cell_count)`` for consecutive pairs inside each cell."""

    starts, counts = sorting.cell_runs(sorted_ijk)
    if starts.size == 0:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty, empty
    run = np.repeat(np.arange(starts.size), counts)
    pos = np.arange(sorted_ijk.size) - starts[run]
    cnt = counts[run]
    first = np.flatnonzero((pos % 2 == 0) & (pos + 1 < cnt))
    return sorted_id[first], sorted_id[first + 1], cnt[first]


def collide(state: EngineState, dt: float) -> int:
    """Run one coalescence sub-step of length ``dt``; return the number of merging pairs."""

    store = state.store
    store.compact()
    if store.n_part < 2:
        return 0
    sorting.shuffle(store, state.backend, state.rng)
    a, b, cnt = candidate_pairs(*sorting.sorted_view(store))
    if a.size == 0:
        return 0

    n = store["n"]
    rw2 = store["rw2"]
    vt = store["vt"]
    if state.opts.kernel == "geometric" and (np.isnan(vt[a]).any() or np.isnan(vt[b]).any()):
        raise PreconditionError("geometric kernel requires valid terminal velocities")
    kernel = KERNELS[state.opts.kernel]
    K = kernel(np.sqrt(rw2[a]), np.sqrt(rw2[b]), vt[a], vt[b])
    scale = cnt * (cnt - 1) / 2.0 / (cnt // 2)
    prob = scale * K * np.maximum(n[a], n[b]) * dt / state.grid.dv
    gamma = np.floor(prob) + (state.rng.random(a.size) < prob - np.floor(prob))

    # j: larger multiplicity, i: smaller
    swap = n[a] < n[b]
    j = np.where(swap, b, a)
    i = np.where(swap, a, b)
    g = np.minimum(gamma.astype(np.int64), n[j] // n[i])
    act = g > 0
    if not act.any():
        return 0
    i, j, g = i[act], j[act], g[act]

    rd3 = store["rd3"]
    kpa = store["kpa"]
    rw3_i = rw2[i] ** 1.5
    rw3_j = rw2[j] ** 1.5
    rd3_new = rd3[i] + g * rd3[j]
    kpa_new = (kpa[i] * rd3[i] + g * kpa[j] * rd3[j]) / rd3_new
    rw2_new = (rw3_i + g * rw3_j) ** (2.0 / 3.0)
    chem_new = {
        name: store[name][i] + g * store[name][j]
        for name in CHEM_ATTRS
    }

    n_i = n[i]
    n_j_left = n[j] - g * n_i
    split = n_j_left == 0
    half = n_i // 2

    n[j] = np.where(split, half, n_j_left)
    n[i] = np.where(split, n_i - half, n_i)
    rd3[i] = rd3_new
    kpa[i] = kpa_new
    rw2[i] = rw2_new
    for name, value in chem_new.items():
        store[name][i] = value
    js = j[split]
    rd3[js] = rd3_new[split]
    kpa[js] = kpa_new[split]
    rw2[js] = rw2_new[split]
    for name, value in chem_new.items():
        store[name][js] = value[split]

    vt[i] = np.nan
    vt[js] = np.nan
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("coalescence: pairs=%d merging=%d split=%d", a.size, i.size, int(split.sum()))
    return int(i.size)


__all__ = ["KERNELS", "candidate_pairs", "collide", "kernel_geometric", "kernel_golovin"]
