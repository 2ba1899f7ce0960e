"""Numba-accelerated kernels for the multi-threaded host backend.

This module provides JIT-compiled counterparts of the NumPy routines that
sit in the per-particle inner loops:

1. **Equilibrium solve** (`rw3_eq_numba`): one bracketing root solve per
   particle, parallelised with `prange`.  The iteration mirrors
   :func:`superdrops.physics.kappa_koehler.solve_rw3_eq` step for step.

2. **Segmented reduction** (`reduce_by_key_numba`): sums over contiguous
   runs of equal keys in a single pass.

Usage
-----
These functions are not meant to be called directly.  The
:class:`superdrops.backend.Backend` selects them when constructed with
``name="numba"`` and falls back to NumPy when a kernel fails.

Notes
-----
* All kernels use ``cache=True`` to persist compiled bytecode across runs.
* ``parallel=True`` enables automatic threading via ``prange``; the number
  of threads respects ``NUMBA_NUM_THREADS`` (default: all cores).
"""
from __future__ import annotations

import numpy as np
from numba import njit, prange

from .. import constants

__all__ = [
    "rw3_eq_numba",
    "reduce_by_key_numba",
]

_KELVIN_A_COEFF = 2.0 * constants.SIGMA_W / (constants.R_V * constants.RHO_W)


@njit(cache=True)
def _residual(rw3, rd3, kappa, vap_ratio, A):
    aw = (rw3 - rd3) / (rw3 - rd3 * (1.0 - kappa))
    return vap_ratio - aw * np.exp(A / rw3 ** (1.0 / 3.0))


@njit(cache=True)
def _solve_one(rd3, kappa, vap_ratio, T, max_iter, tol):
    A = _KELVIN_A_COEFF / T
    lo = rd3
    hi = rd3 * (1.0 - vap_ratio * (1.0 - kappa)) / (1.0 - vap_ratio)
    if not hi > lo:
        return lo, 0.0, 0
    f_lo = vap_ratio
    f_hi = _residual(hi, rd3, kappa, vap_ratio, A)
    side = 0
    it = 0
    while it < max_iter:
        if hi - lo <= tol * lo:
            break
        it += 1
        width = hi - lo
        c = hi - f_hi * (hi - lo) / (f_hi - f_lo)
        if not (c > lo and c < hi):
            c = 0.5 * (lo + hi)
        fc = _residual(c, rd3, kappa, vap_ratio, A)
        if fc > 0.0:
            if side == -1:
                f_hi *= 0.5
            lo = c
            f_lo = fc
            side = -1
        elif fc < 0.0:
            if side == 1:
                f_lo *= 0.5
            hi = c
            f_hi = fc
            side = 1
        else:
            lo = c
            hi = c
            side = 0
        if hi - lo > 0.5 * width:
            m = 0.5 * (lo + hi)
            fm = _residual(m, rd3, kappa, vap_ratio, A)
            if fm > 0.0:
                lo = m
                f_lo = fm
            elif fm < 0.0:
                hi = m
                f_hi = fm
            else:
                lo = m
                hi = m
            side = 0
    return 0.5 * (lo + hi), hi - lo, it


@njit(cache=True, parallel=True)
def rw3_eq_numba(
    rd3: np.ndarray,
    kappa: np.ndarray,
    vap_ratio: np.ndarray,
    T: np.ndarray,
    max_iter: int,
    tol: float,
):
    """Return ``(rw3, width, iterations)`` for every particle."""

    n = rd3.shape[0]
    rw3 = np.empty(n, dtype=np.float64)
    width = np.empty(n, dtype=np.float64)
    iterations = np.empty(n, dtype=np.int64)
    for idx in prange(n):
        r, w, it = _solve_one(rd3[idx], kappa[idx], vap_ratio[idx], T[idx], max_iter, tol)
        rw3[idx] = r
        width[idx] = w
        iterations[idx] = it
    return rw3, width, iterations


@njit(cache=True)
def reduce_by_key_numba(keys: np.ndarray, values: np.ndarray):
    """Return ``(unique_keys, sums)`` over contiguous runs of equal keys."""

    n = keys.shape[0]
    out_keys = np.empty(n, dtype=keys.dtype)
    out_vals = np.zeros(n, dtype=np.float64)
    count = 0
    for idx in range(n):
        if idx == 0 or keys[idx] != keys[idx - 1]:
            out_keys[count] = keys[idx]
            out_vals[count] = values[idx]
            count += 1
        else:
            out_vals[count - 1] += values[idx]
    return out_keys[:count], out_vals[:count]
