"""Kappa-Köhler equilibrium wet radius of a solution droplet.

The water activity of a droplet with dry (solute) volume ``rd3`` and wet
volume ``rw3`` follows the single-parameter relation of Petters and
Kreidenweis (2007)::

    a_w = (rw3 - rd3) / (rw3 - rd3 (1 - kappa))

Equilibrium with the environment requires the ambient vapour ratio ``S``
(vapour density over saturation density for pure water) to match the
droplet surface value ``a_w · exp(A(T) / rw)``.  Without the Kelvin factor
the relation is linear in ``rd3`` and has the closed form
:func:`rw3_eq_nokelvin`.  The full relation is solved numerically on the
bracket ``[rd3, rw3_eq_nokelvin]``: at the lower end ``a_w = 0`` so the
residual equals ``S > 0`` and at the upper end ``a_w = S`` while the Kelvin
factor exceeds one, so the residual is negative.

The root finder is capped at :data:`MAX_ITER` iterations and stops once the
bracket is narrower than :func:`eps_tolerance` relative to its lower end.
When the cap is reached first, the midpoint of the final bracket is
returned without signalling non-convergence; the bracket width is reported
by :func:`solve_rw3_eq` for callers that want to inspect it.  This trades a
bounded per-particle cost against precision: the solve sits in the inner
loop of every condensation sub-step.

All functions accept NumPy arrays (or scalars) and broadcast elementwise.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from . import kelvin

MAX_ITER = 20


def eps_tolerance(dtype=np.float64) -> float:
    """Relative bracket tolerance: half the mantissa bits of ``dtype``."""

    info = np.finfo(dtype)
    bits = info.bits // 2
    return max(math.ldexp(1.0, 1 - bits), 4.0 * float(info.eps))


def rw3_eq_nokelvin(rd3, kappa, vap_ratio):
    """Return the equilibrium wet volume with the Kelvin term discarded.

    Singular at ``vap_ratio == 1``; callers cap the ratio below saturation.
    """

    rd3 = np.asarray(rd3, dtype=np.float64)
    return rd3 * (1.0 - vap_ratio * (1.0 - kappa)) / (1.0 - vap_ratio)


def a_w(rw3, rd3, kappa):
    """Return the water activity of a solution droplet."""

    rw3 = np.asarray(rw3, dtype=np.float64)
    return (rw3 - rd3) / (rw3 - rd3 * (1.0 - kappa))


@dataclass
class EquilibriumSolution:
    """Result of :func:`solve_rw3_eq`.

    Attributes
    ----------
    rw3 : numpy.ndarray
        Midpoints of the final brackets [m^3].
    width : numpy.ndarray
        Widths of the final brackets [m^3]; zero for degenerate brackets.
    iterations : numpy.ndarray
        Iterations spent per element.
    """

    rw3: np.ndarray
    width: np.ndarray
    iterations: np.ndarray

    def converged(self, tol: float | None = None) -> np.ndarray:
        """Return a mask of elements whose bracket met the tolerance."""

        tol = eps_tolerance() if tol is None else tol
        lower = self.rw3 - 0.5 * self.width
        return self.width <= tol * lower


def _residual(rw3, rd3, kappa, vap_ratio, A):
    return vap_ratio - (rw3 - rd3) / (rw3 - rd3 * (1.0 - kappa)) * np.exp(A / rw3 ** (1.0 / 3.0))


def solve_rw3_eq(rd3, kappa, vap_ratio, T, *, max_iter: int = MAX_ITER, tol: float | None = None) -> EquilibriumSolution:
    """Solve for the equilibrium wet volume elementwise.

    Each iteration takes an Illinois-modified false-position step inside the
    current bracket and adds a bisection step whenever the bracket did not at
    least halve, so the bracket shrinks by a factor of two or better per
    iteration.
    """

    tol = eps_tolerance() if tol is None else float(tol)
    rd3, kappa, vap_ratio, T = np.broadcast_arrays(
        np.asarray(rd3, dtype=np.float64),
        np.asarray(kappa, dtype=np.float64),
        np.asarray(vap_ratio, dtype=np.float64),
        np.asarray(T, dtype=np.float64),
    )
    shape = rd3.shape
    rd3 = rd3.ravel()
    kappa = kappa.ravel()
    vap_ratio = vap_ratio.ravel()
    A = kelvin.A(T.ravel())

    lo = rd3.copy()
    hi = rw3_eq_nokelvin(rd3, kappa, vap_ratio)
    iterations = np.zeros(rd3.size, dtype=np.int64)

    degenerate = ~(hi > lo)
    hi = np.where(degenerate, lo, hi)
    f_lo = vap_ratio.copy()
    f_hi = np.zeros_like(lo)
    live = np.flatnonzero(~degenerate)
    f_hi[live] = _residual(hi[live], rd3[live], kappa[live], vap_ratio[live], A[live])
    side = np.zeros(rd3.size, dtype=np.int8)

    for _ in range(max_iter):
        live = live[(hi[live] - lo[live]) > tol * lo[live]]
        if live.size == 0:
            break
        iterations[live] += 1
        l, h = lo[live], hi[live]
        fl, fh = f_lo[live], f_hi[live]
        width = h - l

        c = h - fh * (h - l) / (fh - fl)
        c = np.where((c > l) & (c < h), c, 0.5 * (l + h))
        fc = _residual(c, rd3[live], kappa[live], vap_ratio[live], A[live])

        s = side[live]
        up = fc > 0.0
        down = fc < 0.0
        exact = fc == 0.0
        # Illinois: halve the residual of an endpoint retained twice in a row
        fh = np.where(up & (s == -1), 0.5 * fh, fh)
        fl = np.where(down & (s == 1), 0.5 * fl, fl)
        l = np.where(up | exact, c, l)
        fl = np.where(up, fc, fl)
        h = np.where(down | exact, c, h)
        fh = np.where(down, fc, fh)
        s = np.where(up, -1, np.where(down, 1, 0)).astype(np.int8)

        slow = (h - l) > 0.5 * width
        if np.any(slow):
            m = 0.5 * (l + h)
            sl = np.flatnonzero(slow)
            fm = np.zeros_like(m)
            fm[sl] = _residual(m[sl], rd3[live][sl], kappa[live][sl], vap_ratio[live][sl], A[live][sl])
            m_up = slow & (fm > 0.0)
            m_down = slow & (fm < 0.0)
            m_exact = slow & (fm == 0.0)
            l = np.where(m_up | m_exact, m, l)
            fl = np.where(m_up, fm, fl)
            h = np.where(m_down | m_exact, m, h)
            fh = np.where(m_down, fm, fh)
            s = np.where(slow, 0, s).astype(np.int8)

        lo[live], hi[live] = l, h
        f_lo[live], f_hi[live] = fl, fh
        side[live] = s

    return EquilibriumSolution(
        rw3=(0.5 * (lo + hi)).reshape(shape),
        width=(hi - lo).reshape(shape),
        iterations=iterations.reshape(shape),
    )


def rw3_eq(rd3, kappa, vap_ratio, T, *, max_iter: int = MAX_ITER):
    """Return the equilibrium wet radius cubed [m^3].

    Best-effort by design: see the module documentation.
    """

    return solve_rw3_eq(rd3, kappa, vap_ratio, T, max_iter=max_iter).rw3


__all__ = [
    "MAX_ITER",
    "EquilibriumSolution",
    "a_w",
    "eps_tolerance",
    "rw3_eq",
    "rw3_eq_nokelvin",
    "solve_rw3_eq",
]
