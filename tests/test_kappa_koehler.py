"""Equilibrium wet radius from the kappa-Köhler relation."""
from __future__ import annotations

import numpy as np
import pytest

from superdrops.backend import Backend
from superdrops.physics import kappa_koehler, kelvin

T_AMB = 283.15
RD3_DECADES = [1.0e-21, 1.0e-18, 1.0e-15]


def _surface_ratio(rw3, rd3, kappa, T):
    return kappa_koehler.a_w(rw3, rd3, kappa) * kelvin.klvntrm(np.cbrt(rw3), T)


@pytest.mark.parametrize("rd3", RD3_DECADES)
@pytest.mark.parametrize("kappa", [0.0, 0.3, 1.0])
@pytest.mark.parametrize("S", [0.3, 0.9, 0.99])
def test_solution_within_bracket(rd3, kappa, S):
    rw3 = kappa_koehler.rw3_eq(rd3, kappa, S, T_AMB)
    upper = kappa_koehler.rw3_eq_nokelvin(rd3, kappa, S)
    assert rd3 <= rw3 <= upper


# kappa=0 is left out: the solve returns the dry core, where a_w is 0/0.
# test_zero_kappa_inverse_is_undefined covers that case.
@pytest.mark.parametrize("rd3", RD3_DECADES)
@pytest.mark.parametrize("kappa", [0.3, 1.0])
@pytest.mark.parametrize("S", [0.5, 0.9])
def test_inverse_recovers_vapour_ratio(rd3, kappa, S):
    rw3 = kappa_koehler.rw3_eq(rd3, kappa, S, T_AMB)
    assert _surface_ratio(rw3, rd3, kappa, T_AMB) == pytest.approx(S, rel=1.0e-6)


def test_zero_kappa_inverse_is_undefined():
    rd3 = np.array(RD3_DECADES)
    rw3 = kappa_koehler.rw3_eq(rd3, 0.0, 0.9, T_AMB)
    np.testing.assert_array_equal(rw3, rd3)
    with np.errstate(invalid="ignore"):
        ratio = _surface_ratio(rw3, rd3, 0.0, T_AMB)
    assert np.all(np.isnan(ratio))


def test_insoluble_core_stays_dry():
    sol = kappa_koehler.solve_rw3_eq(np.array(RD3_DECADES), 0.0, 0.9, T_AMB)
    np.testing.assert_array_equal(sol.rw3, RD3_DECADES)
    np.testing.assert_array_equal(sol.width, 0.0)
    np.testing.assert_array_equal(sol.iterations, 0)


def test_iteration_cap_returns_bracket_midpoint():
    rd3 = np.array([1.0e-18])
    capped = kappa_koehler.solve_rw3_eq(rd3, 0.6, 0.9, T_AMB, max_iter=1)
    assert capped.iterations[0] == 1
    assert capped.width[0] > 0.0
    assert not capped.converged()[0]
    full = kappa_koehler.solve_rw3_eq(rd3, 0.6, 0.9, T_AMB)
    lo = capped.rw3 - 0.5 * capped.width
    hi = capped.rw3 + 0.5 * capped.width
    assert lo[0] <= full.rw3[0] <= hi[0]


def test_bracket_narrows_below_tolerance():
    rd3 = np.logspace(-24, -15, 10)
    sol = kappa_koehler.solve_rw3_eq(rd3, 0.61, 0.95, T_AMB)
    assert np.all(sol.iterations <= kappa_koehler.MAX_ITER)
    assert np.all(sol.width <= 1.0e-4 * sol.rw3)


def test_matches_toms748_reference():
    optimize = pytest.importorskip("scipy.optimize")
    A = float(kelvin.A(T_AMB))
    for rd3 in RD3_DECADES:
        for kappa in (0.3, 1.0):
            S = 0.9

            def residual(rw3):
                return S - float(kappa_koehler.a_w(rw3, rd3, kappa)) * np.exp(A / np.cbrt(rw3))

            hi = float(kappa_koehler.rw3_eq_nokelvin(rd3, kappa, S))
            ref = optimize.toms748(residual, rd3, hi, xtol=1e-30, rtol=1e-14)
            assert kappa_koehler.rw3_eq(rd3, kappa, S, T_AMB) == pytest.approx(ref, rel=1.0e-7)


def test_eps_tolerance_uses_half_the_mantissa():
    assert kappa_koehler.eps_tolerance(np.float64) == pytest.approx(2.0 ** -31)
    assert kappa_koehler.eps_tolerance(np.float32) == pytest.approx(2.0 ** -15)


def test_numba_backend_agrees_with_serial():
    rng = np.random.default_rng(3)
    rd3 = 10.0 ** rng.uniform(-24, -15, 200)
    kappa = rng.uniform(0.0, 1.0, 200)
    S = rng.uniform(0.1, 0.99, 200)
    T = rng.uniform(250.0, 300.0, 200)
    serial = Backend("serial").rw3_eq(rd3, kappa, S, T)
    threaded = Backend("numba").rw3_eq(rd3, kappa, S, T)
    np.testing.assert_allclose(threaded.rw3, serial.rw3, rtol=1.0e-9)
