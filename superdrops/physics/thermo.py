"""Moist-air thermodynamics on dry potential temperature.

The host model carries the dry potential temperature ``th``, the dry-air
density ``rhod`` and the water-vapour mixing ratio ``rv``.  These helpers
recover temperature, pressure and relative humidity and give the latent
heating that accompanies a vapour change.
"""
from __future__ import annotations

import numpy as np

from .. import constants

_KAPPA_D = constants.R_D / constants.C_PD


def T(th, rhod):
    """Return temperature [K] from dry potential temperature and dry-air density."""

    th = np.asarray(th, dtype=np.float64)
    rhod = np.asarray(rhod, dtype=np.float64)
    return th * (rhod * constants.R_D / constants.P_1000 * th) ** (_KAPPA_D / (1.0 - _KAPPA_D))


def p(rhod, rv, T):
    """Return total pressure [Pa] of moist air."""

    return np.asarray(rhod) * (constants.R_D + np.asarray(rv) * constants.R_V) * np.asarray(T)


def p_v(rhod, rv, T):
    """Return vapour partial pressure [Pa]."""

    return np.asarray(rhod) * np.asarray(rv) * constants.R_V * np.asarray(T)


def p_vs(T):
    """Saturation vapour pressure over water [Pa] (Clausius-Clapeyron from the triple point)."""

    T = np.asarray(T, dtype=np.float64)
    return constants.P_TRI * np.exp(constants.L_V / constants.R_V * (1.0 / constants.T_TRI - 1.0 / T))


def RH(rhod, rv, T):
    """Return the ratio of ambient to saturation vapour pressure."""

    return p_v(rhod, rv, T) / p_vs(T)


def d_th(drv, th, T):
    """Return the change of ``th`` accompanying a vapour change ``drv``.

    Condensation (``drv < 0``) releases latent heat and raises ``th``.
    """

    return -np.asarray(drv) * constants.L_V / constants.C_PD * np.asarray(th) / np.asarray(T)


__all__ = ["T", "p", "p_v", "p_vs", "RH", "d_th"]
