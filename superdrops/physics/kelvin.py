"""Kelvin (curvature) correction to the equilibrium vapour pressure."""
from __future__ import annotations

import numpy as np

from .. import constants


def A(T):
    """Return the Kelvin-term length scale ``2 σ_w / (R_v T ρ_w)`` [m]."""

    return 2.0 * constants.SIGMA_W / (constants.R_V * np.asarray(T, dtype=np.float64) * constants.RHO_W)


def klvntrm(r, T):
    """Return the multiplicative curvature term ``exp(A(T) / r)``."""

    return np.exp(A(T) / np.asarray(r, dtype=np.float64))


__all__ = ["A", "klvntrm"]
