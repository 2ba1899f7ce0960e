"""Terminal fall speed of water drops."""
from __future__ import annotations

import numpy as np

from .. import constants

# Shafrir and Gal-Chen (1971) drag-coefficient fit, Cd = a r^b + c
_CD_A = 9.86e-10
_CD_B = -2.375
_CD_C = 1.014


def drag_coefficient(r):
    """Return the drag coefficient of a drop of radius ``r`` [m]."""

    return _CD_A * np.asarray(r, dtype=np.float64) ** _CD_B + _CD_C


def vt_drag_fit(r, rho_air):
    """Force-balance fall speed ``sqrt(8 r g (ρ_w - ρ_a) / (3 Cd ρ_a))`` [m/s]."""

    r = np.asarray(r, dtype=np.float64)
    rho_air = np.asarray(rho_air, dtype=np.float64)
    return np.sqrt(8.0 * r * constants.G * (constants.RHO_W - rho_air) / (3.0 * drag_coefficient(r) * rho_air))


def vt_stokes(r, rho_air):
    """Stokes-regime fall speed, valid for cloud droplets below ~30 µm."""

    r = np.asarray(r, dtype=np.float64)
    return 2.0 / 9.0 * (constants.RHO_W - np.asarray(rho_air)) * constants.G * r * r / constants.ETA_AIR


FORMULAE = {
    "drag_fit": vt_drag_fit,
    "stokes": vt_stokes,
}


def vt(r, rho_air, formula: str = "drag_fit"):
    return FORMULAE[formula](r, rho_air)


__all__ = ["FORMULAE", "drag_coefficient", "vt", "vt_drag_fit", "vt_stokes"]
