"""Pure physics routines: equilibrium, thermodynamics, fall speed, size distributions."""
from . import (
    distributions,
    kappa_koehler,
    kelvin,
    terminal_velocity,
    thermo,
)

__all__ = [
    "distributions",
    "kappa_koehler",
    "kelvin",
    "terminal_velocity",
    "thermo",
]
