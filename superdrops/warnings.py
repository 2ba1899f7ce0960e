"""Structured warning classes for the :mod:`superdrops` package."""
from __future__ import annotations


class SuperdropsWarning(UserWarning):
    """Base warning class for superdrops."""


class PhysicsWarning(SuperdropsWarning):
    """Physical parameter or regime warnings."""


class NumericalWarning(SuperdropsWarning):
    """Numerical stability, accuracy or backend fallback warnings."""


__all__ = [
    "SuperdropsWarning",
    "PhysicsWarning",
    "NumericalWarning",
]
