"""Particle processes advancing an engine's state within one step."""
from . import (
    advection,
    boundary,
    chemistry,
    coalescence,
    condensation,
    housekeeping,
    sedimentation,
    sources,
)

__all__ = [
    "advection",
    "boundary",
    "chemistry",
    "coalescence",
    "condensation",
    "housekeeping",
    "sedimentation",
    "sources",
]
