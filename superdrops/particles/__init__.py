"""Particle storage, ordering and particle/cell coupling."""
from . import coupling, moments, sorting, store
from .store import ParticleStore

__all__ = ["ParticleStore", "coupling", "moments", "sorting", "store"]
