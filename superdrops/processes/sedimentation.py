"""Gravitational settling."""
from __future__ import annotations

from ..state import EngineState


def sediment(state: EngineState) -> None:
    """Lower every particle by its terminal velocity times the timestep."""

    store = state.store
    store["z"][:] -= store["vt"] * state.opts.dt
    store.invalidate_order()


__all__ = ["sediment"]
