"""Displacement of particles by the grid-relative flow."""
from __future__ import annotations

import numpy as np

from ..state import EngineState


def _interpolate(courant: np.ndarray, axis: int, i, j, k, frac):
    lo = [i, j, k]
    hi = [i, j, k]
    hi[axis] = hi[axis] + 1
    c_lo = courant[tuple(lo)]
    c_hi = courant[tuple(hi)]
    return c_lo + frac * (c_hi - c_lo)


def advect(state: EngineState) -> None:
    """Move particles by the Courant numbers interpolated to their positions.

    Courant numbers live on cell faces; the value at a particle is linearly
    interpolated between the two faces of its cell along each axis, and the
    displacement is that Courant number times the cell size.  Missing
    components do not move particles along that axis.
    """

    store = state.store
    grid = state.grid
    i, j, k = store["i"], store["j"], store["k"]
    coords = (
        ("x", grid.dx, grid.x0, i),
        ("y", grid.dy, 0.0, j),
        ("z", grid.dz, 0.0, k),
    )
    displacement = []
    for axis, (name, delta, origin, idx) in enumerate(coords):
        courant = state.courant[axis]
        if courant is None:
            displacement.append(None)
            continue
        frac = np.clip((store[name] - origin) / delta - idx, 0.0, 1.0)
        displacement.append(_interpolate(courant, axis, i, j, k, frac) * delta)
    for (name, _, _, _), disp in zip(coords, displacement):
        if disp is not None:
            store[name][:] += disp
    store.invalidate_order()


__all__ = ["advect"]
