"""Domain boundary conditions for particles."""
from __future__ import annotations

import logging

import numpy as np

from .. import constants
from ..state import EngineState

logger = logging.getLogger(__name__)


def wrap_coordinate(values: np.ndarray, origin: float, length: float) -> np.ndarray:
    shifted = np.mod(values - origin, length)
    # mod of a tiny negative number rounds up to length
    shifted[shifted >= length] = 0.0
    return origin + shifted


def apply(state: EngineState) -> float:
    """Wrap along y, remove particles leaving through the top or bottom.

    Returns the liquid volume [m^3] of the particles that left through the
    bottom in this call (surface precipitation).
    """

    store = state.store
    grid = state.grid
    y = store["y"]
    y[:] = wrap_coordinate(y, 0.0, grid.y1)
    z = store["z"]
    below = z < 0.0
    above = z >= grid.z1
    precip = float(constants.FOUR_THIRDS_PI * np.sum(store["n"][below] * store["rw2"][below] ** 1.5))
    removed = store.remove(below | above)
    if removed and logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "boundary: removed %d particles (%d through bottom), precip=%.3e m^3",
            removed,
            int(below.sum()),
            precip,
        )
    return precip


def wrap_periodic(state: EngineState) -> None:
    """Wrap positions along the periodic axes right after a displacement.

    y is always periodic; x only when the engine owns the whole periodic
    domain (shards leave x to the exchange barrier).
    """

    store = state.store
    grid = state.grid
    y = store["y"]
    y[:] = wrap_coordinate(y, 0.0, grid.y1)
    if state.opts.periodic_x:
        wrap_x(state, grid.x0, grid.nx * grid.dx)


def wrap_x(state: EngineState, x0: float, length: float) -> None:
    """Periodic wrap of x into ``[x0, x0 + length)``."""

    x = state.store["x"]
    x[:] = wrap_coordinate(x, x0, length)


def outside_x(state: EngineState):
    """Return masks of particles left of and right of the local x extent."""

    x = state.store["x"]
    return x < state.grid.x0, x >= state.grid.x1


__all__ = ["apply", "outside_x", "wrap_coordinate", "wrap_periodic", "wrap_x"]
