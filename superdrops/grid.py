"""Cartesian grid utilities for the particle engine.

Cells are numbered with the flattened index ``ijk = (i * ny + j) * nz + k``
which is C order over ``(nx, ny, nz)``.  Host fields are addressed in the
same order once their views are bound.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .schema import InitOptions


@dataclass(frozen=True)
class Grid:
    """Uniform Cartesian grid.

    Parameters
    ----------
    nx, ny, nz:
        Number of cells per direction.
    dx, dy, dz:
        Cell sizes (m).
    x0:
        Position of the left edge along x (m); non-zero for shards.
    """

    nx: int
    ny: int
    nz: int
    dx: float
    dy: float
    dz: float
    x0: float = 0.0

    @classmethod
    def from_options(cls, opts: InitOptions) -> "Grid":
        return cls(opts.nx, opts.ny, opts.nz, opts.dx, opts.dy, opts.dz, opts.x0)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (self.nx, self.ny, self.nz)

    @property
    def n_cell(self) -> int:
        return self.nx * self.ny * self.nz

    @property
    def dv(self) -> float:
        return self.dx * self.dy * self.dz

    @property
    def x1(self) -> float:
        return self.x0 + self.nx * self.dx

    @property
    def y1(self) -> float:
        return self.ny * self.dy

    @property
    def z1(self) -> float:
        return self.nz * self.dz

    def courant_shape(self, axis: int) -> Tuple[int, int, int]:
        """Shape of the face-centred Courant field along ``axis``."""

        shape = list(self.shape)
        shape[axis] += 1
        return tuple(shape)

    def cell_indices(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> Tuple[np.ndarray, ...]:
        """Return ``(i, j, k, ijk)`` for positions inside the grid."""

        i = np.clip(np.floor((x - self.x0) / self.dx).astype(np.int64), 0, self.nx - 1)
        j = np.clip(np.floor(y / self.dy).astype(np.int64), 0, self.ny - 1)
        k = np.clip(np.floor(z / self.dz).astype(np.int64), 0, self.nz - 1)
        return i, j, k, self.flatten(i, j, k)

    def flatten(self, i, j, k):
        return (i * self.ny + j) * self.nz + k

    def slab(self, start: int, stop: int) -> "Grid":
        """Return the sub-grid covering x cells ``[start, stop)``."""

        return Grid(stop - start, self.ny, self.nz, self.dx, self.dy, self.dz, self.x0 + start * self.dx)


__all__ = ["Grid"]
