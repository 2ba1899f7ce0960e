"""Grouping of particles by grid cell.

Aggregation over cells works on contiguous runs of equal cell index, so the
active particles are ordered by ``ijk`` through an index permutation
(``store.sorted_id``); the attribute arrays themselves are not moved.  The
store's ``sorted`` flag is set here and cleared by every operation that
changes cell membership.
"""
from __future__ import annotations

import numpy as np

from ..backend import Backend
from ..errors import PreconditionError
from .store import ParticleStore


def sort(store: ParticleStore, backend: Backend) -> None:
    """Order the active particles by ascending cell index (stable)."""

    n = store.n_part
    ijk = store["ijk"]
    perm = backend.stable_argsort(ijk)
    store.sorted_id[:n] = perm
    store.sorted_ijk[:n] = ijk[perm]
    store.sorted = True


def shuffle(store: ParticleStore, backend: Backend, rng: np.random.Generator) -> None:
    """Order particles by cell with a random order inside every cell.

    Consecutive entries of the permutation then form random candidate pairs
    for collisions.  Still a valid grouping by cell, so the flag is set.
    """

    n = store.n_part
    ijk = store["ijk"]
    perm = rng.permutation(n)
    perm = perm[backend.stable_argsort(ijk[perm])]
    store.sorted_id[:n] = perm
    store.sorted_ijk[:n] = ijk[perm]
    store.sorted = True


def require_sorted(store: ParticleStore, operation: str) -> None:
    if not store.sorted:
        raise PreconditionError(f"{operation} requires particles sorted by cell")


def sorted_view(store: ParticleStore):
    """Return ``(sorted_id, sorted_ijk)`` for the active particles."""

    n = store.n_part
    return store.sorted_id[:n], store.sorted_ijk[:n]


def cell_runs(sorted_ijk: np.ndarray):
    """Return ``(starts, counts)`` of the runs of equal cell index."""

    if sorted_ijk.size == 0:
        empty = np.zeros(0, dtype=np.int64)
        return empty, empty
    starts = np.concatenate(([0], np.flatnonzero(sorted_ijk[1:] != sorted_ijk[:-1]) + 1))
    counts = np.diff(np.concatenate((starts, [sorted_ijk.size])))
    return starts, counts


__all__ = ["cell_runs", "require_sorted", "shuffle", "sort", "sorted_view"]
