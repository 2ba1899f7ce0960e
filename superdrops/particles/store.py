"""Columnar storage of superdroplet attributes.

:class:`ParticleStore` owns one pre-allocated array per attribute plus the
boundary buffers used to move particles between shards.  Storage is reserved
once; the active particles always occupy the leading ``n_part`` entries and
no array is ever reallocated, so running out of room is fatal.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional

import numpy as np

from ..errors import CapacityError, PreconditionError

logger = logging.getLogger(__name__)

FLOAT_ATTRS = (
    "rd3",
    "rw2",
    "kpa",
    "x",
    "y",
    "z",
    "vt",
    "T",
    "p",
    "RH",
    "rhod",
    "SO2_a",
    "chem_S_IV",
    "chem_S_VI",
    "chem_H",
)
INT_ATTRS = ("n", "i", "j", "k", "ijk")

# extensive chemistry attributes: summed on coalescence, carried across shards
CHEM_ATTRS = ("chem_S_IV", "chem_S_VI", "chem_H")

# attributes carried across a shard boundary; cell indices are recomputed
MIGRATING_ATTRS = ("n", "rd3", "rw2", "kpa", "x", "y", "z", "vt") + CHEM_ATTRS

SIDES = ("lft", "rgt")


def _empty(name: str, size: int) -> np.ndarray:
    if name in INT_ATTRS:
        return np.zeros(size, dtype=np.int64)
    if name == "vt":
        return np.full(size, np.nan, dtype=np.float64)
    return np.zeros(size, dtype=np.float64)


class BoundaryBuffer:
    """Fixed-capacity staging area for migrating particles."""

    def __init__(self, capacity: int) -> None:
        self.capacity = int(capacity)
        self.count = 0
        self.arrays: Dict[str, np.ndarray] = {name: _empty(name, self.capacity) for name in MIGRATING_ATTRS}

    def fill(self, records: Mapping[str, np.ndarray]) -> None:
        """Append ``records`` after the entries already staged."""

        count = int(np.asarray(records["n"]).size)
        if self.count + count > self.capacity:
            raise CapacityError(
                f"boundary buffer overflow: {self.count + count} particles exceed capacity {self.capacity}"
            )
        for name in MIGRATING_ATTRS:
            self.arrays[name][self.count:self.count + count] = records[name]
        self.count += count

    def records(self) -> Dict[str, np.ndarray]:
        return {name: arr[:self.count].copy() for name, arr in self.arrays.items()}

    def clear(self) -> None:
        self.count = 0


class ParticleStore:
    """Per-particle attribute arrays with fixed capacity."""

    def __init__(self) -> None:
        self.capacity = 0
        self.n_part = 0
        self.arrays: Dict[str, np.ndarray] = {}
        self.sorted_id = np.zeros(0, dtype=np.int64)
        self.sorted_ijk = np.zeros(0, dtype=np.int64)
        self.sorted = False
        self.out_buf: Dict[str, BoundaryBuffer] = {}
        self.in_buf: Dict[str, BoundaryBuffer] = {}

    @property
    def reserved(self) -> bool:
        return bool(self.arrays)

    def reserve(self, capacity: int, buffer_capacity: int) -> None:
        """Allocate all attribute arrays and the boundary buffers."""

        if self.reserved:
            raise PreconditionError("particle store already reserved")
        if capacity < 1 or buffer_capacity < 1:
            raise CapacityError(f"invalid capacities: particles={capacity} buffers={buffer_capacity}")
        self.capacity = int(capacity)
        for name in FLOAT_ATTRS + INT_ATTRS:
            self.arrays[name] = _empty(name, self.capacity)
        self.sorted_id = np.zeros(self.capacity, dtype=np.int64)
        self.sorted_ijk = np.zeros(self.capacity, dtype=np.int64)
        for side in SIDES:
            self.out_buf[side] = BoundaryBuffer(buffer_capacity)
            self.in_buf[side] = BoundaryBuffer(buffer_capacity)
        logger.info("reserved particle store: capacity=%d buffer_capacity=%d", capacity, buffer_capacity)

    def __getitem__(self, name: str) -> np.ndarray:
        """Return the active part of attribute ``name`` (a view)."""

        return self.arrays[name][:self.n_part]

    def __len__(self) -> int:
        return self.n_part

    def invalidate_order(self) -> None:
        self.sorted = False

    def append(self, **attrs: np.ndarray) -> slice:
        """Append particles; unspecified attributes take their defaults.

        Returns the slice of the new particles.
        """

        if not self.reserved:
            raise PreconditionError("particle store used before reserve()")
        count = int(np.asarray(attrs["n"]).size)
        if self.n_part + count > self.capacity:
            raise CapacityError(
                f"particle capacity exceeded: {self.n_part + count} > {self.capacity}"
            )
        new = slice(self.n_part, self.n_part + count)
        for name, arr in self.arrays.items():
            if name in attrs:
                arr[new] = attrs[name]
            else:
                arr[new] = _empty(name, 1)[0]
        self.n_part += count
        if count:
            self.invalidate_order()
        return new

    def remove(self, mask: np.ndarray) -> int:
        """Drop particles flagged by ``mask``, keeping the others in order."""

        mask = np.asarray(mask, dtype=bool)
        removed = int(mask.sum())
        if removed == 0:
            return 0
        keep = np.flatnonzero(~mask)
        n_keep = keep.size
        for arr in self.arrays.values():
            arr[:n_keep] = arr[:self.n_part][keep]
        self.n_part = n_keep
        self.invalidate_order()
        return removed

    def compact(self) -> int:
        """Remove particles whose multiplicity dropped to zero."""

        return self.remove(self["n"] == 0)

    def extract(self, mask: np.ndarray, names: Iterable[str] = MIGRATING_ATTRS) -> Dict[str, np.ndarray]:
        return {name: self[name][mask].copy() for name in names}

    def pack_out(self, mask: np.ndarray, side: str) -> int:
        """Move flagged particles into the ``out`` buffer of ``side``."""

        mask = np.asarray(mask, dtype=bool)
        if not mask.any():
            return 0
        self.out_buf[side].fill(self.extract(mask))
        return self.remove(mask)

    def unpack_in(self) -> Optional[slice]:
        """Append every particle staged in the ``in`` buffers; return their slice."""

        start = self.n_part
        total = 0
        for side in SIDES:
            buf = self.in_buf[side]
            if buf.count:
                self.append(**buf.records())
                total += buf.count
            buf.clear()
        if total == 0:
            return None
        return slice(start, start + total)


__all__ = [
    "BoundaryBuffer",
    "CHEM_ATTRS",
    "FLOAT_ATTRS",
    "INT_ATTRS",
    "MIGRATING_ATTRS",
    "ParticleStore",
    "SIDES",
]
