"""Strided views onto host-owned Eulerian fields.

The host model owns its arrays and hands them to the engine as a base
buffer plus per-dimension strides, in whatever memory layout it uses.
:class:`FieldView` wraps that description as a NumPy view sharing the
host's memory, so reads and writes go straight to the host array.  A null
view (no buffer) marks a field that is not coupled in this run.
"""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError


class FieldView:
    """Element type, rank, extents and strides of one host field.

    Parameters
    ----------
    array:
        NumPy array viewing host memory, or ``None`` for a null view.
    """

    def __init__(self, array: Optional[np.ndarray] = None) -> None:
        self._array = array
        self._index_map: Optional[Tuple[np.ndarray, ...]] = None

    @classmethod
    def null(cls) -> "FieldView":
        return cls(None)

    @classmethod
    def from_array(cls, array: np.ndarray | None) -> "FieldView":
        """Wrap an existing array without copying."""

        if array is None:
            return cls.null()
        if not isinstance(array, np.ndarray):
            raise ConfigurationError(f"field views wrap numpy arrays, got {type(array).__name__}")
        return cls(array)

    @classmethod
    def from_buffer(
        cls,
        buffer: np.ndarray,
        shape: Sequence[int],
        strides: Sequence[int],
        offset: int = 0,
    ) -> "FieldView":
        """Build a view from a flat buffer and element strides.

        ``strides`` count elements, not bytes; ``offset`` is the element index
        of the first entry.  The extents are checked against the buffer so the
        view can never address memory outside it.
        """

        buffer = np.asarray(buffer)
        if buffer.ndim != 1:
            raise ConfigurationError("buffer must be one dimensional")
        if len(shape) != len(strides):
            raise ConfigurationError(f"shape {tuple(shape)} and strides {tuple(strides)} differ in rank")
        if any(int(n) < 1 for n in shape):
            raise ConfigurationError(f"extents must be positive, got {tuple(shape)}")
        lo = offset + sum(min(0, (int(n) - 1) * int(s)) for n, s in zip(shape, strides))
        hi = offset + sum(max(0, (int(n) - 1) * int(s)) for n, s in zip(shape, strides))
        if lo < 0 or hi >= buffer.size:
            raise ConfigurationError(
                f"view with shape {tuple(shape)} and strides {tuple(strides)} exceeds buffer of {buffer.size} elements"
            )
        itemsize = buffer.itemsize
        base = buffer[offset:]
        array = np.lib.stride_tricks.as_strided(
            base,
            shape=tuple(int(n) for n in shape),
            strides=tuple(int(s) * itemsize for s in strides),
            writeable=buffer.flags.writeable,
        )
        return cls(array)

    def is_null(self) -> bool:
        return self._array is None

    @property
    def array(self) -> np.ndarray:
        if self._array is None:
            raise ConfigurationError("null field view has no data")
        return self._array

    @property
    def dtype(self) -> np.dtype:
        return self.array.dtype

    @property
    def rank(self) -> int:
        return self.array.ndim

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(self.array.shape)

    @property
    def strides(self) -> Tuple[int, ...]:
        """Element strides per dimension."""

        arr = self.array
        return tuple(s // arr.itemsize for s in arr.strides)

    def bind(self, shape: Sequence[int]) -> Tuple[np.ndarray, ...]:
        """Return (and cache) the index arrays mapping internal order to this view.

        Internal order is C order over ``shape``.  The mapping is built once
        and reused on later calls.
        """

        shape = tuple(int(n) for n in shape)
        if self.shape != shape:
            raise ConfigurationError(f"field view has shape {self.shape}, expected {shape}")
        if self._index_map is None:
            self._index_map = tuple(idx.ravel() for idx in np.indices(shape))
        return self._index_map

    @property
    def is_bound(self) -> bool:
        return self._index_map is not None

    def read(self, index_map: Optional[Tuple[np.ndarray, ...]] = None) -> np.ndarray:
        """Return the field values in internal (flattened C) order."""

        idx = index_map or self._index_map or self.bind(self.shape)
        return np.asarray(self.array[idx], dtype=np.float64)

    def write(self, values: np.ndarray, index_map: Optional[Tuple[np.ndarray, ...]] = None) -> None:
        """Store internal-order values back into host memory."""

        idx = index_map or self._index_map or self.bind(self.shape)
        self.array[idx] = values

    def slab(self, start: int, stop: int) -> "FieldView":
        """Return a view restricted to ``[start, stop)`` along the first axis."""

        if self.is_null():
            return FieldView.null()
        return FieldView(self.array[start:stop])


def as_view(field) -> FieldView:
    """Normalise ``None``, arrays and views to a :class:`FieldView`."""

    if isinstance(field, FieldView):
        return field
    return FieldView.from_array(field)


__all__ = ["FieldView", "as_view"]
