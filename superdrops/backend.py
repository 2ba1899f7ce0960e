"""Parallel primitives behind the particle engine.

Every physics process is expressed as a map or a segmented reduction over
the full particle arrays.  :class:`Backend` bundles the few primitives that
have more than one implementation: ``serial`` runs the NumPy code paths,
``numba`` runs the multi-threaded kernels of
:mod:`superdrops.physics._numba_kernels`.  The choice is made once when an
engine is constructed.
"""
from __future__ import annotations

import logging
import warnings
from typing import Tuple

import numpy as np

from .errors import ConfigurationError
from .physics import kappa_koehler
from .runtime import format_exception_short, numba_disabled_env, numba_status
from .warnings import NumericalWarning

logger = logging.getLogger(__name__)

BACKENDS = ("serial", "numba")


class Backend:
    """Execution backend selected at construction."""

    def __init__(self, name: str = "serial") -> None:
        if name not in BACKENDS:
            raise ConfigurationError(f"unknown backend {name!r}; expected one of {BACKENDS}")
        self.requested = name
        self.disabled_env = numba_disabled_env()
        self.use_numba = name == "numba" and not self.disabled_env
        self.numba_failed = False
        if name == "numba" and self.disabled_env:
            logger.info("numba backend requested but disabled via environment; using serial")

    @property
    def name(self) -> str:
        return "numba" if self.use_numba and not self.numba_failed else "serial"

    def status(self) -> dict[str, object]:
        return numba_status(self.requested == "numba", self.disabled_env, self.use_numba, self.numba_failed)

    def _fail(self, label: str, exc: Exception) -> None:
        self.numba_failed = True
        warnings.warn(
            f"{label}: numba kernel failed ({format_exception_short(exc)}); falling back to NumPy.",
            NumericalWarning,
        )

    def stable_argsort(self, keys: np.ndarray) -> np.ndarray:
        """Return the permutation grouping ``keys`` in ascending order, ties kept in input order."""

        return np.argsort(keys, kind="stable")

    def reduce_by_key(self, keys: np.ndarray, values: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Sum ``values`` over contiguous runs of equal ``keys``.

        Returns the key of each run and the run sums; one entry per run.
        """

        if keys.size == 0:
            return keys[:0].copy(), np.zeros(0, dtype=np.float64)
        if self.use_numba and not self.numba_failed:
            from .physics._numba_kernels import reduce_by_key_numba

            try:
                out_keys, out_vals = reduce_by_key_numba(
                    np.ascontiguousarray(keys), np.ascontiguousarray(values, dtype=np.float64)
                )
                return out_keys, out_vals
            except Exception as exc:  # pragma: no cover - fallback path
                self._fail("reduce_by_key", exc)
        starts = np.concatenate(([0], np.flatnonzero(keys[1:] != keys[:-1]) + 1))
        sums = np.add.reduceat(np.asarray(values, dtype=np.float64), starts)
        return keys[starts], sums

    def rw3_eq(self, rd3, kappa, vap_ratio, T) -> kappa_koehler.EquilibriumSolution:
        """Solve the equilibrium wet volume for every particle."""

        if self.use_numba and not self.numba_failed:
            from .physics._numba_kernels import rw3_eq_numba

            try:
                rw3, width, iterations = rw3_eq_numba(
                    np.ascontiguousarray(rd3, dtype=np.float64),
                    np.ascontiguousarray(kappa, dtype=np.float64),
                    np.ascontiguousarray(vap_ratio, dtype=np.float64),
                    np.ascontiguousarray(T, dtype=np.float64),
                    kappa_koehler.MAX_ITER,
                    kappa_koehler.eps_tolerance(),
                )
                return kappa_koehler.EquilibriumSolution(rw3=rw3, width=width, iterations=iterations)
            except Exception as exc:  # pragma: no cover - fallback path
                self._fail("rw3_eq", exc)
        return kappa_koehler.solve_rw3_eq(rd3, kappa, vap_ratio, T)


__all__ = ["BACKENDS", "Backend"]
