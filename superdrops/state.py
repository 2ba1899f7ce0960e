"""Private state owned by one engine instance."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from .backend import Backend
from .grid import Grid
from .particles.store import ParticleStore
from .schema import InitOptions


class Phase(enum.Enum):
    """Position of an engine in its call protocol."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    SYNC_DONE = "sync-pending"
    ASYNC_DONE = "async-pending"


@dataclass
class EngineState:
    """Everything an engine mutates between calls.

    The step counters and flags that drive the call protocol live here
    rather than in module globals:

    * ``phase`` follows ``uninitialized -> ready -> sync-pending <-> async-pending``.
    * ``src_counter`` counts outer steps since the last injection and is reset
      to zero whenever sourcing does not run.
    * ``index_maps`` caches the index arrays of the host views bound on the
      first ``step_sync``; the views themselves are not retained.
    """

    opts: InitOptions
    grid: Grid
    backend: Backend
    rng: np.random.Generator
    store: ParticleStore = field(default_factory=ParticleStore)
    phase: Phase = Phase.UNINITIALIZED

    th: Optional[np.ndarray] = None
    rv: Optional[np.ndarray] = None
    rhod: Optional[np.ndarray] = None
    th_ref: Optional[np.ndarray] = None
    rv_ref: Optional[np.ndarray] = None
    courant: List[Optional[np.ndarray]] = field(default_factory=lambda: [None, None, None])
    SO2_g: Optional[np.ndarray] = None
    O3_g: Optional[np.ndarray] = None
    H2O2_g: Optional[np.ndarray] = None

    index_maps: Dict[str, Tuple[np.ndarray, ...]] = field(default_factory=dict)
    bound: bool = False

    dry_distros: Dict[float, Callable] = field(default_factory=dict)
    src_counter: int = 0
    n_steps: int = 0
    precip_total: float = 0.0


__all__ = ["EngineState", "Phase"]
