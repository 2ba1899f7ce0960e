"""Domain decomposition of one engine into contiguous x slabs.

:class:`ShardedEngine` owns ``dev_count`` :class:`~superdrops.engine.Engine`
shards.  Every call is forwarded to the shards with slab views of the host
fields; after ``step_async`` the shards stop before finalisation and a
barrier moves boundary-crossing particles between neighbours::

    shard.step_async(defer_finalize=True)   (every shard)
    shard._pack_migrants()                  (out buffers)
    out_rgt[s] -> in_lft[t], out_lft[s] -> in_rgt[t]   (t owns the new x)
    shard._absorb_migrants(); shard._finalize(sharded=True)
"""
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Tuple

import numpy as np

from .arrinfo import as_view
from .engine import DistroLike, Engine, FieldLike, coerce_init_options
from .processes import boundary
from .schema import InitOptions, StepOptions
from .state import Phase

logger = logging.getLogger(__name__)


def slab_bounds(nx: int, dev_count: int) -> List[Tuple[int, int]]:
    """Split ``nx`` cells into ``dev_count`` contiguous ``[start, stop)`` ranges.

    Leading slabs take the remainder, so sizes differ by at most one.
    """

    base, extra = divmod(nx, dev_count)
    bounds = []
    start = 0
    for idx in range(dev_count):
        stop = start + base + (1 if idx < extra else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


def shard_options(opts: InitOptions, start: int, stop: int, idx: int) -> InitOptions:
    data = opts.model_dump()
    data.update(
        nx=stop - start,
        x0=opts.x0 + start * opts.dx,
        dev_count=1,
        periodic_x=False,
        rng_seed=opts.rng_seed + idx,
    )
    return InitOptions(**data)


class ShardedEngine:
    """Coordinator of x-slab shards sharing one host grid."""

    def __init__(self, opts_init: InitOptions | Mapping[str, Any] | None = None, **overrides: Any) -> None:
        self.opts = coerce_init_options(opts_init, **overrides)
        self.bounds = slab_bounds(self.opts.nx, self.opts.dev_count)
        self.shards: List[Engine] = [
            Engine(shard_options(self.opts, start, stop, idx))
            for idx, (start, stop) in enumerate(self.bounds)
        ]
        self.length_x = self.opts.nx * self.opts.dx
        logger.info("sharded engine: nx=%d split into %s", self.opts.nx, self.bounds)

    @property
    def phase(self) -> Phase:
        return self.shards[0].phase

    @property
    def n_part(self) -> int:
        return sum(shard.n_part for shard in self.shards)

    @property
    def precipitation_total(self) -> float:
        return float(sum(shard._state.precip_total for shard in self.shards))

    def diagnostics(self) -> list:
        return [shard.diagnostics() for shard in self.shards]

    def init(self, dry_distros: DistroLike, th: FieldLike = None, rv: FieldLike = None, rhod: FieldLike = None) -> None:
        views = [as_view(th), as_view(rv), as_view(rhod)]
        for shard, (start, stop) in zip(self.shards, self.bounds):
            shard.init(dry_distros, *(view.slab(start, stop) for view in views))

    def step_sync(
        self,
        opts: StepOptions | Mapping[str, Any] | None,
        th: FieldLike,
        rv: FieldLike,
        courant_x: FieldLike = None,
        courant_y: FieldLike = None,
        courant_z: FieldLike = None,
        rhod: FieldLike = None,
    ) -> None:
        th, rv, rhod = as_view(th), as_view(rv), as_view(rhod)
        cx, cy, cz = as_view(courant_x), as_view(courant_y), as_view(courant_z)
        for shard, (start, stop) in zip(self.shards, self.bounds):
            shard.step_sync(
                opts,
                th.slab(start, stop),
                rv.slab(start, stop),
                cx.slab(start, stop + 1),
                cy.slab(start, stop),
                cz.slab(start, stop),
                rhod.slab(start, stop),
            )

    def step_async(self, opts: StepOptions | Mapping[str, Any] | None) -> float:
        precip = 0.0
        for shard in self.shards:
            precip += shard.step_async(opts, defer_finalize=True)
        self._exchange()
        for shard in self.shards:
            shard._absorb_migrants()
            shard._finalize(sharded=True)
        return precip

    def _exchange(self) -> int:
        """Barrier: route every shard's out buffers to the shards owning the new positions.

        Particles go straight to the slab containing their x (after the
        periodic wrap), so one barrier suffices however far they moved.
        Returns the number of particles routed.
        """

        shards = self.shards
        x0 = self.opts.x0
        edges = np.array([shard.grid.x0 for shard in shards[1:]])
        for shard in shards:
            shard._pack_migrants()
        moved = dropped = 0
        for shard in shards:
            store = shard._state.store
            for side, target_side in (("rgt", "lft"), ("lft", "rgt")):
                buf = store.out_buf[side]
                if not buf.count:
                    continue
                records = buf.records()
                buf.clear()
                x = records["x"]
                if self.opts.periodic_x:
                    records["x"] = x = boundary.wrap_coordinate(x, x0, self.length_x)
                else:
                    inside = (x >= x0) & (x < x0 + self.length_x)
                    dropped += int(np.count_nonzero(~inside))
                    records = {name: values[inside] for name, values in records.items()}
                    x = records["x"]
                owner = np.searchsorted(edges, x, side="right")
                for target in np.unique(owner):
                    mine = owner == target
                    shards[target]._state.store.in_buf[target_side].fill(
                        {name: values[mine] for name, values in records.items()}
                    )
                moved += x.size
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("exchange: moved=%d dropped=%d", moved, dropped)
        return moved


def make_engine(opts_init: InitOptions | Mapping[str, Any] | None = None, **overrides: Any):
    """Return an :class:`Engine`, or a :class:`ShardedEngine` when ``dev_count > 1``."""

    opts = coerce_init_options(opts_init, **overrides)
    if opts.dev_count > 1:
        return ShardedEngine(opts)
    return Engine(opts)


__all__ = ["ShardedEngine", "make_engine", "shard_options", "slab_bounds"]
