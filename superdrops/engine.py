"""Timestep orchestrator exposed to the host model.

An :class:`Engine` advances a population of superdroplets coupled to the
host's Eulerian grid.  The host drives it with a strict call protocol::

    engine.init(dry_distros)
    while running:
        engine.step_sync(opts, th, rv, courant_x, courant_y, courant_z, rhod)
        precip = engine.step_async(opts)

``step_sync`` exchanges fields with the host and runs condensation;
``step_async`` runs the particle-only processes (advection, sedimentation,
chemistry, coalescence, sourcing, boundary handling).  Calling either out
of turn raises :class:`~superdrops.errors.SequencingError`; a per-step flag
for a process switched off at init raises
:class:`~superdrops.errors.ConfigurationError`.

Architecture Overview
---------------------
::

    engine.py
    ├── state.py            (private EngineState, protocol phase)
    ├── particles/          (store, sorting, moments, coupling)
    ├── processes/          (condensation ... boundary)
    └── multi.py            (x-slab shards, boundary exchange)
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Union

import numpy as np
from pydantic import ValidationError

from .arrinfo import FieldView, as_view
from .backend import Backend
from .diagnostics import Diagnostics
from .errors import ConfigurationError, PreconditionError, SequencingError
from .grid import Grid
from .particles import sorting
from .processes import (
    advection,
    boundary,
    chemistry,
    coalescence,
    condensation,
    housekeeping,
    sedimentation,
    sources,
)
from .runtime import log_stage
from .schema import InitOptions, StepOptions
from .state import EngineState, Phase

logger = logging.getLogger(__name__)

FieldLike = Union[FieldView, np.ndarray, None]
DistroLike = Union[Callable, Mapping[float, Callable]]

# per-step flag -> init switch it requires
_SWITCHES = (
    ("cond", "cond_switch"),
    ("adve", "adve_switch"),
    ("sedi", "sedi_switch"),
    ("coal", "coal_switch"),
    ("chem_dsl", "chem_switch"),
    ("chem_dsc", "chem_switch"),
    ("chem_rct", "chem_switch"),
    ("src", "src_switch"),
)

_COURANT_NAMES = ("courant_x", "courant_y", "courant_z")


def coerce_init_options(opts: InitOptions | Mapping[str, Any] | None, **overrides: Any) -> InitOptions:
    if isinstance(opts, InitOptions) and not overrides:
        return opts
    data: Dict[str, Any] = opts.model_dump() if isinstance(opts, InitOptions) else dict(opts or {})
    data.update(overrides)
    try:
        return InitOptions(**data)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def coerce_step_options(opts: StepOptions | Mapping[str, Any] | None) -> StepOptions:
    if isinstance(opts, StepOptions):
        return opts
    try:
        return StepOptions(**dict(opts or {}))
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


def normalise_distros(opts: InitOptions, dry_distros: DistroLike) -> Dict[float, Callable]:
    """Return a ``{kappa: distribution}`` mapping."""

    if callable(dry_distros):
        return {float(opts.kappa): dry_distros}
    if not isinstance(dry_distros, Mapping) or not dry_distros:
        raise ConfigurationError("dry_distros must be a callable or a non-empty {kappa: callable} mapping")
    out: Dict[float, Callable] = {}
    for kappa, distro in dry_distros.items():
        if float(kappa) < 0.0:
            raise ConfigurationError(f"kappa must be non-negative, got {kappa}")
        if not callable(distro):
            raise ConfigurationError(f"distribution for kappa={kappa} is not callable")
        out[float(kappa)] = distro
    return out


class Engine:
    """Particle engine for one contiguous domain (or one shard of it).

    Parameters
    ----------
    opts_init:
        :class:`InitOptions` or a mapping of its fields.
    """

    def __init__(self, opts_init: InitOptions | Mapping[str, Any] | None = None, **overrides: Any) -> None:
        opts = coerce_init_options(opts_init, **overrides)
        if opts.dev_count > 1:
            raise ConfigurationError("dev_count > 1 requires superdrops.multi.ShardedEngine")
        self._state = EngineState(
            opts=opts,
            grid=Grid.from_options(opts),
            backend=Backend(opts.backend),
            rng=np.random.default_rng(opts.rng_seed),
        )

    # ------------------------------------------------------------------
    # read-only accessors
    # ------------------------------------------------------------------
    @property
    def opts(self) -> InitOptions:
        return self._state.opts

    @property
    def grid(self) -> Grid:
        return self._state.grid

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def n_part(self) -> int:
        return self._state.store.n_part

    def diagnostics(self) -> Diagnostics:
        return Diagnostics(self._state)

    # ------------------------------------------------------------------
    # protocol
    # ------------------------------------------------------------------
    def init(
        self,
        dry_distros: DistroLike,
        th: FieldLike = None,
        rv: FieldLike = None,
        rhod: FieldLike = None,
    ) -> None:
        """Reserve storage and create the initial superdroplets.

        ``th``, ``rv`` and ``rhod`` are optional views of the initial fields;
        absent ones take the uniform defaults ``th_0``, ``rv_0``, ``rhod_0``.
        """

        state = self._state
        if state.phase is not Phase.UNINITIALIZED:
            raise SequencingError("init() may be called only once")
        opts = state.opts
        grid = state.grid
        distros = normalise_distros(opts, dry_distros)
        state.dry_distros = distros

        n_kinds = len(distros)
        capacity = opts.capacity() if opts.n_sd_max is not None else opts.capacity() * n_kinds
        state.store.reserve(capacity, opts.buffer_capacity() * n_kinds)

        state.th = self._initial_field(th, opts.th_0)
        state.rv = self._initial_field(rv, opts.rv_0)
        state.rhod = self._initial_field(rhod, opts.rhod_0)
        state.SO2_g = np.full(grid.n_cell, opts.chem_SO2_g_0)
        state.O3_g = np.full(grid.n_cell, opts.chem_O3_g_0)
        state.H2O2_g = np.full(grid.n_cell, opts.chem_H2O2_g_0)

        added = sources.populate(state, distros, np.arange(grid.n_cell), opts.sd_conc, opts.RH_max)
        housekeeping.update_cells(state)
        sorting.sort(state.store, state.backend)
        state.phase = Phase.READY
        logger.info(
            "init: grid=%s n_part=%d capacity=%d kappas=%s backend=%s",
            grid.shape,
            added,
            capacity,
            sorted(distros),
            state.backend.name,
        )

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
        """Pull host fields, run condensation sub-steps, push ``th``/``rv`` back."""

        state = self._state
        if state.phase not in (Phase.READY, Phase.ASYNC_DONE):
            raise SequencingError(f"step_sync() not allowed in phase {state.phase.value!r}")
        opts = coerce_step_options(opts)
        self._check_switches(opts)

        views = {
            "th": as_view(th),
            "rv": as_view(rv),
            "rhod": as_view(rhod),
            "courant_x": as_view(courant_x),
            "courant_y": as_view(courant_y),
            "courant_z": as_view(courant_z),
        }
        if views["th"].is_null() or views["rv"].is_null():
            raise ConfigurationError("step_sync() requires th and rv field views")
        if not state.bound:
            self._bind(views)

        if not views["rhod"].is_null():
            state.rhod = self._read(views, "rhod")
        for axis, name in enumerate(_COURANT_NAMES):
            state.courant[axis] = None if views[name].is_null() else self._read(views, name)

        th_host = self._read(views, "th")
        rv_host = self._read(views, "rv")
        if opts.cond:
            sstp = state.opts.sstp_cond
            th_start = state.th_ref if state.th_ref is not None else th_host
            rv_start = state.rv_ref if state.rv_ref is not None else rv_host
            dth = (th_host - th_start) / sstp
            drv = (rv_host - rv_start) / sstp
            state.th = th_start.copy()
            state.rv = rv_start.copy()
            for _ in range(sstp):
                state.th += dth
                state.rv += drv
                condensation.substep(state, opts.RH_max)
        else:
            state.th = th_host
            state.rv = rv_host

        views["th"].write(state.th, state.index_maps["th"])
        views["rv"].write(state.rv, state.index_maps["rv"])
        state.phase = Phase.SYNC_DONE

    def step_async(self, opts: StepOptions | Mapping[str, Any] | None, *, defer_finalize: bool = False) -> float:
        """Run the particle-only processes; return this step's surface precipitation [m^3].

        ``defer_finalize`` leaves particles that crossed the x extent in place
        for a shard coordinator to exchange before :meth:`_finalize` runs.
        """

        state = self._state
        if state.phase is not Phase.SYNC_DONE:
            raise SequencingError(f"step_async() not allowed in phase {state.phase.value!r}")
        opts = coerce_step_options(opts)
        self._check_switches(opts)
        init = state.opts
        dt = init.dt

        if init.cond_switch:
            state.th_ref = state.th.copy()
            state.rv_ref = state.rv.copy()

        housekeeping.refresh_ambient(state)

        if opts.adve:
            advection.advect(state)
            boundary.wrap_periodic(state)
            housekeeping.relocate(state)

        if (init.sedi_switch or init.coal_switch) and (opts.sedi or opts.coal):
            housekeeping.update_vt(state)

        if opts.sedi:
            sedimentation.sediment(state)

        if opts.chem:
            housekeeping.relocate(state)
            for _ in range(init.sstp_chem):
                chemistry.substep(state, dt / init.sstp_chem, opts.chem_dsl, opts.chem_dsc, opts.chem_rct)

        if opts.coal:
            housekeeping.relocate(state)
            for step in range(init.sstp_coal):
                housekeeping.update_vt(state)
                coalescence.collide(state, dt / init.sstp_coal)
                if step < init.sstp_coal - 1:
                    housekeeping.invalidate_vt(state)

        if opts.src:
            state.src_counter += 1
            if state.src_counter >= init.supstp_src:
                sources.inject(state, opts.RH_max)
                state.src_counter = 0
        else:
            state.src_counter = 0

        precip = boundary.apply(state)
        state.precip_total += precip

        if not defer_finalize:
            self._finalize()
        state.n_steps += 1
        state.phase = Phase.ASYNC_DONE
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("step %d: n_part=%d precip=%.3e", state.n_steps, state.store.n_part, precip)
        return precip

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _check_switches(self, opts: StepOptions) -> None:
        init = self._state.opts
        for flag, switch in _SWITCHES:
            if getattr(opts, flag) and not getattr(init, switch):
                raise ConfigurationError(f"step option {flag!r} requested but {switch} is off at init")

    def _expected_shape(self, name: str):
        grid = self._state.grid
        if name in _COURANT_NAMES:
            return grid.courant_shape(_COURANT_NAMES.index(name))
        return grid.shape

    def _initial_field(self, field: FieldLike, default: float) -> np.ndarray:
        view = as_view(field)
        if view.is_null():
            return np.full(self._state.grid.n_cell, float(default))
        return view.read(view.bind(self._expected_shape("th")))

    def _bind(self, views: Dict[str, FieldView]) -> None:
        state = self._state
        for name, view in views.items():
            if view.is_null():
                continue
            state.index_maps[name] = view.bind(self._expected_shape(name))
        state.bound = True
        log_stage(logger, "bind", extra={"fields": sorted(state.index_maps)})

    def _read(self, views: Dict[str, FieldView], name: str) -> np.ndarray:
        state = self._state
        view = views[name]
        shape = self._expected_shape(name)
        if view.shape != shape:
            raise ConfigurationError(f"{name} has shape {view.shape}, expected {shape}")
        index_map = state.index_maps.get(name)
        if index_map is None:
            index_map = state.index_maps[name] = view.bind(shape)
        values = view.read(index_map)
        if name in _COURANT_NAMES:
            return values.reshape(shape)
        return values

    def _pack_migrants(self) -> None:
        """Move particles outside the local x extent into the out buffers."""

        state = self._state
        left, right = boundary.outside_x(state)
        state.store.pack_out(left, "lft")
        state.store.pack_out(right, "rgt")

    def _absorb_migrants(self) -> int:
        """Append particles staged in the in buffers."""

        new = self._state.store.unpack_in()
        return 0 if new is None else new.stop - new.start

    def _finalize(self, *, sharded: bool = False) -> None:
        state = self._state
        grid = state.grid
        if not sharded:
            if state.opts.periodic_x:
                boundary.wrap_x(state, grid.x0, grid.nx * grid.dx)
            else:
                left, right = boundary.outside_x(state)
                state.store.remove(left | right)
        else:
            left, right = boundary.outside_x(state)
            if left.any() or right.any():
                raise PreconditionError(
                    f"{int(left.sum() + right.sum())} particles outside shard extent "
                    f"[{grid.x0}, {grid.x1}) after exchange"
                )
        state.store.compact()
        housekeeping.update_cells(state)
        sorting.sort(state.store, state.backend)


__all__ = ["Engine", "coerce_init_options", "coerce_step_options", "normalise_distros"]
