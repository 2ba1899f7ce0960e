"""Water moves between vapour and droplets without being created."""
from __future__ import annotations

import warnings

import numpy as np
import pytest

from conftest import host_fields
from superdrops import Engine, InitOptions, StepOptions
from superdrops import constants
from superdrops.warnings import PhysicsWarning

SHAPE = (2, 2, 1)
COND_ONLY = StepOptions(cond=True, adve=False, sedi=False, coal=False, RH_max=0.99)


def _total_water(engine, rv, rhod):
    diag = engine.diagnostics()
    liquid = constants.RHO_W * constants.FOUR_THIRDS_PI * diag.wet_moment(0.0, np.inf, 3) * engine.grid.dv
    vapour = rv.ravel() * rhod.ravel() * engine.grid.dv
    return liquid + vapour


@pytest.fixture
def engine(lognormal):
    opts = InitOptions(
        nx=2,
        ny=2,
        nz=1,
        dx=50.0,
        dy=50.0,
        dz=50.0,
        sd_conc=32,
        sstp_cond=4,
        adve_switch=False,
        sedi_switch=False,
        coal_switch=False,
    )
    th, rv, rhod = host_fields(SHAPE, rv=0.012, rhod=1.1)
    eng = Engine(opts)
    eng.init(lognormal, th=th, rv=rv, rhod=rhod)
    return eng


def test_condensation_conserves_total_water(engine):
    th, rv, rhod = host_fields(SHAPE, rv=0.0147, rhod=1.1)
    before = _total_water(engine, rv, rhod)
    rv_in = rv.copy()
    th_in = th.copy()
    engine.step_sync(COND_ONLY, th, rv, rhod=rhod)
    after = _total_water(engine, rv, rhod)
    np.testing.assert_allclose(after, before, rtol=1.0e-10)
    # droplets grew at the expense of vapour and released latent heat
    assert np.all(rv < rv_in)
    assert np.all(th > th_in)


def test_repeated_steps_conserve_total_water(engine):
    th, rv, rhod = host_fields(SHAPE, rv=0.0147, rhod=1.1)
    before = _total_water(engine, rv, rhod)
    for _ in range(3):
        engine.step_sync(COND_ONLY, th, rv, rhod=rhod)
        engine.step_async(COND_ONLY)
    after = _total_water(engine, rv, rhod)
    np.testing.assert_allclose(after, before, rtol=1.0e-10)


def test_drier_air_evaporates_droplets(engine):
    th, rv, rhod = host_fields(SHAPE, rv=0.006, rhod=1.1)
    rv_in = rv.copy()
    engine.step_sync(COND_ONLY, th, rv, rhod=rhod)
    assert np.all(rv > rv_in)


def test_supersaturated_cells_emit_physics_warning(engine):
    th, rv, rhod = host_fields(SHAPE, rv=0.03, rhod=1.1)
    with pytest.warns(PhysicsWarning, match="supersaturated"):
        engine.step_sync(COND_ONLY, th, rv, rhod=rhod)


def test_subsaturated_cells_stay_quiet(engine):
    th, rv, rhod = host_fields(SHAPE, rv=0.0147, rhod=1.1)
    with warnings.catch_warnings():
        warnings.simplefilter("error", PhysicsWarning)
        engine.step_sync(COND_ONLY, th, rv, rhod=rhod)
