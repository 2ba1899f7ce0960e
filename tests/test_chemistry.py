"""SO2 dissolution, dissociation and oxidation."""
from __future__ import annotations

import numpy as np
import pytest

from conftest import host_fields
from superdrops import ConfigurationError, Engine, InitOptions, StepOptions, constants
from superdrops.config_utils import step_options_for
from superdrops.processes import chemistry

CHEM_ONLY = dict(adve_switch=False, sedi_switch=False, coal_switch=False)


def _opts(**overrides):
    opts = dict(
        nx=2,
        nz=2,
        sd_conc=16,
        rd_min=1.0e-6,
        rd_max=1.0e-5,
        chem_switch=True,
        chem_SO2_g_0=1.0e-9,
        chem_k_rct=1.0e-2,
    )
    opts.update(CHEM_ONLY)
    opts.update(overrides)
    return InitOptions(**opts)


@pytest.fixture
def engine(flat):
    eng = Engine(_opts())
    eng.init(flat)
    return eng


def _gas(state, field):
    return np.sum(field * state.rhod * state.grid.dv)


def _sulphur(state):
    store = state.store
    dissolved = np.sum(store["n"] * (store["chem_S_IV"] + store["chem_S_VI"]))
    return _gas(state, state.SO2_g) + dissolved


def test_dissolution_conserves_sulphur(engine):
    state = engine._state
    before = _sulphur(state)
    dissolved = chemistry.dissolve(state, 5.0)
    assert dissolved > 0.0
    assert _sulphur(state) == pytest.approx(before, rel=1.0e-9, abs=0.0)
    assert np.all(state.SO2_g < 1.0e-9)
    assert np.all(state.SO2_g >= 0.0)


def test_oxidation_moves_s_iv_to_s_vi(engine):
    state = engine._state
    chemistry.dissolve(state, 5.0)
    s_iv = np.sum(state.store["n"] * state.store["chem_S_IV"])
    converted = chemistry.oxidise(state, 10.0)
    assert converted == pytest.approx(s_iv * (1.0 - np.exp(-0.1)), rel=1.0e-9, abs=0.0)
    total = np.sum(state.store["n"] * (state.store["chem_S_IV"] + state.store["chem_S_VI"]))
    assert total == pytest.approx(s_iv, rel=1.0e-9, abs=0.0)


def test_chemistry_through_engine_step(engine):
    state = engine._state
    before = _sulphur(state)
    th, rv, _ = host_fields((2, 1, 2), rv=0.01, rhod=1.0)
    opts = StepOptions(cond=False, adve=False, sedi=False, coal=False, chem_dsl=True, chem_rct=True)
    engine.step_sync(opts, th, rv)
    engine.step_async(opts)
    assert np.sum(state.store["chem_S_VI"]) > 0.0
    assert _sulphur(state) == pytest.approx(before, rel=1.0e-9, abs=0.0)


def test_sulphur_conserved_while_droplets_cross_cells_of_different_density(flat):
    opts = _opts(nz=1, dx=10.0, adve_switch=True, chem_k_rct=0.0)
    eng = Engine(opts)
    th, rv, rhod = host_fields((2, 1, 1), rv=0.01)
    rhod[:, 0, 0] = [0.5, 1.5]
    eng.init(flat, th=th, rv=rv, rhod=rhod)
    state = eng._state
    before = _sulphur(state)
    step = StepOptions(cond=False, adve=True, sedi=False, coal=False, chem_dsl=True)
    courant_x = np.full((3, 1, 1), 1.0)
    for _ in range(3):
        eng.step_sync(step, th, rv, courant_x=courant_x, rhod=rhod)
        eng.step_async(step)
        assert _sulphur(state) == pytest.approx(before, rel=1.0e-9, abs=0.0)
    assert np.sum(state.store["chem_S_IV"]) > 0.0
    x = state.store["x"]
    assert np.all((x >= 0.0) & (x < 20.0))


def test_hydrogen_ion_of_pure_water_is_neutral():
    H = chemistry.hydrogen_ion(np.zeros(3), np.zeros(3))
    np.testing.assert_allclose(H, 1.0e-7, rtol=1.0e-12)


def test_hydrogen_ion_of_sulphate_matches_closed_form():
    S_VI = np.array([1.0e-8, 1.0e-6, 1.0e-3])
    H = chemistry.hydrogen_ion(np.zeros_like(S_VI), S_VI)
    expected = S_VI + np.sqrt(S_VI ** 2 + chemistry.K_W)
    np.testing.assert_allclose(H, expected, rtol=1.0e-10)


def test_hydrogen_ion_closes_charge_balance_with_s_iv():
    S_IV = np.array([1.0e-9, 1.0e-6, 1.0e-4])
    H = chemistry.hydrogen_ion(S_IV, np.zeros_like(S_IV))
    _, a1, a2 = chemistry.speciation(H)
    anions = chemistry.K_W / H + S_IV * (a1 + 2.0 * a2)
    np.testing.assert_allclose(H, anions, rtol=1.0e-10)
    assert np.all(np.diff(H) > 0.0)


def test_dissociation_stores_hydrogen_and_acidifies(engine):
    state = engine._state
    chemistry.dissolve(state, 5.0)
    H = chemistry.dissociate(state)
    store = state.store
    assert np.all(H > 1.0e-7)
    np.testing.assert_allclose(store["chem_H"], H * chemistry.water_litres(store), rtol=1.0e-12)
    pH = engine.diagnostics().wet_pH()
    assert pH.shape == (engine.grid.n_cell,)
    assert np.all(pH < 7.0)
    assert np.all(pH > 2.0)


def test_dissociation_raises_effective_solubility(flat):
    plain = Engine(_opts())
    plain.init(flat)
    effective = Engine(_opts())
    effective.init(flat)
    for eng in (plain, effective):
        chemistry.dissolve(eng._state, 0.1)
    chemistry.dissociate(effective._state)
    gained_plain = chemistry.dissolve(plain._state, 0.1)
    gained_effective = chemistry.dissolve(effective._state, 0.1, effective=True)
    assert gained_effective > gained_plain


def _acidify(state, molarity):
    store = state.store
    store["chem_S_IV"][:] = molarity * chemistry.water_litres(store) * constants.M_SO2


def test_ozone_used_matches_sulphate_formed(flat):
    eng = Engine(_opts(chem_k_rct=0.0, chem_SO2_g_0=0.0, chem_O3_g_0=1.0e-8))
    eng.init(flat)
    state = eng._state
    _acidify(state, 1.0e-5)
    o3_before = _gas(state, state.O3_g)
    converted = chemistry.oxidise(state, 100.0)
    assert converted > 0.0
    used = (o3_before - _gas(state, state.O3_g)) * constants.M_SO2 / constants.M_O3
    formed = np.sum(state.store["n"] * state.store["chem_S_VI"])
    assert used == pytest.approx(formed, rel=1.0e-9, abs=0.0)
    assert converted == pytest.approx(formed, rel=1.0e-12, abs=0.0)
    np.testing.assert_array_equal(state.H2O2_g, 0.0)


def test_peroxide_cannot_oxidise_more_than_the_cell_holds(flat):
    eng = Engine(_opts(chem_k_rct=0.0, chem_SO2_g_0=0.0, chem_H2O2_g_0=1.0e-12))
    eng.init(flat)
    state = eng._state
    _acidify(state, 1.0e-3)
    available = _gas(state, state.H2O2_g) * constants.M_SO2 / constants.M_H2O2
    converted = chemistry.oxidise(state, 1.0e4)
    assert np.all(state.H2O2_g >= 0.0)
    assert np.all(state.H2O2_g < 1.0e-15)
    assert converted == pytest.approx(available, rel=1.0e-9, abs=0.0)


def test_oxidants_off_leave_only_background_rate(engine):
    state = engine._state
    chemistry.dissolve(state, 5.0)
    s_iv = state.store["chem_S_IV"].copy()
    chemistry.oxidise(state, 10.0)
    np.testing.assert_allclose(state.store["chem_S_IV"], s_iv * np.exp(-0.1), rtol=1.0e-12)


def test_chem_moment_matches_particle_sums(engine):
    state = engine._state
    chemistry.dissolve(state, 5.0)
    per_cell = engine.diagnostics().chem_moment("chem_S_IV")
    total = np.sum(state.store["n"] * state.store["chem_S_IV"])
    assert np.sum(per_cell) * state.grid.dv == pytest.approx(total, rel=1.0e-12)
    with pytest.raises(ConfigurationError):
        engine.diagnostics().chem_moment("rd3")


def test_wet_ph_is_nan_before_dissociation(engine):
    assert np.all(np.isnan(engine.diagnostics().wet_pH()))


def test_dissociation_flag_requires_chemistry_switch(flat):
    eng = Engine(_opts(chem_switch=False))
    eng.init(flat)
    th, rv, _ = host_fields((2, 1, 2), rv=0.01, rhod=1.0)
    with pytest.raises(ConfigurationError):
        eng.step_sync(StepOptions(cond=False, adve=False, sedi=False, coal=False, chem_dsc=True), th, rv)


def test_step_defaults_enable_every_chemistry_flag():
    step = step_options_for(_opts())
    assert step.chem_dsl and step.chem_dsc and step.chem_rct
    assert step.chem


def test_engine_step_with_every_chemistry_flag(flat):
    eng = Engine(_opts(chem_O3_g_0=1.0e-8, chem_H2O2_g_0=1.0e-10))
    eng.init(flat)
    state = eng._state
    before = _sulphur(state)
    th, rv, _ = host_fields((2, 1, 2), rv=0.01, rhod=1.0)
    opts = StepOptions(cond=False, adve=False, sedi=False, coal=False, chem_dsl=True, chem_dsc=True, chem_rct=True)
    for _ in range(2):
        eng.step_sync(opts, th, rv)
        eng.step_async(opts)
    assert _sulphur(state) == pytest.approx(before, rel=1.0e-9, abs=0.0)
    pH = eng.diagnostics().wet_pH()
    assert np.all(np.isfinite(pH))
    assert np.all(pH < 7.0)
    assert np.all(state.O3_g <= 1.0e-8)
    assert np.all(state.H2O2_g < 1.0e-10)
