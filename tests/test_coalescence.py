"""Super-droplet coalescence."""
from __future__ import annotations

import numpy as np
import pytest

from superdrops import Engine, InitOptions
from superdrops.errors import PreconditionError
from superdrops.processes import coalescence, housekeeping


def _engine(distro, kernel="golovin", **overrides):
    opts = dict(
        nx=2,
        dx=1.0,
        dy=1.0,
        dz=1.0,
        sd_conc=64,
        rd_min=1.0e-6,
        rd_max=1.0e-5,
        kernel=kernel,
    )
    opts.update(overrides)
    eng = Engine(InitOptions(**opts))
    eng.init(distro)
    return eng


def _totals(store):
    n = store["n"].astype(float)
    return {
        "n": n.sum(),
        "rw3": np.sum(n * store["rw2"] ** 1.5),
        "rd3": np.sum(n * store["rd3"]),
        "solute": np.sum(n * store["kpa"] * store["rd3"]),
    }


def test_collide_conserves_volume(flat):
    eng = _engine(flat)
    state = eng._state
    before = _totals(state.store)
    merged = coalescence.collide(state, 100.0)
    after = _totals(state.store)
    assert merged > 0
    assert after["n"] < before["n"]
    for key in ("rw3", "rd3", "solute"):
        assert after[key] == pytest.approx(before[key], rel=1.0e-9)


def test_mixed_kappa_merges_weight_by_solute(flat):
    eng = _engine({0.2: flat, 1.0: flat}, sd_conc=16)
    state = eng._state
    before = _totals(state.store)
    coalescence.collide(state, 100.0)
    after = _totals(state.store)
    assert after["solute"] == pytest.approx(before["solute"], rel=1.0e-9)
    kpa = state.store["kpa"]
    assert np.all((kpa >= 0.2 - 1e-12) & (kpa <= 1.0 + 1e-12))


def test_multiplicities_stay_positive(flat):
    eng = _engine(flat)
    state = eng._state
    for _ in range(5):
        coalescence.collide(state, 100.0)
        state.store.compact()
        assert np.all(state.store["n"] > 0)


def test_merged_particles_need_new_terminal_velocity(flat):
    eng = _engine(flat, kernel="geometric")
    state = eng._state
    housekeeping.refresh_ambient(state)
    housekeeping.update_vt(state)
    coalescence.collide(state, 1000.0)
    assert np.isnan(state.store["vt"]).any()
    assert housekeeping.update_vt(state) > 0
    assert not np.isnan(state.store["vt"]).any()


def test_geometric_kernel_rejects_stale_velocities(flat):
    eng = _engine(flat, kernel="geometric")
    with pytest.raises(PreconditionError):
        coalescence.collide(eng._state, 1.0)


def test_candidate_pairs_stay_inside_cells():
    sorted_ijk = np.array([0, 0, 0, 1, 2, 2, 2, 2])
    sorted_id = np.arange(8) * 10
    a, b, cnt = coalescence.candidate_pairs(sorted_id, sorted_ijk)
    np.testing.assert_array_equal(a, [0, 40, 60])
    np.testing.assert_array_equal(b, [10, 50, 70])
    np.testing.assert_array_equal(cnt, [3, 4, 4])
