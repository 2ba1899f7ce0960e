"""Moment specifications and spectrum tables."""
from __future__ import annotations

import numpy as np
import pytest

from superdrops import Engine
from superdrops.diagnostics import parse_moment_spec
from superdrops.errors import ConfigurationError


def test_parse_moment_spec():
    parsed = parse_moment_spec("0:1e-6|0,1;1e-6:1|3;")
    assert parsed == [(0.0, 1.0e-6, [0, 1]), (1.0e-6, 1.0, [3])]


@pytest.mark.parametrize("text", ["1e-6|0", "1e-6:0|0", "0:1|", "a:b|0"])
def test_parse_moment_spec_rejects_malformed(text):
    with pytest.raises(ConfigurationError):
        parse_moment_spec(text)


@pytest.fixture
def engine(flat):
    eng = Engine(nx=3, ny=2, sd_conc=5)
    eng.init(flat)
    return eng


def test_spectrum_frame_layout(engine):
    diag = engine.diagnostics()
    frame = diag.spectrum_frame("0:1e-6|0,3;1e-6:1|0", kind="dry")
    assert list(frame.columns) == ["cell", "r_min", "r_max", "power", "value"]
    assert len(frame) == 3 * engine.grid.n_cell
    zeroth = frame[frame["power"] == 0].groupby("cell")["value"].sum().to_numpy()
    np.testing.assert_allclose(zeroth, diag.dry_moment(0.0, 1.0, 0), rtol=1.0e-12)


def test_sd_conc_and_moments_dense(engine):
    diag = engine.diagnostics()
    np.testing.assert_array_equal(diag.sd_conc(), np.full(6, 5.0))
    wet = diag.wet_moment(0.0, 1.0, 0)
    dry = diag.dry_moment(0.0, 1.0, 0)
    assert wet.shape == (6,)
    np.testing.assert_allclose(wet, dry)
    assert diag.precipitation_total == 0.0


def test_spectrum_frame_rejects_unknown_kind(engine):
    with pytest.raises(ConfigurationError):
        engine.diagnostics().spectrum_frame("0:1|0", kind="ice")
