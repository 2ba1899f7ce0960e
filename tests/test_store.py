"""Particle store capacity and boundary buffers."""
from __future__ import annotations

import numpy as np
import pytest

from superdrops.errors import CapacityError, PreconditionError
from superdrops.particles.store import BoundaryBuffer, ParticleStore


def _particles(count, start=1):
    return {
        "n": np.arange(start, start + count, dtype=np.int64),
        "rd3": np.full(count, 1.0e-21),
        "x": np.linspace(0.0, 1.0, count),
    }


def test_append_beyond_capacity_is_fatal():
    store = ParticleStore()
    store.reserve(3, 1)
    store.append(**_particles(2))
    with pytest.raises(CapacityError):
        store.append(**_particles(2))
    assert store.n_part == 2


def test_reserve_twice_is_rejected():
    store = ParticleStore()
    store.reserve(3, 1)
    with pytest.raises(PreconditionError):
        store.reserve(3, 1)


def test_append_before_reserve_is_rejected():
    with pytest.raises(PreconditionError):
        ParticleStore().append(**_particles(1))


def test_defaults_for_unset_attributes():
    store = ParticleStore()
    store.reserve(4, 1)
    new = store.append(**_particles(2))
    assert new == slice(0, 2)
    assert np.isnan(store["vt"]).all()
    np.testing.assert_array_equal(store["chem_S_IV"], 0.0)


def test_remove_keeps_order():
    store = ParticleStore()
    store.reserve(5, 1)
    store.append(**_particles(5))
    removed = store.remove(np.array([False, True, False, True, False]))
    assert removed == 2
    np.testing.assert_array_equal(store["n"], [1, 3, 5])
    assert not store.sorted


def test_buffer_overflow_is_fatal():
    buf = BoundaryBuffer(2)
    store = ParticleStore()
    store.reserve(4, 2)
    store.append(**_particles(3))
    with pytest.raises(CapacityError):
        buf.fill(store.extract(np.ones(3, dtype=bool)))


def test_pack_out_and_unpack_in_move_particles():
    src = ParticleStore()
    dst = ParticleStore()
    src.reserve(4, 2)
    dst.reserve(4, 2)
    src.append(**_particles(3))
    moved = src.pack_out(np.array([False, True, True]), "rgt")
    assert moved == 2
    assert src.n_part == 1
    dst.in_buf["lft"].fill(src.out_buf["rgt"].records())
    new = dst.unpack_in()
    assert new == slice(0, 2)
    np.testing.assert_array_equal(dst["n"], [2, 3])
    assert dst.in_buf["lft"].count == 0
    assert dst.unpack_in() is None
