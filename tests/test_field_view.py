"""Strided host-field views."""
from __future__ import annotations

import numpy as np
import pytest

from superdrops.arrinfo import FieldView, as_view
from superdrops.errors import ConfigurationError


def test_from_buffer_fortran_layout_reads_in_c_order():
    shape = (2, 3, 4)
    host = np.arange(24, dtype=float).reshape(shape)
    buffer = np.asfortranarray(host).ravel(order="K")
    view = FieldView.from_buffer(buffer, shape, strides=(1, 2, 6))
    assert view.rank == 3
    assert view.shape == shape
    assert view.strides == (1, 2, 6)
    np.testing.assert_array_equal(view.read(), host.ravel())


def test_write_goes_to_host_memory():
    buffer = np.zeros(12)
    view = FieldView.from_buffer(buffer, (3, 4), strides=(4, 1))
    view.write(np.arange(12.0))
    np.testing.assert_array_equal(buffer, np.arange(12.0))


def test_from_buffer_rejects_out_of_bounds_extent():
    with pytest.raises(ConfigurationError):
        FieldView.from_buffer(np.zeros(10), (3, 4), strides=(4, 1))


def test_from_buffer_rejects_offset_past_end():
    with pytest.raises(ConfigurationError):
        FieldView.from_buffer(np.zeros(4), (4,), strides=(1,), offset=1)


def test_null_view():
    view = FieldView.null()
    assert view.is_null()
    assert as_view(None).is_null()
    assert view.slab(0, 1).is_null()
    with pytest.raises(ConfigurationError):
        view.array


def test_bind_caches_index_map_and_checks_shape():
    view = as_view(np.zeros((2, 2, 1)))
    first = view.bind((2, 2, 1))
    assert view.is_bound
    assert view.bind((2, 2, 1)) is first
    with pytest.raises(ConfigurationError):
        view.bind((4, 1, 1))


def test_slab_shares_memory():
    host = np.zeros((4, 1, 1))
    view = as_view(host).slab(2, 4)
    assert view.shape == (2, 1, 1)
    view.write(np.array([1.0, 2.0]))
    np.testing.assert_array_equal(host.ravel(), [0.0, 0.0, 1.0, 2.0])
