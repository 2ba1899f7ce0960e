from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from superdrops.physics import distributions  # noqa: E402


def flat_distro(level: float = 1.0e8):
    """dN/dln(rd) constant in ln(rd); every sampled particle gets n > 0."""

    def dN_dlnr(lnrd):
        return np.full_like(np.asarray(lnrd, dtype=float), level)

    return dN_dlnr


@pytest.fixture
def flat():
    return flat_distro()


@pytest.fixture
def lognormal():
    return distributions.lognormal(0.04e-6, 1.4, 60.0e6)


def host_fields(shape, th=300.0, rv=0.012, rhod=1.1):
    """Return C-ordered host arrays ``(th, rv, rhod)`` of ``shape``."""

    return (
        np.full(shape, th, dtype=float),
        np.full(shape, rv, dtype=float),
        np.full(shape, rhod, dtype=float),
    )
