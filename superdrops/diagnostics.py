"""Read-only diagnostics over an engine's particle population."""
from __future__ import annotations

import math
from typing import List, Tuple

import numpy as np
import pandas as pd

from .errors import ConfigurationError
from .particles import moments
from .particles.store import CHEM_ATTRS
from .processes import chemistry, housekeeping
from .state import EngineState

MomentSpec = List[Tuple[float, float, List[int]]]


def parse_moment_spec(text: str) -> MomentSpec:
    """Parse ``"r_min:r_max|p0,p1;..."`` into ``[(r_min, r_max, [p0, p1]), ...]``.

    Radii are in metres.  Empty segments (e.g. a trailing ``;``) are ignored.
    """

    out: MomentSpec = []
    for segment in text.split(";"):
        segment = segment.strip()
        if not segment:
            continue
        try:
            bounds, powers = segment.split("|")
            lo, hi = bounds.split(":")
            r_min, r_max = float(lo), float(hi)
            power_list = [int(p) for p in powers.split(",") if p.strip()]
        except ValueError as exc:
            raise ConfigurationError(f"malformed moment spec segment {segment!r}") from exc
        if not (math.isfinite(r_min) and math.isfinite(r_max)) or r_min >= r_max:
            raise ConfigurationError(f"moment range {segment!r} must satisfy r_min < r_max")
        if not power_list:
            raise ConfigurationError(f"moment spec segment {segment!r} lists no powers")
        out.append((r_min, r_max, power_list))
    return out


class Diagnostics:
    """Dense per-cell views of the particle spectrum.

    Every query re-establishes sorted order first when needed, so it can be
    called at any point of the step protocol.
    """

    def __init__(self, state: EngineState) -> None:
        self._state = state

    @property
    def n_cell(self) -> int:
        return self._state.grid.n_cell

    @property
    def precipitation_total(self) -> float:
        """Liquid volume [m^3] removed through the bottom since init."""

        return float(self._state.precip_total)

    def _prepare(self) -> None:
        housekeeping.ensure_sorted(self._state)

    def sd_conc(self) -> np.ndarray:
        self._prepare()
        state = self._state
        return moments.sd_conc(state.store, state.backend).to_grid(self.n_cell)

    def wet_moment(self, r_min: float, r_max: float, power: float) -> np.ndarray:
        self._prepare()
        state = self._state
        result = moments.wet_moment(state.store, state.backend, state.grid.dv, r_min, r_max, power)
        return result.to_grid(self.n_cell)

    def dry_moment(self, r_min: float, r_max: float, power: float) -> np.ndarray:
        self._prepare()
        state = self._state
        result = moments.dry_moment(state.store, state.backend, state.grid.dv, r_min, r_max, power)
        return result.to_grid(self.n_cell)

    def chem_moment(self, name: str, r_min: float = 0.0, r_max: float = np.inf) -> np.ndarray:
        """Dissolved amount per unit volume of air for droplets in a wet-radius range.

        ``chem_S_IV`` and ``chem_S_VI`` give kg m^-3 (SO2 equivalents),
        ``chem_H`` gives mol m^-3.
        """

        if name not in CHEM_ATTRS:
            raise ConfigurationError(f"unknown chemistry attribute {name!r}; expected one of {CHEM_ATTRS}")
        self._prepare()
        state = self._state
        store = state.store
        result = moments.attribute_moment(store, state.backend, store[name], state.grid.dv, r_min, r_max)
        return result.to_grid(self.n_cell)

    def wet_pH(self, r_min: float = 0.0, r_max: float = np.inf) -> np.ndarray:
        """Per-cell pH of the water held by droplets in a wet-radius range.

        H+ is the amount stored by the last dissociation step; cells without
        water or without H+ in the range are NaN.
        """

        self._prepare()
        state = self._state
        store = state.store
        dv = state.grid.dv
        H = moments.attribute_moment(store, state.backend, store["chem_H"], dv, r_min, r_max).to_grid(self.n_cell)
        litres = chemistry.water_litres(store)
        water = moments.attribute_moment(store, state.backend, litres, dv, r_min, r_max).to_grid(self.n_cell)
        pH = np.full(self.n_cell, np.nan)
        ok = (H > 0.0) & (water > 0.0)
        pH[ok] = -np.log10(H[ok] / water[ok])
        return pH

    def spectrum_frame(self, spec: str | MomentSpec, kind: str = "wet") -> pd.DataFrame:
        """Return every requested moment as a long table.

        Columns are ``cell, r_min, r_max, power, value``; one row per cell and
        requested moment, empty cells included.
        """

        if kind not in ("wet", "dry"):
            raise ConfigurationError(f"kind must be 'wet' or 'dry', got {kind!r}")
        parsed = parse_moment_spec(spec) if isinstance(spec, str) else spec
        func = self.wet_moment if kind == "wet" else self.dry_moment
        cells = np.arange(self.n_cell)
        frames = []
        for r_min, r_max, powers in parsed:
            for power in powers:
                frames.append(
                    pd.DataFrame(
                        {
                            "cell": cells,
                            "r_min": r_min,
                            "r_max": r_max,
                            "power": power,
                            "value": func(r_min, r_max, power),
                        }
                    )
                )
        if not frames:
            return pd.DataFrame(columns=["cell", "r_min", "r_max", "power", "value"])
        return pd.concat(frames, ignore_index=True)


__all__ = ["Diagnostics", "parse_moment_spec"]
