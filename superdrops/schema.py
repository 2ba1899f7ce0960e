"""Configuration schema for the superdroplet engine.

Two Pydantic models mirror the two configuration surfaces consumed by the
engine: :class:`InitOptions` is fixed at construction and decides which
physical processes are available at all, :class:`StepOptions` selects which
of them actually run during one ``step_sync``/``step_async`` pair.
"""
from __future__ import annotations

import math
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ConfigurationError


class InitOptions(BaseModel):
    """Init-time configuration of one engine instance."""

    model_config = ConfigDict(extra="forbid")

    # grid
    nx: int = Field(1, ge=1, description="Number of cells along x")
    ny: int = Field(1, ge=1, description="Number of cells along y")
    nz: int = Field(1, ge=1, description="Number of cells along z")
    dx: float = Field(1.0, gt=0.0, description="Cell size along x [m]")
    dy: float = Field(1.0, gt=0.0, description="Cell size along y [m]")
    dz: float = Field(1.0, gt=0.0, description="Cell size along z [m]")
    x0: float = Field(0.0, description="Origin of the x extent [m]; non-zero for shards")

    dt: float = Field(1.0, gt=0.0, description="Outer timestep [s]")
    sd_conc: int = Field(8, ge=1, description="Superdroplets per cell at init")
    n_sd_max: Optional[int] = Field(
        None,
        ge=1,
        description="Particle array capacity; defaults to the initial count plus source headroom",
    )

    sstp_cond: int = Field(1, ge=1)
    sstp_coal: int = Field(1, ge=1)
    sstp_chem: int = Field(1, ge=1)

    cond_switch: bool = True
    adve_switch: bool = True
    sedi_switch: bool = True
    coal_switch: bool = True
    chem_switch: bool = False
    src_switch: bool = False

    supstp_src: int = Field(1, ge=1, description="Source injection interval in outer steps")
    src_sd_conc: int = Field(0, ge=0, description="Superdroplets added per source cell per injection")
    src_z1: float = Field(0.0, ge=0.0, description="Top of the source layer [m]")

    rd_min: float = Field(1.0e-9, gt=0.0, description="Lower bound of dry-radius sampling [m]")
    rd_max: float = Field(1.0e-5, gt=0.0, description="Upper bound of dry-radius sampling [m]")
    kappa: float = Field(0.5, ge=0.0, description="Solubility used for bare distribution callables")

    th_0: float = Field(300.0, gt=0.0, description="Default dry potential temperature [K]")
    rv_0: float = Field(0.01, ge=0.0, description="Default vapour mixing ratio [kg/kg]")
    rhod_0: float = Field(1.0, gt=0.0, description="Default dry-air density [kg/m^3]")
    RH_max: float = Field(0.95, gt=0.0, lt=1.0, description="Cap on RH in equilibrium solves")

    kernel: Literal["geometric", "golovin"] = "geometric"
    terminal_velocity: Literal["drag_fit", "stokes"] = "drag_fit"

    chem_SO2_g_0: float = Field(0.0, ge=0.0, description="Initial SO2 gas mixing ratio [kg/kg]")
    chem_O3_g_0: float = Field(0.0, ge=0.0, description="Initial O3 gas mixing ratio [kg/kg]")
    chem_H2O2_g_0: float = Field(0.0, ge=0.0, description="Initial H2O2 gas mixing ratio [kg/kg]")
    chem_henry: float = Field(1.23, ge=0.0, description="Henry constant of SO2 [mol L^-1 atm^-1]")
    chem_henry_O3: float = Field(1.13e-2, ge=0.0, description="Henry constant of O3 [mol L^-1 atm^-1]")
    chem_henry_H2O2: float = Field(7.45e4, ge=0.0, description="Henry constant of H2O2 [mol L^-1 atm^-1]")
    chem_tau_dsl: float = Field(1.0, gt=0.0, description="Dissolution relaxation time [s]")
    chem_k_rct: float = Field(1.0e-3, ge=0.0, description="Background first-order S(IV) oxidation rate [s^-1]")

    dev_count: int = Field(1, ge=1, description="Number of x-slab shards")
    backend: Literal["serial", "numba"] = "serial"
    rng_seed: int = 44
    periodic_x: bool = True

    @model_validator(mode="after")
    def _check_consistency(self) -> "InitOptions":
        if self.rd_min >= self.rd_max:
            raise ConfigurationError(f"rd_min ({self.rd_min}) must be smaller than rd_max ({self.rd_max})")
        if self.src_switch and self.src_sd_conc == 0:
            raise ConfigurationError("src_switch requires src_sd_conc > 0")
        if self.src_switch and self.src_z1 <= 0.0:
            raise ConfigurationError("src_switch requires a positive src_z1")
        if self.dev_count > self.nx:
            raise ConfigurationError(f"dev_count ({self.dev_count}) exceeds nx ({self.nx})")
        if not all(math.isfinite(v) for v in (self.dx, self.dy, self.dz, self.x0, self.dt)):
            raise ConfigurationError("grid spacing, origin and dt must be finite")
        return self

    @property
    def n_cell(self) -> int:
        return self.nx * self.ny * self.nz

    @property
    def dv(self) -> float:
        return self.dx * self.dy * self.dz

    def capacity(self) -> int:
        """Return the particle capacity to reserve."""

        if self.n_sd_max is not None:
            return self.n_sd_max
        base = self.n_cell * self.sd_conc
        if self.src_switch:
            n_src_cells = self.nx * self.ny * max(1, min(self.nz, math.ceil(self.src_z1 / self.dz)))
            base += 4 * n_src_cells * self.src_sd_conc
        return base

    def buffer_capacity(self) -> int:
        """Return the per-side boundary buffer capacity (transverse extent x concentration)."""

        return self.ny * self.nz * max(self.sd_conc, self.src_sd_conc)


class StepOptions(BaseModel):
    """Per-step process selection."""

    model_config = ConfigDict(extra="forbid")

    cond: bool = True
    adve: bool = True
    sedi: bool = True
    coal: bool = True
    chem_dsl: bool = False
    chem_dsc: bool = False
    chem_rct: bool = False
    src: bool = False
    RH_max: float = Field(0.95, gt=0.0, lt=1.0, description="Supersaturation cap for this step")

    @property
    def chem(self) -> bool:
        return self.chem_dsl or self.chem_dsc or self.chem_rct


__all__ = ["InitOptions", "StepOptions"]
