"""Aqueous-phase sulphur chemistry.

Three steps, each behind its own per-step flag:

* dissolution (``chem_dsl``) relaxes the dissolved S(IV) of every droplet
  towards Henry's-law equilibrium with the SO2 gas of its cell;
* dissociation (``chem_dsc``) solves the droplet charge balance for H+ and
  makes dissolution use the effective (pH dependent) Henry constant;
* oxidation (``chem_rct``) converts S(IV) to S(VI) by dissolved O3 and H2O2,
  which are taken from the cell gas, plus an optional first-order background.

Sulphur masses are kept in SO2 equivalents.  Any uptake from a cell is
scaled down so that no cell gives away more gas than it holds, so cell gas
plus dissolved mass is conserved by every step.
"""
from __future__ import annotations

import logging

import numpy as np

from .. import constants
from ..particles import coupling
from ..state import EngineState
from .housekeeping import refresh_ambient

logger = logging.getLogger(__name__)

# dissociation constants [mol L^-1] and ion product of water [mol^2 L^-2]
K_SO2 = 1.3e-2  # SO2.H2O <-> H+ + HSO3-
K_HSO3 = 6.6e-8  # HSO3- <-> H+ + SO3--
K_W = 1.0e-14

# S(IV) + O3 rate constants for SO2.H2O, HSO3- and SO3-- [L mol^-1 s^-1]
K_O3 = (2.4e4, 3.7e5, 1.5e9)
# S(IV) + H2O2: k [H+][HSO3-][H2O2] / (1 + K [H+])
K_H2O2 = 7.45e7  # L^2 mol^-2 s^-1
K_H2O2_H = 13.0  # L mol^-1

# bisection steps in log[H+]
H_ITER = 60


def water_litres(store) -> np.ndarray:
    """Liquid water volume of every droplet [L]."""

    return 1.0e3 * constants.FOUR_THIRDS_PI * np.maximum(store["rw2"] ** 1.5 - store["rd3"], 0.0)


def _molarity(amount: np.ndarray, litres: np.ndarray) -> np.ndarray:
    out = np.zeros_like(amount)
    np.divide(amount, litres, out=out, where=litres > 0.0)
    return out


def _aqueous(henry: float, mixing_ratio, rhod, T, molar_mass: float) -> np.ndarray:
    """Henry's-law concentration [mol L^-1] over a gas of given mixing ratio [kg/kg]."""

    p = mixing_ratio * rhod * constants.R_GAS / molar_mass * T
    return henry * p / constants.P_STP


def speciation(H: np.ndarray):
    """Return the fractions of S(IV) present as SO2.H2O, HSO3- and SO3--."""

    d = H * H + K_SO2 * H + K_SO2 * K_HSO3
    return H * H / d, K_SO2 * H / d, K_SO2 * K_HSO3 / d


def hydrogen_ion(S_IV: np.ndarray, S_VI: np.ndarray) -> np.ndarray:
    """Solve the charge balance for [H+] [mol L^-1].

    ``S_IV`` and ``S_VI`` are molar concentrations; S(VI) counts as fully
    dissociated sulphate.  The balance
    ``H - K_W/H = S_IV (a1 + 2 a2) + 2 S_VI`` is monotonic in H and is
    bracketed by ``sqrt(K_W)`` and ``sqrt(K_W) + 2 (S_IV + S_VI)``.
    """

    S_IV = np.asarray(S_IV, dtype=np.float64)
    S_VI = np.asarray(S_VI, dtype=np.float64)
    neutral = np.sqrt(K_W)
    lo = np.full(np.broadcast(S_IV, S_VI).shape, np.log(neutral))
    hi = np.log(neutral + 2.0 * (S_IV + S_VI))
    for _ in range(H_ITER):
        mid = 0.5 * (lo + hi)
        H = np.exp(mid)
        _, a1, a2 = speciation(H)
        excess = H - K_W / H - S_IV * (a1 + 2.0 * a2) - 2.0 * S_VI
        above = excess > 0.0
        hi = np.where(above, mid, hi)
        lo = np.where(above, lo, mid)
    return np.exp(0.5 * (lo + hi))


def _ambient(state: EngineState, cell_field: np.ndarray) -> np.ndarray:
    out = np.empty(state.store.n_part)
    coupling.update_state(state.store, out, cell_field)
    return out


def _limit_uptake(state: EngineState, uptake: np.ndarray, available: np.ndarray) -> np.ndarray:
    """Scale positive per-droplet uptakes [kg] so no cell loses more than ``available`` [kg/kg]."""

    store = state.store
    grid = state.grid
    taking = uptake > 0.0
    demand = np.zeros(grid.n_cell)
    coupling.update_pstate(
        store,
        state.backend,
        demand,
        np.where(taking, store["n"] * uptake, 0.0) / (store["rhod"] * grid.dv),
    )
    limit_cell = np.ones(grid.n_cell)
    over = demand > available
    limit_cell[over] = available[over] / demand[over]
    limit = _ambient(state, limit_cell)
    return np.where(taking, uptake * limit, uptake)


def _release(state: EngineState, cell_gas: np.ndarray, uptake: np.ndarray) -> None:
    store = state.store
    coupling.update_pstate(
        store,
        state.backend,
        cell_gas,
        -store["n"] * uptake / (store["rhod"] * state.grid.dv),
    )
    np.maximum(cell_gas, 0.0, out=cell_gas)


def dissolve(state: EngineState, dt: float, effective: bool = False) -> float:
    """Exchange SO2 between cell gas and droplets; return the dissolved mass [kg].

    With ``effective`` the Henry constant is scaled by the S(IV)
    dissociation at the droplet's last computed [H+].
    """

    refresh_ambient(state)
    store = state.store
    opts = state.opts
    coupling.update_state(store, store["SO2_a"], state.SO2_g)

    litres = water_litres(store)
    henry = np.full(store.n_part, opts.chem_henry)
    if effective:
        H = _molarity(store["chem_H"], litres)
        known = H > 0.0
        henry[known] *= 1.0 + K_SO2 / H[known] + K_SO2 * K_HSO3 / H[known] ** 2
    S_eq = _aqueous(henry, store["SO2_a"], store["rhod"], store["T"], constants.M_SO2)
    m_eq = S_eq * litres * constants.M_SO2
    dm = (m_eq - store["chem_S_IV"]) * (1.0 - np.exp(-dt / opts.chem_tau_dsl))
    dm = _limit_uptake(state, dm, state.SO2_g)

    store["chem_S_IV"][:] += dm
    _release(state, state.SO2_g, dm)
    coupling.update_state(store, store["SO2_a"], state.SO2_g)
    return float(np.sum(store["n"] * dm))


def dissociate(state: EngineState) -> np.ndarray:
    """Store the H+ amount [mol] of every droplet; return [H+] [mol L^-1]."""

    store = state.store
    litres = water_litres(store)
    S_IV = _molarity(store["chem_S_IV"] / constants.M_SO2, litres)
    S_VI = _molarity(store["chem_S_VI"] / constants.M_SO2, litres)
    H = hydrogen_ion(S_IV, S_VI)
    store["chem_H"][:] = H * litres
    return H


def oxidise(state: EngineState, dt: float) -> float:
    """Convert dissolved S(IV) to S(VI); return the converted mass [kg].

    O3 and H2O2 react at their Henry's-law concentrations and the moles
    they oxidise are removed from the cell gas one for one.
    """

    refresh_ambient(state)
    store = state.store
    opts = state.opts
    rhod = store["rhod"]
    T = store["T"]
    S_IV_mass = store["chem_S_IV"]

    litres = water_litres(store)
    H = hydrogen_ion(
        _molarity(S_IV_mass / constants.M_SO2, litres),
        _molarity(store["chem_S_VI"] / constants.M_SO2, litres),
    )
    a0, a1, a2 = speciation(H)
    O3_aq = _aqueous(opts.chem_henry_O3, _ambient(state, state.O3_g), rhod, T, constants.M_O3)
    H2O2_aq = _aqueous(opts.chem_henry_H2O2, _ambient(state, state.H2O2_g), rhod, T, constants.M_H2O2)
    k_O3 = (K_O3[0] * a0 + K_O3[1] * a1 + K_O3[2] * a2) * O3_aq
    k_H2O2 = K_H2O2 * H * a1 * H2O2_aq / (1.0 + K_H2O2_H * H)
    k_tot = opts.chem_k_rct + k_O3 + k_H2O2

    converted = S_IV_mass * (1.0 - np.exp(-k_tot * dt))
    share = np.zeros_like(converted)
    np.divide(converted, k_tot, out=share, where=k_tot > 0.0)

    # oxidant mass used per droplet [kg]
    O3_used = _limit_uptake(state, share * k_O3 * constants.M_O3 / constants.M_SO2, state.O3_g)
    H2O2_used = _limit_uptake(state, share * k_H2O2 * constants.M_H2O2 / constants.M_SO2, state.H2O2_g)
    converted = np.minimum(
        share * opts.chem_k_rct
        + O3_used * constants.M_SO2 / constants.M_O3
        + H2O2_used * constants.M_SO2 / constants.M_H2O2,
        S_IV_mass,
    )

    store["chem_S_IV"][:] -= converted
    store["chem_S_VI"][:] += converted
    _release(state, state.O3_g, O3_used)
    _release(state, state.H2O2_g, H2O2_used)
    return float(np.sum(store["n"] * converted))


def substep(state: EngineState, dt: float, dsl: bool, dsc: bool, rct: bool) -> None:
    """One chemistry sub-step: dissolution, oxidation, then dissociation."""

    dissolved = dissolve(state, dt, effective=dsc) if dsl else 0.0
    oxidised = oxidise(state, dt) if rct else 0.0
    if dsc:
        H = dissociate(state)
        if logger.isEnabledFor(logging.DEBUG) and H.size:
            logger.debug("chemistry: pH range %.2f..%.2f", -np.log10(H.max()), -np.log10(H.min()))
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("chemistry: dissolved=%.3e kg oxidised=%.3e kg", dissolved, oxidised)


__all__ = [
    "dissociate",
    "dissolve",
    "hydrogen_ion",
    "oxidise",
    "speciation",
    "substep",
    "water_litres",
]
