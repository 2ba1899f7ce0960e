"""Physical constants used by the superdroplet engine.

Values are in SI units.  The molar masses and gas constants follow the
moist-air conventions common in cloud microphysics; the universal gas
constant is the CODATA 2018 value.
"""
from __future__ import annotations

# Universal gas constant (J mol^-1 K^-1)
R_GAS: float = 8.314462618

# Molar masses (kg mol^-1)
M_D: float = 0.02896
M_V: float = 0.01802
M_SO2: float = 0.064066
M_O3: float = 0.047998
M_H2O2: float = 0.034015

# Specific gas constants (J kg^-1 K^-1)
R_D: float = R_GAS / M_D
R_V: float = R_GAS / M_V

# Specific heat of dry air at constant pressure (J kg^-1 K^-1)
C_PD: float = 1005.0

# Latent heat of vaporisation (J kg^-1)
L_V: float = 2.5e6

# Reference pressure for potential temperature (Pa)
P_1000: float = 1.0e5

# Triple point of water
T_TRI: float = 273.16  # K
P_TRI: float = 611.73  # Pa

# Liquid water
RHO_W: float = 1000.0  # kg m^-3
SIGMA_W: float = 0.072  # N m^-1, surface tension

# Dynamic viscosity of air (Pa s)
ETA_AIR: float = 1.72e-5

# Gravitational acceleration (m s^-2)
G: float = 9.81

# Standard atmosphere (Pa)
P_STP: float = 101325.0

FOUR_THIRDS_PI: float = 4.0 / 3.0 * 3.141592653589793
