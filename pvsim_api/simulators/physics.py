"""Clear-sky PV plant model for the simulated dashboard.

Converts a fractional hour of day into irradiance, ambient and module
temperature, and AC output for a plant of a given rated capacity.  Every
function here is pure: no randomness, no I/O.

Model
-----

1.  **Irradiance** follows a single half-sine hump between sunrise and
    sunset, peaking at solar noon:

        G(h) = G_max × sin(π × (h − sunrise) / (sunset − sunrise))

    and is zero outside ``[sunrise, sunset]``.

2.  **Ambient temperature** is a 24-hour sinusoid between 10 °C and 30 °C:

        T_amb(h) = 20 + 10 × sin(2π/24 × h − π/2)

3.  **Module temperature** uses the linear NOCT approximation:

        T_mod = T_amb + (NOCT − 20) × G / 800

4.  **AC power** scales the rated capacity by irradiance, a fixed derate and
    a linear temperature coefficient about the 25 °C STC reference, then
    applies inverter efficiency:

        P_dc = P_rated × (G / 1000) × derate × (1 + γ × (T_mod − 25))
        P_ac = min(max(0, P_dc × η_inv), P_rated)
"""

from __future__ import annotations

import math

from pvsim_lib.constants import (
    DERATE,
    G_MAX,
    G_STC,
    HOURS_IN_DAY,
    INVERTER_EFFICIENCY,
    NOCT,
    SUNRISE_HOUR,
    SUNSET_HOUR,
    T_STC,
    TEMP_COEFFICIENT,
)
from pvsim_lib.types import PhysicsPoint


def irradiance(
    hour: float,
    sunrise: float = SUNRISE_HOUR,
    sunset: float = SUNSET_HOUR,
    g_max: float = G_MAX,
) -> float:
    """Plane irradiance (W/m²) at fractional *hour* of the day."""
    if hour < sunrise or hour > sunset:
        return 0.0
    x = (hour - sunrise) / (sunset - sunrise)  # 0..1 across daylight
    return max(0.0, g_max * math.sin(math.pi * x))


def ambient_temp(hour: float) -> float:
    """Ambient air temperature (°C) at fractional *hour* of the day."""
    return 20.0 + 10.0 * math.sin((2.0 * math.pi / HOURS_IN_DAY) * hour - math.pi / 2.0)


def module_temp(ambient: float, irradiance_wm2: float, noct: float = NOCT) -> float:
    """Estimate module temperature (°C) using the NOCT approximation."""
    return ambient + (noct - 20.0) * (irradiance_wm2 / 800.0)


def ac_power_kw(
    capacity_kw: float,
    irradiance_wm2: float,
    temp_coeff: float = TEMP_COEFFICIENT,
    module_temp_c: float = T_STC,
    derate: float = DERATE,
    inverter_eff: float = INVERTER_EFFICIENCY,
) -> float:
    """AC output (kW) of a plant rated at *capacity_kw*.

    1000 W/m² is treated as full capacity and output scales linearly below
    it.  The result is clipped to ``[0, capacity_kw]``.

    Args:
        capacity_kw:    Rated AC capacity of the site (kW).
        irradiance_wm2: Plane irradiance (W/m²).
        temp_coeff:     Power temperature coefficient (per °C).
        module_temp_c:  Module temperature (°C).
        derate:         Fractional system losses before the inverter.
        inverter_eff:   Inverter conversion efficiency.

    Returns:
        AC power in kW.
    """
    g_factor = irradiance_wm2 / G_STC
    temp_factor = 1.0 + temp_coeff * (module_temp_c - T_STC)
    p_dc_kw = capacity_kw * g_factor * derate * temp_factor
    p_ac_kw = max(0.0, p_dc_kw * inverter_eff)
    return min(p_ac_kw, capacity_kw)


def site_physics(capacity_kw: float, hour: float) -> PhysicsPoint:
    """Evaluate the whole model for one instant."""
    g = irradiance(hour)
    t_amb = ambient_temp(hour)
    t_mod = module_temp(t_amb, g)
    return PhysicsPoint(
        irradiance=g,
        ambient_temp=t_amb,
        module_temp=t_mod,
        power_kw=ac_power_kw(capacity_kw, g, module_temp_c=t_mod),
    )
