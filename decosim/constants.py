"""
Process-wide physical constants shared by every decompression model.

All engines must agree on these values for side-by-side comparison to be
meaningful, so they live here as module-level read-only names rather than
per-instance fields.
"""

import math

# Sea-level ambient pressure (bar)
SURFACE_PRESSURE = 1.013

# Seawater pressure gradient (bar per meter)
PRESSURE_PER_METER = 0.1

# Alveolar water vapour pressure at 37 °C (bar)
WATER_VAPOR_PRESSURE = 0.0627

# Inert (nitrogen) fraction of surface air
SURFACE_N2_FRACTION = 0.79

# Decompression stop spacing (meters)
STOP_INCREMENT = 3.0

# Ascent rate used for time-to-surface estimates (m/min)
DEFAULT_ASCENT_RATE = 9.0

# Upper bound on a single stop (minutes)
MAX_STOP_TIME = 60

LN2 = math.log(2)

# Tolerance used when rounding depths onto the stop grid
_STOP_EPSILON = 1e-9


def ambient_pressure(depth: float) -> float:
    """Absolute pressure (bar) at a depth in meters of seawater."""
    return SURFACE_PRESSURE + depth * PRESSURE_PER_METER


def depth_from_pressure(pressure: float) -> float:
    """Depth in meters for an absolute pressure, floored at the surface."""
    return max(0.0, (pressure - SURFACE_PRESSURE) / PRESSURE_PER_METER)


def round_up_to_stop(depth: float) -> float:
    """Round a depth up to the next stop boundary (multiple of 3 m).

    Depths at or above the surface map to 0.0. The result is always built
    as an integer multiple of STOP_INCREMENT so stop depths compare exactly.
    """
    if depth <= 0:
        return 0.0
    steps = math.ceil(depth / STOP_INCREMENT - _STOP_EPSILON)
    return steps * STOP_INCREMENT


def surface_nitrogen_loading(water_vapor: bool = False) -> float:
    """Nitrogen tension of a tissue in equilibrium with surface air.

    Args:
        water_vapor: subtract alveolar water vapour before applying the
            nitrogen fraction (Navy-style initialisation)
    """
    pressure = SURFACE_PRESSURE
    if water_vapor:
        pressure -= WATER_VAPOR_PRESSURE
    return SURFACE_N2_FRACTION * pressure
