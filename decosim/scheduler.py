"""
Shared decompression stop scheduling.

Every engine plans its ascent the same way: start at the ceiling rounded up
to a 3 m boundary and step toward the surface, asking the engine how long to
dwell at each depth. Dwell callbacks are closed-form; no iteration.
"""

from dataclasses import dataclass
from typing import Callable, List

from .constants import STOP_INCREMENT, DEFAULT_ASCENT_RATE, round_up_to_stop
from .state import GasMix

# Slowest ascent rate accepted by time_to_surface (m/min)
ASCENT_RATE_FLOOR = 0.1


@dataclass(frozen=True)
class DecompressionStop:
    """A required hold: depth (m, multiple of 3), time (min, > 0), gas."""
    depth: float
    time: float
    gas_mix: GasMix


def plan_stops(
    ceiling: float,
    dwell: Callable[[float], float],
    gas_mix: GasMix,
) -> List[DecompressionStop]:
    """Build the stop list from the rounded ceiling down to the surface.

    Args:
        ceiling: current ceiling in meters
        dwell: returns the required minutes at a stop depth; called once per
            depth, deepest first, so it may carry state between calls
        gas_mix: gas breathed on every stop

    Returns:
        Stops with strictly decreasing depths; stops with dwell <= 0 are omitted.
    """
    stops = []
    steps = int(round(round_up_to_stop(ceiling) / STOP_INCREMENT))
    for k in range(steps, 0, -1):
        depth = k * STOP_INCREMENT
        minutes = dwell(depth)
        if minutes > 0:
            stops.append(DecompressionStop(depth=depth, time=minutes, gas_mix=gas_mix))
    return stops


def time_to_surface(
    depth: float, stops: List[DecompressionStop], ascent_rate: float = DEFAULT_ASCENT_RATE
) -> float:
    """Total ascent time in minutes: stop time plus travel at ascent_rate.

    Returns 0.0 at the surface.
    """
    if depth <= 0:
        return 0.0
    rate = max(ascent_rate, ASCENT_RATE_FLOOR)
    return sum(stop.time for stop in stops) + depth / rate
