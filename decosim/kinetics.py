"""
Gas-exchange building blocks shared by the engines.

The exponential Haldane update is the baseline for every model; the inverse
form gives closed-form stop times, and the linear-exponential variant covers
the Thalmann-style models. All functions are pure.
"""

import math
from typing import Sequence

import numpy as np

from .constants import LN2

# Shortest half-time accepted by the rate formulas (minutes)
HALF_TIME_FLOOR = 1e-6

# Smallest linear elimination rate (bar/min) before falling back to exponential
LINEAR_RATE_FLOOR = 1e-9


def haldane(loading: float, partial_pressure: float, half_time: float, dt: float) -> float:
    """Exponential Haldane update over dt minutes.

    new = pp + (old - pp) * exp(-ln2 * dt / half_time)
    """
    if dt <= 0:
        return loading
    k = LN2 / max(half_time, HALF_TIME_FLOOR)
    return partial_pressure + (loading - partial_pressure) * math.exp(-k * dt)


def haldane_vec(
    loadings: np.ndarray, partial_pressure, half_times: np.ndarray, dt: float
) -> np.ndarray:
    """Vectorized Haldane update across compartments.

    Args:
        loadings: current tensions, shape (n,)
        partial_pressure: inspired pressure, scalar or shape (n,)
        half_times: half-times in minutes, shape (n,)
        dt: time step in minutes
    """
    if dt <= 0:
        return np.asarray(loadings, dtype=float).copy()
    k = LN2 / np.maximum(np.asarray(half_times, dtype=float), HALF_TIME_FLOOR)
    return partial_pressure + (loadings - partial_pressure) * np.exp(-k * dt)


def haldane_time_to(
    loading: float, partial_pressure: float, target: float, half_time: float
) -> float:
    """Minutes of exposure to partial_pressure until loading reaches target.

    Returns 0.0 if the target is already met and math.inf if the inspired
    pressure makes the target unreachable.
    """
    if loading <= target:
        return 0.0
    if partial_pressure >= target:
        return math.inf
    k = LN2 / max(half_time, HALF_TIME_FLOOR)
    return -math.log((target - partial_pressure) / (loading - partial_pressure)) / k


def blended_half_time(
    nitrogen_loading: float,
    helium_loading: float,
    nitrogen_half_time: float,
    helium_half_time: float,
) -> float:
    """Loading-weighted half-time used when inverting a two-gas compartment."""
    total = nitrogen_loading + helium_loading
    if total <= 0:
        return nitrogen_half_time
    return (nitrogen_loading * nitrogen_half_time + helium_loading * helium_half_time) / total


def linear_exponential(
    loading: float,
    partial_pressure: float,
    ambient: float,
    half_time: float,
    slope: float,
    crossover: float,
    dt: float,
) -> float:
    """Linear-exponential (Thalmann) update for a single gas.

    Uptake is always exponential. While the gas is supersaturated against
    ambient pressure by more than the crossover, it is eliminated at a
    linear rate slope * (ss - crossover) / half_time until the crossover
    tension is reached; any time left in the step is exponential.
    """
    if dt <= 0:
        return loading
    if partial_pressure >= loading:
        return haldane(loading, partial_pressure, half_time, dt)

    supersaturation = loading - ambient
    if supersaturation <= crossover:
        return haldane(loading, partial_pressure, half_time, dt)

    rate = slope * (supersaturation - crossover) / max(half_time, HALF_TIME_FLOOR)
    if rate <= LINEAR_RATE_FLOOR:
        return haldane(loading, partial_pressure, half_time, dt)

    crossover_loading = max(ambient + crossover, partial_pressure, 0.0)
    linear_time = (loading - crossover_loading) / rate
    if dt <= linear_time:
        return max(0.0, loading - rate * dt)
    return haldane(crossover_loading, partial_pressure, half_time, dt - linear_time)


def combine_independent(probabilities: Sequence[float], weights: Sequence[float]) -> float:
    """Combine weighted per-compartment probabilities as independent events.

    P_total = 1 - prod(1 - p_i * w_i)
    """
    p = np.clip(np.asarray(probabilities, dtype=float) * np.asarray(weights, dtype=float), 0.0, 1.0)
    return float(1.0 - np.prod(1.0 - p))
