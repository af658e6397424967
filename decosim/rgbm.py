"""
Reduced-gradient bubble model, folded onto the Bühlmann M-value structure.

Dissolved gas follows ZH-L16C kinetics. Each compartment also tracks a
bubble seed count that grows under supersaturation and dissolves back to a
base level. An f-factor between 0.6 and 1.0 shrinks the tolerated
supersaturation for conservatism, maximum depth and the seed density of
each compartment; an optional repetitive-dive penalty raises reported risk.

The folded limit is written in gradient-factor form, P + f * (M(P) - P),
rather than by scaling the a and b coefficients directly; f = 1 gives the
plain ZH-L16C M-value either way.
"""

import copy
import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .compartments import TissueCompartment, check_compartment_number
from .constants import (
    DEFAULT_ASCENT_RATE,
    MAX_STOP_TIME,
    STOP_INCREMENT,
    ambient_pressure,
    depth_from_pressure,
    round_up_to_stop,
    surface_nitrogen_loading,
)
from .gradient import (
    NUM_COMPARTMENTS,
    ZH_L16_HE_HALFTIMES,
    ZH_L16_N2_HALFTIMES,
    blended_coefficients,
    ceiling_pressure_gf,
    m_value,
    m_value_gf,
)
from .kinetics import blended_half_time, haldane_time_to, haldane_vec
from .model import (
    check_time_step,
    require_range,
    restore_inert_loadings,
    snapshot,
    substep,
    whole_minutes,
)
from .scheduler import DecompressionStop, plan_stops, time_to_surface
from .state import DiveState, GasMix, SURFACE_STATE

logger = logging.getLogger(__name__)

BASE_SEED_COUNT = 1000.0
MAX_SEED_RATIO = 10.0
# Seeds formed per bar of supersaturation per minute
SEED_FORMATION_RATE = 0.85
# Fraction of excess seeds dissolving per minute
SEED_DISSOLUTION_RATE = 0.01
# Bubble volume contributed by each seed above base
SEED_VOLUME = 0.001

F_FACTOR_MIN = 0.6
F_FACTOR_MAX = 1.0

# Surface intervals at or beyond this carry no penalty (hours)
REPETITIVE_THRESHOLD_HOURS = 6.0
MAX_REPETITIVE_PENALTY = 0.3
RISK_SCALE = 45.0

# Smallest allowed supersaturation gradient used as a risk denominator (bar)
GRADIENT_FLOOR = 1e-6


@dataclass
class RgbmCompartment(TissueCompartment):
    """ZH-L16C compartment with bubble seed state."""
    seed_count: float = BASE_SEED_COUNT

    @property
    def seed_ratio(self) -> float:
        return self.seed_count / BASE_SEED_COUNT


class RgbmModel:
    """Folded RGBM.

    Args:
        conservatism: level 0-5
        enable_repetitive_penalty: apply the repetitive-dive risk penalty

    Raises:
        ValueError: if conservatism is outside 0-5
    """

    kind = "rgbm"
    risk_units = "percent"

    def __init__(self, conservatism: int = 2, enable_repetitive_penalty: bool = True):
        self.conservatism = self._validate_conservatism(conservatism)
        self.enable_repetitive_penalty = bool(enable_repetitive_penalty)
        self.dive_count = 1
        self.surface_interval_hours = 0.0
        self.max_depth = 0.0
        self._state = SURFACE_STATE
        self._compartments: List[RgbmCompartment] = []
        self.initialize_compartments()
        logger.debug(f"Created {self.get_model_name()}")

    @staticmethod
    def _validate_conservatism(value) -> int:
        require_range("conservatism", value, 0, 5, "RGBM conservatism must be between 0 and 5")
        return int(round(value))

    def get_model_name(self) -> str:
        return f"RGBM (folded) - C{self.conservatism}"

    def initialize_compartments(self) -> None:
        n2 = surface_nitrogen_loading()
        self._compartments = [
            RgbmCompartment(
                number=i + 1,
                nitrogen_half_time=ZH_L16_N2_HALFTIMES[i],
                helium_half_time=ZH_L16_HE_HALFTIMES[i],
                nitrogen_loading=n2,
                helium_loading=0.0,
            )
            for i in range(NUM_COMPARTMENTS)
        ]

    def update_dive_state(self, depth: float = None, time: float = None, gas_mix: GasMix = None) -> None:
        self._state = self._state.merged(depth=depth, time=time, gas_mix=gas_mix)
        self.max_depth = max(self.max_depth, self._state.depth)

    def get_dive_state(self) -> DiveState:
        return self._state

    def get_tissue_compartments(self) -> Tuple[RgbmCompartment, ...]:
        return snapshot(self._compartments)

    def get_compartment_data(self, number: int) -> RgbmCompartment:
        return copy.copy(self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "RGBM")])

    # --- parameters ---

    def get_parameters(self) -> dict:
        return {
            "conservatism": self.conservatism,
            "enable_repetitive_penalty": self.enable_repetitive_penalty,
        }

    def update_parameters(self, **changes) -> None:
        unknown = set(changes) - set(self.get_parameters())
        if unknown:
            raise ValueError(f"Unknown RGBM parameter(s): {sorted(unknown)}")
        if "conservatism" in changes:
            self.conservatism = self._validate_conservatism(changes["conservatism"])
        if "enable_repetitive_penalty" in changes:
            self.enable_repetitive_penalty = bool(changes["enable_repetitive_penalty"])

    def set_repetitive_dive_params(self, dive_count: int, surface_interval_hours: float) -> None:
        """Declare this dive's place in a series.

        Args:
            dive_count: 1 for the first dive of the series
            surface_interval_hours: time since the previous dive

        Raises:
            ValueError: if dive_count < 1 or surface_interval_hours < 0
        """
        if dive_count < 1:
            raise ValueError(f"dive_count must be >= 1, got {dive_count}")
        if surface_interval_hours < 0:
            raise ValueError(f"surface_interval_hours must be >= 0, got {surface_interval_hours}")
        self.dive_count = int(dive_count)
        self.surface_interval_hours = float(surface_interval_hours)

    def get_repetitive_penalty(self) -> float:
        """Fractional risk increase for a short surface interval, 0-0.3."""
        if not self.enable_repetitive_penalty or self.dive_count <= 1:
            return 0.0
        if self.surface_interval_hours >= REPETITIVE_THRESHOLD_HOURS:
            return 0.0
        recency = 1.0 - self.surface_interval_hours / REPETITIVE_THRESHOLD_HOURS
        return min(MAX_REPETITIVE_PENALTY, (self.dive_count - 1) * 0.1 * recency)

    # --- kinetics ---

    @staticmethod
    def _advance(compartments: List[RgbmCompartment], state: DiveState, dt: float) -> None:
        pp_n2, pp_he, _ = state.partial_pressures()
        p_amb = state.ambient_pressure
        n2 = np.array([c.nitrogen_loading for c in compartments])
        he = np.array([c.helium_loading for c in compartments])
        n2_half_times = np.array([c.nitrogen_half_time for c in compartments])
        he_half_times = np.array([c.helium_half_time for c in compartments])
        seeds = np.array([c.seed_count for c in compartments])

        remaining = dt
        while remaining > 0:
            before = n2 + he - p_amb
            h = substep(remaining, float(np.max(before)))
            n2 = np.maximum(0.0, haldane_vec(n2, pp_n2, n2_half_times, h))
            he = np.maximum(0.0, haldane_vec(he, pp_he, he_half_times, h))
            after = n2 + he - p_amb
            remaining -= h

            # Seeds form on the step-mean supersaturation, else dissolve toward base
            supersaturation = 0.5 * (np.maximum(0.0, before) + np.maximum(0.0, after))
            dissolved = BASE_SEED_COUNT + (seeds - BASE_SEED_COUNT) * math.exp(-SEED_DISSOLUTION_RATE * h)
            seeds = np.where(supersaturation > 0, seeds + supersaturation * SEED_FORMATION_RATE * h, dissolved)
            seeds = np.clip(seeds, BASE_SEED_COUNT, BASE_SEED_COUNT * MAX_SEED_RATIO)

        for c, n2_p, he_p, seed_count in zip(compartments, n2, he, seeds):
            c.nitrogen_loading = float(n2_p)
            c.helium_loading = float(he_p)
            c.seed_count = float(seed_count)

    def advance_loadings(self, dt: float) -> None:
        check_time_step(dt)
        self.max_depth = max(self.max_depth, self._state.depth)
        self._advance(self._compartments, self._state, dt)

    # --- f-factor and ceiling ---

    def _f_factor(self, c: RgbmCompartment) -> float:
        """f for one compartment from its own seed density."""
        conservatism_term = 1.0 - 0.05 * self.conservatism
        bubble_term = max(0.7, 1.0 - (c.seed_ratio - 1.0) * 0.1)
        depth_term = max(0.8, 1.0 - self.max_depth / 100.0 * 0.1)
        f = conservatism_term * bubble_term * depth_term
        return min(F_FACTOR_MAX, max(F_FACTOR_MIN, f))

    def get_f_factor(self, number: int = None) -> float:
        """f of one compartment, or the smallest across all compartments."""
        if number is not None:
            return self._f_factor(self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "RGBM")])
        return min(self._f_factor(c) for c in self._compartments)

    def get_total_bubble_volume(self) -> float:
        """Seed excess over base across all compartments, in volume units."""
        return sum(max(0.0, c.seed_count - BASE_SEED_COUNT) * SEED_VOLUME for c in self._compartments)

    def _ceiling(self, compartments: List[RgbmCompartment]) -> float:
        deepest = 0.0
        for c in compartments:
            a, b = blended_coefficients(c.number - 1, c.nitrogen_loading, c.helium_loading)
            f = self._f_factor(c)
            deepest = max(deepest, depth_from_pressure(ceiling_pressure_gf(a, b, c.total_loading, f)))
        return round_up_to_stop(deepest)

    def compute_ceiling(self) -> float:
        """Ceiling against each compartment's folded M-value P + f * (M(P) - P)."""
        return self._ceiling(self._compartments)

    def can_ascend_directly(self) -> bool:
        return self.compute_ceiling() <= 0

    def compute_stops(self) -> List[DecompressionStop]:
        work = [copy.copy(c) for c in self._compartments]
        gas = self._state.gas_mix

        def dwell(depth: float) -> int:
            p_next = ambient_pressure(depth - STOP_INCREMENT)
            inspired = (gas.nitrogen + gas.helium) * ambient_pressure(depth)
            needed = 0.0
            for c in work:
                a, b = blended_coefficients(c.number - 1, c.nitrogen_loading, c.helium_loading)
                half_time = blended_half_time(
                    c.nitrogen_loading, c.helium_loading,
                    c.nitrogen_half_time, c.helium_half_time,
                )
                target = m_value_gf(a, b, p_next, self._f_factor(c))
                needed = max(needed, haldane_time_to(c.total_loading, inspired, target, half_time))
            minutes = whole_minutes(needed, MAX_STOP_TIME)
            if minutes > 0:
                self._advance(work, DiveState(depth=depth, gas_mix=gas), minutes)
            return minutes

        return plan_stops(self._ceiling(work), dwell, gas)

    def compute_tts(self, ascent_rate: float = DEFAULT_ASCENT_RATE) -> float:
        return time_to_surface(self._state.depth, self.compute_stops(), ascent_rate)

    # --- risk ---

    def compute_dcs_risk(self) -> float:
        """Risk percent: min(100, r^2 * 45 * (1 + penalty)).

        r is the worst supersaturation over the folded gradient, raised by
        10% per unit of seed ratio.
        """
        p = self._state.ambient_pressure
        worst = 0.0
        for c in self._compartments:
            supersaturation = c.total_loading - p
            if supersaturation <= 0:
                continue
            a, b = blended_coefficients(c.number - 1, c.nitrogen_loading, c.helium_loading)
            allowed = max(self._f_factor(c) * (m_value(a, b, p) - p), GRADIENT_FLOOR)
            worst = max(worst, supersaturation / allowed * (1.0 + c.seed_ratio * 0.1))
        risk = worst ** 2 * RISK_SCALE * (1.0 + self.get_repetitive_penalty())
        return round(min(100.0, risk), 1)

    def restore_loadings(self, compartments) -> None:
        restore_inert_loadings(self._compartments, compartments)

    def reset(self) -> None:
        """Surface equilibrium on air at time zero, seeds and max depth cleared.

        Repetitive-dive settings are configuration and survive a reset.
        """
        self.initialize_compartments()
        self.max_depth = 0.0
        self._state = SURFACE_STATE
        logger.debug(f"{self.get_model_name()} reset to surface")
