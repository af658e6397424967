"""
Bubble-mechanics decompression model (VPM-B style).

Each compartment carries an adjusted critical radius for its bubble seeds.
Supersaturation grows the radius (up to twice its initial size) and
off-gassing lets it regenerate toward the initial value over two weeks. The
tolerated supersaturation is the Laplace pressure 2*gamma/r of the current
radius, reduced by a conservatism level.
"""

import copy
import logging
import math
from dataclasses import dataclass
from typing import List, Tuple

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
from .gradient import NUM_COMPARTMENTS, ZH_L16_HE_HALFTIMES, ZH_L16_N2_HALFTIMES
from .kinetics import blended_half_time, haldane, haldane_time_to
from .model import (
    check_time_step,
    clamp_option,
    restore_inert_loadings,
    snapshot,
    substep,
    whole_minutes,
)
from .scheduler import DecompressionStop, plan_stops, time_to_surface
from .state import DiveState, GasMix, SURFACE_STATE

logger = logging.getLogger(__name__)

# Surface tension of the bubble skin (N/m)
SURFACE_TENSION = 0.0179

# Initial critical radii (micrometers)
INITIAL_RADIUS_N2 = 0.55
INITIAL_RADIUS_HE = 0.45

# Seed regeneration time constant (minutes, 14 days)
REGENERATION_TIME = 20160.0

# Radius growth per bar of supersaturation per minute
RADIUS_GROWTH_RATE = 0.05

MAX_RADIUS_RATIO = 2.0

# Floor on any critical radius (micrometers)
MIN_CRITICAL_RADIUS = 0.01

# Critical volume parameter used for the bubble count estimate
CRITICAL_VOLUME_LAMBDA = 750.0

# Divisor applied to the allowable supersaturation per conservatism level
CONSERVATISM_SCALING = (1.0, 1.05, 1.12, 1.22, 1.35, 1.5)

# Smallest excess/allowable ratio used for the bubble radius
BUBBLE_RATIO_FLOOR = 0.001

# Pa -> bar, µm -> m
_PA_PER_BAR = 1e5
_M_PER_UM = 1e-6


def laplace_pressure(radius_um: float) -> float:
    """Pressure (bar) across a bubble skin of the given radius."""
    radius_um = max(radius_um, MIN_CRITICAL_RADIUS)
    return 2.0 * SURFACE_TENSION / (radius_um * _M_PER_UM) / _PA_PER_BAR


@dataclass
class VpmCompartment(TissueCompartment):
    """Compartment with bubble-seed radius state (micrometers)."""
    initial_radius: float = INITIAL_RADIUS_N2
    critical_radius: float = INITIAL_RADIUS_N2
    max_crushing_pressure: float = 0.0


class VpmBModel:
    """Varying-permeability bubble model.

    Args:
        conservatism: level 0-5; out-of-range values are clamped
    """

    kind = "vpmb"
    risk_units = "percent"

    def __init__(self, conservatism: int = 3):
        self.conservatism = self._clamp_conservatism(conservatism)
        self._state = SURFACE_STATE
        self._compartments: List[VpmCompartment] = []
        self.initialize_compartments()
        logger.debug(f"Created {self.get_model_name()}")

    @staticmethod
    def _clamp_conservatism(value) -> int:
        return int(round(clamp_option("conservatism", value, 0, 5, "VPM-B")))

    def get_model_name(self) -> str:
        return f"VPM-B+{self.conservatism}"

    def initialize_compartments(self) -> None:
        n2 = surface_nitrogen_loading()
        self._compartments = [
            VpmCompartment(
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

    def get_dive_state(self) -> DiveState:
        return self._state

    def get_tissue_compartments(self) -> Tuple[VpmCompartment, ...]:
        return snapshot(self._compartments)

    def get_compartment_data(self, number: int) -> VpmCompartment:
        return copy.copy(self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "VPM-B")])

    def get_parameters(self) -> dict:
        return {"conservatism": self.conservatism}

    def update_parameters(self, **changes) -> None:
        unknown = set(changes) - {"conservatism"}
        if unknown:
            raise ValueError(f"Unknown VPM-B parameter(s): {sorted(unknown)}")
        if "conservatism" in changes:
            self.conservatism = self._clamp_conservatism(changes["conservatism"])

    # --- kinetics ---

    @staticmethod
    def _advance(compartments: List[VpmCompartment], state: DiveState, dt: float) -> None:
        if dt <= 0:
            return
        pp_n2, pp_he, _ = state.partial_pressures()
        p_amb = state.ambient_pressure
        for c in compartments:
            remaining = dt
            while remaining > 0:
                h = substep(remaining, c.total_loading - p_amb)
                before = c.total_loading - p_amb
                c.nitrogen_loading = max(0.0, haldane(c.nitrogen_loading, pp_n2, c.nitrogen_half_time, h))
                c.helium_loading = max(0.0, haldane(c.helium_loading, pp_he, c.helium_half_time, h))
                after = c.total_loading - p_amb
                remaining -= h

                # Seeds relax toward the radius for the current gas blend
                he_share = c.helium_share
                c.initial_radius = INITIAL_RADIUS_N2 * (1.0 - he_share) + INITIAL_RADIUS_HE * he_share

                # Trapezoidal mean of the supersaturation over the step
                supersaturation = 0.5 * (max(0.0, before) + max(0.0, after))
                if supersaturation > 0:
                    exponent = min(RADIUS_GROWTH_RATE * supersaturation * h, math.log(MAX_RADIUS_RATIO) + 1.0)
                    grown = c.critical_radius * math.exp(exponent)
                    c.critical_radius = min(grown, c.initial_radius * MAX_RADIUS_RATIO)
                else:
                    c.max_crushing_pressure = max(c.max_crushing_pressure, -before, -after)
                    decay = math.exp(-h / REGENERATION_TIME)
                    c.critical_radius = c.initial_radius + (c.critical_radius - c.initial_radius) * decay
                c.critical_radius = max(MIN_CRITICAL_RADIUS, c.critical_radius)

    def advance_loadings(self, dt: float) -> None:
        check_time_step(dt)
        self._advance(self._compartments, self._state, dt)

    # --- ceiling ---

    def _allowable(self, c: VpmCompartment) -> float:
        return laplace_pressure(c.critical_radius) / CONSERVATISM_SCALING[self.conservatism]

    def _ceiling(self, compartments: List[VpmCompartment]) -> float:
        deepest = 0.0
        for c in compartments:
            deepest = max(deepest, depth_from_pressure(c.total_loading - self._allowable(c)))
        return round_up_to_stop(deepest)

    def get_allowable_supersaturation(self, number: int) -> float:
        """Tolerated supersaturation (bar) of a compartment at its current radius."""
        idx = check_compartment_number(number, NUM_COMPARTMENTS, "VPM-B")
        return self._allowable(self._compartments[idx])

    def compute_ceiling(self) -> float:
        """Deepest depth at which loading minus allowable supersaturation sits, in 3 m steps."""
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
                half_time = blended_half_time(
                    c.nitrogen_loading, c.helium_loading,
                    c.nitrogen_half_time, c.helium_half_time,
                )
                target = p_next + self._allowable(c)
                needed = max(needed, haldane_time_to(c.total_loading, inspired, target, half_time))
            minutes = whole_minutes(needed, MAX_STOP_TIME)
            if minutes > 0:
                self._advance(work, DiveState(depth=depth, gas_mix=gas), minutes)
            return minutes

        return plan_stops(self._ceiling(work), dwell, gas)

    def compute_tts(self, ascent_rate: float = DEFAULT_ASCENT_RATE) -> float:
        return time_to_surface(self._state.depth, self.compute_stops(), ascent_rate)

    # --- bubbles and risk ---

    def calculate_bubble_count(self, number: int) -> int:
        """Estimated bubble count of a compartment, for display only.

        The bubble radius scales the critical radius by the cube root of
        excess pressure over the Laplace pressure; the critical volume
        constant divided by one bubble's volume gives the count.
        """
        c = self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "VPM-B")]
        excess = c.total_loading - self._state.ambient_pressure
        if excess <= 0:
            return 0
        ratio = max(excess / laplace_pressure(c.critical_radius), BUBBLE_RATIO_FLOOR)
        bubble_radius = c.critical_radius * ratio ** (1.0 / 3.0)
        bubble_volume = 4.0 / 3.0 * math.pi * bubble_radius ** 3
        return int(CRITICAL_VOLUME_LAMBDA / bubble_volume)

    def compute_dcs_risk(self) -> float:
        """Risk percent: min(100, ratio^2 * 50) of supersaturation to allowable."""
        p = self._state.ambient_pressure
        worst = 0.0
        for c in self._compartments:
            supersaturation = c.total_loading - p
            if supersaturation > 0:
                worst = max(worst, supersaturation / self._allowable(c))
        return round(min(100.0, worst ** 2 * 50.0), 1)

    def restore_loadings(self, compartments) -> None:
        restore_inert_loadings(self._compartments, compartments)

    def reset(self) -> None:
        self.initialize_compartments()
        self._state = SURFACE_STATE
        logger.debug(f"{self.get_model_name()} reset to surface")
