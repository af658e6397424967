"""
NMRI98 linear-exponential model with oxygen tracking and hazard accumulation.

Three compartments take up inert gas exponentially and, while strongly
supersaturated, eliminate it linearly. Oxygen tension is tracked as an extra
contribution above per-compartment thresholds. Excess loading over the
allowable supersaturation accumulates as hazard; risk follows the survival
function P = 1 - exp(-hazard * scale).
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
    SURFACE_PRESSURE,
    ambient_pressure,
    depth_from_pressure,
    round_up_to_stop,
    surface_nitrogen_loading,
)
from .kinetics import blended_half_time, haldane, haldane_time_to, linear_exponential
from .model import (
    check_time_step,
    clamp_option,
    restore_inert_loadings,
    snapshot,
    whole_minutes,
)
from .scheduler import DecompressionStop, plan_stops, time_to_surface
from .state import DiveState, GasMix, SURFACE_STATE

logger = logging.getLogger(__name__)

NUM_COMPARTMENTS = 3

NMRI_N2_HALFTIMES = (8.0, 40.0, 120.0)
NMRI_HE_HALFTIMES = (3.0, 15.1, 45.3)
NMRI_O2_HALFTIMES = (6.0, 30.0, 90.0)
NMRI_M_VALUES = (1.6, 1.2, 1.0)
NMRI_LINEAR_SLOPES = (0.8, 0.5, 0.3)
NMRI_CROSSOVER = (0.5, 0.3, 0.2)
NMRI_O2_THRESHOLDS = (1.4, 1.0, 0.8)

# Weight of oxygen tension above threshold in the effective loading
OXYGEN_WEIGHT = 0.5

# Hazard accrued per minute per unit of excess/allowable
HAZARD_RATE = 0.005

# Smallest allowable supersaturation (bar)
ALLOWABLE_FLOOR = 0.01

SURFACE_O2_LOADING = 0.21 * SURFACE_PRESSURE


@dataclass
class NmriCompartment(TissueCompartment):
    """Linear-exponential compartment with oxygen and hazard state."""
    oxygen_half_time: float = 6.0
    oxygen_loading: float = SURFACE_O2_LOADING
    m_value: float = 1.6
    linear_slope: float = 0.8
    crossover_pressure: float = 0.5
    oxygen_threshold: float = 1.4
    accumulated_hazard: float = 0.0


class Nmri98Model:
    """NMRI98 linear-exponential model.

    Args:
        conservatism: level 0-5, clamped
        max_dcs_risk: risk scale percent, clamped to 0.1-10
        safety_factor: divisor on the allowable supersaturation, clamped to 1-2
        enable_oxygen_tracking: include oxygen tension in loading and hazard
    """

    kind = "nmri98"
    risk_units = "percent"

    def __init__(
        self,
        conservatism: int = 3,
        max_dcs_risk: float = 2.0,
        safety_factor: float = 1.2,
        enable_oxygen_tracking: bool = True,
    ):
        self.conservatism = 0
        self.max_dcs_risk = 2.0
        self.safety_factor = 1.2
        self.enable_oxygen_tracking = True
        self.update_parameters(
            conservatism=conservatism,
            max_dcs_risk=max_dcs_risk,
            safety_factor=safety_factor,
            enable_oxygen_tracking=enable_oxygen_tracking,
        )
        self._state = SURFACE_STATE
        self._compartments: List[NmriCompartment] = []
        self.initialize_compartments()
        logger.debug(f"Created {self.get_model_name()}")

    def get_model_name(self) -> str:
        return f"NMRI98 LEM (Conservatism: {self.conservatism}, Risk: {self.max_dcs_risk:.1f}%)"

    def initialize_compartments(self) -> None:
        n2 = surface_nitrogen_loading()
        self._compartments = [
            NmriCompartment(
                number=i + 1,
                nitrogen_half_time=NMRI_N2_HALFTIMES[i],
                helium_half_time=NMRI_HE_HALFTIMES[i],
                nitrogen_loading=n2,
                helium_loading=0.0,
                oxygen_half_time=NMRI_O2_HALFTIMES[i],
                oxygen_loading=SURFACE_O2_LOADING,
                m_value=NMRI_M_VALUES[i],
                linear_slope=NMRI_LINEAR_SLOPES[i],
                crossover_pressure=NMRI_CROSSOVER[i],
                oxygen_threshold=NMRI_O2_THRESHOLDS[i],
            )
            for i in range(NUM_COMPARTMENTS)
        ]

    def update_dive_state(self, depth: float = None, time: float = None, gas_mix: GasMix = None) -> None:
        self._state = self._state.merged(depth=depth, time=time, gas_mix=gas_mix)

    def get_dive_state(self) -> DiveState:
        return self._state

    def get_tissue_compartments(self) -> Tuple[NmriCompartment, ...]:
        return snapshot(self._compartments)

    def get_compartment_data(self, number: int) -> NmriCompartment:
        return copy.copy(self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "NMRI98")])

    # --- parameters ---

    def get_parameters(self) -> dict:
        return {
            "conservatism": self.conservatism,
            "max_dcs_risk": self.max_dcs_risk,
            "safety_factor": self.safety_factor,
            "enable_oxygen_tracking": self.enable_oxygen_tracking,
        }

    def update_parameters(self, **changes) -> None:
        """Apply new options; numeric values are clamped into range."""
        unknown = set(changes) - set(self.get_parameters())
        if unknown:
            raise ValueError(f"Unknown NMRI98 parameter(s): {sorted(unknown)}")
        if "conservatism" in changes:
            self.conservatism = int(round(clamp_option("conservatism", changes["conservatism"], 0, 5, "NMRI98")))
        if "max_dcs_risk" in changes:
            self.max_dcs_risk = float(clamp_option("max_dcs_risk", changes["max_dcs_risk"], 0.1, 10.0, "NMRI98"))
        if "safety_factor" in changes:
            self.safety_factor = float(clamp_option("safety_factor", changes["safety_factor"], 1.0, 2.0, "NMRI98"))
        if "enable_oxygen_tracking" in changes:
            self.enable_oxygen_tracking = bool(changes["enable_oxygen_tracking"])

    # --- kinetics ---

    def _allowable(self, c: NmriCompartment) -> float:
        return max(ALLOWABLE_FLOOR, c.m_value * (1.0 - 0.1 * self.conservatism) / self.safety_factor)

    def _oxygen_contribution(self, c: NmriCompartment) -> float:
        if not self.enable_oxygen_tracking or c.oxygen_loading <= c.oxygen_threshold:
            return 0.0
        return (c.oxygen_loading - c.oxygen_threshold) * OXYGEN_WEIGHT

    def _effective_loading(self, c: NmriCompartment) -> float:
        return c.total_loading + self._oxygen_contribution(c)

    def _advance(self, compartments: List[NmriCompartment], state: DiveState, dt: float) -> None:
        pp_n2, pp_he, pp_o2 = state.partial_pressures()
        p_amb = state.ambient_pressure
        for c in compartments:
            c.nitrogen_loading = linear_exponential(
                c.nitrogen_loading, pp_n2, p_amb, c.nitrogen_half_time,
                c.linear_slope, c.crossover_pressure, dt,
            )
            c.helium_loading = linear_exponential(
                c.helium_loading, pp_he, p_amb, c.helium_half_time,
                c.linear_slope, c.crossover_pressure, dt,
            )
            if self.enable_oxygen_tracking:
                c.oxygen_loading = max(0.0, haldane(c.oxygen_loading, pp_o2, c.oxygen_half_time, dt))

            allowable = self._allowable(c)
            excess = self._effective_loading(c) - (p_amb + allowable)
            if excess > 0:
                c.accumulated_hazard += HAZARD_RATE * excess / allowable * dt
            else:
                c.accumulated_hazard = 0.0

    def advance_loadings(self, dt: float) -> None:
        check_time_step(dt)
        self._advance(self._compartments, self._state, dt)

    # --- ceiling, stops, risk ---

    def _ceiling(self, compartments: List[NmriCompartment]) -> float:
        deepest = 0.0
        for c in compartments:
            ceil_p = self._effective_loading(c) - self._allowable(c)
            deepest = max(deepest, depth_from_pressure(ceil_p))
        return round_up_to_stop(deepest)

    def compute_ceiling(self) -> float:
        return self._ceiling(self._compartments)

    def can_ascend_directly(self) -> bool:
        return self.compute_ceiling() <= 0

    def compute_stops(self) -> List[DecompressionStop]:
        """Stops using an exponential estimate of each dwell.

        The private copy is then advanced with the full linear-exponential
        rule, so a stop that eliminates faster than estimated shortens the
        next one.
        """
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
                target = p_next + self._allowable(c) - self._oxygen_contribution(c)
                needed = max(needed, haldane_time_to(c.total_loading, inspired, target, half_time))
            minutes = whole_minutes(needed, MAX_STOP_TIME)
            if minutes > 0:
                self._advance(work, DiveState(depth=depth, gas_mix=gas), minutes)
            return minutes

        return plan_stops(self._ceiling(work), dwell, gas)

    def compute_tts(self, ascent_rate: float = DEFAULT_ASCENT_RATE) -> float:
        return time_to_surface(self._state.depth, self.compute_stops(), ascent_rate)

    def get_max_hazard(self) -> float:
        return max(c.accumulated_hazard for c in self._compartments)

    def compute_dcs_risk(self) -> float:
        """Survival-function risk percent.

        risk = (1 - exp(-H_max * max_dcs_risk / 2)) * (1 + 0.05 * conservatism) * 100
        """
        scaled = self.get_max_hazard() * (self.max_dcs_risk / 2.0)
        probability = 1.0 - math.exp(-scaled)
        risk = probability * (1.0 + 0.05 * self.conservatism) * 100.0
        return round(min(100.0, risk), 1)

    def get_model_status(self) -> dict:
        """Summary of the current model outputs for display."""
        return {
            "model": self.get_model_name(),
            "depth": self._state.depth,
            "ceiling": self.compute_ceiling(),
            "dcs_risk": self.compute_dcs_risk(),
            "max_hazard": self.get_max_hazard(),
            "can_ascend_directly": self.can_ascend_directly(),
            "oxygen_tracking": self.enable_oxygen_tracking,
            "parameters": self.get_parameters(),
        }

    def restore_loadings(self, compartments) -> None:
        restore_inert_loadings(self._compartments, compartments)

    def reset(self) -> None:
        """Surface equilibrium, time zero, all accumulated hazard cleared."""
        self.initialize_compartments()
        self._state = SURFACE_STATE
        logger.debug(f"{self.get_model_name()} reset to surface")
