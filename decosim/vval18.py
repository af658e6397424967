"""
VVal-18 Thalmann linear-exponential model with gradient factors.

Three Navy-style compartments use the shared linear-exponential kinetics.
Each has an M-value line expressed as a tolerated gradient above ambient
that widens with depth; gradient factors are interpolated between the first
stop and the surface, and the tolerated gradient is scaled to a design risk.
"""

import copy
import logging
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
from .gradient import GradientFactors, gf_at_depth
from .kinetics import blended_half_time, haldane_time_to, linear_exponential
from .model import (
    check_time_step,
    clamp_option,
    require_range,
    restore_inert_loadings,
    snapshot,
    whole_minutes,
)
from .scheduler import DecompressionStop, plan_stops, time_to_surface
from .state import DiveState, GasMix, SURFACE_STATE

logger = logging.getLogger(__name__)

NUM_COMPARTMENTS = 3

VVAL_N2_HALFTIMES = (1.5, 51.0, 488.0)
VVAL_HE_HALFTIMES = (0.57, 19.2, 184.2)
# Tolerated gradient above ambient at the surface (bar)
VVAL_M_VALUES = (1.6, 1.35, 1.2)
# Slope of the M-value line against ambient pressure
VVAL_M_SLOPES = (1.3, 1.1, 1.0)
VVAL_LINEAR_SLOPES = (0.5, 0.4, 0.3)
VVAL_CROSSOVER = (0.4, 0.3, 0.2)

# Design risk (percent) at which the M-value lines were calibrated
REFERENCE_DESIGN_RISK = 3.5

# Smallest tolerated gradient (bar)
GRADIENT_FLOOR = 1e-6


@dataclass
class VvalCompartment(TissueCompartment):
    """Navy-style compartment with a linear M-value line and LE constants."""
    m_value: float = 1.6
    m_slope: float = 1.0
    linear_slope: float = 0.5
    crossover_pressure: float = 0.4

    def surplus_gradient(self, ambient: float) -> float:
        """Tolerated excess of tension over ambient at a pressure, before scaling."""
        return self.m_value + (self.m_slope - 1.0) * (ambient - SURFACE_PRESSURE)


class Vval18Model:
    """VVal-18 Thalmann algorithm.

    Args:
        max_dcs_risk: design risk percent, 0.1-10 (raises outside)
        safety_factor: divisor on the tolerated gradient, clamped to 1-2
        gradient_factor_low: percent, 0-100
        gradient_factor_high: percent, 0-100, >= low
    """

    kind = "vval18"
    risk_units = "percent"

    def __init__(
        self,
        max_dcs_risk: float = 3.5,
        safety_factor: float = 1.0,
        gradient_factor_low: float = 30.0,
        gradient_factor_high: float = 85.0,
    ):
        self.max_dcs_risk = float(require_range(
            "max_dcs_risk", max_dcs_risk, 0.1, 10.0,
            f"VVal-18 max DCS risk must be between 0.1 and 10, got {max_dcs_risk}",
        ))
        self.safety_factor = float(clamp_option("safety_factor", safety_factor, 1.0, 2.0, "VVal-18"))
        self.gradient_factors = GradientFactors(low=float(gradient_factor_low), high=float(gradient_factor_high))
        self._state = SURFACE_STATE
        self._compartments: List[VvalCompartment] = []
        self.initialize_compartments()
        logger.debug(f"Created {self.get_model_name()}")

    def get_model_name(self) -> str:
        return f"VVal-18 Thalmann (Risk: {self.max_dcs_risk:.1f}%)"

    def initialize_compartments(self) -> None:
        # Navy tables start from alveolar (water-vapour corrected) nitrogen
        n2 = surface_nitrogen_loading(water_vapor=True)
        self._compartments = [
            VvalCompartment(
                number=i + 1,
                nitrogen_half_time=VVAL_N2_HALFTIMES[i],
                helium_half_time=VVAL_HE_HALFTIMES[i],
                nitrogen_loading=n2,
                helium_loading=0.0,
                m_value=VVAL_M_VALUES[i],
                m_slope=VVAL_M_SLOPES[i],
                linear_slope=VVAL_LINEAR_SLOPES[i],
                crossover_pressure=VVAL_CROSSOVER[i],
            )
            for i in range(NUM_COMPARTMENTS)
        ]

    def update_dive_state(self, depth: float = None, time: float = None, gas_mix: GasMix = None) -> None:
        self._state = self._state.merged(depth=depth, time=time, gas_mix=gas_mix)

    def get_dive_state(self) -> DiveState:
        return self._state

    def get_tissue_compartments(self) -> Tuple[VvalCompartment, ...]:
        return snapshot(self._compartments)

    def get_compartment_data(self, number: int) -> VvalCompartment:
        return copy.copy(self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "VVal-18")])

    # --- parameters ---

    def get_parameters(self) -> dict:
        return {
            "max_dcs_risk": self.max_dcs_risk,
            "safety_factor": self.safety_factor,
            "gradient_factor_low": self.gradient_factors.low,
            "gradient_factor_high": self.gradient_factors.high,
        }

    def update_parameters(self, **changes) -> None:
        params = self.get_parameters()
        unknown = set(changes) - set(params)
        if unknown:
            raise ValueError(f"Unknown VVal-18 parameter(s): {sorted(unknown)}")
        params.update(changes)
        gradient_factors = GradientFactors(
            low=float(params["gradient_factor_low"]), high=float(params["gradient_factor_high"])
        )
        max_dcs_risk = float(require_range(
            "max_dcs_risk", params["max_dcs_risk"], 0.1, 10.0,
            f"VVal-18 max DCS risk must be between 0.1 and 10, got {params['max_dcs_risk']}",
        ))
        self.gradient_factors = gradient_factors
        self.max_dcs_risk = max_dcs_risk
        self.safety_factor = float(clamp_option("safety_factor", params["safety_factor"], 1.0, 2.0, "VVal-18"))

    # --- kinetics ---

    @staticmethod
    def _advance(compartments: List[VvalCompartment], state: DiveState, dt: float) -> None:
        pp_n2, pp_he, _ = state.partial_pressures()
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

    def advance_loadings(self, dt: float) -> None:
        check_time_step(dt)
        self._advance(self._compartments, self._state, dt)

    # --- ceiling ---

    def _scale(self, gf: float) -> float:
        """Combined multiplier on the tolerated gradient."""
        risk_scale = (self.max_dcs_risk / REFERENCE_DESIGN_RISK) ** (1.0 / 3.0)
        return gf * risk_scale / self.safety_factor

    def _tolerated(self, c: VvalCompartment, ambient: float, gf: float) -> float:
        """Highest tension tolerated at an ambient pressure."""
        return ambient + max(0.0, self._scale(gf) * c.surplus_gradient(ambient))

    def _first_stop(self, compartments: List[VvalCompartment]) -> float:
        """GF-Low ceiling, solved in closed form on each M-value line."""
        k = self._scale(self.gradient_factors.low_fraction)
        deepest = 0.0
        for c in compartments:
            slope = k * (c.m_slope - 1.0)
            ceil_p = (c.total_loading - k * c.m_value + slope * SURFACE_PRESSURE) / (1.0 + slope)
            deepest = max(deepest, depth_from_pressure(ceil_p))
        return round_up_to_stop(deepest)

    def _tolerates(self, compartments: List[VvalCompartment], depth: float, first_stop: float) -> bool:
        gf = gf_at_depth(self.gradient_factors, depth, first_stop)
        p = ambient_pressure(depth)
        return all(c.total_loading <= self._tolerated(c, p, gf) for c in compartments)

    def _ceiling(self, compartments: List[VvalCompartment]) -> float:
        first_stop = self._first_stop(compartments)
        ceiling = first_stop
        while ceiling > 0 and self._tolerates(compartments, ceiling - STOP_INCREMENT, first_stop):
            ceiling -= STOP_INCREMENT
        return ceiling

    def compute_ceiling(self) -> float:
        return self._ceiling(self._compartments)

    def can_ascend_directly(self) -> bool:
        return self.compute_ceiling() <= 0

    def compute_stops(self) -> List[DecompressionStop]:
        work = [copy.copy(c) for c in self._compartments]
        first_stop = self._first_stop(work)
        gas = self._state.gas_mix

        def dwell(depth: float) -> int:
            next_depth = depth - STOP_INCREMENT
            gf = gf_at_depth(self.gradient_factors, next_depth, first_stop)
            p_next = ambient_pressure(next_depth)
            inspired = (gas.nitrogen + gas.helium) * ambient_pressure(depth)
            needed = 0.0
            for c in work:
                half_time = blended_half_time(
                    c.nitrogen_loading, c.helium_loading,
                    c.nitrogen_half_time, c.helium_half_time,
                )
                target = self._tolerated(c, p_next, gf)
                needed = max(needed, haldane_time_to(c.total_loading, inspired, target, half_time))
            minutes = whole_minutes(needed, MAX_STOP_TIME)
            if minutes > 0:
                self._advance(work, DiveState(depth=depth, gas_mix=gas), minutes)
            return minutes

        return plan_stops(self._ceiling(work), dwell, gas)

    def compute_tts(self, ascent_rate: float = DEFAULT_ASCENT_RATE) -> float:
        return time_to_surface(self._state.depth, self.compute_stops(), ascent_rate)

    def compute_dcs_risk(self) -> float:
        """Design risk scaled by the squared worst gradient ratio.

        A compartment exactly on its GF-scaled line reports max_dcs_risk.
        """
        p = self._state.ambient_pressure
        gf = gf_at_depth(self.gradient_factors, self._state.depth, self._first_stop(self._compartments))
        worst = 0.0
        for c in self._compartments:
            supersaturation = c.total_loading - p
            if supersaturation <= 0:
                continue
            allowed = max(self._tolerated(c, p, gf) - p, GRADIENT_FLOOR)
            worst = max(worst, supersaturation / allowed)
        return round(min(100.0, self.max_dcs_risk * worst ** 2), 1)

    def restore_loadings(self, compartments) -> None:
        restore_inert_loadings(self._compartments, compartments)

    def reset(self) -> None:
        self.initialize_compartments()
        self._state = SURFACE_STATE
        logger.debug(f"{self.get_model_name()} reset to surface")
