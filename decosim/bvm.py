"""
Bubble-volume decompression model, BVM(3).

Three compartments each accumulate a bubble volume that forms in proportion
to supersaturation and resolves in proportion to its own size. Compartment
DCS probabilities come from an exponential dose-response curve and are
combined as independent events.
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
from .kinetics import blended_half_time, combine_independent, haldane, haldane_time_to
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

NUM_COMPARTMENTS = 3

BVM_N2_HALFTIMES = (5.0, 40.0, 240.0)
BVM_HE_HALFTIMES = (2.5, 20.0, 120.0)
DIFFUSION_MODIFIERS = (1.0, 0.7, 0.3)
MECHANICAL_RESISTANCE = (1.0, 1.2, 1.5)
RISK_WEIGHTS = (0.6, 0.3, 0.1)

# Bubble formation per bar of supersaturation per minute
FORMATION_RATE = 0.12
# Fractional bubble resolution per minute
RESOLUTION_RATE = 0.08
# Volume at which the dose-response curve is calibrated
CRITICAL_VOLUME = 50.0
# Dose-response slope (beta)
RISK_SLOPE = 2.3
# Allowable pressure drop (bar) for a bubble-free compartment
BASE_ALLOWABLE_DROP = 1.0

# Smallest resolution rate constant (1/min)
RESOLUTION_FLOOR = 1e-6


@dataclass
class BvmCompartment(TissueCompartment):
    """Compartment with bubble volume and its modifiers."""
    diffusion_modifier: float = 1.0
    mechanical_resistance: float = 1.0
    risk_weight: float = 0.0
    bubble_volume: float = 0.0

    @property
    def kinetic_half_time(self) -> float:
        """Nitrogen half-time slowed by the diffusion modifier."""
        return self.nitrogen_half_time / self.diffusion_modifier

    @property
    def kinetic_helium_half_time(self) -> float:
        return self.helium_half_time / self.diffusion_modifier


class BvmModel:
    """Three-compartment bubble volume model.

    Args:
        conservatism: level 0-5, clamped
        max_dcs_risk: accepted risk percent for direct ascent, clamped to 0.1-100

    compute_dcs_risk() reports a probability (0-1), not a percentage.
    """

    kind = "bvm"
    risk_units = "probability"

    def __init__(self, conservatism: int = 3, max_dcs_risk: float = 5.0):
        self.conservatism = int(round(clamp_option("conservatism", conservatism, 0, 5, "BVM(3)")))
        self.max_dcs_risk = float(clamp_option("max_dcs_risk", max_dcs_risk, 0.1, 100.0, "BVM(3)"))
        self._state = SURFACE_STATE
        self._compartments: List[BvmCompartment] = []
        self.initialize_compartments()
        logger.debug(f"Created {self.get_model_name()}")

    def get_model_name(self) -> str:
        return f"BVM(3)+{self.conservatism}"

    def initialize_compartments(self) -> None:
        n2 = surface_nitrogen_loading()
        self._compartments = [
            BvmCompartment(
                number=i + 1,
                nitrogen_half_time=BVM_N2_HALFTIMES[i],
                helium_half_time=BVM_HE_HALFTIMES[i],
                nitrogen_loading=n2,
                helium_loading=0.0,
                diffusion_modifier=DIFFUSION_MODIFIERS[i],
                mechanical_resistance=MECHANICAL_RESISTANCE[i],
                risk_weight=RISK_WEIGHTS[i],
            )
            for i in range(NUM_COMPARTMENTS)
        ]

    def update_dive_state(self, depth: float = None, time: float = None, gas_mix: GasMix = None) -> None:
        self._state = self._state.merged(depth=depth, time=time, gas_mix=gas_mix)

    def get_dive_state(self) -> DiveState:
        return self._state

    def get_tissue_compartments(self) -> Tuple[BvmCompartment, ...]:
        return snapshot(self._compartments)

    def get_compartment_data(self, number: int) -> BvmCompartment:
        return copy.copy(self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "BVM(3)")])

    def get_bubble_volume(self, number: int) -> float:
        return self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "BVM(3)")].bubble_volume

    def get_parameters(self) -> dict:
        return {"conservatism": self.conservatism, "max_dcs_risk": self.max_dcs_risk}

    def update_parameters(self, **changes) -> None:
        unknown = set(changes) - set(self.get_parameters())
        if unknown:
            raise ValueError(f"Unknown BVM(3) parameter(s): {sorted(unknown)}")
        if "conservatism" in changes:
            self.conservatism = int(round(clamp_option("conservatism", changes["conservatism"], 0, 5, "BVM(3)")))
        if "max_dcs_risk" in changes:
            self.max_dcs_risk = float(clamp_option("max_dcs_risk", changes["max_dcs_risk"], 0.1, 100.0, "BVM(3)"))

    # --- kinetics ---

    @staticmethod
    def _advance(compartments: List[BvmCompartment], state: DiveState, dt: float) -> None:
        pp_n2, pp_he, _ = state.partial_pressures()
        p_amb = state.ambient_pressure
        for c in compartments:
            k = max(RESOLUTION_RATE * c.mechanical_resistance, RESOLUTION_FLOOR)
            remaining = dt
            while remaining > 0:
                h = substep(remaining, c.total_loading - p_amb)
                before = max(0.0, c.total_loading - p_amb)
                c.nitrogen_loading = max(0.0, haldane(c.nitrogen_loading, pp_n2, c.kinetic_half_time, h))
                c.helium_loading = max(0.0, haldane(c.helium_loading, pp_he, c.kinetic_helium_half_time, h))
                after = max(0.0, c.total_loading - p_amb)
                remaining -= h

                # dV/dt = formation - k*V with formation held at its step mean
                formation = FORMATION_RATE * 0.5 * (before + after) * c.diffusion_modifier
                steady = formation / k
                c.bubble_volume = max(0.0, steady + (c.bubble_volume - steady) * math.exp(-k * h))

    def advance_loadings(self, dt: float) -> None:
        check_time_step(dt)
        self._advance(self._compartments, self._state, dt)

    # --- risk ---

    def _effective_volume(self, c: BvmCompartment) -> float:
        return c.bubble_volume * (1.0 + 0.1 * self.conservatism)

    def compute_compartment_risks(self) -> List[float]:
        """Per-compartment probability 1 - exp(-beta * V / Vcrit)."""
        return [
            1.0 - math.exp(-RISK_SLOPE * self._effective_volume(c) / CRITICAL_VOLUME)
            for c in self._compartments
        ]

    def compute_total_dcs_risk(self) -> float:
        """Independent-event combination of the weighted compartment risks."""
        return combine_independent(
            self.compute_compartment_risks(), [c.risk_weight for c in self._compartments]
        )

    def compute_dcs_risk(self) -> float:
        """Combined DCS probability (0-1) after the conservatism multiplier."""
        return min(1.0, self.compute_total_dcs_risk() * (1.0 + 0.15 * self.conservatism))

    def compute_dcs_risk_percent(self) -> float:
        return round(self.compute_dcs_risk() * 100.0, 1)

    # --- ceiling and stops ---

    def _allowable_drop(self, c: BvmCompartment) -> float:
        """Tolerated supersaturation (bar), shrinking as bubbles accumulate."""
        risk_allowance = 0.75 + 0.25 * self.max_dcs_risk / 100.0
        return BASE_ALLOWABLE_DROP * risk_allowance / (1.0 + self._effective_volume(c) / CRITICAL_VOLUME)

    def _ceiling(self, compartments: List[BvmCompartment]) -> float:
        deepest = 0.0
        for c in compartments:
            deepest = max(deepest, depth_from_pressure(c.total_loading - self._allowable_drop(c)))
        return round_up_to_stop(deepest)

    def compute_ceiling(self) -> float:
        return self._ceiling(self._compartments)

    def can_ascend_directly(self) -> bool:
        """Clear ceiling and combined risk within max_dcs_risk."""
        return self.compute_ceiling() <= 0 and self.compute_dcs_risk() * 100.0 <= self.max_dcs_risk

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
                    c.kinetic_half_time, c.kinetic_helium_half_time,
                )
                target = p_next + self._allowable_drop(c)
                needed = max(needed, haldane_time_to(c.total_loading, inspired, target, half_time))
            minutes = whole_minutes(needed, MAX_STOP_TIME)
            if minutes > 0:
                self._advance(work, DiveState(depth=depth, gas_mix=gas), minutes)
            return minutes

        return plan_stops(self._ceiling(work), dwell, gas)

    def compute_tts(self, ascent_rate: float = DEFAULT_ASCENT_RATE) -> float:
        return time_to_surface(self._state.depth, self.compute_stops(), ascent_rate)

    def restore_loadings(self, compartments) -> None:
        restore_inert_loadings(self._compartments, compartments)

    def reset(self) -> None:
        self.initialize_compartments()
        self._state = SURFACE_STATE
        logger.debug(f"{self.get_model_name()} reset to surface")
