"""
Tissue-bubble diffusion model (Gernhardt-Lambertsen).

Sixteen compartments load gas by Haldane kinetics. Once supersaturation
passes a compartment's nucleation threshold, a bubble volume fraction
forms; it is carried off by perfusion faster at depth, and very small
bubbles collapse under surface tension. Ceiling and risk take the larger of
a dissolved-gas term and a bubble-volume term.
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
from .kinetics import blended_half_time, haldane, haldane_time_to
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

NUM_COMPARTMENTS = 16

TBDM_N2_HALFTIMES = (
    4.0, 8.2, 12.8, 18.7, 27.8, 38.9, 54.7, 77.5,
    110.0, 146.2, 187.9, 239.6, 305.8, 390.7, 498.4, 635.8,
)
TBDM_HE_HALFTIMES = (
    1.5, 3.1, 4.8, 7.2, 10.4, 14.6, 20.7, 29.3,
    41.5, 55.4, 70.9, 90.6, 115.7, 147.8, 188.6, 240.4,
)
# Supersaturation (bar) at which bubbles nucleate, before conservatism
NUCLEATION_THRESHOLDS = (
    2.8, 2.6, 2.4, 2.2, 2.0, 1.9, 1.8, 1.7,
    1.6, 1.5, 1.4, 1.35, 1.3, 1.25, 1.2, 1.15,
)
# Bubble elimination rate constants (1/min)
ELIMINATION_RATES = (
    0.23, 0.18, 0.14, 0.11, 0.085, 0.065, 0.048, 0.035,
    0.026, 0.019, 0.015, 0.012, 0.009, 0.007, 0.0055, 0.0045,
)
# Perfusion (ml/100g/min)
PERFUSION_RATES = (
    850, 650, 480, 350, 260, 190, 140, 100,
    75, 55, 42, 32, 25, 19, 15, 12,
)
FORMATION_COEFFICIENTS = (
    1.8, 1.6, 1.4, 1.3, 1.2, 1.15, 1.1, 1.05,
    1.0, 0.95, 0.9, 0.88, 0.85, 0.82, 0.8, 0.78,
)

MAX_BUBBLE_FRACTION = 0.05
# Bubble fractions below this collapse under surface tension
SMALL_BUBBLE_FRACTION = 1e-4
# Surface-tension collapse per minute per unit of surface tension parameter
SURFACE_TENSION_DECAY_SCALE = 1e-3
# Perfusion that leaves the elimination rate unchanged (ml/100g/min)
REFERENCE_PERFUSION = 100.0
# Risk change per °C away from 37
TEMPERATURE_RISK_COEFFICIENT = 0.02
RISK_SCALE = 45.0

# Smallest elimination rate constant (1/min)
ELIMINATION_FLOOR = 1e-6


@dataclass
class BubbleCompartment(TissueCompartment):
    """Compartment with nucleation threshold and bubble volume fraction."""
    nucleation_threshold: float = 2.0
    elimination_rate: float = 0.1
    perfusion_rate: float = 100.0
    formation_coefficient: float = 1.0
    metabolic_coefficient: float = 1.0
    bubble_volume_fraction: float = 0.0


class TbdmModel:
    """Tissue-bubble diffusion model.

    Args:
        conservatism_factor: 0.5-2.0; divides the nucleation thresholds
        body_temperature: °C, 30-42
        metabolic_bubble_rate: bubble fraction formed per bar of excess per minute
        surface_tension_parameter: N/m, drives collapse of very small bubbles

    Raises:
        ValueError: on any out-of-range option
    """

    kind = "tbdm"
    risk_units = "percent"

    def __init__(
        self,
        conservatism_factor: float = 1.0,
        body_temperature: float = 37.0,
        metabolic_bubble_rate: float = 0.01,
        surface_tension_parameter: float = 0.0728,
    ):
        self.conservatism_factor = 1.0
        self.body_temperature = 37.0
        self.metabolic_bubble_rate = 0.01
        self.surface_tension_parameter = 0.0728
        self._validate_and_apply(
            conservatism_factor, body_temperature, metabolic_bubble_rate, surface_tension_parameter
        )
        self._state = SURFACE_STATE
        self._compartments: List[BubbleCompartment] = []
        self.initialize_compartments()
        logger.debug(f"Created {self.get_model_name()}")

    def _validate_and_apply(
        self, conservatism_factor, body_temperature, metabolic_bubble_rate, surface_tension_parameter
    ) -> None:
        require_range(
            "conservatism_factor", conservatism_factor, 0.5, 2.0,
            "TBDM conservatism factor must be between 0.5 and 2.0",
        )
        require_range("body_temperature", body_temperature, 30.0, 42.0)
        require_range("metabolic_bubble_rate", metabolic_bubble_rate, 0.0, 1.0)
        require_range("surface_tension_parameter", surface_tension_parameter, 0.0, 1.0)
        self.conservatism_factor = float(conservatism_factor)
        self.body_temperature = float(body_temperature)
        self.metabolic_bubble_rate = float(metabolic_bubble_rate)
        self.surface_tension_parameter = float(surface_tension_parameter)

    def get_model_name(self) -> str:
        return f"TBDM (Gernhardt-Lambertsen) CF:{self.conservatism_factor:.1f}"

    def _threshold(self, i: int) -> float:
        return NUCLEATION_THRESHOLDS[i] / self.conservatism_factor

    def initialize_compartments(self) -> None:
        n2 = surface_nitrogen_loading()
        self._compartments = [
            BubbleCompartment(
                number=i + 1,
                nitrogen_half_time=TBDM_N2_HALFTIMES[i],
                helium_half_time=TBDM_HE_HALFTIMES[i],
                nitrogen_loading=n2,
                helium_loading=0.0,
                nucleation_threshold=self._threshold(i),
                elimination_rate=ELIMINATION_RATES[i],
                perfusion_rate=PERFUSION_RATES[i],
                formation_coefficient=FORMATION_COEFFICIENTS[i],
                metabolic_coefficient=1.0 + 0.1 * math.exp(-0.2 * i),
            )
            for i in range(NUM_COMPARTMENTS)
        ]

    def update_dive_state(self, depth: float = None, time: float = None, gas_mix: GasMix = None) -> None:
        self._state = self._state.merged(depth=depth, time=time, gas_mix=gas_mix)

    def get_dive_state(self) -> DiveState:
        return self._state

    def get_tissue_compartments(self) -> Tuple[BubbleCompartment, ...]:
        return snapshot(self._compartments)

    def get_compartment_data(self, number: int) -> BubbleCompartment:
        return copy.copy(self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "TBDM")])

    # --- parameters ---

    def get_parameters(self) -> dict:
        return {
            "conservatism_factor": self.conservatism_factor,
            "body_temperature": self.body_temperature,
            "metabolic_bubble_rate": self.metabolic_bubble_rate,
            "surface_tension_parameter": self.surface_tension_parameter,
        }

    def update_parameters(self, **changes) -> None:
        """Validate and apply options, rescaling thresholds in place."""
        params = self.get_parameters()
        unknown = set(changes) - set(params)
        if unknown:
            raise ValueError(f"Unknown TBDM parameter(s): {sorted(unknown)}")
        params.update(changes)
        self._validate_and_apply(**params)
        for i, c in enumerate(self._compartments):
            c.nucleation_threshold = self._threshold(i)

    # --- kinetics ---

    def _elimination_constant(self, c: BubbleCompartment, ambient: float) -> float:
        rate = c.elimination_rate * (c.perfusion_rate / REFERENCE_PERFUSION) * (ambient / SURFACE_PRESSURE)
        return max(rate, ELIMINATION_FLOOR)

    def _advance(self, compartments: List[BubbleCompartment], state: DiveState, dt: float) -> None:
        pp_n2, pp_he, _ = state.partial_pressures()
        p_amb = state.ambient_pressure
        for c in compartments:
            k = self._elimination_constant(c, p_amb)
            remaining = dt
            while remaining > 0:
                h = substep(remaining, c.total_loading - p_amb - c.nucleation_threshold)
                before = max(0.0, c.total_loading - p_amb - c.nucleation_threshold)
                c.nitrogen_loading = max(0.0, haldane(c.nitrogen_loading, pp_n2, c.nitrogen_half_time, h))
                c.helium_loading = max(0.0, haldane(c.helium_loading, pp_he, c.helium_half_time, h))
                after = max(0.0, c.total_loading - p_amb - c.nucleation_threshold)
                remaining -= h

                formation = 0.5 * (before + after) * c.formation_coefficient * self.metabolic_bubble_rate
                steady = formation / k
                volume = steady + (c.bubble_volume_fraction - steady) * math.exp(-k * h)
                if volume < SMALL_BUBBLE_FRACTION:
                    volume -= self.surface_tension_parameter * SURFACE_TENSION_DECAY_SCALE * h
                c.bubble_volume_fraction = min(MAX_BUBBLE_FRACTION, max(0.0, volume))

    def advance_loadings(self, dt: float) -> None:
        check_time_step(dt)
        self._advance(self._compartments, self._state, dt)

    # --- ceiling ---

    def _ceiling_pressure(self, c: BubbleCompartment, ambient: float) -> float:
        """Larger of the dissolved-gas and bubble-volume ceiling pressures.

        Bubbles expand by Boyle's law on ascent; the bubble term is the
        pressure at which the current fraction would reach the maximum.
        """
        dissolved = c.total_loading - c.nucleation_threshold
        bubble = ambient * c.bubble_volume_fraction / MAX_BUBBLE_FRACTION
        return max(dissolved, bubble)

    def _ceiling(self, compartments: List[BubbleCompartment], ambient: float) -> float:
        deepest = 0.0
        for c in compartments:
            deepest = max(deepest, depth_from_pressure(self._ceiling_pressure(c, ambient)))
        return round_up_to_stop(deepest)

    def compute_ceiling(self) -> float:
        return self._ceiling(self._compartments, self._state.ambient_pressure)

    def get_bubble_risk(self) -> float:
        """Largest bubble volume as a fraction of the maximum (0-1)."""
        return max(c.bubble_volume_fraction for c in self._compartments) / MAX_BUBBLE_FRACTION

    def get_total_bubble_volume(self) -> float:
        return sum(c.bubble_volume_fraction for c in self._compartments)

    def can_ascend_directly(self) -> bool:
        return self.compute_ceiling() <= 0 and self.get_bubble_risk() < 0.1

    def compute_stops(self) -> List[DecompressionStop]:
        work = [copy.copy(c) for c in self._compartments]
        gas = self._state.gas_mix

        def dwell(depth: float) -> int:
            p_next = ambient_pressure(depth - STOP_INCREMENT)
            p_stop = ambient_pressure(depth)
            inspired = (gas.nitrogen + gas.helium) * p_stop
            needed = 0.0
            for c in work:
                half_time = blended_half_time(
                    c.nitrogen_loading, c.helium_loading,
                    c.nitrogen_half_time, c.helium_half_time,
                )
                target = p_next + c.nucleation_threshold
                needed = max(needed, haldane_time_to(c.total_loading, inspired, target, half_time))

                # Bubble fraction that would just reach the maximum at the next stop
                volume_target = MAX_BUBBLE_FRACTION * p_next / p_stop
                if c.bubble_volume_fraction > volume_target:
                    k = self._elimination_constant(c, p_stop)
                    needed = max(needed, math.log(c.bubble_volume_fraction / volume_target) / k)
            minutes = whole_minutes(needed, MAX_STOP_TIME)
            if minutes > 0:
                self._advance(work, DiveState(depth=depth, gas_mix=gas), minutes)
            return minutes

        return plan_stops(self._ceiling(work, self._state.ambient_pressure), dwell, gas)

    def compute_tts(self, ascent_rate: float = DEFAULT_ASCENT_RATE) -> float:
        return time_to_surface(self._state.depth, self.compute_stops(), ascent_rate)

    # --- risk ---

    def compute_dcs_risk(self) -> float:
        """Risk percent from the larger of supersaturation and bubble terms.

        r = max(ss / threshold, V / V_max) * temperature * metabolic factors
        risk = min(100, r^2 * 45)
        """
        p = self._state.ambient_pressure
        temperature_factor = 1.0 + (self.body_temperature - 37.0) * TEMPERATURE_RISK_COEFFICIENT
        worst = 0.0
        for c in self._compartments:
            supersaturation = max(0.0, c.total_loading - p)
            term = max(
                supersaturation / c.nucleation_threshold,
                c.bubble_volume_fraction / MAX_BUBBLE_FRACTION,
            )
            worst = max(worst, term * temperature_factor * c.metabolic_coefficient)
        return round(min(100.0, worst ** 2 * RISK_SCALE), 1)

    def restore_loadings(self, compartments) -> None:
        restore_inert_loadings(self._compartments, compartments)

    def reset(self) -> None:
        self.initialize_compartments()
        self._state = SURFACE_STATE
        logger.debug(f"{self.get_model_name()} reset to surface")
