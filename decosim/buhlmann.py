"""
Dissolved-gas decompression model: Bühlmann ZH-L16C with gradient factors.

Sixteen compartments load nitrogen and helium by the Haldane equation. The
tolerated tension of each compartment is its M-value line, blended between
the nitrogen and helium coefficients by each gas's share of the loading and
scaled toward ambient pressure by the gradient factors.
"""

import copy
import logging
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
    ZH_L16_HE_A,
    ZH_L16_HE_B,
    ZH_L16_HE_HALFTIMES,
    ZH_L16_N2_A,
    ZH_L16_N2_B,
    ZH_L16_N2_HALFTIMES,
    GradientFactors,
    ceiling_pressure_gf,
    gf_at_depth,
    m_value,
    m_value_gf,
)
from .kinetics import blended_half_time, haldane_time_to, haldane_vec
from .model import check_time_step, restore_inert_loadings, snapshot, whole_minutes
from .scheduler import DecompressionStop, plan_stops, time_to_surface
from .state import DiveState, GasMix, SURFACE_STATE

logger = logging.getLogger(__name__)

# Smallest allowed supersaturation gradient used as a risk denominator (bar)
GRADIENT_FLOOR = 1e-6


@dataclass
class BuhlmannCompartment(TissueCompartment):
    """ZH-L16C compartment with separate nitrogen and helium M-value lines."""
    nitrogen_a: float = 0.0
    nitrogen_b: float = 1.0
    helium_a: float = 0.0
    helium_b: float = 1.0

    def coefficients(self) -> Tuple[float, float]:
        """(a, b) blended by each gas's share of the total loading."""
        he_share = self.helium_share
        n2_share = 1.0 - he_share
        a = self.nitrogen_a * n2_share + self.helium_a * he_share
        b = self.nitrogen_b * n2_share + self.helium_b * he_share
        return a, b


class BuhlmannModel:
    """Bühlmann ZH-L16C with GF-Low/GF-High conservatism.

    Args:
        gradient_factor_low: GF applied at the first stop, percent (0-100)
        gradient_factor_high: GF applied at the surface, percent (0-100)

    Raises:
        ValueError: if a gradient factor is outside 0-100 or low > high
    """

    kind = "buhlmann"
    risk_units = "percent"

    def __init__(self, gradient_factor_low: float = 30.0, gradient_factor_high: float = 85.0):
        self.gradient_factors = GradientFactors(
            low=float(gradient_factor_low), high=float(gradient_factor_high)
        )
        self._state = SURFACE_STATE
        self._compartments: List[BuhlmannCompartment] = []
        self.initialize_compartments()
        logger.debug(f"Created {self.get_model_name()}")

    def get_model_name(self) -> str:
        gf = self.gradient_factors
        return f"Bühlmann ZH-L16C GF {gf.low:g}/{gf.high:g}"

    def initialize_compartments(self) -> None:
        n2 = surface_nitrogen_loading()
        self._compartments = [
            BuhlmannCompartment(
                number=i + 1,
                nitrogen_half_time=ZH_L16_N2_HALFTIMES[i],
                helium_half_time=ZH_L16_HE_HALFTIMES[i],
                nitrogen_loading=n2,
                helium_loading=0.0,
                nitrogen_a=ZH_L16_N2_A[i],
                nitrogen_b=ZH_L16_N2_B[i],
                helium_a=ZH_L16_HE_A[i],
                helium_b=ZH_L16_HE_B[i],
            )
            for i in range(NUM_COMPARTMENTS)
        ]

    # --- dive state ---

    def update_dive_state(self, depth: float = None, time: float = None, gas_mix: GasMix = None) -> None:
        self._state = self._state.merged(depth=depth, time=time, gas_mix=gas_mix)

    def get_dive_state(self) -> DiveState:
        return self._state

    def get_tissue_compartments(self) -> Tuple[BuhlmannCompartment, ...]:
        return snapshot(self._compartments)

    def get_compartment_data(self, number: int) -> BuhlmannCompartment:
        idx = check_compartment_number(number, NUM_COMPARTMENTS, "Bühlmann")
        return copy.copy(self._compartments[idx])

    # --- parameters ---

    def get_gradient_factors(self) -> GradientFactors:
        return self.gradient_factors

    def set_gradient_factors(self, low: float, high: float) -> None:
        """Replace both gradient factors (percent); validated together."""
        self.gradient_factors = GradientFactors(low=float(low), high=float(high))

    def get_parameters(self) -> dict:
        return {
            "gradient_factor_low": self.gradient_factors.low,
            "gradient_factor_high": self.gradient_factors.high,
        }

    def update_parameters(self, **changes) -> None:
        params = self.get_parameters()
        unknown = set(changes) - set(params)
        if unknown:
            raise ValueError(f"Unknown Bühlmann parameter(s): {sorted(unknown)}")
        params.update(changes)
        self.set_gradient_factors(params["gradient_factor_low"], params["gradient_factor_high"])

    # --- kinetics ---

    @staticmethod
    def _advance(compartments: List[BuhlmannCompartment], state: DiveState, dt: float) -> None:
        pp_n2, pp_he, _ = state.partial_pressures()
        n2 = haldane_vec(
            np.array([c.nitrogen_loading for c in compartments]),
            pp_n2,
            np.array([c.nitrogen_half_time for c in compartments]),
            dt,
        )
        he = haldane_vec(
            np.array([c.helium_loading for c in compartments]),
            pp_he,
            np.array([c.helium_half_time for c in compartments]),
            dt,
        )
        for c, n2_p, he_p in zip(compartments, n2, he):
            c.nitrogen_loading = max(0.0, float(n2_p))
            c.helium_loading = max(0.0, float(he_p))

    def advance_loadings(self, dt: float) -> None:
        """Expose every compartment to the current gas for dt minutes."""
        check_time_step(dt)
        self._advance(self._compartments, self._state, dt)

    # --- ceiling ---

    def _first_stop(self, compartments: List[BuhlmannCompartment]) -> float:
        """GF-Low ceiling rounded up to a stop boundary; anchors GF interpolation."""
        gf_low = self.gradient_factors.low_fraction
        deepest = 0.0
        for c in compartments:
            a, b = c.coefficients()
            ceil_p = ceiling_pressure_gf(a, b, c.total_loading, gf_low)
            deepest = max(deepest, depth_from_pressure(ceil_p))
        return round_up_to_stop(deepest)

    def _tolerates(self, compartments: List[BuhlmannCompartment], depth: float, first_stop: float) -> bool:
        gf = gf_at_depth(self.gradient_factors, depth, first_stop)
        p = ambient_pressure(depth)
        for c in compartments:
            a, b = c.coefficients()
            if c.total_loading > m_value_gf(a, b, p, gf):
                return False
        return True

    def _ceiling(self, compartments: List[BuhlmannCompartment]) -> float:
        first_stop = self._first_stop(compartments)
        ceiling = first_stop
        while ceiling > 0 and self._tolerates(compartments, ceiling - STOP_INCREMENT, first_stop):
            ceiling -= STOP_INCREMENT
        return ceiling

    def get_first_stop_depth(self) -> float:
        """Depth (m) where GF-Low applies, 0.0 when no decompression is due."""
        return self._first_stop(self._compartments)

    def compute_ceiling(self) -> float:
        """Shallowest safe depth (m), rounded up to 3 m.

        Starts at the GF-Low first stop and moves up while every compartment
        tolerates the next boundary with its interpolated gradient factor.
        """
        return self._ceiling(self._compartments)

    def can_ascend_directly(self) -> bool:
        return self.compute_ceiling() <= 0

    # --- stops ---

    def compute_stops(self) -> List[DecompressionStop]:
        """Stop schedule from the ceiling to the surface on the current gas.

        Each dwell is the closed-form Haldane time for the slowest-clearing
        compartment to tolerate the next shallower stop; a private copy of
        the compartments is advanced through each stop.
        """
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
                a, b = c.coefficients()
                limit = m_value_gf(a, b, p_next, gf)
                half_time = blended_half_time(
                    c.nitrogen_loading, c.helium_loading,
                    c.nitrogen_half_time, c.helium_half_time,
                )
                needed = max(needed, haldane_time_to(c.total_loading, inspired, limit, half_time))
            minutes = whole_minutes(needed, MAX_STOP_TIME)
            if minutes > 0:
                self._advance(work, DiveState(depth=depth, gas_mix=gas), minutes)
            return minutes

        return plan_stops(self._ceiling(work), dwell, gas)

    def compute_tts(self, ascent_rate: float = DEFAULT_ASCENT_RATE) -> float:
        return time_to_surface(self._state.depth, self.compute_stops(), ascent_rate)

    # --- per-compartment queries ---

    def calculate_m_value(self, number: int, depth: float = None) -> float:
        """Raw M-value (bar) of a compartment at depth (default: current depth)."""
        c = self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "Bühlmann")]
        p = self._state.ambient_pressure if depth is None else ambient_pressure(depth)
        a, b = c.coefficients()
        return m_value(a, b, p)

    def calculate_gradient_factor_m_value(self, number: int, depth: float = None) -> float:
        """M-value reduced by the gradient factor interpolated at depth."""
        c = self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "Bühlmann")]
        depth = self._state.depth if depth is None else depth
        gf = gf_at_depth(self.gradient_factors, depth, self.get_first_stop_depth())
        a, b = c.coefficients()
        return m_value_gf(a, b, ambient_pressure(depth), gf)

    def calculate_supersaturation(self, number: int) -> float:
        """Loading above ambient as a percent of the M-value gradient.

        Negative values mean the compartment is still on-gassing.
        """
        c = self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "Bühlmann")]
        p = self._state.ambient_pressure
        a, b = c.coefficients()
        gradient = max(m_value(a, b, p) - p, GRADIENT_FLOOR)
        return round((c.total_loading - p) / gradient * 100.0, 1)

    # --- risk ---

    def compute_dcs_risk(self) -> float:
        """Risk percent from the worst ratio of supersaturation to GF-allowed gradient.

        risk = min(100, ratio^2 * 50), so a compartment exactly at its
        gradient-factor limit reads 50%.
        """
        p = self._state.ambient_pressure
        gf = gf_at_depth(self.gradient_factors, self._state.depth, self.get_first_stop_depth())
        worst = 0.0
        for c in self._compartments:
            supersaturation = c.total_loading - p
            if supersaturation <= 0:
                continue
            a, b = c.coefficients()
            allowed = max(gf * (m_value(a, b, p) - p), GRADIENT_FLOOR)
            worst = max(worst, supersaturation / allowed)
        return round(min(100.0, worst ** 2 * 50.0), 1)

    def restore_loadings(self, compartments) -> None:
        """Overwrite N2/He loadings from another compartment sequence of equal length."""
        restore_inert_loadings(self._compartments, compartments)

    def reset(self) -> None:
        """Return to surface equilibrium on air at time zero."""
        self.initialize_compartments()
        self._state = SURFACE_STATE
        logger.debug(f"{self.get_model_name()} reset to surface")
