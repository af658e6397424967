"""
Thermodynamic decompression model after Hills.

Sixteen compartments each carry a tissue temperature that relaxes toward the
core temperature on a time constant set by heat capacity and thermal
diffusivity. Temperature changes gas solubility (the effective inspired
pressure) and, through an Arrhenius factor, the exchange rate. Bubble
nucleation probability is Arrhenius-form in temperature and supersaturation.
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
from .kinetics import blended_half_time, haldane, haldane_time_to
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

NUM_COMPARTMENTS = 16

HILLS_N2_HALFTIMES = (
    2.5, 5.0, 8.0, 12.5, 18.5, 27.0, 38.3, 54.3,
    77.0, 109.0, 146.0, 187.0, 239.0, 305.0, 390.0, 498.0,
)
HELIUM_HALFTIME_RATIO = 0.4

# Thermal diffusivity (1e-7 m^2/s)
THERMAL_DIFFUSIVITY = (
    1.5, 1.3, 1.1, 0.95, 0.82, 0.71, 0.63, 0.56,
    0.51, 0.47, 0.44, 0.41, 0.39, 0.37, 0.35, 0.34,
)

# Specific heat capacity (J/kg/K)
HEAT_CAPACITY = (
    3800, 3700, 3600, 3500, 3400, 3300, 3250, 3200,
    3150, 3100, 3080, 3060, 3040, 3020, 3000, 2980,
)

REFERENCE_TEMPERATURE = 37.0
KELVIN_OFFSET = 273.15

# Relative solubility change per °C
SOLUBILITY_TEMPERATURE_COEFFICIENT = -0.02
# Default activation energy of dissolution/nucleation (J/mol) and its accepted range
ACTIVATION_ENERGY = 50000.0
ACTIVATION_ENERGY_RANGE = (10000.0, 200000.0)
GAS_CONSTANT = 8.314

# Resting metabolic rate (W/kg) and tissue warming per unit above it (°C)
BASELINE_METABOLIC_RATE = 1.2
METABOLIC_HEATING = 0.5

# Tolerated supersaturation at the reference temperature (bar)
ALLOWABLE_GRADIENT = 1.6
# Relative supersaturation at which nucleation becomes likely
NUCLEATION_REFERENCE = 0.25

# Floors for solubility and thermal time constant (minutes)
SOLUBILITY_FLOOR = 0.1
THERMAL_TIME_FLOOR = 0.01


@dataclass
class ThermalCompartment(TissueCompartment):
    """Compartment with thermal properties and a temperature state (°C)."""
    thermal_diffusivity: float = 1.0
    heat_capacity: float = 3500.0
    temperature: float = REFERENCE_TEMPERATURE

    @property
    def thermal_time_constant(self) -> float:
        """Minutes for the tissue temperature to close 1/e of its gap."""
        return max(THERMAL_TIME_FLOOR, self.heat_capacity / (self.thermal_diffusivity * 1000.0))


def solubility_factor(temperature: float) -> float:
    """Solubility relative to 37 °C."""
    factor = 1.0 + SOLUBILITY_TEMPERATURE_COEFFICIENT * (temperature - REFERENCE_TEMPERATURE)
    return max(SOLUBILITY_FLOOR, factor)


def arrhenius_factor(temperature: float, activation_energy: float = ACTIVATION_ENERGY) -> float:
    """Exchange rate relative to 37 °C: exp(-Ea/R * (1/T - 1/T_ref))."""
    t = temperature + KELVIN_OFFSET
    t_ref = REFERENCE_TEMPERATURE + KELVIN_OFFSET
    return math.exp(-activation_energy / GAS_CONSTANT * (1.0 / t - 1.0 / t_ref))


def nucleation_probability(
    relative_supersaturation: float, temperature: float, activation_energy: float = ACTIVATION_ENERGY
) -> float:
    """Arrhenius-form nucleation probability.

    P = exp(-Ea / (R*T) * (s_ref / s)^2); zero without supersaturation.
    """
    if relative_supersaturation <= 0:
        return 0.0
    barrier = activation_energy / (GAS_CONSTANT * (temperature + KELVIN_OFFSET))
    return math.exp(-barrier * (NUCLEATION_REFERENCE / relative_supersaturation) ** 2)


class HillsModel:
    """Hills thermodynamic model.

    Args:
        conservatism_factor: 0.5-2.0, clamped
        core_temperature: °C, 30-42
        metabolic_rate: W/kg, 0.1-10
        perfusion_multiplier: 0.1-5
        activation_energy: J/mol, 10000-200000; drives the Arrhenius rate and nucleation
    """

    kind = "hills"
    risk_units = "percent"

    def __init__(
        self,
        conservatism_factor: float = 1.0,
        core_temperature: float = 37.0,
        metabolic_rate: float = 1.2,
        perfusion_multiplier: float = 1.0,
        activation_energy: float = ACTIVATION_ENERGY,
    ):
        self.conservatism_factor = float(
            clamp_option("conservatism_factor", conservatism_factor, 0.5, 2.0, "Hills")
        )
        self.core_temperature = 37.0
        self.metabolic_rate = 1.2
        self.perfusion_multiplier = 1.0
        self.activation_energy = ACTIVATION_ENERGY
        self.set_thermodynamic_parameters(core_temperature, metabolic_rate, perfusion_multiplier, activation_energy)
        self._state = SURFACE_STATE
        self._compartments: List[ThermalCompartment] = []
        self.initialize_compartments()
        logger.debug(f"Created {self.get_model_name()}")

    def get_model_name(self) -> str:
        return f"Thermodynamic (Hills) - CF: {self.conservatism_factor:.1f}"

    def initialize_compartments(self) -> None:
        n2 = surface_nitrogen_loading()
        self._compartments = [
            ThermalCompartment(
                number=i + 1,
                nitrogen_half_time=HILLS_N2_HALFTIMES[i],
                helium_half_time=HILLS_N2_HALFTIMES[i] * HELIUM_HALFTIME_RATIO,
                nitrogen_loading=n2,
                helium_loading=0.0,
                thermal_diffusivity=THERMAL_DIFFUSIVITY[i],
                heat_capacity=HEAT_CAPACITY[i],
                temperature=self.core_temperature,
            )
            for i in range(NUM_COMPARTMENTS)
        ]

    def update_dive_state(self, depth: float = None, time: float = None, gas_mix: GasMix = None) -> None:
        self._state = self._state.merged(depth=depth, time=time, gas_mix=gas_mix)

    def get_dive_state(self) -> DiveState:
        return self._state

    def get_tissue_compartments(self) -> Tuple[ThermalCompartment, ...]:
        return snapshot(self._compartments)

    def get_compartment_data(self, number: int) -> ThermalCompartment:
        return copy.copy(self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "Hills")])

    def get_compartment_temperature(self, number: int) -> float:
        return self._compartments[check_compartment_number(number, NUM_COMPARTMENTS, "Hills")].temperature

    # --- parameters ---

    def set_thermodynamic_parameters(
        self,
        core_temperature: float = None,
        metabolic_rate: float = None,
        perfusion_multiplier: float = None,
        activation_energy: float = None,
    ) -> None:
        """Change physiology inputs; each is validated before any is applied.

        Raises:
            ValueError: if a value is outside its documented range
        """
        core = self.core_temperature if core_temperature is None else float(core_temperature)
        metabolic = self.metabolic_rate if metabolic_rate is None else float(metabolic_rate)
        perfusion = self.perfusion_multiplier if perfusion_multiplier is None else float(perfusion_multiplier)
        energy = self.activation_energy if activation_energy is None else float(activation_energy)
        require_range("core_temperature", core, 30.0, 42.0)
        require_range("metabolic_rate", metabolic, 0.1, 10.0)
        require_range("perfusion_multiplier", perfusion, 0.1, 5.0)
        require_range("activation_energy", energy, *ACTIVATION_ENERGY_RANGE)
        self.core_temperature = core
        self.metabolic_rate = metabolic
        self.perfusion_multiplier = perfusion
        self.activation_energy = energy

    def get_parameters(self) -> dict:
        return {
            "conservatism_factor": self.conservatism_factor,
            "core_temperature": self.core_temperature,
            "metabolic_rate": self.metabolic_rate,
            "perfusion_multiplier": self.perfusion_multiplier,
            "activation_energy": self.activation_energy,
        }

    def update_parameters(self, **changes) -> None:
        unknown = set(changes) - set(self.get_parameters())
        if unknown:
            raise ValueError(f"Unknown Hills parameter(s): {sorted(unknown)}")
        self.set_thermodynamic_parameters(
            changes.get("core_temperature"),
            changes.get("metabolic_rate"),
            changes.get("perfusion_multiplier"),
            changes.get("activation_energy"),
        )
        if "conservatism_factor" in changes:
            self.conservatism_factor = float(
                clamp_option("conservatism_factor", changes["conservatism_factor"], 0.5, 2.0, "Hills")
            )

    # --- kinetics ---

    def _equilibrium_temperature(self) -> float:
        return self.core_temperature + METABOLIC_HEATING * (self.metabolic_rate - BASELINE_METABOLIC_RATE)

    def _rate_factor(self, c: ThermalCompartment) -> float:
        return arrhenius_factor(c.temperature, self.activation_energy) * self.perfusion_multiplier

    def _advance(self, compartments: List[ThermalCompartment], state: DiveState, dt: float) -> None:
        pp_n2, pp_he, _ = state.partial_pressures()
        t_eq = self._equilibrium_temperature()
        for c in compartments:
            c.temperature = t_eq + (c.temperature - t_eq) * math.exp(-dt / c.thermal_time_constant)

            solubility = solubility_factor(c.temperature)
            rate = self._rate_factor(c)
            c.nitrogen_loading = max(0.0, haldane(
                c.nitrogen_loading, pp_n2 * solubility, c.nitrogen_half_time / rate, dt
            ))
            c.helium_loading = max(0.0, haldane(
                c.helium_loading, pp_he * solubility, c.helium_half_time / rate, dt
            ))

    def advance_loadings(self, dt: float) -> None:
        check_time_step(dt)
        self._advance(self._compartments, self._state, dt)

    # --- ceiling and stops ---

    def _allowable(self, c: ThermalCompartment) -> float:
        """Tolerated supersaturation, rising with absolute tissue temperature."""
        t_ratio = (c.temperature + KELVIN_OFFSET) / (REFERENCE_TEMPERATURE + KELVIN_OFFSET)
        return ALLOWABLE_GRADIENT * t_ratio / self.conservatism_factor

    def _ceiling(self, compartments: List[ThermalCompartment]) -> float:
        deepest = 0.0
        for c in compartments:
            deepest = max(deepest, depth_from_pressure(c.total_loading - self._allowable(c)))
        return round_up_to_stop(deepest)

    def compute_ceiling(self) -> float:
        return self._ceiling(self._compartments)

    def can_ascend_directly(self) -> bool:
        return self.compute_ceiling() <= 0

    def compute_stops(self) -> List[DecompressionStop]:
        work = [copy.copy(c) for c in self._compartments]
        gas = self._state.gas_mix

        def dwell(depth: float) -> int:
            p_next = ambient_pressure(depth - STOP_INCREMENT)
            p_stop = ambient_pressure(depth)
            needed = 0.0
            for c in work:
                rate = self._rate_factor(c)
                half_time = blended_half_time(
                    c.nitrogen_loading, c.helium_loading,
                    c.nitrogen_half_time / rate, c.helium_half_time / rate,
                )
                inspired = (gas.nitrogen + gas.helium) * p_stop * solubility_factor(c.temperature)
                target = p_next + self._allowable(c)
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
        """Worst compartment nucleation probability, percent, times the conservatism factor."""
        p = self._state.ambient_pressure
        worst = 0.0
        for c in self._compartments:
            relative = (c.total_loading - p) / p
            worst = max(worst, nucleation_probability(relative, c.temperature, self.activation_energy))
        return round(min(100.0, worst * 100.0 * self.conservatism_factor), 1)

    def restore_loadings(self, compartments) -> None:
        restore_inert_loadings(self._compartments, compartments)

    def reset(self) -> None:
        self.initialize_compartments()
        self._state = SURFACE_STATE
        logger.debug(f"{self.get_model_name()} reset to surface")
