"""
The capability interface every decompression engine satisfies.

Engines are independent classes, one per theory; they share method shapes,
not a base class. A few small helpers keep option handling consistent.
"""

import copy
import logging
import math
from typing import Iterable, List, Protocol, Tuple, runtime_checkable

from .compartments import TissueCompartment
from .scheduler import DecompressionStop
from .state import DiveState, GasMix

logger = logging.getLogger(__name__)


@runtime_checkable
class DecompressionModel(Protocol):
    """Operations shared by all eight engines."""

    kind: str
    risk_units: str

    def get_model_name(self) -> str: ...

    def initialize_compartments(self) -> None: ...

    def update_dive_state(
        self, depth: float = None, time: float = None, gas_mix: GasMix = None
    ) -> None: ...

    def get_dive_state(self) -> DiveState: ...

    def get_tissue_compartments(self) -> Tuple[TissueCompartment, ...]: ...

    def get_compartment_data(self, number: int) -> TissueCompartment: ...

    def advance_loadings(self, dt: float) -> None: ...

    def compute_ceiling(self) -> float: ...

    def compute_stops(self) -> List[DecompressionStop]: ...

    def can_ascend_directly(self) -> bool: ...

    def compute_dcs_risk(self) -> float: ...

    def compute_tts(self, ascent_rate: float = ...) -> float: ...

    def get_parameters(self) -> dict: ...

    def update_parameters(self, **changes) -> None: ...

    def restore_loadings(self, compartments: Iterable[TissueCompartment]) -> None: ...

    def reset(self) -> None: ...


def clamp_option(name: str, value: float, low: float, high: float, model: str) -> float:
    """Clamp an option into [low, high], warning when it had to move."""
    clamped = min(high, max(low, value))
    if clamped != value:
        logger.warning(f"{model}: {name}={value} out of range [{low}, {high}], using {clamped}")
    return clamped


def require_range(name: str, value: float, low: float, high: float, message: str = None) -> float:
    """Return value if low <= value <= high, else raise ValueError."""
    if not (low <= value <= high):
        raise ValueError(message or f"{name} must be between {low} and {high}, got {value}")
    return value


def snapshot(compartments: Iterable[TissueCompartment]) -> Tuple[TissueCompartment, ...]:
    """Independent copies of compartments for read-only callers."""
    return tuple(copy.copy(c) for c in compartments)


def check_time_step(dt: float) -> float:
    if dt < 0 or math.isnan(dt):
        raise ValueError(f"time step must be >= 0, got {dt}")
    return dt


def whole_minutes(minutes: float, cap: float) -> int:
    """Round a dwell estimate up to whole minutes, capped; inf maps to cap."""
    if minutes <= 0:
        return 0
    if math.isinf(minutes):
        return int(cap)
    return int(min(cap, math.ceil(minutes - 1e-9)))


# Longest integration step (min) while a compartment can grow bubbles
BUBBLE_SUBSTEP = 0.5

# Supersaturation (bar) below which bubble growth is negligible
SUPERSATURATION_EPSILON = 1e-6


def substep(remaining: float, supersaturation: float) -> float:
    """Length of the next bubble integration step.

    Supersaturated compartments advance in steps of at most BUBBLE_SUBSTEP.
    At constant ambient pressure an undersaturated compartment stays
    undersaturated, so the rest of the interval is taken at once.
    """
    if supersaturation > SUPERSATURATION_EPSILON:
        return min(remaining, BUBBLE_SUBSTEP)
    return remaining


def restore_inert_loadings(
    targets: List[TissueCompartment], sources: Iterable[TissueCompartment]
) -> None:
    """Copy nitrogen/helium loadings compartment by compartment.

    Raises:
        ValueError: if the compartment counts differ
    """
    sources = list(sources)
    if len(sources) != len(targets):
        raise ValueError(
            f"expected {len(targets)} compartments, got {len(sources)}"
        )
    for target, source in zip(targets, sources):
        target.nitrogen_loading = max(0.0, source.nitrogen_loading)
        target.helium_loading = max(0.0, source.helium_loading)
