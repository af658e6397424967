"""
Immutable gas mixture and dive state value types.

Nitrogen fraction and ambient pressure are derived properties, never stored,
so the fraction-sum and depth/pressure invariants hold by construction.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from .constants import ambient_pressure

# Tolerance for oxygen + helium slightly above 1.0 from float rounding
_FRACTION_TOLERANCE = 1e-9


@dataclass(frozen=True)
class GasMix:
    """Breathing gas defined by its oxygen and helium fractions (0.0–1.0).

    Nitrogen is whatever remains.
    """
    oxygen: float = 0.21
    helium: float = 0.0

    def __post_init__(self):
        if not (0.0 <= self.oxygen <= 1.0):
            raise ValueError(f"oxygen fraction must be in [0, 1], got {self.oxygen}")
        if not (0.0 <= self.helium <= 1.0):
            raise ValueError(f"helium fraction must be in [0, 1], got {self.helium}")
        if self.oxygen + self.helium > 1.0 + _FRACTION_TOLERANCE:
            raise ValueError(
                f"oxygen ({self.oxygen}) + helium ({self.helium}) must not exceed 1.0"
            )

    @property
    def nitrogen(self) -> float:
        return max(0.0, 1.0 - self.oxygen - self.helium)

    @classmethod
    def from_percent(cls, oxygen: float, helium: float = 0.0) -> "GasMix":
        """Build a mix from percentages, e.g. GasMix.from_percent(18, 45)."""
        return cls(oxygen=oxygen / 100.0, helium=helium / 100.0)

    def __str__(self) -> str:
        o2 = round(self.oxygen * 100)
        he = round(self.helium * 100)
        if he == 0:
            return "Air" if o2 == 21 else f"EAN{o2}"
        return f"Tx{o2}/{he}"


AIR = GasMix(oxygen=0.21, helium=0.0)


@dataclass(frozen=True)
class DiveState:
    """Snapshot of the diver's situation: depth (m), elapsed time (min), gas."""
    depth: float = 0.0
    time: float = 0.0
    gas_mix: GasMix = AIR

    def __post_init__(self):
        if self.depth < 0:
            raise ValueError(f"depth must be >= 0, got {self.depth}")
        if self.time < 0:
            raise ValueError(f"time must be >= 0, got {self.time}")

    @property
    def ambient_pressure(self) -> float:
        """Absolute pressure (bar), always recomputed from depth."""
        return ambient_pressure(self.depth)

    def merged(
        self,
        depth: Optional[float] = None,
        time: Optional[float] = None,
        gas_mix: Optional[GasMix] = None,
    ) -> "DiveState":
        """Return a new state with the given fields replaced.

        Raises:
            ValueError: if the new time is earlier than the current time
        """
        changes = {}
        if depth is not None:
            changes["depth"] = float(depth)
        if time is not None:
            if time < self.time:
                raise ValueError(
                    f"elapsed time cannot go backwards ({time} < {self.time})"
                )
            changes["time"] = float(time)
        if gas_mix is not None:
            changes["gas_mix"] = gas_mix
        return replace(self, **changes)

    def partial_pressures(self) -> Tuple[float, float, float]:
        """Inspired (nitrogen, helium, oxygen) partial pressures in bar."""
        p = self.ambient_pressure
        mix = self.gas_mix
        return mix.nitrogen * p, mix.helium * p, mix.oxygen * p


SURFACE_STATE = DiveState()
