"""
Bühlmann ZH-L16C constants and gradient factor math.

Shared by the dissolved-gas engine, the folded-bubble engine and the
Navy-style linear-exponential engine. All functions are pure.
"""

from dataclasses import dataclass
from typing import Tuple

NUM_COMPARTMENTS = 16

# Half-times in minutes (compartment 1b for the fastest tissue)
ZH_L16_N2_HALFTIMES: Tuple[float, ...] = (
    5.0, 8.0, 12.5, 18.5, 27.0, 38.3, 54.3, 77.0,
    109.0, 146.0, 187.0, 239.0, 305.0, 390.0, 498.0, 635.0,
)

ZH_L16_HE_HALFTIMES: Tuple[float, ...] = (
    1.88, 3.02, 4.72, 6.99, 10.21, 14.48, 20.53, 29.11,
    41.20, 55.19, 70.69, 90.34, 115.29, 147.42, 188.24, 240.03,
)

# M-value coefficients: M(P) = a + P/b
ZH_L16_N2_A: Tuple[float, ...] = (
    1.2599, 1.0000, 0.8618, 0.7562, 0.6667, 0.5933, 0.5282, 0.4701,
    0.4187, 0.3798, 0.3497, 0.3223, 0.2971, 0.2737, 0.2523, 0.2327,
)

ZH_L16_N2_B: Tuple[float, ...] = (
    0.5050, 0.6514, 0.7222, 0.7825, 0.8126, 0.8434, 0.8693, 0.8910,
    0.9092, 0.9222, 0.9319, 0.9403, 0.9477, 0.9544, 0.9602, 0.9653,
)

ZH_L16_HE_A: Tuple[float, ...] = (
    1.7424, 1.3830, 1.1919, 1.0458, 0.9220, 0.8205, 0.7305, 0.6502,
    0.5950, 0.5545, 0.5333, 0.5189, 0.5181, 0.5176, 0.5172, 0.5119,
)

ZH_L16_HE_B: Tuple[float, ...] = (
    0.4245, 0.5747, 0.6527, 0.7223, 0.7582, 0.7957, 0.8279, 0.8553,
    0.8757, 0.8903, 0.8997, 0.9073, 0.9122, 0.9171, 0.9217, 0.9267,
)


@dataclass(frozen=True)
class GradientFactors:
    """Gradient factor pair in percent.

    low:  applied at the first stop, controls how deep decompression starts
    high: applied at the surface, controls the final ascent
    100/100 is plain Bühlmann.
    """
    low: float = 30.0
    high: float = 85.0

    def __post_init__(self):
        if not (0.0 <= self.low <= 100.0):
            raise ValueError(
                f"Gradient factor low must be between 0 and 100, got {self.low}"
            )
        if not (0.0 <= self.high <= 100.0):
            raise ValueError(
                f"Gradient factor high must be between 0 and 100, got {self.high}"
            )
        if self.low > self.high:
            raise ValueError(
                f"Gradient factor low ({self.low}) cannot be greater than "
                f"gradient factor high ({self.high})"
            )

    @property
    def low_fraction(self) -> float:
        return self.low / 100.0

    @property
    def high_fraction(self) -> float:
        return self.high / 100.0

    @property
    def is_standard(self) -> bool:
        """True if GF 100/100 (no adjustment)."""
        return self.low == 100.0 and self.high == 100.0


GF_DEFAULT = GradientFactors(low=30.0, high=85.0)


def blended_coefficients(
    idx: int, nitrogen_loading: float, helium_loading: float
) -> Tuple[float, float]:
    """M-value (a, b) blended by each gas's share of the total loading."""
    total = nitrogen_loading + helium_loading
    if total <= 0 or helium_loading <= 0:
        return ZH_L16_N2_A[idx], ZH_L16_N2_B[idx]
    he_share = helium_loading / total
    n2_share = 1.0 - he_share
    a = ZH_L16_N2_A[idx] * n2_share + ZH_L16_HE_A[idx] * he_share
    b = ZH_L16_N2_B[idx] * n2_share + ZH_L16_HE_B[idx] * he_share
    return a, b


def m_value(a: float, b: float, ambient_pressure: float) -> float:
    """Standard M-value at a given ambient pressure.

    M(P) = a + P/b
    """
    return a + ambient_pressure / b


def m_value_gf(a: float, b: float, ambient_pressure: float, gf: float) -> float:
    """GF-adjusted M-value at a given ambient pressure.

    M_gf(P) = P + gf * (M(P) - P)
    At gf=1.0, reduces to standard M(P).
    """
    m = m_value(a, b, ambient_pressure)
    return ambient_pressure + gf * (m - ambient_pressure)


def ceiling_pressure_gf(a: float, b: float, tissue_pressure: float, gf: float) -> float:
    """GF-adjusted ceiling pressure (bar) for a single compartment.

    Solves for ambient pressure P where tissue_pressure = M_gf(P):
        P_ceil = (tissue_pressure - gf * a) / (1 - gf + gf / b)

    Returns 0.0 if the denominator is not positive or the result is negative.
    """
    denominator = 1.0 - gf + gf / b
    if denominator <= 0:
        return 0.0
    ceil_p = (tissue_pressure - gf * a) / denominator
    return max(0.0, ceil_p)


def gf_at_depth(gf: GradientFactors, depth: float, first_stop: float) -> float:
    """Interpolated gradient factor (fraction) at a depth.

    GF-Low applies at and below the first stop; above it GF-High is
    approached linearly toward the surface.
    """
    if first_stop <= 0 or depth >= first_stop:
        return gf.low_fraction if first_stop > 0 else gf.high_fraction
    depth = max(0.0, depth)
    return gf.high_fraction + (gf.low_fraction - gf.high_fraction) * depth / first_stop

