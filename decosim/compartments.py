"""
Tissue compartment record shared by every model.

Each engine extends TissueCompartment with its own kinetic fields; the base
record only holds what all of them agree on.
"""

from dataclasses import dataclass


@dataclass
class TissueCompartment:
    """One idealized tissue: 1-based number, half-times (min), loadings (bar)."""
    number: int
    nitrogen_half_time: float
    helium_half_time: float
    nitrogen_loading: float
    helium_loading: float = 0.0

    @property
    def total_loading(self) -> float:
        """Total inert gas tension (N2 + He)."""
        return self.nitrogen_loading + self.helium_loading

    @property
    def helium_share(self) -> float:
        """Fraction of the inert loading carried by helium (0 when empty)."""
        total = self.total_loading
        if total <= 0:
            return 0.0
        return self.helium_loading / total


def check_compartment_number(number: int, count: int, label: str = "Model") -> int:
    """Validate a 1-based compartment number and return its 0-based index.

    Raises:
        IndexError: if number is outside 1..count
    """
    if not (1 <= number <= count):
        raise IndexError(
            f"{label} has only {count} compartments (1-{count}), got {number}"
        )
    return int(number) - 1
