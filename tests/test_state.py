"""
Tests for gas mixes, dive states and the shared physical constants.
"""

import pytest

from decosim.constants import (
    SURFACE_PRESSURE,
    ambient_pressure,
    depth_from_pressure,
    round_up_to_stop,
    surface_nitrogen_loading,
)
from decosim.compartments import TissueCompartment, check_compartment_number
from decosim.state import AIR, DiveState, GasMix, SURFACE_STATE


class TestGasMix:
    """Test GasMix validation and derived nitrogen fraction."""

    def test_air_defaults(self):
        assert AIR.oxygen == 0.21
        assert AIR.helium == 0.0
        assert AIR.nitrogen == pytest.approx(0.79)

    def test_trimix_nitrogen(self):
        mix = GasMix(oxygen=0.18, helium=0.45)
        assert mix.nitrogen == pytest.approx(0.37)

    def test_pure_oxygen_has_no_nitrogen(self):
        assert GasMix(oxygen=1.0).nitrogen == 0.0

    def test_from_percent(self):
        mix = GasMix.from_percent(21, 35)
        assert mix.oxygen == pytest.approx(0.21)
        assert mix.helium == pytest.approx(0.35)

    @pytest.mark.parametrize("oxygen,helium", [(-0.1, 0.0), (1.2, 0.0), (0.21, -0.01), (0.21, 1.5)])
    def test_reject_fraction_out_of_range(self, oxygen, helium):
        with pytest.raises(ValueError, match="fraction must be in"):
            GasMix(oxygen=oxygen, helium=helium)

    def test_reject_fractions_over_one(self):
        with pytest.raises(ValueError, match="must not exceed 1.0"):
            GasMix(oxygen=0.5, helium=0.6)

    def test_names(self):
        assert str(AIR) == "Air"
        assert str(GasMix(oxygen=0.32)) == "EAN32"
        assert str(GasMix(oxygen=0.18, helium=0.45)) == "Tx18/45"

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            AIR.oxygen = 0.5


class TestDiveState:
    """Test DiveState construction, merging and derived pressures."""

    def test_surface_state(self):
        assert SURFACE_STATE.depth == 0.0
        assert SURFACE_STATE.time == 0.0
        assert SURFACE_STATE.gas_mix == AIR
        assert SURFACE_STATE.ambient_pressure == pytest.approx(SURFACE_PRESSURE)

    def test_ambient_pressure_follows_depth(self):
        state = DiveState(depth=30.0)
        assert state.ambient_pressure == pytest.approx(4.013)

    def test_reject_negative_depth(self):
        with pytest.raises(ValueError, match="depth must be >= 0"):
            DiveState(depth=-1.0)

    def test_reject_negative_time(self):
        with pytest.raises(ValueError, match="time must be >= 0"):
            DiveState(time=-0.5)

    def test_merged_replaces_only_given_fields(self):
        state = DiveState(depth=20.0, time=5.0)
        merged = state.merged(depth=25.0)
        assert merged.depth == 25.0
        assert merged.time == 5.0
        assert merged.gas_mix == AIR
        assert state.depth == 20.0

    def test_merged_gas(self):
        nitrox = GasMix(oxygen=0.32)
        assert SURFACE_STATE.merged(gas_mix=nitrox).gas_mix == nitrox

    def test_merged_rejects_time_going_backwards(self):
        state = DiveState(time=10.0)
        with pytest.raises(ValueError, match="cannot go backwards"):
            state.merged(time=9.0)

    def test_merged_accepts_same_time(self):
        assert DiveState(time=10.0).merged(time=10.0).time == 10.0

    def test_partial_pressures(self):
        state = DiveState(depth=40.0, gas_mix=GasMix(oxygen=0.21, helium=0.35))
        n2, he, o2 = state.partial_pressures()
        p = 1.013 + 4.0
        assert n2 == pytest.approx(0.44 * p)
        assert he == pytest.approx(0.35 * p)
        assert o2 == pytest.approx(0.21 * p)


class TestConstants:
    """Test depth/pressure conversions and stop rounding."""

    def test_ambient_pressure(self):
        assert ambient_pressure(0.0) == pytest.approx(1.013)
        assert ambient_pressure(10.0) == pytest.approx(2.013)

    def test_depth_from_pressure_round_trip(self):
        assert depth_from_pressure(ambient_pressure(33.0)) == pytest.approx(33.0)

    def test_depth_from_pressure_floors_at_surface(self):
        assert depth_from_pressure(0.5) == 0.0

    @pytest.mark.parametrize(
        "depth,expected",
        [(0.0, 0.0), (-2.0, 0.0), (0.1, 3.0), (3.0, 3.0), (3.0000000001, 3.0), (4.2, 6.0), (17.9, 18.0)],
    )
    def test_round_up_to_stop(self, depth, expected):
        assert round_up_to_stop(depth) == expected

    def test_surface_nitrogen_loading(self):
        assert surface_nitrogen_loading() == pytest.approx(0.79 * 1.013)
        assert surface_nitrogen_loading(water_vapor=True) == pytest.approx(0.79 * (1.013 - 0.0627))


class TestTissueCompartment:
    """Test the shared compartment record."""

    def test_total_loading_and_helium_share(self):
        c = TissueCompartment(1, 5.0, 1.88, nitrogen_loading=0.6, helium_loading=0.2)
        assert c.total_loading == pytest.approx(0.8)
        assert c.helium_share == pytest.approx(0.25)

    def test_empty_helium_share(self):
        c = TissueCompartment(1, 5.0, 1.88, nitrogen_loading=0.0)
        assert c.helium_share == 0.0

    def test_check_compartment_number(self):
        assert check_compartment_number(1, 16) == 0
        assert check_compartment_number(16, 16) == 15

    @pytest.mark.parametrize("number", [0, 17, -1])
    def test_check_compartment_number_rejects(self, number):
        with pytest.raises(IndexError, match="has only 16 compartments"):
            check_compartment_number(number, 16)
