"""
Tests for the NMRI98 linear-exponential engine with hazard accumulation.
"""

import pytest

from decosim.nmri98 import NMRI_O2_THRESHOLDS, Nmri98Model
from decosim.state import GasMix


def _surfaced(model, dive, depth=50.0, minutes=30.0):
    dive(model, depth, minutes)
    model.update_dive_state(depth=0.0)
    model.advance_loadings(1.0)
    return model


class TestConstruction:
    """Test naming, clamping and initial oxygen state."""

    def test_default_name(self):
        assert Nmri98Model().get_model_name() == "NMRI98 LEM (Conservatism: 3, Risk: 2.0%)"

    def test_options_are_clamped(self):
        model = Nmri98Model(conservatism=10, max_dcs_risk=50.0, safety_factor=5.0)
        params = model.get_parameters()
        assert params["conservatism"] == 5
        assert params["max_dcs_risk"] == 10.0
        assert params["safety_factor"] == 2.0

    def test_update_unknown_parameter(self):
        with pytest.raises(ValueError, match="Unknown NMRI98 parameter"):
            Nmri98Model().update_parameters(conservatism_factor=1.0)

    def test_three_compartments(self):
        model = Nmri98Model()
        assert len(model.get_tissue_compartments()) == 3
        with pytest.raises(IndexError):
            model.get_compartment_data(4)

    def test_initial_oxygen_loading(self):
        c = Nmri98Model().get_compartment_data(1)
        assert c.oxygen_loading == pytest.approx(0.21 * 1.013)
        assert c.accumulated_hazard == 0.0


class TestHazard:
    """Test hazard accumulation, reset and the survival-function risk."""

    def test_no_hazard_at_surface(self):
        model = Nmri98Model()
        model.advance_loadings(30.0)
        assert model.get_max_hazard() == 0.0
        assert model.compute_dcs_risk() == 0.0

    def test_hazard_after_surfacing(self, dive):
        model = _surfaced(Nmri98Model(), dive)
        assert model.get_max_hazard() > 0.0
        assert 0.0 < model.compute_dcs_risk() <= 100.0

    def test_hazard_keeps_growing_while_supersaturated(self, dive):
        model = _surfaced(Nmri98Model(), dive)
        first = model.get_max_hazard()
        model.advance_loadings(1.0)
        assert model.get_max_hazard() > first

    def test_hazard_clears_once_off_gassed(self, dive):
        model = _surfaced(Nmri98Model(), dive)
        model.advance_loadings(2000.0)
        assert model.get_max_hazard() == 0.0

    def test_reset_clears_hazard(self, dive):
        model = _surfaced(Nmri98Model(), dive)
        model.reset()
        assert model.get_max_hazard() == 0.0
        assert model.get_dive_state().time == 0.0

    def test_conservatism_raises_risk(self, dive):
        liberal = _surfaced(Nmri98Model(conservatism=0), dive)
        strict = _surfaced(Nmri98Model(conservatism=5), dive)
        assert strict.compute_dcs_risk() >= liberal.compute_dcs_risk()
        assert strict.compute_ceiling() >= liberal.compute_ceiling()


class TestOxygenTracking:
    """Test the oxygen contribution above the compartment thresholds."""

    def test_oxygen_loads_on_high_ppo2(self, dive):
        model = dive(Nmri98Model(), 6.0, 60.0, gas_mix=GasMix(oxygen=1.0))
        assert model.get_compartment_data(1).oxygen_loading > NMRI_O2_THRESHOLDS[0]

    def test_disabled_tracking_leaves_oxygen_alone(self, dive):
        model = dive(Nmri98Model(enable_oxygen_tracking=False), 6.0, 60.0, gas_mix=GasMix(oxygen=1.0))
        assert model.get_compartment_data(1).oxygen_loading == pytest.approx(0.21 * 1.013)


class TestDecompression:
    """Test ceiling, stops and the status summary."""

    def test_deco_dive_requires_stops(self, dive):
        model = dive(Nmri98Model(), 50.0, 30.0)
        assert model.compute_ceiling() > 0
        stops = model.compute_stops()
        assert stops
        assert all(s.depth % 3.0 == 0 for s in stops)

    def test_model_status(self, dive):
        model = dive(Nmri98Model(), 30.0, 10.0)
        status = model.get_model_status()
        assert status["model"] == model.get_model_name()
        assert status["depth"] == 30.0
        assert status["ceiling"] == model.compute_ceiling()
        assert status["parameters"] == model.get_parameters()
