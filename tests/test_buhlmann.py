"""
Tests for the Bühlmann ZH-L16C gradient factor engine.
"""

import pytest

from decosim.buhlmann import BuhlmannModel
from decosim.gradient import GradientFactors
from decosim.state import AIR, GasMix


@pytest.fixture
def model():
    return BuhlmannModel()


class TestConstruction:
    """Test defaults, naming and initial tissue state."""

    def test_model_name(self, model):
        assert model.get_model_name() == "Bühlmann ZH-L16C GF 30/85"

    def test_custom_gradient_factors_in_name(self):
        assert BuhlmannModel(40, 70).get_model_name() == "Bühlmann ZH-L16C GF 40/70"

    def test_sixteen_compartments_at_surface_equilibrium(self, model):
        compartments = model.get_tissue_compartments()
        assert len(compartments) == 16
        for c in compartments:
            assert c.nitrogen_loading == pytest.approx(0.79 * 1.013)
            assert c.helium_loading == 0.0

    def test_compartment_data(self, model):
        c = model.get_compartment_data(1)
        assert c.number == 1
        assert c.nitrogen_half_time == 5.0
        assert c.helium_half_time == 1.88
        assert model.get_compartment_data(16).nitrogen_half_time == 635.0

    @pytest.mark.parametrize("number", [0, 17])
    def test_compartment_data_out_of_range(self, model, number):
        with pytest.raises(IndexError, match="1-16"):
            model.get_compartment_data(number)

    def test_compartment_data_is_a_copy(self, model):
        c = model.get_compartment_data(1)
        c.nitrogen_loading = 9.9
        assert model.get_compartment_data(1).nitrogen_loading == pytest.approx(0.79 * 1.013)

    @pytest.mark.parametrize("low,high", [(90, 80), (-1, 85), (30, 120)])
    def test_invalid_gradient_factors(self, low, high):
        with pytest.raises(ValueError, match="Gradient factor"):
            BuhlmannModel(low, high)


class TestSurface:
    """A model at surface equilibrium needs nothing."""

    def test_no_ceiling_no_stops(self, model):
        assert model.compute_ceiling() == 0.0
        assert model.compute_stops() == []
        assert model.can_ascend_directly()
        assert model.compute_dcs_risk() == 0.0
        assert model.compute_tts() == 0.0
        assert model.get_first_stop_depth() == 0.0

    def test_surface_m_value(self, model):
        assert model.calculate_m_value(1, depth=0.0) == pytest.approx(3.26584, abs=1e-5)

    def test_gf_m_value_uses_high_without_deco(self, model):
        expected = 1.013 + 0.85 * (3.26584 - 1.013)
        assert model.calculate_gradient_factor_m_value(1, depth=0.0) == pytest.approx(expected, abs=1e-4)

    def test_supersaturation_negative_at_surface(self, model):
        assert model.calculate_supersaturation(1) == pytest.approx(-9.4)


class TestDives:
    """Test loading, ceilings and stops over real exposures."""

    def test_short_dive_has_shallow_ceiling(self, model, dive):
        dive(model, 40.0, 5.0, step=1.0 / 6.0)
        model.update_dive_state(depth=0.0)
        assert 0.0 <= model.compute_ceiling() <= 15.0

    def test_loadings_rise_at_depth(self, model, dive):
        dive(model, 30.0, 10.0)
        fast = model.get_compartment_data(1)
        slow = model.get_compartment_data(16)
        assert fast.nitrogen_loading > slow.nitrogen_loading > 0.79 * 1.013

    def test_time_tracks_driver(self, model, dive):
        dive(model, 30.0, 10.0)
        assert model.get_dive_state().time == pytest.approx(10.0)
        assert model.get_dive_state().depth == 30.0

    def test_decompression_dive(self, model, dive):
        dive(model, 40.0, 30.0)
        assert model.compute_ceiling() > 0
        assert not model.can_ascend_directly()

        stops = model.compute_stops()
        assert stops
        depths = [s.depth for s in stops]
        assert depths == sorted(depths, reverse=True)
        assert all(d % 3.0 == 0 for d in depths)
        assert all(s.time > 0 and s.gas_mix == AIR for s in stops)
        assert model.compute_tts() == pytest.approx(sum(s.time for s in stops) + 40.0 / 9.0)

    def test_stops_do_not_change_model(self, model, dive):
        dive(model, 40.0, 30.0)
        before = model.get_tissue_compartments()
        model.compute_stops()
        assert model.get_tissue_compartments() == before

    def test_lower_gradient_factors_are_more_conservative(self, dive):
        plain = dive(BuhlmannModel(100, 100), 45.0, 25.0)
        conservative = dive(BuhlmannModel(30, 70), 45.0, 25.0)
        assert conservative.get_first_stop_depth() >= plain.get_first_stop_depth()
        assert conservative.compute_ceiling() >= plain.compute_ceiling()
        plain_time = sum(s.time for s in plain.compute_stops())
        conservative_time = sum(s.time for s in conservative.compute_stops())
        assert conservative_time >= plain_time

    def test_risk_after_surfacing_from_deco(self, model, dive):
        dive(model, 40.0, 30.0)
        model.update_dive_state(depth=0.0)
        assert 0.0 < model.compute_dcs_risk() <= 100.0

    def test_trimix_loads_helium(self, model, dive):
        dive(model, 60.0, 15.0, gas_mix=GasMix(oxygen=0.18, helium=0.45))
        c = model.get_compartment_data(1)
        assert c.helium_loading > 0.0
        assert model.get_dive_state().gas_mix == GasMix(oxygen=0.18, helium=0.45)


class TestParameters:
    """Test gradient factor updates and parameter round trips."""

    def test_set_gradient_factors(self, model):
        model.set_gradient_factors(50, 80)
        assert model.get_gradient_factors() == GradientFactors(50, 80)
        assert model.get_model_name() == "Bühlmann ZH-L16C GF 50/80"

    def test_set_invalid_keeps_old_values(self, model):
        with pytest.raises(ValueError):
            model.set_gradient_factors(90, 50)
        assert model.get_gradient_factors() == GradientFactors(30, 85)

    def test_update_parameters(self, model):
        model.update_parameters(gradient_factor_high=95)
        assert model.get_parameters() == {"gradient_factor_low": 30.0, "gradient_factor_high": 95.0}

    def test_update_unknown_parameter(self, model):
        with pytest.raises(ValueError, match="Unknown"):
            model.update_parameters(conservatism=2)


class TestStateManagement:
    """Test restore and reset."""

    def test_restore_loadings(self, model, dive):
        loaded = dive(BuhlmannModel(), 30.0, 20.0)
        model.restore_loadings(loaded.get_tissue_compartments())
        assert model.get_compartment_data(5).nitrogen_loading == pytest.approx(
            loaded.get_compartment_data(5).nitrogen_loading
        )

    def test_restore_wrong_count(self, model):
        with pytest.raises(ValueError, match="expected 16 compartments"):
            model.restore_loadings(model.get_tissue_compartments()[:3])

    def test_reset_restores_air(self, model, dive):
        dive(model, 30.0, 20.0, gas_mix=GasMix(oxygen=0.32))
        model.reset()
        state = model.get_dive_state()
        assert (state.depth, state.time, state.gas_mix) == (0.0, 0.0, AIR)
        assert model.get_compartment_data(1).nitrogen_loading == pytest.approx(0.79 * 1.013)
