"""
Tests for the Hills thermodynamic engine.
"""

import math

import pytest

from decosim.hills import (
    HillsModel,
    arrhenius_factor,
    nucleation_probability,
    solubility_factor,
)


class TestThermalFunctions:
    """Test solubility, Arrhenius and nucleation helpers."""

    def test_reference_temperature_is_neutral(self):
        assert solubility_factor(37.0) == pytest.approx(1.0)
        assert arrhenius_factor(37.0) == pytest.approx(1.0)

    def test_warmer_tissue_dissolves_less(self):
        assert solubility_factor(42.0) == pytest.approx(0.9)

    def test_solubility_floor(self):
        assert solubility_factor(200.0) == pytest.approx(0.1)

    def test_warmer_tissue_exchanges_faster(self):
        assert arrhenius_factor(40.0) > 1.0 > arrhenius_factor(34.0)

    def test_no_nucleation_without_supersaturation(self):
        assert nucleation_probability(0.0, 37.0) == 0.0
        assert nucleation_probability(-0.5, 37.0) == 0.0

    def test_nucleation_rises_with_supersaturation(self):
        low = nucleation_probability(0.5, 37.0)
        high = nucleation_probability(2.0, 37.0)
        assert 0.0 < low < high < 1.0

    def test_nucleation_at_reference(self):
        expected = math.exp(-50000.0 / (8.314 * 310.15))
        assert nucleation_probability(0.25, 37.0) == pytest.approx(expected)

    def test_activation_energy_scales_both_factors(self):
        assert arrhenius_factor(40.0, 80000.0) > arrhenius_factor(40.0) > 1.0
        assert nucleation_probability(0.5, 37.0, 80000.0) < nucleation_probability(0.5, 37.0)


class TestConstruction:
    """Test naming and option handling."""

    def test_default_name(self):
        assert HillsModel().get_model_name() == "Thermodynamic (Hills) - CF: 1.0"

    def test_conservatism_factor_is_clamped(self):
        assert HillsModel(conservatism_factor=5.0).conservatism_factor == 2.0

    @pytest.mark.parametrize(
        "kwargs,name",
        [
            ({"core_temperature": 45.0}, "core_temperature"),
            ({"metabolic_rate": 0.0}, "metabolic_rate"),
            ({"perfusion_multiplier": 8.0}, "perfusion_multiplier"),
            ({"activation_energy": 5000.0}, "activation_energy"),
        ],
    )
    def test_reject_physiology(self, kwargs, name):
        with pytest.raises(ValueError, match=f"{name} must be between"):
            HillsModel(**kwargs)

    def test_failed_update_applies_nothing(self):
        model = HillsModel()
        with pytest.raises(ValueError):
            model.set_thermodynamic_parameters(core_temperature=36.0, perfusion_multiplier=10.0)
        assert model.core_temperature == 37.0

    def test_update_parameters(self):
        model = HillsModel()
        model.update_parameters(metabolic_rate=2.0, conservatism_factor=1.5)
        assert model.get_parameters()["metabolic_rate"] == 2.0
        assert model.get_model_name() == "Thermodynamic (Hills) - CF: 1.5"

    def test_sixteen_compartments(self):
        model = HillsModel()
        assert len(model.get_tissue_compartments()) == 16
        assert model.get_compartment_data(1).helium_half_time == pytest.approx(2.5 * 0.4)


class TestTemperature:
    """Test tissue temperature relaxation."""

    def test_resting_temperature_is_stable(self):
        model = HillsModel()
        model.advance_loadings(60.0)
        assert model.get_compartment_temperature(1) == pytest.approx(37.0)

    def test_exercise_warms_tissue(self):
        model = HillsModel(metabolic_rate=3.2)
        model.advance_loadings(120.0)
        # 37 + 0.5 * (3.2 - 1.2)
        assert model.get_compartment_temperature(1) == pytest.approx(38.0, abs=1e-3)
        assert model.get_compartment_temperature(16) == pytest.approx(38.0, abs=1e-3)

    def test_temperature_out_of_range(self):
        with pytest.raises(IndexError):
            HillsModel().get_compartment_temperature(17)


class TestDecompression:
    """Test loading, ceilings and risk."""

    def test_surface_is_clear(self):
        model = HillsModel()
        assert model.compute_ceiling() == 0.0
        assert model.compute_dcs_risk() == 0.0
        assert model.compute_stops() == []

    def test_perfusion_speeds_loading(self, dive):
        slow = dive(HillsModel(), 30.0, 10.0)
        fast = dive(HillsModel(perfusion_multiplier=2.0), 30.0, 10.0)
        assert fast.get_compartment_data(16).nitrogen_loading > slow.get_compartment_data(16).nitrogen_loading

    def test_deco_dive_requires_stops(self, dive):
        model = dive(HillsModel(), 45.0, 30.0)
        assert model.compute_ceiling() > 0
        assert model.compute_stops()

    def test_conservatism_factor(self, dive):
        liberal = dive(HillsModel(conservatism_factor=0.5), 40.0, 30.0)
        strict = dive(HillsModel(conservatism_factor=2.0), 40.0, 30.0)
        assert strict.compute_ceiling() >= liberal.compute_ceiling()
        liberal.update_dive_state(depth=0.0)
        strict.update_dive_state(depth=0.0)
        assert strict.compute_dcs_risk() >= liberal.compute_dcs_risk() > 0.0


class TestActivationEnergy:
    """Test the configurable activation energy."""

    def test_default_in_parameters(self):
        assert HillsModel().get_parameters()["activation_energy"] == 50000.0

    def test_set_thermodynamic_parameters(self):
        model = HillsModel()
        model.set_thermodynamic_parameters(activation_energy=80000.0)
        assert model.activation_energy == 80000.0
        assert model.core_temperature == 37.0

    def test_update_parameters(self):
        model = HillsModel()
        model.update_parameters(activation_energy=30000.0)
        assert model.get_parameters()["activation_energy"] == 30000.0

    def test_lower_barrier_raises_risk(self, dive):
        low = dive(HillsModel(activation_energy=30000.0), 40.0, 30.0)
        high = dive(HillsModel(activation_energy=80000.0), 40.0, 30.0)
        low.update_dive_state(depth=0.0)
        high.update_dive_state(depth=0.0)
        assert low.compute_dcs_risk() >= high.compute_dcs_risk()
        assert low.compute_dcs_risk() > 0.0

    def test_warm_tissue_loads_faster_with_higher_energy(self, dive):
        low = dive(HillsModel(metabolic_rate=7.2, activation_energy=20000.0), 30.0, 10.0)
        high = dive(HillsModel(metabolic_rate=7.2, activation_energy=150000.0), 30.0, 10.0)
        assert high.get_compartment_data(16).nitrogen_loading > low.get_compartment_data(16).nitrogen_loading
