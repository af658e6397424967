"""
Unit tests for decosim/comparator.py

Tests cover:
- Single-model simulation traces
- ModelComparator construction and profile comparison
- Failure isolation, parallel runs and ceiling matrices
- Plot generation
"""

import logging
from unittest.mock import patch

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest

from decosim.comparator import ComparisonResult, ModelComparator, ModelTrace, risk_percent, simulate
from decosim.profile_generator import DiveProfile, ProfileGenerator
from decosim.registry import create_model


@pytest.fixture
def profile():
    return ProfileGenerator(sampling_interval=1.0).generate_square(40.0, 25.0)


@pytest.fixture
def comparator():
    return ModelComparator(kinds=["buhlmann", "bvm", "nmri98"])


class TestSimulate:
    """Tests for driving one model through a profile."""

    def test_trace_shapes(self, profile):
        trace = simulate(create_model("buhlmann"), profile)
        n = len(profile.points)
        assert isinstance(trace, ModelTrace)
        for array in (trace.times, trace.depths, trace.ceilings, trace.risks, trace.can_ascend):
            assert len(array) == n
        np.testing.assert_allclose(trace.depths, [p.depth for p in profile.points])

    def test_decompression_dive_has_stops(self, profile):
        trace = simulate(create_model("buhlmann"), profile)
        assert trace.requires_deco
        assert trace.max_ceiling > 0
        assert trace.tts == pytest.approx(trace.total_stop_time + 40.0 / 9.0)

    def test_starts_clear(self, profile):
        trace = simulate(create_model("vpmb"), profile)
        assert trace.ceilings[0] == 0.0
        assert trace.can_ascend[0]

    def test_model_is_reset_first(self, profile):
        model = create_model("buhlmann")
        first = simulate(model, profile)
        second = simulate(model, profile)
        np.testing.assert_array_equal(first.ceilings, second.ceilings)

    def test_empty_profile(self):
        with pytest.raises(ValueError, match="Empty profile"):
            simulate(create_model("buhlmann"), DiveProfile())

    def test_probability_risk_is_normalized(self, profile):
        model = create_model("bvm")
        trace = simulate(model, profile)
        assert risk_percent(model) == pytest.approx(model.compute_dcs_risk() * 100.0)
        assert np.all((trace.risks >= 0.0) & (trace.risks <= 100.0))


class TestModelComparator:
    """Tests for comparing several models on one profile."""

    def test_kinds(self, comparator):
        assert comparator.kinds == ["buhlmann", "bvm", "nmri98"]

    def test_default_models_from_config(self):
        assert len(ModelComparator().models) == 8

    def test_ready_built_models(self):
        models = [create_model("rgbm")]
        assert ModelComparator(models=models).models == models

    def test_compare_profile(self, comparator, profile):
        result = comparator.compare_profile(profile)
        assert isinstance(result, ComparisonResult)
        assert set(result.traces) == {"buhlmann", "bvm", "nmri98"}
        assert result.is_valid
        assert result.ceiling_spread >= 0.0

    def test_summary_rows(self, comparator, profile):
        rows = comparator.compare_profile(profile).summary_rows()
        assert [row["kind"] for row in rows] == ["buhlmann", "bvm", "nmri98"]
        assert all(not row["failed"] and row["tts"] > 0 for row in rows)

    def test_parallel_matches_serial(self, comparator, profile):
        serial = comparator.compare_profile(profile)
        parallel = comparator.compare_profile(profile, parallel=True)
        for kind in comparator.kinds:
            np.testing.assert_array_equal(serial.traces[kind].ceilings, parallel.traces[kind].ceilings)
            assert serial.traces[kind].stops == parallel.traces[kind].stops

    def test_failed_model_is_isolated(self, comparator, profile, caplog):
        failing = comparator.models[1]
        with patch.object(failing, "compute_ceiling", side_effect=ValueError("boom")):
            with caplog.at_level(logging.WARNING, logger="decosim.comparator"):
                result = comparator.compare_profile(profile)
        assert result.traces["bvm"] is None
        assert result.traces["buhlmann"] is not None
        assert not result.is_valid
        assert "boom" in caplog.text
        assert result.summary_rows()[1]["failed"]

    def test_ceiling_matrix(self, comparator):
        comparator.generator = ProfileGenerator(sampling_interval=1.0)
        depths, times = [20.0, 40.0], [10.0, 20.0, 30.0]
        matrices = comparator.generate_ceiling_matrix(depths, times)
        assert set(matrices) == {"buhlmann", "bvm", "nmri98", "spread"}
        for matrix in matrices.values():
            assert matrix.shape == (3, 2)
        # Deeper and longer never needs a shallower ceiling
        assert matrices["buhlmann"][2, 1] >= matrices["buhlmann"][0, 0]
        assert np.all(matrices["spread"] >= 0.0)

    def test_empty_comparison_spread(self, profile):
        result = ComparisonResult(profile=profile, traces={"buhlmann": None})
        assert np.isnan(result.ceiling_spread)


class TestPlots:
    """Plots render and save without a display."""

    def test_plot_traces(self, comparator, profile, tmp_path):
        result = comparator.compare_profile(profile)
        path = tmp_path / "traces.png"
        fig = comparator.plot_traces(result, save_path=str(path))
        assert path.exists()
        assert len(fig.axes) == 3
        plt.close(fig)

    def test_plot_ceiling_matrix(self, comparator, tmp_path):
        matrix = np.array([[0.0, 3.0], [3.0, 6.0]])
        path = tmp_path / "matrix.png"
        fig = comparator.plot_ceiling_matrix([20.0, 40.0], [10.0, 20.0], matrix, save_path=str(path))
        assert path.exists()
        plt.close(fig)
