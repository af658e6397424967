"""
Unit tests for decosim/profile_generator.py.

Tests cover:
- DiveProfile bookkeeping and interpolation
- Descent/ascent rates and depth bounds of generated profiles
- Gas handling
- Profile type variations and batch generation
"""

import pytest

from decosim.profile_generator import DiveProfile, ProfileGenerator
from decosim.state import AIR, GasMix


class TestDiveProfileDataclass:
    """Tests for DiveProfile dataclass and basic operations."""

    def test_empty_profile_defaults(self):
        """Fresh DiveProfile has points=[], max_depth=0.0, name='unnamed'."""
        profile = DiveProfile()
        assert profile.points == []
        assert profile.max_depth == 0.0
        assert profile.name == "unnamed"
        assert profile.bottom_time == 0.0
        assert profile.duration == 0.0

    def test_add_point_updates_max_depth(self):
        """Adding deeper point updates max_depth, shallower doesn't reduce it."""
        profile = DiveProfile()
        profile.add_point(1.0, 20.0)
        profile.add_point(2.0, 30.0)
        profile.add_point(3.0, 15.0)
        assert profile.max_depth == pytest.approx(30.0)

    def test_add_point_default_gas(self):
        profile = DiveProfile()
        profile.add_point(1.0, 20.0)
        time, depth, gas_mix = profile.points[0]
        assert (time, depth) == (1.0, 20.0)
        assert gas_mix == AIR

    def test_add_point_stores_gas(self):
        profile = DiveProfile()
        profile.add_point(1.0, 20.0, GasMix(oxygen=0.32))
        assert profile.points[0].gas_mix == GasMix(oxygen=0.32)


class TestGetDepthAtTime:
    """Tests for linear interpolation between points."""

    @pytest.fixture
    def profile(self):
        profile = DiveProfile()
        profile.add_point(0.0, 0.0)
        profile.add_point(2.0, 20.0)
        profile.add_point(10.0, 20.0)
        return profile

    def test_interpolates(self, profile):
        assert profile.get_depth_at_time(1.0) == pytest.approx(10.0)

    def test_at_point(self, profile):
        assert profile.get_depth_at_time(2.0) == pytest.approx(20.0)

    def test_before_start_and_after_end(self, profile):
        assert profile.get_depth_at_time(-1.0) == 0.0
        assert profile.get_depth_at_time(99.0) == 20.0

    def test_empty_profile(self):
        assert DiveProfile().get_depth_at_time(5.0) == 0.0


class TestGeneratorValidation:
    """Rates and sampling interval must be positive."""

    @pytest.mark.parametrize(
        "kwargs",
        [{"descent_rate": 0}, {"ascent_rate": -1}, {"sampling_interval": 0}],
    )
    def test_reject(self, kwargs):
        with pytest.raises(ValueError):
            ProfileGenerator(**kwargs)


class TestGenerateSquare:
    """Tests for square profiles."""

    @pytest.fixture
    def gen(self):
        return ProfileGenerator(descent_rate=20.0, ascent_rate=10.0, sampling_interval=0.5)

    def test_shape(self, gen):
        profile = gen.generate_square(30.0, 20.0)
        assert profile.max_depth == 30.0
        assert profile.bottom_time == 20.0
        assert profile.name == "square_30m_20min"
        assert profile.points[0].depth == 0.0
        assert profile.points[-1].depth == 0.0

    def test_times_increase(self, gen):
        profile = gen.generate_square(30.0, 20.0)
        times = [p.time for p in profile.points]
        assert all(b > a for a, b in zip(times, times[1:]))

    def test_depths_within_bounds(self, gen):
        profile = gen.generate_square(30.0, 20.0)
        assert all(0.0 <= p.depth <= 30.0 for p in profile.points)

    def test_rates_respected(self, gen):
        profile = gen.generate_square(30.0, 20.0)
        for a, b in zip(profile.points, profile.points[1:]):
            rate = (b.depth - a.depth) / (b.time - a.time)
            assert -10.0 - 1e-9 <= rate <= 20.0 + 1e-9

    def test_bottom_time_at_depth(self, gen):
        profile = gen.generate_square(30.0, 20.0)
        at_depth = [p for p in profile.points if p.depth == 30.0]
        assert at_depth[-1].time - at_depth[0].time == pytest.approx(20.0)

    def test_gas_is_carried(self, gen):
        nitrox = GasMix(oxygen=0.32)
        profile = gen.generate_square(30.0, 20.0, gas_mix=nitrox)
        assert all(p.gas_mix == nitrox for p in profile.points)

    def test_zero_bottom_time(self, gen):
        profile = gen.generate_square(20.0, 0.0)
        assert profile.max_depth == 20.0


class TestOtherProfiles:
    """Tests for multilevel, sawtooth and deco profiles."""

    @pytest.fixture
    def gen(self):
        return ProfileGenerator(sampling_interval=0.5)

    def test_multilevel(self, gen):
        profile = gen.generate_multilevel([(30.0, 10.0), (20.0, 10.0), (10.0, 5.0)])
        depths = {p.depth for p in profile.points}
        assert {30.0, 20.0, 10.0} <= depths
        assert profile.bottom_time == 25.0
        assert profile.name == "multilevel_3levels"

    def test_sawtooth_oscillates(self, gen):
        profile = gen.generate_sawtooth(30.0, 10.0, 20.0, oscillations=3)
        depths = [p.depth for p in profile.points]
        assert max(depths) == 30.0
        assert 10.0 in depths
        assert profile.points[-1].depth == 0.0

    @pytest.mark.parametrize("max_depth,min_depth", [(30.0, 30.0), (30.0, 40.0), (30.0, -5.0)])
    def test_sawtooth_rejects_bad_depths(self, gen, max_depth, min_depth):
        with pytest.raises(ValueError):
            gen.generate_sawtooth(max_depth, min_depth, 20.0)

    def test_deco_square(self, gen):
        profile = gen.generate_deco_square(40.0, 25.0, [(6.0, 3.0), (3.0, 5.0)])
        depths = {p.depth for p in profile.points}
        assert {40.0, 6.0, 3.0} <= depths
        assert profile.name == "deco_40m_25min_6m/3min+3m/5min"

    def test_deco_square_without_stops(self, gen):
        assert "nodeco" in gen.generate_deco_square(20.0, 10.0, []).name


class TestGenerateBatch:
    """Tests for batch generation."""

    def test_depths_vary_fastest(self):
        gen = ProfileGenerator(sampling_interval=1.0)
        profiles = gen.generate_batch([20.0, 30.0], [10.0, 15.0])
        assert [(p.max_depth, p.bottom_time) for p in profiles] == [
            (20.0, 10.0), (30.0, 10.0), (20.0, 15.0), (30.0, 15.0)
        ]

    def test_sawtooth_batch(self):
        profiles = ProfileGenerator(sampling_interval=1.0).generate_batch([30.0], [20.0], "sawtooth")
        assert profiles[0].name.startswith("sawtooth_30m")

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown profile type"):
            ProfileGenerator().generate_batch([20.0], [10.0], "spiral")
