"""
Dive profile generator for driving the models.

Generates:
- Square profiles (constant depth)
- Multi-level profiles (stepped depths)
- Sawtooth profiles (oscillating depth)
- Square profiles with explicit decompression stops
"""

from dataclasses import dataclass, field
from typing import List, NamedTuple, Tuple

from .state import GasMix


class ProfilePoint(NamedTuple):
    time: float
    depth: float
    gas_mix: GasMix


@dataclass
class DiveProfile:
    """A dive as a time-ordered sequence of (time, depth, gas) points."""

    points: List[ProfilePoint] = field(default_factory=list)
    name: str = "unnamed"
    max_depth: float = 0.0
    bottom_time: float = 0.0

    def add_point(self, time: float, depth: float, gas_mix: GasMix = None):
        """Add a point to the profile. Depth in meters, time in minutes."""
        self.points.append(ProfilePoint(time, depth, gas_mix or GasMix()))
        if depth > self.max_depth:
            self.max_depth = depth

    @property
    def duration(self) -> float:
        return self.points[-1].time if self.points else 0.0

    def get_depth_at_time(self, t: float) -> float:
        """Interpolate depth at a given time."""
        if not self.points:
            return 0.0
        if t <= self.points[0].time:
            return self.points[0].depth
        if t >= self.points[-1].time:
            return self.points[-1].depth
        for prev, nxt in zip(self.points, self.points[1:]):
            if prev.time <= t <= nxt.time:
                if nxt.time == prev.time:
                    return prev.depth
                ratio = (t - prev.time) / (nxt.time - prev.time)
                return prev.depth + ratio * (nxt.depth - prev.depth)
        return self.points[-1].depth


class ProfileGenerator:
    """Generate sampled dive profiles.

    Args:
        descent_rate: m/min
        ascent_rate: m/min
        sampling_interval: minutes between points (10 s by default)
    """

    def __init__(
        self,
        descent_rate: float = 20.0,
        ascent_rate: float = 10.0,
        sampling_interval: float = 1.0 / 6.0,
    ):
        if descent_rate <= 0 or ascent_rate <= 0:
            raise ValueError("descent_rate and ascent_rate must be positive")
        if sampling_interval <= 0:
            raise ValueError(f"sampling_interval must be positive, got {sampling_interval}")
        self.descent_rate = descent_rate
        self.ascent_rate = ascent_rate
        self.sampling_interval = sampling_interval

    def _travel(self, profile: DiveProfile, time: float, start: float, target: float, gas: GasMix) -> float:
        """Move between depths at the configured rates, returning the new time."""
        depth = start
        while depth != target:
            profile.add_point(time, depth, gas)
            if target > depth:
                depth = min(depth + self.descent_rate * self.sampling_interval, target)
            else:
                depth = max(depth - self.ascent_rate * self.sampling_interval, target)
            time += self.sampling_interval
        return time

    def _hold(self, profile: DiveProfile, time: float, depth: float, duration: float, gas: GasMix) -> float:
        end = time + duration
        while time < end:
            profile.add_point(time, depth, gas)
            time += self.sampling_interval
        return time

    def _finish(self, profile: DiveProfile, time: float, depth: float, gas: GasMix) -> DiveProfile:
        """Ascend to the surface and record one minute there."""
        time = self._travel(profile, time, depth, 0.0, gas)
        self._hold(profile, time, 0.0, 1.0, gas)
        return profile

    def generate_square(self, depth: float, bottom_time: float, gas_mix: GasMix = None) -> DiveProfile:
        """
        Generate a square profile (simple recreational dive).

        Args:
            depth: Maximum depth in meters
            bottom_time: Time at depth in minutes
            gas_mix: Breathing gas (air by default)
        """
        gas = gas_mix or GasMix()
        profile = DiveProfile(name=f"square_{depth:g}m_{bottom_time:g}min", bottom_time=bottom_time)
        time = self._travel(profile, 0.0, 0.0, depth, gas)
        time = self._hold(profile, time, depth, bottom_time, gas)
        return self._finish(profile, time, depth, gas)

    def generate_multilevel(self, levels: List[Tuple[float, float]], gas_mix: GasMix = None) -> DiveProfile:
        """
        Generate a multi-level profile.

        Args:
            levels: List of (depth, duration) tuples, deepest first
            gas_mix: Breathing gas
        """
        gas = gas_mix or GasMix()
        profile = DiveProfile(
            name=f"multilevel_{len(levels)}levels",
            bottom_time=sum(duration for _, duration in levels),
        )
        time = 0.0
        current = 0.0
        for target, duration in levels:
            time = self._travel(profile, time, current, target, gas)
            time = self._hold(profile, time, target, duration, gas)
            current = target
        return self._finish(profile, time, current, gas)

    def generate_sawtooth(
        self,
        max_depth: float,
        min_depth: float,
        total_time: float,
        oscillations: int = 3,
        gas_mix: GasMix = None,
    ) -> DiveProfile:
        """
        Generate a sawtooth profile (yo-yo diving pattern).

        Args:
            max_depth: Maximum depth in meters
            min_depth: Minimum depth during oscillations
            total_time: Total bottom time in minutes
            oscillations: Number of depth oscillations
            gas_mix: Breathing gas
        """
        if not (0 <= min_depth < max_depth):
            raise ValueError(f"need 0 <= min_depth < max_depth, got {min_depth}, {max_depth}")
        gas = gas_mix or GasMix()
        profile = DiveProfile(
            name=f"sawtooth_{max_depth:g}m_{oscillations}osc", bottom_time=total_time
        )
        time = self._travel(profile, 0.0, 0.0, max_depth, gas)
        end = time + total_time
        dwell = total_time / max(oscillations, 1) / 2.0
        depth = max_depth
        while time < end:
            time = self._hold(profile, time, depth, min(dwell, end - time), gas)
            if time >= end:
                break
            target = min_depth if depth == max_depth else max_depth
            time = self._travel(profile, time, depth, target, gas)
            depth = target
        return self._finish(profile, time, depth, gas)

    def generate_deco_square(
        self,
        depth: float,
        bottom_time: float,
        deco_stops: List[Tuple[float, float]],
        gas_mix: GasMix = None,
    ) -> DiveProfile:
        """Generate a square profile with explicit decompression stops.

        Args:
            depth: Bottom depth in meters
            bottom_time: Time at depth in minutes
            deco_stops: List of (stop_depth_m, stop_duration_min) tuples, deepest first
            gas_mix: Breathing gas
        """
        gas = gas_mix or GasMix()
        stop_desc = "+".join(f"{d:.0f}m/{t:.0f}min" for d, t in deco_stops) if deco_stops else "nodeco"
        profile = DiveProfile(name=f"deco_{depth:g}m_{bottom_time:g}min_{stop_desc}", bottom_time=bottom_time)
        time = self._travel(profile, 0.0, 0.0, depth, gas)
        time = self._hold(profile, time, depth, bottom_time, gas)
        current = depth
        for stop_depth, stop_duration in deco_stops:
            time = self._travel(profile, time, current, stop_depth, gas)
            time = self._hold(profile, time, stop_depth, stop_duration, gas)
            current = stop_depth
        return self._finish(profile, time, current, gas)

    def generate_batch(
        self,
        depths: List[float],
        times: List[float],
        profile_type: str = "square",
        **kwargs,
    ) -> List[DiveProfile]:
        """
        Generate profiles for every depth/time pair, depths varying fastest.

        Args:
            depths: List of depths
            times: List of bottom times
            profile_type: "square" or "sawtooth"
            **kwargs: Additional arguments for the generator method
        """
        profiles = []
        for bottom_time in times:
            for depth in depths:
                if profile_type == "square":
                    profile = self.generate_square(depth, bottom_time, **kwargs)
                elif profile_type == "sawtooth":
                    profile = self.generate_sawtooth(depth, depth * 0.3, bottom_time, **kwargs)
                else:
                    raise ValueError(f"Unknown profile type: {profile_type}")
                profiles.append(profile)
        return profiles
