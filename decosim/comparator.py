"""
Run several decompression models side by side on the same dive profile.

Every model receives identical dive-state updates and time steps; the
comparator records ceiling, risk and direct-ascent traces as numpy arrays
and the stop plan each model produces at the end of the bottom phase.
"""

import logging
import time as time_module
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from .config import load_comparison_settings, load_config, load_model_options
from .model import DecompressionModel
from .profile_generator import DiveProfile, ProfileGenerator
from .registry import create_model
from .scheduler import DecompressionStop

logger = logging.getLogger(__name__)


def risk_percent(model: DecompressionModel) -> float:
    """Model risk on a common 0-100 scale."""
    risk = model.compute_dcs_risk()
    if model.risk_units == "probability":
        return risk * 100.0
    return risk


@dataclass
class ModelTrace:
    """Outputs of one model sampled at every profile point."""

    kind: str
    name: str
    times: np.ndarray
    depths: np.ndarray
    ceilings: np.ndarray
    risks: np.ndarray
    can_ascend: np.ndarray
    stops: List[DecompressionStop] = field(default_factory=list)
    tts: float = 0.0

    @property
    def max_ceiling(self) -> float:
        return float(np.max(self.ceilings)) if len(self.ceilings) else 0.0

    @property
    def max_risk(self) -> float:
        return float(np.max(self.risks)) if len(self.risks) else 0.0

    @property
    def total_stop_time(self) -> float:
        return sum(stop.time for stop in self.stops)

    @property
    def requires_deco(self) -> bool:
        return bool(self.stops)


@dataclass
class ComparisonResult:
    """All model traces for one profile; a failed model maps to None."""

    profile: DiveProfile
    traces: Dict[str, Optional[ModelTrace]]

    @property
    def is_valid(self) -> bool:
        return all(trace is not None for trace in self.traces.values())

    @property
    def ceiling_spread(self) -> float:
        """Deepest minus shallowest peak ceiling across models (m)."""
        peaks = [t.max_ceiling for t in self.traces.values() if t is not None]
        if not peaks:
            return float("nan")
        return max(peaks) - min(peaks)

    def summary_rows(self) -> List[dict]:
        rows = []
        for kind, trace in self.traces.items():
            if trace is None:
                rows.append({"kind": kind, "name": kind, "failed": True})
                continue
            rows.append({
                "kind": kind,
                "name": trace.name,
                "failed": False,
                "max_ceiling": trace.max_ceiling,
                "max_risk": trace.max_risk,
                "stops": len(trace.stops),
                "stop_time": trace.total_stop_time,
                "tts": trace.tts,
            })
        return rows


def simulate(model: DecompressionModel, profile: DiveProfile) -> ModelTrace:
    """Drive one model through a profile from a fresh surface state.

    Loadings advance at the previous point's depth for the interval to the
    next point; the stop plan is taken at the last point at maximum depth.
    """
    if not profile.points:
        raise ValueError("Empty profile")
    model.reset()

    n = len(profile.points)
    ceilings = np.zeros(n)
    risks = np.zeros(n)
    can_ascend = np.zeros(n, dtype=bool)
    bottom_index = max(i for i, p in enumerate(profile.points) if p.depth == profile.max_depth)
    stops: List[DecompressionStop] = []
    tts = 0.0

    previous = None
    for i, point in enumerate(profile.points):
        if previous is not None:
            model.advance_loadings(point.time - previous.time)
        model.update_dive_state(depth=point.depth, time=point.time, gas_mix=point.gas_mix)
        ceilings[i] = model.compute_ceiling()
        risks[i] = risk_percent(model)
        can_ascend[i] = model.can_ascend_directly()
        if i == bottom_index:
            stops = model.compute_stops()
            tts = model.compute_tts()
        previous = point

    return ModelTrace(
        kind=model.kind,
        name=model.get_model_name(),
        times=np.array([p.time for p in profile.points]),
        depths=np.array([p.depth for p in profile.points]),
        ceilings=ceilings,
        risks=risks,
        can_ascend=can_ascend,
        stops=stops,
        tts=tts,
    )


class ModelComparator:
    """
    Compare decompression models across dive profiles.

    Args:
        kinds: model tags to compare (default: config `comparison.models`)
        config_path: YAML config with per-model options
        models: ready-built models; overrides kinds and config
    """

    def __init__(
        self,
        kinds: Optional[Sequence[str]] = None,
        config_path: Optional[str] = None,
        models: Optional[Sequence[DecompressionModel]] = None,
    ):
        config = load_config(config_path)
        if models is not None:
            self.models = list(models)
        else:
            settings = load_comparison_settings(config)
            selected = list(kinds) if kinds is not None else settings["models"]
            self.models = [create_model(kind, **load_model_options(kind, config)) for kind in selected]
        self.generator = ProfileGenerator()

    @property
    def kinds(self) -> List[str]:
        return [m.kind for m in self.models]

    def compare_profile(self, profile: DiveProfile, parallel: bool = False) -> ComparisonResult:
        """
        Run every model on one profile.

        Models own disjoint state, so with parallel=True each runs in its
        own worker thread.
        """
        traces: Dict[str, Optional[ModelTrace]] = {m.kind: None for m in self.models}

        if parallel and len(self.models) > 1:
            with ThreadPoolExecutor(max_workers=len(self.models)) as executor:
                futures = {executor.submit(simulate, m, profile): m for m in self.models}
                for future in as_completed(futures):
                    model = futures[future]
                    try:
                        traces[model.kind] = future.result()
                    except (ValueError, ArithmeticError) as e:
                        logger.warning(f"{model.get_model_name()} failed for {profile.name}: {e}")
        else:
            for model in self.models:
                try:
                    traces[model.kind] = simulate(model, profile)
                except (ValueError, ArithmeticError) as e:
                    logger.warning(f"{model.get_model_name()} failed for {profile.name}: {e}")

        return ComparisonResult(profile=profile, traces=traces)

    def compare_batch(self, profiles: List[DiveProfile], parallel: bool = False) -> List[ComparisonResult]:
        start = time_module.time()
        results = [self.compare_profile(p, parallel=parallel) for p in profiles]
        logger.info(
            f"Compared {len(self.models)} models on {len(profiles)} profiles "
            f"in {time_module.time() - start:.1f}s"
        )
        return results

    def generate_ceiling_matrix(
        self,
        depths: List[float],
        times: List[float],
        profile_type: str = "square",
        **kwargs,
    ) -> Dict[str, np.ndarray]:
        """
        Peak ceiling per model across depth/time combinations.

        Returns:
            Dict of model kind -> matrix [len(times), len(depths)], plus
            "spread" (deepest minus shallowest model per cell)
        """
        profiles = self.generator.generate_batch(depths, times, profile_type, **kwargs)
        results = self.compare_batch(profiles)

        shape = (len(times), len(depths))
        matrices = {kind: np.full(shape, np.nan) for kind in self.kinds}
        matrices["spread"] = np.full(shape, np.nan)

        for idx, result in enumerate(results):
            time_idx, depth_idx = divmod(idx, len(depths))
            for kind, trace in result.traces.items():
                if trace is not None:
                    matrices[kind][time_idx, depth_idx] = trace.max_ceiling
            matrices["spread"][time_idx, depth_idx] = result.ceiling_spread

        return matrices

    def plot_traces(self, result: ComparisonResult, save_path: Optional[str] = None) -> plt.Figure:
        """
        Plot depth, ceiling and risk traces of every model.

        Args:
            result: ComparisonResult to draw
            save_path: Path to save figure (optional)

        Returns:
            matplotlib Figure object
        """
        fig, (ax_depth, ax_ceiling, ax_risk) = plt.subplots(3, 1, figsize=(12, 12), sharex=True)
        valid = [t for t in result.traces.values() if t is not None]

        if valid:
            ax_depth.plot(valid[0].times, valid[0].depths, "b-", linewidth=2)
            ax_depth.fill_between(valid[0].times, valid[0].depths, alpha=0.15, color="blue")
        ax_depth.set_ylabel("Depth (m)")
        ax_depth.set_title(f"Dive Profile: {result.profile.name}")
        ax_depth.invert_yaxis()
        ax_depth.grid(True, alpha=0.3)

        for trace in valid:
            ax_ceiling.plot(trace.times, trace.ceilings, linewidth=1.5, label=trace.name)
            ax_risk.plot(trace.times, trace.risks, linewidth=1.5, label=trace.name)

        ax_ceiling.set_ylabel("Ceiling (m)")
        ax_ceiling.set_title("Ceiling by Model")
        ax_ceiling.invert_yaxis()
        ax_ceiling.grid(True, alpha=0.3)
        ax_ceiling.legend(loc="upper right", fontsize=8)

        ax_risk.set_xlabel("Time (min)")
        ax_risk.set_ylabel("DCS risk (%)")
        ax_risk.set_title("Risk by Model")
        ax_risk.grid(True, alpha=0.3)

        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches="tight")

        return fig

    def plot_ceiling_matrix(
        self,
        depths: List[float],
        times: List[float],
        matrix: np.ndarray,
        title: str = "Ceiling Spread Across Models",
        save_path: Optional[str] = None,
    ) -> plt.Figure:
        """Heatmap of a [times, depths] matrix, e.g. the ceiling spread."""
        fig, ax = plt.subplots(figsize=(12, 8))
        im = ax.imshow(
            matrix,
            aspect="auto",
            cmap="YlOrRd",
            origin="lower",
            extent=[min(depths), max(depths), min(times), max(times)],
        )
        plt.colorbar(im, ax=ax, label="Ceiling (m)")
        ax.set_xlabel("Depth (m)")
        ax.set_ylabel("Bottom Time (min)")
        ax.set_title(title)
        plt.tight_layout()

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches="tight")

        return fig
