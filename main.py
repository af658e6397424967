"""
DecoSim - Multi-Model Decompression Planner

Runs the selected decompression engines side by side on one dive profile
and prints each engine's ceiling, stop plan, time-to-surface and DCS risk.

Usage:
    python main.py                              # Profile and models from config.yaml
    python main.py --depth 40 --time 25         # Quick square profile override
    python main.py --profile multilevel         # Use a multilevel profile
    python main.py --models buhlmann vpmb       # Compare a subset of engines
    python main.py --fO2 0.18 --fHe 0.45 --plot # Trimix, with plots
"""

import argparse
import logging

import matplotlib.pyplot as plt

from decosim.comparator import ComparisonResult, ModelComparator
from decosim.config import load_config, load_profile_settings
from decosim.profile_generator import DiveProfile, ProfileGenerator
from decosim.registry import available_models
from decosim.state import GasMix

logger = logging.getLogger(__name__)


def build_profile(settings: dict) -> DiveProfile:
    """Build a DiveProfile from profile settings."""
    gen = ProfileGenerator(
        descent_rate=settings["descent_rate"],
        ascent_rate=settings["ascent_rate"],
        sampling_interval=settings["sampling_interval"],
    )
    gas = GasMix(oxygen=settings["fO2"], helium=settings["fHe"])

    profile_type = settings["profile_type"]

    if profile_type == "square":
        return gen.generate_square(
            depth=settings["depth_m"],
            bottom_time=settings["bottom_time_min"],
            gas_mix=gas,
        )
    elif profile_type == "multilevel":
        return gen.generate_multilevel(
            levels=[tuple(level) for level in settings["multilevel_levels"]],
            gas_mix=gas,
        )
    elif profile_type == "sawtooth":
        return gen.generate_sawtooth(
            max_depth=settings["depth_m"],
            min_depth=settings["sawtooth_min_depth_m"],
            total_time=settings["bottom_time_min"],
            oscillations=settings["sawtooth_oscillations"],
            gas_mix=gas,
        )
    else:
        raise ValueError(
            f"Unknown profile type: {profile_type}. "
            "Use 'square', 'multilevel', or 'sawtooth'."
        )


def print_dive_plan(profile: DiveProfile, comparator: ModelComparator) -> None:
    """Print dive plan summary before simulation."""
    gas = profile.points[0].gas_mix
    print("=" * 60)
    print("DIVE PLAN")
    print("=" * 60)
    print(f"Profile: {profile.name}")
    print(f"Max depth: {profile.max_depth:.0f}m")
    print(f"Bottom time: {profile.bottom_time:.0f} min")
    print(f"Gas mix: {gas} (O2={gas.oxygen:.2f}, He={gas.helium:.2f}, N2={gas.nitrogen:.2f})")
    print(f"Models: {', '.join(m.get_model_name() for m in comparator.models)}")


def print_results(result: ComparisonResult) -> None:
    """Print per-model results at the end of the bottom phase."""
    print("\n" + "=" * 60)
    print("RESULTS")
    print("=" * 60)
    print(f"{'Model':<42} {'Ceil':>6} {'TTS':>6} {'Risk%':>7}")
    print("-" * 60)
    for row in result.summary_rows():
        if row["failed"]:
            print(f"{row['name']:<42} {'failed':>6}")
            continue
        print(
            f"{row['name']:<42} {row['max_ceiling']:>5.1f}m "
            f"{row['tts']:>5.0f}' {row['max_risk']:>7.2f}"
        )

    for kind, trace in result.traces.items():
        if trace is None:
            continue
        print(f"\n{trace.name}")
        if not trace.stops:
            print("  No decompression required")
            continue
        for stop in trace.stops:
            print(f"  {stop.depth:>4.0f}m  {stop.time:>3.0f} min  {stop.gas_mix}")
        print(f"  Total stop time: {trace.total_stop_time:.0f} min")

    if not result.is_valid:
        print("\nWARNING: some models failed on this profile, see log output.")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments for quick overrides."""
    parser = argparse.ArgumentParser(
        description="DecoSim - Multi-Model Decompression Planner",
    )
    parser.add_argument("--depth", type=float, help="Dive depth in meters")
    parser.add_argument("--time", type=float, help="Bottom time in minutes")
    parser.add_argument("--fO2", type=float, help="O2 fraction (e.g. 0.32 for EAN32)")
    parser.add_argument("--fHe", type=float, help="Helium fraction (e.g. 0.35 for Tx21/35)")
    parser.add_argument(
        "--profile", choices=["square", "multilevel", "sawtooth"],
        help="Profile type",
    )
    parser.add_argument(
        "--models", nargs="+", choices=available_models(),
        help="Models to compare (default: comparison.models from config)",
    )
    parser.add_argument(
        "--config", type=str, default="config.yaml",
        help="Path to model config YAML (default: config.yaml)",
    )
    parser.add_argument("--parallel", action="store_true", help="Run each model in its own thread")
    parser.add_argument("--plot", action="store_true", help="Show depth, ceiling and risk plots")
    parser.add_argument("--save", type=str, help="Save the plot to this path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Apply CLI overrides to config
    settings = load_profile_settings(load_config(args.config))
    if args.depth is not None:
        settings["depth_m"] = args.depth
    if args.time is not None:
        settings["bottom_time_min"] = args.time
    if args.fO2 is not None:
        settings["fO2"] = args.fO2
    if args.fHe is not None:
        settings["fHe"] = args.fHe
    if args.profile is not None:
        settings["profile_type"] = args.profile

    profile = build_profile(settings)
    comparator = ModelComparator(kinds=args.models, config_path=args.config)

    print_dive_plan(profile, comparator)
    logger.info(f"Running {len(comparator.models)} models on {profile.name} ({len(profile.points)} points)")
    result = comparator.compare_profile(profile, parallel=args.parallel)
    print_results(result)

    if args.plot or args.save:
        comparator.plot_traces(result, save_path=args.save)
        if args.plot:
            plt.show()


if __name__ == "__main__":
    main()
