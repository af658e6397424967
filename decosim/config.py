"""
YAML configuration for engines, generated profiles and comparison runs.

Values resolve as: explicit argument > config.yaml > built-in default.
"""

import inspect
import logging
import os
from typing import Optional

import yaml

from .registry import DEFAULT_OPTIONS, MODEL_TYPES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config.yaml")

PROFILE_DEFAULTS = {
    "profile_type": "square",
    "depth_m": 30.0,
    "bottom_time_min": 20.0,
    "fO2": 0.21,
    "fHe": 0.0,
    "descent_rate": 20.0,
    "ascent_rate": 10.0,
    "sampling_interval": 1.0 / 6.0,
    "multilevel_levels": [[30.0, 10.0], [20.0, 10.0], [10.0, 10.0]],
    "sawtooth_min_depth_m": 10.0,
    "sawtooth_oscillations": 3,
}

COMPARISON_DEFAULTS = {
    "models": list(MODEL_TYPES),
}


def load_config(config_path: Optional[str] = None) -> dict:
    """Read the YAML config; a missing file yields an empty config.

    Raises:
        ValueError: if the file does not hold a mapping
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        if config_path is not None:
            logger.warning(f"Config file not found: {path}, using defaults")
        return {}
    with open(path) as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise ValueError(f"Config {path} must contain a mapping, got {type(config).__name__}")
    logger.info(f"Loaded config from {path}")
    return config


def load_model_options(kind: str, config: dict) -> dict:
    """Defaults for an engine overlaid with its `models.<kind>` section.

    Raises:
        ValueError: for an unknown model kind or an unrecognized option
    """
    if kind not in MODEL_TYPES:
        raise ValueError(f"Unknown model type in config: {kind}")
    options = dict(DEFAULT_OPTIONS.get(kind, {}))
    section = (config.get("models") or {}).get(kind) or {}
    known = set(inspect.signature(MODEL_TYPES[kind]).parameters)
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown option(s) for {kind}: {sorted(unknown)}")
    options.update(section)
    return options


def load_profile_settings(config: dict) -> dict:
    """Profile settings from the `profile` section over PROFILE_DEFAULTS."""
    settings = dict(PROFILE_DEFAULTS)
    settings.update(config.get("profile") or {})
    return settings


def load_comparison_settings(config: dict) -> dict:
    settings = dict(COMPARISON_DEFAULTS)
    settings.update(config.get("comparison") or {})
    for kind in settings["models"]:
        if kind not in MODEL_TYPES:
            raise ValueError(f"Unknown model type in comparison.models: {kind}")
    return settings
