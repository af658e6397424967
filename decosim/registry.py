"""
Model registry: build engines by tag and rebuild them with new options.
"""

import logging
from typing import Dict, List

from .buhlmann import BuhlmannModel
from .bvm import BvmModel
from .hills import HillsModel
from .model import DecompressionModel
from .nmri98 import Nmri98Model
from .rgbm import RgbmModel
from .tbdm import TbdmModel
from .vpmb import VpmBModel
from .vval18 import Vval18Model

logger = logging.getLogger(__name__)

MODEL_TYPES = {
    BuhlmannModel.kind: BuhlmannModel,
    VpmBModel.kind: VpmBModel,
    BvmModel.kind: BvmModel,
    Vval18Model.kind: Vval18Model,
    Nmri98Model.kind: Nmri98Model,
    HillsModel.kind: HillsModel,
    TbdmModel.kind: TbdmModel,
    RgbmModel.kind: RgbmModel,
}

# Options used when a caller does not specify them
DEFAULT_OPTIONS: Dict[str, dict] = {
    "buhlmann": {"gradient_factor_low": 30.0, "gradient_factor_high": 85.0},
    "vpmb": {"conservatism": 3},
    "bvm": {"conservatism": 3, "max_dcs_risk": 5.0},
    "vval18": {"max_dcs_risk": 3.5, "safety_factor": 1.0},
    "nmri98": {
        "conservatism": 3,
        "max_dcs_risk": 2.0,
        "safety_factor": 1.2,
        "enable_oxygen_tracking": True,
    },
    "hills": {
        "conservatism_factor": 1.0,
        "core_temperature": 37.0,
        "metabolic_rate": 1.2,
        "perfusion_multiplier": 1.0,
        "activation_energy": 50000.0,
    },
    "tbdm": {"conservatism_factor": 1.0},
    "rgbm": {"conservatism": 2, "enable_repetitive_penalty": True},
}


def available_models() -> List[str]:
    return list(MODEL_TYPES)


def create_model(kind: str, **options) -> DecompressionModel:
    """Construct an engine by tag, filling unspecified options with defaults.

    Raises:
        ValueError: for an unknown tag or invalid option values
    """
    if kind not in MODEL_TYPES:
        raise ValueError(f"Unknown model type: {kind}. Use one of {available_models()}")
    merged = dict(DEFAULT_OPTIONS.get(kind, {}))
    merged.update(options)
    try:
        return MODEL_TYPES[kind](**merged)
    except TypeError as e:
        raise ValueError(f"Invalid options for {kind}: {e}") from e


def rebuild_model(model: DecompressionModel, **options) -> DecompressionModel:
    """Fresh engine of the same kind with new options, keeping the dive.

    Dive state and nitrogen/helium loadings carry over; model-specific
    state such as bubble volumes starts again from the surface.
    """
    params = model.get_parameters()
    params.update(options)
    rebuilt = MODEL_TYPES[model.kind](**params)
    state = model.get_dive_state()
    rebuilt.update_dive_state(depth=state.depth, time=state.time, gas_mix=state.gas_mix)
    rebuilt.restore_loadings(model.get_tissue_compartments())
    logger.debug(f"Rebuilt {model.get_model_name()} as {rebuilt.get_model_name()}")
    return rebuilt
