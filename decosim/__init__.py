"""
Multi-model decompression kinetics engine.

Modules:
    - state: Gas mixes and immutable dive states
    - kinetics: Haldane and linear-exponential gas exchange
    - gradient: ZH-L16C constants and gradient factor calculations
    - scheduler: 3 m stop plans and time-to-surface
    - buhlmann, vpmb, bvm, vval18, nmri98, hills, tbdm, rgbm: the engines
    - registry: Build engines by tag
    - config: YAML configuration loading
    - profile_generator: Generate dive profiles (square, sawtooth, multi-level)
    - comparator: Run every engine on the same profile
"""

from .state import AIR, DiveState, GasMix
from .compartments import TissueCompartment
from .gradient import GF_DEFAULT, GradientFactors
from .scheduler import DecompressionStop
from .model import DecompressionModel
from .buhlmann import BuhlmannModel
from .vpmb import VpmBModel
from .bvm import BvmModel
from .vval18 import Vval18Model
from .nmri98 import Nmri98Model
from .hills import HillsModel
from .tbdm import TbdmModel
from .rgbm import RgbmModel
from .registry import available_models, create_model, rebuild_model
from .config import load_config, load_model_options
from .profile_generator import DiveProfile, ProfileGenerator
from .comparator import ComparisonResult, ModelComparator, ModelTrace

__all__ = [
    "AIR",
    "DiveState",
    "GasMix",
    "TissueCompartment",
    "GF_DEFAULT",
    "GradientFactors",
    "DecompressionStop",
    "DecompressionModel",
    "BuhlmannModel",
    "VpmBModel",
    "BvmModel",
    "Vval18Model",
    "Nmri98Model",
    "HillsModel",
    "TbdmModel",
    "RgbmModel",
    "available_models",
    "create_model",
    "rebuild_model",
    "load_config",
    "load_model_options",
    "DiveProfile",
    "ProfileGenerator",
    "ComparisonResult",
    "ModelComparator",
    "ModelTrace",
]
