"""batchfit_models public API."""
from .dispatch import ChunkResult, evaluate_chunk, launch, output_addresses, validate_parameters
from .errors import KernelInputError, OutputShapeError, ParameterError, UserInfoError
from .fitting import ChunkFit, FitResult, fit_chunk
from .jacobian import DerivativeView
from .models import AVAILABLE_MODELS, KernelModel, get_model
from .precision import FLOAT32, FLOAT64, Precision, get_precision
from .user_info import (
    AngleDistribution,
    AngularUserInfo,
    XData,
    XLayout,
    pack_angular_user_info,
    pack_x_user_info,
    resolve_x,
)
from . import models

__all__ = [
    "AVAILABLE_MODELS",
    "AngleDistribution",
    "AngularUserInfo",
    "ChunkFit",
    "ChunkResult",
    "DerivativeView",
    "FLOAT32",
    "FLOAT64",
    "FitResult",
    "KernelInputError",
    "KernelModel",
    "OutputShapeError",
    "ParameterError",
    "Precision",
    "UserInfoError",
    "XData",
    "XLayout",
    "evaluate_chunk",
    "fit_chunk",
    "get_model",
    "get_precision",
    "launch",
    "models",
    "output_addresses",
    "pack_angular_user_info",
    "pack_x_user_info",
    "resolve_x",
    "validate_parameters",
]
