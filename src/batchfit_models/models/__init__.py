"""Model implementations + registry."""

from __future__ import annotations

from typing import Dict, Union

from .angular_lorentzian import angular_lorentzian
from .common import N_PARAMETERS, ChunkContext, KernelModel
from .damped_cosine import damped_cosine

_MODELS: Dict[str, KernelModel] = {
    "damped_cosine": damped_cosine(),
    "angular_lorentzian": angular_lorentzian(),
}


def get_model(model: Union[str, KernelModel]) -> KernelModel:
    """Return a model implementation by name (instances pass through)."""
    if isinstance(model, KernelModel):
        return model
    try:
        return _MODELS[model]
    except KeyError as e:
        raise ValueError(
            f"Unknown model {model!r}. Available: {tuple(_MODELS.keys())}"
        ) from e


AVAILABLE_MODELS = tuple(_MODELS.keys())

__all__ = [
    "AVAILABLE_MODELS",
    "N_PARAMETERS",
    "ChunkContext",
    "KernelModel",
    "angular_lorentzian",
    "damped_cosine",
    "get_model",
]
