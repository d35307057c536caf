from __future__ import annotations

from typing import Any, Tuple

import numpy as np

from .errors import OutputShapeError


class DerivativeView:
    """(parameter, point) view over one fit's flat derivative array.

    The flat layout puts parameter ``k`` of point ``p`` at
    ``k * n_points + p``. Size is checked once here so writes through the
    view need no further bounds logic.
    """

    def __init__(self, flat: np.ndarray, n_parameters: int, n_points: int):
        flat = np.asarray(flat)
        if flat.ndim != 1:
            raise OutputShapeError(f"derivative array must be 1D; got shape {flat.shape}.")
        need = int(n_parameters) * int(n_points)
        if flat.size < need:
            raise OutputShapeError(
                f"derivative array holds {flat.size} values; "
                f"{n_parameters} parameters x {n_points} points need {need}."
            )
        self.flat = flat
        self.n_parameters = int(n_parameters)
        self.n_points = int(n_points)
        self.matrix = flat[:need].reshape(self.n_parameters, self.n_points)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.matrix.shape

    def __getitem__(self, key: Any):
        return self.matrix[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        self.matrix[key] = value

    def row(self, point_index: int) -> np.ndarray:
        """Jacobian row of one point (all parameters)."""
        return self.matrix[:, point_index]

    def write_row(self, point_index: int, derivatives) -> None:
        self.matrix[:, point_index] = derivatives

    @staticmethod
    def offset(parameter_index: int, point_index: int, n_points: int) -> int:
        """Flat offset of one derivative in the engine's layout."""
        return parameter_index * n_points + point_index
