"""Point source operators."""

from __future__ import annotations

import numpy as np

from .base import EdgeData, Numerics, NumericsResult, register_numerics


@register_numerics("none")
class NoSource(Numerics):
    name = "None"

    def compute(self, data: EdgeData) -> NumericsResult:
        size = data.size
        return NumericsResult(
            np.zeros((size, self.nvar)),
            np.zeros((size, self.nvar, self.nvar)),
        )


@register_numerics("linear")
class LinearSource(Numerics):
    """``S = (production - decay * phi) V`` per unknown."""

    name = "Linear"

    def __init__(self, nvar, config=None) -> None:
        super().__init__(nvar, config)
        self.production = self._vector("production", 0.0)
        self.decay = self._vector("decay", 0.0)
        if np.any(self.decay < 0.0):
            raise ValueError("Linear source decay rates must be non-negative")

    def _vector(self, key: str, default: float) -> np.ndarray:
        value = np.asarray(self.config.get(key, default), dtype=float)
        if value.ndim == 0:
            return np.full(self.nvar, float(value))
        if value.shape != (self.nvar,):
            raise ValueError(f"Source '{key}' needs {self.nvar} entries, got {value.shape}")
        return value

    def compute(self, data: EdgeData) -> NumericsResult:
        volume = data.volume[:, None]
        residual = (self.production - self.decay * data.state_i) * volume
        jac = -(self.decay * volume)[:, :, None] * np.eye(self.nvar)
        return NumericsResult(residual, jac)
