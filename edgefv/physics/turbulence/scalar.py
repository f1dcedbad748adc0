"""Passive scalar with constant diffusivity (no turbulence closure)."""

from __future__ import annotations

import numpy as np

from .base import TurbulenceModel, register_turbulence


@register_turbulence("scalar")
@register_turbulence("passive_scalar")
class PassiveScalar(TurbulenceModel):
    components = ("phi",)

    def __init__(self, transport, velocity=(0.0, 0.0, 0.0), config=None) -> None:
        super().__init__(transport, velocity, config)
        self.value = float(self.config.get("value", 1.0))
        self.wall_value = float(self.config.get("wallValue", 0.0))
        self.kappa = float(self.config.get("diffusivity", self.nu))

    def _freestream(self) -> np.ndarray:
        return np.array([self.value])

    def _wall_state(self) -> np.ndarray:
        return np.array([self.wall_value])

    def diffusivity(self, state: np.ndarray) -> np.ndarray:
        return np.full((state.shape[0], 1), self.kappa)
