"""Spalart-Allmaras working variable."""

from __future__ import annotations

import numpy as np

from .base import TurbulenceModel, register_turbulence


@register_turbulence("sa")
@register_turbulence("spalart_allmaras")
class SpalartAllmaras(TurbulenceModel):
    components = ("nu_tilde",)

    def __init__(self, transport, velocity=(0.0, 0.0, 0.0), config=None) -> None:
        super().__init__(transport, velocity, config)
        self.sigma = float(self.config.get("sigma", 2.0 / 3.0))
        self.factor = float(self.config.get("nuTildeFactor", 3.0))

    def _freestream(self) -> np.ndarray:
        return np.array([self.factor * self.transport.mu / self.transport.rho])

    def _wall_state(self) -> np.ndarray:
        return np.zeros(1)

    def diffusivity(self, state: np.ndarray) -> np.ndarray:
        nu_tilde = np.maximum(state[:, 0], 0.0)
        return ((self.nu + nu_tilde) / self.sigma)[:, None]
