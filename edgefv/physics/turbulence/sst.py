"""Menter SST k-omega unknowns."""

from __future__ import annotations

import numpy as np

from .base import TurbulenceModel, register_turbulence


@register_turbulence("sst")
@register_turbulence("menter_sst")
class MenterSST(TurbulenceModel):
    components = ("k", "omega")

    def __init__(self, transport, velocity=(0.0, 0.0, 0.0), config=None) -> None:
        super().__init__(transport, velocity, config)
        cfg = self.config
        self.sigma_k = float(cfg.get("sigmaK", 0.85))
        self.sigma_omega = float(cfg.get("sigmaOmega", 0.5))
        self.length = float(cfg.get("referenceLength", 1.0))
        self.omega_min = float(cfg.get("omegaMin", 1e-8))

    def _freestream(self) -> np.ndarray:
        speed = float(np.linalg.norm(self.velocity))
        omega = max(5.0 * speed / self.length, self.omega_min)
        k = 1.0e-3 * self.nu * omega
        return np.array([k, omega])

    def _wall_state(self) -> np.ndarray:
        return np.array([0.0, self._freestream()[1]])

    def eddy_viscosity(self, state: np.ndarray) -> np.ndarray:
        k = np.maximum(state[:, 0], 0.0)
        omega = np.maximum(state[:, 1], self.omega_min)
        return k / omega

    def diffusivity(self, state: np.ndarray) -> np.ndarray:
        nut = self.eddy_viscosity(state)
        return np.column_stack([self.nu + self.sigma_k * nut, self.nu + self.sigma_omega * nut])
