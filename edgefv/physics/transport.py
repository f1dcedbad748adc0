"""Transport properties models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class ConstantTransport:
    rho: float = 1.0
    mu: float = 1.0e-3

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, float]]) -> "ConstantTransport":
        data = data or {}
        transport = cls(rho=float(data.get("rho", 1.0)), mu=float(data.get("mu", 1.0e-3)))
        if transport.rho <= 0.0 or transport.mu < 0.0:
            raise ValueError("Transport properties need rho > 0 and mu >= 0")
        return transport

    def density(self) -> float:
        return self.rho

    def viscosity(self) -> float:
        return self.mu

    def kinematic_viscosity(self) -> float:
        return self.mu / self.rho
