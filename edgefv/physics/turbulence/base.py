"""Base turbulence model descriptor and registry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from ...utils.registry import Registry
from ..transport import ConstantTransport


turbulence_registry = Registry("turbulence")


def register_turbulence(name: str):
    return turbulence_registry.register(name)


def make_turbulence_model(name: str, *args, **kwargs):
    return turbulence_registry.create(name, *args, **kwargs)


class TurbulenceModel(ABC):
    """Transported unknowns of a closure and their boundary/freestream states.

    The closure source terms are supplied separately as a numerics operator
    named by ``default_source`` (overridable in the case file).
    """

    components: Tuple[str, ...] = ()
    default_source = "none"

    def __init__(
        self,
        transport: ConstantTransport,
        velocity: Sequence[float] = (0.0, 0.0, 0.0),
        config: Optional[Dict] = None,
    ) -> None:
        self.transport = transport
        self.velocity = np.asarray(velocity, dtype=float)
        self.config = config or {}

    @property
    def nvar(self) -> int:
        return len(self.components)

    @property
    def nu(self) -> float:
        return self.transport.kinematic_viscosity()

    def _override(self, state: np.ndarray, key: str) -> np.ndarray:
        values = self.config.get(key)
        if values is None:
            return state
        values = np.asarray(values, dtype=float).reshape(-1)
        if values.shape != (self.nvar,):
            raise ValueError(f"'{key}' needs {self.nvar} values for {self.components}")
        return values

    def freestream(self) -> np.ndarray:
        return self._override(self._freestream(), "freestream")

    def wall_state(self) -> np.ndarray:
        return self._override(self._wall_state(), "wall")

    @abstractmethod
    def _freestream(self) -> np.ndarray:
        """Default freestream value of every unknown."""

    @abstractmethod
    def _wall_state(self) -> np.ndarray:
        """Dirichlet value of every unknown on a wall."""

    @abstractmethod
    def diffusivity(self, state: np.ndarray) -> np.ndarray:
        """Effective diffusion coefficient per point and unknown."""
