"""Pluggable flux and source operators evaluated over batches of edges."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from ..utils.registry import Registry


numerics_registry = Registry("numerics")


def register_numerics(name: str):
    return numerics_registry.register(name)


def make_numerics(name: str, nvar: int, config: Optional[Dict] = None):
    return numerics_registry.create(name, nvar, config or {})


@dataclass
class EdgeData:
    """States seen by an operator, one row per edge, vertex or point.

    For boundary vertices ``j`` is the exterior ghost state and ``normal``
    the outward vertex normal. Source operators only read the ``i`` side.
    """

    normal: np.ndarray
    state_i: np.ndarray
    state_j: Optional[np.ndarray] = None
    coord_i: Optional[np.ndarray] = None
    coord_j: Optional[np.ndarray] = None
    velocity_i: Optional[np.ndarray] = None
    velocity_j: Optional[np.ndarray] = None
    grad_i: Optional[np.ndarray] = None
    grad_j: Optional[np.ndarray] = None
    limiter_i: Optional[np.ndarray] = None
    limiter_j: Optional[np.ndarray] = None
    diffusivity_i: Optional[np.ndarray] = None
    diffusivity_j: Optional[np.ndarray] = None
    volume: Optional[np.ndarray] = None

    @property
    def size(self) -> int:
        return int(self.state_i.shape[0])


@dataclass
class NumericsResult:
    residual: np.ndarray
    jac_i: np.ndarray
    jac_j: Optional[np.ndarray] = None


class Numerics(ABC):
    """Residual and Jacobian blocks for a batch of edges."""

    name = "generic"

    def __init__(self, nvar: int, config: Optional[Dict] = None) -> None:
        self.nvar = int(nvar)
        self.config = config or {}

    @abstractmethod
    def compute(self, data: EdgeData) -> NumericsResult:
        """Evaluate the operator for every row of ``data``."""

    def _identity(self, size: int) -> np.ndarray:
        return np.broadcast_to(np.eye(self.nvar), (size, self.nvar, self.nvar)).copy()
