"""Boundary condition base classes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import numpy as np

from ...numerics.base import EdgeData, Numerics
from ...utils.registry import Registry
from ..linalg import BlockMatrix
from ..mesh import Geometry


bc_registry = Registry("boundary condition")


def register_bc(name: str):
    return bc_registry.register(name)


class BoundaryKind(Enum):
    WALL = "wall"
    FARFIELD = "farfield"
    INLET = "inlet"
    OUTLET = "outlet"
    SYMMETRY = "symmetry"
    SEND_RECEIVE = "send_receive"

    @classmethod
    def from_name(cls, name: str) -> "BoundaryKind":
        key = name.strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError as exc:
            raise ValueError(f"Unknown boundary kind '{name}'") from exc

    @property
    def order(self) -> int:
        """Position in the application order: walls, open boundaries, halo."""

        if self is BoundaryKind.WALL:
            return 0
        if self is BoundaryKind.SEND_RECEIVE:
            return 2
        return 1


@dataclass
class BoundaryContext:
    """Assembly state handed to boundary operators."""

    geometry: Geometry
    solution: np.ndarray
    residual: np.ndarray
    jacobian: BlockMatrix
    velocity: np.ndarray
    fixed: np.ndarray
    convective: Optional[Numerics] = None


class BoundaryCondition(ABC):
    kind: BoundaryKind
    uses_marker = True

    def __init__(self, name: str, geometry: Geometry, model, config: Optional[Dict] = None) -> None:
        self.name = name
        self.geometry = geometry
        self.model = model
        self.config = config or {}
        self.marker = geometry.marker_index(name) if self.uses_marker else -1

    @abstractmethod
    def apply(self, ctx: BoundaryContext) -> None:
        """Modify residual/Jacobian rows of this boundary's points."""

    def impose(self, solution: np.ndarray) -> None:
        """Write fixed values into the initial ``solution``; most boundaries have none."""

    def active_vertices(self, ctx: BoundaryContext) -> np.ndarray:
        """Vertex indices whose point is owned and not fixed by a wall."""

        marker = self.geometry.markers[self.marker]
        points = marker.points
        mask = self.geometry.domain[points] & ~ctx.fixed[points]
        return np.flatnonzero(mask)

    def _state(self, key: str, default: np.ndarray) -> np.ndarray:
        values = self.config.get(key)
        if values is None:
            return np.asarray(default, dtype=float)
        values = np.asarray(values, dtype=float).reshape(-1)
        if values.shape != (self.model.nvar,):
            raise ValueError(
                f"Boundary '{self.name}' {key} needs {self.model.nvar} values, got {values.size}"
            )
        return values


class GhostStateBoundary(BoundaryCondition):
    """Convective flux against an exterior ghost state, into the interior row only."""

    @abstractmethod
    def ghost_state(self, ctx: BoundaryContext, points: np.ndarray) -> np.ndarray:
        """Exterior state for each boundary point."""

    def ghost_velocity(self, ctx: BoundaryContext, points: np.ndarray) -> np.ndarray:
        velocity = self.config.get("velocity")
        if velocity is None:
            return ctx.velocity[points]
        vec = np.asarray(velocity, dtype=float)[: self.geometry.ndim]
        return np.tile(vec, (len(points), 1))

    def apply(self, ctx: BoundaryContext) -> None:
        if ctx.convective is None:
            return
        vertices = self.active_vertices(ctx)
        if vertices.size == 0:
            return
        marker = self.geometry.markers[self.marker]
        points = marker.points[vertices]
        data = EdgeData(
            normal=marker.normals[vertices],
            state_i=ctx.solution[points],
            state_j=self.ghost_state(ctx, points),
            velocity_i=ctx.velocity[points],
            velocity_j=self.ghost_velocity(ctx, points),
        )
        result = ctx.convective.compute(data)
        np.add.at(ctx.residual, points, result.residual)
        np.add.at(ctx.jacobian.diag, points, result.jac_i)
