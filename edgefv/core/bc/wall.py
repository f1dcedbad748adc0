"""Wall boundary conditions."""

from __future__ import annotations

import numpy as np

from .base import BoundaryCondition, BoundaryContext, BoundaryKind, register_bc


@register_bc("wall")
class Wall(BoundaryCondition):
    """Dirichlet wall: fixed solution, zero residual and an identity row.

    Points written here are final for the pass; later boundaries skip them.
    """

    kind = BoundaryKind.WALL

    def _owned_points(self) -> np.ndarray:
        points = self.geometry.markers[self.marker].points
        return points[self.geometry.domain[points]]

    def impose(self, solution: np.ndarray) -> None:
        solution[self._owned_points()] = self._state("values", self.model.wall_state())

    def apply(self, ctx: BoundaryContext) -> None:
        state = self._state("values", self.model.wall_state())
        for point in self._owned_points():
            point = int(point)
            ctx.solution[point] = state
            ctx.residual[point] = 0.0
            ctx.jacobian.delete_row(point)
            ctx.fixed[point] = True
