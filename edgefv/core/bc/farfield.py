"""Far-field and inlet boundary conditions."""

from __future__ import annotations

import numpy as np

from .base import BoundaryContext, BoundaryKind, GhostStateBoundary, register_bc


@register_bc("farfield")
class Farfield(GhostStateBoundary):
    kind = BoundaryKind.FARFIELD

    def ghost_state(self, ctx: BoundaryContext, points: np.ndarray) -> np.ndarray:
        state = self._state("values", self.model.freestream())
        return np.tile(state, (len(points), 1))


@register_bc("inlet")
class Inlet(GhostStateBoundary):
    """Ghost state with every unknown assigned from ``values`` or the freestream."""

    kind = BoundaryKind.INLET

    def ghost_state(self, ctx: BoundaryContext, points: np.ndarray) -> np.ndarray:
        state = self._state("values", self.model.freestream())
        return np.tile(state, (len(points), 1))
