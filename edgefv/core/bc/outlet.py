"""Outlet boundary conditions."""

from __future__ import annotations

import numpy as np

from .base import BoundaryContext, BoundaryKind, GhostStateBoundary, register_bc


@register_bc("outlet")
class Outlet(GhostStateBoundary):
    """Zero-gradient outlet: the ghost state duplicates the interior state."""

    kind = BoundaryKind.OUTLET

    def ghost_state(self, ctx: BoundaryContext, points: np.ndarray) -> np.ndarray:
        return ctx.solution[points].copy()
