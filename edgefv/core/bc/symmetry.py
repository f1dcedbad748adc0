"""Symmetry plane."""

from __future__ import annotations

from .base import BoundaryCondition, BoundaryContext, BoundaryKind, register_bc


@register_bc("symmetry")
class Symmetry(BoundaryCondition):
    """No flux crosses a symmetry plane; rows are left as assembled."""

    kind = BoundaryKind.SYMMETRY

    def apply(self, ctx: BoundaryContext) -> None:
        return
