"""Partition interface: ghost rows are owned and solved elsewhere."""

from __future__ import annotations

import numpy as np

from .base import BoundaryCondition, BoundaryContext, BoundaryKind, register_bc


@register_bc("send_receive")
class SendReceive(BoundaryCondition):
    kind = BoundaryKind.SEND_RECEIVE
    uses_marker = False

    def apply(self, ctx: BoundaryContext) -> None:
        for point in np.flatnonzero(~self.geometry.domain):
            ctx.residual[point] = 0.0
            ctx.jacobian.delete_row(int(point))
