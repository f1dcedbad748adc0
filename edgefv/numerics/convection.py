"""Scalar upwind convection with optional MUSCL reconstruction."""

from __future__ import annotations

import numpy as np

from .base import EdgeData, Numerics, NumericsResult, register_numerics


@register_numerics("upwind")
@register_numerics("scalar_upwind")
class ScalarUpwind(Numerics):
    """``a = 0.5 (u_i + u_j) . n``; flux ``a+ phi_i + a- phi_j``.

    With ``muscl`` the face states are extrapolated from the point gradients
    (scaled by the limiter). Jacobian blocks stay first order.
    """

    name = "Upwind"

    def __init__(self, nvar, config=None) -> None:
        super().__init__(nvar, config)
        self.muscl = bool(self.config.get("muscl", False))

    def reconstruct(self, data: EdgeData):
        left, right = data.state_i, data.state_j
        if not self.muscl or data.grad_i is None or data.coord_i is None:
            return left, right
        half = 0.5 * (data.coord_j - data.coord_i)
        proj_i = np.einsum("evd,ed->ev", data.grad_i, half)
        proj_j = np.einsum("evd,ed->ev", data.grad_j, half)
        if data.limiter_i is not None:
            proj_i = proj_i * data.limiter_i
            proj_j = proj_j * data.limiter_j
        return left + proj_i, right - proj_j

    def compute(self, data: EdgeData) -> NumericsResult:
        left, right = self.reconstruct(data)
        velocity = 0.5 * (data.velocity_i + data.velocity_j)
        a = np.einsum("ed,ed->e", velocity, data.normal)
        a_plus = np.maximum(a, 0.0)
        a_minus = np.minimum(a, 0.0)
        residual = a_plus[:, None] * left + a_minus[:, None] * right
        eye = np.eye(self.nvar)
        jac_i = a_plus[:, None, None] * eye
        jac_j = a_minus[:, None, None] * eye
        return NumericsResult(residual, jac_i, jac_j)
