"""Point gradients and slope limiting on the edge graph."""

from __future__ import annotations

from enum import Enum

import numpy as np

from .field import Field
from .mesh import Geometry


class GradientMethod(Enum):
    GREEN_GAUSS = "green_gauss"
    LEAST_SQUARES = "least_squares"
    WEIGHTED_LEAST_SQUARES = "weighted_least_squares"


class SlopeLimiter(Enum):
    NONE = "none"
    VENKATAKRISHNAN = "venkatakrishnan"


def _values_array(field: Field | np.ndarray) -> np.ndarray:
    if isinstance(field, Field):
        values = field.values
    else:
        values = np.asarray(field, dtype=float)
    if values.ndim == 1:
        values = values[:, None]
    return values


def green_gauss(geometry: Geometry, field: Field | np.ndarray) -> np.ndarray:
    """Gradient from the divergence theorem on the dual cell, ``(n, nvar, ndim)``."""

    phi = _values_array(field)
    nodes = geometry.edges.nodes
    normals = geometry.edges.normals
    grads = np.zeros((geometry.npoints, phi.shape[1], geometry.ndim))
    if len(nodes):
        phi_face = 0.5 * (phi[nodes[:, 0]] + phi[nodes[:, 1]])
        flux = phi_face[:, :, None] * normals[:, None, :]
        np.add.at(grads, nodes[:, 0], flux)
        np.add.at(grads, nodes[:, 1], -flux)
    for marker in geometry.markers:
        if marker.nvertex == 0:
            continue
        points = marker.points
        np.add.at(grads, points, phi[points][:, :, None] * marker.normals[:, None, :])
    return grads / geometry.volumes[:, None, None]


def least_squares(geometry: Geometry, field: Field | np.ndarray, weighted: bool = False) -> np.ndarray:
    """Least-squares fit over edge neighbours, optionally weighted by ``1/|d|^2``."""

    phi = _values_array(field)
    nodes = geometry.edges.nodes
    ndim = geometry.ndim
    lhs = np.zeros((geometry.npoints, ndim, ndim))
    rhs = np.zeros((geometry.npoints, ndim, phi.shape[1]))
    if len(nodes):
        d = geometry.coords[nodes[:, 1]] - geometry.coords[nodes[:, 0]]
        dphi = phi[nodes[:, 1]] - phi[nodes[:, 0]]
        weight = 1.0 / np.einsum("ed,ed->e", d, d) if weighted else np.ones(len(nodes))
        outer = weight[:, None, None] * d[:, :, None] * d[:, None, :]
        proj = weight[:, None, None] * d[:, :, None] * dphi[:, None, :]
        # both ends see the same products: d and dphi flip sign together
        for end in (nodes[:, 0], nodes[:, 1]):
            np.add.at(lhs, end, outer)
            np.add.at(rhs, end, proj)
    solution = np.linalg.pinv(lhs) @ rhs
    return np.transpose(solution, (0, 2, 1))


def compute_gradient(
    geometry: Geometry,
    field: Field | np.ndarray,
    method: GradientMethod = GradientMethod.GREEN_GAUSS,
) -> np.ndarray:
    if method is GradientMethod.GREEN_GAUSS:
        return green_gauss(geometry, field)
    if method is GradientMethod.LEAST_SQUARES:
        return least_squares(geometry, field, weighted=False)
    if method is GradientMethod.WEIGHTED_LEAST_SQUARES:
        return least_squares(geometry, field, weighted=True)
    raise ValueError(f"Unsupported gradient method '{method}'")


def venkatakrishnan(
    geometry: Geometry,
    field: Field | np.ndarray,
    grads: np.ndarray,
    k: float = 5.0,
) -> np.ndarray:
    """Venkatakrishnan limiter per point and unknown, in ``[0, 1]``."""

    phi = _values_array(field)
    nodes = geometry.edges.nodes
    limiter = np.ones_like(phi)
    if not len(nodes):
        return limiter
    i, j = nodes[:, 0], nodes[:, 1]
    phi_max = phi.copy()
    phi_min = phi.copy()
    np.maximum.at(phi_max, i, phi[j])
    np.maximum.at(phi_max, j, phi[i])
    np.minimum.at(phi_min, i, phi[j])
    np.minimum.at(phi_min, j, phi[i])

    size = geometry.volumes ** (1.0 / geometry.ndim)
    eps2 = (k * size) ** 3
    x = geometry.coords
    for end, other in ((i, j), (j, i)):
        half = 0.5 * (x[other] - x[end])
        delta2 = np.einsum("evd,ed->ev", grads[end], half)
        delta1 = np.where(delta2 > 0.0, phi_max[end] - phi[end], phi_min[end] - phi[end])
        e2 = eps2[end][:, None]
        active = np.abs(delta2) > 1e-14
        safe2 = np.where(active, delta2, 1.0)
        psi = (delta1**2 + e2 + 2.0 * safe2 * delta1) / (
            delta1**2 + 2.0 * safe2**2 + delta1 * safe2 + e2
        )
        psi = np.where(active, psi, 1.0)
        np.minimum.at(limiter, end, psi)
    return np.clip(limiter, 0.0, 1.0)


def compute_limiter(
    geometry: Geometry,
    field: Field | np.ndarray,
    grads: np.ndarray,
    kind: SlopeLimiter = SlopeLimiter.NONE,
    k: float = 5.0,
) -> np.ndarray:
    if kind is SlopeLimiter.NONE:
        return np.ones_like(_values_array(field))
    if kind is SlopeLimiter.VENKATAKRISHNAN:
        return venkatakrishnan(geometry, field, grads, k)
    raise ValueError(f"Unsupported slope limiter '{kind}'")
