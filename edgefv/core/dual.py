"""Median-dual control volumes: edge normals, point volumes and boundary normals.

Each primal element is split around its centroid. In 2-D the dual face of an
edge inside an element is the segment from the edge midpoint to the element
centroid. In 3-D it is the pair of triangles (edge midpoint, face centroid,
element centroid) over the two element faces sharing the edge. Point volumes
come from the same pieces, so the dual cells close exactly up to round-off.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict

import numpy as np

from ..utils.errors import GeometryConsistencyError, TopologyError
from .edges import NOT_FOUND
from .mesh import Geometry, GeometryKind

log = logging.getLogger(__name__)


class Action(Enum):
    ALLOCATE = "allocate"
    UPDATE = "update"


def _prepare(geometry: Geometry, action: Action) -> None:
    edges = geometry.edges
    if action is Action.ALLOCATE:
        edges.allocate(geometry.ndim)
        geometry.volumes = np.zeros(geometry.npoints)
        return
    if edges.normals.shape != (edges.nedges, geometry.ndim):
        raise ValueError("Control volumes must be allocated before they can be updated")
    edges.normals[:] = 0.0
    geometry.volumes[:] = 0.0


def _edge_index(geometry: Geometry, a: int, b: int, eid: int) -> int:
    index = geometry.edges.find(a, b)
    if index == NOT_FOUND:
        raise TopologyError(f"Edge ({a}, {b}) missing from the edge graph", element=eid)
    return index


def _add_oriented(geometry: Geometry, edge: int, normal: np.ndarray) -> None:
    i, j = geometry.edges.nodes[edge]
    direction = geometry.coords[j] - geometry.coords[i]
    if float(np.dot(normal, direction)) < 0.0:
        normal = -normal
    geometry.edges.normals[edge] += normal


def _rotate(vector: np.ndarray) -> np.ndarray:
    return np.array([vector[1], -vector[0]])


def _cross2(u: np.ndarray, v: np.ndarray) -> float:
    return float(u[0] * v[1] - u[1] * v[0])


def _element_2d(geometry: Geometry, eid: int) -> None:
    elem = geometry.elements[eid]
    x = geometry.coords
    centre = x[list(elem.nodes)].mean(axis=0)
    for a, b in elem.edge_nodes():
        mid = 0.5 * (x[a] + x[b])
        edge = _edge_index(geometry, a, b, eid)
        _add_oriented(geometry, edge, _rotate(centre - mid))
        area = 0.5 * abs(_cross2(mid - x[a], centre - x[a]))
        geometry.volumes[a] += area
        geometry.volumes[b] += area


def _element_3d(geometry: Geometry, eid: int) -> None:
    elem = geometry.elements[eid]
    x = geometry.coords
    centre = x[list(elem.nodes)].mean(axis=0)
    for local in range(len(elem.kind.faces)):
        loop = elem.face_nodes(local)
        face_centre = x[list(loop)].mean(axis=0)
        count = len(loop)
        for k in range(count):
            a, b = loop[k], loop[(k + 1) % count]
            prev = loop[k - 1]
            mid = 0.5 * (x[a] + x[b])
            edge = _edge_index(geometry, a, b, eid)
            _add_oriented(geometry, edge, 0.5 * np.cross(face_centre - mid, centre - mid))

            # pyramid from the element centroid over the face quadrant of a
            mid_prev = 0.5 * (x[a] + x[prev])
            area = 0.5 * np.cross(face_centre - x[a], mid_prev - mid)
            quad_centre = 0.25 * (x[a] + mid + face_centre + mid_prev)
            geometry.volumes[a] += abs(float(np.dot(quad_centre - centre, area))) / 3.0


def set_control_volume(geometry: Geometry, action: Action = Action.ALLOCATE) -> None:
    """Accumulate dual face normals per edge and control volume per point."""

    if geometry.kind is not GeometryKind.PHYSICAL:
        raise ValueError("Control volumes are only built from primal elements")
    _prepare(geometry, action)
    builder = _element_2d if geometry.ndim == 2 else _element_3d
    for eid in range(geometry.nelements):
        builder(geometry, eid)
    geometry.edges.set_centres(geometry.coords)

    empty = np.flatnonzero(geometry.volumes <= 0.0)
    if empty.size:
        raise TopologyError("Point has no control volume", point=int(empty[0]))


def set_bound_control_volume(geometry: Geometry, action: Action = Action.ALLOCATE) -> None:
    """Outward boundary normals per marker vertex.

    A boundary face hands each of its nodes the part of its area lying
    between the node, the adjacent edge midpoints and the face centroid.
    """

    if geometry.kind is not GeometryKind.PHYSICAL:
        raise ValueError("Boundary control volumes are only built from primal elements")
    x = geometry.coords
    for marker in geometry.markers:
        if action is Action.ALLOCATE or marker.normals.shape != (marker.nvertex, geometry.ndim):
            marker.normals = np.zeros((marker.nvertex, geometry.ndim))
        else:
            marker.normals[:] = 0.0
        for bid, belem in enumerate(marker.elements):
            if belem.domain_element < 0:
                raise TopologyError(
                    f"Boundary element {bid} of marker '{marker.name}' has no owning element",
                    element=bid,
                )
            owner = geometry.elements[belem.domain_element]
            owner_centre = x[list(owner.nodes)].mean(axis=0)
            nodes = belem.nodes
            face_centre = x[list(nodes)].mean(axis=0)
            outward = face_centre - owner_centre

            if geometry.ndim == 2:
                a, b = nodes
                normal = 0.5 * _rotate(x[b] - x[a])
                if float(np.dot(normal, outward)) < 0.0:
                    normal = -normal
                marker.normals[marker.vertex_of[a]] += normal
                marker.normals[marker.vertex_of[b]] += normal
                continue

            count = len(nodes)
            for k in range(count):
                a, nxt, prev = nodes[k], nodes[(k + 1) % count], nodes[k - 1]
                mid_next = 0.5 * (x[a] + x[nxt])
                mid_prev = 0.5 * (x[a] + x[prev])
                normal = 0.5 * np.cross(face_centre - x[a], mid_prev - mid_next)
                if float(np.dot(normal, outward)) < 0.0:
                    normal = -normal
                marker.normals[marker.vertex_of[a]] += normal


def closure_defect(geometry: Geometry) -> np.ndarray:
    """Relative closure defect per point (0 for points without faces)."""

    edges = geometry.edges
    ndim = geometry.ndim
    total = np.zeros((geometry.npoints, ndim))
    scale = np.zeros(geometry.npoints)
    if edges.nedges:
        nodes = edges.nodes
        magnitude = np.linalg.norm(edges.normals, axis=1)
        np.add.at(total, nodes[:, 0], edges.normals)
        np.add.at(total, nodes[:, 1], -edges.normals)
        np.maximum.at(scale, nodes[:, 0], magnitude)
        np.maximum.at(scale, nodes[:, 1], magnitude)
    for marker in geometry.markers:
        if marker.nvertex == 0:
            continue
        np.add.at(total, marker.points, marker.normals)
        np.maximum.at(scale, marker.points, np.linalg.norm(marker.normals, axis=1))

    defect = np.zeros(geometry.npoints)
    mask = scale > 0.0
    defect[mask] = np.linalg.norm(total[mask], axis=1) / scale[mask]
    return defect


def check_closure(geometry: Geometry, tolerance: float = 1e-6, strict: bool = False) -> float:
    """Check that the dual cell of every owned point is closed.

    Returns the largest relative defect. Violations are logged, or raised as
    :class:`GeometryConsistencyError` when ``strict`` is set.
    """

    defect = closure_defect(geometry)
    defect[~geometry.domain] = 0.0
    worst = int(np.argmax(defect)) if defect.size else 0
    largest = float(defect[worst]) if defect.size else 0.0
    if largest > tolerance:
        count = int((defect > tolerance).sum())
        message = (
            f"Control volume closure violated at {count} points "
            f"(max defect {largest:.3e} at point {worst})"
        )
        if strict:
            raise GeometryConsistencyError(message, point=worst, defect=largest)
        log.warning(message)
    return largest


def smooth_coordinates(geometry: Geometry, n_smooth: int, coeff: float = 0.5) -> None:
    """Jacobi Laplacian smoothing of interior points, then recompute the dual.

    Boundary points stay fixed.
    """

    if n_smooth <= 0:
        return
    fixed = geometry.boundary_mask()
    neighbours = [geometry.neighbors(p) for p in range(geometry.npoints)]
    for _ in range(n_smooth):
        old = geometry.coords.copy()
        for point in range(geometry.npoints):
            if fixed[point] or not neighbours[point]:
                continue
            average = old[neighbours[point]].mean(axis=0)
            geometry.coords[point] = old[point] + coeff * (average - old[point])
    set_control_volume(geometry, Action.UPDATE)
    set_bound_control_volume(geometry, Action.UPDATE)


def quality_statistics(geometry: Geometry) -> Dict[str, float]:
    volumes = geometry.volumes
    degree = np.array([len(p) for p in geometry.edges.point_edges], dtype=float)
    return {
        "npoints": float(geometry.npoints),
        "nedges": float(geometry.nedges),
        "volume_total": float(volumes.sum()),
        "volume_min": float(volumes.min()) if volumes.size else 0.0,
        "volume_mean": float(volumes.mean()) if volumes.size else 0.0,
        "volume_max": float(volumes.max()) if volumes.size else 0.0,
        "closure_max": float(closure_defect(geometry).max()) if volumes.size else 0.0,
        "edges_per_point_min": float(degree.min()) if degree.size else 0.0,
        "edges_per_point_mean": float(degree.mean()) if degree.size else 0.0,
        "edges_per_point_max": float(degree.max()) if degree.size else 0.0,
    }
