"""Geometry preprocessing pipeline for physical meshes."""

from __future__ import annotations

import logging

from .adjacency import set_esue, set_esup, set_psup
from .boundary import set_bound_volume, set_vertex
from .dual import Action, check_closure, set_bound_control_volume, set_control_volume
from .edges import EdgeGraph
from .mesh import Geometry, GeometryKind

log = logging.getLogger(__name__)


def preprocess_geometry(
    geometry: Geometry,
    closure_tol: float = 1e-6,
    strict: bool = False,
) -> Geometry:
    """Adjacency, edges, boundary vertices and dual control volumes, in order."""

    if geometry.kind is not GeometryKind.PHYSICAL:
        raise ValueError("Only physical geometries are preprocessed from elements")
    set_esup(geometry)
    set_psup(geometry)
    set_esue(geometry)
    geometry.edges = EdgeGraph.from_elements(geometry.npoints, geometry.elements)
    set_bound_volume(geometry)
    set_vertex(geometry)
    set_control_volume(geometry, Action.ALLOCATE)
    set_bound_control_volume(geometry, Action.ALLOCATE)
    defect = check_closure(geometry, closure_tol, strict)
    log.info(
        "Preprocessed %d points, %d elements, %d edges, %d markers (closure %.2e)",
        geometry.npoints,
        geometry.nelements,
        geometry.nedges,
        geometry.nmarkers,
        defect,
    )
    return geometry
