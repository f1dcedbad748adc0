"""Boundary vertex tables built per marker."""

from __future__ import annotations

from typing import Dict

from ..utils.errors import TopologyError
from .adjacency import face_of, set_esup
from .mesh import Geometry


def set_bound_volume(geometry: Geometry) -> None:
    """Resolve the owning volume element and local face of every boundary element."""

    if not geometry.esup:
        set_esup(geometry)
    for marker in geometry.markers:
        for bid, belem in enumerate(marker.elements):
            if belem.kind.dimension != geometry.ndim - 1:
                raise TopologyError(
                    f"Marker '{marker.name}' holds a {belem.kind.name} in a {geometry.ndim}-D mesh",
                    element=bid,
                )
            candidates = set(geometry.esup[belem.nodes[0]])
            for node in belem.nodes[1:]:
                candidates &= set(geometry.esup[node])
            owners = []
            for eid in sorted(candidates):
                local = face_of(geometry.elements[eid], belem.nodes)
                if local is not None:
                    owners.append((eid, local))
            if not owners:
                raise TopologyError(
                    f"Boundary element {bid} of marker '{marker.name}' has no face partner",
                    element=bid,
                )
            if len(owners) > 1:
                raise TopologyError(
                    f"Boundary element {bid} of marker '{marker.name}' lies on an interior face",
                    element=bid,
                )
            belem.domain_element, belem.domain_face = owners[0]


def set_vertex(geometry: Geometry) -> None:
    """One vertex per distinct point per marker, in first-touch order.

    Points on several markers get one vertex on each; the per-point marker
    sets are recorded in ``geometry.point_markers``.
    """

    geometry.point_markers = [set() for _ in range(geometry.npoints)]
    for mid, marker in enumerate(geometry.markers):
        ordered: Dict[int, None] = {}
        for belem in marker.elements:
            for node in belem.nodes:
                ordered.setdefault(node, None)
        marker.set_points(list(ordered), geometry.ndim)
        for point in marker.points:
            geometry.point_markers[int(point)].add(mid)
