"""Topological adjacency derived from primal element connectivity."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from ..utils.errors import TopologyError
from .elements import Element
from .mesh import Geometry


def set_esup(geometry: Geometry) -> List[List[int]]:
    """Elements surrounding each point, in increasing element order."""

    esup: List[List[int]] = [[] for _ in range(geometry.npoints)]
    for eid, elem in enumerate(geometry.elements):
        for node in elem.nodes:
            if not 0 <= node < geometry.npoints:
                raise TopologyError(f"Element references unknown point {node}", element=eid)
            if not esup[node] or esup[node][-1] != eid:
                esup[node].append(eid)
    geometry.esup = esup
    return esup


def set_psup(geometry: Geometry) -> List[List[int]]:
    """Distinct points sharing at least one element with each point."""

    if not geometry.esup:
        set_esup(geometry)
    psup: List[List[int]] = []
    for point, elems in enumerate(geometry.esup):
        seen = set()
        for eid in elems:
            seen.update(geometry.elements[eid].nodes)
        seen.discard(point)
        psup.append(sorted(seen))
    geometry.psup = psup
    return psup


def find_face(first: Element, second: Element) -> Optional[Tuple[int, int]]:
    """Local face indices shared by two elements, or ``None``.

    The common node set is matched against both elements' face tables, so a
    pair sharing only an edge (or a vertex) is not reported as neighbours.
    """

    common = set(first.nodes) & set(second.nodes)
    needed = min(first.kind.min_face_nodes, second.kind.min_face_nodes)
    if len(common) < needed:
        return None
    face_a = _match_face(first, common)
    face_b = _match_face(second, common)
    if face_a is None or face_b is None:
        return None
    return face_a, face_b


def _match_face(elem: Element, nodes: set) -> Optional[int]:
    for local, face in enumerate(elem.kind.faces):
        if {elem.nodes[k] for k in face} == nodes:
            return local
    return None


def face_of(elem: Element, nodes: Sequence[int]) -> Optional[int]:
    """Local index of the face of ``elem`` made of exactly ``nodes``."""

    return _match_face(elem, set(nodes))


def set_esue(geometry: Geometry) -> List[List[int]]:
    """Face neighbours of each element; ``-1`` marks a face without partner.

    ``esue[e][f]`` is the element across local face ``f`` of element ``e``.
    Raises :class:`TopologyError` when more than two elements share a face.
    """

    if not geometry.esup:
        set_esup(geometry)
    esue: List[List[int]] = [[-1] * len(elem.kind.faces) for elem in geometry.elements]
    for eid, elem in enumerate(geometry.elements):
        candidates = set()
        for node in elem.nodes:
            candidates.update(geometry.esup[node])
        candidates.discard(eid)
        for other in sorted(candidates):
            if other < eid:
                continue
            shared = find_face(elem, geometry.elements[other])
            if shared is None:
                continue
            face_a, face_b = shared
            if esue[eid][face_a] not in (-1, other) or esue[other][face_b] not in (-1, eid):
                raise TopologyError(
                    f"Face {face_a} of element {eid} is shared by more than two elements",
                    element=eid,
                )
            esue[eid][face_a] = other
            esue[other][face_b] = eid
    geometry.esue = esue
    return esue
