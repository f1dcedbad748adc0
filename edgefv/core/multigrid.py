"""Agglomeration multigrid: coarse control volumes and level transfer."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set

import numpy as np

from .edges import EdgeGraph
from .mesh import Geometry, GeometryKind, Marker

log = logging.getLogger(__name__)


def default_ratio(ndim: int) -> int:
    return 4 if ndim == 2 else 8


def agglomeration_order(geometry: Geometry) -> List[int]:
    """Seeds visited by decreasing marker count, then by index."""

    boundary = [p for p in range(geometry.npoints) if geometry.point_markers[p]]
    boundary.sort(key=lambda p: (-len(geometry.point_markers[p]), p))
    interior = [p for p in range(geometry.npoints) if not geometry.point_markers[p]]
    return boundary + interior


def set_bound_agglomeration(geometry: Geometry, candidate: int, seed_markers: Set[int]) -> bool:
    """Whether ``candidate`` may join a coarse volume seeded on ``seed_markers``.

    Every marker touching the candidate must touch the seed as well, so
    interior points join any seed and boundary points never join an interior
    seed.
    """

    return geometry.point_markers[candidate] <= seed_markers


def set_suitable_neighbors(
    geometry: Geometry,
    seed: int,
    members: Sequence[int],
    parent: np.ndarray,
) -> List[int]:
    """Unassigned points adjacent to the growing coarse volume.

    Points touching more current members come first, then points closer to
    the seed, ties broken by index. The first call returns the seed's own
    ring; later calls reach second- and third-ring points through the members
    taken so far.
    """

    chosen = set(members)
    frontier = {
        other
        for point in members
        for other in geometry.neighbors(point)
        if other not in chosen and parent[other] < 0
    }
    origin = geometry.coords[seed]

    def priority(point: int):
        touching = sum(1 for q in geometry.neighbors(point) if q in chosen)
        offset = geometry.coords[point] - origin
        return (-touching, float(offset @ offset), point)

    return sorted(frontier, key=priority)


def _compatible(geometry: Geometry, candidate: int, seed: int, member_markers: List[Set[int]]) -> bool:
    if geometry.domain[candidate] != geometry.domain[seed]:
        return False
    if not set_bound_agglomeration(geometry, candidate, geometry.point_markers[seed]):
        return False
    markers = geometry.point_markers[candidate]
    if markers:
        return all(markers & other for other in member_markers)
    return True


def _group(geometry: Geometry, ratio: int) -> List[List[int]]:
    parent = np.full(geometry.npoints, -1, dtype=int)
    groups: List[List[int]] = []
    for seed in agglomeration_order(geometry):
        if parent[seed] >= 0:
            continue
        coarse = len(groups)
        members = [seed]
        parent[seed] = coarse
        member_markers = [geometry.point_markers[seed]] if geometry.point_markers[seed] else []
        while len(members) < ratio:
            candidate = next(
                (
                    p
                    for p in set_suitable_neighbors(geometry, seed, members, parent)
                    if _compatible(geometry, p, seed, member_markers)
                ),
                None,
            )
            if candidate is None:
                break
            members.append(candidate)
            parent[candidate] = coarse
            if geometry.point_markers[candidate]:
                member_markers.append(geometry.point_markers[candidate])
        groups.append(members)
    groups = _merge_isolated(geometry, groups, parent)
    for coarse, members in enumerate(groups):
        parent[members] = coarse
    geometry.parent = parent
    return groups


def _merge_isolated(geometry: Geometry, groups: List[List[int]], parent: np.ndarray) -> List[List[int]]:
    """Fold single-point volumes into the smallest compatible neighbouring volume."""

    for coarse, members in enumerate(groups):
        if len(members) != 1:
            continue
        point = members[0]
        options = []
        for other in geometry.neighbors(point):
            target = int(parent[other])
            group = groups[target]
            if target == coarse or not group:
                continue
            markers = [geometry.point_markers[p] for p in group if geometry.point_markers[p]]
            if _compatible(geometry, point, group[0], markers):
                options.append((len(group), target))
        if not options:
            continue
        _, target = min(options)
        groups[target].append(point)
        parent[point] = target
        members.clear()
    merged = [members for members in groups if members]
    if len(merged) < len(groups):
        log.debug("Merged %d isolated points into neighbouring volumes", len(groups) - len(merged))
    return merged


def agglomerate(fine: Geometry, ratio: Optional[int] = None) -> Geometry:
    """Build one coarser level from ``fine``.

    The coarse geometry keeps points, volumes, edges with summed normals and
    marker vertices with summed normals. ``fine.parent`` and
    ``coarse.children`` record the fine-to-coarse mapping; the first child
    is the seed, and a coarse point carries exactly the seed's markers.
    """

    if fine.edges.normals.shape != (fine.nedges, fine.ndim):
        raise ValueError("Fine geometry has no dual control volumes")
    ratio = ratio or default_ratio(fine.ndim)
    if ratio < 2:
        raise ValueError("Agglomeration ratio must be at least 2")

    children = _group(fine, ratio)
    parent = fine.parent
    ncoarse = len(children)

    volumes = np.zeros(ncoarse)
    np.add.at(volumes, parent, fine.volumes)
    weighted = np.zeros((ncoarse, fine.ndim))
    np.add.at(weighted, parent, fine.coords * fine.volumes[:, None])
    coords = weighted / volumes[:, None]
    domain = np.array([fine.domain[group[0]] for group in children], dtype=bool)

    coarse = Geometry(coords, kind=GeometryKind.MULTIGRID, domain=domain)
    coarse.volumes = volumes
    coarse.children = children
    coarse.global_index = np.array([fine.global_index[group[0]] for group in children], dtype=int)

    edges = EdgeGraph(ncoarse)
    fine_nodes = fine.edges.nodes
    coarse_pairs = parent[fine_nodes] if len(fine_nodes) else np.zeros((0, 2), dtype=int)
    kept = []
    for e, (ci, cj) in enumerate(coarse_pairs):
        if ci == cj:
            continue
        kept.append((e, edges.add(ci, cj), 1.0 if ci < cj else -1.0))
    edges.allocate(fine.ndim)
    for e, ce, sign in kept:
        edges.normals[ce] += sign * fine.edges.normals[e]
    edges.set_centres(coords)
    coarse.edges = edges

    coarse.markers = [_coarse_marker(fine, coarse, marker) for marker in fine.markers]
    coarse.point_markers = [set() for _ in range(ncoarse)]
    for mid, marker in enumerate(coarse.markers):
        for point in marker.points:
            coarse.point_markers[int(point)].add(mid)
    return coarse


def _coarse_marker(fine: Geometry, coarse: Geometry, marker: Marker) -> Marker:
    ordered: Dict[int, None] = {}
    for point in marker.points:
        ordered.setdefault(int(fine.parent[point]), None)
    result = Marker(marker.name)
    result.set_points(list(ordered), coarse.ndim)
    for v, point in enumerate(marker.points):
        result.normals[result.vertex_of[int(fine.parent[point])]] += marker.normals[v]
    return result


def build_multigrid_levels(
    geometry: Geometry,
    levels: int,
    ratio: Optional[int] = None,
    min_reduction: float = 1.5,
) -> List[Geometry]:
    """Finest level first; stops early once coarsening stalls."""

    hierarchy = [geometry]
    for level in range(1, levels + 1):
        fine = hierarchy[-1]
        coarse = agglomerate(fine, ratio)
        reduction = fine.npoints / max(coarse.npoints, 1)
        if reduction < min_reduction:
            log.info(
                "Stopping agglomeration at level %d: reduction %.2f below %.2f",
                level,
                reduction,
                min_reduction,
            )
            fine.parent = np.full(fine.npoints, -1, dtype=int)
            break
        log.info(
            "Multigrid level %d: %d points, %d edges (reduction %.2f)",
            level,
            coarse.npoints,
            coarse.nedges,
            reduction,
        )
        hierarchy.append(coarse)
    return hierarchy


def restrict(fine: Geometry, coarse: Geometry, values: np.ndarray) -> np.ndarray:
    """Volume-weighted average of fine values over each coarse volume."""

    values = np.asarray(values, dtype=float)
    weights = fine.volumes.reshape((-1,) + (1,) * (values.ndim - 1))
    total = np.zeros((coarse.npoints,) + values.shape[1:])
    np.add.at(total, fine.parent, values * weights)
    return total / coarse.volumes.reshape((-1,) + (1,) * (values.ndim - 1))


def prolong(coarse: Geometry, fine: Geometry, values: np.ndarray) -> np.ndarray:
    """Inject coarse values into every child point."""

    return np.asarray(values)[fine.parent].copy()
