"""Domain decomposition into partition-local geometries with one ghost layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from .edges import EdgeGraph
from .mesh import Geometry, GeometryKind, Marker


@dataclass
class SendReceive:
    """Exchange table with one neighbouring partition.

    ``send`` holds local indices of owned points the neighbour needs,
    ``receive`` local indices of ghosts it owns. Both are ordered by global
    point index so the two sides line up.
    """

    neighbor: int
    send: np.ndarray
    receive: np.ndarray


@dataclass
class Partition:
    rank: int
    geometry: Geometry
    schedules: List[SendReceive] = field(default_factory=list)

    @property
    def owned(self) -> np.ndarray:
        return np.flatnonzero(self.geometry.domain)

    @property
    def ghosts(self) -> np.ndarray:
        return np.flatnonzero(~self.geometry.domain)


def split_geometry(geometry: Geometry, owner: np.ndarray) -> List[Partition]:
    """Split a preprocessed geometry by the per-point ``owner`` rank."""

    owner = np.asarray(owner, dtype=int)
    if owner.shape != (geometry.npoints,):
        raise ValueError(f"Owner array must have {geometry.npoints} entries")
    if owner.min() < 0:
        raise ValueError("Owner ranks must be non-negative")
    nparts = int(owner.max()) + 1
    nodes = geometry.edges.nodes

    local_maps: List[Dict[int, int]] = []
    ghost_sets: List[np.ndarray] = []
    partitions: List[Partition] = []
    for rank in range(nparts):
        owned = np.flatnonzero(owner == rank)
        touching = (owner[nodes[:, 0]] == rank) | (owner[nodes[:, 1]] == rank)
        halo = np.unique(nodes[touching].ravel())
        ghosts = halo[owner[halo] != rank]
        ghost_sets.append(ghosts)
        points = np.concatenate([owned, ghosts])
        local = {int(g): k for k, g in enumerate(points)}
        local_maps.append(local)

        domain = np.zeros(len(points), dtype=bool)
        domain[: len(owned)] = True
        part = Geometry(geometry.coords[points], kind=GeometryKind.DOMAIN, domain=domain)
        part.volumes = geometry.volumes[points].copy()
        part.global_index = points.copy()

        edges = EdgeGraph(len(points))
        kept = []
        for e in np.flatnonzero(touching):
            gi, gj = nodes[e]
            li, lj = local[int(gi)], local[int(gj)]
            kept.append((e, edges.add(li, lj), 1.0 if li < lj else -1.0))
        edges.allocate(geometry.ndim)
        for e, le, sign in kept:
            edges.normals[le] = sign * geometry.edges.normals[e]
        edges.set_centres(part.coords)
        part.edges = edges

        part.markers = []
        for marker in geometry.markers:
            mask = owner[marker.points] == rank
            local_marker = Marker(marker.name)
            local_marker.set_points([local[int(p)] for p in marker.points[mask]], geometry.ndim)
            local_marker.normals[:] = marker.normals[mask]
            part.markers.append(local_marker)
        part.point_markers = [set() for _ in range(len(points))]
        for mid, marker in enumerate(part.markers):
            for point in marker.points:
                part.point_markers[int(point)].add(mid)
        partitions.append(Partition(rank, part))

    for rank, part in enumerate(partitions):
        for other in range(nparts):
            if other == rank:
                continue
            # ghosts[other] are sorted by global index, and so are our owned points
            wanted = ghost_sets[other][owner[ghost_sets[other]] == rank]
            provided = ghost_sets[rank][owner[ghost_sets[rank]] == other]
            if wanted.size == 0 and provided.size == 0:
                continue
            part.schedules.append(
                SendReceive(
                    neighbor=other,
                    send=np.array([local_maps[rank][int(g)] for g in wanted], dtype=int),
                    receive=np.array([local_maps[rank][int(g)] for g in provided], dtype=int),
                )
            )
    return partitions


def gather(partitions: List[Partition], values: List[np.ndarray], npoints: int) -> np.ndarray:
    """Assemble owned partition values back into a global array."""

    first = np.asarray(values[0])
    result = np.zeros((npoints,) + first.shape[1:])
    for part, local in zip(partitions, values):
        owned = part.owned
        result[part.geometry.global_index[owned]] = np.asarray(local)[owned]
    return result
