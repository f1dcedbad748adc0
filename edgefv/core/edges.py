"""Deduplicated undirected edge graph over mesh points."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..utils.errors import TopologyError
from .elements import Element

NOT_FOUND = -1


class EdgeGraph:
    """One entry per unordered point pair, stored as ``(i, j)`` with ``i < j``.

    The dual face normal of an edge points from ``nodes[e, 0]`` towards
    ``nodes[e, 1]``.
    """

    def __init__(self, npoints: int, pairs: Iterable[Tuple[int, int]] = ()) -> None:
        self.npoints = int(npoints)
        self._lookup: Dict[Tuple[int, int], int] = {}
        self._pairs: List[Tuple[int, int]] = []
        self._nodes_cache: Optional[np.ndarray] = None
        self.point_edges: List[List[int]] = [[] for _ in range(self.npoints)]
        for i, j in pairs:
            self.add(i, j)
        self.normals = np.zeros((0, 0))
        self.cg = np.zeros((0, 0))
        self.vectors = np.zeros((0, 0))

    @classmethod
    def from_elements(cls, npoints: int, elements: Sequence[Element]) -> "EdgeGraph":
        graph = cls(npoints)
        for elem in elements:
            for a, b in elem.edge_nodes():
                graph.add(a, b)
        return graph

    @staticmethod
    def key(i: int, j: int) -> Tuple[int, int]:
        return (i, j) if i < j else (j, i)

    def add(self, i: int, j: int) -> int:
        """Register the pair if new and return its edge index."""

        i, j = int(i), int(j)
        if i == j:
            raise TopologyError("Degenerate edge connects a point to itself", point=i)
        if not (0 <= i < self.npoints and 0 <= j < self.npoints):
            raise TopologyError(f"Edge ({i}, {j}) references an unknown point")
        key = self.key(i, j)
        index = self._lookup.get(key)
        if index is not None:
            return index
        index = len(self._pairs)
        self._pairs.append(key)
        self._nodes_cache = None
        self._lookup[key] = index
        self.point_edges[key[0]].append(index)
        self.point_edges[key[1]].append(index)
        return index

    def find(self, i: int, j: int) -> int:
        return self._lookup.get(self.key(int(i), int(j)), NOT_FOUND)

    def __len__(self) -> int:
        return len(self._pairs)

    @property
    def nedges(self) -> int:
        return len(self._pairs)

    @property
    def nodes(self) -> np.ndarray:
        if self._nodes_cache is None:
            if self._pairs:
                self._nodes_cache = np.asarray(self._pairs, dtype=int)
            else:
                self._nodes_cache = np.zeros((0, 2), dtype=int)
        return self._nodes_cache

    def neighbors(self, point: int) -> List[int]:
        result = []
        for eid in self.point_edges[point]:
            i, j = self._pairs[eid]
            result.append(j if i == point else i)
        return result

    def orientation(self, edge: int, point: int) -> float:
        """+1 if the edge normal points away from ``point``, -1 otherwise."""

        return 1.0 if self._pairs[edge][0] == point else -1.0

    def allocate(self, ndim: int) -> None:
        self.normals = np.zeros((self.nedges, ndim))
        self.cg = np.zeros((self.nedges, ndim))
        self.vectors = np.zeros((self.nedges, ndim))

    def set_centres(self, coords: np.ndarray) -> None:
        nodes = self.nodes
        if len(nodes) == 0:
            return
        xi = coords[nodes[:, 0]]
        xj = coords[nodes[:, 1]]
        self.cg[:] = 0.5 * (xi + xj)
        self.vectors[:] = xj - xi
