"""Primal element kinds and their local connectivity tables.

Node ordering follows the VTK convention. Faces are stored as closed node
loops (the loop order is what the dual builder walks around a face), edges as
local node pairs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple


class ElementKind(Enum):
    LINE = 3
    TRIANGLE = 5
    QUADRILATERAL = 9
    TETRAHEDRON = 10
    HEXAHEDRON = 12
    PRISM = 13
    PYRAMID = 14

    @classmethod
    def from_name(cls, name: str) -> "ElementKind":
        key = name.strip().upper()
        aliases = {
            "TRI": "TRIANGLE",
            "QUAD": "QUADRILATERAL",
            "TET": "TETRAHEDRON",
            "HEX": "HEXAHEDRON",
            "WEDGE": "PRISM",
        }
        key = aliases.get(key, key)
        try:
            return cls[key]
        except KeyError as exc:
            raise ValueError(f"Unknown element kind '{name}'") from exc

    @property
    def dimension(self) -> int:
        return _DIMENSION[self]

    @property
    def n_nodes(self) -> int:
        return _NODES[self]

    @property
    def faces(self) -> Tuple[Tuple[int, ...], ...]:
        return _FACES[self]

    @property
    def edges(self) -> Tuple[Tuple[int, int], ...]:
        return _EDGES[self]

    @property
    def min_face_nodes(self) -> int:
        """Smallest number of shared nodes that can make up a common face."""

        return min(len(face) for face in self.faces)


_DIMENSION: Dict[ElementKind, int] = {
    ElementKind.LINE: 1,
    ElementKind.TRIANGLE: 2,
    ElementKind.QUADRILATERAL: 2,
    ElementKind.TETRAHEDRON: 3,
    ElementKind.HEXAHEDRON: 3,
    ElementKind.PRISM: 3,
    ElementKind.PYRAMID: 3,
}

_NODES: Dict[ElementKind, int] = {
    ElementKind.LINE: 2,
    ElementKind.TRIANGLE: 3,
    ElementKind.QUADRILATERAL: 4,
    ElementKind.TETRAHEDRON: 4,
    ElementKind.HEXAHEDRON: 8,
    ElementKind.PRISM: 6,
    ElementKind.PYRAMID: 5,
}

_FACES: Dict[ElementKind, Tuple[Tuple[int, ...], ...]] = {
    ElementKind.LINE: ((0,), (1,)),
    ElementKind.TRIANGLE: ((0, 1), (1, 2), (2, 0)),
    ElementKind.QUADRILATERAL: ((0, 1), (1, 2), (2, 3), (3, 0)),
    ElementKind.TETRAHEDRON: ((0, 2, 1), (0, 1, 3), (0, 3, 2), (1, 2, 3)),
    ElementKind.HEXAHEDRON: (
        (0, 3, 2, 1),
        (4, 5, 6, 7),
        (0, 1, 5, 4),
        (1, 2, 6, 5),
        (2, 3, 7, 6),
        (3, 0, 4, 7),
    ),
    ElementKind.PRISM: (
        (0, 2, 1),
        (3, 4, 5),
        (0, 1, 4, 3),
        (1, 2, 5, 4),
        (2, 0, 3, 5),
    ),
    ElementKind.PYRAMID: (
        (0, 3, 2, 1),
        (0, 1, 4),
        (1, 2, 4),
        (2, 3, 4),
        (3, 0, 4),
    ),
}

_EDGES: Dict[ElementKind, Tuple[Tuple[int, int], ...]] = {
    ElementKind.LINE: ((0, 1),),
    ElementKind.TRIANGLE: ((0, 1), (1, 2), (2, 0)),
    ElementKind.QUADRILATERAL: ((0, 1), (1, 2), (2, 3), (3, 0)),
    ElementKind.TETRAHEDRON: ((0, 1), (1, 2), (2, 0), (0, 3), (1, 3), (2, 3)),
    ElementKind.HEXAHEDRON: (
        (0, 1), (1, 2), (2, 3), (3, 0),
        (4, 5), (5, 6), (6, 7), (7, 4),
        (0, 4), (1, 5), (2, 6), (3, 7),
    ),
    ElementKind.PRISM: (
        (0, 1), (1, 2), (2, 0),
        (3, 4), (4, 5), (5, 3),
        (0, 3), (1, 4), (2, 5),
    ),
    ElementKind.PYRAMID: (
        (0, 1), (1, 2), (2, 3), (3, 0),
        (0, 4), (1, 4), (2, 4), (3, 4),
    ),
}


@dataclass
class Element:
    """Volume element: ordered global node indices plus kind."""

    kind: ElementKind
    nodes: Tuple[int, ...]

    def __post_init__(self) -> None:
        self.nodes = tuple(int(n) for n in self.nodes)
        if len(self.nodes) != self.kind.n_nodes:
            raise ValueError(
                f"{self.kind.name} expects {self.kind.n_nodes} nodes, got {len(self.nodes)}"
            )

    def face_nodes(self, face: int) -> Tuple[int, ...]:
        return tuple(self.nodes[k] for k in self.kind.faces[face])

    def edge_nodes(self) -> List[Tuple[int, int]]:
        return [(self.nodes[a], self.nodes[b]) for a, b in self.kind.edges]


@dataclass
class BoundaryElement:
    """Lower-dimensional element lying on a marker.

    ``domain_element``/``domain_face`` are resolved by
    :func:`edgefv.core.boundary.set_bound_volume`.
    """

    kind: ElementKind
    nodes: Tuple[int, ...]
    domain_element: int = -1
    domain_face: int = -1

    def __post_init__(self) -> None:
        self.nodes = tuple(int(n) for n in self.nodes)
        if len(self.nodes) != self.kind.n_nodes:
            raise ValueError(
                f"{self.kind.name} expects {self.kind.n_nodes} nodes, got {len(self.nodes)}"
            )
