"""Unstructured geometry container and structured mesh readers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

import numpy as np

from .edges import EdgeGraph
from .elements import BoundaryElement, Element, ElementKind


class GeometryKind(Enum):
    PHYSICAL = "physical"
    MULTIGRID = "multigrid"
    DOMAIN = "domain"


@dataclass
class Vertex:
    """One boundary point bound to one marker."""

    point: int
    marker: int
    normal: np.ndarray

    @property
    def area(self) -> float:
        return float(np.linalg.norm(self.normal))


@dataclass
class Marker:
    """Named boundary patch.

    Vertex data is stored column-wise: ``points[v]`` is the point of vertex
    ``v`` and ``normals[v]`` its outward dual-face normal for this marker only.
    """

    name: str
    elements: List[BoundaryElement] = field(default_factory=list)
    points: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    normals: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    vertex_of: Dict[int, int] = field(default_factory=dict)

    @property
    def nvertex(self) -> int:
        return int(len(self.points))

    def set_points(self, points: Sequence[int], ndim: int) -> None:
        self.points = np.asarray(points, dtype=int)
        self.normals = np.zeros((len(self.points), ndim))
        self.vertex_of = {int(p): v for v, p in enumerate(self.points)}

    def vertices(self, marker_index: int) -> Iterator[Vertex]:
        for v, point in enumerate(self.points):
            yield Vertex(int(point), marker_index, self.normals[v])


class Geometry:
    """Arena storage for points, primal elements, edges and boundary markers.

    Relationships are plain integer indices. Which parts are populated depends
    on ``kind``: multigrid and partition-local geometries carry no primal
    elements and are built straight from a finer or global geometry.
    """

    def __init__(
        self,
        coords: np.ndarray,
        elements: Iterable[Element] = (),
        markers: Iterable[Marker] = (),
        kind: GeometryKind = GeometryKind.PHYSICAL,
        domain: Optional[np.ndarray] = None,
    ) -> None:
        coords = np.asarray(coords, dtype=float)
        if coords.ndim != 2 or coords.shape[1] not in (2, 3):
            raise ValueError(f"Coordinates must have shape (n, 2) or (n, 3), got {coords.shape}")
        self.kind = kind
        self.coords = coords
        self.ndim = int(coords.shape[1])
        self.elements: List[Element] = list(elements)
        self.markers: List[Marker] = list(markers)
        self.volumes = np.zeros(self.npoints)
        self.domain = (
            np.ones(self.npoints, dtype=bool) if domain is None else np.asarray(domain, dtype=bool)
        )
        self.global_index = np.arange(self.npoints)
        self.esup: List[List[int]] = []
        self.psup: List[List[int]] = []
        self.esue: List[List[int]] = []
        self.edges = EdgeGraph(self.npoints)
        self.point_markers: List[Set[int]] = [set() for _ in range(self.npoints)]
        self.parent = np.full(self.npoints, -1, dtype=int)
        self.children: List[List[int]] = []
        for elem in self.elements:
            if elem.kind.dimension != self.ndim:
                raise ValueError(
                    f"{elem.kind.name} elements do not belong in a {self.ndim}-D mesh"
                )

    @property
    def npoints(self) -> int:
        return int(self.coords.shape[0])

    @property
    def n_point_domain(self) -> int:
        return int(self.domain.sum())

    @property
    def nelements(self) -> int:
        return len(self.elements)

    @property
    def nedges(self) -> int:
        return self.edges.nedges

    @property
    def nmarkers(self) -> int:
        return len(self.markers)

    def marker_index(self, name: str) -> int:
        for idx, marker in enumerate(self.markers):
            if marker.name == name:
                return idx
        raise KeyError(f"Unknown marker '{name}'")

    def marker(self, name: str) -> Marker:
        return self.markers[self.marker_index(name)]

    def marker_names(self) -> List[str]:
        return [marker.name for marker in self.markers]

    def neighbors(self, point: int) -> List[int]:
        return self.edges.neighbors(point)

    def boundary_mask(self) -> np.ndarray:
        return np.array([bool(m) for m in self.point_markers], dtype=bool)

    def total_volume(self) -> float:
        return float(self.volumes.sum())

    @classmethod
    def from_arrays(
        cls,
        coords: np.ndarray,
        elements: Iterable[Tuple[str | ElementKind, Sequence[int]]],
        markers: Optional[Dict[str, Iterable[Tuple[str | ElementKind, Sequence[int]]]]] = None,
    ) -> "Geometry":
        """Build a physical geometry from already-parsed mesh arrays."""

        def _kind(value):
            return value if isinstance(value, ElementKind) else ElementKind.from_name(value)

        elems = [Element(_kind(kind), tuple(nodes)) for kind, nodes in elements]
        marker_list = []
        for name, belems in (markers or {}).items():
            marker_list.append(
                Marker(name, [BoundaryElement(_kind(kind), tuple(nodes)) for kind, nodes in belems])
            )
        return cls(coords, elems, marker_list)

    @classmethod
    def structured(
        cls,
        nx: int,
        ny: int,
        nz: int = 0,
        lengths: Sequence[float] = (1.0, 1.0, 1.0),
        triangles: bool = False,
        patch_aliases: Optional[Dict[str, str]] = None,
    ) -> "Geometry":
        """Rectangle (``nz == 0``) or box meshed with quads/triangles or hexahedra."""

        if nx <= 0 or ny <= 0 or nz < 0:
            raise ValueError("Structured mesh requires nx, ny > 0 and nz >= 0")
        if nz == 0:
            geometry = cls._rectangle(nx, ny, tuple(lengths[:2]), triangles)
        else:
            if triangles:
                raise ValueError("Triangulated structured meshes are 2-D only")
            geometry = cls._box(nx, ny, nz, tuple(lengths[:3]))

        if patch_aliases:
            names = geometry.marker_names()
            for base_name, alias in patch_aliases.items():
                if base_name not in names:
                    raise KeyError(f"Unknown base patch '{base_name}'")
                geometry.marker(base_name).name = alias
        return geometry

    @classmethod
    def _rectangle(cls, nx: int, ny: int, lengths: Tuple[float, ...], triangles: bool) -> "Geometry":
        lx, ly = lengths
        xs = np.linspace(0.0, lx, nx + 1)
        ys = np.linspace(0.0, ly, ny + 1)
        coords = np.array([[x, y] for y in ys for x in xs])

        def pid(i: int, j: int) -> int:
            return j * (nx + 1) + i

        elements: List[Element] = []
        for j in range(ny):
            for i in range(nx):
                p00, p10, p11, p01 = pid(i, j), pid(i + 1, j), pid(i + 1, j + 1), pid(i, j + 1)
                if triangles:
                    elements.append(Element(ElementKind.TRIANGLE, (p00, p10, p11)))
                    elements.append(Element(ElementKind.TRIANGLE, (p00, p11, p01)))
                else:
                    elements.append(Element(ElementKind.QUADRILATERAL, (p00, p10, p11, p01)))

        line = ElementKind.LINE
        markers = [
            Marker("xmin", [BoundaryElement(line, (pid(0, j + 1), pid(0, j))) for j in range(ny)]),
            Marker("xmax", [BoundaryElement(line, (pid(nx, j), pid(nx, j + 1))) for j in range(ny)]),
            Marker("ymin", [BoundaryElement(line, (pid(i, 0), pid(i + 1, 0))) for i in range(nx)]),
            Marker("ymax", [BoundaryElement(line, (pid(i + 1, ny), pid(i, ny))) for i in range(nx)]),
        ]
        return cls(coords, elements, markers)

    @classmethod
    def _box(cls, nx: int, ny: int, nz: int, lengths: Tuple[float, ...]) -> "Geometry":
        lx, ly, lz = lengths
        xs = np.linspace(0.0, lx, nx + 1)
        ys = np.linspace(0.0, ly, ny + 1)
        zs = np.linspace(0.0, lz, nz + 1)
        coords = np.array([[x, y, z] for z in zs for y in ys for x in xs])

        def pid(i: int, j: int, k: int) -> int:
            return (k * (ny + 1) + j) * (nx + 1) + i

        elements: List[Element] = []
        for k in range(nz):
            for j in range(ny):
                for i in range(nx):
                    nodes = (
                        pid(i, j, k), pid(i + 1, j, k), pid(i + 1, j + 1, k), pid(i, j + 1, k),
                        pid(i, j, k + 1), pid(i + 1, j, k + 1), pid(i + 1, j + 1, k + 1), pid(i, j + 1, k + 1),
                    )
                    elements.append(Element(ElementKind.HEXAHEDRON, nodes))

        quad = ElementKind.QUADRILATERAL
        markers = [
            Marker("xmin", [
                BoundaryElement(quad, (pid(0, j, k), pid(0, j, k + 1), pid(0, j + 1, k + 1), pid(0, j + 1, k)))
                for k in range(nz) for j in range(ny)
            ]),
            Marker("xmax", [
                BoundaryElement(quad, (pid(nx, j, k), pid(nx, j + 1, k), pid(nx, j + 1, k + 1), pid(nx, j, k + 1)))
                for k in range(nz) for j in range(ny)
            ]),
            Marker("ymin", [
                BoundaryElement(quad, (pid(i, 0, k), pid(i + 1, 0, k), pid(i + 1, 0, k + 1), pid(i, 0, k + 1)))
                for k in range(nz) for i in range(nx)
            ]),
            Marker("ymax", [
                BoundaryElement(quad, (pid(i, ny, k), pid(i, ny, k + 1), pid(i + 1, ny, k + 1), pid(i + 1, ny, k)))
                for k in range(nz) for i in range(nx)
            ]),
            Marker("zmin", [
                BoundaryElement(quad, (pid(i, j, 0), pid(i, j + 1, 0), pid(i + 1, j + 1, 0), pid(i + 1, j, 0)))
                for j in range(ny) for i in range(nx)
            ]),
            Marker("zmax", [
                BoundaryElement(quad, (pid(i, j, nz), pid(i + 1, j, nz), pid(i + 1, j + 1, nz), pid(i, j + 1, nz)))
                for j in range(ny) for i in range(nx)
            ]),
        ]
        return cls(coords, elements, markers)
