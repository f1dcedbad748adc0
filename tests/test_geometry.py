import logging
import pathlib
import sys

import numpy as np
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from edgefv.core.adjacency import find_face, set_esue
from edgefv.core.dual import check_closure, closure_defect, quality_statistics, smooth_coordinates
from edgefv.core.edges import NOT_FOUND, EdgeGraph
from edgefv.core.elements import ElementKind
from edgefv.core.mesh import Geometry
from edgefv.core.preprocess import preprocess_geometry
from edgefv.utils.errors import GeometryConsistencyError, TopologyError


def _unit_cube() -> Geometry:
    return preprocess_geometry(Geometry.structured(1, 1, 1))


def test_unit_cube_edges_volumes_and_boundary_normals():
    geometry = _unit_cube()

    assert geometry.npoints == 8
    assert geometry.nedges == 12
    assert np.allclose(geometry.volumes, 1.0 / 8.0)
    assert np.allclose(np.linalg.norm(geometry.edges.normals, axis=1), 0.25)

    centre = np.full(3, 0.5)
    for marker in geometry.markers:
        assert marker.nvertex == 4
        assert np.allclose(np.linalg.norm(marker.normals, axis=1), 0.25)
        outward = geometry.coords[marker.points] - centre
        assert np.all(np.einsum("vd,vd->v", marker.normals, outward) > 0.0)
    assert np.allclose(geometry.marker("xmin").normals, [-0.25, 0.0, 0.0])
    assert np.allclose(geometry.marker("zmax").normals, [0.0, 0.0, 0.25])
    assert check_closure(geometry) < 1e-12


def test_edge_normals_point_from_first_to_second_node():
    geometry = _unit_cube()
    nodes = geometry.edges.nodes
    direction = geometry.coords[nodes[:, 1]] - geometry.coords[nodes[:, 0]]
    assert np.all(np.einsum("ed,ed->e", geometry.edges.normals, direction) > 0.0)
    assert np.allclose(geometry.edges.vectors, direction)
    assert np.allclose(geometry.edges.cg, 0.5 * (geometry.coords[nodes[:, 0]] + geometry.coords[nodes[:, 1]]))


def test_find_edge_is_symmetric_and_unique():
    geometry = _unit_cube()
    edges = geometry.edges
    for index, (i, j) in enumerate(edges.nodes):
        assert i < j
        assert edges.find(i, j) == index
        assert edges.find(j, i) == index
    # body and face diagonals are not edges
    assert edges.find(0, 7) == NOT_FOUND
    assert edges.find(0, 5) == NOT_FOUND
    assert len(set(map(tuple, edges.nodes))) == edges.nedges


def test_edge_graph_add_is_idempotent_and_rejects_self_loops():
    graph = EdgeGraph(4)
    first = graph.add(2, 1)
    assert graph.add(1, 2) == first
    assert graph.nedges == 1
    assert graph.neighbors(1) == [2]
    assert graph.orientation(first, 1) == 1.0
    assert graph.orientation(first, 2) == -1.0
    with pytest.raises(TopologyError):
        graph.add(3, 3)
    with pytest.raises(TopologyError):
        graph.add(0, 9)


def test_quad_edge_normals_on_uniform_grid():
    geometry = preprocess_geometry(Geometry.structured(2, 2))
    # points are numbered row by row, three per row
    interior = geometry.edges.find(1, 4)
    boundary = geometry.edges.find(0, 1)
    assert np.allclose(geometry.edges.normals[interior], [0.0, 0.5])
    assert np.allclose(geometry.edges.normals[boundary], [0.25, 0.0])
    assert np.isclose(geometry.volumes[4], 0.25)
    assert np.isclose(geometry.volumes[0], 0.0625)


@pytest.mark.parametrize("triangles", [False, True])
def test_two_dimensional_closure_and_total_area(triangles):
    geometry = preprocess_geometry(Geometry.structured(5, 3, lengths=(2.0, 1.0), triangles=triangles))
    assert np.isclose(geometry.total_volume(), 2.0)
    assert check_closure(geometry) < 1e-12
    assert np.all(geometry.volumes > 0.0)


def test_hex_box_closure_and_volume():
    geometry = preprocess_geometry(Geometry.structured(3, 2, 2, lengths=(3.0, 1.0, 0.5)))
    assert np.isclose(geometry.total_volume(), 1.5)
    assert closure_defect(geometry).max() < 1e-12


def test_mixed_hexahedron_pyramid_tetrahedron_close():
    coords = np.array(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [1.0, 1.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0],
            [1.0, 0.0, 1.0],
            [1.0, 1.0, 1.0],
            [0.0, 1.0, 1.0],
            [0.5, 0.5, 1.5],
            [0.5, -0.5, 1.2],
        ]
    )
    elements = [
        ("hex", [0, 1, 2, 3, 4, 5, 6, 7]),
        ("pyramid", [4, 5, 6, 7, 8]),
        ("tet", [4, 5, 8, 9]),
    ]
    markers = {
        "walls": [
            ("quad", [0, 3, 2, 1]),
            ("quad", [0, 1, 5, 4]),
            ("quad", [1, 2, 6, 5]),
            ("quad", [2, 3, 7, 6]),
            ("quad", [3, 0, 4, 7]),
        ],
        "cap": [
            ("tri", [5, 6, 8]),
            ("tri", [6, 7, 8]),
            ("tri", [7, 4, 8]),
            ("tri", [4, 5, 9]),
            ("tri", [4, 9, 8]),
            ("tri", [5, 8, 9]),
        ],
    }
    geometry = preprocess_geometry(Geometry.from_arrays(coords, elements, markers))

    assert geometry.esue[0][1] == 1
    assert geometry.esue[1][0] == 0
    assert geometry.esue[1][1] == 2
    assert np.isclose(geometry.total_volume(), 1.0 + 1.0 / 6.0 + 0.35 / 6.0)
    assert check_closure(geometry) < 1e-12


def test_preprocessing_is_deterministic():
    first = preprocess_geometry(Geometry.structured(4, 3, triangles=True))
    second = preprocess_geometry(Geometry.structured(4, 3, triangles=True))
    assert first.nedges == second.nedges
    assert np.array_equal(first.edges.nodes, second.edges.nodes)
    assert np.array_equal(first.volumes, second.volumes)
    assert np.array_equal(first.edges.normals, second.edges.normals)
    for a, b in zip(first.markers, second.markers):
        assert np.array_equal(a.points, b.points)
        assert np.array_equal(a.normals, b.normals)


def test_closure_violation_warns_or_raises(caplog):
    geometry = preprocess_geometry(Geometry.structured(3, 3))
    geometry.edges.normals[0] *= 2.0

    with caplog.at_level(logging.WARNING, logger="edgefv.core.dual"):
        defect = check_closure(geometry, tolerance=1e-6)
    assert defect > 1e-6
    assert "closure violated" in caplog.text

    with pytest.raises(GeometryConsistencyError) as info:
        check_closure(geometry, tolerance=1e-6, strict=True)
    assert info.value.point in geometry.edges.nodes[0]
    assert info.value.defect == pytest.approx(defect)


def test_smoothing_keeps_boundary_and_closure():
    geometry = Geometry.structured(4, 4)
    centre = 2 * 5 + 2
    geometry.coords[centre] += [0.06, -0.04]
    preprocess_geometry(geometry)
    boundary = geometry.boundary_mask()
    before = geometry.coords.copy()

    smooth_coordinates(geometry, n_smooth=10, coeff=0.5)

    assert np.array_equal(geometry.coords[boundary], before[boundary])
    assert np.linalg.norm(geometry.coords[centre] - [0.5, 0.5]) < np.linalg.norm(before[centre] - [0.5, 0.5])
    assert np.isclose(geometry.total_volume(), 1.0)
    assert check_closure(geometry) < 1e-12


def test_quality_statistics_summary():
    geometry = preprocess_geometry(Geometry.structured(4, 4))
    stats = quality_statistics(geometry)
    assert stats["npoints"] == 25
    assert stats["nedges"] == 40
    assert stats["volume_total"] == pytest.approx(1.0)
    assert stats["volume_min"] == pytest.approx(1.0 / 64.0)
    assert stats["volume_max"] == pytest.approx(1.0 / 16.0)
    assert stats["edges_per_point_min"] == 2
    assert stats["edges_per_point_max"] == 4
    assert stats["closure_max"] < 1e-12


def test_corner_points_carry_one_vertex_per_marker():
    geometry = preprocess_geometry(Geometry.structured(3, 3))
    xmin, ymin = geometry.marker_index("xmin"), geometry.marker_index("ymin")

    assert geometry.point_markers[0] == {xmin, ymin}
    assert geometry.point_markers[5] == set()
    assert all(marker.nvertex == 4 for marker in geometry.markers)

    h = 1.0 / 3.0
    left = geometry.marker("xmin")
    bottom = geometry.marker("ymin")
    assert np.allclose(left.normals[left.vertex_of[0]], [-0.5 * h, 0.0])
    assert np.allclose(bottom.normals[bottom.vertex_of[0]], [0.0, -0.5 * h])
    assert np.allclose(left.normals[left.vertex_of[4]], [-h, 0.0])

    vertices = list(bottom.vertices(ymin))
    assert [v.point for v in vertices] == [0, 1, 2, 3]
    assert vertices[1].area == pytest.approx(h)


def test_boundary_elements_resolve_their_owner():
    geometry = preprocess_geometry(Geometry.structured(2, 1, 1))
    for marker in geometry.markers:
        for belem in marker.elements:
            owner = geometry.elements[belem.domain_element]
            assert set(owner.face_nodes(belem.domain_face)) == set(belem.nodes)


def test_find_face_between_hexahedra():
    geometry = preprocess_geometry(Geometry.structured(2, 2, 1))
    first, second, diagonal = geometry.elements[0], geometry.elements[1], geometry.elements[3]

    assert find_face(first, second) == (3, 5)
    assert geometry.esue[0][3] == 1
    assert geometry.esue[1][5] == 0
    # elements 0 and 3 only share an edge
    assert find_face(first, diagonal) is None
    assert sum(1 for n in geometry.esue[0] if n >= 0) == 2


def test_face_shared_by_three_elements_is_rejected():
    coords = np.array([[0.0, 0.0], [1.0, 0.0], [0.5, 1.0], [0.5, -1.0], [0.5, 2.0]])
    geometry = Geometry.from_arrays(
        coords,
        [("triangle", [0, 1, 2]), ("triangle", [1, 0, 3]), ("triangle", [0, 1, 4])],
    )
    with pytest.raises(TopologyError):
        set_esue(geometry)


def test_boundary_element_without_face_partner():
    coords = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    geometry = Geometry.from_arrays(coords, [("quad", [0, 1, 2, 3])], {"cut": [("line", [0, 2])]})
    with pytest.raises(TopologyError) as info:
        preprocess_geometry(geometry)
    assert info.value.element == 0


def test_boundary_element_on_interior_face():
    geometry = Geometry.structured(2, 1)
    geometry.markers[0].elements[0].nodes = (1, 4)
    with pytest.raises(TopologyError, match="interior face"):
        preprocess_geometry(geometry)


def test_element_kinds_and_dimension_checks():
    assert ElementKind.from_name("hex") is ElementKind.HEXAHEDRON
    assert ElementKind.from_name("Wedge") is ElementKind.PRISM
    assert ElementKind.HEXAHEDRON.value == 12
    assert len(ElementKind.PRISM.edges) == 9
    assert ElementKind.PYRAMID.min_face_nodes == 3
    with pytest.raises(ValueError):
        ElementKind.from_name("polygon")
    with pytest.raises(ValueError):
        Geometry.from_arrays(np.zeros((3, 3)), [("triangle", [0, 1, 2])])


def test_structured_patch_aliases():
    geometry = Geometry.structured(2, 2, patch_aliases={"xmin": "inlet", "xmax": "outlet"})
    assert geometry.marker_names() == ["inlet", "outlet", "ymin", "ymax"]
    with pytest.raises(KeyError):
        Geometry.structured(2, 2, patch_aliases={"zmin": "floor"})
