import pathlib
import sys

import numpy as np
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from edgefv.core.dual import check_closure
from edgefv.core.mesh import Geometry, GeometryKind
from edgefv.core.multigrid import (
    agglomerate,
    agglomeration_order,
    build_multigrid_levels,
    default_ratio,
    prolong,
    restrict,
    set_bound_agglomeration,
)
from edgefv.core.preprocess import preprocess_geometry


def _square(n: int) -> Geometry:
    return preprocess_geometry(Geometry.structured(n, n))


@pytest.mark.parametrize("n", [8, 16])
def test_square_agglomerates_close_to_target_ratio(n):
    fine = _square(n)
    coarse = agglomerate(fine, ratio=4)

    assert coarse.kind is GeometryKind.MULTIGRID
    assert n * n / 4 <= coarse.npoints <= 1.25 * (n + 1) ** 2 / 4
    sizes = [len(group) for group in coarse.children]
    assert min(sizes) >= 2
    assert sum(1 for size in sizes if size == 4) >= n * n / 8


def test_isolated_points_join_a_neighbouring_volume():
    fine = _square(8)
    coarse = agglomerate(fine, ratio=4)

    # (1, 3) is boxed in by full volumes after the first pass
    point = 3 * 9 + 1
    group = coarse.children[fine.parent[point]]
    assert len(group) == 5
    assert group[-1] == point
    assert any(p in fine.neighbors(point) for p in group[:-1])


def test_agglomeration_is_a_partition():
    fine = _square(6)
    coarse = agglomerate(fine)

    members = sorted(p for group in coarse.children for p in group)
    assert members == list(range(fine.npoints))
    assert np.all(fine.parent >= 0)
    for c, group in enumerate(coarse.children):
        assert np.all(fine.parent[group] == c)


def test_no_coarse_volume_spans_disjoint_markers():
    fine = _square(8)
    coarse = agglomerate(fine, ratio=4)
    xmin, xmax = fine.marker_index("xmin"), fine.marker_index("xmax")
    ymin, ymax = fine.marker_index("ymin"), fine.marker_index("ymax")

    for group in coarse.children:
        sets = [fine.point_markers[p] for p in group]
        labels = set().union(*sets)
        assert not {xmin, xmax} <= labels
        assert not {ymin, ymax} <= labels
        for a in sets:
            for b in sets:
                if a and b:
                    assert a & b


def test_coarse_points_carry_their_seed_markers():
    hierarchy = build_multigrid_levels(_square(16), levels=3)
    assert len(hierarchy) >= 3

    for fine, coarse in zip(hierarchy[:-1], hierarchy[1:]):
        for c, group in enumerate(coarse.children):
            seed_markers = fine.point_markers[group[0]]
            assert coarse.point_markers[c] == seed_markers
            assert set().union(*(fine.point_markers[p] for p in group)) == seed_markers

    fine, coarse = hierarchy[:2]
    mixed = [
        group
        for group in coarse.children
        if fine.point_markers[group[0]] and not all(fine.point_markers[p] for p in group)
    ]
    assert mixed
    # every fine boundary point is still reached through its coarse marker
    for fine_marker, coarse_marker in zip(fine.markers, coarse.markers):
        assert set(fine.parent[fine_marker.points]) == set(coarse_marker.points)


def test_corner_seeds_come_first():
    fine = _square(4)
    order = agglomeration_order(fine)
    corners = {0, 4, 20, 24}
    assert set(order[:4]) == corners
    assert order[:4] == sorted(order[:4])
    assert all(fine.point_markers[p] for p in order[:16])
    assert not any(fine.point_markers[p] for p in order[16:])


def test_boundary_compatibility_rule():
    fine = _square(4)
    xmin, ymin = fine.marker_index("xmin"), fine.marker_index("ymin")
    corner = fine.point_markers[0]
    assert corner == {xmin, ymin}
    # point 5 is on xmin only, point 6 is interior
    assert set_bound_agglomeration(fine, 5, corner)
    assert set_bound_agglomeration(fine, 6, corner)
    assert not set_bound_agglomeration(fine, 0, fine.point_markers[5])
    assert set_bound_agglomeration(fine, 6, set())
    assert not set_bound_agglomeration(fine, 5, set())


def test_coarse_volumes_are_conserved_and_closed():
    fine = _square(8)
    coarse = agglomerate(fine, ratio=4)

    assert coarse.total_volume() == pytest.approx(fine.total_volume(), rel=1e-14)
    for c, group in enumerate(coarse.children):
        assert coarse.volumes[c] == pytest.approx(fine.volumes[group].sum())
    assert check_closure(coarse) < 1e-12


def test_coarse_markers_sum_fine_normals():
    fine = _square(6)
    coarse = agglomerate(fine)
    for fine_marker, coarse_marker in zip(fine.markers, coarse.markers):
        assert coarse_marker.name == fine_marker.name
        assert np.allclose(coarse_marker.normals.sum(axis=0), fine_marker.normals.sum(axis=0))
        assert set(coarse_marker.points) == set(fine.parent[fine_marker.points])


def test_hexahedral_box_agglomeration():
    fine = preprocess_geometry(Geometry.structured(2, 2, 2))
    coarse = agglomerate(fine)

    assert default_ratio(3) == 8
    assert coarse.npoints < fine.npoints
    assert sorted(p for group in coarse.children for p in group) == list(range(27))
    assert coarse.total_volume() == pytest.approx(1.0)
    assert check_closure(coarse) < 1e-12


def test_levels_stop_when_coarsening_stalls():
    geometry = _square(8)
    hierarchy = build_multigrid_levels(geometry, levels=3)
    assert hierarchy[0] is geometry
    assert len(hierarchy) >= 2
    for fine, coarse in zip(hierarchy[:-1], hierarchy[1:]):
        assert fine.npoints / coarse.npoints >= 1.5
        assert coarse.total_volume() == pytest.approx(geometry.total_volume())

    single = _square(4)
    assert build_multigrid_levels(single, levels=2, min_reduction=100.0) == [single]
    assert np.all(single.parent == -1)


def test_restrict_and_prolong():
    fine = _square(6)
    coarse = agglomerate(fine)

    x = fine.coords[:, 0]
    assert np.allclose(restrict(fine, coarse, x), coarse.coords[:, 0])

    state = np.column_stack([np.full(fine.npoints, 2.0), fine.coords[:, 1]])
    restricted = restrict(fine, coarse, state)
    assert restricted.shape == (coarse.npoints, 2)
    assert np.allclose(restricted[:, 0], 2.0)
    assert np.allclose((restricted[:, 1] * coarse.volumes).sum(), (state[:, 1] * fine.volumes).sum())

    injected = prolong(coarse, fine, restricted)
    assert injected.shape == state.shape
    for c, group in enumerate(coarse.children):
        assert np.allclose(injected[group], restricted[c])
