import pathlib
import sys

import numpy as np
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from edgefv.core.bc import BoundaryContext, bc_registry
from edgefv.core.linalg import BlockMatrix, LinearSolver
from edgefv.core.mesh import Geometry
from edgefv.core.preprocess import preprocess_geometry
from edgefv.numerics import EdgeData, make_numerics
from edgefv.physics.transport import ConstantTransport
from edgefv.physics.turbulence import make_turbulence_model
from edgefv.run.config import SolverConfig
from edgefv.solvers.integration import make_integration
from edgefv.solvers.transport import Phase, TransportSolver
from edgefv.utils.errors import AssemblyError, SolverDivergenceError

OPEN_CHANNEL = {"xmin": "farfield", "xmax": "outlet", "ymin": "symmetry", "ymax": "symmetry"}


def _solver(
    n=4,
    markers=None,
    numerics=None,
    time=None,
    linear=None,
    scalar=None,
    initial=None,
    velocity=(1.0, 0.0),
):
    geometry = preprocess_geometry(Geometry.structured(n, n))
    markers = markers or OPEN_CHANNEL
    config = SolverConfig.from_dict(
        {
            "markers": markers,
            "numerics": numerics or {},
            "time": time or {},
            "linearSolver": linear or {"method": "direct"},
        }
    )
    model = make_turbulence_model(
        "scalar",
        transport=ConstantTransport(),
        velocity=velocity,
        config=scalar or {"value": 1.0, "wallValue": 0.0, "diffusivity": 0.01},
    )
    bcs = [
        bc_registry.create(cfg.kind.value, name, geometry, model, cfg.options)
        for name, cfg in config.markers.items()
    ]
    flow = np.tile(np.asarray(velocity, dtype=float), (geometry.npoints, 1))
    return TransportSolver(geometry, model, config, flow, bcs, initial=initial)


def test_uniform_state_has_zero_residual():
    solver = _solver()
    report = solver.assemble()
    assert np.allclose(solver.residual, 0.0, atol=1e-12)
    assert report.monitor < 1e-12
    assert report.names == ["phi"]


def test_outlet_duplicates_interior_state():
    solver = _solver(numerics={"viscous": "none"})
    solver.preprocessing()
    solver.convective_residual()
    solver.viscous_residual()
    solver.source_residual()
    geometry = solver.geometry
    outlet = geometry.marker("xmax")
    before = solver.residual[outlet.points].copy()

    solver.boundary_residual()

    contribution = solver.residual[outlet.points] - before
    flux = np.einsum("vd,vd->v", solver.velocity[outlet.points], outlet.normals)
    assert np.allclose(contribution[:, 0], flux * solver.values[outlet.points, 0])
    # the outlet flux cancels what the interior edges left at the vertex
    assert np.allclose(solver.residual[outlet.points], 0.0, atol=1e-12)


def test_convective_jacobian_matches_residual_change():
    solver = _solver(n=3, markers={"xmin": "farfield", "xmax": "farfield", "ymin": "farfield", "ymax": "farfield"},
                     numerics={"viscous": "none"}, velocity=(1.0, 0.5))
    solver.assemble()
    before = solver.residual.copy()
    jacobian = solver.jacobian.to_dense()

    rng = np.random.default_rng(3)
    delta = rng.normal(scale=1e-2, size=solver.values.shape)
    solver.values[:] += delta
    solver.assemble()

    assert np.allclose(solver.residual - before, (jacobian @ delta.ravel()).reshape(before.shape), atol=1e-12)


def test_wall_rows_become_identity_and_are_final():
    markers = {"xmin": "farfield", "xmax": "outlet", "ymin": "wall", "ymax": "symmetry"}
    solver = _solver(markers=markers)
    assert [bc.name for bc in solver.boundaries][0] == "ymin"
    solver.assemble()

    geometry = solver.geometry
    wall = geometry.marker("ymin").points
    dense = solver.jacobian.to_dense()
    for point in wall:
        assert solver.fixed[point]
        assert solver.values[point, 0] == 0.0
        assert solver.residual[point, 0] == 0.0
        expected = np.zeros(geometry.npoints)
        expected[point] = 1.0
        assert np.array_equal(dense[point], expected)
    # the corner shared with the far-field marker keeps the wall row
    assert solver.residual[0, 0] == 0.0
    assert not solver.fixed[geometry.marker("ymax").points].any()


def test_inlet_keeps_its_flux_row():
    markers = {"xmin": {"type": "inlet", "values": [2.0]}, "xmax": "outlet", "ymin": "symmetry", "ymax": "symmetry"}
    solver = _solver(markers=markers)
    solver.assemble()

    geometry = solver.geometry
    inlet = geometry.marker("xmin").points
    middle = inlet[(geometry.coords[inlet, 1] > 0.0) & (geometry.coords[inlet, 1] < 1.0)]
    dense = solver.jacobian.to_dense()
    assert not solver.fixed.any()
    assert np.allclose(solver.values[inlet, 0], 1.0)
    for point in middle:
        assert solver.residual[point, 0] != 0.0
        assert np.count_nonzero(dense[point]) > 1


def test_phase_order_is_enforced():
    solver = _solver()
    assert solver.phase is Phase.IDLE
    with pytest.raises(RuntimeError):
        solver.convective_residual()
    solver.preprocessing()
    with pytest.raises(RuntimeError):
        solver.source_residual()
    solver.convective_residual()
    solver.viscous_residual()
    solver.source_residual()
    solver.boundary_residual()
    solver.implicit_solve()
    with pytest.raises(RuntimeError):
        solver.implicit_solve()
    solver.update()
    assert solver.phase is Phase.UPDATE
    solver.assemble()
    assert solver.phase is Phase.BOUNDARY


def test_non_finite_state_aborts_assembly():
    solver = _solver()
    solver.values[5, 0] = np.nan
    with pytest.raises(AssemblyError) as info:
        solver.assemble()
    assert info.value.edge is not None
    assert 5 in solver.geometry.edges.nodes[info.value.edge]


def test_linear_source_operator():
    source = make_numerics("linear", 2, {"production": [1.0, 0.0], "decay": 2.0})
    data = EdgeData(normal=np.zeros((3, 2)), state_i=np.ones((3, 2)), volume=np.array([1.0, 2.0, 0.5]))
    result = source.compute(data)
    assert np.allclose(result.residual[:, 0], [-1.0, -2.0, -0.5])
    assert np.allclose(result.residual[:, 1], [-2.0, -4.0, -1.0])
    assert np.allclose(result.jac_i[1], -4.0 * np.eye(2))
    with pytest.raises(ValueError):
        make_numerics("linear", 2, {"decay": [-1.0, 0.0]})


def test_source_enters_residual_with_negative_sign():
    solver = _solver(numerics={"source": "linear", "sourceCoeffs": {"production": 1.0}})
    solver.preprocessing()
    solver.convective_residual()
    solver.viscous_residual()
    solver.source_residual()
    assert np.allclose(solver.residual[:, 0], -solver.geometry.volumes, atol=1e-12)


def test_upwind_flux_and_muscl_reconstruction():
    upwind = make_numerics("upwind", 1, {"muscl": True})
    data = EdgeData(
        normal=np.array([[1.0, 0.0], [-1.0, 0.0]]),
        state_i=np.array([[1.0], [1.0]]),
        state_j=np.array([[3.0], [3.0]]),
        coord_i=np.array([[0.0, 0.0], [0.0, 0.0]]),
        coord_j=np.array([[1.0, 0.0], [1.0, 0.0]]),
        velocity_i=np.array([[2.0, 0.0], [2.0, 0.0]]),
        velocity_j=np.array([[2.0, 0.0], [2.0, 0.0]]),
        grad_i=np.array([[[2.0, 0.0]], [[2.0, 0.0]]]),
        grad_j=np.array([[[2.0, 0.0]], [[2.0, 0.0]]]),
    )
    result = upwind.compute(data)
    # face states are 2 from both sides
    assert np.allclose(result.residual[:, 0], [4.0, -4.0])
    assert np.allclose(result.jac_i[:, 0, 0], [2.0, 0.0])
    assert np.allclose(result.jac_j[:, 0, 0], [0.0, -2.0])


def _laplacian(n=5, shift=4.0):
    geometry = preprocess_geometry(Geometry.structured(n, n))
    matrix = BlockMatrix(geometry, 1)
    for i, j in geometry.edges.nodes:
        matrix.add_to_diag(i, 1.0)
        matrix.add_to_diag(j, 1.0)
        matrix.subtract_block(i, j, np.eye(1))
        matrix.subtract_block(j, i, np.eye(1))
    matrix.add_diagonal(np.full(geometry.npoints, shift))
    return geometry, matrix


@pytest.mark.parametrize("method", ["sgs", "bicgstab", "gmres", "amg"])
def test_linear_solvers_agree_with_direct(method):
    geometry, matrix = _laplacian()
    rhs = np.linspace(-1.0, 1.0, geometry.npoints)[:, None]
    reference, _ = LinearSolver("direct").solve(matrix, rhs)
    solution, stats = LinearSolver(method, tol=1e-10, max_iter=200).solve(matrix, rhs)

    assert np.allclose(solution, reference, atol=1e-6)
    assert stats["final"] <= stats["initial"]
    assert np.allclose(matrix.matvec(reference), rhs)


def test_block_matrix_rows_and_errors():
    geometry, matrix = _laplacian(n=2)
    assert matrix.block(0, 1)[0, 0] == -1.0
    assert matrix.block(1, 0)[0, 0] == -1.0
    with pytest.raises(KeyError):
        matrix.block(0, 4)
    matrix.delete_row(4)
    dense = matrix.to_dense()
    assert dense[4, 4] == 1.0
    assert np.count_nonzero(dense[4]) == 1
    assert dense[1, 4] == -1.0

    matrix.diag[2] = 0.0
    with pytest.raises(SolverDivergenceError):
        matrix.inverse_diagonal()
    with pytest.raises(NotImplementedError):
        LinearSolver("cholesky")


def test_implicit_iterations_converge_to_inflow_state():
    solver = _solver(n=5, initial=np.zeros((36, 1)), time={"scheme": "implicit", "cfl": 50.0})
    integrator = make_integration("euler_implicit", solver.config.time)
    history = [integrator.step(solver).monitor for _ in range(40)]

    assert history[-1] < 1e-6 * history[0]
    assert np.allclose(solver.values, 1.0, atol=1e-5)


def test_explicit_runge_kutta_converges():
    solver = _solver(n=4, initial=np.zeros((25, 1)), time={"scheme": "explicit", "cfl": 1.0})
    assert not solver.implicit
    integrator = make_integration("runge_kutta_explicit", solver.config.time)
    integrator.enable_profiling()
    history = [integrator.step(solver).monitor for _ in range(150)]

    assert history[-1] < 1e-3 * history[0]
    assert set(integrator.get_timings()) == {"stage_0", "stage_1", "stage_2", "stage_3"}
    assert np.all(solver.jacobian.upper == 0.0)


def test_residual_report_locates_the_maximum():
    solver = _solver()
    solver.assemble()
    solver.residual[:] = 0.0
    solver.residual[7, 0] = -3.0
    report = solver.residual_report()
    assert report.location[0] == 7
    assert report.maximum[0] == 3.0
    assert report.as_dict()["max[phi]"] == 3.0
    assert report.monitor == 3.0
    assert report.rms[0] == pytest.approx(3.0 / np.sqrt(solver.geometry.npoints))


def test_boundary_context_drives_farfield_directly():
    solver = _solver(numerics={"viscous": "none"})
    solver.preprocessing()
    farfield = next(bc for bc in solver.boundaries if bc.name == "xmin")
    ctx = BoundaryContext(
        geometry=solver.geometry,
        solution=np.zeros_like(solver.values),
        residual=np.zeros_like(solver.residual),
        jacobian=BlockMatrix(solver.geometry, 1),
        velocity=solver.velocity,
        fixed=np.zeros(solver.geometry.npoints, dtype=bool),
        convective=solver.convective,
    )
    farfield.apply(ctx)
    marker = solver.geometry.marker("xmin")
    inflow = np.einsum("vd,vd->v", solver.velocity[marker.points], marker.normals)
    assert np.all(inflow < 0.0)
    assert np.allclose(ctx.residual[marker.points, 0], inflow * 1.0)
    assert np.allclose(ctx.jacobian.diag[marker.points], 0.0)
