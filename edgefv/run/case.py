"""Case management: geometry, model, solver and pseudo-time loop."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from ..core.bc import bc_registry
from ..core.dual import check_closure, smooth_coordinates
from ..core.halo import HaloExchange
from ..core.mesh import Geometry
from ..core.multigrid import build_multigrid_levels, prolong, restrict
from ..core.preprocess import preprocess_geometry
from ..physics.transport import ConstantTransport
from ..physics.turbulence import make_turbulence_model
from ..solvers.integration import make_integration
from ..solvers.transport import TransportSolver
from ..utils.io import read_optional_yaml, read_restart, read_yaml_file
from ..utils.logging import IterationLogger
from .config import SolverConfig
from .time import PseudoTimeControl

log = logging.getLogger(__name__)


class Case:
    def __init__(self, root: Path, config: Dict) -> None:
        self.root = Path(root)
        self.config = config
        self.settings = SolverConfig.from_dict(config)
        self.geometry = self._build_mesh(config.get("mesh", {}))
        geo_cfg = self.settings.geometry
        preprocess_geometry(self.geometry, geo_cfg.closure_tol, geo_cfg.strict)
        if geo_cfg.smoothing_iterations > 0:
            smooth_coordinates(self.geometry, geo_cfg.smoothing_iterations, geo_cfg.smoothing_coeff)
            check_closure(self.geometry, geo_cfg.closure_tol, geo_cfg.strict)

        self.transport = ConstantTransport.from_dict(
            read_optional_yaml(self.root / "constant" / "transport.yaml")
        )
        turbulence_cfg = read_optional_yaml(self.root / "constant" / "turbulence.yaml")
        self.model_name = turbulence_cfg.get("TurbulenceModel", "SA")
        self.model = make_turbulence_model(
            self.model_name,
            transport=self.transport,
            velocity=self.settings.velocity,
            config=turbulence_cfg.get(self.model_name, {}),
        )

        mg = self.settings.multigrid
        self.levels: List[Geometry] = build_multigrid_levels(
            self.geometry, mg.levels, mg.ratio, mg.min_reduction
        )
        self.logger = IterationLogger(self.model_name)
        self.control = PseudoTimeControl.from_config(self.settings.convergence)
        self.integrator = make_integration(self.settings.time.scheme.value, self.settings.time)

        initial = None
        if self.settings.restart_file:
            initial = read_restart(
                self.root / self.settings.restart_file, self.geometry.npoints, self.model.nvar
            )
        self.solver = self.make_solver(self.geometry, initial=initial)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Case":
        case_path = Path(path)
        if case_path.name.lower() != "case.yaml":
            raise ValueError("Expected system/case.yaml")
        root = case_path.parent.parent
        config = read_yaml_file(case_path)
        return cls(root=root, config=config)

    def _build_mesh(self, mesh_cfg: Dict) -> Geometry:
        mtype = mesh_cfg.get("type", "structured").lower()
        if mtype == "structured":
            lengths = tuple(float(v) for v in mesh_cfg.get("lengths", [1.0, 1.0, 1.0]))
            return Geometry.structured(
                int(mesh_cfg.get("nx", 10)),
                int(mesh_cfg.get("ny", 10)),
                int(mesh_cfg.get("nz", 0)),
                lengths=lengths + (1.0,) * (3 - len(lengths)),
                triangles=bool(mesh_cfg.get("triangles", False)),
                patch_aliases=mesh_cfg.get("patches"),
            )
        if mtype == "arrays":
            return Geometry.from_arrays(
                np.asarray(mesh_cfg["points"], dtype=float),
                [(kind, nodes) for kind, nodes in mesh_cfg["elements"]],
                {
                    name: [(kind, nodes) for kind, nodes in belems]
                    for name, belems in (mesh_cfg.get("markers", {}) or {}).items()
                },
            )
        raise NotImplementedError(f"Unsupported mesh type '{mtype}'")

    def uniform_velocity(self, geometry: Geometry) -> np.ndarray:
        vec = np.zeros(geometry.ndim)
        given = np.asarray(self.settings.velocity, dtype=float)[: geometry.ndim]
        vec[: len(given)] = given
        return np.tile(vec, (geometry.npoints, 1))

    def build_boundary_conditions(self, geometry: Geometry):
        names = geometry.marker_names()
        missing = [name for name in names if name not in self.settings.markers]
        if missing:
            raise ValueError(f"No boundary condition configured for markers {missing}")
        bcs = []
        for name, marker_cfg in self.settings.markers.items():
            if name not in names:
                raise KeyError(f"Unknown marker '{name}' in case file")
            bcs.append(
                bc_registry.create(marker_cfg.kind.value, name, geometry, self.model, marker_cfg.options)
            )
        return bcs

    def make_solver(
        self,
        geometry: Geometry,
        initial: Optional[np.ndarray] = None,
        velocity: Optional[np.ndarray] = None,
        halo: Optional[HaloExchange] = None,
    ) -> TransportSolver:
        return TransportSolver(
            geometry,
            self.model,
            self.settings,
            self.uniform_velocity(geometry) if velocity is None else velocity,
            self.build_boundary_conditions(geometry),
            halo=halo,
            initial=initial,
        )

    def full_multigrid_start(self) -> Optional[np.ndarray]:
        """Iterate on each coarse level, coarsest first, and prolong upwards."""

        iterations = self.settings.multigrid.fmg_iterations
        if iterations <= 0 or len(self.levels) < 2:
            return None
        velocities = [self.solver.velocity]
        for fine, coarse in zip(self.levels[:-1], self.levels[1:]):
            velocities.append(restrict(fine, coarse, velocities[-1]))

        state = None
        for level in range(len(self.levels) - 1, 0, -1):
            geometry = self.levels[level]
            solver = self.make_solver(geometry, initial=state, velocity=velocities[level])
            for _ in range(iterations):
                report = self.integrator.step(solver)
            log.info("FMG level %d: residual %.3e", level, report.monitor)
            state = prolong(geometry, self.levels[level - 1], solver.values)
        self.solver.values[:] = state
        return state

    def solve(self) -> bool:
        if not self.settings.restart_file:
            self.full_multigrid_start()
        for iteration in self.control:
            report = self.integrator.step(self.solver)
            self.logger.log(iteration, report.as_dict())
            self.control.update(report.monitor)
        if not self.control.converged:
            log.warning("%s did not converge in %d iterations", self.model_name, len(self.control.history))
        return self.control.converged

    @property
    def solution(self) -> np.ndarray:
        return self.solver.values
