"""Edge-based residual and Jacobian assembly for transported scalars."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

import numpy as np

from ..core.bc import BoundaryCondition, BoundaryContext, BoundaryKind, SendReceive
from ..core.field import BlockField
from ..core.fv_ops import SlopeLimiter, compute_gradient, compute_limiter
from ..core.halo import HaloExchange
from ..core.linalg import BlockMatrix, LinearSolver
from ..core.mesh import Geometry
from ..numerics import EdgeData, NumericsResult, make_numerics
from ..run.config import TimeScheme
from ..utils.errors import AssemblyError

log = logging.getLogger(__name__)


class Phase(Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    CONVECTIVE = "convective"
    VISCOUS = "viscous"
    SOURCE = "source"
    BOUNDARY = "boundary"
    SOLVE = "solve"
    UPDATE = "update"


_NEXT = {
    Phase.IDLE: {Phase.PREPROCESSING},
    Phase.PREPROCESSING: {Phase.CONVECTIVE},
    Phase.CONVECTIVE: {Phase.VISCOUS},
    Phase.VISCOUS: {Phase.SOURCE},
    Phase.SOURCE: {Phase.BOUNDARY},
    Phase.BOUNDARY: {Phase.SOLVE, Phase.UPDATE, Phase.PREPROCESSING},
    Phase.SOLVE: {Phase.UPDATE},
    Phase.UPDATE: {Phase.PREPROCESSING},
}


@dataclass
class ResidualReport:
    names: List[str]
    rms: np.ndarray
    maximum: np.ndarray
    location: np.ndarray

    def as_dict(self) -> Dict[str, float]:
        out: Dict[str, float] = {}
        for k, name in enumerate(self.names):
            out[f"rms[{name}]"] = float(self.rms[k])
            out[f"max[{name}]"] = float(self.maximum[k])
        return out

    @property
    def monitor(self) -> float:
        """Largest absolute residual over all points and unknowns."""

        return float(self.maximum.max()) if self.maximum.size else 0.0


class TransportSolver:
    """Assembles and updates one transport equation on one geometry.

    Every outer iteration walks the phases in order: preprocessing,
    convective, viscous and source assembly, boundary conditions, then either
    an implicit solve and update or an explicit update.
    """

    def __init__(
        self,
        geometry: Geometry,
        model,
        config,
        velocity: np.ndarray,
        boundary_conditions: Iterable[BoundaryCondition] = (),
        halo: Optional[HaloExchange] = None,
        initial: Optional[np.ndarray] = None,
    ) -> None:
        self.geometry = geometry
        self.model = model
        self.config = config
        self.nvar = model.nvar
        self.halo = halo
        self.velocity = np.asarray(velocity, dtype=float)
        if self.velocity.shape != (geometry.npoints, geometry.ndim):
            raise ValueError(
                f"Velocity must have shape {(geometry.npoints, geometry.ndim)}, got {self.velocity.shape}"
            )

        numerics_cfg = config.numerics
        self.convective = make_numerics(
            numerics_cfg.convective, self.nvar, {"muscl": numerics_cfg.muscl}
        )
        self.viscous = (
            make_numerics(numerics_cfg.viscous, self.nvar) if numerics_cfg.viscous else None
        )
        self.source = make_numerics(
            numerics_cfg.source or model.default_source, self.nvar, numerics_cfg.source_config
        )

        boundaries = list(boundary_conditions)
        if (~geometry.domain).any() and not any(
            bc.kind is BoundaryKind.SEND_RECEIVE for bc in boundaries
        ):
            boundaries.append(SendReceive("send_receive", geometry, model))
        # stable sort keeps marker order within a group
        self.boundaries = sorted(boundaries, key=lambda bc: bc.kind.order)

        if initial is None:
            self.solution = BlockField.uniform("solution", geometry, model.freestream(), model.components)
        else:
            self.solution = BlockField("solution", geometry, np.array(initial, dtype=float), model.components)
        for bc in self.boundaries:
            bc.impose(self.values)
        npoints = geometry.npoints
        self.residual = np.zeros((npoints, self.nvar))
        self.jacobian = BlockMatrix(geometry, self.nvar)
        self.fixed = np.zeros(npoints, dtype=bool)
        self.gradients = np.zeros((npoints, self.nvar, geometry.ndim))
        self.limiter = np.ones((npoints, self.nvar))
        self.diffusivity = np.zeros((npoints, self.nvar))
        self.dt = np.zeros(npoints)
        self.increment = np.zeros((npoints, self.nvar))
        self.linear_stats: Dict[str, float] = {}
        lin = config.linear_solver
        self.linear_solver = LinearSolver(lin.method, lin.tol, lin.max_iter)
        self.phase = Phase.IDLE

    @property
    def values(self) -> np.ndarray:
        return self.solution.values

    def _advance(self, phase: Phase) -> None:
        if phase not in _NEXT[self.phase]:
            raise RuntimeError(f"Cannot enter {phase.name} after {self.phase.name}")
        self.phase = phase

    def _active(self) -> np.ndarray:
        return self.geometry.domain & ~self.fixed

    def _check(self, result: NumericsResult, what: str, per_edge: bool) -> None:
        parts = [result.residual.reshape(len(result.residual), -1), result.jac_i.reshape(len(result.jac_i), -1)]
        if result.jac_j is not None:
            parts.append(result.jac_j.reshape(len(result.jac_j), -1))
        finite = np.all(np.isfinite(np.hstack(parts)), axis=1)
        if finite.all():
            return
        bad = int(np.flatnonzero(~finite)[0])
        if per_edge:
            i, j = self.geometry.edges.nodes[bad]
            raise AssemblyError(
                f"{what} flux is not finite on edge {bad} ({i}, {j})", edge=bad
            )
        raise AssemblyError(f"{what} term is not finite at point {bad}", point=bad)

    def _edge_data(self, muscl: bool) -> EdgeData:
        geometry = self.geometry
        nodes = geometry.edges.nodes
        i, j = nodes[:, 0], nodes[:, 1]
        values = self.values
        return EdgeData(
            normal=geometry.edges.normals,
            state_i=values[i],
            state_j=values[j],
            coord_i=geometry.coords[i],
            coord_j=geometry.coords[j],
            velocity_i=self.velocity[i],
            velocity_j=self.velocity[j],
            grad_i=self.gradients[i],
            grad_j=self.gradients[j],
            limiter_i=self.limiter[i] if muscl else None,
            limiter_j=self.limiter[j] if muscl else None,
            diffusivity_i=self.diffusivity[i],
            diffusivity_j=self.diffusivity[j],
        )

    def _scatter(self, result: NumericsResult, sign: float) -> None:
        nodes = self.geometry.edges.nodes
        i, j = nodes[:, 0], nodes[:, 1]
        np.add.at(self.residual, i, sign * result.residual)
        np.add.at(self.residual, j, -sign * result.residual)
        if not self.implicit:
            return
        jac = self.jacobian
        np.add.at(jac.diag, i, sign * result.jac_i)
        jac.upper += sign * result.jac_j
        jac.lower -= sign * result.jac_i
        np.add.at(jac.diag, j, -sign * result.jac_j)

    @property
    def implicit(self) -> bool:
        return self.config.time.scheme is TimeScheme.EULER_IMPLICIT

    def preprocessing(self) -> None:
        """Zero the system, refresh halos, gradients, limiters and time steps."""

        self._advance(Phase.PREPROCESSING)
        self.residual[:] = 0.0
        self.jacobian.zero()
        self.fixed[:] = False
        geometry = self.geometry
        numerics_cfg = self.config.numerics
        if self.halo is not None:
            self.halo.exchange(self.values, "solution")

        self.gradients = compute_gradient(geometry, self.values, numerics_cfg.gradient)
        self.limiter = compute_limiter(
            geometry, self.values, self.gradients, numerics_cfg.limiter, numerics_cfg.venkatakrishnan_k
        )
        if self.halo is not None:
            flat = self.gradients.reshape(geometry.npoints, -1)
            self.halo.exchange(flat, "gradient")
            self.gradients = flat.reshape(self.gradients.shape)
            if numerics_cfg.limiter is not SlopeLimiter.NONE:
                self.halo.exchange(self.limiter, "limiter")

        self.diffusivity = self.model.diffusivity(self.values)
        self.compute_time_step()

    def compute_time_step(self) -> None:
        geometry = self.geometry
        volumes = geometry.volumes
        spectral = np.zeros(geometry.npoints)
        nodes = geometry.edges.nodes
        if len(nodes):
            i, j = nodes[:, 0], nodes[:, 1]
            normals = geometry.edges.normals
            u_face = 0.5 * (self.velocity[i] + self.velocity[j])
            conv = np.abs(np.einsum("ed,ed->e", u_face, normals))
            area2 = np.einsum("ed,ed->e", normals, normals)
            nu = np.max(0.5 * (self.diffusivity[i] + self.diffusivity[j]), axis=1)
            np.add.at(spectral, i, conv + nu * area2 / volumes[i])
            np.add.at(spectral, j, conv + nu * area2 / volumes[j])
        for marker in geometry.markers:
            if marker.nvertex == 0:
                continue
            points = marker.points
            flux = np.abs(np.einsum("vd,vd->v", self.velocity[points], marker.normals))
            np.add.at(spectral, points, flux)
        self.dt = self.config.time.cfl * volumes / np.maximum(spectral, 1e-300)

    def convective_residual(self) -> None:
        self._advance(Phase.CONVECTIVE)
        if self.geometry.nedges == 0:
            return
        result = self.convective.compute(self._edge_data(self.config.numerics.muscl))
        self._check(result, "Convective", per_edge=True)
        self._scatter(result, 1.0)

    def viscous_residual(self) -> None:
        self._advance(Phase.VISCOUS)
        if self.viscous is None or self.geometry.nedges == 0:
            return
        result = self.viscous.compute(self._edge_data(False))
        self._check(result, "Viscous", per_edge=True)
        self._scatter(result, -1.0)

    def source_residual(self) -> None:
        self._advance(Phase.SOURCE)
        geometry = self.geometry
        data = EdgeData(
            normal=np.zeros((geometry.npoints, geometry.ndim)),
            state_i=self.values,
            coord_i=geometry.coords,
            velocity_i=self.velocity,
            grad_i=self.gradients,
            diffusivity_i=self.diffusivity,
            volume=geometry.volumes,
        )
        result = self.source.compute(data)
        self._check(result, "Source", per_edge=False)
        self.residual -= result.residual
        if self.implicit:
            self.jacobian.diag -= result.jac_i

    def boundary_residual(self) -> None:
        self._advance(Phase.BOUNDARY)
        ctx = BoundaryContext(
            geometry=self.geometry,
            solution=self.values,
            residual=self.residual,
            jacobian=self.jacobian,
            velocity=self.velocity,
            fixed=self.fixed,
            convective=self.convective,
        )
        for bc in self.boundaries:
            bc.apply(ctx)

    def assemble(self) -> ResidualReport:
        self.preprocessing()
        self.convective_residual()
        self.viscous_residual()
        self.source_residual()
        self.boundary_residual()
        return self.residual_report()

    def implicit_solve(self) -> np.ndarray:
        """Solve ``(V/dt + J) dx = -R`` for the solution increment."""

        self._advance(Phase.SOLVE)
        active = self._active()
        shift = np.where(active, self.geometry.volumes / self.dt, 0.0)
        self.jacobian.add_diagonal(shift)
        self.increment, self.linear_stats = self.linear_solver.solve(self.jacobian, -self.residual)
        self.increment[~active] = 0.0
        return self.increment

    def update(self) -> None:
        self._advance(Phase.UPDATE)
        self.values[:] += self.increment

    def explicit_update(self, alpha: float, initial: np.ndarray) -> None:
        self._advance(Phase.UPDATE)
        active = self._active()
        step = (alpha * self.dt / self.geometry.volumes)[:, None] * self.residual
        self.values[active] = initial[active] - step[active]

    def residual_report(self) -> ResidualReport:
        owned = np.flatnonzero(self.geometry.domain)
        residual = self.residual[owned]
        if residual.size == 0:
            zeros = np.zeros(self.nvar)
            return ResidualReport(list(self.model.components), zeros, zeros, np.zeros(self.nvar, dtype=int))
        rms = np.sqrt(np.mean(residual**2, axis=0))
        magnitude = np.abs(residual)
        arg = np.argmax(magnitude, axis=0)
        location = self.geometry.global_index[owned[arg]]
        return ResidualReport(
            list(self.model.components),
            rms,
            magnitude[arg, np.arange(self.nvar)],
            location,
        )
