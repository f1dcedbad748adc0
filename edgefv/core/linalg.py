"""Sparse block system on the edge graph and the pluggable linear solver."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import numpy as np
import pyamg
from scipy import sparse
from scipy.sparse import linalg as spla

from ..utils.errors import SolverDivergenceError
from .edges import NOT_FOUND
from .mesh import Geometry

log = logging.getLogger(__name__)


class BlockMatrix:
    """Block-sparse Jacobian with the sparsity of the edge graph.

    Diagonal blocks are stored per point. For edge ``e = (i, j)`` with
    ``i < j``, ``upper[e]`` is block ``(i, j)`` and ``lower[e]`` block ``(j, i)``.
    """

    def __init__(self, geometry: Geometry, nvar: int) -> None:
        self.geometry = geometry
        self.nvar = int(nvar)
        self.npoints = geometry.npoints
        self.nodes = geometry.edges.nodes
        self.diag = np.zeros((self.npoints, nvar, nvar))
        self.upper = np.zeros((len(self.nodes), nvar, nvar))
        self.lower = np.zeros((len(self.nodes), nvar, nvar))

    def zero(self) -> None:
        self.diag[:] = 0.0
        self.upper[:] = 0.0
        self.lower[:] = 0.0

    def _locate(self, row: int, col: int) -> Tuple[np.ndarray, int]:
        edge = self.geometry.edges.find(row, col)
        if edge == NOT_FOUND:
            raise KeyError(f"Block ({row}, {col}) is outside the sparsity pattern")
        if self.nodes[edge, 0] == row:
            return self.upper, edge
        return self.lower, edge

    def add_block(self, row: int, col: int, block: np.ndarray) -> None:
        if row == col:
            self.diag[row] += block
            return
        store, edge = self._locate(row, col)
        store[edge] += block

    def subtract_block(self, row: int, col: int, block: np.ndarray) -> None:
        self.add_block(row, col, -np.asarray(block))

    def block(self, row: int, col: int) -> np.ndarray:
        if row == col:
            return self.diag[row]
        store, edge = self._locate(row, col)
        return store[edge]

    def add_to_diag(self, point: int, value: float) -> None:
        self.diag[point] += value * np.eye(self.nvar)

    def add_diagonal(self, values: np.ndarray) -> None:
        """Add ``values[p] * I`` to every diagonal block."""

        self.diag += np.asarray(values, dtype=float)[:, None, None] * np.eye(self.nvar)

    def delete_row(self, point: int) -> None:
        """Turn row ``point`` into the identity."""

        for edge in self.geometry.edges.point_edges[point]:
            if self.nodes[edge, 0] == point:
                self.upper[edge] = 0.0
            else:
                self.lower[edge] = 0.0
        self.diag[point] = np.eye(self.nvar)

    def matvec(self, vector: np.ndarray) -> np.ndarray:
        x = np.asarray(vector, dtype=float).reshape(self.npoints, self.nvar)
        result = np.einsum("pab,pb->pa", self.diag, x)
        if len(self.nodes):
            i, j = self.nodes[:, 0], self.nodes[:, 1]
            np.add.at(result, i, np.einsum("eab,eb->ea", self.upper, x[j]))
            np.add.at(result, j, np.einsum("eab,eb->ea", self.lower, x[i]))
        return result

    def to_csr(self) -> sparse.csr_matrix:
        nvar = self.nvar
        a, b = np.meshgrid(np.arange(nvar), np.arange(nvar), indexing="ij")
        a, b = a.ravel(), b.ravel()
        points = np.arange(self.npoints)
        rows = [(points[:, None] * nvar + a).ravel()]
        cols = [(points[:, None] * nvar + b).ravel()]
        data = [self.diag.reshape(self.npoints, -1).ravel()]
        if len(self.nodes):
            i, j = self.nodes[:, 0][:, None], self.nodes[:, 1][:, None]
            rows += [(i * nvar + a).ravel(), (j * nvar + a).ravel()]
            cols += [(j * nvar + b).ravel(), (i * nvar + b).ravel()]
            data += [self.upper.reshape(len(self.nodes), -1).ravel(),
                     self.lower.reshape(len(self.nodes), -1).ravel()]
        size = self.npoints * nvar
        return sparse.csr_matrix(
            (np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))),
            shape=(size, size),
        )

    def to_dense(self) -> np.ndarray:
        return self.to_csr().toarray()

    def inverse_diagonal(self) -> np.ndarray:
        dets = np.linalg.det(self.diag)
        bad = np.flatnonzero(~np.isfinite(dets) | (np.abs(dets) < 1e-300))
        if bad.size:
            raise SolverDivergenceError(f"Singular diagonal block at point {int(bad[0])}")
        return np.linalg.inv(self.diag)


class LinearSolver:
    """Solve ``J dx = rhs`` for the block system.

    Methods: ``sgs`` (block symmetric Gauss-Seidel sweeps), ``direct``,
    ``bicgstab``, ``gmres`` (block-Jacobi preconditioned) and ``amg``.
    """

    METHODS = ("sgs", "direct", "bicgstab", "gmres", "amg", "gamg")

    def __init__(self, method: str = "sgs", tol: float = 1e-8, max_iter: int = 50) -> None:
        method = method.lower()
        if method not in self.METHODS:
            raise NotImplementedError(f"Unknown solver method '{method}'")
        self.method = method
        self.tol = float(tol)
        self.max_iter = int(max_iter)

    def solve(
        self,
        matrix: BlockMatrix,
        rhs: np.ndarray,
        initial_guess: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, Dict[str, float]]:
        b = np.asarray(rhs, dtype=float).reshape(matrix.npoints, matrix.nvar)
        x0 = np.zeros_like(b) if initial_guess is None else np.asarray(initial_guess, dtype=float).copy()
        initial_res = float(np.linalg.norm(b - matrix.matvec(x0)))
        if initial_res == 0.0:
            return x0, {"initial": 0.0, "final": 0.0, "relative": 0.0, "iterations": 0.0, "converged": 1.0}

        if self.method == "sgs":
            solution, iterations = self._sgs(matrix, b, x0, initial_res)
        elif self.method == "direct":
            solution = spla.spsolve(matrix.to_csr().tocsc(), b.ravel()).reshape(b.shape)
            iterations = 1
        elif self.method in ("amg", "gamg"):
            solution, iterations = self._amg(matrix, b, x0)
        else:
            solution, iterations = self._krylov(matrix, b, x0)

        if not np.all(np.isfinite(solution)):
            raise SolverDivergenceError(f"Linear solve ({self.method}) produced non-finite values")
        final_res = float(np.linalg.norm(b - matrix.matvec(solution)))
        relative = final_res / initial_res
        converged = relative <= self.tol or self.method == "direct"
        if not converged:
            log.info(
                "Linear solver '%s' not converged after %d iterations (relative residual %.3e)",
                self.method,
                iterations,
                relative,
            )
        stats = {
            "initial": initial_res,
            "final": final_res,
            "relative": relative,
            "iterations": float(iterations),
            "converged": float(converged),
        }
        return solution, stats

    def _sgs(self, matrix: BlockMatrix, b: np.ndarray, x: np.ndarray, initial_res: float):
        inv_diag = matrix.inverse_diagonal()
        nodes = matrix.nodes
        point_edges = matrix.geometry.edges.point_edges
        order = list(range(matrix.npoints))

        def relax(point: int) -> None:
            acc = b[point].copy()
            for edge in point_edges[point]:
                i, j = nodes[edge]
                if i == point:
                    acc -= matrix.upper[edge] @ x[j]
                else:
                    acc -= matrix.lower[edge] @ x[i]
            x[point] = inv_diag[point] @ acc

        iteration = 0
        for iteration in range(1, self.max_iter + 1):
            for point in order:
                relax(point)
            for point in reversed(order):
                relax(point)
            res = float(np.linalg.norm(b - matrix.matvec(x)))
            if not np.isfinite(res):
                raise SolverDivergenceError("Gauss-Seidel sweep diverged")
            if res <= self.tol * initial_res:
                break
        return x, iteration

    def _krylov(self, matrix: BlockMatrix, b: np.ndarray, x0: np.ndarray):
        inv_diag = matrix.inverse_diagonal()
        shape = b.shape
        size = b.size

        def precondition(v):
            return np.einsum("pab,pb->pa", inv_diag, np.asarray(v).reshape(shape)).ravel()

        preconditioner = spla.LinearOperator((size, size), matvec=precondition)
        counter = {"n": 0}

        def count(_):
            counter["n"] += 1

        options = dict(x0=x0.ravel(), rtol=self.tol, maxiter=self.max_iter, M=preconditioner, callback=count)
        if self.method == "gmres":
            solution, info = spla.gmres(matrix.to_csr(), b.ravel(), callback_type="pr_norm", **options)
        else:
            solution, info = spla.bicgstab(matrix.to_csr(), b.ravel(), **options)
        if info < 0:
            raise SolverDivergenceError(f"{self.method} breakdown (info={info})")
        return solution.reshape(shape), counter["n"]

    def _amg(self, matrix: BlockMatrix, b: np.ndarray, x0: np.ndarray):
        A = matrix.to_csr()
        ml = (
            pyamg.ruge_stuben_solver(A)
            if self.method == "gamg"
            else pyamg.smoothed_aggregation_solver(A)
        )
        residuals = []
        solution = ml.solve(
            b.ravel(), x0=x0.ravel(), tol=self.tol, maxiter=self.max_iter, residuals=residuals
        )
        return np.asarray(solution).reshape(b.shape), max(len(residuals) - 1, 0)
