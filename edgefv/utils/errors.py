"""Exception types raised by the geometry engine and solvers."""

from __future__ import annotations

from typing import Optional


class TopologyError(ValueError):
    """Malformed or non-manifold primal connectivity."""

    def __init__(self, message: str, element: Optional[int] = None, point: Optional[int] = None) -> None:
        self.element = element
        self.point = point
        details = []
        if element is not None:
            details.append(f"element {element}")
        if point is not None:
            details.append(f"point {point}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)


class GeometryConsistencyError(ValueError):
    """Dual control volumes do not close within tolerance."""

    def __init__(self, message: str, point: Optional[int] = None, defect: float = 0.0) -> None:
        self.point = point
        self.defect = defect
        super().__init__(message)


class RestartError(RuntimeError):
    """Restart state file is missing or cannot be parsed."""


class SolverDivergenceError(RuntimeError):
    """The sparse linear solve produced an unusable increment."""


class AssemblyError(RuntimeError):
    """A flux or source evaluation failed during residual assembly."""

    def __init__(self, message: str, edge: Optional[int] = None, point: Optional[int] = None) -> None:
        self.edge = edge
        self.point = point
        super().__init__(message)
