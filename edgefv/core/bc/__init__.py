"""Boundary condition implementations."""

from .base import BoundaryCondition, BoundaryContext, BoundaryKind, bc_registry, register_bc
from .farfield import Farfield, Inlet
from .outlet import Outlet
from .send_receive import SendReceive
from .symmetry import Symmetry
from .wall import Wall

__all__ = [
    "BoundaryCondition",
    "BoundaryContext",
    "BoundaryKind",
    "bc_registry",
    "register_bc",
    "Farfield",
    "Inlet",
    "Outlet",
    "SendReceive",
    "Symmetry",
    "Wall",
]
