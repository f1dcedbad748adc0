"""Numerical flux and source operators."""

from .base import EdgeData, Numerics, NumericsResult, make_numerics, numerics_registry, register_numerics
from . import convection  # noqa: F401
from . import diffusion  # noqa: F401
from . import source  # noqa: F401

__all__ = [
    "EdgeData",
    "Numerics",
    "NumericsResult",
    "make_numerics",
    "numerics_registry",
    "register_numerics",
]
