"""Turbulence model package."""

from .base import TurbulenceModel, make_turbulence_model, register_turbulence, turbulence_registry
from .sa import SpalartAllmaras  # noqa: F401
from .scalar import PassiveScalar  # noqa: F401
from .sst import MenterSST  # noqa: F401

__all__ = [
    "make_turbulence_model",
    "register_turbulence",
    "turbulence_registry",
    "TurbulenceModel",
    "SpalartAllmaras",
    "MenterSST",
    "PassiveScalar",
]
