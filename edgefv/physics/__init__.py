"""Physics models."""

from .transport import ConstantTransport
from .turbulence import make_turbulence_model, register_turbulence, turbulence_registry

__all__ = [
    "ConstantTransport",
    "make_turbulence_model",
    "register_turbulence",
    "turbulence_registry",
]
