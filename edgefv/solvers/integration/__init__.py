"""Pseudo-time integration agents."""

from .base import integration_registry, make_integration, register_integration
from . import explicit  # noqa: F401
from . import implicit  # noqa: F401

__all__ = [
    "integration_registry",
    "make_integration",
    "register_integration",
]
