"""Edge-based finite-volume geometry engine and transport solver."""

from .core.mesh import Geometry
from .run.case import Case

__all__ = ["Case", "Geometry"]
