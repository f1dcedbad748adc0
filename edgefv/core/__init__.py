"""Core geometry engine and finite-volume data structures."""

from .field import BlockField
from .mesh import Geometry, GeometryKind
from .preprocess import preprocess_geometry

__all__ = [
    "BlockField",
    "Geometry",
    "GeometryKind",
    "preprocess_geometry",
]
