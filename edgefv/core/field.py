"""Field containers for point-centred (vertex-based) FV variables."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import numpy as np

from .mesh import Geometry


class Field:
    """Base class for fields stored at mesh points."""

    def __init__(self, name: str, geometry: Geometry, values: Iterable[float]) -> None:
        self.name = name
        self.geometry = geometry
        arr = np.asarray(values, dtype=float)
        if arr.shape[0] != geometry.npoints:
            raise ValueError(f"Field {name} expects {geometry.npoints} points, got {arr.shape[0]}")
        self.values = arr

    def copy(self, name: Optional[str] = None) -> "Field":
        return self.__class__(name or self.name, self.geometry, self.values.copy())

    def __array__(self, dtype=None, copy=None) -> np.ndarray:
        if dtype is None:
            return self.values
        return self.values.astype(dtype)

    def __getitem__(self, idx):
        return self.values[idx]

    def __setitem__(self, idx, value) -> None:
        self.values[idx] = value


class BlockField(Field):
    """``nvar`` transported unknowns per point, one named column each."""

    def __init__(self, name: str, geometry: Geometry, values, components: Sequence[str]):
        arr = np.asarray(values, dtype=float)
        if arr.shape != (geometry.npoints, len(components)):
            raise ValueError(
                f"BlockField {name} expects shape {(geometry.npoints, len(components))}, got {arr.shape}"
            )
        self.name = name
        self.geometry = geometry
        self.values = arr
        self.components: List[str] = list(components)

    @classmethod
    def uniform(cls, name: str, geometry: Geometry, state: Sequence[float], components: Sequence[str]):
        values = np.tile(np.asarray(state, dtype=float), (geometry.npoints, 1))
        return cls(name, geometry, values, components)

    @property
    def nvar(self) -> int:
        return len(self.components)

    def component(self, key: str | int) -> np.ndarray:
        index = self.components.index(key) if isinstance(key, str) else int(key)
        return self.values[:, index]

    def copy(self, name: Optional[str] = None) -> "BlockField":
        return BlockField(name or self.name, self.geometry, self.values.copy(), self.components)
