"""Case dictionary and restart helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import numpy as np
import yaml

from .errors import RestartError


def read_yaml_file(path: str | Path) -> Dict[str, Any]:
    file_path = Path(path)
    with file_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return data


def read_optional_yaml(path: str | Path) -> Dict[str, Any]:
    file_path = Path(path)
    if not file_path.exists():
        return {}
    return read_yaml_file(file_path)


def read_restart(path: str | Path, npoints: int, nvar: int) -> np.ndarray:
    """Read a point-wise restart file.

    Each non-comment line holds ``index x y [z] value...``; the transported
    unknowns are the last ``nvar`` columns. Every point must appear exactly
    once.
    """

    file_path = Path(path)
    if not file_path.exists():
        raise RestartError(f"Restart file '{file_path}' does not exist")

    values = np.full((npoints, nvar), np.nan)
    seen = np.zeros(npoints, dtype=bool)
    with file_path.open("r", encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, start=1):
            text = line.strip()
            if not text or text.startswith("#"):
                continue
            tokens = text.split()
            if len(tokens) < nvar + 1:
                raise RestartError(
                    f"{file_path}:{lineno}: expected at least {nvar + 1} columns, got {len(tokens)}"
                )
            try:
                index = int(tokens[0])
                row = [float(tok) for tok in tokens[-nvar:]]
            except ValueError as exc:
                raise RestartError(f"{file_path}:{lineno}: {exc}") from exc
            if not 0 <= index < npoints:
                raise RestartError(f"{file_path}:{lineno}: point index {index} out of range")
            if seen[index]:
                raise RestartError(f"{file_path}:{lineno}: point {index} listed twice")
            values[index] = row
            seen[index] = True

    if not seen.all():
        missing = int(np.flatnonzero(~seen)[0])
        raise RestartError(
            f"Restart file '{file_path}' is missing {int((~seen).sum())} points (first: {missing})"
        )
    if not np.isfinite(values).all():
        raise RestartError(f"Restart file '{file_path}' contains non-finite values")
    return values
