"""Simple logging utilities for solver iterations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class IterationLogger:
    name: str
    verbose: bool = True
    history: List[Dict[str, float]] = field(default_factory=list)

    def log(self, iteration: int, residuals: Dict[str, float]) -> None:
        entry = {"iter": iteration, **residuals}
        self.history.append(entry)
        if not self.verbose:
            return
        pieces = [f"{self.name} iter {iteration:4d}"]
        for name, value in residuals.items():
            pieces.append(f"{name} = {value:.3e}")
        print(" | ".join(pieces), flush=True)

    def series(self, key: str) -> List[float]:
        return [entry[key] for entry in self.history if key in entry]
