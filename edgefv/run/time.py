"""Pseudo-time iteration control and convergence monitoring."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterator, List

log = logging.getLogger(__name__)


@dataclass
class PseudoTimeControl:
    """Outer-iteration loop with absolute, relative and stall criteria.

    The monitored residual is the largest absolute residual of the
    iteration. The run converges once it drops below ``tolerance`` or by
    ``orders`` decades from its first value. With ``window > 0`` it is
    declared stalled when the last ``window`` iterations brought no new
    minimum.
    """

    max_iters: int = 200
    tolerance: float = 1e-10
    orders: float = 0.0
    window: int = 0
    history: List[float] = field(default_factory=list)
    converged: bool = False
    stalled: bool = False

    @classmethod
    def from_config(cls, config) -> "PseudoTimeControl":
        return cls(
            max_iters=config.max_iters,
            tolerance=config.tolerance,
            orders=config.orders,
            window=config.window,
        )

    def __iter__(self) -> Iterator[int]:
        for iteration in range(1, self.max_iters + 1):
            yield iteration
            if self.converged or self.stalled:
                return

    def reduction(self) -> float:
        if not self.history or self.history[-1] <= 0.0 or self.history[0] <= 0.0:
            return math.inf if self.history and self.history[-1] == 0.0 else 0.0
        return math.log10(self.history[0] / self.history[-1])

    def update(self, residual: float) -> bool:
        if not math.isfinite(residual):
            self.stalled = True
            log.warning("Residual became non-finite; stopping")
            return False
        self.history.append(residual)
        if residual <= self.tolerance or (self.orders > 0.0 and self.reduction() >= self.orders):
            self.converged = True
            return True
        if self.window > 0 and len(self.history) > self.window:
            before = min(self.history[: -self.window])
            if min(self.history[-self.window:]) >= before:
                self.stalled = True
                log.warning(
                    "Residual did not decrease over the last %d iterations (%.3e)",
                    self.window,
                    residual,
                )
        return False
