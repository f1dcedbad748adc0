"""Base pseudo-time integration agent."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict

from ...utils.registry import Registry


integration_registry = Registry("integration")


def register_integration(name: str):
    return integration_registry.register(name)


def make_integration(name: str, config=None):
    return integration_registry.create(name, config)


class IntegrationAgent(ABC):
    def __init__(self, config=None) -> None:
        self.config = config
        self.profiling = False
        self.timings = defaultdict(float)

    def enable_profiling(self, flag: bool = True) -> None:
        self.profiling = flag
        self.timings.clear()

    def reset_timings(self) -> None:
        self.timings.clear()

    def get_timings(self) -> dict[str, float]:
        return dict(self.timings)

    @abstractmethod
    def step(self, solver):
        """Advance ``solver`` by one outer iteration and return its residual report."""
