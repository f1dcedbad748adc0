"""Implicit Euler pseudo-time stepping."""

from __future__ import annotations

from time import perf_counter

from .base import IntegrationAgent, register_integration


@register_integration("euler_implicit")
class EulerImplicit(IntegrationAgent):
    def step(self, solver):
        tic = perf_counter() if self.profiling else None
        report = solver.assemble()
        if tic is not None:
            self.timings["assembly"] += perf_counter() - tic
            tic = perf_counter()
        solver.implicit_solve()
        if tic is not None:
            self.timings["linear_solve"] += perf_counter() - tic
        solver.update()
        return report
