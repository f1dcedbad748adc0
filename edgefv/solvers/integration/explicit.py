"""Explicit multi-stage Runge-Kutta pseudo-time stepping."""

from __future__ import annotations

from time import perf_counter

from .base import IntegrationAgent, register_integration


@register_integration("runge_kutta_explicit")
class RungeKuttaExplicit(IntegrationAgent):
    """``u_k = u_0 - alpha_k dt/V R(u_{k-1})`` for each stage coefficient."""

    def __init__(self, config=None) -> None:
        super().__init__(config)
        self.alpha = tuple(config.rk_alpha) if config is not None else (0.25, 1.0 / 3.0, 0.5, 1.0)

    def step(self, solver):
        initial = solver.values.copy()
        report = None
        for stage, alpha in enumerate(self.alpha):
            tic = perf_counter() if self.profiling else None
            stage_report = solver.assemble()
            if report is None:
                report = stage_report
            solver.explicit_update(alpha, initial)
            if tic is not None:
                self.timings[f"stage_{stage}"] += perf_counter() - tic
        return report
