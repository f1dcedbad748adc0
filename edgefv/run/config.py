"""Typed solver configuration built from the case dictionary."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..core.bc.base import BoundaryKind
from ..core.fv_ops import GradientMethod, SlopeLimiter


class TimeScheme(Enum):
    EULER_IMPLICIT = "euler_implicit"
    RUNGE_KUTTA_EXPLICIT = "runge_kutta_explicit"


_ALIASES = {
    TimeScheme: {"implicit": "euler_implicit", "explicit": "runge_kutta_explicit", "rk": "runge_kutta_explicit"},
    GradientMethod: {"gg": "green_gauss", "ls": "least_squares", "wls": "weighted_least_squares"},
    SlopeLimiter: {"venkat": "venkatakrishnan"},
}


def parse_enum(enum_cls, value, default):
    if value is None:
        return default
    if isinstance(value, enum_cls):
        return value
    key = str(value).strip().lower().replace("-", "_")
    key = _ALIASES.get(enum_cls, {}).get(key, key)
    try:
        return enum_cls(key)
    except ValueError as exc:
        raise ValueError(f"Unknown {enum_cls.__name__} '{value}'") from exc


@dataclass
class NumericsConfig:
    gradient: GradientMethod = GradientMethod.GREEN_GAUSS
    limiter: SlopeLimiter = SlopeLimiter.NONE
    venkatakrishnan_k: float = 5.0
    muscl: bool = False
    convective: str = "upwind"
    viscous: Optional[str] = "avg_grad"
    source: Optional[str] = None
    source_config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "NumericsConfig":
        data = data or {}
        viscous = data.get("viscous", "avg_grad")
        return cls(
            gradient=parse_enum(GradientMethod, data.get("gradient"), GradientMethod.GREEN_GAUSS),
            limiter=parse_enum(SlopeLimiter, data.get("limiter"), SlopeLimiter.NONE),
            venkatakrishnan_k=float(data.get("venkatakrishnanK", 5.0)),
            muscl=bool(data.get("muscl", False)),
            convective=str(data.get("convective", "upwind")),
            viscous=None if viscous in (None, "none", False) else str(viscous),
            source=data.get("source"),
            source_config=dict(data.get("sourceCoeffs", {}) or {}),
        )


@dataclass
class TimeConfig:
    scheme: TimeScheme = TimeScheme.EULER_IMPLICIT
    cfl: float = 5.0
    rk_alpha: Tuple[float, ...] = (0.25, 1.0 / 3.0, 0.5, 1.0)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "TimeConfig":
        data = data or {}
        alpha = tuple(float(a) for a in data.get("rkAlpha", (0.25, 1.0 / 3.0, 0.5, 1.0)))
        if not alpha:
            raise ValueError("rkAlpha needs at least one stage")
        cfl = float(data.get("cfl", 5.0))
        if cfl <= 0.0:
            raise ValueError("CFL number must be positive")
        return cls(
            scheme=parse_enum(TimeScheme, data.get("scheme"), TimeScheme.EULER_IMPLICIT),
            cfl=cfl,
            rk_alpha=alpha,
        )


@dataclass
class ConvergenceConfig:
    max_iters: int = 200
    tolerance: float = 1e-10
    orders: float = 0.0
    window: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "ConvergenceConfig":
        data = data or {}
        return cls(
            max_iters=int(data.get("maxIters", 200)),
            tolerance=float(data.get("tolerance", 1e-10)),
            orders=float(data.get("orders", 0.0)),
            window=int(data.get("window", 0)),
        )


@dataclass
class LinearSolverConfig:
    method: str = "sgs"
    tol: float = 1e-6
    max_iter: int = 10

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "LinearSolverConfig":
        data = data or {}
        return cls(
            method=str(data.get("method", "sgs")).lower(),
            tol=float(data.get("tol", 1e-6)),
            max_iter=int(data.get("maxIter", 10)),
        )


@dataclass
class MultigridConfig:
    levels: int = 0
    ratio: Optional[int] = None
    min_reduction: float = 1.5
    fmg_iterations: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "MultigridConfig":
        data = data or {}
        ratio = data.get("ratio")
        return cls(
            levels=int(data.get("levels", 0)),
            ratio=None if ratio is None else int(ratio),
            min_reduction=float(data.get("minReduction", 1.5)),
            fmg_iterations=int(data.get("fmgIterations", 0)),
        )


@dataclass
class GeometryConfig:
    closure_tol: float = 1e-6
    strict: bool = False
    smoothing_iterations: int = 0
    smoothing_coeff: float = 0.5

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "GeometryConfig":
        data = data or {}
        return cls(
            closure_tol=float(data.get("closureTol", 1e-6)),
            strict=bool(data.get("strict", False)),
            smoothing_iterations=int(data.get("smoothingIterations", 0)),
            smoothing_coeff=float(data.get("smoothingCoeff", 0.5)),
        )


@dataclass
class MarkerConfig:
    name: str
    kind: BoundaryKind
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_entry(cls, name: str, entry) -> "MarkerConfig":
        info = entry or {}
        if isinstance(info, str):
            info = {"type": info}
        options = {k: v for k, v in info.items() if k != "type"}
        return cls(name, BoundaryKind.from_name(info.get("type", "wall")), options)


@dataclass
class SolverConfig:
    numerics: NumericsConfig = field(default_factory=NumericsConfig)
    time: TimeConfig = field(default_factory=TimeConfig)
    convergence: ConvergenceConfig = field(default_factory=ConvergenceConfig)
    linear_solver: LinearSolverConfig = field(default_factory=LinearSolverConfig)
    multigrid: MultigridConfig = field(default_factory=MultigridConfig)
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    markers: Dict[str, MarkerConfig] = field(default_factory=dict)
    velocity: Tuple[float, ...] = (1.0, 0.0, 0.0)
    restart_file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "SolverConfig":
        data = data or {}
        markers = {
            name: MarkerConfig.from_entry(name, entry)
            for name, entry in (data.get("markers", {}) or {}).items()
        }
        flow = data.get("flow", {}) or {}
        restart = data.get("restart", {}) or {}
        return cls(
            numerics=NumericsConfig.from_dict(data.get("numerics")),
            time=TimeConfig.from_dict(data.get("time")),
            convergence=ConvergenceConfig.from_dict(data.get("convergence")),
            linear_solver=LinearSolverConfig.from_dict(data.get("linearSolver")),
            multigrid=MultigridConfig.from_dict(data.get("multigrid")),
            geometry=GeometryConfig.from_dict(data.get("geometry")),
            markers=markers,
            velocity=tuple(float(v) for v in flow.get("velocity", (1.0, 0.0, 0.0))),
            restart_file=restart.get("file"),
        )
