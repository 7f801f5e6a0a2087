"""HOSD optimizer public API."""
from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:  # runtime package version
    __version__ = version("hosd-optimizer")
except PackageNotFoundError:  # editable/dev env
    __version__ = "0.0.0+local"

from .errors import (
    DominanceNotStabilizedError,
    HOSDError,
    NewtonConvergenceError,
    ScenarioError,
)
from .lagrangian import DecisionLayout, DecisionVector, LagrangianSystem
from .newton import NewtonResult, NewtonSolver, newton
from .objectives import ObjectiveKind, risk_function
from .optimizer import DominanceOptimizer, OptimizationResult, OptimizerConfig
from .scanner import ViolationReport, ViolationScanner, threshold_grid
from .scenarios import ScenarioSet, annualized_returns, load_scenarios, time_weights
from .utils import safe_exponent

__all__ = [
    "DominanceOptimizer",
    "OptimizerConfig",
    "OptimizationResult",
    "ObjectiveKind",
    "ScenarioSet",
    "LagrangianSystem",
    "DecisionLayout",
    "DecisionVector",
    "NewtonSolver",
    "NewtonResult",
    "newton",
    "ViolationScanner",
    "ViolationReport",
    "threshold_grid",
    "risk_function",
    "safe_exponent",
    "annualized_returns",
    "time_weights",
    "load_scenarios",
    "HOSDError",
    "ScenarioError",
    "NewtonConvergenceError",
    "DominanceNotStabilizedError",
    "__version__",
]
