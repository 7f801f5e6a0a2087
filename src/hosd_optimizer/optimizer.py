from __future__ import annotations
from dataclasses import asdict, dataclass, field
import logging
from time import perf_counter
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import torch

from .errors import DominanceNotStabilizedError, NewtonConvergenceError
from .lagrangian import DecisionVector, LagrangianSystem
from .newton import NewtonSolver
from .objectives import ObjectiveKind, risk_function
from .scanner import DEFAULT_GRID_STEP, ViolationScanner
from .scenarios import ScenarioSet

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s: %(message)s"))
    logger.addHandler(handler)
logger.setLevel(logging.INFO)

NEWTON_FAILURE_POLICIES = ("continue", "raise")


@dataclass
class OptimizerConfig:
    """Configuration container for :class:`DominanceOptimizer`."""

    p: float = 2.0
    beta: float = 0.5
    max_eval: int = 200
    tol: float = 1e-7
    grid_step: float = DEFAULT_GRID_STEP
    max_rounds: int = 50
    seed: int = 123
    on_newton_failure: str = "continue"
    strict: bool = False
    max_runtime: Optional[float] = None
    dtype: torch.dtype = torch.float64

    def __post_init__(self) -> None:
        if self.p < 2.0:
            raise ValueError("p must be at least 2")
        if not (0.0 < self.beta < 1.0):
            raise ValueError("beta must lie in (0, 1)")
        if self.max_eval <= 0:
            raise ValueError("max_eval must be positive")
        if self.tol < 0.0:
            raise ValueError("tol must be non-negative")
        if self.grid_step <= 0.0:
            raise ValueError("grid_step must be positive")
        if self.max_rounds <= 0:
            raise ValueError("max_rounds must be positive")
        if self.on_newton_failure not in NEWTON_FAILURE_POLICIES:
            raise ValueError(f"on_newton_failure must be one of {NEWTON_FAILURE_POLICIES}")
        if self.max_runtime is not None and self.max_runtime <= 0.0:
            raise ValueError("max_runtime must be positive")
        if not isinstance(self.dtype, torch.dtype):
            raise TypeError("dtype must be a torch.dtype instance")

    @classmethod
    def from_overrides(cls, overrides: Optional[Dict[str, Any]] = None) -> "OptimizerConfig":
        if overrides is None:
            return cls()
        base = asdict(cls())
        base.update(overrides)
        return cls(**base)


@dataclass
class OptimizationResult:
    """Structured result returned by :meth:`DominanceOptimizer.optimize`."""

    weights: np.ndarray
    lam: float
    mu: float
    nu: np.ndarray
    threshold: float
    quantile: Optional[float]
    objective: ObjectiveKind
    objective_value: float
    thresholds: Tuple[float, ...]
    rounds: int
    newton_evaluations: int
    converged: bool
    stabilized: bool
    residual_norm: float
    optimization_time: float
    message: str
    history: List[Dict[str, float]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.weights = np.asarray(self.weights, dtype=float)
        self.nu = np.asarray(self.nu, dtype=float)
        self.thresholds = tuple(float(t) for t in self.thresholds)
        self.converged = bool(self.converged)
        self.stabilized = bool(self.stabilized)

    def summary(self) -> Dict[str, Any]:
        return {
            "objective": self.objective.value,
            "objective_value": self.objective_value,
            "weights": self.weights.tolist(),
            "lambda": self.lam,
            "mu": self.mu,
            "nu": self.nu.tolist(),
            "threshold": self.threshold,
            "quantile": self.quantile,
            "thresholds": list(self.thresholds),
            "rounds": self.rounds,
            "newton_evaluations": self.newton_evaluations,
            "converged": self.converged,
            "stabilized": self.stabilized,
            "residual_norm": self.residual_norm,
            "optimization_time": self.optimization_time,
            "message": self.message,
        }


class DominanceOptimizer:
    """
    Cutting-plane loop around the Newton solve of the Lagrangian system.

    Each round solves the stationarity system for the current active threshold
    set, then scans the benchmark threshold grid. The worst violated threshold
    is appended to the active set and the next round starts from the previous
    solution; the run ends when the scan finds no violation or the round or
    runtime budget is exhausted.
    """

    def __init__(self, config: Optional[Dict[str, Any] | OptimizerConfig] = None):
        if isinstance(config, OptimizerConfig):
            self.cfg = config
        else:
            self.cfg = OptimizerConfig.from_overrides(config)
        self.history: List[Dict[str, float]] = []
        self.last_system: Optional[LagrangianSystem] = None

    def initial_guess(
        self,
        scenarios: ScenarioSet,
        kind: ObjectiveKind,
        rng: Optional[np.random.Generator] = None,
    ) -> DecisionVector:
        """
        Random starting point with ``x`` on the simplex, zero multipliers and
        ``t`` at the lowest benchmark outcome. ``q`` is drawn from ``[0, 1)``
        for the risk objective. Draws come from ``rng`` or, when omitted, a
        generator seeded with ``cfg.seed``.
        """

        if rng is None:
            rng = np.random.default_rng(self.cfg.seed)
        d = scenarios.n_assets
        x = rng.random(d)
        x /= x.sum()
        q = float(rng.random()) if kind is ObjectiveKind.MIN_RISK else None
        return DecisionVector(
            x=x,
            lam=0.0,
            mu=0.0,
            nu=np.zeros(d),
            t=float(scenarios.benchmark.min()),
            q=q,
        )

    def optimize(
        self,
        scenarios: ScenarioSet,
        objective: ObjectiveKind = ObjectiveKind.MAX_RETURN,
        initial: Optional[DecisionVector] = None,
    ) -> OptimizationResult:
        """Run the cutting-plane loop and return an :class:`OptimizationResult`."""

        cfg = self.cfg
        start_time = perf_counter()
        self.history = []

        system = LagrangianSystem(
            scenarios, p=cfg.p, kind=objective, beta=cfg.beta, dtype=cfg.dtype
        )
        scanner = ViolationScanner(scenarios, p=cfg.p, step=cfg.grid_step)
        rng = np.random.default_rng(cfg.seed)
        if initial is None:
            initial = self.initial_guess(scenarios, objective, rng)
        solver = NewtonSolver(max_eval=cfg.max_eval, tol=cfg.tol, rng=rng)
        vector = system.layout.pack(initial)

        rounds = 0
        evaluations = 0
        converged = False
        stabilized = False
        residual_norm = float("nan")
        message = ""

        while True:
            if rounds >= cfg.max_rounds:
                message = f"Round budget of {cfg.max_rounds} exhausted with dominance still violated"
                break
            if cfg.max_runtime is not None and perf_counter() - start_time >= cfg.max_runtime:
                message = f"Runtime budget reached after {rounds} rounds"
                break
            rounds += 1
            logger.info("Round %03d | active thresholds=%d", rounds, len(system.thresholds))

            result = solver.solve(system.residual, system.jacobian, vector)
            vector = result.x
            evaluations += result.eval_count
            converged = result.converged
            residual_norm = result.residual_norm
            if not converged and cfg.on_newton_failure == "raise":
                raise NewtonConvergenceError(result.residual_norm, result.eval_count, rounds)

            report = scanner.scan(vector[system.layout.x])
            self.history.append({
                "round": float(rounds),
                "residual_norm": float(result.residual_norm),
                "evaluations": float(result.eval_count),
                "max_gap": float(report.max_value),
            })
            if not report.violated:
                stabilized = True
                message = "No dominance violation on the threshold grid"
                break

            logger.info(
                "Dominance violated at t=%.6f (g_p=%.3e); adding threshold",
                report.threshold,
                report.max_value,
            )
            system = system.with_threshold(report.threshold)

        self.last_system = system
        if not stabilized:
            if cfg.strict:
                raise DominanceNotStabilizedError(message, system.thresholds)
            logger.warning(message)

        decision = system.layout.unpack(vector)
        value = risk_function(
            objective,
            decision.x,
            scenarios.returns,
            scenarios.probs,
            q=decision.q,
            p=cfg.p,
            beta=cfg.beta,
        )
        return OptimizationResult(
            weights=decision.x,
            lam=decision.lam,
            mu=decision.mu,
            nu=decision.nu,
            threshold=decision.t,
            quantile=decision.q,
            objective=objective,
            objective_value=value,
            thresholds=system.thresholds,
            rounds=rounds,
            newton_evaluations=evaluations,
            converged=converged,
            stabilized=stabilized,
            residual_norm=residual_norm,
            optimization_time=perf_counter() - start_time,
            message=message,
            history=list(self.history),
        )
