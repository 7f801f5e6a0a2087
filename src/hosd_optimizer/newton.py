"""Damped Newton root-finder for residual systems with a supplied Jacobian."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from scipy.linalg import LinAlgError, lstsq

from .utils import zero_nans

logger = logging.getLogger(__name__)

ResidualFn = Callable[[np.ndarray], np.ndarray]
JacobianFn = Callable[[np.ndarray], np.ndarray]


@dataclass
class NewtonResult:
    x: np.ndarray
    residual_norm: float
    eval_count: int
    converged: bool
    history: Tuple[float, ...] = ()


def _evaluate(fun: ResidualFn, x: np.ndarray) -> Tuple[np.ndarray, float]:
    fx = zero_nans(np.array(fun(x), dtype=float).ravel())
    return fx, float(np.linalg.norm(fx))


def _newton_direction(jac: JacobianFn, x: np.ndarray, fx: np.ndarray) -> np.ndarray:
    J = zero_nans(np.array(jac(x), dtype=float).reshape(fx.size, x.size))
    try:
        # least squares: the stationarity system is over-determined in general
        direction = lstsq(J, fx, check_finite=False)[0]
    except LinAlgError as exc:
        logger.warning("Newton: least-squares solve failed (%s); falling back to a random step", exc)
        return np.zeros_like(x)
    return zero_nans(np.asarray(direction, dtype=float))


def newton(
    fun: ResidualFn,
    jac: JacobianFn,
    x0: Sequence[float],
    *,
    max_eval: int = 1000,
    tol: float = 1e-7,
    rng: Optional[np.random.Generator] = None,
) -> NewtonResult:
    """
    Drive ``fun`` to a root with Newton steps and halving line search.

    NaN entries of the residual, the Jacobian, the direction and candidate
    points are treated as 0. When no step improved the residual norm in the
    previous round, a random direction scaled to the previous step is tried.
    The loop runs while the last round improved or the norm is above ``tol``,
    for at most ``max_eval`` Jacobian evaluations. Non-convergence is
    reported through ``converged``, never raised.
    """

    if max_eval <= 0:
        raise ValueError("max_eval must be positive")
    if rng is None:
        rng = np.random.default_rng()

    x_min = np.array(x0, dtype=float).ravel()
    f_min, nf_min = _evaluate(fun, x_min)
    history = [nf_min]
    direction = np.zeros_like(x_min)
    improved = True
    eval_count = 0

    while (improved or nf_min > tol) and eval_count < max_eval:
        eval_count += 1
        if improved:
            direction = _newton_direction(jac, x_min, f_min)
        else:
            logger.debug("Newton: now trying a random direction")
            direction = rng.standard_normal(x_min.size) * (1e-7 + np.linalg.norm(direction))

        alpha = 1.0
        improved = False
        candidate = x_min
        while not improved and (alpha > 0.6 or not np.array_equal(candidate, x_min)):
            candidate = zero_nans(x_min - alpha * direction)
            if not np.isfinite(candidate).all():
                logger.debug("Newton: non-finite candidate, abandoning line search")
                break
            fx, nfx = _evaluate(fun, candidate)
            if nfx < nf_min:
                x_min, f_min, nf_min = candidate, fx, nfx
                history.append(nf_min)
                improved = True
            else:
                alpha /= 2.0

    converged = nf_min <= tol
    if not converged:
        logger.warning("Newton failed to converge: ||f(x_min)||=%.3e after %d evaluations", nf_min, eval_count)
    return NewtonResult(
        x=x_min,
        residual_norm=nf_min,
        eval_count=eval_count,
        converged=converged,
        history=tuple(history),
    )


class NewtonSolver:
    """Newton settings bundled with an explicitly seeded generator for the fallback step."""

    def __init__(
        self,
        max_eval: int = 1000,
        tol: float = 1e-7,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        if max_eval <= 0:
            raise ValueError("max_eval must be positive")
        if tol < 0.0:
            raise ValueError("tol must be non-negative")
        self.max_eval = int(max_eval)
        self.tol = float(tol)
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def solve(self, fun: ResidualFn, jac: JacobianFn, x0: Sequence[float]) -> NewtonResult:
        return newton(fun, jac, x0, max_eval=self.max_eval, tol=self.tol, rng=self.rng)
