"""
Dominance functionals of order ``p`` and their closed-form gradients.

For a portfolio ``x`` the order-``p`` lower partial moment gap at threshold
``t`` is::

    g_p(t, x) = E[(t - x'xi)_+^p] - E[(t - xi_0)_+^p]

``x`` dominates the benchmark ``xi_0`` when ``g_p(t, x) <= 0`` for every
``t``. Functions take the scenario matrix (assets x scenarios), the
benchmark vector and both probability vectors, and return torch tensors so
that the Lagrangian residual built from them stays differentiable. The
positive part is :func:`torch.relu`, whose derivative at the kink is 0.
"""
from __future__ import annotations

import numpy as np
import torch

from .utils import ArrayOrTensor, as_tensor, safe_exponent


def _prepare(t, x, returns, benchmark, probs, benchmark_probs):
    x_t = as_tensor(x)
    return (
        as_tensor(t, like=x_t),
        x_t,
        as_tensor(returns, like=x_t),
        as_tensor(benchmark, like=x_t),
        as_tensor(probs, like=x_t),
        as_tensor(benchmark_probs, like=x_t),
    )


def lower_partial_moment(
    t: torch.Tensor, outcomes: torch.Tensor, probs: torch.Tensor, order: float
) -> torch.Tensor:
    """``E[(t - outcome)_+^order]``; ``t`` may carry a trailing axis for grids."""

    shortfall = torch.relu(t - outcomes)
    return safe_exponent(shortfall, order) @ probs


def _moment_gap(t, x, returns, benchmark, probs, benchmark_probs, order: float) -> torch.Tensor:
    portfolio = x @ returns
    return lower_partial_moment(t, portfolio, probs, order) - lower_partial_moment(
        t, benchmark, benchmark_probs, order
    )


def _weighted_shortfall(t, x, returns, probs, order: float) -> torch.Tensor:
    """``E[(t - x'xi)_+^order * xi]`` as an asset vector."""

    shortfall = torch.relu(t - x @ returns)
    return returns @ (safe_exponent(shortfall, order) * probs)


def g_p(
    t: ArrayOrTensor,
    x: ArrayOrTensor,
    returns: ArrayOrTensor,
    benchmark: ArrayOrTensor,
    probs: ArrayOrTensor,
    benchmark_probs: ArrayOrTensor,
    p: float,
) -> torch.Tensor:
    """Dominance gap of order ``p``; positive means violated at ``t``."""

    args = _prepare(t, x, returns, benchmark, probs, benchmark_probs)
    return _moment_gap(*args, float(p))


def g_p_minus_1(
    t: ArrayOrTensor,
    x: ArrayOrTensor,
    returns: ArrayOrTensor,
    benchmark: ArrayOrTensor,
    probs: ArrayOrTensor,
    benchmark_probs: ArrayOrTensor,
    p: float,
) -> torch.Tensor:
    """Dominance gap of order ``p - 1``."""

    args = _prepare(t, x, returns, benchmark, probs, benchmark_probs)
    return _moment_gap(*args, float(p) - 1.0)


def g_ind_p(
    t: ArrayOrTensor,
    x: ArrayOrTensor,
    returns: ArrayOrTensor,
    benchmark: ArrayOrTensor,
    probs: ArrayOrTensor,
    benchmark_probs: ArrayOrTensor,
    p: float,
) -> torch.Tensor:
    """``g_p`` clipped at zero: only violations contribute."""

    return torch.relu(g_p(t, x, returns, benchmark, probs, benchmark_probs, p))


def grad_g_p_t(t, x, returns, benchmark, probs, benchmark_probs, p: float) -> torch.Tensor:
    args = _prepare(t, x, returns, benchmark, probs, benchmark_probs)
    return float(p) * _moment_gap(*args, float(p) - 1.0)


def grad_g_p_x(t, x, returns, probs, p: float) -> torch.Tensor:
    x_t = as_tensor(x)
    t_t, R, pr = (as_tensor(v, like=x_t) for v in (t, returns, probs))
    return -float(p) * _weighted_shortfall(t_t, x_t, R, pr, float(p) - 1.0)


def grad_g_p_minus_1_t(t, x, returns, benchmark, probs, benchmark_probs, p: float) -> torch.Tensor:
    args = _prepare(t, x, returns, benchmark, probs, benchmark_probs)
    return (float(p) - 1.0) * _moment_gap(*args, float(p) - 2.0)


def grad_g_p_minus_1_x(t, x, returns, probs, p: float) -> torch.Tensor:
    x_t = as_tensor(x)
    t_t, R, pr = (as_tensor(v, like=x_t) for v in (t, returns, probs))
    return -(float(p) - 1.0) * _weighted_shortfall(t_t, x_t, R, pr, float(p) - 2.0)


def threshold_sensitivity(
    t, x, returns, benchmark, probs, benchmark_probs, p: float
) -> torch.Tensor:
    """
    ``dt/dx`` on the level set ``g_{p-1}(x, t) = 0`` (implicit function theorem).

    Where ``d g_{p-1} / dt`` vanishes the sensitivity is taken as zero.
    """

    numer = grad_g_p_minus_1_x(t, x, returns, probs, p)
    denom = grad_g_p_minus_1_t(t, x, returns, benchmark, probs, benchmark_probs, p)
    singular = denom == 0
    safe_denom = torch.where(singular, torch.ones_like(denom), denom)
    return torch.where(singular, torch.zeros_like(numer), -numer / safe_denom)


def dominance_gradient(
    t, x, returns, benchmark, probs, benchmark_probs, p: float
) -> torch.Tensor:
    """Gradient of ``g_p(t(x), x)`` with the threshold following ``x``."""

    dt_dx = threshold_sensitivity(t, x, returns, benchmark, probs, benchmark_probs, p)
    dg_dt = grad_g_p_t(t, x, returns, benchmark, probs, benchmark_probs, p)
    return grad_g_p_x(t, x, returns, probs, p) - dg_dt * dt_dx


def g_p_profile(
    thresholds: np.ndarray,
    x: ArrayOrTensor,
    returns: ArrayOrTensor,
    benchmark: ArrayOrTensor,
    probs: ArrayOrTensor,
    benchmark_probs: ArrayOrTensor,
    p: float,
) -> np.ndarray:
    """Evaluate ``g_p`` at every threshold of a grid in one vectorised pass."""

    grid = np.asarray(thresholds, dtype=float).reshape(-1, 1)
    with torch.no_grad():
        values = g_p(grid, x, returns, benchmark, probs, benchmark_probs, p)
    return values.detach().cpu().numpy().reshape(-1)
