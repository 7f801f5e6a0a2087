from __future__ import annotations

from enum import Enum
from typing import Optional

import torch

from .utils import ArrayOrTensor, as_tensor, safe_exponent


class ObjectiveKind(Enum):
    MAX_RETURN = "max_return"
    MIN_RISK = "min_risk"


def expected_return(x: ArrayOrTensor, returns: ArrayOrTensor, probs: ArrayOrTensor) -> torch.Tensor:
    x_t = as_tensor(x)
    R, pr = as_tensor(returns, like=x_t), as_tensor(probs, like=x_t)
    return (R @ pr) @ x_t


def grad_expected_return(returns: ArrayOrTensor, probs: ArrayOrTensor) -> torch.Tensor:
    R = as_tensor(returns)
    return R @ as_tensor(probs, like=R)


def _shortfall(x, q, returns, probs):
    x_t = as_tensor(x)
    q_t, R, pr = (as_tensor(v, like=x_t) for v in (q, returns, probs))
    return torch.relu(-(x_t @ R) - q_t), R, pr


def _moment_power(moment: torch.Tensor, p: float) -> torch.Tensor:
    """``moment ** (1/p - 1)`` with a vanishing moment mapped to 0."""

    empty = moment == 0
    safe = torch.where(empty, torch.ones_like(moment), moment)
    return torch.where(empty, torch.zeros_like(moment), safe ** (1.0 / p - 1.0))


def shortfall_risk(
    x: ArrayOrTensor,
    q: ArrayOrTensor,
    returns: ArrayOrTensor,
    probs: ArrayOrTensor,
    p: float,
    beta: float,
) -> torch.Tensor:
    """Higher-moment shortfall risk ``q + E[(-x'xi - q)_+^p]^(1/p) / (1 - beta)``."""

    shortfall, _, pr = _shortfall(x, q, returns, probs)
    moment = safe_exponent(shortfall, p) @ pr
    return as_tensor(q, like=shortfall) + moment ** (1.0 / p) / (1.0 - beta)


def grad_risk_x(x, q, returns, probs, p: float, beta: float) -> torch.Tensor:
    shortfall, R, pr = _shortfall(x, q, returns, probs)
    moment = safe_exponent(shortfall, p) @ pr
    weighted = R @ (safe_exponent(shortfall, p - 1.0) * pr)
    return -_moment_power(moment, p) * weighted / (1.0 - beta)


def grad_risk_q(x, q, returns, probs, p: float, beta: float) -> torch.Tensor:
    shortfall, _, pr = _shortfall(x, q, returns, probs)
    moment = safe_exponent(shortfall, p) @ pr
    tail = safe_exponent(shortfall, p - 1.0) @ pr
    return 1.0 - _moment_power(moment, p) * tail / (1.0 - beta)


def risk_function(
    kind: ObjectiveKind,
    x: ArrayOrTensor,
    returns: ArrayOrTensor,
    probs: ArrayOrTensor,
    q: Optional[ArrayOrTensor] = None,
    p: float = 2.0,
    beta: float = 0.5,
) -> float:
    """Objective value at ``x``: expected return or shortfall risk."""

    with torch.no_grad():
        if kind is ObjectiveKind.MAX_RETURN:
            value = expected_return(x, returns, probs)
        else:
            if q is None:
                raise ValueError("shortfall risk requires the quantile variable q")
            value = shortfall_risk(x, q, returns, probs, p, beta)
    return float(value)
