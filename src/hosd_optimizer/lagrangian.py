"""Stationarity (KKT) system of the dominance-constrained Lagrangian."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
import torch
from torch.autograd.functional import jacobian as autograd_jacobian

from .dominance import (
    dominance_gradient,
    g_ind_p,
    g_p,
    g_p_minus_1,
)
from .objectives import (
    ObjectiveKind,
    expected_return,
    grad_expected_return,
    grad_risk_q,
    grad_risk_x,
    shortfall_risk,
)
from .scenarios import ScenarioSet


@dataclass
class DecisionVector:
    """Unpacked decision vector. ``q`` is ``None`` unless the risk objective is used."""

    x: np.ndarray
    lam: float
    mu: float
    nu: np.ndarray
    t: float
    q: Optional[float] = None

    def __post_init__(self) -> None:
        self.x = np.asarray(self.x, dtype=float).ravel()
        self.nu = np.asarray(self.nu, dtype=float).ravel()
        if self.x.shape != self.nu.shape:
            raise ValueError("x and nu must have the same length")


@dataclass(frozen=True)
class DecisionLayout:
    """
    Packing order ``x | q | lambda | mu | nu | t`` of the flat decision vector.

    ``q`` is present only for the risk objective. The layout does not depend
    on the number of active dominance thresholds.
    """

    n_assets: int
    with_quantile: bool = False

    def __post_init__(self) -> None:
        if self.n_assets <= 0:
            raise ValueError("n_assets must be positive")

    @property
    def x(self) -> slice:
        return slice(0, self.n_assets)

    @property
    def q(self) -> Optional[int]:
        return self.n_assets if self.with_quantile else None

    @property
    def lam(self) -> int:
        return self.n_assets + int(self.with_quantile)

    @property
    def mu(self) -> int:
        return self.lam + 1

    @property
    def nu(self) -> slice:
        return slice(self.mu + 1, self.mu + 1 + self.n_assets)

    @property
    def t(self) -> int:
        return self.size - 1

    @property
    def size(self) -> int:
        return 2 * self.n_assets + 3 + int(self.with_quantile)

    def pack(self, decision: DecisionVector) -> np.ndarray:
        if decision.x.shape[0] != self.n_assets:
            raise ValueError(f"expected {self.n_assets} weights, got {decision.x.shape[0]}")
        if self.with_quantile and decision.q is None:
            raise ValueError("layout requires the quantile variable q")
        head = [decision.x]
        if self.with_quantile:
            head.append([decision.q])
        return np.concatenate(
            head + [[decision.lam, decision.mu], decision.nu, [decision.t]]
        ).astype(float)

    def unpack(self, vector: Sequence[float]) -> DecisionVector:
        v = np.asarray(vector, dtype=float)
        if v.shape != (self.size,):
            raise ValueError(f"expected a vector of length {self.size}, got {v.shape}")
        return DecisionVector(
            x=v[self.x].copy(),
            lam=float(v[self.lam]),
            mu=float(v[self.mu]),
            nu=v[self.nu].copy(),
            t=float(v[self.t]),
            q=float(v[self.q]) if self.with_quantile else None,
        )


class LagrangianSystem:
    """
    Residual and Jacobian of the stationarity system for one active threshold set.

    Residual blocks, in order: ``grad_x L``, ``dL/dq`` (risk objective only),
    ``1 - sum(x)``, ``g_{p-1}(t)`` for the ``mu`` condition, ``x * 1[x<0]``,
    ``g_p(t)``, ``g_{p-1}(t)`` and one ``g_ind_p(t_k)`` per active threshold.
    Instances are immutable; :meth:`with_threshold` derives a grown system.
    """

    def __init__(
        self,
        scenarios: ScenarioSet,
        p: float = 2.0,
        kind: ObjectiveKind = ObjectiveKind.MAX_RETURN,
        beta: float = 0.5,
        thresholds: Iterable[float] = (),
        dtype: torch.dtype = torch.float64,
    ) -> None:
        if p < 2.0:
            raise ValueError("dominance order p must be at least 2")
        if kind is ObjectiveKind.MIN_RISK and not (0.0 < beta < 1.0):
            raise ValueError("beta must lie in (0, 1)")
        self.scenarios = scenarios
        self.p = float(p)
        self.kind = kind
        self.beta = float(beta)
        self.dtype = dtype
        self.thresholds: Tuple[float, ...] = tuple(float(t) for t in thresholds)
        self.layout = DecisionLayout(scenarios.n_assets, kind is ObjectiveKind.MIN_RISK)

        self._R = torch.tensor(np.array(scenarios.returns), dtype=dtype)
        self._b = torch.tensor(np.array(scenarios.benchmark), dtype=dtype)
        self._pr = torch.tensor(np.array(scenarios.probs), dtype=dtype)
        self._pb = torch.tensor(np.array(scenarios.benchmark_probs), dtype=dtype)
        self._mean = grad_expected_return(self._R, self._pr)

    @property
    def base_length(self) -> int:
        """Residual length with no active thresholds."""

        return self.layout.size + 1

    @property
    def residual_length(self) -> int:
        return self.base_length + len(self.thresholds)

    def with_threshold(self, threshold: float) -> "LagrangianSystem":
        return LagrangianSystem(
            self.scenarios,
            p=self.p,
            kind=self.kind,
            beta=self.beta,
            thresholds=self.thresholds + (float(threshold),),
            dtype=self.dtype,
        )

    def _split(self, v: torch.Tensor):
        L = self.layout
        q = v[L.q] if L.with_quantile else None
        return v[L.x], q, v[L.lam], v[L.mu], v[L.nu], v[L.t]

    def _assemble(self, v: torch.Tensor) -> torch.Tensor:
        x, q, lam, mu, nu, t = self._split(v)
        data = (self._R, self._b, self._pr, self._pb)
        negative = (x < 0).to(v.dtype)

        if self.kind is ObjectiveKind.MAX_RETURN:
            objective_grad = self._mean
        else:
            objective_grad = grad_risk_x(x, q, self._R, self._pr, self.p, self.beta)
        grad_x = objective_grad - lam + nu * negative + mu * dominance_gradient(t, x, *data, self.p)

        g_lower = g_p_minus_1(t, x, *data, self.p)
        parts = [grad_x]
        if q is not None:
            parts.append(grad_risk_q(x, q, self._R, self._pr, self.p, self.beta).reshape(1))
        parts.extend(
            [
                (1.0 - x.sum()).reshape(1),
                g_lower.reshape(1),
                x * negative,
                g_p(t, x, *data, self.p).reshape(1),
                g_lower.reshape(1),
            ]
        )
        for tk in self.thresholds:
            parts.append(g_ind_p(tk, x, *data, self.p).reshape(1))
        return torch.cat(parts)

    def _tensor(self, vector: Sequence[float]) -> torch.Tensor:
        v = torch.tensor(np.array(vector, dtype=float), dtype=self.dtype)
        if v.shape != (self.layout.size,):
            raise ValueError(f"expected a vector of length {self.layout.size}, got {tuple(v.shape)}")
        return v

    def residual(self, vector: Sequence[float]) -> np.ndarray:
        with torch.no_grad():
            return self._assemble(self._tensor(vector)).cpu().numpy()

    def jacobian(self, vector: Sequence[float]) -> np.ndarray:
        """Jacobian of :meth:`residual` by reverse-mode automatic differentiation."""

        jac = autograd_jacobian(self._assemble, self._tensor(vector))
        return jac.detach().cpu().numpy()

    def lagrangian(self, vector: Sequence[float]) -> float:
        """Scalar Lagrangian value at ``vector`` (diagnostic)."""

        with torch.no_grad():
            x, q, lam, mu, nu, t = self._split(self._tensor(vector))
            if self.kind is ObjectiveKind.MAX_RETURN:
                value = expected_return(x, self._R, self._pr)
            else:
                value = shortfall_risk(x, q, self._R, self._pr, self.p, self.beta)
            value = value + lam * (1.0 - x.sum())
            value = value + mu * g_p(t, x, self._R, self._b, self._pr, self._pb, self.p)
            value = value + (nu * torch.relu(-x)).sum()
        return float(value)
