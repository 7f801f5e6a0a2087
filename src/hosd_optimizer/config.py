"""File-driven run configuration."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .lagrangian import DecisionVector
from .objectives import ObjectiveKind
from .optimizer import OptimizerConfig

_INITIAL_FIELDS = (
    "initial_weights",
    "initial_quantile",
    "initial_lambda",
    "initial_mu",
    "initial_nu",
    "initial_threshold",
)


class RunConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    csv: str
    benchmark_csv: Optional[str] = None
    layout: Literal["scenarios_in_rows", "assets_in_rows"] = "scenarios_in_rows"
    prices: bool = False
    time_column: Optional[str] = None
    objective: Literal["max_return", "min_risk"] = "max_return"
    p: float = Field(ge=2.0, default=2.0)
    beta: float = Field(gt=0.0, lt=1.0, default=0.5)
    max_eval: int = Field(ge=1, default=200)
    tol: float = Field(ge=0.0, default=1e-7)
    grid_step: float = Field(gt=0.0, default=0.001)
    max_rounds: int = Field(ge=1, default=50)
    seed: int = 123
    on_newton_failure: Literal["continue", "raise"] = "continue"
    strict: bool = False
    max_runtime: Optional[float] = Field(default=None, gt=0.0)
    initial_weights: Optional[List[float]] = None
    initial_quantile: Optional[float] = None
    initial_lambda: Optional[float] = None
    initial_mu: Optional[float] = None
    initial_nu: Optional[List[float]] = None
    initial_threshold: Optional[float] = None
    out: Optional[str] = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @model_validator(mode="after")
    def check_time_column(self) -> "RunConfig":
        if self.time_column is not None and not self.time_column:
            raise ValueError("time_column must be non-empty when provided")
        return self

    @model_validator(mode="after")
    def check_initial_vectors(self) -> "RunConfig":
        if self.initial_weights is not None and not self.initial_weights:
            raise ValueError("initial_weights must be non-empty when provided")
        if (
            self.initial_weights is not None
            and self.initial_nu is not None
            and len(self.initial_weights) != len(self.initial_nu)
        ):
            raise ValueError("initial_weights and initial_nu must have the same length")
        return self

    @property
    def objective_kind(self) -> ObjectiveKind:
        return ObjectiveKind(self.objective)

    @property
    def has_initial_values(self) -> bool:
        return any(getattr(self, name) is not None for name in _INITIAL_FIELDS)

    def optimizer_config(self) -> OptimizerConfig:
        return OptimizerConfig(
            p=self.p,
            beta=self.beta,
            max_eval=self.max_eval,
            tol=self.tol,
            grid_step=self.grid_step,
            max_rounds=self.max_rounds,
            seed=self.seed,
            on_newton_failure=self.on_newton_failure,
            strict=self.strict,
            max_runtime=self.max_runtime,
        )

    def initial_decision(self, default: DecisionVector) -> DecisionVector:
        """Overlay the configured initial values on ``default``."""

        n_assets = default.x.shape[0]
        for name in ("initial_weights", "initial_nu"):
            values = getattr(self, name)
            if values is not None and len(values) != n_assets:
                raise ValueError(f"{name} must hold {n_assets} values, got {len(values)}")
        q = default.q
        if q is not None and self.initial_quantile is not None:
            q = self.initial_quantile
        return DecisionVector(
            x=default.x if self.initial_weights is None else self.initial_weights,
            lam=default.lam if self.initial_lambda is None else self.initial_lambda,
            mu=default.mu if self.initial_mu is None else self.initial_mu,
            nu=default.nu if self.initial_nu is None else self.initial_nu,
            t=default.t if self.initial_threshold is None else self.initial_threshold,
            q=q,
        )


def load_run_config(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML or JSON mapping; dashes in keys are normalised to underscores."""

    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Run config must evaluate to a mapping")
    return {str(key).replace("-", "_"): value for key, value in data.items()}
