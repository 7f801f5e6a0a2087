"""Scenario sets and helpers turning price panels into scenario returns."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import ScenarioError

_PROB_TOLERANCE = 1e-8


def _frozen(arr: np.ndarray) -> np.ndarray:
    out = np.array(arr, dtype=float, copy=True)
    out.setflags(write=False)
    return out


def _check_probs(probs: np.ndarray, expected: int, label: str) -> None:
    if probs.ndim != 1 or probs.shape[0] != expected:
        raise ScenarioError(f"{label} must be a vector of length {expected}")
    if not np.isfinite(probs).all() or (probs < 0.0).any():
        raise ScenarioError(f"{label} must be finite and non-negative")
    if abs(float(probs.sum()) - 1.0) > _PROB_TOLERANCE:
        raise ScenarioError(f"{label} must sum to 1 (got {float(probs.sum()):.10f})")


@dataclass(frozen=True)
class ScenarioSet:
    """
    Joint return scenarios and the benchmark they are compared against.

    ``returns`` is an assets x scenarios matrix (one column per joint
    realisation); ``benchmark`` holds one benchmark return per benchmark
    scenario. The probability vectors are paired one-to-one with the columns
    of ``returns`` and the entries of ``benchmark`` respectively.
    """

    returns: np.ndarray
    benchmark: np.ndarray
    probs: np.ndarray
    benchmark_probs: np.ndarray

    def __post_init__(self) -> None:
        returns = np.asarray(self.returns, dtype=float)
        if returns.ndim == 1:
            returns = returns.reshape(1, -1)
        if returns.ndim != 2 or returns.shape[0] == 0 or returns.shape[1] == 0:
            raise ScenarioError("returns must be a non-empty assets x scenarios matrix")
        if not np.isfinite(returns).all():
            raise ScenarioError("returns must be finite")
        benchmark = np.asarray(self.benchmark, dtype=float).ravel()
        if benchmark.size == 0 or not np.isfinite(benchmark).all():
            raise ScenarioError("benchmark must be a non-empty finite vector")
        probs = np.asarray(self.probs, dtype=float).ravel()
        benchmark_probs = np.asarray(self.benchmark_probs, dtype=float).ravel()
        _check_probs(probs, returns.shape[1], "probs")
        _check_probs(benchmark_probs, benchmark.shape[0], "benchmark_probs")

        object.__setattr__(self, "returns", _frozen(returns))
        object.__setattr__(self, "benchmark", _frozen(benchmark))
        object.__setattr__(self, "probs", _frozen(probs))
        object.__setattr__(self, "benchmark_probs", _frozen(benchmark_probs))

    @property
    def n_assets(self) -> int:
        return int(self.returns.shape[0])

    @property
    def n_scenarios(self) -> int:
        return int(self.returns.shape[1])

    @classmethod
    def equal_weighted(
        cls,
        returns: np.ndarray,
        probs: Optional[np.ndarray] = None,
    ) -> "ScenarioSet":
        """Benchmark = equally weighted portfolio of the assets; uniform probabilities by default."""

        arr = np.asarray(returns, dtype=float)
        if arr.ndim == 1:
            arr = arr.reshape(1, -1)
        if arr.ndim != 2 or arr.size == 0:
            raise ScenarioError("returns must be a non-empty assets x scenarios matrix")
        n = arr.shape[1]
        p = np.full(n, 1.0 / n) if probs is None else np.asarray(probs, dtype=float)
        benchmark = arr.mean(axis=0)
        return cls(returns=arr, benchmark=benchmark, probs=p, benchmark_probs=p)


def annualized_returns(prices: np.ndarray, times: Sequence[float]) -> np.ndarray:
    """
    Log returns per unit of time between consecutive observations.

    ``prices`` is assets x observations; the result is assets x
    (observations - 1) with column ``i`` equal to
    ``log(S[:, i+1] / S[:, i]) / (t[i+1] - t[i])``.
    """

    S = np.asarray(prices, dtype=float)
    if S.ndim == 1:
        S = S.reshape(1, -1)
    t = np.asarray(times, dtype=float).ravel()
    if S.shape[1] != t.shape[0]:
        raise ScenarioError("prices and times must have the same number of observations")
    if S.shape[1] < 2:
        raise ScenarioError("at least two observations are required")
    if (S <= 0.0).any():
        raise ScenarioError("prices must be strictly positive")
    dt = np.diff(t)
    if (dt <= 0.0).any():
        raise ScenarioError("times must be strictly increasing")
    return np.log(S[:, 1:] / S[:, :-1]) / dt


def time_weights(times: Sequence[float]) -> np.ndarray:
    """Probability of each observation interval, proportional to its length."""

    t = np.asarray(times, dtype=float).ravel()
    if t.shape[0] < 2:
        raise ScenarioError("at least two time points are required")
    span = t[-1] - t[0]
    if span <= 0.0:
        raise ScenarioError("times must span a positive interval")
    return np.diff(t) / span


LAYOUTS = ("scenarios_in_rows", "assets_in_rows")


def _read_frame(path: Path) -> pd.DataFrame:
    frame = pd.read_csv(path)
    if frame.empty:
        raise ScenarioError(f"{path} contains no rows")
    return frame


def _time_axis(labels: pd.Series) -> np.ndarray:
    """Numeric time axis in years; dates are converted relative to the first one."""

    numeric = pd.to_numeric(labels, errors="coerce")
    if numeric.notna().all():
        return numeric.to_numpy(dtype=float)
    stamps = pd.to_datetime(labels)
    days = (stamps - stamps.iloc[0]).dt.total_seconds() / 86400.0
    return days.to_numpy(dtype=float) / 365.25


def _panel(frame: pd.DataFrame, key: str, layout: str, path) -> Tuple[np.ndarray, pd.Series]:
    """Split a frame into an assets x observations panel and its observation labels."""

    if key not in frame.columns:
        raise ScenarioError(f"column '{key}' not found in {path}")
    value_cols = [col for col in frame.columns if col != key]
    if not value_cols:
        raise ScenarioError(f"{path} has no value columns")
    values = frame[value_cols].to_numpy(dtype=float)
    if layout == "assets_in_rows":
        return values, pd.Series([str(col) for col in value_cols])
    return values.T, frame[key].reset_index(drop=True)


def _returns_and_probs(panel: np.ndarray, labels: pd.Series, prices: bool) -> Tuple[np.ndarray, np.ndarray]:
    if prices:
        times = _time_axis(labels)
        return annualized_returns(panel, times), time_weights(times)
    n = panel.shape[1]
    return panel, np.full(n, 1.0 / n)


def load_scenarios(
    path: Union[str, Path],
    *,
    prices: bool = False,
    benchmark_path: Optional[Union[str, Path]] = None,
    time_column: Optional[str] = None,
    layout: str = "scenarios_in_rows",
) -> ScenarioSet:
    """
    Read a scenario panel from CSV.

    With ``layout="scenarios_in_rows"`` (default) each row is one observation
    and each remaining column one asset; the first column (or ``time_column``)
    indexes observations. With ``layout="assets_in_rows"`` each row is one
    asset, the first column (or ``time_column``) holds asset names and the
    remaining column headers index observations.

    With ``prices=True`` the panel is converted with :func:`annualized_returns`
    and interval-length probabilities; otherwise each observation is one
    scenario with uniform probability. Without ``benchmark_path`` the
    benchmark is the equally weighted portfolio; a benchmark file uses the
    same layout and must hold a single series of the same kind (prices or
    returns).
    """

    if layout not in LAYOUTS:
        raise ValueError(f"layout must be one of {LAYOUTS}")
    frame = _read_frame(Path(path))
    key = time_column if time_column is not None else frame.columns[0]
    panel, labels = _panel(frame, key, layout, path)
    returns, probs = _returns_and_probs(panel, labels, prices)

    if benchmark_path is None:
        return ScenarioSet(
            returns=returns,
            benchmark=returns.mean(axis=0),
            probs=probs,
            benchmark_probs=probs,
        )

    bench_frame = _read_frame(Path(benchmark_path))
    bench_panel, bench_labels = _panel(bench_frame, bench_frame.columns[0], layout, benchmark_path)
    if bench_panel.shape[0] != 1:
        raise ScenarioError("benchmark file must contain exactly one series")
    bench_returns, bench_probs = _returns_and_probs(bench_panel, bench_labels, prices)
    return ScenarioSet(
        returns=returns,
        benchmark=bench_returns.ravel(),
        probs=probs,
        benchmark_probs=bench_probs,
    )
