"""Pytest configuration helpers for the test suite."""
from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

_HERE = Path(__file__).resolve()
_PKG_ROOT = _HERE.parents[1]
_SRC = _PKG_ROOT / "src"

if _SRC.is_dir():
    p = str(_SRC)
    if p not in sys.path:
        sys.path.insert(0, p)

from hosd_optimizer.scenarios import ScenarioSet  # noqa: E402


@pytest.fixture
def two_asset_returns() -> np.ndarray:
    # asset 0 beats asset 1 in both scenarios
    return np.array([[0.10, 0.04], [0.02, 0.03]], dtype=float)


@pytest.fixture
def two_asset_scenarios(two_asset_returns: np.ndarray) -> ScenarioSet:
    return ScenarioSet.equal_weighted(two_asset_returns)


@pytest.fixture
def single_asset_scenarios() -> ScenarioSet:
    return ScenarioSet.equal_weighted(np.array([[0.05, -0.02, 0.03]]))


@pytest.fixture
def unreachable_benchmark() -> ScenarioSet:
    """Benchmark strictly above anything the single asset can deliver."""

    return ScenarioSet(
        returns=np.array([[0.0, 0.01]]),
        benchmark=np.array([0.05, 0.06]),
        probs=np.array([0.5, 0.5]),
        benchmark_probs=np.array([0.5, 0.5]),
    )
