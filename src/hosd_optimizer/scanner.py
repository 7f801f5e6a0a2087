"""Grid check of the dominance constraint over the benchmark threshold range."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .dominance import g_p_profile
from .scenarios import ScenarioSet

DEFAULT_GRID_STEP = 0.001


@dataclass(frozen=True)
class ViolationReport:
    violated: bool
    threshold: Optional[float]
    max_value: float


def threshold_grid(benchmark: np.ndarray, step: float = DEFAULT_GRID_STEP) -> np.ndarray:
    """Uniform grid ``min(benchmark), min + step, ...`` not exceeding ``max(benchmark)``."""

    if step <= 0.0:
        raise ValueError("grid step must be positive")
    b = np.asarray(benchmark, dtype=float)
    lo, hi = float(b.min()), float(b.max())
    count = int(np.floor((hi - lo) / step + 1e-9)) + 1
    return lo + step * np.arange(count, dtype=float)


def check_values(grid: np.ndarray, values: np.ndarray) -> ViolationReport:
    """Worst violator of a sampled ``g_p`` profile; ties go to the first grid point."""

    vals = np.asarray(values, dtype=float)
    if vals.size == 0:
        return ViolationReport(violated=False, threshold=None, max_value=float("-inf"))
    idx = int(np.argmax(vals))
    worst = float(vals[idx])
    if worst > 0.0:
        return ViolationReport(violated=True, threshold=float(grid[idx]), max_value=worst)
    return ViolationReport(violated=False, threshold=None, max_value=worst)


class ViolationScanner:
    """
    Evaluate ``g_p`` on the benchmark threshold grid for a candidate portfolio.

    The dominance constraint must hold for every threshold; the scanner only
    samples the grid, so a violation strictly between grid points is missed.
    A smaller ``step`` tightens the check at a linear runtime cost.
    """

    def __init__(self, scenarios: ScenarioSet, p: float = 2.0, step: float = DEFAULT_GRID_STEP):
        self.scenarios = scenarios
        self.p = float(p)
        self.grid = threshold_grid(scenarios.benchmark, step)

    def profile(self, x: np.ndarray) -> np.ndarray:
        s = self.scenarios
        return g_p_profile(
            self.grid, np.asarray(x, dtype=float), s.returns, s.benchmark, s.probs, s.benchmark_probs, self.p
        )

    def scan(self, x: np.ndarray) -> ViolationReport:
        return check_values(self.grid, self.profile(x))
