"""Exception hierarchy shared across the package."""
from __future__ import annotations


class HOSDError(RuntimeError):
    """Base class for optimizer failures."""


class ScenarioError(HOSDError, ValueError):
    """Raised when scenario, benchmark or probability inputs are malformed."""


class NewtonConvergenceError(HOSDError):
    """Raised when a Newton solve ends above tolerance and the policy is strict."""

    def __init__(self, residual_norm: float, eval_count: int, round_index: int) -> None:
        super().__init__(
            f"Newton failed to converge in round {round_index}: "
            f"||F||={residual_norm:.3e} after {eval_count} evaluations"
        )
        self.residual_norm = residual_norm
        self.eval_count = eval_count
        self.round_index = round_index


class DominanceNotStabilizedError(HOSDError):
    """Raised when the cutting-plane loop ends with a dominance violation left."""

    def __init__(self, message: str, thresholds: tuple[float, ...] = ()) -> None:
        super().__init__(message)
        self.thresholds = tuple(thresholds)
