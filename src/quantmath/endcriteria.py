# endcriteria.py
# Multi-criterion termination logic shared by the iterative optimizers.

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from .errors import PreconditionError

__all__ = ["EndCriteriaType", "StationaryCounter", "EndCriteria"]


class EndCriteriaType(enum.Enum):
    """Reason an optimization stopped."""
    NONE = "None"
    MAX_ITERATIONS = "MaxIterations"
    STATIONARY_POINT = "StationaryPoint"
    STATIONARY_FUNCTION_VALUE = "StationaryFunctionValue"
    STATIONARY_FUNCTION_ACCURACY = "StationaryFunctionAccuracy"
    ZERO_GRADIENT_NORM = "ZeroGradientNorm"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


@dataclass
class StationaryCounter:
    """Consecutive stationary-state count, owned by the iteration loop."""
    count: int = 0

    def reset(self) -> None:
        self.count = 0


@dataclass(frozen=True)
class EndCriteria:
    """Criteria to end an optimization process.

    * maximum number of iterations, and minimum number of iterations
      around a stationary point
    * x (independent variable) stationary point
    * y = f(x) (dependent variable) stationary point
    * zero gradient norm

    Parameters
    ----------
    max_iterations : int
        Hard iteration (or evaluation) budget.
    max_stationary_state_iterations : int, optional
        Number of consecutive stationary iterations tolerated before a
        stationary criterion fires.  ``None`` picks
        ``min(max_iterations // 2, 100)``.
    root_epsilon : float
        Tolerance on the variation of the iterate.
    function_epsilon : float
        Tolerance on the variation (and, for positive problems, the value)
        of the objective.
    gradient_norm_epsilon : float, optional
        Tolerance on the gradient norm.  ``None`` falls back to
        ``function_epsilon``.
    """
    max_iterations: int
    max_stationary_state_iterations: Optional[int]
    root_epsilon: float
    function_epsilon: float
    gradient_norm_epsilon: Optional[float] = None

    def __post_init__(self):
        if self.max_stationary_state_iterations is None:
            object.__setattr__(
                self, "max_stationary_state_iterations",
                min(self.max_iterations // 2, 100),
            )
        if self.max_stationary_state_iterations <= 1:
            raise PreconditionError(
                f"max_stationary_state_iterations "
                f"({self.max_stationary_state_iterations}) must be greater than one"
            )
        if self.max_stationary_state_iterations >= self.max_iterations:
            raise PreconditionError(
                f"max_stationary_state_iterations "
                f"({self.max_stationary_state_iterations}) must be less than "
                f"max_iterations ({self.max_iterations})"
            )
        if self.gradient_norm_epsilon is None:
            object.__setattr__(self, "gradient_norm_epsilon", self.function_epsilon)

    # --- individual checks ------------------------------------------------
    # Each returns ``(fired, reason)``; ``reason`` is passed through untouched
    # when the check does not fire.

    def check_max_iterations(
        self, iteration: int,
        ec_type: EndCriteriaType = EndCriteriaType.NONE,
    ) -> tuple[bool, EndCriteriaType]:
        if iteration < self.max_iterations:
            return False, ec_type
        return True, EndCriteriaType.MAX_ITERATIONS

    def check_stationary_point(
        self, x_old: float, x_new: float, stat_state: StationaryCounter,
        ec_type: EndCriteriaType = EndCriteriaType.NONE,
    ) -> tuple[bool, EndCriteriaType]:
        if abs(x_new - x_old) >= self.root_epsilon:
            stat_state.reset()
            return False, ec_type
        stat_state.count += 1
        if stat_state.count <= self.max_stationary_state_iterations:
            return False, ec_type
        return True, EndCriteriaType.STATIONARY_POINT

    def check_stationary_function_value(
        self, fx_old: float, fx_new: float, stat_state: StationaryCounter,
        ec_type: EndCriteriaType = EndCriteriaType.NONE,
    ) -> tuple[bool, EndCriteriaType]:
        if abs(fx_new - fx_old) >= self.function_epsilon:
            stat_state.reset()
            return False, ec_type
        stat_state.count += 1
        if stat_state.count <= self.max_stationary_state_iterations:
            return False, ec_type
        return True, EndCriteriaType.STATIONARY_FUNCTION_VALUE

    def check_stationary_function_accuracy(
        self, f: float, positive_optimization: bool,
        ec_type: EndCriteriaType = EndCriteriaType.NONE,
    ) -> tuple[bool, EndCriteriaType]:
        if not positive_optimization:
            return False, ec_type
        if f >= self.function_epsilon:
            return False, ec_type
        return True, EndCriteriaType.STATIONARY_FUNCTION_ACCURACY

    def check_zero_gradient_norm(
        self, gradient_norm: float,
        ec_type: EndCriteriaType = EndCriteriaType.NONE,
    ) -> tuple[bool, EndCriteriaType]:
        if gradient_norm >= self.gradient_norm_epsilon:
            return False, ec_type
        return True, EndCriteriaType.ZERO_GRADIENT_NORM

    # --- combined test ----------------------------------------------------
    def __call__(
        self,
        iteration: int,
        stat_state: StationaryCounter,
        positive_optimization: bool,
        f_old: float,
        f_new: float,
        grad_norm_new: float,
        ec_type: EndCriteriaType = EndCriteriaType.NONE,
    ) -> tuple[bool, EndCriteriaType]:
        """Test every criterion in order, stopping at the first that fires."""
        fired, ec_type = self.check_max_iterations(iteration, ec_type)
        if fired:
            return True, ec_type
        fired, ec_type = self.check_stationary_function_value(
            f_old, f_new, stat_state, ec_type)
        if fired:
            return True, ec_type
        fired, ec_type = self.check_stationary_function_accuracy(
            f_new, positive_optimization, ec_type)
        if fired:
            return True, ec_type
        return self.check_zero_gradient_norm(grad_norm_new, ec_type)
