# problem.py
# Optimization problem: cost function + constraint + current point.

from __future__ import annotations

from typing import Optional

import numpy as np

from .constraints import Constraint, NoConstraint
from .costfunction import CostFunction

__all__ = ["Problem"]


class Problem:
    """State shared between an optimizer and its caller.

    The optimizer moves ``current_value`` and records ``function_value``
    and ``gradient_norm_value`` as it goes; the caller reads them back once
    ``minimize`` returns.  Every cost-function call made through the problem
    is counted.
    """

    def __init__(self, cost_function: CostFunction,
                 constraint: Optional[Constraint] = None,
                 initial_value=None):
        self.cost_function = cost_function
        self.constraint = constraint if constraint is not None else NoConstraint()
        self._current_value = (np.array(initial_value, dtype=float)
                               if initial_value is not None else np.empty(0))
        self.function_value = 0.0
        self.gradient_norm_value = 0.0
        self.function_evaluation = 0
        self.gradient_evaluation = 0

    @property
    def current_value(self) -> np.ndarray:
        return self._current_value

    @current_value.setter
    def current_value(self, x) -> None:
        self._current_value = np.array(x, dtype=float)

    def reset(self) -> None:
        self.function_evaluation = self.gradient_evaluation = 0
        self.function_value = self.gradient_norm_value = 0.0

    # --- counted evaluations ---------------------------------------------
    def value(self, x) -> float:
        self.function_evaluation += 1
        return float(self.cost_function.value(x))

    def values(self, x) -> np.ndarray:
        self.function_evaluation += 1
        return np.asarray(self.cost_function.values(x), dtype=float)

    def gradient(self, x) -> np.ndarray:
        self.gradient_evaluation += 1
        return np.asarray(self.cost_function.gradient(x), dtype=float)

    def value_and_gradient(self, x) -> tuple[float, np.ndarray]:
        self.function_evaluation += 1
        self.gradient_evaluation += 1
        f, g = self.cost_function.value_and_gradient(x)
        return float(f), np.asarray(g, dtype=float)

    def __repr__(self) -> str:
        return (f"Problem(current_value={self._current_value!r}, "
                f"function_value={self.function_value!r})")
