# linesearch_methods.py
# Gradient-based minimizers driven by a line search.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from .constants import EPSILON
from .endcriteria import EndCriteria, EndCriteriaType, StationaryCounter
from .errors import PreconditionError
from .linesearch import ArmijoLineSearch, LineSearch
from .logging import get_logger
from .problem import Problem

__all__ = ["LineSearchBasedMethod", "SteepestDescent", "ConjugateGradient", "BFGS"]

logger = get_logger(__name__)


class LineSearchBasedMethod(ABC):
    """Minimizer alternating a search direction update and a line search.

    Subclasses only decide the next direction.  The loop stops when the
    relative change of the objective drops below
    ``end_criteria.function_epsilon`` (the Numerical Recipes test
    ``2 |f_new - f_old| / (|f_new| + |f_old| + eps)``), when the iteration
    budget is spent, or when the line search fails.
    """

    def __init__(self, line_search: Optional[LineSearch] = None):
        self.line_search = line_search if line_search is not None else ArmijoLineSearch()

    def minimize(self, problem: Problem, end_criteria: EndCriteria) -> EndCriteriaType:
        ftol = end_criteria.function_epsilon
        ec_type = EndCriteriaType.NONE
        problem.reset()
        x = problem.current_value.copy()
        if x.size == 0:
            raise PreconditionError("problem has no starting point")
        if not problem.constraint.test(x):
            raise PreconditionError("starting point violates the constraint")

        self._start(x.size)
        ls = self.line_search
        ls.reset()

        f, prev_gradient = problem.value_and_gradient(x)
        problem.function_value = f
        problem.gradient_norm_value = float(np.dot(prev_gradient, prev_gradient))
        ls.search_direction = -prev_gradient

        t = 1.0
        iteration = 0
        first_time = True
        while True:
            if not first_time:
                prev_gradient = ls.last_gradient
            t, ec_type = ls(problem, ec_type, end_criteria, t)
            if not ls.succeed:
                logger.debug("line search failed at iteration %d", iteration)
                break

            step = ls.last_x - x
            x = ls.last_x.copy()
            f_old = problem.function_value
            problem.function_value = ls.last_function_value
            g_old2 = problem.gradient_norm_value
            problem.gradient_norm_value = ls.last_gradient_norm2

            ls.search_direction = self.updated_direction(problem, g_old2, prev_gradient, step)

            f_new = problem.function_value
            fdiff = 2.0 * abs(f_new - f_old) / (abs(f_new) + abs(f_old) + EPSILON)
            done, ec_type = end_criteria.check_max_iterations(iteration, ec_type)
            if fdiff < ftol or done:
                saturated = StationaryCounter(end_criteria.max_stationary_state_iterations)
                _, ec_type = end_criteria.check_stationary_function_value(
                    0.0, 0.0, saturated, ec_type)
                _, ec_type = end_criteria.check_max_iterations(iteration, ec_type)
                break

            problem.current_value = x
            iteration += 1
            first_time = False

        problem.current_value = x
        logger.debug("%s stopped after %d iterations: %s",
                     type(self).__name__, iteration, ec_type)
        return ec_type

    def _start(self, n: int) -> None:
        """Hook run once per ``minimize`` call."""

    @abstractmethod
    def updated_direction(self, problem: Problem, g_old2: float,
                          prev_gradient: np.ndarray, step: np.ndarray) -> np.ndarray:
        ...


class SteepestDescent(LineSearchBasedMethod):
    """Search along the negative gradient."""

    def updated_direction(self, problem, g_old2, prev_gradient, step):
        return -self.line_search.last_gradient


class ConjugateGradient(LineSearchBasedMethod):
    """Fletcher-Reeves conjugate gradient."""

    def updated_direction(self, problem, g_old2, prev_gradient, step):
        ls = self.line_search
        if g_old2 == 0.0:
            return -ls.last_gradient
        return -ls.last_gradient + (problem.gradient_norm_value / g_old2) * ls.search_direction


class BFGS(LineSearchBasedMethod):
    """Broyden-Fletcher-Goldfarb-Shanno quasi-Newton method.

    The inverse Hessian estimate starts at the identity and is updated from
    the step actually taken and the gradient change; the update is skipped
    when the curvature ``s . y`` is not sufficiently positive.
    """

    def __init__(self, line_search: Optional[LineSearch] = None):
        super().__init__(line_search)
        self.inverse_hessian = np.empty((0, 0))

    def _start(self, n):
        self.inverse_hessian = np.eye(n)

    def updated_direction(self, problem, g_old2, prev_gradient, step):
        H = self.inverse_hessian
        g = self.line_search.last_gradient
        dg = g - prev_gradient
        hdg = H @ dg

        fac = float(np.dot(dg, step))
        fae = float(np.dot(dg, hdg))
        sumdg = float(np.dot(dg, dg))
        sumxi = float(np.dot(step, step))

        if fac > np.sqrt(1e-8 * sumdg * sumxi):
            fac = 1.0 / fac
            fad = 1.0 / fae
            u = fac * step - fad * hdg
            H += fac * np.outer(step, step)
            H -= fad * np.outer(hdg, hdg)
            H += fae * np.outer(u, u)

        return -(H @ g)
