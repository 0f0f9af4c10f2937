"""Line searches along a descent direction.

A line search is handed a :class:`~quantmath.problem.Problem` whose
``function_value`` and ``gradient_norm_value`` describe the current point,
plus a search direction ``d`` stored on the line search itself.  It returns
an accepted step ``t`` and leaves the trial point, its objective value and
its gradient in ``last_x``, ``last_function_value`` and ``last_gradient``.

Both searches compare ``q(t) = f(x + t d)`` with the linear model
``q(0) + t q'(0)`` where ``q'(0) = g . d``:

* Armijo backtracks by ``beta`` until ``q(t) - q(0) <= -alpha t |q'(0)|``
  while keeping the previous (longer) trial rejected.
* Goldstein-Price brackets ``t`` so that
  ``-beta t |q'(0)| <= q(t) - q(0) <= -alpha t |q'(0)|``: bisection once
  both bracket ends are known, extrapolation by ``extrapolation`` while only
  a lower end is.

Every trial point is pulled back into the feasible set with the problem
constraint's step halving.

References
----------
- Nocedal, J. and Wright, S. *Numerical Optimization*, 2nd edition,
  section 3.1.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from .constants import close_enough
from .constraints import Constraint
from .endcriteria import EndCriteria, EndCriteriaType
from .problem import Problem

__all__ = ["LineSearch", "ArmijoLineSearch", "GoldsteinLineSearch"]


class LineSearch(ABC):
    """State common to every line search."""

    def __init__(self, eps: float = 1e-8):
        self.eps = eps
        self.search_direction = np.empty(0)
        self.last_x = np.empty(0)
        self.last_function_value = 0.0
        self.last_gradient = np.empty(0)
        self.last_gradient_norm2 = 0.0
        self.succeed = True

    def reset(self) -> None:
        self.last_gradient = np.empty(0)
        self.succeed = True

    @staticmethod
    def update(params, direction, beta: float, constraint: Constraint) -> tuple[np.ndarray, float]:
        """Feasible point along ``direction``; see :meth:`Constraint.update`."""
        return constraint.update(params, direction, beta)

    def _start(self, problem: Problem) -> tuple[float, float]:
        """Objective at the current point and the initial slope magnitude."""
        q0 = problem.function_value
        if self.last_gradient.size == 0:
            qp0 = problem.gradient_norm_value
        else:
            qp0 = -float(np.dot(self.last_gradient, self.search_direction))
        return q0, qp0

    def _trial(self, problem: Problem, t: float) -> float:
        self.last_x, t = self.update(problem.current_value, self.search_direction,
                                     t, problem.constraint)
        self.last_function_value = problem.value(self.last_x)
        return t

    def _finish(self, problem: Problem) -> None:
        self.last_gradient = problem.gradient(self.last_x)
        self.last_gradient_norm2 = float(np.dot(self.last_gradient, self.last_gradient))

    @abstractmethod
    def __call__(self, problem: Problem, ec_type: EndCriteriaType,
                 end_criteria: EndCriteria, t_ini: float) -> tuple[float, EndCriteriaType]:
        """Return the accepted step and the (possibly updated) end reason."""


class ArmijoLineSearch(LineSearch):
    """Backtracking line search on the Armijo sufficient-decrease rule.

    Parameters
    ----------
    alpha : float
        Sufficient-decrease fraction of the linear model.
    beta : float
        Backtracking factor applied to the step.
    """

    def __init__(self, eps: float = 1e-8, alpha: float = 0.05, beta: float = 0.65):
        super().__init__(eps)
        self.alpha = alpha
        self.beta = beta

    def __call__(self, problem, ec_type, end_criteria, t_ini):
        self.succeed = True
        max_iter = False
        q0, qpt = self._start(problem)

        t = self._trial(problem, t_ini)

        if self.last_function_value - q0 > -self.alpha * t * qpt:
            loop_number = 0
            while True:
                loop_number += 1
                t *= self.beta
                qt_old = self.last_function_value
                t = self._trial(problem, t)
                max_iter, ec_type = end_criteria.check_max_iterations(loop_number, ec_type)

                insufficient = self.last_function_value - q0 > -self.alpha * t * qpt
                too_short = qt_old - q0 <= -self.alpha * t * qpt / self.beta
                if not (insufficient or too_short) or max_iter:
                    break

        if max_iter:
            self.succeed = False

        self._finish(problem)
        return t, ec_type


class GoldsteinLineSearch(LineSearch):
    """Goldstein-Price line search.

    Parameters
    ----------
    alpha : float
        Lower fraction of the linear model (sufficient decrease).
    beta : float
        Upper fraction of the linear model (step not too short).
    extrapolation : float
        Growth factor of the step while no upper bracket is known.
    """

    def __init__(self, eps: float = 1e-8, alpha: float = 0.05, beta: float = 0.65,
                 extrapolation: float = 1.5):
        super().__init__(eps)
        self.alpha = alpha
        self.beta = beta
        self.extrapolation = extrapolation

    def __call__(self, problem, ec_type, end_criteria, t_ini):
        self.succeed = True
        max_iter = False
        q0, qpt = self._start(problem)
        tl = tr = 0.0
        loop_number = 0

        t = self._trial(problem, t_ini)

        while True:
            dq = self.last_function_value - q0
            too_long = dq > -self.alpha * t * qpt
            too_short = dq < -self.beta * t * qpt
            if not (too_long or too_short):
                break
            if too_long:
                tr = t
            else:
                tl = t
            loop_number += 1

            if close_enough(tr, 0.0):
                t *= self.extrapolation
            else:
                t = 0.5 * (tl + tr)

            t = self._trial(problem, t)
            max_iter, ec_type = end_criteria.check_max_iterations(loop_number, ec_type)
            if max_iter:
                break

        if max_iter:
            self.succeed = False

        self._finish(problem)
        return t, ec_type
