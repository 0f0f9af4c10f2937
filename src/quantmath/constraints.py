# constraints.py
# Feasibility constraints for optimization problems.

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .constants import MAX_REAL
from .costfunction import Projection
from .errors import ConvergenceError, PreconditionError

__all__ = [
    "Constraint",
    "NoConstraint",
    "PositiveConstraint",
    "BoundaryConstraint",
    "NonhomogeneousBoundaryConstraint",
    "CompositeConstraint",
    "ProjectedConstraint",
]

_MAX_UPDATE_HALVINGS = 200


class Constraint:
    """Base constraint: every point is feasible, bounds are unlimited.

    Subclasses override :meth:`test` and, where meaningful, the bound
    inspectors.
    """

    def test(self, params: np.ndarray) -> bool:
        return True

    def upper_bound(self, params: np.ndarray) -> np.ndarray:
        return np.full(np.size(params), MAX_REAL)

    def lower_bound(self, params: np.ndarray) -> np.ndarray:
        return np.full(np.size(params), -MAX_REAL)

    def update(self, params, direction, beta: float) -> tuple[np.ndarray, float]:
        """Step ``params + beta * direction``, halving ``beta`` until feasible.

        Returns the new point and the step length actually taken.
        """
        params = np.asarray(params, dtype=float)
        direction = np.asarray(direction, dtype=float)
        diff = beta
        new_params = params + diff * direction
        icount = 0
        while not self.test(new_params):
            if icount > _MAX_UPDATE_HALVINGS:
                raise ConvergenceError(
                    f"can't update parameter vector: still infeasible after "
                    f"{_MAX_UPDATE_HALVINGS} step halvings")
            diff *= 0.5
            icount += 1
            new_params = params + diff * direction
        return new_params, diff

    def empty(self) -> bool:
        return False


class NoConstraint(Constraint):
    def empty(self) -> bool:
        return True


class PositiveConstraint(Constraint):
    """Every parameter strictly positive."""

    def test(self, params) -> bool:
        return bool(np.all(np.asarray(params, dtype=float) > 0.0))

    def lower_bound(self, params) -> np.ndarray:
        return np.zeros(np.size(params))


class BoundaryConstraint(Constraint):
    """Every parameter in the same closed interval ``[low, high]``."""

    def __init__(self, low: float, high: float):
        self.low = low
        self.high = high

    def test(self, params) -> bool:
        params = np.asarray(params, dtype=float)
        return bool(np.all((params >= self.low) & (params <= self.high)))

    def upper_bound(self, params) -> np.ndarray:
        return np.full(np.size(params), float(self.high))

    def lower_bound(self, params) -> np.ndarray:
        return np.full(np.size(params), float(self.low))


class NonhomogeneousBoundaryConstraint(Constraint):
    """Parameter ``i`` in ``[low[i], high[i]]``."""

    def __init__(self, low, high):
        self.low = np.array(low, dtype=float)
        self.high = np.array(high, dtype=float)
        if self.low.shape != self.high.shape:
            raise PreconditionError(
                f"upper bound size ({self.high.size}) not equal to "
                f"lower bound size ({self.low.size})")

    def _check_size(self, params: np.ndarray) -> None:
        if params.size != self.low.size:
            raise PreconditionError(
                f"number of parameters ({params.size}) not equal to "
                f"number of bounds ({self.low.size})")

    def test(self, params) -> bool:
        params = np.asarray(params, dtype=float)
        self._check_size(params)
        return bool(np.all((params >= self.low) & (params <= self.high)))

    def upper_bound(self, params) -> np.ndarray:
        self._check_size(np.asarray(params))
        return self.high.copy()

    def lower_bound(self, params) -> np.ndarray:
        self._check_size(np.asarray(params))
        return self.low.copy()


class CompositeConstraint(Constraint):
    """Intersection of two constraints."""

    def __init__(self, c1: Constraint, c2: Constraint):
        self.c1 = c1
        self.c2 = c2

    def test(self, params) -> bool:
        return self.c1.test(params) and self.c2.test(params)

    def upper_bound(self, params) -> np.ndarray:
        return np.minimum(self.c1.upper_bound(params), self.c2.upper_bound(params))

    def lower_bound(self, params) -> np.ndarray:
        return np.maximum(self.c1.lower_bound(params), self.c2.lower_bound(params))


class ProjectedConstraint(Constraint, Projection):
    """Constraint on the free parameters of a :class:`Projection`."""

    def __init__(self, constraint: Constraint, parameter_values,
                 fix_parameters: Optional[Sequence[bool]] = None):
        Projection.__init__(self, parameter_values, fix_parameters)
        self._constraint = constraint

    def test(self, params) -> bool:
        return self._constraint.test(self.include(params))

    def upper_bound(self, params) -> np.ndarray:
        full = self.include(params)
        return self.project(self._constraint.upper_bound(full))

    def lower_bound(self, params) -> np.ndarray:
        full = self.include(params)
        return self.project(self._constraint.lower_bound(full))
