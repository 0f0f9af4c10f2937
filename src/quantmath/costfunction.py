# costfunction.py
# Cost-function contract consumed by the optimizers, plus parameter projection.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

import numpy as np

from .constants import FINITE_DIFFERENCE_EPSILON
from .errors import PreconditionError

__all__ = [
    "CostFunction",
    "SimpleCostFunction",
    "Projection",
    "ProjectedCostFunction",
]


# ---------------------------------------------------------------------------
# CostFunction
# ---------------------------------------------------------------------------
class CostFunction(ABC):
    """Objective of an optimization problem.

    Subclasses supply ``values(x)``, the residual vector, and ``value(x)``,
    the scalar objective (typically the sum of squared residuals).  The
    default gradient and Jacobian are central differences (order 2) with a
    bump of ``finite_difference_epsilon``.
    """

    @abstractmethod
    def value(self, x: np.ndarray) -> float:
        ...

    @abstractmethod
    def values(self, x: np.ndarray) -> np.ndarray:
        ...

    def finite_difference_epsilon(self) -> float:
        return FINITE_DIFFERENCE_EPSILON

    def gradient(self, x: np.ndarray) -> np.ndarray:
        """Central-difference gradient of ``value``."""
        eps = self.finite_difference_epsilon()
        x = np.asarray(x, dtype=float)
        xx = x.copy()
        grad = np.empty_like(x)
        for i in range(x.size):
            xx[i] += eps
            fp = self.value(xx)
            xx[i] -= 2.0 * eps
            fm = self.value(xx)
            grad[i] = 0.5 * (fp - fm) / eps
            xx[i] = x[i]
        return grad

    def value_and_gradient(self, x: np.ndarray) -> tuple[float, np.ndarray]:
        return self.value(x), self.gradient(x)

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        """Central-difference Jacobian of ``values``, shape ``(m, n)``."""
        eps = self.finite_difference_epsilon()
        x = np.asarray(x, dtype=float)
        xx = x.copy()
        columns = []
        for i in range(x.size):
            xx[i] += eps
            fp = np.asarray(self.values(xx), dtype=float)
            xx[i] -= 2.0 * eps
            fm = np.asarray(self.values(xx), dtype=float)
            columns.append(0.5 * (fp - fm) / eps)
            xx[i] = x[i]
        return np.column_stack(columns)


class SimpleCostFunction(CostFunction):
    """Least-squares cost function wrapping a residual callable.

    ``value(x)`` is the sum of squared residuals; an analytic Jacobian can
    be passed as ``jac(x) -> (m, n) ndarray``.
    """

    def __init__(
        self,
        residuals: Callable[[np.ndarray], np.ndarray],
        jac: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    ):
        self._residuals = residuals
        self._jac = jac

    def values(self, x: np.ndarray) -> np.ndarray:
        return np.atleast_1d(np.asarray(self._residuals(x), dtype=float))

    def value(self, x: np.ndarray) -> float:
        r = self.values(x)
        return float(np.dot(r, r))

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        if self._jac is None:
            return super().jacobian(x)
        return np.atleast_2d(np.asarray(self._jac(x), dtype=float))


# ---------------------------------------------------------------------------
# Parameter projection: optimize a subset, keep the rest fixed
# ---------------------------------------------------------------------------
class Projection:
    """Map between a full parameter set and its free (non-fixed) subset.

    Parameters
    ----------
    parameter_values : array-like
        Full parameter vector; the fixed entries keep these values.
    fix_parameters : sequence of bool, optional
        ``True`` marks a fixed parameter.  Default: all free.
    """

    def __init__(self, parameter_values, fix_parameters: Optional[Sequence[bool]] = None):
        self._fixed_parameters = np.array(parameter_values, dtype=float)
        if fix_parameters is None or len(fix_parameters) == 0:
            fix_parameters = [False] * self._fixed_parameters.size
        self._fix = np.asarray(fix_parameters, dtype=bool)

        if self._fix.size != self._fixed_parameters.size:
            raise PreconditionError(
                f"{self._fixed_parameters.size} parameters but "
                f"{self._fix.size} fix flags given")
        self.number_of_free_parameters = int(np.count_nonzero(~self._fix))
        if self.number_of_free_parameters == 0:
            raise PreconditionError("no free parameters to project onto")

    def project(self, parameters) -> np.ndarray:
        """Free subset of a full parameter vector."""
        parameters = np.asarray(parameters, dtype=float)
        if parameters.size != self._fix.size:
            raise PreconditionError(
                f"expected {self._fix.size} parameters, got {parameters.size}")
        return parameters[~self._fix].copy()

    def include(self, projected_parameters) -> np.ndarray:
        """Full parameter vector from the free subset."""
        projected_parameters = np.asarray(projected_parameters, dtype=float)
        if projected_parameters.size != self.number_of_free_parameters:
            raise PreconditionError(
                f"expected {self.number_of_free_parameters} free parameters, "
                f"got {projected_parameters.size}")
        y = self._fixed_parameters.copy()
        y[~self._fix] = projected_parameters
        return y


class ProjectedCostFunction(CostFunction, Projection):
    """Cost function of the free parameters only."""

    def __init__(self, cost_function: CostFunction, parameter_values,
                 fix_parameters: Optional[Sequence[bool]] = None):
        Projection.__init__(self, parameter_values, fix_parameters)
        self._cost_function = cost_function

    def value(self, free_parameters) -> float:
        return self._cost_function.value(self.include(free_parameters))

    def values(self, free_parameters) -> np.ndarray:
        return self._cost_function.values(self.include(free_parameters))
