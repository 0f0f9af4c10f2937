"""Levenberg-Marquardt least-squares minimizer.

The heavy lifting is MINPACK ``lmdif`` as shipped by
:func:`scipy.optimize.leastsq`.  By default the Jacobian is built by
MINPACK's own forward differences (order 1, ``n`` extra evaluations per
Jacobian).  With ``use_cost_functions_jacobian=True`` the cost function's
``jacobian`` is used instead; note the :class:`~quantmath.CostFunction`
default there is a central difference (order 2, ``2 n`` evaluations).

Constraints are only honoured crudely: a trial point failing
``constraint.test`` is answered with the residuals (and Jacobian) of the
starting point, which steers MINPACK back towards the feasible region.
The starting point should therefore not sit close to the boundary.

MINPACK return codes (``info``)
-------------------------------
==== =====================================================================
0    improper input parameters
1    both actual and predicted relative reductions are at most ``ftol``
2    relative error between two consecutive iterates is at most ``xtol``
3    conditions 1 and 2 both hold
4    ``fvec`` is orthogonal to the Jacobian columns to ``gtol``
5    number of calls to ``fcn`` reached ``maxfev``
6    ``ftol`` too small, no further reduction of the sum of squares
7    ``xtol`` too small, no further improvement of ``x``
8    ``gtol`` too small, ``fvec`` orthogonal to the Jacobian columns
==== =====================================================================
"""

from __future__ import annotations

import numpy as np
from scipy.optimize import leastsq

from .endcriteria import EndCriteria, EndCriteriaType
from .errors import ConvergenceError, PreconditionError
from .logging import get_logger
from .problem import Problem

__all__ = ["LevenbergMarquardt"]

logger = get_logger(__name__)


class LevenbergMarquardt:
    """MINPACK-based Levenberg-Marquardt optimization method.

    Parameters
    ----------
    epsfcn : float
        Relative step of the forward-difference Jacobian.
    xtol : float
        Relative tolerance on the iterate.
    gtol : float
        Orthogonality tolerance between residuals and Jacobian columns.
    use_cost_functions_jacobian : bool
        Use ``problem.cost_function.jacobian`` instead of MINPACK's
        finite differences.
    """

    def __init__(
        self,
        epsfcn: float = 1.0e-8,
        xtol: float = 1.0e-8,
        gtol: float = 1.0e-8,
        use_cost_functions_jacobian: bool = False,
    ):
        self.epsfcn = epsfcn
        self.xtol = xtol
        self.gtol = gtol
        self.use_cost_functions_jacobian = use_cost_functions_jacobian
        self.info = 0
        self._problem: Problem | None = None
        self._init_cost_values = np.empty(0)
        self._init_jacobian = np.empty((0, 0))

    # --- MINPACK callbacks -----------------------------------------------
    def _fcn(self, x: np.ndarray) -> np.ndarray:
        if self._problem.constraint.test(x):
            return self._problem.values(x)
        return self._init_cost_values

    def _jac_fcn(self, x: np.ndarray) -> np.ndarray:
        if self._problem.constraint.test(x):
            return self._problem.cost_function.jacobian(x)
        return self._init_jacobian

    # --- driver ------------------------------------------------------------
    def minimize(self, problem: Problem, end_criteria: EndCriteria) -> EndCriteriaType:
        """Minimize the sum of squared residuals of ``problem``.

        Returns the end-criteria reason; the optimum is left in
        ``problem.current_value`` and its objective in
        ``problem.function_value``.

        Raises
        ------
        PreconditionError
            Empty starting point, fewer residuals than variables, negative
            tolerances, zero evaluation budget, or MINPACK rejecting its
            input.
        ConvergenceError
            MINPACK stopped because ``xtol`` or ``gtol`` is too small to
            make further progress (codes 7 and 8).
        """
        ec_type = EndCriteriaType.NONE
        problem.reset()
        x0 = problem.current_value.copy()
        self._problem = problem

        n = x0.size
        if n == 0:
            raise PreconditionError("no variables given")

        self._init_cost_values = np.atleast_1d(
            np.asarray(problem.cost_function.values(x0), dtype=float))
        m = self._init_cost_values.size
        if self.use_cost_functions_jacobian:
            self._init_jacobian = np.asarray(problem.cost_function.jacobian(x0), dtype=float)

        if m < n:
            raise PreconditionError(
                f"less functions ({m}) than available variables ({n})")
        if end_criteria.function_epsilon < 0.0:
            raise PreconditionError("negative f tolerance")
        if self.xtol < 0.0:
            raise PreconditionError("negative x tolerance")
        if self.gtol < 0.0:
            raise PreconditionError("negative g tolerance")
        if end_criteria.max_iterations <= 0:
            raise PreconditionError("null number of evaluations")

        x, _, infodict, mesg, info = leastsq(
            self._fcn,
            x0,
            Dfun=self._jac_fcn if self.use_cost_functions_jacobian else None,
            full_output=True,
            ftol=end_criteria.function_epsilon,
            xtol=self.xtol,
            gtol=self.gtol,
            maxfev=end_criteria.max_iterations,
            epsfcn=self.epsfcn,
        )
        self.info = int(info)
        nfev = int(infodict["nfev"])
        logger.debug("MINPACK lmdif returned info=%d after %d evaluations: %s",
                     self.info, nfev, mesg)

        if self.info == 0:
            raise PreconditionError(f"MINPACK: improper input parameters ({mesg})")
        if self.info != 6:
            ec_type = EndCriteriaType.STATIONARY_FUNCTION_VALUE
        _, ec_type = end_criteria.check_max_iterations(nfev, ec_type)
        if self.info == 7:
            raise ConvergenceError(
                "MINPACK: xtol is too small. no further improvement in the "
                "approximate solution x is possible.", np.array(x, dtype=float))
        if self.info == 8:
            raise ConvergenceError(
                "MINPACK: gtol is too small. fvec is orthogonal to the columns "
                "of the jacobian to machine precision.", np.array(x, dtype=float))

        x = np.atleast_1d(np.asarray(x, dtype=float))
        problem.current_value = x
        problem.function_value = float(problem.cost_function.value(x))
        return ec_type
