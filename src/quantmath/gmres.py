"""Generalized minimal residual method (GMRES).

Solves ``A x = b`` where ``A`` is only available as a matrix-vector
product callback, so the operator never has to be materialised.  The
Krylov basis is built with Arnoldi / modified Gram-Schmidt, and the
upper-Hessenberg least-squares problem is QR-factorised incrementally with
Givens rotations, so every new basis vector gives the updated residual
norm without re-solving.

An optional right preconditioner ``M`` is applied as ``A M y = b``,
``x = x0 + M y``.

References
----------
- Saad, Y. *Iterative Methods for Sparse Linear Systems* (SIAM, 2003),
  chapter 6.
- Barrett, R. et al. *Templates for the Solution of Linear Systems:
  Building Blocks for Iterative Methods*, 2nd edition (SIAM, 1994).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from .constants import EPSILON
from .errors import ConvergenceError, PreconditionError
from .logging import get_logger

__all__ = ["GMRESResult", "GMRES"]

logger = get_logger(__name__)

MatrixMult = Callable[[np.ndarray], np.ndarray]


@dataclass(frozen=True)
class GMRESResult:
    """Relative residual after each Arnoldi step, and the solution."""
    errors: list[float] = field(default_factory=list)
    x: np.ndarray = field(default_factory=lambda: np.empty(0))


class GMRES:
    """Matrix-free GMRES solver.

    Parameters
    ----------
    A : callable
        ``A(x) -> ndarray``, the matrix-vector product.
    max_iter : int
        Maximum Krylov dimension per cycle.
    rel_tol : float
        Target relative residual ``||b - A x|| / ||b||``.
    preconditioner : callable, optional
        ``M(x) -> ndarray``, applied on the right.
    """

    def __init__(
        self,
        A: MatrixMult,
        max_iter: int,
        rel_tol: float,
        preconditioner: Optional[MatrixMult] = None,
    ):
        if max_iter <= 0:
            raise PreconditionError("max_iter must be greater than zero")
        self._A = A
        self._M = preconditioner
        self.max_iter = max_iter
        self.rel_tol = rel_tol

    def solve(self, b, x0=None) -> GMRESResult:
        """Run one GMRES cycle; raise ``ConvergenceError`` if unconverged."""
        result = self._solve_impl(b, x0)

        if result.errors[-1] >= self.rel_tol:
            raise ConvergenceError(
                f"GMRES could not converge: relative residual "
                f"{result.errors[-1]:.3e} after {len(result.errors) - 1} "
                f"iterations (tolerance {self.rel_tol:.3e})",
                result,
            )
        return result

    def solve_with_restart(self, restart: int, b, x0=None) -> GMRESResult:
        """Restart fresh Arnoldi cycles from the last solution.

        Up to ``restart`` cycles are run in total; the residual histories
        are concatenated.
        """
        result = self._solve_impl(b, x0)
        errors = list(result.errors)

        i = 0
        while i < restart - 1 and result.errors[-1] >= self.rel_tol:
            logger.debug("GMRES restart %d, relative residual %.3e",
                         i + 1, result.errors[-1])
            result = self._solve_impl(b, result.x)
            errors.extend(result.errors)
            i += 1

        result = GMRESResult(errors=errors, x=result.x)
        if errors[-1] >= self.rel_tol:
            raise ConvergenceError(
                f"GMRES could not converge after {restart} restarts: "
                f"relative residual {errors[-1]:.3e}",
                result,
            )
        return result

    # -----------------------------------------------------------------------
    def _precondition(self, v: np.ndarray) -> np.ndarray:
        return np.asarray(self._M(v), dtype=float) if self._M is not None else v

    def _solve_impl(self, b, x0) -> GMRESResult:
        b = np.asarray(b, dtype=float)
        bn = float(np.linalg.norm(b))
        if bn == 0.0:
            return GMRESResult(errors=[0.0], x=b.copy())

        if x0 is None or np.size(x0) == 0:
            x = np.zeros_like(b)
        else:
            x = np.array(x0, dtype=float)
        r = b - np.asarray(self._A(x), dtype=float)

        g = float(np.linalg.norm(r))
        if g / bn < self.rel_tol:
            return GMRESResult(errors=[g / bn], x=x)

        m = self.max_iter
        v = [r / g]
        h = np.zeros((m + 1, m))
        c = np.zeros(m + 1)
        s = np.zeros(m + 1)
        z = np.zeros(m + 1)
        z[0] = g

        errors = [g / bn]

        j = 0
        while j < m and errors[-1] >= self.rel_tol:
            w = np.asarray(self._A(self._precondition(v[j])), dtype=float)

            # modified Gram-Schmidt
            for i in range(j + 1):
                h[i, j] = np.dot(w, v[i])
                w = w - h[i, j] * v[i]

            h[j + 1, j] = np.linalg.norm(w)

            # Krylov subspace exhausted: the current column still enters the
            # least-squares system, but no further basis vector exists
            exhausted = h[j + 1, j] < EPSILON * EPSILON
            if exhausted:
                h[j + 1, j] = 0.0
            else:
                v.append(w / h[j + 1, j])

            # apply previous rotations to the new column
            for i in range(j):
                h0 = c[i] * h[i, j] + s[i] * h[i + 1, j]
                h1 = -s[i] * h[i, j] + c[i] * h[i + 1, j]
                h[i, j] = h0
                h[i + 1, j] = h1

            nu = np.hypot(h[j, j], h[j + 1, j])
            if nu == 0.0:
                logger.debug("GMRES stalled on a singular Hessenberg column at step %d", j)
                break

            c[j] = h[j, j] / nu
            s[j] = h[j + 1, j] / nu

            h[j, j] = nu
            h[j + 1, j] = 0.0

            z[j + 1] = -s[j] * z[j]
            z[j] = c[j] * z[j]

            errors.append(abs(z[j + 1] / bn))
            j += 1

            if exhausted:
                logger.debug("GMRES Krylov subspace exhausted after %d steps", j)
                break

        k = j
        if k == 0:
            return GMRESResult(errors=errors, x=x)

        # back substitution on the k x k upper triangle
        y = np.zeros(k)
        y[k - 1] = z[k - 1] / h[k - 1, k - 1]
        for i in range(k - 2, -1, -1):
            y[i] = (z[i] - np.dot(h[i, i + 1:k], y[i + 1:k])) / h[i, i]

        xm = np.zeros_like(x)
        for i in range(k):
            xm += y[i] * v[i]

        xm = x + self._precondition(xm)
        return GMRESResult(errors=errors, x=xm)
