"""Tridiagonal QR eigen decomposition with implicit (Wilkinson) shift.

Computes eigenvalues and, optionally, eigenvectors of a symmetric
tridiagonal matrix given by its diagonal ``d`` (length ``n``) and its
sub-diagonal ``sub`` (length ``n - 1``).

Each sweep deflates the trailing index ``k`` once the coupling term
``e[k]`` no longer changes the floating-point sum ``|d[k-1]| + |d[k]|``;
the zero test is that additive-cancellation idiom rather than an exact
compare.  Results are sorted into descending eigenvalue order and every
eigenvector is sign-normalised so that its first component is
non-negative.

References
----------
- Wilkinson, J.H. and Reinsch, C. *Linear Algebra*, vol. II of Handbook
  for Automatic Computation (Springer, 1971).
- Press, Teukolsky, Vetterling, Flannery. *Numerical Recipes in C*,
  2nd edition, section 11.3.
"""

from __future__ import annotations

import enum

import numpy as np

from .errors import PreconditionError
from .logging import get_logger

__all__ = [
    "EigenVectorCalculation",
    "ShiftStrategy",
    "TqrEigenDecomposition",
]

logger = get_logger(__name__)


class EigenVectorCalculation(enum.Enum):
    WITH_EIGENVECTOR = "full"
    WITHOUT_EIGENVECTOR = "none"
    ONLY_FIRST_ROW_EIGENVECTOR = "first_row"


class ShiftStrategy(enum.Enum):
    NO_SHIFT = "no_shift"
    OVERRELAXATION = "overrelaxation"
    CLOSE_EIGENVALUE = "close_eigenvalue"


class TqrEigenDecomposition:
    """Eigen decomposition of a symmetric tridiagonal matrix.

    Parameters
    ----------
    diag : array-like, shape (n,)
        Main diagonal.
    sub : array-like, shape (n-1,)
        Sub-diagonal (equal to the super-diagonal).
    calc : EigenVectorCalculation
        ``WITH_EIGENVECTOR`` returns the full ``(n, n)`` eigenvector matrix,
        ``ONLY_FIRST_ROW_EIGENVECTOR`` only its first row ``(1, n)`` (all a
        Gaussian quadrature needs), ``WITHOUT_EIGENVECTOR`` an empty
        ``(0, n)`` matrix.
    strategy : ShiftStrategy
        ``CLOSE_EIGENVALUE`` shifts by the eigenvalue of the trailing 2x2
        block closest to ``d[k]``; ``OVERRELAXATION`` does the same with an
        extra 1.25 factor on the last block.
    """

    def __init__(
        self,
        diag,
        sub,
        calc: EigenVectorCalculation = EigenVectorCalculation.WITH_EIGENVECTOR,
        strategy: ShiftStrategy = ShiftStrategy.CLOSE_EIGENVALUE,
    ):
        d = np.array(diag, dtype=float).ravel()
        sub = np.asarray(sub, dtype=float).ravel()
        n = d.size

        if n != sub.size + 1:
            raise PreconditionError(
                f"Wrong dimensions: diagonal has {n} entries, "
                f"sub-diagonal {sub.size} (expected {n - 1})"
            )

        if calc == EigenVectorCalculation.WITH_EIGENVECTOR:
            rows = n
        elif calc == EigenVectorCalculation.WITHOUT_EIGENVECTOR:
            rows = 0
        else:
            rows = 1
        ev = np.zeros((rows, n))
        for i in range(rows):
            ev[i, i] = 1.0

        e = np.zeros(n)
        e[1:] = sub

        self._iter = 0
        for k in range(n - 1, 0, -1):
            while not self._off_diag_is_zero(d, e, k):
                l = k - 1
                while l > 0 and not self._off_diag_is_zero(d, e, l):
                    l -= 1
                self._iter += 1

                q = d[l]
                if strategy != ShiftStrategy.NO_SHIFT:
                    # eigenvalue of the 2x2 block [[d[k-1], e[k]], [e[k], d[k]]]
                    # closest to d[k]
                    t1 = np.sqrt(0.25 * (d[k] * d[k] + d[k - 1] * d[k - 1])
                                 - 0.5 * d[k - 1] * d[k] + e[k] * e[k])
                    t2 = 0.5 * (d[k] + d[k - 1])
                    if abs(t2 + t1 - d[k]) < abs(t2 - t1 - d[k]):
                        lam = t2 + t1
                    else:
                        lam = t2 - t1

                    if strategy == ShiftStrategy.CLOSE_EIGENVALUE:
                        q -= lam
                    else:
                        q -= (1.25 if k == n - 1 else 1.0) * lam

                # QR transformation as a sweep of plane rotations
                sine = 1.0
                cosine = 1.0
                u = 0.0
                recover_underflow = False
                for i in range(l + 1, k + 1):
                    h = cosine * e[i]
                    p = sine * e[i]

                    e[i - 1] = np.sqrt(p * p + q * q)
                    if e[i - 1] != 0.0:
                        sine = p / e[i - 1]
                        cosine = q / e[i - 1]

                        g = d[i - 1] - u
                        t = (d[i] - g) * sine + 2.0 * cosine * h

                        u = sine * t
                        d[i - 1] = g + u
                        q = cosine * t - h

                        if rows:
                            tmp = ev[:, i - 1].copy()
                            ev[:, i - 1] = sine * ev[:, i] + cosine * tmp
                            ev[:, i] = cosine * ev[:, i] - sine * tmp
                    else:
                        # recover from underflow by deflating early
                        d[i - 1] -= u
                        e[l] = 0.0
                        recover_underflow = True
                        break

                if not recover_underflow:
                    d[k] -= u
                    e[k] = q
                    e[l] = 0.0

        # sort (eigenvalue, eigenvector) pairs, descending
        pairs = sorted(
            ((d[i], tuple(ev[:, i])) for i in range(n)),
            reverse=True,
        )
        self._d = np.empty(n)
        self._ev = np.zeros((rows, n))
        for i, (value, vector) in enumerate(pairs):
            self._d[i] = value
            sign = -1.0 if rows > 0 and vector[0] < 0.0 else 1.0
            if rows:
                self._ev[:, i] = sign * np.asarray(vector)

        logger.debug("TQR decomposition of order %d converged after %d iterations",
                     n, self._iter)

    @staticmethod
    def _off_diag_is_zero(d: np.ndarray, e: np.ndarray, k: int) -> bool:
        # see NR for the abort assumption; not part of Wilkinson's algorithm
        s = abs(d[k - 1]) + abs(d[k])
        return s == s + abs(e[k])

    @property
    def eigenvalues(self) -> np.ndarray:
        """Eigenvalues in descending order."""
        return self._d.copy()

    @property
    def eigenvectors(self) -> np.ndarray:
        """Eigenvectors as columns; shape depends on the calculation mode."""
        return self._ev.copy()

    @property
    def iterations(self) -> int:
        """Number of QR sweeps performed."""
        return self._iter
