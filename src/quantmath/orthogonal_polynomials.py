"""Orthogonal polynomials for Gaussian quadratures.

Each family is defined by the three-term recurrence

.. math::

    P_{k+1}(x) = (x - \\alpha_k) P_k(x) - \\beta_k P_{k-1}(x),
    \\qquad P_0 = 1, \\; P_1 = x - \\alpha_0

together with its weight function ``w(x)`` and zeroth moment
``mu_0 = \\int w(x) dx``.  The recurrence coefficients are what the
Golub-Welsch algorithm in :mod:`quantmath.quadrature` needs to build the
Jacobi matrix of a rule.

References
----------
- Golub, G.H. and Welsch, J.H. Calculation of Gauss quadrature rules.
  *Math. Comput.* 23 (1969), 221-230.
- Press, Teukolsky, Vetterling, Flannery. *Numerical Recipes in C*,
  2nd edition, section 4.5.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

from scipy.special import gammaln

from .errors import PreconditionError

__all__ = [
    "GaussianOrthogonalPolynomial",
    "GaussLaguerrePolynomial",
    "GaussHermitePolynomial",
    "GaussJacobiPolynomial",
    "GaussLegendrePolynomial",
    "GaussChebyshevPolynomial",
    "GaussChebyshev2ndPolynomial",
    "GaussGegenbauerPolynomial",
    "GaussHyperbolicPolynomial",
]


class GaussianOrthogonalPolynomial(ABC):
    """Recurrence coefficients and weight of an orthogonal polynomial family."""

    @abstractmethod
    def mu_0(self) -> float:
        ...

    @abstractmethod
    def alpha(self, i: int) -> float:
        ...

    @abstractmethod
    def beta(self, i: int) -> float:
        ...

    @abstractmethod
    def w(self, x: float) -> float:
        ...

    def value(self, n: int, x: float) -> float:
        """Evaluate the monic polynomial ``P_n(x)`` by forward recurrence."""
        if n == 0:
            return 1.0
        p_prev, p = 1.0, x - self.alpha(0)
        for k in range(1, n):
            p_prev, p = p, (x - self.alpha(k)) * p - self.beta(k) * p_prev
        return p

    def weighted_value(self, n: int, x: float) -> float:
        return math.sqrt(self.w(x)) * self.value(n, x)


# ---------------------------------------------------------------------------
# Laguerre: w(x) = x^s exp(-x) on [0, inf)
# ---------------------------------------------------------------------------
class GaussLaguerrePolynomial(GaussianOrthogonalPolynomial):
    def __init__(self, s: float = 0.0):
        if not s > -1.0:
            raise PreconditionError(f"s must be bigger than -1, got {s}")
        self.s = s

    def mu_0(self) -> float:
        return math.exp(gammaln(self.s + 1.0))

    def alpha(self, i: int) -> float:
        return 2 * i + 1 + self.s

    def beta(self, i: int) -> float:
        return i * (i + self.s)

    def w(self, x: float) -> float:
        return x ** self.s * math.exp(-x)


# ---------------------------------------------------------------------------
# Hermite: w(x) = |x|^(2 mu) exp(-x^2) on (-inf, inf)
# ---------------------------------------------------------------------------
class GaussHermitePolynomial(GaussianOrthogonalPolynomial):
    def __init__(self, mu: float = 0.0):
        if not mu > -0.5:
            raise PreconditionError(f"mu must be bigger than -0.5, got {mu}")
        self.mu = mu

    def mu_0(self) -> float:
        return math.exp(gammaln(self.mu + 0.5))

    def alpha(self, i: int) -> float:
        return 0.0

    def beta(self, i: int) -> float:
        return i / 2.0 + self.mu if i % 2 else i / 2.0

    def w(self, x: float) -> float:
        return abs(x) ** (2.0 * self.mu) * math.exp(-x * x)


# ---------------------------------------------------------------------------
# Jacobi: w(x) = (1-x)^alpha (1+x)^beta on [-1, 1]
# ---------------------------------------------------------------------------
class GaussJacobiPolynomial(GaussianOrthogonalPolynomial):
    """Jacobi family; Legendre, Chebyshev and Gegenbauer are special cases.

    For some parameter pairs the textbook recurrence coefficients have a
    vanishing denominator at low ``i`` (e.g. ``i = 0`` with
    ``alpha + beta = 0``).  When the numerator vanishes too the limit is
    taken with l'Hopital's rule; a non-zero numerator there means the
    coefficient does not exist.
    """

    def __init__(self, alpha: float, beta: float):
        if not alpha + beta > -2.0:
            raise PreconditionError("alpha+beta must be bigger than -2")
        if not alpha > -1.0:
            raise PreconditionError("alpha must be bigger than -1")
        if not beta > -1.0:
            raise PreconditionError("beta must be bigger than -1")
        self._alpha = alpha
        self._beta = beta

    def mu_0(self) -> float:
        a, b = self._alpha, self._beta
        return 2.0 ** (a + b + 1.0) * math.exp(
            gammaln(a + 1.0) + gammaln(b + 1.0) - gammaln(a + b + 2.0))

    def alpha(self, i: int) -> float:
        a, b = self._alpha, self._beta
        num = b * b - a * a
        denom = (2.0 * i + a + b) * (2.0 * i + a + b + 2.0)

        if denom == 0.0:
            if num != 0.0:
                raise PreconditionError(
                    f"can't compute a_{i} for Jacobi integration "
                    f"(alpha={a}, beta={b})")
            # l'Hopital
            num = 2.0 * b
            denom = 2.0 * (2.0 * i + a + b + 1.0)
            if denom == 0.0:
                raise PreconditionError(
                    f"can't compute a_{i} for Jacobi integration "
                    f"(alpha={a}, beta={b})")

        return num / denom

    def beta(self, i: int) -> float:
        a, b = self._alpha, self._beta
        num = 4.0 * i * (i + a) * (i + b) * (i + a + b)
        s = 2.0 * i + a + b
        denom = s * s * (s * s - 1.0)

        if denom == 0.0:
            if num != 0.0:
                raise PreconditionError(
                    f"can't compute b_{i} for Jacobi integration "
                    f"(alpha={a}, beta={b})")
            # l'Hopital
            num = 4.0 * i * (i + b) * (2.0 * i + 2.0 * a + b)
            denom = 2.0 * s
            denom *= denom - 1.0
            if denom == 0.0:
                raise PreconditionError(
                    f"can't compute b_{i} for Jacobi integration "
                    f"(alpha={a}, beta={b})")

        return num / denom

    def w(self, x: float) -> float:
        return (1.0 - x) ** self._alpha * (1.0 + x) ** self._beta


class GaussLegendrePolynomial(GaussJacobiPolynomial):
    def __init__(self):
        super().__init__(0.0, 0.0)


class GaussChebyshevPolynomial(GaussJacobiPolynomial):
    """First kind, w(x) = (1 - x^2)^(-1/2)."""

    def __init__(self):
        super().__init__(-0.5, -0.5)


class GaussChebyshev2ndPolynomial(GaussJacobiPolynomial):
    """Second kind, w(x) = (1 - x^2)^(1/2)."""

    def __init__(self):
        super().__init__(0.5, 0.5)


class GaussGegenbauerPolynomial(GaussJacobiPolynomial):
    """w(x) = (1 - x^2)^(lambda - 1/2)."""

    def __init__(self, lam: float):
        super().__init__(lam - 0.5, lam - 0.5)


# ---------------------------------------------------------------------------
# Hyperbolic: w(x) = 1 / cosh(x) on (-inf, inf)
# ---------------------------------------------------------------------------
class GaussHyperbolicPolynomial(GaussianOrthogonalPolynomial):
    def mu_0(self) -> float:
        return math.pi

    def alpha(self, i: int) -> float:
        return 0.0

    def beta(self, i: int) -> float:
        return (0.5 * math.pi) ** 2 * i * i if i else math.pi

    def w(self, x: float) -> float:
        return 1.0 / math.cosh(x)
