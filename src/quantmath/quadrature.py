"""Integration of one-dimensional functions with Gaussian quadratures.

A rule of order ``n`` is generated from the recurrence coefficients of an
orthogonal polynomial family (Golub-Welsch): the nodes are the
eigenvalues of the symmetric tridiagonal Jacobi matrix

.. math::

    J = \\begin{pmatrix}
        \\alpha_0 & \\sqrt{\\beta_1} & & \\\\
        \\sqrt{\\beta_1} & \\alpha_1 & \\ddots & \\\\
        & \\ddots & \\ddots & \\sqrt{\\beta_{n-1}} \\\\
        & & \\sqrt{\\beta_{n-1}} & \\alpha_{n-1}
    \\end{pmatrix}

and the weights follow from the first component ``v_{0i}`` of each
normalised eigenvector, ``w_i = mu_0 v_{0i}^2 / w(x_i)``.  Dividing by the
weight function means a rule integrates the *plain* integrand,

.. math::

    \\int f(x)\\,dx \\approx \\sum_i w_i f(x_i),

exactly whenever ``f(x) = w(x) p(x)`` with ``p`` a polynomial of degree at
most ``2n - 1``.

References
----------
- Golub, G.H. and Welsch, J.H. Calculation of Gauss quadrature rules.
  *Math. Comput.* 23 (1969), 221-230.
- Abramowitz, M. and Stegun, I.A. *Handbook of Mathematical Functions*,
  table 25.4 (tabulated Gauss-Legendre abscissas and weights).
"""

from __future__ import annotations

import math
from typing import Callable

import numpy as np

from .errors import PreconditionError
from .orthogonal_polynomials import (
    GaussianOrthogonalPolynomial,
    GaussHermitePolynomial,
    GaussHyperbolicPolynomial,
    GaussJacobiPolynomial,
    GaussLaguerrePolynomial,
)
from .tqr import EigenVectorCalculation, ShiftStrategy, TqrEigenDecomposition

__all__ = [
    "GaussianQuadrature",
    "GaussLaguerreIntegration",
    "GaussHermiteIntegration",
    "GaussJacobiIntegration",
    "GaussHyperbolicIntegration",
    "GaussLegendreIntegration",
    "GaussChebyshevIntegration",
    "GaussChebyshev2ndIntegration",
    "GaussGegenbauerIntegration",
    "TabulatedGaussLegendre",
    "DiscreteTrapezoidIntegral",
    "DiscreteSimpsonIntegral",
    "DiscreteTrapezoidIntegrator",
    "DiscreteSimpsonIntegrator",
    "survival_probability",
]


# ---------------------------------------------------------------------------
# Eigen-decomposition based rules
# ---------------------------------------------------------------------------
class GaussianQuadrature:
    """Gaussian quadrature rule of order ``n`` for a polynomial family.

    Parameters
    ----------
    n : int
        Number of nodes.
    polynomial : GaussianOrthogonalPolynomial
        Family supplying ``mu_0``, ``alpha(i)``, ``beta(i)`` and ``w(x)``.
    """

    def __init__(self, n: int, polynomial: GaussianOrthogonalPolynomial):
        if n < 1:
            raise PreconditionError(f"quadrature order must be positive, got {n}")

        diag = np.array([polynomial.alpha(i) for i in range(n)], dtype=float)
        sub = np.array([math.sqrt(polynomial.beta(i)) for i in range(1, n)],
                       dtype=float)

        tqr = TqrEigenDecomposition(
            diag, sub,
            EigenVectorCalculation.ONLY_FIRST_ROW_EIGENVECTOR,
            ShiftStrategy.OVERRELAXATION,
        )

        x = tqr.eigenvalues
        first_row = tqr.eigenvectors[0]
        mu_0 = polynomial.mu_0()
        w = np.array([mu_0 * first_row[i] * first_row[i] / polynomial.w(x[i])
                      for i in range(n)])

        x.setflags(write=False)
        w.setflags(write=False)
        self._x = x
        self._w = w

    def __call__(self, f: Callable[[float], float]) -> float:
        total = 0.0
        for i in range(self.order - 1, -1, -1):
            total += self._w[i] * f(self._x[i])
        return total

    @property
    def order(self) -> int:
        return self._x.size

    @property
    def x(self) -> np.ndarray:
        """Quadrature nodes (read-only)."""
        return self._x

    @property
    def weights(self) -> np.ndarray:
        """Quadrature weights (read-only)."""
        return self._w


class GaussLaguerreIntegration(GaussianQuadrature):
    """Generalised Gauss-Laguerre, integrates over ``[0, inf)``.

    Weight ``w(x; s) = x^s exp(-x)`` with ``s > -1``.
    """

    def __init__(self, n: int, s: float = 0.0):
        super().__init__(n, GaussLaguerrePolynomial(s))


class GaussHermiteIntegration(GaussianQuadrature):
    """Generalised Gauss-Hermite, integrates over ``(-inf, inf)``.

    Weight ``w(x; mu) = |x|^(2 mu) exp(-x^2)`` with ``mu > -0.5``.
    """

    def __init__(self, n: int, mu: float = 0.0):
        super().__init__(n, GaussHermitePolynomial(mu))


class GaussJacobiIntegration(GaussianQuadrature):
    """Gauss-Jacobi over ``[-1, 1]``, weight ``(1-x)^alpha (1+x)^beta``."""

    def __init__(self, n: int, alpha: float, beta: float):
        super().__init__(n, GaussJacobiPolynomial(alpha, beta))


class GaussHyperbolicIntegration(GaussianQuadrature):
    """Integrates over ``(-inf, inf)`` with weight ``1 / cosh(x)``."""

    def __init__(self, n: int):
        super().__init__(n, GaussHyperbolicPolynomial())


class GaussLegendreIntegration(GaussianQuadrature):
    """Gauss-Legendre over ``[-1, 1]``, unit weight."""

    def __init__(self, n: int):
        super().__init__(n, GaussJacobiPolynomial(0.0, 0.0))


class GaussChebyshevIntegration(GaussianQuadrature):
    """Gauss-Chebyshev over ``[-1, 1]``, weight ``(1 - x^2)^(-1/2)``."""

    def __init__(self, n: int):
        super().__init__(n, GaussJacobiPolynomial(-0.5, -0.5))


class GaussChebyshev2ndIntegration(GaussianQuadrature):
    """Gauss-Chebyshev (second kind), weight ``(1 - x^2)^(1/2)``."""

    def __init__(self, n: int):
        super().__init__(n, GaussJacobiPolynomial(0.5, 0.5))


class GaussGegenbauerIntegration(GaussianQuadrature):
    """Gauss-Gegenbauer, weight ``(1 - x^2)^(lambda - 1/2)``."""

    def __init__(self, n: int, lam: float):
        super().__init__(n, GaussJacobiPolynomial(lam - 0.5, lam - 0.5))


# ---------------------------------------------------------------------------
# Tabulated Gauss-Legendre (Abramowitz & Stegun)
# ---------------------------------------------------------------------------
# Only the non-negative half of each symmetric rule is stored; odd orders
# start with the abscissa 0.
_LEGENDRE_TABLES: dict[int, tuple[tuple[float, ...], tuple[float, ...]]] = {
    6: (
        (0.238619186083197, 0.661209386466265, 0.932469514203152),
        (0.467913934572691, 0.360761573048139, 0.171324492379170),
    ),
    7: (
        (0.000000000000000, 0.405845151377397, 0.741531185599394,
         0.949107912342759),
        (0.417959183673469, 0.381830050505119, 0.279705391489277,
         0.129484966168870),
    ),
    12: (
        (0.125233408511469, 0.367831498998180, 0.587317954286617,
         0.769902674194305, 0.904117256370475, 0.981560634246719),
        (0.249147045813403, 0.233492536538355, 0.203167426723066,
         0.160078328543346, 0.106939325995318, 0.047175336386512),
    ),
    20: (
        (0.076526521133497, 0.227785851141645, 0.373706088715420,
         0.510867001950827, 0.636053680726515, 0.746331906460151,
         0.839116971822219, 0.912234428251326, 0.963971927277914,
         0.993128599185095),
        (0.152753387130726, 0.149172986472604, 0.142096109318382,
         0.131688638449177, 0.118194531961518, 0.101930119817240,
         0.083276741576704, 0.062672048334109, 0.040601429800387,
         0.017614007139152),
    ),
}


class TabulatedGaussLegendre:
    """Gauss-Legendre over ``[-1, 1]`` from precomputed tables.

    Supported orders are 6, 7, 12 and 20; the rule evaluates
    ``f(x) + f(-x)`` pairs so each table holds half the abscissas.
    """

    def __init__(self, n: int = 20):
        self.order = n

    @property
    def order(self) -> int:
        return self._order

    @order.setter
    def order(self, n: int) -> None:
        if n not in _LEGENDRE_TABLES:
            raise PreconditionError(
                f"order {n} not supported; available orders are "
                f"{sorted(_LEGENDRE_TABLES)}")
        self._order = n
        self._x, self._w = _LEGENDRE_TABLES[n]

    def __call__(self, f: Callable[[float], float]) -> float:
        x, w = self._x, self._w
        if self._order & 1:
            val = w[0] * f(x[0])
            start = 1
        else:
            val = 0.0
            start = 0
        for i in range(start, len(x)):
            val += w[i] * f(x[i])
            val += w[i] * f(-x[i])
        return val


# ---------------------------------------------------------------------------
# Integrals of sampled data
# ---------------------------------------------------------------------------
def _check_samples(x, f) -> tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=float)
    f = np.asarray(f, dtype=float)
    if x.shape != f.shape or x.ndim != 1:
        raise PreconditionError(
            f"inconsistent size: {x.shape} abscissas vs {f.shape} values")
    return x, f


class DiscreteTrapezoidIntegral:
    """Trapezoid rule on (possibly non-uniform) samples."""

    def __call__(self, x, f) -> float:
        x, f = _check_samples(x, f)
        return 0.5 * float(np.sum(np.diff(x) * (f[1:] + f[:-1])))


class DiscreteSimpsonIntegral:
    """Simpson's rule on non-uniform samples.

    Consecutive triples are integrated with the exact quadratic through
    them; an even sample count closes with one trapezoid panel.
    """

    def __call__(self, x, f) -> float:
        x, f = _check_samples(x, f)
        n = x.size
        total = 0.0
        for j in range(0, n - 2, 2):
            dxj = x[j + 1] - x[j]
            dxjp1 = x[j + 2] - x[j + 1]
            alpha = -dxjp1 * (2.0 * x[j] - 3.0 * x[j + 1] + x[j + 2])
            dd = x[j + 2] - x[j]
            k = dd / (6.0 * dxjp1 * dxj)
            beta = dd * dd
            gamma = dxj * (x[j] - 3.0 * x[j + 1] + 2.0 * x[j + 2])
            total += k * alpha * f[j] + k * beta * f[j + 1] + k * gamma * f[j + 2]
        if not n & 1:
            total += 0.5 * (x[n - 1] - x[n - 2]) * (f[n - 1] + f[n - 2])
        return float(total)


class _DiscreteIntegrator:
    _rule: Callable

    def __init__(self, evaluations: int):
        if evaluations < 2:
            raise PreconditionError(
                f"at least two evaluations required, got {evaluations}")
        self.max_evaluations = evaluations
        self.number_of_evaluations = 0

    def __call__(self, f: Callable[[float], float], a: float, b: float) -> float:
        x = np.linspace(a, b, self.max_evaluations)
        fv = np.array([f(xi) for xi in x], dtype=float)
        self.number_of_evaluations += self.max_evaluations
        return self._rule(x, fv)


class DiscreteTrapezoidIntegrator(_DiscreteIntegrator):
    """Trapezoid rule on ``evaluations`` equidistant points of ``[a, b]``."""
    _rule = DiscreteTrapezoidIntegral()


class DiscreteSimpsonIntegrator(_DiscreteIntegrator):
    """Simpson's rule on ``evaluations`` equidistant points of ``[a, b]``."""
    _rule = DiscreteSimpsonIntegral()


# ---------------------------------------------------------------------------
# Hazard-rate survival probability
# ---------------------------------------------------------------------------
_survival_rule: GaussChebyshevIntegration | None = None


def survival_probability(hazard_rate: Callable[[float], float], t: float) -> float:
    """Survival probability ``exp(-int_0^t h(s) ds)`` of a hazard-rate curve.

    The integral uses a 48-point Gauss-Chebyshev rule remapped from
    ``[-1, 1]`` onto ``[0, t]``; the rule is built once on first use.
    """
    global _survival_rule
    if t < 0.0:
        raise PreconditionError(f"negative time ({t}) given")
    if t == 0.0:
        return 1.0
    if _survival_rule is None:
        _survival_rule = GaussChebyshevIntegration(48)
    integral = _survival_rule(lambda x: hazard_rate(0.5 * t * (x + 1.0)))
    return math.exp(-integral * 0.5 * t)
