"""Arbitrage-free SABR smile.

The Hagan expansion can imply a negative density at low strikes.  Here the
SABR marginal of the forward is approximated by an absorbed CEV (Bessel)
transition density, evaluated at the SABR "effective distance" from the
forward, which is non-negative by construction and puts the absorbed mass
at zero:

* CEV coordinate ``z(f) = f^(1-beta) / (alpha (1-beta))``, so that the
  driftless CEV forward becomes a Bessel process of index
  ``-1 / (2 (1-beta))`` with unit volatility.
* For a strike ``f`` the Hagan distance is ``x(z)`` with
  ``z = z(F) - z(f)``, ``J(z) = sqrt(1 - 2 rho nu z + nu^2 z^2)`` and
  ``x(z) = log((J - rho + nu z) / (1 - rho)) / nu``; the density is the
  absorbed Bessel density at ``y = z(F) - x(z)``, mapped back to ``f``.
* The absorption probability is the closed-form CEV one,
  ``Q(1 / (2 (1-beta)), z(F)^2 / (2 T))`` with ``Q`` the regularized upper
  incomplete gamma function; the continuous part is normalized to
  ``1 - Q``.
* ``x`` grows only logarithmically in ``|z|``, so for large ``nu^2 T`` the
  mapped density has no integrable upper tail.  The continuous part is
  cut off where ``y`` lies ``TAIL_STDEVS`` standard deviations above
  ``z(F)``, and never beyond ``STRIKE_CAP`` forwards.
* The forward fed into the density is solved for so that the model
  reproduces the market forward (a martingale correction).  The remaining
  mismatch is removed by rescaling strikes, ``f -> lambda f``, which keeps
  the absorbed mass and makes the model forward exact.  A model whose
  forward still misses the market one raises ``ConvergenceError``.

Prices and digitals are integrals of the density, computed with the
20-point tabulated Gauss-Legendre rule on a geometrically graded grid.

References
----------
- Doust, P. No-arbitrage SABR. *Journal of Computational Finance* 15
  (2012).
- Hagan, P., Kumar, D., Lesniewski, A., Woodward, D. Managing smile risk.
  *Wilmott Magazine* (2002).
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from scipy.optimize import brentq
from scipy.special import gammaincc, ive

from .black_formula import CALL, PUT, OptionType, try_black_formula_implied_std_dev
from .errors import ConvergenceError, PreconditionError
from .logging import get_logger
from .quadrature import TabulatedGaussLegendre
from .sabr import unsafe_sabr_volatility
from .smile_section import SmileSection, VolatilityType

__all__ = ["NoArbSabrModel", "NoArbSabrSmileSection"]

logger = get_logger(__name__)

# admissible parameter region
BETA_MIN, BETA_MAX = 0.01, 0.99
EXPIRY_TIME_MAX = 30.0
SIGMA_I_MIN, SIGMA_I_MAX = 0.05, 1.00
NU_MIN, NU_MAX = 0.01, 0.80
RHO_MIN, RHO_MAX = -0.99, 0.99

TINY_PROB = 1.0e-5
FORWARD_ACCURACY = 1.0e-6
# support of the continuous part
TAIL_STDEVS = 8.0
STRIKE_CAP = 100.0
# integration grid, in units of the forward
_GRID_LOW = 1.0e-8
_GRID_KNEE = 0.1
_GRID_RATIO = 1.05
_FORWARD_CHECK_STRIKE = 1.0e-12


class NoArbSabrModel:
    """Absorbed-CEV approximation of the SABR forward distribution.

    Parameters
    ----------
    expiry_time : float
        Time to expiry, in ``(0, 30]``.
    forward : float
        Market forward, positive.
    alpha, beta, nu, rho : float
        SABR parameters; ``beta`` in ``[0.01, 0.99]``, ``nu`` in
        ``[0.01, 0.8]``, ``rho`` in ``[-0.99, 0.99]`` and the
        lognormal-equivalent vol ``alpha F^(beta-1)`` in ``[0.05, 1]``.

    Raises
    ------
    PreconditionError
        Parameters outside the admissible region, or an absorption
        probability too close to one.
    ConvergenceError
        The density cannot be integrated to a model forward matching
        ``forward``.
    """

    def __init__(self, expiry_time: float, forward: float,
                 alpha: float, beta: float, nu: float, rho: float):
        if not 0.0 < expiry_time <= EXPIRY_TIME_MAX:
            raise PreconditionError(
                f"expiryTime ({expiry_time}) out of bounds (0, {EXPIRY_TIME_MAX}]")
        if not forward > 0.0:
            raise PreconditionError(f"forward ({forward}) must be positive")
        if not BETA_MIN <= beta <= BETA_MAX:
            raise PreconditionError(
                f"beta ({beta}) out of bounds [{BETA_MIN}, {BETA_MAX}]")
        sigma_i = alpha * forward ** (beta - 1.0)
        if not SIGMA_I_MIN <= sigma_i <= SIGMA_I_MAX:
            raise PreconditionError(
                f"sigmaI = alpha*forward^(beta-1.0) ({sigma_i}) out of bounds "
                f"[{SIGMA_I_MIN}, {SIGMA_I_MAX}]")
        if not NU_MIN <= nu <= NU_MAX:
            raise PreconditionError(f"nu ({nu}) out of bounds [{NU_MIN}, {NU_MAX}]")
        if not RHO_MIN <= rho <= RHO_MAX:
            raise PreconditionError(f"rho ({rho}) out of bounds [{RHO_MIN}, {RHO_MAX}]")

        self.expiry_time = float(expiry_time)
        self.external_forward = float(forward)
        self.alpha = float(alpha)
        self.beta = float(beta)
        self.nu = float(nu)
        self.rho = float(rho)

        self._bessel_index = -0.5 / (1.0 - self.beta)
        self._rule = TabulatedGaussLegendre(20)

        self.forward = self._adjusted_forward()
        self.absorption_probability = self._absorption_probability(self.forward)
        if self.absorption_probability > 1.0 - TINY_PROB:
            raise PreconditionError(
                f"absorption probability ({self.absorption_probability}) too close "
                f"to one, the continuous part of the distribution is negligible")

        self._grid = self._build_grid(self.forward)
        mass, mean = self._moments(self.forward, self._grid)
        if not (mass > 0.0 and mean > 0.0 and math.isfinite(mass) and math.isfinite(mean)):
            raise ConvergenceError(
                f"NoArb SABR density could not be integrated (mass {mass}, mean {mean})")
        self._scale = (1.0 - self.absorption_probability) / mass
        self.strike_scale = self.external_forward / (self._scale * mean)
        logger.debug("NoArb SABR internal forward %.8g, strike scale %.8g",
                     self.forward, self.strike_scale)

        model_forward = self.option_price(_FORWARD_CHECK_STRIKE * self.external_forward)
        if not abs(model_forward - self.external_forward) <= (
                FORWARD_ACCURACY * self.external_forward):
            raise ConvergenceError(
                f"NoArb SABR model forward ({model_forward}) does not match the "
                f"market forward ({self.external_forward})")

    # --- distribution ------------------------------------------------------
    def _z(self, f):
        return np.power(f, 1.0 - self.beta) / (self.alpha * (1.0 - self.beta))

    def _absorption_probability(self, forward: float) -> float:
        z_f = float(self._z(forward))
        return float(gammaincc(-self._bessel_index, z_f * z_f / (2.0 * self.expiry_time)))

    def _unnormalized(self, f, forward: float) -> np.ndarray:
        """Density shape at strikes ``f > 0`` for the internal ``forward``."""
        f = np.asarray(f, dtype=float)
        nu, rho, T = self.nu, self.rho, self.expiry_time
        z_forward = float(self._z(forward))
        z = z_forward - self._z(f)

        J = np.sqrt(1.0 - 2.0 * rho * nu * z + nu * nu * z * z)
        s = nu * z - rho
        # J + s without cancellation when s < 0
        num = np.where(s >= 0.0, J + s, (1.0 - rho * rho) / np.maximum(J - s, 1e-300))
        x = np.log(num / (1.0 - rho)) / nu
        y = z_forward - x

        alive = y > 0.0
        y = np.where(alive, y, 1.0)
        nu_b = self._bessel_index
        with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
            log_q = (np.log(y / T) + nu_b * np.log(y / z_forward)
                     - (y - z_forward) ** 2 / (2.0 * T)
                     + np.log(ive(-nu_b, y * z_forward / T)))
            p = np.exp(log_q - self.beta * np.log(f) - math.log(self.alpha)
                       - 1.5 * np.log(J))
        return np.where(alive & np.isfinite(p), p, 0.0)

    # --- integration -------------------------------------------------------
    def _upper_strike(self, forward: float) -> float:
        """Strike where ``y`` is ``TAIL_STDEVS`` deviations above ``z(F)``."""
        nu, rho = self.nu, self.rho
        x = -TAIL_STDEVS * math.sqrt(self.expiry_time)
        # invert x(z) in closed form
        e = (1.0 - rho) * math.exp(nu * x)
        z = ((e + rho) ** 2 - 1.0) / (2.0 * nu * e)
        z_f = float(self._z(forward)) - z
        one_minus_beta = 1.0 - self.beta
        log_multiple = (math.log(z_f * self.alpha * one_minus_beta) / one_minus_beta
                        - math.log(forward))
        log_multiple = min(max(log_multiple, math.log(2.0)), math.log(STRIKE_CAP))
        return forward * math.exp(log_multiple)

    def _build_grid(self, forward: float) -> np.ndarray:
        fmax = self._upper_strike(forward)
        low = forward * np.geomspace(_GRID_LOW, _GRID_KNEE, 24)
        n_high = int(math.ceil(math.log(fmax / (_GRID_KNEE * forward))
                               / math.log(_GRID_RATIO))) + 1
        high = forward * np.geomspace(_GRID_KNEE, fmax / forward, n_high)
        return np.unique(np.concatenate(([0.0], low, high)))

    def _integrate(self, g, grid: np.ndarray, lower: float = 0.0) -> float:
        """Integral of the vectorized ``g`` over ``[lower, grid[-1]]``."""
        a = np.maximum(grid[:-1], lower)
        b = grid[1:]
        keep = b > a
        a, b = a[keep], b[keep]
        if a.size == 0:
            return 0.0
        half = 0.5 * (b - a)
        mid = 0.5 * (a + b)
        return float(np.sum(half * self._rule(lambda t: g(mid + half * t))))

    def _moments(self, forward: float, grid: np.ndarray) -> tuple[float, float]:
        """Mass and first moment of the unnormalized density."""
        mass = self._integrate(lambda f: self._unnormalized(f, forward), grid)
        mean = self._integrate(lambda f: f * self._unnormalized(f, forward), grid)
        return mass, mean

    def _model_forward(self, forward: float) -> float:
        mass, mean = self._moments(forward, self._build_grid(forward))
        if not (mass > 0.0 and math.isfinite(mass) and math.isfinite(mean)):
            return math.nan
        return (1.0 - self._absorption_probability(forward)) * mean / mass

    def _adjusted_forward(self) -> float:
        target = self.external_forward

        def h(fwd: float) -> float:
            return self._model_forward(fwd) - target

        lo, hi = 0.5 * target, 2.0 * target
        for _ in range(6):
            h_lo, h_hi = h(lo), h(hi)
            if math.isfinite(h_lo) and math.isfinite(h_hi) and h_lo * h_hi <= 0.0:
                break
            lo *= 0.5
            hi *= 2.0
        else:
            logger.info("NoArb SABR forward adjustment found no bracket; the market "
                        "forward %.6g is matched by rescaling strikes", target)
            return target

        root, info = brentq(h, lo, hi, xtol=1e-12 * target, full_output=True, disp=False)
        if not info.converged:
            logger.info("NoArb SABR forward adjustment did not converge; the market "
                        "forward %.6g is matched by rescaling strikes", target)
            return target
        return float(root)

    # --- public surface ----------------------------------------------------
    def density(self, strike: float) -> float:
        """Density of the continuous part at ``strike``."""
        if strike <= 0.0:
            return 0.0
        u = strike / self.strike_scale
        return self._scale * float(self._unnormalized(u, self.forward)) / self.strike_scale

    def option_price(self, strike: float) -> float:
        """Undiscounted call price."""
        if strike <= 0.0:
            return self.external_forward - strike
        u = strike / self.strike_scale
        price = self.strike_scale * self._scale * self._integrate(
            lambda f: (f - u) * self._unnormalized(f, self.forward), self._grid, u)
        return max(price, 0.0)

    def digital_option_price(self, strike: float) -> float:
        """Undiscounted digital call price."""
        if strike < 0.0:
            return 1.0
        if strike == 0.0:
            return 1.0 - self.absorption_probability
        return self._scale * self._integrate(
            lambda f: self._unnormalized(f, self.forward), self._grid,
            strike / self.strike_scale)


# ---------------------------------------------------------------------------
# Smile section
# ---------------------------------------------------------------------------
class NoArbSabrSmileSection(SmileSection):
    """Smile section backed by :class:`NoArbSabrModel`.

    ``volatility`` is the Black volatility implied from the model price;
    where that inversion has no solution the Hagan expansion is returned
    instead.
    """

    def __init__(self, exercise_time: float, forward: float,
                 sabr_parameters: Sequence[float], shift: float = 0.0):
        super().__init__(exercise_time, VolatilityType.SHIFTED_LOGNORMAL, shift)
        if len(sabr_parameters) < 4:
            raise PreconditionError(
                f"sabr expects 4 parameters (alpha,beta,nu,rho) but "
                f"({len(sabr_parameters)}) given")
        if not forward > 0.0:
            raise PreconditionError(f"forward ({forward}) must be positive")
        if shift != 0.0:
            raise PreconditionError(
                f"shift ({shift}) must be zero, other shifts are not implemented")
        self._forward = float(forward)
        self.params = tuple(float(p) for p in sabr_parameters[:4])
        self.model = NoArbSabrModel(self._exercise_time, self._forward, *self.params)

    @property
    def atm_level(self) -> float:
        return self._forward

    @property
    def min_strike(self) -> float:
        return 0.0

    def option_price(self, strike: float, option_type: OptionType = CALL,
                     discount: float = 1.0) -> float:
        call = self.model.option_price(strike)
        if option_type == CALL:
            return discount * call
        return discount * (call - (self._forward - strike))

    def digital_option_price(self, strike: float, option_type: OptionType = CALL,
                             discount: float = 1.0, gap: float = 1.0e-5) -> float:
        call = self.model.digital_option_price(strike)
        return discount * (call if option_type == CALL else 1.0 - call)

    def density(self, strike: float, discount: float = 1.0, gap: float = 1.0e-4) -> float:
        return discount * self.model.density(strike)

    def implied_volatility(self, strike: float):
        """Black volatility implied from the model price, or ``None``."""
        if strike <= 0.0:
            return None
        option_type = CALL if strike >= self._forward else PUT
        price = self.option_price(strike, option_type, 1.0)
        std_dev = try_black_formula_implied_std_dev(
            option_type, strike, self._forward, price, 1.0)
        if std_dev is None or std_dev == 0.0:
            return None
        return std_dev / math.sqrt(self._exercise_time)

    def _volatility_impl(self, strike: float) -> float:
        vol = self.implied_volatility(strike)
        if vol is not None:
            return vol
        if strike <= 0.0:
            raise PreconditionError(f"strike ({strike}) must be positive")
        logger.info("Black inversion failed at strike %.6g, falling back on "
                    "the Hagan expansion", strike)
        alpha, beta, nu, rho = self.params
        return unsafe_sabr_volatility(strike, self._forward, self._exercise_time,
                                      alpha, beta, nu, rho)
