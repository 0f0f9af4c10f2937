"""Hagan et al. (2002) SABR implied volatility expansion.

The SABR model

.. math::

    dF = \\alpha_t F^\\beta dW_1, \\qquad d\\alpha = \\nu \\alpha_t dW_2,
    \\qquad d\\langle W_1, W_2 \\rangle = \\rho\\, dt

has no closed-form prices; the asymptotic expansion below gives the
lognormal (Black) implied volatility.  It is accurate for short expiries
and moderate vol-of-vol, and may produce arbitrageable densities for low
strikes (see :mod:`quantmath.noarb_sabr` for the arbitrage-free variant).

The ``unsafe_*`` functions skip parameter validation for use inside
calibration loops where the parameters are already known to be valid.
"""

from __future__ import annotations

import math

from .constants import EPSILON, close_enough
from .errors import PreconditionError

__all__ = [
    "validate_sabr_parameters",
    "unsafe_sabr_volatility",
    "unsafe_shifted_sabr_volatility",
    "sabr_volatility",
    "shifted_sabr_volatility",
]


def validate_sabr_parameters(alpha: float, beta: float, nu: float, rho: float) -> None:
    """Raise ``PreconditionError`` unless the parameters are admissible."""
    if not alpha > 0.0:
        raise PreconditionError(f"alpha must be positive: {alpha} not allowed")
    if not 0.0 <= beta <= 1.0:
        raise PreconditionError(f"beta must be in (0.0, 1.0): {beta} not allowed")
    if not nu >= 0.0:
        raise PreconditionError(f"nu must be non negative: {nu} not allowed")
    if not rho * rho < 1.0:
        raise PreconditionError(f"rho square must be less than one: {rho} not allowed")


def unsafe_sabr_volatility(strike: float, forward: float, expiry_time: float,
                           alpha: float, beta: float, nu: float, rho: float) -> float:
    one_minus_beta = 1.0 - beta
    A = (forward * strike) ** one_minus_beta
    sqrtA = math.sqrt(A)

    if not close_enough(forward, strike):
        log_m = math.log(forward / strike)
    else:
        eps = (forward - strike) / strike
        log_m = eps - 0.5 * eps * eps

    z = (nu / alpha) * sqrtA * log_m
    B = 1.0 - 2.0 * rho * z + z * z
    C = one_minus_beta * one_minus_beta * log_m * log_m
    tmp = (math.sqrt(B) + z - rho) / (1.0 - rho)
    xx = math.log(tmp)
    D = sqrtA * (1.0 + C / 24.0 + C * C / 1920.0)
    d = 1.0 + expiry_time * (
        one_minus_beta * one_minus_beta * alpha * alpha / (24.0 * A)
        + 0.25 * rho * beta * nu * alpha / sqrtA
        + (2.0 - 3.0 * rho * rho) * (nu * nu / 24.0)
    )

    # z/xx -> 1 as z -> 0; use the series where the ratio is ill-conditioned
    if abs(z * z) > EPSILON * 10:
        multiplier = z / xx
    else:
        multiplier = 1.0 - 0.5 * rho * z - (3.0 * rho * rho - 2.0) * z * z / 12.0

    return (alpha / D) * multiplier * d


def unsafe_shifted_sabr_volatility(strike: float, forward: float, expiry_time: float,
                                   alpha: float, beta: float, nu: float, rho: float,
                                   shift: float) -> float:
    return unsafe_sabr_volatility(strike + shift, forward + shift, expiry_time,
                                  alpha, beta, nu, rho)


def sabr_volatility(strike: float, forward: float, expiry_time: float,
                    alpha: float, beta: float, nu: float, rho: float) -> float:
    """Validated Hagan lognormal volatility."""
    return shifted_sabr_volatility(strike, forward, expiry_time, alpha, beta, nu, rho, 0.0)


def shifted_sabr_volatility(strike: float, forward: float, expiry_time: float,
                            alpha: float, beta: float, nu: float, rho: float,
                            shift: float) -> float:
    """Validated Hagan volatility of the shifted lognormal model."""
    if not strike + shift > 0.0:
        raise PreconditionError(
            f"strike + shift must be positive: {strike} + {shift} not allowed")
    if not forward + shift > 0.0:
        raise PreconditionError(
            f"at the money forward rate + shift must be positive: "
            f"{forward} + {shift} not allowed")
    if not expiry_time >= 0.0:
        raise PreconditionError(f"expiry time must be non-negative: {expiry_time} not allowed")
    validate_sabr_parameters(alpha, beta, nu, rho)
    return unsafe_shifted_sabr_volatility(strike, forward, expiry_time,
                                          alpha, beta, nu, rho, shift)
