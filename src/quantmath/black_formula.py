# black_formula.py
# Black (1976) forward-measure formula, its implied std-dev, and Bachelier.

from __future__ import annotations

import math
from typing import Literal, Optional

from scipy.optimize import brentq
from scipy.stats import norm

from .errors import ConvergenceError, PreconditionError

__all__ = [
    "CALL",
    "PUT",
    "black_formula",
    "black_formula_vol_derivative",
    "try_black_formula_implied_std_dev",
    "black_formula_implied_std_dev",
    "bachelier_black_formula",
]

CALL = "call"
PUT = "put"
OptionType = Literal["call", "put"]

_N = norm.cdf
_n = norm.pdf

# upper end of the implied std-dev search: 300% vol over 60 years
_MAX_STD_DEV = 24.0


def _sign(option_type: str) -> float:
    if option_type == CALL:
        return 1.0
    if option_type == PUT:
        return -1.0
    raise PreconditionError(f"option_type must be 'call' or 'put', got {option_type!r}")


def _check_black_inputs(strike, forward, displacement, discount) -> None:
    if displacement < 0.0:
        raise PreconditionError(f"displacement ({displacement}) must be non-negative")
    if strike + displacement < 0.0:
        raise PreconditionError(
            f"strike + displacement ({strike} + {displacement}) must be non-negative")
    if forward + displacement <= 0.0:
        raise PreconditionError(
            f"forward + displacement ({forward} + {displacement}) must be positive")
    if discount <= 0.0:
        raise PreconditionError(f"discount ({discount}) must be positive")


# ---------------------------------------------------------------------------
# Prices
# ---------------------------------------------------------------------------
def black_formula(
    option_type: OptionType,
    strike: float,
    forward: float,
    std_dev: float,
    discount: float = 1.0,
    displacement: float = 0.0,
) -> float:
    """Undiscounted Black price times ``discount``.

    ``std_dev`` is the total volatility ``sigma * sqrt(T)``; with a
    ``displacement`` the shifted lognormal model is used, i.e. the formula
    is applied to ``forward + displacement`` and ``strike + displacement``.
    """
    w = _sign(option_type)
    _check_black_inputs(strike, forward, displacement, discount)
    if std_dev < 0.0:
        raise PreconditionError(f"std_dev ({std_dev}) must be non-negative")

    if std_dev == 0.0:
        return max((forward - strike) * w, 0.0) * discount

    forward = forward + displacement
    strike = strike + displacement

    if strike == 0.0:
        return forward * discount if w > 0 else 0.0

    d1 = math.log(forward / strike) / std_dev + 0.5 * std_dev
    d2 = d1 - std_dev
    result = discount * w * (forward * float(_N(w * d1)) - strike * float(_N(w * d2)))
    # numerical inaccuracies can yield a slightly negative price
    return max(result, 0.0)


def black_formula_vol_derivative(
    strike: float,
    forward: float,
    std_dev: float,
    expiry: float,
    discount: float = 1.0,
    displacement: float = 0.0,
) -> float:
    """Derivative of the Black price with respect to the volatility."""
    _check_black_inputs(strike, forward, displacement, discount)
    if std_dev < 0.0:
        raise PreconditionError(f"std_dev ({std_dev}) must be non-negative")

    forward = forward + displacement
    strike = strike + displacement
    if std_dev == 0.0 or strike == 0.0:
        return 0.0

    d1 = math.log(forward / strike) / std_dev + 0.5 * std_dev
    return discount * math.sqrt(expiry) * forward * float(_n(d1))


def bachelier_black_formula(
    option_type: OptionType,
    strike: float,
    forward: float,
    std_dev: float,
    discount: float = 1.0,
) -> float:
    """Normal-model (Bachelier) price; ``std_dev`` in absolute terms."""
    w = _sign(option_type)
    if std_dev < 0.0:
        raise PreconditionError(f"std_dev ({std_dev}) must be non-negative")
    if discount <= 0.0:
        raise PreconditionError(f"discount ({discount}) must be positive")

    d = (forward - strike) * w
    if std_dev == 0.0:
        return discount * max(d, 0.0)
    h = d / std_dev
    result = discount * (std_dev * float(_n(h)) + d * float(_N(h)))
    return max(result, 0.0)


# ---------------------------------------------------------------------------
# Implied standard deviation
# ---------------------------------------------------------------------------
def try_black_formula_implied_std_dev(
    option_type: OptionType,
    strike: float,
    forward: float,
    black_price: float,
    discount: float = 1.0,
    displacement: float = 0.0,
    *,
    accuracy: float = 1.0e-6,
    max_iterations: int = 100,
) -> Optional[float]:
    """Implied std dev, or ``None`` when ``black_price`` cannot be matched.

    The price is first mapped to the out-of-the-money option through
    put-call parity, then Brent's method is run on ``[0, 24]``.
    """
    w = _sign(option_type)
    _check_black_inputs(strike, forward, displacement, discount)

    if black_price < 0.0:
        return None
    other_price = black_price - w * (forward - strike) * discount
    if (w < 0 and strike > forward) or (w > 0 and strike < forward):
        option_type = CALL if w < 0 else PUT
        black_price = other_price
    if black_price < 0.0:
        return None
    if black_price == 0.0:
        return 0.0

    def f(s: float) -> float:
        return black_formula(option_type, strike, forward, s, discount, displacement) - black_price

    if f(_MAX_STD_DEV) < 0.0:
        return None

    root, info = brentq(f, 0.0, _MAX_STD_DEV, xtol=accuracy, maxiter=max_iterations,
                        full_output=True, disp=False)
    if not info.converged:
        return None
    return float(root)


def black_formula_implied_std_dev(
    option_type: OptionType,
    strike: float,
    forward: float,
    black_price: float,
    discount: float = 1.0,
    displacement: float = 0.0,
    *,
    accuracy: float = 1.0e-6,
    max_iterations: int = 100,
) -> float:
    """Implied std dev of a Black price.

    Raises
    ------
    PreconditionError
        Negative price or malformed market inputs.
    ConvergenceError
        The price lies outside the attainable range or the root search
        did not converge.
    """
    if black_price < 0.0:
        raise PreconditionError(f"option price ({black_price}) must be non-negative")
    std_dev = try_black_formula_implied_std_dev(
        option_type, strike, forward, black_price, discount, displacement,
        accuracy=accuracy, max_iterations=max_iterations)
    if std_dev is None:
        raise ConvergenceError(
            f"no implied std dev for {option_type} price {black_price} "
            f"(strike {strike}, forward {forward})")
    return std_dev
